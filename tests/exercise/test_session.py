"""
Exercise session lifecycle: calibration, sets, rest, pause and cancel.
"""

import pytest

from exercise_service.models import (
    EventType,
    ExerciseNotFound,
    ExerciseSessionController,
    ExerciseSessionHandler,
    InvalidExerciseDefinition,
    SensorUnavailable,
    SessionNotFound,
    SessionStatus,
    get_exercise,
)


class StubFrameSource:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.running = False

    def start(self):
        if self.fail:
            raise SensorUnavailable("camera permission denied")
        self.running = True

    def stop(self):
        self.running = False


def _session(scheduler, voice, store=None, exercise="shoulder-squeeze", completed=None, **overrides):
    definition = get_exercise(exercise).with_overrides(**overrides)
    session = ExerciseSessionController(
        "test-session",
        definition,
        scheduler=scheduler,
        voice=voice,
        store=store,
        on_complete=completed.append if completed is not None else None,
        frame_source=StubFrameSource(),
    )
    session.events = []
    session.bus.subscribe(session.events.append)
    return session


def _types(session):
    return [e.type for e in session.events]


def _until_active(session, scheduler, frame, step=0.5, limit=200):
    for _ in range(limit):
        if session.status == SessionStatus.ACTIVE:
            return
        session.process_frame(frame)
        scheduler.advance(step)
    raise AssertionError(f"session never became active (status={session.status.value})")


def _rep(session, scheduler, frames):
    for y in (0.20, 0.20, 0.20, 0.29, 0.29, 0.29):
        session.process_frame(frames.shoulders(y))
        scheduler.advance(0.1)


# ═══════════════════════════════════════════════════════════════════════════════
# CALIBRATION
# ═══════════════════════════════════════════════════════════════════════════════

def test_calibration_sets_baseline_then_starts_detection(scheduler, voice, frames):
    session = _session(scheduler, voice)
    assert session.start()
    assert session.status == SessionStatus.CALIBRATING

    _until_active(session, scheduler, frames.shoulders(0.30))

    assert session.calibration_result.baseline == pytest.approx(0.30)
    assert not session.calibration_result.degraded
    assert session.detector.armed
    assert _types(session)[:6] == [
        EventType.CALIBRATION_STARTED,
        EventType.CALIBRATION_COUNTDOWN,
        EventType.CALIBRATION_COUNTDOWN,
        EventType.CALIBRATION_COUNTDOWN,
        EventType.CALIBRATION_COMPLETE,
        EventType.DETECTION_STARTED,
    ]
    assert [e.payload["count"] for e in session.events if e.type == EventType.CALIBRATION_COUNTDOWN] == [3, 2, 1]
    assert voice.spoken[:5] == ["Get into the starting position", "3", "2", "1", "Starting exercise"]


def test_calibration_without_visible_landmarks_uses_fallback(scheduler, voice, frames):
    session = _session(scheduler, voice)
    session.start()

    _until_active(session, scheduler, frames.hidden())

    complete = next(e for e in session.events if e.type == EventType.CALIBRATION_COMPLETE)
    assert complete.payload["baseline"] == 0.5
    assert complete.payload["degraded"] is True
    assert session.detector.baseline == 0.5


def test_visibility_hint_is_throttled(scheduler, voice, frames):
    session = _session(scheduler, voice)
    session.start()

    for _ in range(4):
        session.process_frame(frames.hidden())
        scheduler.advance(0.5)

    hints = [e for e in session.events if e.type == EventType.VISIBILITY_HINT]
    assert len(hints) == 1
    assert hints[0].payload["hint"] == session.definition.visibility_hint


# ═══════════════════════════════════════════════════════════════════════════════
# SETS AND RESULTS
# ═══════════════════════════════════════════════════════════════════════════════

def test_full_session_produces_one_result(scheduler, voice, frames, result_store):
    completed = []
    session = _session(
        scheduler, voice, store=result_store, completed=completed,
        target_sets=3, target_reps=10, rest_seconds=15,
    )
    session.start()

    for set_number in (1, 2, 3):
        _until_active(session, scheduler, frames.shoulders(0.30))
        assert session.state.current_set == set_number
        for _ in range(10):
            _rep(session, scheduler, frames)

    assert session.status == SessionStatus.COMPLETE
    result = session.result
    assert result.completed_sets == 3
    assert result.total_reps == 30
    assert result.accuracy == 100
    assert completed == [result]
    assert len(result_store.records) == 1

    # Nothing after completion produces a second result
    session.process_frame(frames.shoulders(0.20))
    session.aggregator.finalize([1], 0.0, 1.0)
    scheduler.advance(60.0)
    assert len(result_store.records) == 1
    assert _types(session).count(EventType.SESSION_COMPLETE) == 1
    assert _types(session).count(EventType.CALIBRATION_STARTED) == 3
    assert not session.frame_source.running


def test_each_set_recalibrates(scheduler, voice, frames):
    session = _session(scheduler, voice, target_sets=2, target_reps=1, rest_seconds=2)
    session.start()

    _until_active(session, scheduler, frames.shoulders(0.30))
    _rep(session, scheduler, frames)
    assert session.status == SessionStatus.RESTING

    _until_active(session, scheduler, frames.shoulders(0.40))
    assert session.state.current_set == 2
    assert session.detector.baseline == pytest.approx(0.40)


def test_rest_counts_down_each_second(scheduler, voice, frames):
    session = _session(scheduler, voice, target_sets=2, target_reps=1, rest_seconds=3)
    session.start()
    _until_active(session, scheduler, frames.shoulders(0.30))
    _rep(session, scheduler, frames)

    scheduler.advance(3.0)
    ticks = [e.payload["remaining"] for e in session.events if e.type == EventType.REST_TICK]

    assert ticks == [2, 1, 0]
    assert session.status == SessionStatus.CALIBRATING
    set_complete = next(e for e in session.events if e.type == EventType.SET_COMPLETE)
    assert set_complete.payload == {"set": 1, "reps": 1, "final": False, "rest_seconds": 3}


# ═══════════════════════════════════════════════════════════════════════════════
# PAUSE / RESUME / CANCEL
# ═══════════════════════════════════════════════════════════════════════════════

def test_frames_are_dropped_while_paused(scheduler, voice, frames):
    session = _session(scheduler, voice)
    session.start()
    _until_active(session, scheduler, frames.shoulders(0.30))

    assert session.pause()
    dropped = session.frames_dropped
    _rep(session, scheduler, frames)
    _rep(session, scheduler, frames)

    assert session.state.current_rep == 0
    assert session.frames_dropped == dropped + 12

    assert session.resume()
    _rep(session, scheduler, frames)
    assert session.state.current_rep == 1


def test_pause_during_rest_holds_countdown(scheduler, voice, frames):
    session = _session(scheduler, voice, target_sets=2, target_reps=1, rest_seconds=5)
    session.start()
    _until_active(session, scheduler, frames.shoulders(0.30))
    _rep(session, scheduler, frames)
    assert session.status == SessionStatus.RESTING

    scheduler.advance(2.0)
    remaining = session.rest_remaining
    session.pause()
    scheduler.advance(30.0)

    assert session.status == SessionStatus.RESTING
    assert session.rest_remaining == remaining

    session.resume()
    scheduler.advance(float(remaining))
    assert session.status == SessionStatus.CALIBRATING
    assert session.state.current_set == 2


def test_pause_during_calibration_resumes_pending_step(scheduler, voice, frames):
    session = _session(scheduler, voice)
    session.start()
    session.process_frame(frames.shoulders(0.30))
    scheduler.advance(2.0)

    session.pause()
    scheduler.advance(30.0)
    assert session.status == SessionStatus.CALIBRATING
    assert session.calibration.sample_count == 1
    assert EventType.CALIBRATION_COUNTDOWN not in _types(session)

    session.resume()
    scheduler.advance(1.0)

    countdown = [e.payload["count"] for e in session.events if e.type == EventType.CALIBRATION_COUNTDOWN]
    assert countdown == [3]
    assert _types(session).count(EventType.CALIBRATION_STARTED) == 1

    _until_active(session, scheduler, frames.shoulders(0.30))
    assert session.calibration_result.sample_count > 1


def test_pause_does_not_count_toward_a_hold(scheduler, voice, frames):
    session = _session(scheduler, voice, exercise="neck-side-stretch")
    session.start()
    _until_active(session, scheduler, frames.nose(0.5))

    session.process_frame(frames.nose(0.56))
    assert session.state.alternation.hold_started_at is not None
    scheduler.advance(1.0)

    session.pause()
    scheduler.advance(30.0)
    session.resume()

    session.process_frame(frames.nose(0.56))
    assert session.state.current_rep == 0
    assert session.state.alternation.stage.value == "left_hold"

    scheduler.advance(2.5)
    session.process_frame(frames.nose(0.56))
    assert session.state.current_rep == 1
    assert session.state.alternation.left_count == 1


def test_cancel_clears_timers_and_silences_voice(scheduler, voice, frames):
    session = _session(scheduler, voice)
    session.start()
    assert session.timers.pending > 0

    assert session.cancel()

    assert session.status == SessionStatus.CANCELLED
    assert session.timers.pending == 0
    assert scheduler.pending == 0
    assert voice.calls[-1] == ("cancel", None)
    assert not session.frame_source.running
    assert _types(session)[-1] == EventType.SESSION_CANCELLED

    event_count = len(session.events)
    scheduler.advance(60.0)
    assert session.process_frame(frames.shoulders(0.20)) is None
    assert len(session.events) == event_count
    assert session.result is None
    assert not session.cancel()


def test_sensor_unavailable_fails_session(scheduler, voice):
    session = _session(scheduler, voice)
    session.frame_source = StubFrameSource(fail=True)

    assert not session.start()
    assert session.status == SessionStatus.FAILED
    assert session.events[-1].type == EventType.SENSOR_UNAVAILABLE
    assert "camera" in session.events[-1].payload["error"]
    assert scheduler.pending == 0


def test_invalid_landmarks_are_dropped(scheduler, voice, frames):
    session = _session(scheduler, voice)
    session.start()

    assert session.submit_landmarks([{"x": 0.5}]) is None
    assert session.frames_dropped == 1
    assert session.events[-1].type == EventType.FRAME_DROPPED

    session.submit_landmarks(frames.raw())
    assert session.frames_processed == 1


# ═══════════════════════════════════════════════════════════════════════════════
# SESSION HANDLER
# ═══════════════════════════════════════════════════════════════════════════════

def test_handler_creates_and_removes_sessions(scheduler, voice, result_store):
    handler = ExerciseSessionHandler(store=result_store)

    session = handler.create_session("squat", target_reps=5, scheduler=scheduler, voice=voice)
    assert session.definition.target_reps == 5
    assert handler.require_session(session.session_id) is session
    assert handler.get_stats()["total_sessions"] == 1

    session.start()
    handler.cleanup_session(session.session_id)
    assert session.status == SessionStatus.CANCELLED
    assert handler.get_session(session.session_id) is None

    with pytest.raises(SessionNotFound):
        handler.require_session(session.session_id)


def test_handler_rejects_bad_requests(result_store):
    handler = ExerciseSessionHandler(store=result_store)

    with pytest.raises(ExerciseNotFound):
        handler.create_session("cartwheel")
    with pytest.raises(InvalidExerciseDefinition):
        handler.create_session("squat", target_sets=0)
