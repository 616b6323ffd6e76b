"""
Voice cue policy: de-duplication, latest-wins and delayed completion cues.
"""

import pytest

from core.timers import TimerGroup
from exercise_service.models import EventBus, EventType, FeedbackEmitter
from exercise_service.models.feedback import count_phrase


@pytest.fixture
def emitter(scheduler, voice):
    timers = TimerGroup(scheduler)
    emitter = FeedbackEmitter(
        voice,
        timers,
        scheduler.time,
        dedup_seconds=1.5,
        sequenced_cue_delay=0.5,
        muted=False,
    )
    bus = EventBus("s1")
    emitter.attach(bus)
    emitter.bus = bus
    return emitter


def test_identical_cues_inside_window_are_dropped(emitter, scheduler, voice):
    assert emitter.say("five")
    assert not emitter.say("five")

    scheduler.advance(2.0)
    assert emitter.say("five")
    assert voice.spoken == ["five", "five"]


def test_latest_cue_cancels_previous(emitter, voice):
    emitter.say("one")
    emitter.say("two")

    assert voice.calls == [("cancel", None), ("speak", "one"), ("cancel", None), ("speak", "two")]


def test_rep_counts_are_spoken_as_words(emitter, voice):
    emitter.bus.publish(EventType.REP_COUNTED, {"current_rep": 3})
    emitter.bus.publish(EventType.REP_COUNTED, {"current_rep": 4, "side": "left", "side_count": 2})

    assert voice.spoken == ["three", "Left two"]


def test_set_complete_cue_is_delayed(emitter, scheduler, voice):
    emitter.bus.publish(EventType.REP_COUNTED, {"current_rep": 10})
    emitter.bus.publish(EventType.SET_COMPLETE, {"set": 1, "final": False, "rest_seconds": 15})
    assert voice.spoken == ["ten"]

    scheduler.advance(0.5)
    assert voice.spoken == ["ten", "Set 1 complete! Rest 15 seconds"]


def test_final_set_only_announces_session_complete(emitter, scheduler, voice):
    emitter.bus.publish(EventType.SET_COMPLETE, {"set": 3, "final": True, "rest_seconds": 0})
    emitter.bus.publish(EventType.SESSION_COMPLETE, {"result": {}})
    scheduler.advance(1.0)

    assert voice.spoken == ["Exercise complete. Well done!"]


def test_muted_emitter_says_nothing(emitter, voice):
    emitter.set_muted(True)
    emitter.bus.publish(EventType.CALIBRATION_STARTED)

    assert voice.spoken == []

    emitter.set_muted(False)
    emitter.bus.publish(EventType.CALIBRATION_STARTED)
    assert voice.spoken == ["Get into the starting position"]


def test_flush_drops_pending_sequenced_cue(emitter, scheduler, voice):
    emitter.bus.publish(EventType.SESSION_COMPLETE, {"result": {}})
    emitter.flush()
    scheduler.advance(1.0)

    assert voice.spoken == []
    assert voice.calls[-1] == ("cancel", None)


def test_silent_events_have_no_cue(emitter):
    event = emitter.bus.publish(EventType.FRAME_DROPPED, {"reason": "bad"})
    assert emitter.cue_for(event) is None


def test_count_phrase():
    assert count_phrase(1) == "one"
    assert count_phrase(20) == "twenty"
    assert count_phrase(21) == "21 reps"
