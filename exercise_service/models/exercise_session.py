"""
POSTUREFIT Exercise Service - Exercise Session

Session controller: owns the SessionState, drives calibration and rest
timers, feeds frames to the RepetitionDetector and publishes session
events. One controller per session; frames are processed one at a time
on the event loop.

Lifecycle:
    IDLE -> CALIBRATING -> ACTIVE -> RESTING -> CALIBRATING -> ... -> COMPLETE
    any running state -> CANCELLED
    IDLE -> FAILED (pose source unavailable)
Pause is a flag on top of CALIBRATING / ACTIVE / RESTING.
"""

import logging
import uuid
from typing import Any, Callable, Dict, Optional, Tuple
from enum import Enum

from core.config import settings
from core.timers import AsyncioScheduler, TimerGroup
from .calibration import CalibrationEngine, CalibrationPhase, CalibrationResult
from .errors import InvalidFrame, SensorUnavailable, SessionNotFound
from .events import EventBus, EventType
from .exercise_library import Difficulty, ExerciseDefinition, get_exercise
from .feedback import FeedbackEmitter, LoggingVoice, VoiceService
from .landmarks import PoseFrame, parse_pose_frame
from .rep_detector import DetectionOutcome, RepetitionDetector
from .result_aggregator import ExerciseResult, ResultAggregator
from .session_state import AlternationState, Direction, RepPhase, SessionState

logger = logging.getLogger(__name__)


CALIBRATION_TIMER = "calibration"
REST_TIMER = "rest"


class SessionStatus(str, Enum):
    """Exercise session states."""
    IDLE = "idle"
    CALIBRATING = "calibrating"
    ACTIVE = "active"
    RESTING = "resting"
    COMPLETE = "complete"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_running(self) -> bool:
        return self in (SessionStatus.CALIBRATING, SessionStatus.ACTIVE, SessionStatus.RESTING)

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETE, SessionStatus.CANCELLED, SessionStatus.FAILED)


class ExerciseSessionController:
    """
    Runs one exercise session.

    Features:
    - Per-set calibration pre-roll (announce, countdown, start delay)
    - Rep detection through the exercise's measurement strategy
    - Rest countdown between sets
    - Pause / resume / cancel
    - Exactly-once result hand-off
    """

    def __init__(
        self,
        session_id: str,
        definition: ExerciseDefinition,
        scheduler: Any = None,
        voice: Optional[VoiceService] = None,
        store: Optional[Any] = None,
        on_complete: Optional[Callable[[ExerciseResult], None]] = None,
        frame_source: Optional[Any] = None,
        user_id: Optional[str] = None,
        min_visibility: float = settings.MIN_VISIBILITY
    ):
        """
        Initialize session controller.

        Args:
            session_id: Session ID
            definition: Validated exercise definition
            scheduler: Timer scheduler (asyncio loop scheduler if None)
            voice: Voice service for cues (logging voice if None)
            store: Result store with ``save(record)``
            on_complete: Called once with the ExerciseResult
            frame_source: Object with ``start()``/``stop()``; ``start`` may
                raise SensorUnavailable
            user_id: Owning user, informational
            min_visibility: Landmark visibility threshold
        """
        self.session_id = session_id
        self.definition = definition
        self.user_id = user_id
        self.min_visibility = min_visibility
        self.frame_source = frame_source

        self.scheduler = scheduler or AsyncioScheduler()
        self.clock = self.scheduler.time
        self.timers = TimerGroup(self.scheduler, name=f"session:{session_id}")
        self.bus = EventBus(session_id)

        self.state = SessionState()
        self.calibration = CalibrationEngine()
        self.calibration_phase = CalibrationPhase.IDLE
        self.calibration_result: Optional[CalibrationResult] = None
        self.detector = RepetitionDetector(definition, min_visibility=min_visibility)

        self.feedback = FeedbackEmitter(voice or LoggingVoice(), self.timers, self.clock)
        self.feedback.attach(self.bus)
        self.aggregator = ResultAggregator(definition, store=store, on_complete=on_complete)

        self.status = SessionStatus.IDLE
        self.paused = False
        self.started_at: Optional[float] = None
        self.ended_at: Optional[float] = None
        self.rest_remaining = 0
        self.frames_processed = 0
        self.frames_dropped = 0

        self._countdown = 0
        self._last_hint_at: Optional[float] = None
        self._paused_at: Optional[float] = None
        self._calibration_step: Optional[Tuple[Callable[[], None], float]] = None
        self._calibration_remaining = 0.0

    # ═══════════════════════════════════════════════════════════════════════
    # LIFECYCLE
    # ═══════════════════════════════════════════════════════════════════════

    def start(self) -> bool:
        """
        Start the session.

        Returns:
            False if the pose source is unavailable (session FAILED)
        """
        if self.status != SessionStatus.IDLE:
            return self.status.is_running

        if self.frame_source is not None:
            try:
                self.frame_source.start()
            except SensorUnavailable as e:
                self.status = SessionStatus.FAILED
                logger.error(f"❌ Session {self.session_id}: pose source unavailable: {e}")
                self.bus.publish(EventType.SENSOR_UNAVAILABLE, {"error": str(e)})
                return False

        self.started_at = self.clock()
        logger.info(
            f"🏃 Session {self.session_id} started: {self.definition.name} "
            f"({self.definition.target_sets}x{self.definition.target_reps})"
        )
        self._begin_calibration()
        return True

    def pause(self) -> bool:
        """Freeze the session. Frames arriving while paused are dropped."""
        if not self.status.is_running or self.paused:
            return False

        self.paused = True
        self._paused_at = self.clock()
        self.detector.disarm()

        if self.status == SessionStatus.RESTING:
            self.timers.cancel(REST_TIMER)
        elif self.status == SessionStatus.CALIBRATING and self._calibration_step is not None:
            # Samples and phase are kept; the pending step resumes with its remaining delay
            self.timers.cancel(CALIBRATION_TIMER)
            _, due = self._calibration_step
            self._calibration_remaining = max(0.0, due - self._paused_at)

        logger.info(f"⏸️ Session {self.session_id} paused ({self.status.value})")
        self.bus.publish(EventType.SESSION_PAUSED, {"status": self.status.value})
        return True

    def resume(self) -> bool:
        """Continue from where the session was paused."""
        if not self.paused or self.status.is_terminal:
            return False

        paused_for = self.clock() - self._paused_at
        self.paused = False
        self._paused_at = None
        logger.info(f"▶️ Session {self.session_id} resumed ({self.status.value})")
        self.bus.publish(EventType.SESSION_RESUMED, {"status": self.status.value})

        if self.status == SessionStatus.ACTIVE:
            # Time spent paused does not count toward a hold in progress
            self.state.alternation = self.state.alternation.shift_hold(paused_for)
            self.detector.arm(self.calibration_result.baseline)
        elif self.status == SessionStatus.RESTING:
            self.timers.schedule(REST_TIMER, settings.REST_TICK_SECONDS, self._rest_tick)
        elif self.status == SessionStatus.CALIBRATING and self._calibration_step is not None:
            callback, _ = self._calibration_step
            self._schedule_calibration(self._calibration_remaining, callback)
        return True

    def cancel(self) -> bool:
        """
        Abort the session.

        Stops the frame source, cancels every pending timer, discards
        detector state and silences the voice channel before returning.
        """
        if self.status.is_terminal:
            return False

        if self.frame_source is not None:
            self.frame_source.stop()

        cancelled_timers = self.timers.cancel_all()
        self.feedback.flush()
        self.detector.discard()
        self.calibration.reset()
        self.calibration_phase = CalibrationPhase.IDLE
        self.state.debounce_counter = 0
        self.state.phase = RepPhase.READY
        self.state.alternation = AlternationState()

        self._calibration_step = None
        self.status = SessionStatus.CANCELLED
        self.paused = False
        self.ended_at = self.clock()

        logger.info(f"🛑 Session {self.session_id} cancelled ({cancelled_timers} timer(s) dropped)")
        self.bus.publish(EventType.SESSION_CANCELLED, {"reps_completed_per_set": list(self.state.reps_completed_per_set)})
        return True

    # ═══════════════════════════════════════════════════════════════════════
    # FRAMES
    # ═══════════════════════════════════════════════════════════════════════

    def submit_landmarks(self, raw_landmarks: Any) -> Optional[DetectionOutcome]:
        """Validate a raw landmark payload and process it. Malformed frames are dropped."""
        if self.paused or not self.status.is_running:
            self.frames_dropped += 1
            return None

        try:
            frame = parse_pose_frame(raw_landmarks, timestamp=self.clock())
        except InvalidFrame as e:
            self.frames_dropped += 1
            logger.debug(f"Session {self.session_id}: dropped invalid frame: {e}")
            self.bus.publish(EventType.FRAME_DROPPED, {"reason": str(e)})
            return None

        return self.process_frame(frame)

    def process_frame(self, frame: PoseFrame) -> Optional[DetectionOutcome]:
        """
        Process one pose frame.

        Returns:
            DetectionOutcome while ACTIVE, otherwise None
        """
        if self.paused or not self.status.is_running:
            self.frames_dropped += 1
            return None

        now = self.clock()
        self.frames_processed += 1

        if not self._required_joints_visible(frame):
            self._visibility_hint(now)
            return None

        if self.status == SessionStatus.CALIBRATING:
            if self.calibration_phase.is_sampling:
                self.calibration.add_sample(self.detector.strategy.measure(frame, self.definition))
            return None

        if self.status != SessionStatus.ACTIVE:
            return None

        outcome = self.detector.process(frame, self.state, now)

        if outcome.phase_changed:
            self.bus.publish(EventType.PHASE_CHANGED, {
                "from": outcome.previous_phase,
                "to": outcome.phase,
                "measurement": outcome.measurement,
            })

        if outcome.counted:
            payload = {
                "set": self.state.current_set,
                "current_rep": self.state.current_rep,
                "target_reps": self.definition.target_reps,
            }
            if outcome.side is not None:
                alternation = self.state.alternation
                payload.update({
                    "side": outcome.side.value,
                    "side_count": alternation.left_count if outcome.side is Direction.LEFT else alternation.right_count,
                    "left_count": alternation.left_count,
                    "right_count": alternation.right_count,
                })
            self.bus.publish(EventType.REP_COUNTED, payload)

        if outcome.set_complete:
            self._complete_set()

        return outcome

    def _required_joints_visible(self, frame: PoseFrame) -> bool:
        return any(
            frame.all_visible(group, self.min_visibility)
            for group in self.definition.required_joint_groups()
        )

    def _visibility_hint(self, now: float):
        interval = settings.VISIBILITY_HINT_INTERVAL_SECONDS
        if self._last_hint_at is not None and now - self._last_hint_at < interval:
            return
        self._last_hint_at = now
        self.bus.publish(EventType.VISIBILITY_HINT, {"hint": self.definition.visibility_hint})

    # ═══════════════════════════════════════════════════════════════════════
    # CALIBRATION
    # ═══════════════════════════════════════════════════════════════════════

    def _schedule_calibration(self, delay: float, callback: Callable[[], None]):
        self._calibration_step = (callback, self.clock() + delay)
        self.timers.schedule(CALIBRATION_TIMER, delay, callback)

    def _begin_calibration(self):
        self.status = SessionStatus.CALIBRATING
        self.detector.discard()
        self.calibration.reset()
        self.calibration_result = None
        self.calibration_phase = CalibrationPhase.ANNOUNCING

        self.bus.publish(EventType.CALIBRATION_STARTED, {
            "set": self.state.current_set,
            "announce_seconds": settings.CALIBRATION_ANNOUNCE_SECONDS,
        })
        self._schedule_calibration(settings.CALIBRATION_ANNOUNCE_SECONDS, self._start_countdown)

    def _start_countdown(self):
        self.calibration_phase = CalibrationPhase.COUNTDOWN
        self._countdown = settings.CALIBRATION_COUNTDOWN_STEPS
        self.bus.publish(EventType.CALIBRATION_COUNTDOWN, {"count": self._countdown})
        self._schedule_calibration(settings.CALIBRATION_COUNTDOWN_INTERVAL_SECONDS, self._countdown_tick)

    def _countdown_tick(self):
        self._countdown -= 1
        if self._countdown > 0:
            self.bus.publish(EventType.CALIBRATION_COUNTDOWN, {"count": self._countdown})
            self._schedule_calibration(settings.CALIBRATION_COUNTDOWN_INTERVAL_SECONDS, self._countdown_tick)
            return

        self.calibration_result = self.calibration.finalize()
        self.calibration_phase = CalibrationPhase.STARTING
        self.bus.publish(EventType.CALIBRATION_COMPLETE, self.calibration_result.to_dict())
        self._schedule_calibration(settings.CALIBRATION_START_DELAY_SECONDS, self._activate)

    def _activate(self):
        self._calibration_step = None
        self.calibration_phase = CalibrationPhase.DONE
        self.status = SessionStatus.ACTIVE
        self.detector.arm(self.calibration_result.baseline)
        logger.info(
            f"🎯 Session {self.session_id}: detection started for set {self.state.current_set} "
            f"(baseline={self.calibration_result.baseline:.4f})"
        )
        self.bus.publish(EventType.DETECTION_STARTED, {
            "set": self.state.current_set,
            "baseline": self.calibration_result.baseline,
            "degraded": self.calibration_result.degraded,
        })

    # ═══════════════════════════════════════════════════════════════════════
    # SETS AND REST
    # ═══════════════════════════════════════════════════════════════════════

    def _complete_set(self):
        self.detector.disarm()
        self.state.reps_completed_per_set.append(self.state.current_rep)
        final = self.state.current_set >= self.definition.target_sets

        logger.info(
            f"✅ Session {self.session_id}: set {self.state.current_set}/{self.definition.target_sets} "
            f"complete ({self.state.current_rep} reps)"
        )
        self.bus.publish(EventType.SET_COMPLETE, {
            "set": self.state.current_set,
            "reps": self.state.current_rep,
            "final": final,
            "rest_seconds": 0 if final else self.definition.rest_seconds,
        })

        if final:
            self._complete_session()
        else:
            self._start_rest()

    def _start_rest(self):
        self.status = SessionStatus.RESTING
        self.rest_remaining = self.definition.rest_seconds
        self.bus.publish(EventType.REST_STARTED, {
            "set": self.state.current_set,
            "rest_seconds": self.rest_remaining,
        })

        if self.rest_remaining <= 0:
            self._end_rest()
            return
        self.timers.schedule(REST_TIMER, settings.REST_TICK_SECONDS, self._rest_tick)

    def _rest_tick(self):
        self.rest_remaining -= 1
        self.bus.publish(EventType.REST_TICK, {"remaining": self.rest_remaining})

        if self.rest_remaining <= 0:
            self._end_rest()
        else:
            self.timers.schedule(REST_TIMER, settings.REST_TICK_SECONDS, self._rest_tick)

    def _end_rest(self):
        self.state.reset_for_next_set()
        self._begin_calibration()

    def _complete_session(self):
        if self.aggregator.finalized:
            return

        self.status = SessionStatus.COMPLETE
        self.ended_at = self.clock()
        result = self.aggregator.finalize(
            self.state.reps_completed_per_set,
            started_at=self.started_at,
            ended_at=self.ended_at,
        )
        self.bus.publish(EventType.SESSION_COMPLETE, {"result": result.to_dict()})

        if self.frame_source is not None:
            self.frame_source.stop()

    # ═══════════════════════════════════════════════════════════════════════
    # STATUS
    # ═══════════════════════════════════════════════════════════════════════

    @property
    def result(self) -> Optional[ExerciseResult]:
        return self.aggregator.result

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "session_id": self.session_id,
            "user_id": self.user_id,
            "exercise": self.definition.to_dict(),
            "status": self.status.value,
            "paused": self.paused,
            "calibration_phase": self.calibration_phase.value,
            "calibration": self.calibration_result.to_dict() if self.calibration_result else None,
            "rest_remaining": self.rest_remaining if self.status == SessionStatus.RESTING else 0,
            "frames_processed": self.frames_processed,
            "frames_dropped": self.frames_dropped,
            "pending_timers": self.timers.pending,
            "state": self.state.to_dict(),
            "result": self.result.to_dict() if self.result else None,
        }


class ExerciseSessionHandler:
    """Registry of live session controllers."""

    def __init__(self, store: Optional[Any] = None):
        """
        Initialize session handler.

        Args:
            store: Result store for new sessions (global store if None)
        """
        self._store = store
        self.active_sessions: Dict[str, ExerciseSessionController] = {}

    @property
    def store(self):
        if self._store is None:
            from shared.storage import get_result_store
            self._store = get_result_store()
        return self._store

    def create_session(
        self,
        exercise_id: str,
        difficulty: Difficulty = Difficulty.NORMAL,
        target_sets: Optional[int] = None,
        target_reps: Optional[int] = None,
        rest_seconds: Optional[int] = None,
        user_id: Optional[str] = None,
        scheduler: Any = None,
        voice: Optional[VoiceService] = None,
        frame_source: Optional[Any] = None
    ) -> ExerciseSessionController:
        """
        Create a new exercise session.

        Raises:
            ExerciseNotFound: unknown exercise id
            InvalidExerciseDefinition: overrides produce an invalid definition
        """
        definition = get_exercise(exercise_id, difficulty).with_overrides(
            target_sets=target_sets,
            target_reps=target_reps,
            rest_seconds=rest_seconds,
        )

        session_id = str(uuid.uuid4())[:8]
        controller = ExerciseSessionController(
            session_id=session_id,
            definition=definition,
            scheduler=scheduler,
            voice=voice,
            store=self.store,
            frame_source=frame_source,
            user_id=user_id,
        )
        self.active_sessions[session_id] = controller

        logger.info(f"🆕 Session {session_id} created for '{exercise_id}' ({difficulty.value})")
        return controller

    def get_session(self, session_id: str) -> Optional[ExerciseSessionController]:
        """Get session by ID."""
        return self.active_sessions.get(session_id)

    def require_session(self, session_id: str) -> ExerciseSessionController:
        session = self.active_sessions.get(session_id)
        if session is None:
            raise SessionNotFound(f"Session {session_id} not found")
        return session

    def cleanup_session(self, session_id: str):
        """Cancel (if still running) and remove a session."""
        session = self.active_sessions.pop(session_id, None)
        if session is not None:
            session.cancel()
            session.timers.cancel_all()
            session.bus.clear()
            logger.info(f"🧹 Session {session_id} removed ({session.status.value})")

    def get_stats(self) -> Dict[str, Any]:
        by_status: Dict[str, int] = {}
        for session in self.active_sessions.values():
            by_status[session.status.value] = by_status.get(session.status.value, 0) + 1
        return {"total_sessions": len(self.active_sessions), "by_status": by_status}


# ═══════════════════════════════════════════════════════════════════════════════
# MODULE-LEVEL SINGLETON
# ═══════════════════════════════════════════════════════════════════════════════

_handler_instance: Optional[ExerciseSessionHandler] = None

def get_session_handler() -> ExerciseSessionHandler:
    """Get or create the global session handler instance."""
    global _handler_instance
    if _handler_instance is None:
        _handler_instance = ExerciseSessionHandler()
    return _handler_instance
