"""
POSTUREFIT Exercise Service - Repetition Detector

Dispatches each frame to the exercise's strategy and applies the returned
Evaluation to the session's SessionState. Produces a DetectionOutcome;
publishing events is left to the session controller.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Any

from core.config import settings
from .exercise_library import ExerciseDefinition, StrategyKind
from .landmarks import PoseFrame
from .session_state import Direction, SessionState
from .strategies import MeasurementStrategy, create_strategy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DetectionOutcome:
    """What happened on one detection cycle."""
    measurement: Optional[float] = None
    previous_phase: Optional[str] = None
    phase: Optional[str] = None
    counted: bool = False
    side: Optional[Direction] = None
    current_rep: int = 0
    set_complete: bool = False

    @property
    def phase_changed(self) -> bool:
        return self.phase is not None and self.phase != self.previous_phase

    @property
    def skipped(self) -> bool:
        return self.measurement is None


class RepetitionDetector:
    """
    Phase state machine driver for one exercise.

    Detection only runs while armed. The session controller arms the
    detector once calibration has produced a baseline and disarms it for
    pause, rest and cancel.
    """

    def __init__(
        self,
        definition: ExerciseDefinition,
        strategy: Optional[MeasurementStrategy] = None,
        min_visibility: float = settings.MIN_VISIBILITY
    ):
        self.definition = definition
        self.strategy = strategy or create_strategy(definition.strategy, min_visibility)
        self.baseline: Optional[float] = None
        self.armed = False

    def arm(self, baseline: float):
        self.baseline = baseline
        self.armed = True

    def disarm(self):
        self.armed = False

    def discard(self):
        """Drop baseline and armed flag (used on cancel and between sets)."""
        self.baseline = None
        self.armed = False

    def phase_label(self, state: SessionState) -> str:
        if self.definition.strategy == StrategyKind.HOLD_ALTERNATE:
            return state.alternation.stage.value
        return state.phase.value

    def process(self, frame: PoseFrame, state: SessionState, now: float) -> DetectionOutcome:
        """
        Run one detection cycle.

        Args:
            frame: Validated pose frame
            state: Session state (mutated in place on transitions)
            now: Frame processing time in seconds

        Returns:
            DetectionOutcome (empty when not armed or measurement unavailable)
        """
        if not self.armed or self.baseline is None:
            return DetectionOutcome()

        previous = self.phase_label(state)
        evaluation = self.strategy.evaluate(frame, self.definition, self.baseline, state, now)
        if evaluation is None:
            return DetectionOutcome(previous_phase=previous, current_rep=state.current_rep)

        state.debounce_counter = evaluation.debounce_counter
        if evaluation.phase is not None:
            state.phase = evaluation.phase
        if evaluation.alternation is not None:
            state.alternation = evaluation.alternation

        set_complete = False
        if evaluation.counted:
            state.current_rep += 1
            state.last_count_timestamp = now
            set_complete = state.current_rep >= self.definition.target_reps
            logger.debug(
                f"Rep {state.current_rep}/{self.definition.target_reps} counted "
                f"(set {state.current_set}, measurement={evaluation.measurement:.3f})"
            )

        return DetectionOutcome(
            measurement=evaluation.measurement,
            previous_phase=previous,
            phase=self.phase_label(state),
            counted=evaluation.counted,
            side=evaluation.side,
            current_rep=state.current_rep,
            set_complete=set_complete,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strategy": self.definition.strategy.value,
            "armed": self.armed,
            "baseline": self.baseline,
        }
