"""
POSTUREFIT Exercise Service - Measurement Strategies

Per-exercise classification logic. Strategies are pure: they read the
frame, the definition, the baseline and a SessionState and return an
Evaluation describing what should change. They never mutate state.

- AxisDeltaStrategy: displacement of a joint coordinate from baseline
- AngleThresholdStrategy: three-point joint angle with enter/exit angles
- HoldAlternateStrategy: timed holds alternating left and right
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from core.config import settings
from .angle_calculator import knee_angle, hip_angle
from .exercise_library import (
    ExerciseDefinition,
    StrategyKind,
    CountingJoint,
    AngleJoint,
    Axis,
    DebounceReset,
    JOINT_LANDMARKS,
)
from .landmarks import JointType, PoseFrame
from .session_state import (
    RepPhase,
    Direction,
    AlternationState,
    AlternationStage,
    SessionState,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Evaluation:
    """Result of evaluating one frame. ``None`` fields mean unchanged."""
    measurement: float
    debounce_counter: int = 0
    phase: Optional[RepPhase] = None
    alternation: Optional[AlternationState] = None
    counted: bool = False
    side: Optional[Direction] = None


def joint_value(
    frame: PoseFrame,
    joint: CountingJoint,
    axis: Axis,
    mirror: bool = False,
    min_visibility: float = settings.MIN_VISIBILITY
) -> Optional[float]:
    """
    Coordinate of a counting joint along one axis.

    Paired joints use the midpoint when both sides are visible, otherwise
    the visible side. Mirroring flips x to 1 - x.
    """
    points = [frame.visible(j, min_visibility) for j in JOINT_LANDMARKS[joint]]
    points = [p for p in points if p is not None]
    if not points:
        return None

    coords = [p.x if axis == Axis.X else p.y for p in points]
    value = sum(coords) / len(coords)

    if axis == Axis.X and mirror:
        value = 1.0 - value
    return value


def nose_shoulder_gap(
    frame: PoseFrame,
    min_visibility: float = settings.MIN_VISIBILITY
) -> Optional[float]:
    """Shoulder-midpoint y minus nose y; shrinks when the chin is tucked."""
    nose = frame.visible(JointType.NOSE, min_visibility)
    if nose is None:
        return None

    left = frame.get(JointType.LEFT_SHOULDER)
    right = frame.get(JointType.RIGHT_SHOULDER)
    if left is None or right is None:
        return None
    if not left.is_visible(min_visibility) and not right.is_visible(min_visibility):
        return None

    return (left.y + right.y) / 2 - nose.y


# ═══════════════════════════════════════════════════════════════════════════════
# STRATEGIES
# ═══════════════════════════════════════════════════════════════════════════════

class MeasurementStrategy:
    """Base class for strategies."""

    kind: StrategyKind

    def __init__(self, min_visibility: float = settings.MIN_VISIBILITY):
        self.min_visibility = min_visibility

    def measure(self, frame: PoseFrame, definition: ExerciseDefinition) -> Optional[float]:
        """Scalar measurement for calibration and detection; None if unavailable."""
        raise NotImplementedError

    def evaluate(
        self,
        frame: PoseFrame,
        definition: ExerciseDefinition,
        baseline: float,
        state: SessionState,
        now: float
    ) -> Optional[Evaluation]:
        """Classify one frame. Returns None when the measurement is unavailable."""
        raise NotImplementedError


class BandStrategy(MeasurementStrategy):
    """
    Ready/Down/Up detection over a hysteresis band.

    Subclasses supply ``zones()``: whether the value is in the "entering"
    zone (movement performed) or the "returning" zone (back at rest).
    Values in neither zone sit inside the hysteresis gap.
    """

    def zones(self, value: float, definition: ExerciseDefinition, baseline: float) -> Tuple[bool, bool]:
        raise NotImplementedError

    def evaluate(self, frame, definition, baseline, state, now):
        value = self.measure(frame, definition)
        if value is None:
            return None

        entering, returning = self.zones(value, definition, baseline)
        counter = state.debounce_counter

        if state.phase in (RepPhase.READY, RepPhase.UP):
            if entering:
                counter += 1
                if counter >= definition.debounce_frames:
                    return Evaluation(value, 0, phase=RepPhase.DOWN)
                return Evaluation(value, counter)
            return Evaluation(value, _reset_counter(definition, counter, opposite=returning))

        # RepPhase.DOWN
        if returning:
            counter += 1
            if counter >= definition.debounce_frames and _cooldown_elapsed(definition, state, now):
                return Evaluation(value, 0, phase=RepPhase.UP, counted=True)
            return Evaluation(value, counter)
        return Evaluation(value, _reset_counter(definition, counter, opposite=entering))


def _reset_counter(definition: ExerciseDefinition, counter: int, opposite: bool) -> int:
    if definition.debounce_reset == DebounceReset.ANY_MISMATCH or opposite:
        return 0
    return counter


def _cooldown_elapsed(definition: ExerciseDefinition, state: SessionState, now: float) -> bool:
    last = state.last_count_timestamp
    return last is None or now - last > definition.cooldown_seconds


class AxisDeltaStrategy(BandStrategy):
    """
    Displacement of a joint coordinate from baseline.

    y axis: moving up (value decreasing) past ``delta`` enters; coming back
    above ``baseline - delta/2`` returns. x axis: any direction past
    ``delta`` enters; within ``delta/2`` of baseline returns.
    """

    kind = StrategyKind.AXIS_DELTA

    def measure(self, frame, definition):
        if definition.counting_joint == CountingJoint.NOSE_SHOULDER_GAP:
            return nose_shoulder_gap(frame, self.min_visibility)
        return joint_value(
            frame,
            definition.counting_joint,
            definition.counting_axis,
            definition.mirror,
            self.min_visibility
        )

    def zones(self, value, definition, baseline):
        delta = definition.delta_threshold
        if definition.counting_axis == Axis.Y:
            return value < baseline - delta, value > baseline - delta / 2
        deviation = abs(value - baseline)
        return deviation > delta, deviation < delta / 2


class AngleThresholdStrategy(BandStrategy):
    """Angle below ``enter_down_angle`` enters; above ``exit_up_angle`` returns."""

    kind = StrategyKind.ANGLE_THRESHOLD

    def measure(self, frame, definition):
        if definition.angle_joint == AngleJoint.HIP:
            return hip_angle(frame, self.min_visibility)
        return knee_angle(frame, self.min_visibility)

    def zones(self, value, definition, baseline):
        return value < definition.enter_down_angle, value > definition.exit_up_angle


class HoldAlternateStrategy(MeasurementStrategy):
    """
    Timed holds that must alternate sides.

    A hold may only start in the expected direction. It counts once it has
    lasted ``hold_seconds``; returning to center first cancels it. After a
    count the expected direction flips. The opposite side is ignored while
    holding.
    """

    kind = StrategyKind.HOLD_ALTERNATE

    def measure(self, frame, definition):
        # Raw x; mirroring only changes how displacement maps to a side
        return joint_value(frame, definition.counting_joint, Axis.X, False, self.min_visibility)

    def classify(self, value: float, definition: ExerciseDefinition, baseline: float) -> Tuple[Optional[Direction], bool]:
        """Direction of displacement (None when inside the side band) and center flag."""
        displacement = value - baseline
        positive = Direction.LEFT if definition.mirror else Direction.RIGHT

        direction = None
        if displacement > definition.side_threshold:
            direction = positive
        elif displacement < -definition.side_threshold:
            direction = positive.opposite

        return direction, abs(displacement) < definition.center_threshold

    def evaluate(self, frame, definition, baseline, state, now):
        value = self.measure(frame, definition)
        if value is None:
            return None

        direction, is_center = self.classify(value, definition, baseline)
        alternation = state.alternation

        if alternation.stage == AlternationStage.CENTER:
            if direction is not None and direction == alternation.expected_direction:
                return Evaluation(value, alternation=alternation.start_hold(direction, now))
            return Evaluation(value)

        holding = alternation.stage.direction
        if direction == holding:
            if now - alternation.hold_started_at >= definition.hold_seconds:
                return Evaluation(
                    value,
                    alternation=alternation.complete_hold(holding),
                    counted=True,
                    side=holding,
                )
            return Evaluation(value)

        if is_center:
            return Evaluation(value, alternation=alternation.cancel_hold())

        return Evaluation(value)


# ═══════════════════════════════════════════════════════════════════════════════
# REGISTRY
# ═══════════════════════════════════════════════════════════════════════════════

STRATEGY_CLASSES: Dict[StrategyKind, type] = {
    StrategyKind.AXIS_DELTA: AxisDeltaStrategy,
    StrategyKind.ANGLE_THRESHOLD: AngleThresholdStrategy,
    StrategyKind.HOLD_ALTERNATE: HoldAlternateStrategy,
}


def create_strategy(
    kind: StrategyKind,
    min_visibility: float = settings.MIN_VISIBILITY
) -> MeasurementStrategy:
    """Instantiate the strategy for a definition's StrategyKind."""
    return STRATEGY_CLASSES[kind](min_visibility=min_visibility)
