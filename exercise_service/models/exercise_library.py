"""
POSTUREFIT Exercise Service - Exercise Library

Immutable exercise definitions. Every threshold the detectors use lives
here, validated once when the definition is constructed.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Tuple, Any
from enum import Enum

from .errors import InvalidExerciseDefinition, ExerciseNotFound
from .landmarks import JointType


# ═══════════════════════════════════════════════════════════════════════════════
# ENUMS
# ═══════════════════════════════════════════════════════════════════════════════

class StrategyKind(str, Enum):
    """Closed set of measurement strategies."""
    AXIS_DELTA = "axis_delta"
    ANGLE_THRESHOLD = "angle_threshold"
    HOLD_ALTERNATE = "hold_alternate"


class CountingJoint(str, Enum):
    """Reference point for axis measurements."""
    NOSE = "nose"
    SHOULDER = "shoulder"
    HIP = "hip"
    KNEE = "knee"
    WRIST = "wrist"
    ELBOW = "elbow"
    NOSE_SHOULDER_GAP = "nose_shoulder_gap"  # shoulder-midpoint y minus nose y


class Axis(str, Enum):
    X = "x"
    Y = "y"


class AngleJoint(str, Enum):
    """Joint whose three-point angle drives angle-threshold detection."""
    KNEE = "knee"  # hip-knee-ankle
    HIP = "hip"    # shoulder-hip-knee


class DebounceReset(str, Enum):
    """When a non-matching frame clears the debounce counter."""
    ANY_MISMATCH = "any_mismatch"
    OPPOSITE_ZONE = "opposite_zone"


class Difficulty(str, Enum):
    EASY = "easy"
    NORMAL = "normal"
    HARD = "hard"


# Single joints or (left, right) pairs
JOINT_LANDMARKS: Dict[CountingJoint, Tuple[JointType, ...]] = {
    CountingJoint.NOSE: (JointType.NOSE,),
    CountingJoint.SHOULDER: (JointType.LEFT_SHOULDER, JointType.RIGHT_SHOULDER),
    CountingJoint.HIP: (JointType.LEFT_HIP, JointType.RIGHT_HIP),
    CountingJoint.KNEE: (JointType.LEFT_KNEE, JointType.RIGHT_KNEE),
    CountingJoint.WRIST: (JointType.LEFT_WRIST, JointType.RIGHT_WRIST),
    CountingJoint.ELBOW: (JointType.LEFT_ELBOW, JointType.RIGHT_ELBOW),
}


@dataclass(frozen=True)
class DifficultyPreset:
    """Adjustment applied on top of a definition's normal thresholds."""
    delta_scale: float
    angle_offset: float
    hold_scale: float


DIFFICULTY_PRESETS: Dict[Difficulty, DifficultyPreset] = {
    Difficulty.EASY: DifficultyPreset(delta_scale=0.7, angle_offset=5.0, hold_scale=0.67),
    Difficulty.NORMAL: DifficultyPreset(delta_scale=1.0, angle_offset=0.0, hold_scale=1.0),
    Difficulty.HARD: DifficultyPreset(delta_scale=1.3, angle_offset=-15.0, hold_scale=1.33),
}


# ═══════════════════════════════════════════════════════════════════════════════
# EXERCISE DEFINITION
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ExerciseDefinition:
    """Configuration for one countable exercise. Never mutated."""
    id: str
    name: str
    strategy: StrategyKind
    description: str = ""

    # Axis-delta
    counting_joint: CountingJoint = CountingJoint.NOSE
    counting_axis: Axis = Axis.Y
    mirror: bool = False
    delta_threshold: float = 0.05

    # Angle-threshold
    angle_joint: Optional[AngleJoint] = None
    enter_down_angle: Optional[float] = None
    exit_up_angle: Optional[float] = None

    # Hold-and-alternate
    side_threshold: float = 0.04
    center_threshold: float = 0.02
    hold_seconds: float = 3.0

    # Debounce / cooldown
    debounce_frames: int = 3
    cooldown_seconds: float = 0.3
    debounce_reset: DebounceReset = DebounceReset.ANY_MISMATCH

    # Prescription
    target_sets: int = 3
    target_reps: int = 10
    rest_seconds: int = 15

    # Any one of these joint groups must be fully visible
    visibility_requirements: Tuple[Tuple[JointType, ...], ...] = field(default=())
    visibility_hint: str = "Adjust the camera so your whole body is visible"

    def __post_init__(self):
        self.validate()

    def validate(self):
        """Raise InvalidExerciseDefinition on any inconsistent field."""
        errors: List[str] = []

        if not self.id:
            errors.append("id is required")
        if self.target_sets < 1:
            errors.append("target_sets must be >= 1")
        if self.target_reps < 1:
            errors.append("target_reps must be >= 1")
        if self.rest_seconds < 0:
            errors.append("rest_seconds must be >= 0")
        if self.debounce_frames < 1:
            errors.append("debounce_frames must be >= 1")
        if self.cooldown_seconds < 0:
            errors.append("cooldown_seconds must be >= 0")

        if self.strategy == StrategyKind.AXIS_DELTA:
            if self.delta_threshold <= 0:
                errors.append("delta_threshold must be > 0")
            if self.counting_joint == CountingJoint.NOSE_SHOULDER_GAP and self.counting_axis != Axis.Y:
                errors.append("nose_shoulder_gap is only measured on the y axis")

        elif self.strategy == StrategyKind.ANGLE_THRESHOLD:
            if self.angle_joint is None:
                errors.append("angle_joint is required for angle_threshold")
            if self.enter_down_angle is None or self.exit_up_angle is None:
                errors.append("enter_down_angle and exit_up_angle are required")
            elif not 0 < self.enter_down_angle < self.exit_up_angle <= 180:
                errors.append("angles must satisfy 0 < enter_down_angle < exit_up_angle <= 180")

        elif self.strategy == StrategyKind.HOLD_ALTERNATE:
            if not 0 < self.center_threshold < self.side_threshold:
                errors.append("thresholds must satisfy 0 < center_threshold < side_threshold")
            if self.hold_seconds <= 0:
                errors.append("hold_seconds must be > 0")
            if self.counting_joint == CountingJoint.NOSE_SHOULDER_GAP:
                errors.append("hold_alternate needs a positional counting_joint")

        if errors:
            raise InvalidExerciseDefinition(f"Exercise '{self.id}': " + "; ".join(errors))

    @property
    def target_total_reps(self) -> int:
        return self.target_sets * self.target_reps

    def required_joint_groups(self) -> Tuple[Tuple[JointType, ...], ...]:
        """Joint groups checked before a frame is sampled or evaluated."""
        if self.visibility_requirements:
            return self.visibility_requirements
        if self.counting_joint == CountingJoint.NOSE_SHOULDER_GAP:
            return ((JointType.NOSE, JointType.LEFT_SHOULDER), (JointType.NOSE, JointType.RIGHT_SHOULDER))
        return tuple((joint,) for joint in JOINT_LANDMARKS[self.counting_joint])

    def with_overrides(
        self,
        target_sets: Optional[int] = None,
        target_reps: Optional[int] = None,
        rest_seconds: Optional[int] = None
    ) -> "ExerciseDefinition":
        """Copy with a different prescription (re-validated)."""
        changes: Dict[str, Any] = {}
        if target_sets is not None:
            changes["target_sets"] = target_sets
        if target_reps is not None:
            changes["target_reps"] = target_reps
        if rest_seconds is not None:
            changes["rest_seconds"] = rest_seconds
        return replace(self, **changes) if changes else self

    def with_difficulty(self, difficulty: Difficulty) -> "ExerciseDefinition":
        """Copy with thresholds adjusted for the difficulty level."""
        preset = DIFFICULTY_PRESETS[difficulty]
        if difficulty == Difficulty.NORMAL:
            return self

        if self.strategy == StrategyKind.AXIS_DELTA:
            return replace(self, delta_threshold=round(self.delta_threshold * preset.delta_scale, 4))

        if self.strategy == StrategyKind.ANGLE_THRESHOLD:
            exit_up = min(180.0, self.exit_up_angle + preset.angle_offset)
            enter_down = min(exit_up - 1.0, self.enter_down_angle + preset.angle_offset)
            return replace(self, enter_down_angle=enter_down, exit_up_angle=exit_up)

        return replace(self, hold_seconds=round(self.hold_seconds * preset.hold_scale, 2))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict."""
        data = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "strategy": self.strategy.value,
            "target_sets": self.target_sets,
            "target_reps": self.target_reps,
            "rest_seconds": self.rest_seconds,
            "debounce_frames": self.debounce_frames,
            "cooldown_seconds": self.cooldown_seconds,
        }

        if self.strategy == StrategyKind.AXIS_DELTA:
            data.update({
                "counting_joint": self.counting_joint.value,
                "counting_axis": self.counting_axis.value,
                "mirror": self.mirror,
                "delta_threshold": self.delta_threshold,
            })
        elif self.strategy == StrategyKind.ANGLE_THRESHOLD:
            data.update({
                "angle_joint": self.angle_joint.value,
                "enter_down_angle": self.enter_down_angle,
                "exit_up_angle": self.exit_up_angle,
            })
        else:
            data.update({
                "counting_joint": self.counting_joint.value,
                "mirror": self.mirror,
                "side_threshold": self.side_threshold,
                "center_threshold": self.center_threshold,
                "hold_seconds": self.hold_seconds,
            })

        return data


# ═══════════════════════════════════════════════════════════════════════════════
# LIBRARY
# ═══════════════════════════════════════════════════════════════════════════════

_LEGS = (
    (JointType.LEFT_HIP, JointType.LEFT_KNEE, JointType.LEFT_ANKLE),
    (JointType.RIGHT_HIP, JointType.RIGHT_KNEE, JointType.RIGHT_ANKLE),
)

_TORSO_AND_THIGHS = (
    (JointType.LEFT_SHOULDER, JointType.LEFT_HIP, JointType.LEFT_KNEE),
    (JointType.RIGHT_SHOULDER, JointType.RIGHT_HIP, JointType.RIGHT_KNEE),
)

EXERCISES: List[ExerciseDefinition] = [
    ExerciseDefinition(
        id="chin-tuck",
        name="Chin Tuck",
        description="Draw your chin straight back to make a double chin",
        strategy=StrategyKind.AXIS_DELTA,
        counting_joint=CountingJoint.NOSE_SHOULDER_GAP,
        counting_axis=Axis.Y,
        cooldown_seconds=0.5,
        target_sets=3, target_reps=10, rest_seconds=15,
        visibility_hint="Keep your face and shoulders in view",
    ),
    ExerciseDefinition(
        id="neck-side-stretch",
        name="Neck Side Stretch",
        description="Tilt your head slowly to each side and hold",
        strategy=StrategyKind.HOLD_ALTERNATE,
        counting_joint=CountingJoint.NOSE,
        counting_axis=Axis.X,
        mirror=True,
        side_threshold=0.04,
        center_threshold=0.02,
        hold_seconds=3.0,
        cooldown_seconds=0.8,
        target_sets=2, target_reps=8, rest_seconds=10,
        visibility_hint="Keep your face in view",
    ),
    ExerciseDefinition(
        id="shoulder-squeeze",
        name="Shoulder Shrug",
        description="Raise your shoulders toward your ears, then lower them",
        strategy=StrategyKind.AXIS_DELTA,
        counting_joint=CountingJoint.SHOULDER,
        counting_axis=Axis.Y,
        cooldown_seconds=0.4,
        target_sets=3, target_reps=12, rest_seconds=15,
        visibility_hint="Keep your shoulders in view",
    ),
    ExerciseDefinition(
        id="shoulder-blade-squeeze",
        name="Shoulder Blade Squeeze",
        description="Pull both shoulder blades together",
        strategy=StrategyKind.AXIS_DELTA,
        counting_joint=CountingJoint.SHOULDER,
        counting_axis=Axis.X,
        cooldown_seconds=0.6,
        target_sets=3, target_reps=10, rest_seconds=15,
        visibility_hint="Keep your shoulders in view",
    ),
    ExerciseDefinition(
        id="squat",
        name="Squat",
        description="Bend your knees to sit back, then stand up",
        strategy=StrategyKind.ANGLE_THRESHOLD,
        angle_joint=AngleJoint.KNEE,
        enter_down_angle=160.0,
        exit_up_angle=168.0,
        debounce_frames=2,
        cooldown_seconds=0.5,
        target_sets=3, target_reps=10, rest_seconds=30,
        visibility_requirements=_LEGS,
        visibility_hint="Step back so your legs are fully visible",
    ),
    ExerciseDefinition(
        id="knee-lift",
        name="Knee Lift",
        description="Lift one knee toward your chest",
        strategy=StrategyKind.ANGLE_THRESHOLD,
        angle_joint=AngleJoint.HIP,
        enter_down_angle=140.0,
        exit_up_angle=160.0,
        debounce_frames=2,
        cooldown_seconds=0.4,
        target_sets=2, target_reps=10, rest_seconds=15,
        visibility_requirements=_TORSO_AND_THIGHS,
        visibility_hint="Step back so your hips and knees are visible",
    ),
    ExerciseDefinition(
        id="arm-raise",
        name="Arm Raise",
        description="Raise both arms slowly overhead",
        strategy=StrategyKind.AXIS_DELTA,
        counting_joint=CountingJoint.WRIST,
        counting_axis=Axis.Y,
        cooldown_seconds=0.5,
        target_sets=2, target_reps=10, rest_seconds=15,
        visibility_hint="Keep your hands in view",
    ),
    ExerciseDefinition(
        id="elbow-flex",
        name="Elbow Flex",
        description="Bend your elbows to bring your hands to your shoulders",
        strategy=StrategyKind.AXIS_DELTA,
        counting_joint=CountingJoint.WRIST,
        counting_axis=Axis.Y,
        cooldown_seconds=0.4,
        target_sets=3, target_reps=12, rest_seconds=15,
        visibility_hint="Keep your hands in view",
    ),
]

EXERCISE_LIBRARY: Dict[str, ExerciseDefinition] = {e.id: e for e in EXERCISES}


def get_exercise(
    exercise_id: str,
    difficulty: Difficulty = Difficulty.NORMAL
) -> ExerciseDefinition:
    """
    Look up an exercise definition.

    Raises:
        ExerciseNotFound: unknown exercise id
    """
    definition = EXERCISE_LIBRARY.get(exercise_id)
    if definition is None:
        raise ExerciseNotFound(f"Unknown exercise '{exercise_id}'")
    return definition.with_difficulty(difficulty)


def list_exercises() -> List[ExerciseDefinition]:
    return list(EXERCISES)
