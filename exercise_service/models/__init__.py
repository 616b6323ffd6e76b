"""
POSTUREFIT Exercise Service Models

Real-time repetition detection and exercise session engine.
"""

from .errors import (
    ExerciseEngineError,
    SensorUnavailable,
    InvalidFrame,
    InvalidExerciseDefinition,
    ExerciseNotFound,
    SessionNotFound
)

from .landmarks import (
    JointType,
    Landmark,
    PoseFrame,
    parse_pose_frame
)

from .angle_calculator import (
    calculate_angle,
    knee_angle,
    hip_angle
)

from .exercise_library import (
    ExerciseDefinition,
    StrategyKind,
    CountingJoint,
    Axis,
    AngleJoint,
    DebounceReset,
    Difficulty,
    EXERCISE_LIBRARY,
    get_exercise,
    list_exercises
)

from .session_state import (
    RepPhase,
    Direction,
    AlternationStage,
    AlternationState,
    SessionState
)

from .calibration import (
    CalibrationEngine,
    CalibrationPhase,
    CalibrationResult
)

from .strategies import (
    Evaluation,
    MeasurementStrategy,
    AxisDeltaStrategy,
    AngleThresholdStrategy,
    HoldAlternateStrategy,
    create_strategy
)

from .rep_detector import (
    DetectionOutcome,
    RepetitionDetector
)

from .events import (
    EventBus,
    EventType,
    SessionEvent
)

from .feedback import (
    FeedbackEmitter,
    VoiceService,
    LoggingVoice,
    CallbackVoice
)

from .result_aggregator import (
    ExerciseResult,
    ResultAggregator,
    compute_accuracy
)

from .exercise_session import (
    ExerciseSessionController,
    ExerciseSessionHandler,
    SessionStatus,
    get_session_handler
)

__all__ = [
    # Errors
    "ExerciseEngineError",
    "SensorUnavailable",
    "InvalidFrame",
    "InvalidExerciseDefinition",
    "ExerciseNotFound",
    "SessionNotFound",
    # Landmarks
    "JointType",
    "Landmark",
    "PoseFrame",
    "parse_pose_frame",
    # Angles
    "calculate_angle",
    "knee_angle",
    "hip_angle",
    # Exercise Library
    "ExerciseDefinition",
    "StrategyKind",
    "CountingJoint",
    "Axis",
    "AngleJoint",
    "DebounceReset",
    "Difficulty",
    "EXERCISE_LIBRARY",
    "get_exercise",
    "list_exercises",
    # Session State
    "RepPhase",
    "Direction",
    "AlternationStage",
    "AlternationState",
    "SessionState",
    # Calibration
    "CalibrationEngine",
    "CalibrationPhase",
    "CalibrationResult",
    # Strategies
    "Evaluation",
    "MeasurementStrategy",
    "AxisDeltaStrategy",
    "AngleThresholdStrategy",
    "HoldAlternateStrategy",
    "create_strategy",
    # Detection
    "DetectionOutcome",
    "RepetitionDetector",
    # Events
    "EventBus",
    "EventType",
    "SessionEvent",
    # Feedback
    "FeedbackEmitter",
    "VoiceService",
    "LoggingVoice",
    "CallbackVoice",
    # Results
    "ExerciseResult",
    "ResultAggregator",
    "compute_accuracy",
    # Exercise Session
    "ExerciseSessionController",
    "ExerciseSessionHandler",
    "SessionStatus",
    "get_session_handler",
]
