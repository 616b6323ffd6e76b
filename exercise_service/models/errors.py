"""
POSTUREFIT Exercise Service - Errors

Only SensorUnavailable aborts a session. The rest are raised at the
edges (frame parsing, definition loading, lookups) and turned into
status by the session controller or the router.
"""


class ExerciseEngineError(Exception):
    """Base class for exercise engine errors."""


class SensorUnavailable(ExerciseEngineError):
    """The pose-estimation source failed to initialize."""


class InvalidFrame(ExerciseEngineError):
    """Malformed landmark data (wrong length or non-numeric values)."""


class InvalidExerciseDefinition(ExerciseEngineError):
    """An exercise definition failed validation at load time."""


class ExerciseNotFound(ExerciseEngineError):
    """No exercise with the requested id exists in the library."""


class SessionNotFound(ExerciseEngineError):
    """No active session with the requested id."""
