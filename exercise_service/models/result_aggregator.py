"""
POSTUREFIT Exercise Service - Result Aggregator

Builds the single ExerciseResult for a finished session and hands it to
persistence and the completion callback.
"""

import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Any

from shared.utils import get_now_iso
from .exercise_library import ExerciseDefinition

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_accuracy(total_reps: int, target_sets: int, target_reps: int) -> int:
    """Completion percentage, capped at 100."""
    target = target_sets * target_reps
    if target <= 0:
        return 0
    return min(100, round_half_up(total_reps / target * 100))


@dataclass(frozen=True)
class ExerciseResult:
    """Immutable summary of one completed session."""
    exercise_id: str
    exercise_name: str
    completed_sets: int
    completed_reps: Tuple[int, ...]
    total_reps: int
    accuracy: int
    duration_seconds: int
    timestamp: str

    def to_dict(self) -> Dict[str, Any]:
        """Persistence record (camelCase keys)."""
        return {
            "exerciseId": self.exercise_id,
            "exerciseName": self.exercise_name,
            "completedSets": self.completed_sets,
            "completedReps": list(self.completed_reps),
            "totalReps": self.total_reps,
            "accuracy": self.accuracy,
            "durationSeconds": self.duration_seconds,
            "timestamp": self.timestamp,
        }


class ResultAggregator:
    """
    Finalizes a session exactly once.

    Repeated calls to ``finalize`` return the first result without
    touching the store or the callback again.
    """

    def __init__(
        self,
        definition: ExerciseDefinition,
        store: Optional[Any] = None,
        on_complete: Optional[Callable[[ExerciseResult], None]] = None
    ):
        self.definition = definition
        self.store = store
        self.on_complete = on_complete
        self._result: Optional[ExerciseResult] = None

    @property
    def result(self) -> Optional[ExerciseResult]:
        return self._result

    @property
    def finalized(self) -> bool:
        return self._result is not None

    def finalize(
        self,
        reps_per_set: Sequence[int],
        started_at: float,
        ended_at: float
    ) -> ExerciseResult:
        """
        Build and hand off the session result.

        Args:
            reps_per_set: Completed reps for each finished set
            started_at: Session start time (seconds, same clock as ended_at)
            ended_at: Session end time

        Returns:
            The session's ExerciseResult
        """
        if self._result is not None:
            logger.warning(f"Result for '{self.definition.id}' already produced, ignoring")
            return self._result

        completed: List[int] = list(reps_per_set)
        total = sum(completed)

        self._result = ExerciseResult(
            exercise_id=self.definition.id,
            exercise_name=self.definition.name,
            completed_sets=len(completed),
            completed_reps=tuple(completed),
            total_reps=total,
            accuracy=compute_accuracy(total, self.definition.target_sets, self.definition.target_reps),
            duration_seconds=round_half_up(max(0.0, ended_at - started_at)),
            timestamp=get_now_iso(),
        )
        logger.info(
            f"🏁 {self.definition.name}: {total} reps in {len(completed)} set(s), "
            f"accuracy {self._result.accuracy}%"
        )

        if self.store is not None:
            try:
                self.store.save(self._result.to_dict())
            except Exception as e:
                logger.error(f"❌ Failed to persist exercise result: {e}")

        if self.on_complete is not None:
            self.on_complete(self._result)

        return self._result
