"""
POSTUREFIT Exercise Service - Session State

Mutable per-session counters plus the phase enums the detector owns.
The session controller holds the only SessionState instance and the frame
path is its single writer.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Any
from enum import Enum


class RepPhase(str, Enum):
    """Repetition state machine position."""
    READY = "ready"
    DOWN = "down"
    UP = "up"


class Direction(str, Enum):
    LEFT = "left"
    RIGHT = "right"

    @property
    def opposite(self) -> "Direction":
        return Direction.RIGHT if self is Direction.LEFT else Direction.LEFT


class AlternationStage(str, Enum):
    CENTER = "center"
    LEFT_HOLD = "left_hold"
    RIGHT_HOLD = "right_hold"

    @classmethod
    def holding(cls, direction: Direction) -> "AlternationStage":
        return cls.LEFT_HOLD if direction is Direction.LEFT else cls.RIGHT_HOLD

    @property
    def direction(self) -> Optional[Direction]:
        if self is AlternationStage.LEFT_HOLD:
            return Direction.LEFT
        if self is AlternationStage.RIGHT_HOLD:
            return Direction.RIGHT
        return None


@dataclass(frozen=True)
class AlternationState:
    """Hold-and-alternate progress. Replaced wholesale on every change."""
    stage: AlternationStage = AlternationStage.CENTER
    hold_started_at: Optional[float] = None
    expected_direction: Direction = Direction.LEFT
    left_count: int = 0
    right_count: int = 0

    @property
    def total(self) -> int:
        return self.left_count + self.right_count

    def start_hold(self, direction: Direction, now: float) -> "AlternationState":
        return replace(self, stage=AlternationStage.holding(direction), hold_started_at=now)

    def cancel_hold(self) -> "AlternationState":
        return replace(self, stage=AlternationStage.CENTER, hold_started_at=None)

    def shift_hold(self, seconds: float) -> "AlternationState":
        if self.hold_started_at is None:
            return self
        return replace(self, hold_started_at=self.hold_started_at + seconds)

    def complete_hold(self, direction: Direction) -> "AlternationState":
        return replace(
            self,
            stage=AlternationStage.CENTER,
            hold_started_at=None,
            expected_direction=direction.opposite,
            left_count=self.left_count + (1 if direction is Direction.LEFT else 0),
            right_count=self.right_count + (1 if direction is Direction.RIGHT else 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage.value,
            "expected_direction": self.expected_direction.value,
            "left_count": self.left_count,
            "right_count": self.right_count,
        }


@dataclass
class SessionState:
    """Set/rep bookkeeping for one session."""
    current_set: int = 1
    current_rep: int = 0
    reps_completed_per_set: List[int] = field(default_factory=list)
    last_count_timestamp: Optional[float] = None
    debounce_counter: int = 0
    phase: RepPhase = RepPhase.READY
    alternation: AlternationState = field(default_factory=AlternationState)

    @property
    def total_reps(self) -> int:
        return sum(self.reps_completed_per_set)

    def reset_for_next_set(self):
        """Clear per-set detector state. Completed sets are kept."""
        self.current_set += 1
        self.current_rep = 0
        self.debounce_counter = 0
        self.phase = RepPhase.READY
        self.alternation = AlternationState()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current_set": self.current_set,
            "current_rep": self.current_rep,
            "reps_completed_per_set": list(self.reps_completed_per_set),
            "phase": self.phase.value,
            "alternation": self.alternation.to_dict(),
        }
