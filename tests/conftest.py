"""
Shared fixtures for the POSTUREFIT test suite.

The session engine never reads the wall clock directly; tests drive it
with a ManualScheduler so calibration, rest and cue timers fire exactly
when the test advances time.
"""

import math
import pytest
from typing import Any, Callable, Dict, List, Optional, Tuple

from exercise_service.models.landmarks import JointType, Landmark, PoseFrame, POSE_LANDMARK_COUNT


# ═══════════════════════════════════════════════════════════════════════════════
# SCHEDULER
# ═══════════════════════════════════════════════════════════════════════════════

class ManualHandle:
    def __init__(self, when: float, order: int, callback: Callable[[], None]):
        self.when = when
        self.order = order
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """Deterministic stand-in for AsyncioScheduler."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self._handles: List[ManualHandle] = []
        self._order = 0

    def time(self) -> float:
        return self.now

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualHandle:
        self._order += 1
        handle = ManualHandle(self.now + delay, self._order, callback)
        self._handles.append(handle)
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for h in self._handles if not h.cancelled)

    def advance(self, seconds: float):
        """Move the clock forward, firing due callbacks in time order."""
        target = self.now + seconds
        while True:
            due = [h for h in self._handles if not h.cancelled and h.when <= target + 1e-9]
            if not due:
                break
            handle = min(due, key=lambda h: (h.when, h.order))
            self._handles.remove(handle)
            self.now = max(self.now, handle.when)
            handle.callback()
        self.now = target


# ═══════════════════════════════════════════════════════════════════════════════
# VOICE AND STORE
# ═══════════════════════════════════════════════════════════════════════════════

class RecordingVoice:
    """Voice service that records speak/cancel calls."""

    def __init__(self):
        self.calls: List[Tuple[str, Optional[str]]] = []

    def speak(self, text: str):
        self.calls.append(("speak", text))

    def cancel(self):
        self.calls.append(("cancel", None))

    @property
    def spoken(self) -> List[str]:
        return [text for action, text in self.calls if action == "speak"]


class InMemoryResultStore:
    def __init__(self):
        self.records: List[Dict[str, Any]] = []

    def save(self, record: Dict[str, Any]) -> Dict[str, Any]:
        self.records.insert(0, record)
        return record

    def list(self, limit: Optional[int] = None, exercise_id: Optional[str] = None) -> List[Dict[str, Any]]:
        records = [r for r in self.records if not exercise_id or r.get("exerciseId") == exercise_id]
        return records[:limit] if limit else records


# ═══════════════════════════════════════════════════════════════════════════════
# FRAMES
# ═══════════════════════════════════════════════════════════════════════════════

class FrameFactory:
    """
    Builds 33-landmark pose frames.

    Every landmark defaults to the image center with good visibility;
    ``points`` overrides individual joints with (x, y) or (x, y, visibility).
    """

    def __init__(self, visibility: float = 0.9):
        self.visibility = visibility

    def landmarks(self, points: Dict[JointType, tuple] = None, visibility: float = None) -> List[Landmark]:
        default_vis = self.visibility if visibility is None else visibility
        result = [Landmark(0.5, 0.5, 0.0, default_vis) for _ in range(POSE_LANDMARK_COUNT)]
        for joint, point in (points or {}).items():
            x, y = point[0], point[1]
            vis = point[2] if len(point) > 2 else default_vis
            result[joint.value] = Landmark(x, y, 0.0, vis)
        return result

    def build(self, points: Dict[JointType, tuple] = None, visibility: float = None, timestamp: float = 0.0) -> PoseFrame:
        return PoseFrame(landmarks=tuple(self.landmarks(points, visibility)), timestamp=timestamp)

    def raw(self, points: Dict[JointType, tuple] = None, visibility: float = None) -> List[Dict[str, float]]:
        """Wire format: list of {x, y, z, visibility} dicts."""
        return [
            {"x": lm.x, "y": lm.y, "z": lm.z, "visibility": lm.visibility}
            for lm in self.landmarks(points, visibility)
        ]

    def nose(self, x: float = 0.5, y: float = 0.5, **kwargs) -> PoseFrame:
        return self.build({JointType.NOSE: (x, y)}, **kwargs)

    def shoulders(self, y: float, left_x: float = 0.4, right_x: float = 0.6, **kwargs) -> PoseFrame:
        return self.build({
            JointType.LEFT_SHOULDER: (left_x, y),
            JointType.RIGHT_SHOULDER: (right_x, y),
        }, **kwargs)

    def knees(self, angle: float, **kwargs) -> PoseFrame:
        """Both legs bent to ``angle`` degrees at the knee."""
        return self.build({**_leg(angle, 0.45, "LEFT"), **_leg(angle, 0.55, "RIGHT")}, **kwargs)

    def hidden(self) -> PoseFrame:
        return self.build(visibility=0.1)


def _leg(angle: float, x: float, side: str) -> Dict[JointType, tuple]:
    rad = math.radians(angle)
    hip = (x, 0.5)
    knee = (x, 0.7)
    ankle = (x + 0.2 * math.sin(rad), 0.7 - 0.2 * math.cos(rad))
    return {
        JointType[f"{side}_HIP"]: hip,
        JointType[f"{side}_KNEE"]: knee,
        JointType[f"{side}_ANKLE"]: ankle,
    }


# ═══════════════════════════════════════════════════════════════════════════════
# FIXTURES
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def voice() -> RecordingVoice:
    return RecordingVoice()


@pytest.fixture
def result_store() -> InMemoryResultStore:
    return InMemoryResultStore()


@pytest.fixture
def frames() -> FrameFactory:
    return FrameFactory()
