"""
POSTUREFIT Exercise Service - Landmarks

Pose landmark model for the 33-point MediaPipe Pose layout and
validation of raw landmark payloads coming off the wire.
"""

import math
import numpy as np
from dataclasses import dataclass
from typing import Any, Optional, Sequence, Tuple
from enum import Enum

from .errors import InvalidFrame


POSE_LANDMARK_COUNT = 33


# ═══════════════════════════════════════════════════════════════════════════════
# ENUMS AND DATA CLASSES
# ═══════════════════════════════════════════════════════════════════════════════

class JointType(Enum):
    """Body joint indices in MediaPipe Pose order."""
    NOSE = 0
    LEFT_EYE_INNER = 1
    LEFT_EYE = 2
    LEFT_EYE_OUTER = 3
    RIGHT_EYE_INNER = 4
    RIGHT_EYE = 5
    RIGHT_EYE_OUTER = 6
    LEFT_EAR = 7
    RIGHT_EAR = 8
    MOUTH_LEFT = 9
    MOUTH_RIGHT = 10
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_WRIST = 15
    RIGHT_WRIST = 16
    LEFT_PINKY = 17
    RIGHT_PINKY = 18
    LEFT_INDEX = 19
    RIGHT_INDEX = 20
    LEFT_THUMB = 21
    RIGHT_THUMB = 22
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28
    LEFT_HEEL = 29
    RIGHT_HEEL = 30
    LEFT_FOOT_INDEX = 31
    RIGHT_FOOT_INDEX = 32


@dataclass(frozen=True)
class Landmark:
    """A single pose landmark with normalized coordinates and visibility."""
    x: float
    y: float
    z: float = 0.0
    visibility: float = 0.0

    def is_visible(self, min_visibility: float) -> bool:
        return self.visibility >= min_visibility

    def to_numpy(self) -> np.ndarray:
        """Image-plane position (x, y)."""
        return np.array([self.x, self.y], dtype=float)


@dataclass(frozen=True)
class PoseFrame:
    """One frame of landmarks from the pose-estimation service."""
    landmarks: Tuple[Landmark, ...]
    timestamp: float = 0.0

    def get(self, joint: JointType) -> Optional[Landmark]:
        index = joint.value
        if index >= len(self.landmarks):
            return None
        return self.landmarks[index]

    def visible(self, joint: JointType, min_visibility: float) -> Optional[Landmark]:
        """Landmark for ``joint`` if it clears the visibility threshold."""
        landmark = self.get(joint)
        if landmark is None or not landmark.is_visible(min_visibility):
            return None
        return landmark

    def all_visible(self, joints: Sequence[JointType], min_visibility: float) -> bool:
        return all(self.visible(joint, min_visibility) is not None for joint in joints)


# ═══════════════════════════════════════════════════════════════════════════════
# PARSING
# ═══════════════════════════════════════════════════════════════════════════════

def _number(value: Any, field_name: str, index: int) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidFrame(f"Landmark {index}: '{field_name}' is not numeric ({value!r})")
    if not math.isfinite(value):
        raise InvalidFrame(f"Landmark {index}: '{field_name}' is not finite")
    return float(value)


def _parse_landmark(raw: Any, index: int) -> Landmark:
    if isinstance(raw, dict):
        if "x" not in raw or "y" not in raw:
            raise InvalidFrame(f"Landmark {index}: missing x/y")
        return Landmark(
            x=_number(raw["x"], "x", index),
            y=_number(raw["y"], "y", index),
            z=_number(raw.get("z", 0.0), "z", index),
            visibility=_number(raw.get("visibility", 0.0), "visibility", index),
        )

    if isinstance(raw, (list, tuple)):
        if not 2 <= len(raw) <= 4:
            raise InvalidFrame(f"Landmark {index}: expected [x, y, z, visibility]")
        values = [_number(v, name, index) for v, name in zip(raw, ("x", "y", "z", "visibility"))]
        return Landmark(*values)

    raise InvalidFrame(f"Landmark {index}: unsupported type {type(raw).__name__}")


def parse_pose_frame(raw_landmarks: Any, timestamp: float = 0.0) -> PoseFrame:
    """
    Validate a raw landmark payload and build a PoseFrame.

    Args:
        raw_landmarks: Sequence of 33 landmarks, each either a dict
            ``{x, y, z, visibility}`` or a list ``[x, y, z, visibility]``.
            Missing visibility is treated as 0.
        timestamp: Frame timestamp in seconds

    Returns:
        PoseFrame

    Raises:
        InvalidFrame: wrong landmark count or non-numeric values
    """
    if not isinstance(raw_landmarks, (list, tuple)):
        raise InvalidFrame("Landmarks must be a list")

    if len(raw_landmarks) != POSE_LANDMARK_COUNT:
        raise InvalidFrame(
            f"Expected {POSE_LANDMARK_COUNT} landmarks, got {len(raw_landmarks)}"
        )

    landmarks = tuple(_parse_landmark(raw, i) for i, raw in enumerate(raw_landmarks))
    return PoseFrame(landmarks=landmarks, timestamp=timestamp)
