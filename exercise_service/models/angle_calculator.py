"""
POSTUREFIT Exercise Service - Angle Calculator

Joint angles from three landmarks in the image plane.
"""

import numpy as np
from typing import Optional, Tuple

from core.config import settings
from .landmarks import JointType, Landmark, PoseFrame


# (a, vertex, c) triples per body side
KNEE_TRIPLES: Tuple[Tuple[JointType, JointType, JointType], ...] = (
    (JointType.LEFT_HIP, JointType.LEFT_KNEE, JointType.LEFT_ANKLE),
    (JointType.RIGHT_HIP, JointType.RIGHT_KNEE, JointType.RIGHT_ANKLE),
)

HIP_TRIPLES: Tuple[Tuple[JointType, JointType, JointType], ...] = (
    (JointType.LEFT_SHOULDER, JointType.LEFT_HIP, JointType.LEFT_KNEE),
    (JointType.RIGHT_SHOULDER, JointType.RIGHT_HIP, JointType.RIGHT_KNEE),
)


def calculate_angle(
    a: Optional[Landmark],
    b: Optional[Landmark],
    c: Optional[Landmark],
    min_visibility: float = settings.MIN_VISIBILITY
) -> Optional[float]:
    """
    Calculate the angle at vertex b formed by points a-b-c.

    Args:
        a, b, c: Landmarks (b is the joint vertex)
        min_visibility: Minimum visibility for every point

    Returns:
        Angle in degrees (0-180), or None when any point is missing,
        below the visibility threshold, or a vector has zero length
    """
    for point in (a, b, c):
        if point is None or point.visibility < min_visibility:
            return None

    ba = a.to_numpy() - b.to_numpy()
    bc = c.to_numpy() - b.to_numpy()

    norm_ba = np.linalg.norm(ba)
    norm_bc = np.linalg.norm(bc)
    if norm_ba == 0 or norm_bc == 0:
        return None

    cosine_angle = np.clip(np.dot(ba, bc) / (norm_ba * norm_bc), -1.0, 1.0)
    return float(np.degrees(np.arccos(cosine_angle)))


def smallest_side_angle(
    frame: PoseFrame,
    triples: Tuple[Tuple[JointType, JointType, JointType], ...],
    min_visibility: float = settings.MIN_VISIBILITY
) -> Optional[float]:
    """Smaller of the per-side angles, or whichever side is available."""
    angles = [
        angle for angle in (
            calculate_angle(frame.get(a), frame.get(b), frame.get(c), min_visibility)
            for a, b, c in triples
        )
        if angle is not None
    ]
    return min(angles) if angles else None


def knee_angle(frame: PoseFrame, min_visibility: float = settings.MIN_VISIBILITY) -> Optional[float]:
    """Hip-knee-ankle angle; ~180 standing, smaller when squatting."""
    return smallest_side_angle(frame, KNEE_TRIPLES, min_visibility)


def hip_angle(frame: PoseFrame, min_visibility: float = settings.MIN_VISIBILITY) -> Optional[float]:
    """Shoulder-hip-knee angle; ~180 standing, smaller when the knee is lifted."""
    return smallest_side_angle(frame, HIP_TRIPLES, min_visibility)
