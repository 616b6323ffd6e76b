"""
Joint angle calculation.
"""

import pytest

from exercise_service.models import JointType, Landmark, calculate_angle, knee_angle, hip_angle


def _lm(x, y, visibility=0.9):
    return Landmark(x, y, 0.0, visibility)


def test_right_angle():
    angle = calculate_angle(_lm(0.0, 1.0), _lm(0.0, 0.0), _lm(1.0, 0.0))
    assert angle == pytest.approx(90.0)


def test_straight_line_is_180():
    angle = calculate_angle(_lm(0.5, 0.3), _lm(0.5, 0.5), _lm(0.5, 0.7))
    assert angle == pytest.approx(180.0)


def test_symmetric_in_outer_points():
    a, b, c = _lm(0.2, 0.3), _lm(0.5, 0.5), _lm(0.9, 0.4)
    assert calculate_angle(a, b, c) == pytest.approx(calculate_angle(c, b, a))


def test_unavailable_when_a_point_is_not_visible():
    assert calculate_angle(_lm(0.0, 1.0, 0.3), _lm(0.0, 0.0), _lm(1.0, 0.0), min_visibility=0.5) is None
    assert calculate_angle(None, _lm(0.0, 0.0), _lm(1.0, 0.0)) is None


def test_unavailable_for_zero_length_vector():
    assert calculate_angle(_lm(0.5, 0.5), _lm(0.5, 0.5), _lm(1.0, 0.0)) is None


def test_knee_angle_uses_the_more_bent_side(frames):
    frame = frames.build({
        JointType.LEFT_HIP: (0.45, 0.5),
        JointType.LEFT_KNEE: (0.45, 0.7),
        JointType.LEFT_ANKLE: (0.45, 0.9),
        JointType.RIGHT_HIP: (0.55, 0.5),
        JointType.RIGHT_KNEE: (0.55, 0.7),
        JointType.RIGHT_ANKLE: (0.75, 0.7),
    })

    assert knee_angle(frame) == pytest.approx(90.0)


def test_knee_angle_falls_back_to_the_visible_side(frames):
    frame = frames.build({
        JointType.LEFT_HIP: (0.45, 0.5),
        JointType.LEFT_KNEE: (0.45, 0.7),
        JointType.LEFT_ANKLE: (0.45, 0.9),
        JointType.RIGHT_KNEE: (0.55, 0.7, 0.1),
    })

    assert knee_angle(frame) == pytest.approx(180.0)


def test_hip_angle_unavailable_when_nothing_visible(frames):
    assert hip_angle(frames.hidden()) is None


def test_frame_factory_knee_angle(frames):
    assert knee_angle(frames.knees(145)) == pytest.approx(145.0)
