"""
Tests for geometry utility functions.

Tests cover:
- Point rotation matching OpenCV frame rotation
- Inverse rotation round trips
- Rotated frame sizes
"""

import numpy as np
import pytest

from fish_kinematics.utils.geometry import (
    Rotation,
    euclidean_distance,
    rotate_point,
    rotate_point_inverse,
)
from fish_kinematics.utils.video_io import rotate_frame


class TestRotatePoint:
    """Test suite for point rotation."""

    @pytest.mark.parametrize("rotation", list(Rotation))
    def test_matches_frame_rotation(self, rotation):
        """A marked pixel lands where the rotated frame puts it."""
        width, height = 7, 4
        frame = np.zeros((height, width), dtype=np.uint8)
        point = (5, 1)
        frame[point[1], point[0]] = 255

        rotated = rotate_frame(frame, rotation)
        x, y = rotate_point(point, (width, height), rotation)

        assert rotated.shape[::-1] == rotation.rotated_size((width, height))
        assert rotated[y, x] == 255
        assert rotated.sum() == 255

    @pytest.mark.parametrize("rotation", list(Rotation))
    def test_inverse_round_trip(self, rotation):
        size = (640, 480)
        for point in [(0, 0), (639, 479), (12.5, 300.25)]:
            rotated = rotate_point(point, size, rotation)
            assert rotate_point_inverse(rotated, size, rotation) == pytest.approx(point)

    def test_clockwise_example(self):
        assert rotate_point((10, 2), (100, 50), Rotation.CLOCK_90) == (47, 10)
        assert rotate_point((10, 2), (100, 50), Rotation.COUNTER_CLOCK_90) == (2, 89)

    def test_none_is_identity(self):
        assert rotate_point((3, 4), (10, 10), Rotation.NONE) == (3, 4)
        assert Rotation.NONE.rotated_size((10, 20)) == (10, 20)
        assert Rotation.CLOCK_90.rotated_size((10, 20)) == (20, 10)

    def test_rotation_from_cli_value(self):
        assert Rotation("cw90") is Rotation.CLOCK_90
        assert Rotation("ccw90") is Rotation.COUNTER_CLOCK_90


class TestEuclideanDistance:
    """Test suite for euclidean_distance."""

    def test_distance(self):
        assert euclidean_distance((0, 0), (3, 4)) == pytest.approx(5.0)
        assert euclidean_distance((1, 1), (1, 1)) == 0.0
