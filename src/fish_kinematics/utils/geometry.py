"""
Utility functions for geometry operations on frame coordinates.
"""

import math
from enum import Enum


class Rotation(Enum):
    """Rotation applied to a frame, clockwise as seen on screen."""

    NONE = "none"
    CLOCK_90 = "cw90"
    CLOCK_180 = "180"
    COUNTER_CLOCK_90 = "ccw90"

    def rotated_size(self, size):
        """
        Size of a frame after this rotation.

        Args:
            size (tuple): (width, height) of the unrotated frame

        Returns:
            tuple: (width, height) of the rotated frame
        """
        width, height = size
        if self in (Rotation.CLOCK_90, Rotation.COUNTER_CLOCK_90):
            return height, width
        return width, height


def rotate_point(point, size, rotation: Rotation):
    """
    Map a pixel coordinate into a rotated frame.

    Coordinates are pixel indices, so a frame of width w spans 0 to w - 1. The
    mapping matches `cv2.rotate` for the same rotation.

    Args:
        point (tuple): (x, y) in the unrotated frame
        size (tuple): (width, height) of the unrotated frame
        rotation (Rotation): Rotation applied to the frame

    Returns:
        tuple: (x, y) in the rotated frame
    """
    x, y = point
    width, height = size
    if rotation == Rotation.NONE:
        return x, y
    if rotation == Rotation.CLOCK_90:
        return height - 1 - y, x
    if rotation == Rotation.CLOCK_180:
        return width - 1 - x, height - 1 - y
    return y, width - 1 - x


def rotate_point_inverse(point, size, rotation: Rotation):
    """
    Map a pixel coordinate of a rotated frame back into the unrotated frame.

    Args:
        point (tuple): (x, y) in the rotated frame
        size (tuple): (width, height) of the unrotated frame
        rotation (Rotation): Rotation that was applied to the frame

    Returns:
        tuple: (x, y) in the unrotated frame
    """
    x, y = point
    width, height = size
    if rotation == Rotation.NONE:
        return x, y
    if rotation == Rotation.CLOCK_90:
        return y, height - 1 - x
    if rotation == Rotation.CLOCK_180:
        return width - 1 - x, height - 1 - y
    return width - 1 - y, x


def euclidean_distance(p1, p2) -> float:
    """Distance between two (x, y) points."""
    return math.hypot(p2[0] - p1[0], p2[1] - p1[1])
