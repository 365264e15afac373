"""
Utility modules for fish-kinematics.

Coordinate rotation and video frame reading.
"""

from .geometry import Rotation, euclidean_distance, rotate_point, rotate_point_inverse
from .video_io import iter_grayscale_frames, probe_video, rotate_frame

__all__ = [
    "Rotation",
    "euclidean_distance",
    "iter_grayscale_frames",
    "probe_video",
    "rotate_frame",
    "rotate_point",
    "rotate_point_inverse",
]
