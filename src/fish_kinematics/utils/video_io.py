"""
Utility functions for reading grayscale frames from video files.
"""

import logging

import cv2

from .geometry import Rotation

logger = logging.getLogger(__name__)

_CV2_ROTATIONS = {
    Rotation.CLOCK_90: cv2.ROTATE_90_CLOCKWISE,
    Rotation.CLOCK_180: cv2.ROTATE_180,
    Rotation.COUNTER_CLOCK_90: cv2.ROTATE_90_COUNTERCLOCKWISE,
}


def rotate_frame(frame, rotation: Rotation):
    """Rotate a frame; Rotation.NONE returns the frame itself."""
    if rotation == Rotation.NONE:
        return frame
    return cv2.rotate(frame, _CV2_ROTATIONS[rotation])


def to_grayscale(frame):
    """Convert a BGR or BGRA frame to 8-bit grayscale; grayscale frames pass through."""
    if frame.ndim == 2:
        return frame
    if frame.shape[2] == 4:
        return cv2.cvtColor(frame, cv2.COLOR_BGRA2GRAY)
    return cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)


def probe_video(path):
    """
    Read basic properties of a video file.

    Args:
        path (str): Path to the video file

    Returns:
        dict: width, height, fps and frame_count as reported by OpenCV

    Raises:
        OSError: If the file cannot be opened
    """
    cap = cv2.VideoCapture(str(path))
    if not cap.isOpened():
        raise OSError(f"Cannot open video file: {path}")
    try:
        return {
            "width": int(cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
            "height": int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
            "fps": float(cap.get(cv2.CAP_PROP_FPS)),
            "frame_count": int(cap.get(cv2.CAP_PROP_FRAME_COUNT)),
        }
    finally:
        cap.release()


def iter_grayscale_frames(path, rotation: Rotation = Rotation.NONE):
    """
    Yield (frame_index, frame) for every frame of a video.

    Frames are 8-bit grayscale, rotated as requested. The capture is released
    when the generator finishes or is closed.

    Args:
        path (str): Path to the video file
        rotation (Rotation): Rotation applied to each frame

    Raises:
        OSError: If the file cannot be opened
    """
    cap = cv2.VideoCapture(str(path))
    if not cap.isOpened():
        raise OSError(f"Cannot open video file: {path}")
    logger.info(f"Reading frames from {path}")
    frame_index = 0
    try:
        while True:
            ok, frame = cap.read()
            if not ok:
                break
            yield frame_index, rotate_frame(to_grayscale(frame), rotation)
            frame_index += 1
    finally:
        cap.release()
        logger.info(f"Read {frame_index} frames from {path}")
