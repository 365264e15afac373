"""
Realtime track smoothing, instant speed and bout detection.

Coordinates arrive one at a time from the acquisition loop. Each axis is
smoothed by its own causal boxcar FIR filter, the instant speed is taken
between consecutive smoothed positions and bouts are segmented online with the
same rules as the batch analyzer.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from .movement_analysis import Bout, BoutDetector

logger = logging.getLogger(__name__)


class BoxcarFIRFilter:
    """
    Causal moving average over the last `tap_count` inputs.

    All taps equal 1 / tap_count. The delay line starts zeroed, so the first
    tap_count - 1 outputs ramp up from 0.
    """

    def __init__(self, tap_count):
        if tap_count < 1:
            raise ValueError(f"tap_count must be >= 1, got {tap_count}")
        self.tap_count = int(tap_count)
        self.taps = np.full(self.tap_count, 1.0 / self.tap_count)
        self.delay_line = np.zeros(self.tap_count)

    def filter(self, value) -> float:
        """Push one input sample and return the filtered output."""
        self.delay_line[1:] = self.delay_line[:-1]
        self.delay_line[0] = value
        return float(np.dot(self.taps, self.delay_line))

    def reset(self):
        self.delay_line[:] = 0.0


@dataclass(frozen=True)
class PointAnalysis:
    """
    Result of processing one coordinate.

    Attributes:
        original (tuple): The raw coordinate
        smoothed (tuple): The FIR smoothed coordinate
        instant_speed (float): Speed in pixels per second
        completed_bout (Bout or None): Bout that completed at this sample
    """

    original: Tuple[float, float]
    smoothed: Tuple[float, float]
    instant_speed: float
    completed_bout: Optional[Bout] = None


class RealtimeMovementAnalyzer:
    """
    Smooths tracks, computes instant speeds and detects bouts one sample at a time.

    Args:
        frame_rate (int): Frames per second
        speed_threshold (float): Speeds at or below this count as rest
        min_frames_per_bout (int): Minimum number of moving frames
        max_frames_at_peak (int): Maximum repeated samples at peak speed
        tap_count (int): Length of the boxcar smoothing filters
    """

    def __init__(self, frame_rate, speed_threshold, min_frames_per_bout,
                 max_frames_at_peak, tap_count):
        self.frame_rate = frame_rate
        self.speed_threshold = float(speed_threshold)
        self._detector = BoutDetector(min_frames_per_bout, max_frames_at_peak, frame_rate)
        self._filter_x = BoxcarFIRFilter(tap_count)
        self._filter_y = BoxcarFIRFilter(tap_count)
        self.tap_count = self._filter_x.tap_count
        self.reset()
        logger.info(
            f"Realtime movement analyzer: {frame_rate} fps, threshold {speed_threshold}, "
            f"{tap_count} taps"
        )

    @classmethod
    def from_params(cls, params):
        """Create an analyzer from a parameter dictionary."""
        return cls(
            frame_rate=params.get("FRAME_RATE", 100),
            speed_threshold=params.get("SPEED_THRESHOLD", 5.0),
            min_frames_per_bout=params.get("MIN_FRAMES_PER_BOUT", 2),
            max_frames_at_peak=params.get("MAX_FRAMES_AT_PEAK", 1),
            tap_count=params.get("FIR_TAP_COUNT", 5),
        )

    def reset(self):
        """Zero the filter delay lines, last position and bout state."""
        self._filter_x.reset()
        self._filter_y.reset()
        self._detector.reset()
        self._last_x = 0.0
        self._last_y = 0.0
        self._frame_index = 0

    @property
    def frame_index(self) -> int:
        """Number of samples processed since the last reset."""
        return self._frame_index

    def process_next_point(self, coordinate) -> PointAnalysis:
        """
        Process the next raw coordinate.

        Args:
            coordinate (tuple): Raw (x, y) position of this frame

        Returns:
            PointAnalysis: Smoothed position, instant speed and any bout that
            completed at this sample
        """
        x, y = float(coordinate[0]), float(coordinate[1])
        sx = self._filter_x.filter(x)
        sy = self._filter_y.filter(y)

        if self._frame_index == 0:
            speed = 0.0
        else:
            speed = self.frame_rate * math.hypot(sx - self._last_x, sy - self._last_y)
        self._last_x = sx
        self._last_y = sy

        # Speeds from the filter ramp-up are not movement
        filled = self._frame_index >= self.tap_count
        clamped = speed if filled and speed > self.speed_threshold else 0.0
        bout = self._detector.push(self._frame_index, clamped)
        if bout is not None:
            logger.debug(f"Bout completed: {bout}")

        self._frame_index += 1
        return PointAnalysis((x, y), (sx, sy), speed, bout)
