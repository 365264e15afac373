"""
Instant speed computation and bout detection on stored position traces.

A bout is a run of consecutive above-threshold speed samples with a single
dominant peak. The same run-length logic is shared with the realtime analyzer
through BoutDetector, which consumes one speed sample at a time.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

logger = logging.getLogger(__name__)

BOUT_HEADER = ["Start", "Peak", "End", "Displacement", "PeakSpeed"]


@dataclass(frozen=True)
class Bout:
    """
    A detected movement bout.

    Attributes:
        start (int): Onset frame
        peak (int): Frame of the first occurrence of the peak speed
        end (int): Last above-threshold frame
        displacement (float): Total distance covered in pixels
        peak_speed (float): Peak speed in pixels per second
    """

    start: int
    peak: int
    end: int
    displacement: float
    peak_speed: float

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def to_row(self):
        return [self.start, self.peak, self.end, self.displacement, self.peak_speed]


def format_bout(bout: Bout, delimiter: str = "\t") -> str:
    """Render a bout as one delimited text line (start, peak, end, displacement, peak speed)."""
    return delimiter.join(str(value) for value in bout.to_row())


def _validate_bout_params(min_frames_per_bout, max_frames_at_peak, frame_rate):
    if min_frames_per_bout < 1:
        raise ValueError(f"min_frames_per_bout must be >= 1, got {min_frames_per_bout}")
    if max_frames_at_peak < 0:
        raise ValueError(f"max_frames_at_peak must be >= 0, got {max_frames_at_peak}")
    if frame_rate < 1:
        raise ValueError(f"frame_rate must be >= 1, got {frame_rate}")


class BoutDetector:
    """
    Incremental bout segmentation over thresholded speed samples.

    Samples must already be clamped: anything at or below the speed threshold
    is 0. A bout is reported on the first zero sample after its run, so no bout
    is reported before its final frame has been observed.

    Args:
        min_frames_per_bout (int): Minimum run length to accept
        max_frames_at_peak (int): Maximum number of repeated peak samples;
            longer plateaus indicate double or saturated peaks
        frame_rate (int): Frames per second, converts speed to displacement
    """

    def __init__(self, min_frames_per_bout, max_frames_at_peak, frame_rate):
        _validate_bout_params(min_frames_per_bout, max_frames_at_peak, frame_rate)
        self.min_frames_per_bout = int(min_frames_per_bout)
        self.max_frames_at_peak = int(max_frames_at_peak)
        self.frame_rate = frame_rate
        self.reset()

    def reset(self):
        """Drop any open run."""
        self._run_start = None
        self._length = 0
        self._peak_speed = 0.0
        self._peak_frame = None
        self._plateau = 0
        self._displacement = 0.0

    @property
    def in_bout(self) -> bool:
        return self._run_start is not None

    def push(self, frame: int, speed: float) -> Optional[Bout]:
        """
        Feed one clamped speed sample.

        Args:
            frame (int): Frame index of the sample
            speed (float): Speed, 0 when at or below threshold

        Returns:
            Bout or None: The bout whose run ended at the previous frame
        """
        if speed > 0:
            if self._run_start is None:
                self._run_start = frame
                self._peak_speed = speed
                self._peak_frame = frame
                self._plateau = 0
            elif speed > self._peak_speed:
                self._peak_speed = speed
                self._peak_frame = frame
                self._plateau = 0
            elif speed == self._peak_speed:
                self._plateau += 1
            self._length += 1
            self._displacement += speed / self.frame_rate
            return None

        if self._run_start is None:
            return None
        bout = self._finish(frame - 1)
        self.reset()
        return bout

    def _finish(self, end) -> Optional[Bout]:
        if self._length < self.min_frames_per_bout:
            return None
        if self._plateau > self.max_frames_at_peak:
            logger.debug(
                f"Rejecting run {self._run_start}-{end}: {self._plateau} samples at peak"
            )
            return None

        # Speed at a frame is the displacement from the frame before, so the
        # movement starts at the resting frame preceding the run. This also
        # keeps the peak off the onset frame when the run peaks immediately.
        start = max(self._run_start - 1, 0)
        return Bout(
            start=start,
            peak=int(self._peak_frame),
            end=int(end),
            displacement=float(self._displacement),
            peak_speed=float(self._peak_speed),
        )


class MovementAnalyzer:
    """
    Computes instant speeds and detects bouts in stored trajectories.

    Internal difference buffers are kept between calls and only reallocated
    when the trajectory length changes.

    Args:
        n_frames (int, optional): Pre-allocate buffers for this many frames
    """

    def __init__(self, n_frames=None):
        self._diff = None
        self._dist = None
        self._closed = False
        if n_frames is not None:
            self._allocate(int(n_frames))

    def _allocate(self, n_frames):
        self._diff = np.zeros((n_frames, 2), dtype=np.float64)
        self._dist = np.zeros(n_frames, dtype=np.float64)

    def compute_instant_speeds(self, trajectory, frame_rate, out=None) -> np.ndarray:
        """
        Instant speed of every frame of a trajectory.

        Args:
            trajectory (array-like): (n, 2) positions, one row per frame
            frame_rate (int): Frames per second
            out (np.ndarray, optional): Destination of length n

        Returns:
            np.ndarray: Speeds in pixels per second, element 0 is 0
        """
        if self._closed:
            raise ValueError("Movement analyzer has been closed")
        path = np.asarray(trajectory, dtype=np.float64)
        if path.ndim != 2 or path.shape[1] != 2:
            raise ValueError(f"Trajectory must have shape (n, 2), got {path.shape}")
        n_frames = path.shape[0]
        if out is not None and len(out) != n_frames:
            raise ValueError(
                f"Speed buffer length {len(out)} does not match trajectory length {n_frames}"
            )
        if frame_rate < 1:
            raise ValueError(f"frame_rate must be >= 1, got {frame_rate}")

        speeds = out if out is not None else np.zeros(n_frames, dtype=np.float64)
        if n_frames == 0:
            return speeds

        if self._diff is None or self._diff.shape[0] != n_frames:
            self._allocate(n_frames)

        self._diff[0] = 0.0
        np.subtract(path[1:], path[:-1], out=self._diff[1:])
        np.hypot(self._diff[:, 0], self._diff[:, 1], out=self._dist)
        speeds[:] = self._dist * frame_rate
        speeds[0] = 0
        return speeds

    def detect_bouts(self, speeds, speed_threshold, min_frames_per_bout,
                     max_frames_at_peak, frame_rate) -> List[Bout]:
        """
        Segment a speed trace into bouts.

        Samples at or below `speed_threshold` are set to 0 in place when
        `speeds` is a numpy array, so repeated calls on the same trace give the
        same result. A run still open at the end of the trace is incomplete
        and not reported.

        Args:
            speeds (array-like): Speed trace in pixels per second
            speed_threshold (float): Speeds at or below this count as rest
            min_frames_per_bout (int): Minimum number of moving frames
            max_frames_at_peak (int): Maximum repeated samples at peak speed
            frame_rate (int): Frames per second

        Returns:
            list of Bout: Accepted bouts in frame order
        """
        detector = BoutDetector(min_frames_per_bout, max_frames_at_peak, frame_rate)
        trace = np.asarray(speeds)
        if trace.ndim != 1:
            raise ValueError(f"Speed trace must be one dimensional, got shape {trace.shape}")
        trace[trace <= speed_threshold] = 0

        bouts = []
        for frame, speed in enumerate(trace):
            bout = detector.push(frame, speed)
            if bout is not None:
                bouts.append(bout)
        if detector.in_bout:
            logger.debug("Trace ends inside a movement run, last run not reported")

        logger.info(f"Detected {len(bouts)} bouts in {len(trace)} frames")
        return bouts

    def close(self):
        self._diff = None
        self._dist = None
        self._closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
