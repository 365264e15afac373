"""
Trajectory post-processing for stored position traces.

Smoothing here is non-causal: the whole trace is available, so a forward
boxcar pass is followed by a pass over the mirrored trace. The two group
delays cancel and the smoothed track stays aligned with the raw one.
"""

import logging
import math

import numpy as np
from scipy.signal import lfilter

logger = logging.getLogger(__name__)


def _border_size(window_size):
    return int(math.ceil(window_size / 2.0))


def _anchor(window_size):
    # ceil(W / 2) lies past the window for W = 1
    return min(_border_size(window_size), window_size - 1)


def _as_trajectory(trajectory):
    path = np.asarray(trajectory, dtype=np.float64)
    if path.ndim != 2 or path.shape[1] != 2:
        raise ValueError(f"Trajectory must have shape (n, 2), got {path.shape}")
    return path


def _validate_window(window_size):
    if window_size is None or int(window_size) < 1:
        raise ValueError(f"window_size must be >= 1, got {window_size}")
    return int(window_size)


class TrajectorySmoother:
    """
    Zero phase lag boxcar smoothing of (x, y) trajectories.

    Each channel is padded by replicating its end samples and filtered with a
    boxcar reaching min(ceil(W / 2), W - 1) samples ahead of the output
    sample. The result is mirrored end to end, filtered again and mirrored
    back, so the two leads cancel. Scratch buffers hold the padded
    trace and are kept across calls until the trajectory length or the window
    size changes.

    A missing (NaN) sample only spoils output frames within 2 * (W - 1) of it.

    Args:
        n_coordinates (int, optional): Pre-allocate for this trajectory length
        window_size (int, optional): Pre-allocate for this window size
    """

    def __init__(self, n_coordinates=None, window_size=None):
        self._padded = None
        self._forward = None
        self._n_coordinates = None
        self._window_size = None
        self._closed = False
        if n_coordinates is not None and window_size is not None:
            self._allocate(int(n_coordinates), _validate_window(window_size))

    def _allocate(self, n_coordinates, window_size):
        border = _border_size(window_size)
        size = n_coordinates + 2 * border
        self._padded = np.zeros((size, 2), dtype=np.float64)
        self._forward = np.zeros((n_coordinates, 2), dtype=np.float64)
        self._n_coordinates = n_coordinates
        self._window_size = window_size
        logger.debug(f"Smoother buffers allocated: {n_coordinates} samples, window {window_size}")

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def scratch_size(self):
        """Padded scratch length, or None before the first allocation."""
        return None if self._padded is None else self._padded.shape[0]

    def _boxcar_pass(self, src, dst):
        # dst[i] = mean(src[i - (W - 1 - a)] ... src[i + a]), borders replicated
        n = src.shape[0]
        window = self._window_size
        border = _border_size(window)
        anchor = _anchor(window)
        padded = self._padded
        padded[border:border + n] = src
        padded[:border] = src[0]
        padded[border + n:] = src[-1]

        # Direct window sums keep a missing sample local to its neighbourhood
        offset = border + anchor - window + 1
        dst[...] = padded[offset:offset + n]
        for k in range(1, window):
            dst += padded[offset + k:offset + k + n]
        dst /= window

    def smooth(self, trajectory, window_size) -> np.ndarray:
        """
        Smooth a trajectory without shifting it in time.

        Args:
            trajectory (array-like): (n, 2) positions, one row per frame
            window_size (int): Boxcar length in frames

        Returns:
            np.ndarray: Smoothed (n, 2) trajectory; the input is not modified
        """
        if self._closed:
            raise ValueError("Trajectory smoother has been closed")
        window_size = _validate_window(window_size)
        path = _as_trajectory(trajectory)
        n_coordinates = path.shape[0]
        if n_coordinates == 0:
            return path.copy()

        if n_coordinates != self._n_coordinates or window_size != self._window_size:
            self._allocate(n_coordinates, window_size)

        result = np.empty_like(path)
        self._boxcar_pass(path, self._forward)
        # Filtering the mirrored trace and writing it mirrored back
        self._boxcar_pass(self._forward[::-1], result[::-1])
        return result

    def close(self):
        if self._closed:
            return
        self._padded = None
        self._forward = None
        self._n_coordinates = None
        self._window_size = None
        self._closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


def smooth_trajectory(trajectory, window_size) -> np.ndarray:
    """Smooth one trajectory with a throwaway `TrajectorySmoother`."""
    with TrajectorySmoother() as smoother:
        return smoother.smooth(trajectory, window_size)


def causal_boxcar(trajectory, tap_count) -> np.ndarray:
    """
    Causal moving average of a trajectory, starting from a zeroed filter state.

    This is the batch counterpart of the realtime FIR smoothing, so the first
    tap_count - 1 samples ramp up from the origin.

    Args:
        trajectory (array-like): (n, 2) positions
        tap_count (int): Number of filter taps

    Returns:
        np.ndarray: Filtered (n, 2) trajectory
    """
    if tap_count < 1:
        raise ValueError(f"tap_count must be >= 1, got {tap_count}")
    path = _as_trajectory(trajectory)
    taps = np.full(int(tap_count), 1.0 / tap_count)
    return lfilter(taps, [1.0], path, axis=0)
