"""
Raster buffers and regions for frame processing.

A RasterBuffer owns a padded 2D sample grid. Rows are padded so that each row
occupies a multiple of 4 bytes, which is the layout the morphology routines
expect. All pixel access goes through bounds-checked views.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import numpy as np

logger = logging.getLogger(__name__)

SUPPORTED_DTYPES = (np.dtype(np.uint8), np.dtype(np.float32))


@dataclass(frozen=True)
class Region:
    """Axis-aligned rectangle over a raster buffer. Never owns memory."""

    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    @property
    def slices(self):
        """Numpy (row, column) slices covering the region."""
        return (slice(self.y, self.bottom), slice(self.x, self.right))

    def contains(self, x, y) -> bool:
        return self.x <= x < self.right and self.y <= y < self.bottom

    def expand(self, amount: int) -> "Region":
        """Grow the region by `amount` pixels on every side."""
        return Region(
            self.x - amount,
            self.y - amount,
            self.width + 2 * amount,
            self.height + 2 * amount,
        )

    def shrink(self, left: int, top: int, right: int, bottom: int) -> "Region":
        return Region(
            self.x + left,
            self.y + top,
            self.width - left - right,
            self.height - top - bottom,
        )

    def clip(self, width: int, height: int) -> "Region":
        """Intersect the region with an image of the given extent."""
        x1 = max(self.x, 0)
        y1 = max(self.y, 0)
        x2 = min(self.right, width)
        y2 = min(self.bottom, height)
        return Region(x1, y1, max(x2 - x1, 0), max(y2 - y1, 0))


def aligned_stride(width: int, dtype) -> int:
    """Row length in samples such that one row spans a multiple of 4 bytes."""
    itemsize = np.dtype(dtype).itemsize
    return int(math.ceil(width * itemsize / 4.0) * 4) // itemsize


class RasterBuffer:
    """
    Owned 2D sample grid with explicit stride.

    The backing array has shape (height, stride); only the first `width`
    columns of every row carry image data.

    Args:
        width (int): Number of valid samples per row
        height (int): Number of rows
        dtype: numpy.uint8 or numpy.float32
    """

    def __init__(self, width, height, dtype=np.uint8):
        if width < 1 or height < 1:
            raise ValueError(f"Raster dimensions must be positive, got {width}x{height}")
        dtype = np.dtype(dtype)
        if dtype not in SUPPORTED_DTYPES:
            raise ValueError(f"Unsupported sample type: {dtype}")

        self.width = int(width)
        self.height = int(height)
        self.dtype = dtype
        self.stride = aligned_stride(self.width, dtype)
        self._data = np.zeros((self.height, self.stride), dtype=dtype)

    @classmethod
    def from_array(cls, array, dtype=None):
        """Create a buffer holding a copy of a 2D array."""
        array = np.asarray(array)
        if array.ndim != 2:
            raise ValueError(f"Expected a 2D array, got shape {array.shape}")
        buffer = cls(array.shape[1], array.shape[0], dtype or array.dtype)
        buffer.view[:] = array
        return buffer

    @property
    def closed(self) -> bool:
        return self._data is None

    @property
    def shape(self):
        return (self.height, self.width)

    @property
    def data(self) -> np.ndarray:
        """Full backing array including row padding."""
        if self._data is None:
            raise ValueError("Raster buffer has been released")
        return self._data

    @property
    def view(self) -> np.ndarray:
        """Writable view of the valid samples, shape (height, width)."""
        return self.data[:, : self.width]

    @property
    def full_region(self) -> Region:
        return Region(0, 0, self.width, self.height)

    def _check_point(self, x, y):
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(
                f"Pixel ({x}, {y}) lies outside of the {self.width}x{self.height} image"
            )

    def _check_region(self, region: Region):
        if region.x < 0 or region.y < 0 or region.right > self.width or region.bottom > self.height:
            raise IndexError(
                f"Region {region} exceeds the {self.width}x{self.height} image"
            )

    def __getitem__(self, key):
        if isinstance(key, Region):
            self._check_region(key)
            return self.data[key.slices]
        x, y = key
        self._check_point(x, y)
        return self.data[y, x]

    def __setitem__(self, key, value):
        if isinstance(key, Region):
            self._check_region(key)
            self.data[key.slices] = value
            return
        x, y = key
        self._check_point(x, y)
        self.data[y, x] = value

    def fill(self, value, region: Region = None):
        if region is None:
            self.view[:] = value
        else:
            self[region] = value

    def copy_from(self, source, region: Region = None):
        """
        Copy samples from another buffer or array of the same extent.

        Args:
            source (RasterBuffer or np.ndarray): Source samples
            region (Region, optional): Restrict the copy to this region
        """
        src = source.view if isinstance(source, RasterBuffer) else np.asarray(source)
        if src.shape != self.shape:
            raise ValueError(f"Shape mismatch: {src.shape} vs {self.shape}")
        if region is None:
            self.view[:] = src
        else:
            self._check_region(region)
            self.data[region.slices] = src[region.slices]

    def close(self):
        """Release the backing storage. Safe to call more than once."""
        self._data = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def __repr__(self):
        state = "closed" if self.closed else "open"
        return (
            f"RasterBuffer({self.width}x{self.height}, stride={self.stride}, "
            f"dtype={self.dtype.name}, {state})"
        )
