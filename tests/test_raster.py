"""
Tests for raster buffers and regions.

Tests cover:
- Row stride alignment
- Bounds-checked pixel and region access
- Region arithmetic
- Idempotent release
"""

import numpy as np
import pytest

from fish_kinematics.core.raster import RasterBuffer, Region, aligned_stride


class TestRegion:
    """Test suite for Region arithmetic."""

    def test_edges_and_slices(self):
        region = Region(2, 3, 4, 5)
        assert region.right == 6
        assert region.bottom == 8
        assert region.slices == (slice(3, 8), slice(2, 6))

    def test_expand_and_shrink(self):
        region = Region(10, 10, 5, 5)
        assert region.expand(2) == Region(8, 8, 9, 9)
        assert region.shrink(1, 2, 3, 1) == Region(11, 12, 1, 2)

    def test_clip_to_image(self):
        """Regions hanging over the image border are cut back."""
        assert Region(-3, -2, 10, 10).clip(5, 6) == Region(0, 0, 5, 6)
        assert Region(8, 8, 4, 4).clip(5, 5).is_empty

    def test_contains(self):
        region = Region(0, 0, 3, 3)
        assert region.contains(2, 2)
        assert not region.contains(3, 0)


class TestRasterBuffer:
    """Test suite for RasterBuffer."""

    def test_stride_is_padded_to_four_bytes(self):
        assert aligned_stride(5, np.uint8) == 8
        assert aligned_stride(8, np.uint8) == 8
        assert aligned_stride(5, np.float32) == 5

        buffer = RasterBuffer(5, 3)
        assert buffer.stride == 8
        assert buffer.data.shape == (3, 8)
        assert buffer.view.shape == (3, 5)

    def test_unsupported_dtype_rejected(self):
        with pytest.raises(ValueError):
            RasterBuffer(4, 4, dtype=np.int16)

    def test_pixel_access_is_bounds_checked(self):
        buffer = RasterBuffer(5, 3)
        buffer[4, 2] = 7
        assert buffer[4, 2] == 7
        assert buffer.view[2, 4] == 7

        # Column 5 exists in the padded row but is not image data
        with pytest.raises(IndexError):
            buffer[5, 0]
        with pytest.raises(IndexError):
            buffer[0, 3] = 1
        with pytest.raises(IndexError):
            buffer[-1, 0]

    def test_region_access(self):
        buffer = RasterBuffer(6, 6)
        buffer[Region(1, 1, 2, 3)] = 9
        assert buffer.view.sum() == 9 * 6
        assert buffer[Region(1, 1, 2, 3)].shape == (3, 2)
        with pytest.raises(IndexError):
            buffer[Region(4, 4, 3, 1)]

    def test_copy_from_region_only(self):
        source = np.arange(16, dtype=np.uint8).reshape(4, 4)
        buffer = RasterBuffer(4, 4)
        buffer.copy_from(source, Region(1, 1, 2, 2))
        expected = np.zeros((4, 4), dtype=np.uint8)
        expected[1:3, 1:3] = source[1:3, 1:3]
        np.testing.assert_array_equal(buffer.view, expected)

    def test_copy_from_shape_mismatch(self):
        buffer = RasterBuffer(4, 4)
        with pytest.raises(ValueError):
            buffer.copy_from(np.zeros((3, 4), dtype=np.uint8))

    def test_from_array_float(self):
        buffer = RasterBuffer.from_array(np.full((2, 3), 1.5), np.float32)
        assert buffer.dtype == np.float32
        np.testing.assert_allclose(buffer.view, 1.5)

    def test_close_is_idempotent(self):
        """Released buffers refuse access, closing twice is harmless."""
        with RasterBuffer(4, 4) as buffer:
            buffer.fill(3)
        assert buffer.closed
        buffer.close()
        with pytest.raises(ValueError):
            buffer.view
