"""
Thresholding and morphology helpers operating on raster buffers.

Every operation works inside a caller supplied region and only writes to the
designated output buffers. Neighborhood operations shrink the region by the
structuring element footprint so that no sample outside valid data is read.
"""

import logging
import math

import cv2
import numpy as np

from .raster import RasterBuffer, Region

logger = logging.getLogger(__name__)

MASK_ON = 255


def check_call(func, *args, **kwargs):
    """
    Run an OpenCV primitive, logging instead of raising on failure.

    OpenCV status errors are rare and non-fatal for frame processing; callers
    keep their previous output when this returns None.

    Returns:
        The primitive's result, or None if OpenCV reported an error
    """
    try:
        return func(*args, **kwargs)
    except cv2.error as e:
        logger.error(f"OpenCV call {getattr(func, '__name__', func)} failed: {e}")
        return None


class StructuringElement:
    """
    Binary neighborhood plus anchor used for dilation and erosion.

    Args:
        mask (np.ndarray): 2D array, nonzero samples belong to the neighborhood
        anchor (tuple): (x, y) position of the anchor inside the mask
    """

    def __init__(self, mask, anchor):
        mask = np.asarray(mask)
        if mask.ndim != 2 or mask.size == 0:
            raise ValueError("Structuring element mask must be a non-empty 2D array")
        ax, ay = int(anchor[0]), int(anchor[1])
        if not (0 <= ax < mask.shape[1] and 0 <= ay < mask.shape[0]):
            raise ValueError(f"Anchor point ({ax}, {ay}) has to lie within the mask")

        self._kernel = (mask != 0).astype(np.uint8)
        self._anchor = (ax, ay)

    @property
    def kernel(self) -> np.ndarray:
        """Read-only view of the binary mask."""
        view = self._kernel.view()
        view.flags.writeable = False
        return view

    @property
    def anchor(self):
        return self._anchor

    @property
    def width(self) -> int:
        return self._kernel.shape[1]

    @property
    def height(self) -> int:
        return self._kernel.shape[0]

    @property
    def footprint(self) -> int:
        return max(self.width, self.height)

    def inner_region(self, region: Region) -> Region:
        """Sub-region of `region` whose neighborhoods lie fully inside it."""
        ax, ay = self._anchor
        return region.shrink(ax, ay, self.width - ax, self.height - ay)

    def __repr__(self):
        return f"StructuringElement({self.width}x{self.height}, anchor={self._anchor})"


def _padded_width(width):
    # Mask rows are padded with zero samples to a multiple of 4
    return int(math.ceil(width / 4.0) * 4)


def generate_disk_element(radius):
    """
    Generate a disk shaped structuring element anchored in its center.

    Args:
        radius (int): Maximum distance from the center pixel (>= 1)

    Returns:
        StructuringElement: Mask of height 2 * radius + 1
    """
    if radius < 1:
        raise ValueError(f"Disk radius must be at least 1, got {radius}")
    diameter = 1 + 2 * radius
    mask = np.zeros((diameter, _padded_width(diameter)), dtype=np.uint8)
    ys, xs = np.mgrid[0:diameter, 0:diameter]
    inside = np.hypot(xs - radius, ys - radius) <= radius
    mask[:, :diameter][inside] = 1
    return StructuringElement(mask, (radius, radius))


def generate_rect_element(width, height):
    """Generate a filled rectangle structuring element anchored in its center."""
    if width < 1:
        raise ValueError(f"Rectangle width must be at least 1, got {width}")
    if height < 1:
        raise ValueError(f"Rectangle height must be at least 1, got {height}")
    mask = np.zeros((height, _padded_width(width)), dtype=np.uint8)
    mask[:, :width] = 1
    return StructuringElement(mask, (width // 2, height // 2))


SQUARE_3X3 = StructuringElement(np.ones((3, 3), dtype=np.uint8), (1, 1))


def _apply_pair(first, second, image, output, region, element, scratch):
    inner = element.inner_region(region)
    if inner.is_empty:
        logger.debug(f"Region {region} too small for {element}, skipping")
        return inner

    src = image[region]
    stage1 = check_call(first, src, element._kernel, anchor=element.anchor)
    if stage1 is None:
        return inner
    if scratch is not None:
        scratch[region] = stage1
    stage2 = check_call(second, stage1, element._kernel, anchor=element.anchor)
    if stage2 is None:
        return inner

    local = Region(inner.x - region.x, inner.y - region.y, inner.width, inner.height)
    output[inner] = stage2[local.slices]
    return inner


def closing(image: RasterBuffer, closed: RasterBuffer, region: Region,
            element: StructuringElement, scratch: RasterBuffer = None) -> Region:
    """
    Closing (dilation followed by erosion) restricted to a region.

    Args:
        image: Input buffer
        closed: Output buffer, may be the same object as `image`
        region: Region to read from
        element: Neighborhood of the operation
        scratch: Optional buffer receiving the intermediate dilation

    Returns:
        Region: The inner sub-region that was written to `closed`
    """
    return _apply_pair(cv2.dilate, cv2.erode, image, closed, region, element, scratch)


def opening(image: RasterBuffer, opened: RasterBuffer, region: Region,
            element: StructuringElement, scratch: RasterBuffer = None) -> Region:
    """Opening (erosion followed by dilation) restricted to a region."""
    return _apply_pair(cv2.erode, cv2.dilate, image, opened, region, element, scratch)


def closing_3x3(image, closed, region, scratch=None):
    """3x3 closing, fills single pixel holes."""
    return closing(image, closed, region, SQUARE_3X3, scratch)


def opening_3x3(image, opened, region, scratch=None):
    """3x3 opening, removes single pixel speckles."""
    return opening(image, opened, region, SQUARE_3X3, scratch)


def threshold(image: RasterBuffer, mask: RasterBuffer, region: Region, cutoff):
    """
    Strict greater-than binarization inside a region.

    Samples <= cutoff become 0, samples > cutoff become MASK_ON.
    """
    result = check_call(cv2.threshold, image[region], int(cutoff), MASK_ON, cv2.THRESH_BINARY)
    if result is None:
        return
    mask[region] = result[1]


def absolute_difference(a: RasterBuffer, b: RasterBuffer, out: RasterBuffer, region: Region):
    """Per-sample |a - b| inside a region."""
    diff = check_call(cv2.absdiff, a[region], b[region])
    if diff is None:
        return
    out[region] = diff
