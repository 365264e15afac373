"""
Background modeling for foreground isolation.

This module provides the periodic morphological-closing background used by the
tail tracker, plus running-average models for scenes with slow lighting drift.
"""

import logging

import cv2
import numpy as np

from .morphology import closing
from .raster import RasterBuffer, Region

logger = logging.getLogger(__name__)


class ClosingBackgroundModel:
    """
    Background estimate obtained by closing the live frame.

    Closing with a structuring element larger than the width of a dark, thin
    body removes that body from the frame, leaving an estimate of the static
    scene around it. The estimate is rebuilt periodically rather than every
    frame since closing with a large element is expensive.

    Args:
        width (int): Frame width
        height (int): Frame height
        element (StructuringElement): Neighborhood used for the closing
    """

    def __init__(self, width, height, element):
        self.element = element
        self.buffer = RasterBuffer(width, height)
        self._scratch = RasterBuffer(width, height)
        self._valid = False

    @property
    def is_valid(self) -> bool:
        return self._valid

    def invalidate(self):
        """Flag the estimate as stale; the next frame rebuilds it."""
        self._valid = False

    def needs_rebuild(self, frame_index, frame_rate) -> bool:
        """
        Whether the estimate has to be recomputed for this frame.

        Args:
            frame_index (int): Number of frames processed so far
            frame_rate (int): Frames per second, rebuilds happen once per second

        Returns:
            bool: True if invalid or on a rebuild frame
        """
        return not self._valid or frame_index % frame_rate == 0

    def claim_rebuild(self, frame_index, frame_rate) -> bool:
        """
        Check for a due rebuild and mark the estimate valid if so.

        The caller must follow a True result with `rebuild`. Marking valid
        before rebuilding keeps an `invalidate` that arrives during the rebuild.
        """
        due = self.needs_rebuild(frame_index, frame_rate)
        if due:
            self._valid = True
        return due

    def rebuild(self, frame: RasterBuffer, outer_region: Region, element=None):
        """
        Recompute the background inside `outer_region` from `frame`.

        The frame is first copied into the outer region so that samples the
        closing cannot reach (near image borders) hold the frame itself and
        produce no foreground.
        """
        if element is not None:
            self.element = element
        self.buffer.copy_from(frame, outer_region)
        closing(self.buffer, self.buffer, outer_region, self.element, self._scratch)

    @property
    def background(self) -> np.ndarray:
        return self.buffer.view

    def close(self):
        self.buffer.close()
        self._scratch.close()
        self._valid = False


class DynamicBackgroundModel:
    """
    Running-average background model.

    Each update blends the new frame into the estimate:
    background = (1 - fraction_update) * background + fraction_update * frame

    Args:
        initial (np.ndarray): Initial grayscale background image
        fraction_update (float): Weight of the current frame (0.0 to 1.0)
    """

    def __init__(self, initial, fraction_update=0.1):
        if not 0.0 <= fraction_update <= 1.0:
            raise ValueError(
                f"The update fraction has to lie between 0 and 1, got {fraction_update}"
            )
        initial = np.asarray(initial)
        if initial.ndim != 2:
            raise ValueError(f"Expected a 2D grayscale image, got shape {initial.shape}")

        self.fraction_update = float(fraction_update)
        self.height, self.width = initial.shape
        self._background = RasterBuffer.from_array(initial, np.float32)
        logger.info(
            f"Dynamic background initialized: {self.width}x{self.height}, "
            f"fraction_update={self.fraction_update}"
        )

    def _check_frame(self, frame):
        frame = np.asarray(frame)
        if frame.shape != (self.height, self.width):
            raise ValueError(
                "The supplied image must have the same dimensions as the background: "
                f"{frame.shape} vs {(self.height, self.width)}"
            )
        return frame

    def update(self, frame):
        """Blend a new frame into the background estimate."""
        frame = self._check_frame(frame)
        bg = self._background.view
        bg *= 1.0 - self.fraction_update
        bg += self.fraction_update * frame.astype(np.float32)

    @property
    def background_float(self) -> np.ndarray:
        return self._background.view

    @property
    def background(self) -> np.ndarray:
        """8-bit rendering of the current estimate."""
        return cv2.convertScaleAbs(self._background.view)

    def close(self):
        self._background.close()


class SelectiveUpdateBackgroundModel(DynamicBackgroundModel):
    """
    Running-average background that skips regions occupied by tracked animals.

    Excluded rectangles are overwritten with the current background in a cached
    copy of the frame before updating, which leaves the estimate unchanged
    there. The caller's frame is never modified.
    """

    def __init__(self, initial, fraction_update=0.1):
        super().__init__(initial, fraction_update)
        self._cache = RasterBuffer(self.width, self.height)

    def update(self, frame, exclude=None):
        """
        Blend a new frame into the background, leaving excluded regions out.

        Args:
            frame (np.ndarray): Current grayscale frame
            exclude (list of Region, optional): Rectangles not to update
        """
        if not exclude:
            super().update(frame)
            return

        frame = self._check_frame(frame)
        current = self.background
        self._cache.copy_from(frame)
        for region in exclude:
            if region is None:
                continue
            region = region.clip(self.width, self.height)
            if region.is_empty:
                continue
            self._cache[region] = current[region.slices]
        super().update(self._cache.view)

    def close(self):
        self._cache.close()
        super().close()
