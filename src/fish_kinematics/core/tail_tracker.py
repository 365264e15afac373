"""
Fish tail tracking by in-frame background differencing.

The tracker keeps a background estimate of the region around the tail by
periodically closing the live frame, isolates the tail silhouette as the
thresholded absolute difference to that estimate, and measures the tail bend
along circles of increasing radius around the tail start point.

Geometry (tail endpoints, segment count, morphology radius) may be changed from
another thread while frames are being tracked. Every recomputation builds a new
immutable `TrackingState` and swaps that single reference under a lock, so a
tracking call sees either the old or the new geometry in full.
"""

import logging
import math
import threading
from dataclasses import dataclass

import numpy as np

from .background_models import ClosingBackgroundModel
from .morphology import (
    MASK_ON,
    StructuringElement,
    absolute_difference,
    closing_3x3,
    generate_disk_element,
    threshold,
)
from .raster import RasterBuffer, Region
from ..utils.geometry import euclidean_distance

logger = logging.getLogger(__name__)

# Angular sweep of every segment scan, 0.2 degree resolution
ANGLE_MIN = -90.0
ANGLE_MAX = 90.0
ANGLE_STEPS = 901


@dataclass(frozen=True)
class TailPoint:
    """
    Tail measurement of one segment in one frame.

    Attributes:
        angle (float): Bend angle in degrees, 0 points straight down, NaN if
            the segment could not be found
        radius (float): Distance of the segment circle from the tail start
        coordinate (tuple or None): (x, y) pixel of the selected hit
    """

    angle: float
    radius: float
    coordinate: tuple = None

    @property
    def is_determined(self) -> bool:
        return not math.isnan(self.angle)


@dataclass(frozen=True)
class ScanGeometry:
    """
    Precomputed angle-ordered pixel lists, one per tail segment.

    `angles[k]` and `points[k]` have equal length; consecutive entries of
    `points[k]` are distinct pixels and `angles[k]` is non-decreasing.
    """

    tail_start: tuple
    tail_end: tuple
    radii: np.ndarray
    angles: tuple
    points: tuple

    @property
    def n_segments(self) -> int:
        return len(self.radii)

    @property
    def tail_length(self) -> float:
        return euclidean_distance(self.tail_start, self.tail_end)

    @classmethod
    def compute(cls, tail_start, tail_end, n_segments):
        """
        Build the scan table for the given tail and segment count.

        Args:
            tail_start (tuple): (x, y) center of all segment circles
            tail_end (tuple): (x, y) tail tip, sets the outermost radius
            n_segments (int): Number of equally spaced segment circles

        Returns:
            ScanGeometry: Immutable scan table
        """
        x0, y0 = float(tail_start[0]), float(tail_start[1])
        length = euclidean_distance((x0, y0), tail_end)

        sweep = np.linspace(ANGLE_MIN, ANGLE_MAX, ANGLE_STEPS)
        sin_a = np.sin(np.deg2rad(sweep))
        cos_a = np.cos(np.deg2rad(sweep))

        radii = length * np.arange(1, n_segments + 1, dtype=np.float64) / n_segments
        angles = []
        points = []
        for radius in radii:
            xs = np.rint(x0 + radius * sin_a).astype(np.int64)
            ys = np.rint(y0 + radius * cos_a).astype(np.int64)
            pts = np.column_stack([xs, ys])

            # Adjacent angles frequently land on the same pixel
            keep = np.ones(len(pts), dtype=bool)
            keep[1:] = np.any(pts[1:] != pts[:-1], axis=1)

            seg_angles = sweep[keep]
            seg_points = pts[keep]
            seg_angles.setflags(write=False)
            seg_points.setflags(write=False)
            angles.append(seg_angles)
            points.append(seg_points)

        radii.setflags(write=False)
        return cls(
            tail_start=(x0, y0),
            tail_end=(float(tail_end[0]), float(tail_end[1])),
            radii=radii,
            angles=tuple(angles),
            points=tuple(points),
        )


@dataclass(frozen=True)
class TrackingRegions:
    """Inner (tracked) and outer (background) regions plus the closing element."""

    inner: Region
    outer: Region
    element: StructuringElement


@dataclass(frozen=True)
class TrackingState:
    """Scan geometry and regions that belong together, swapped as one reference."""

    geometry: ScanGeometry
    regions: TrackingRegions
    morph_radius: int

    @property
    def n_segments(self) -> int:
        return self.geometry.n_segments


class TailTracker:
    """
    Tracks the bend of a fish tail in grayscale frames.

    Only downward facing vertical tails are fully supported; other
    orientations are tracked with the downward sweep and a warning is logged.

    Args:
        image_width (int): Frame width in pixels
        image_height (int): Frame height in pixels
        tail_start (tuple): (x, y) of the tail base in image coordinates
        tail_end (tuple): (x, y) of the tail tip in image coordinates
        n_segments (int): Number of measured segments (>= 1)
        morph_radius (int): Radius of the background closing disk (>= 1)
        threshold (int): Foreground cutoff (0 to 255)
        frame_rate (int): Frames per second, sets the background rebuild period
    """

    def __init__(self, image_width, image_height, tail_start, tail_end,
                 n_segments=5, morph_radius=3, threshold=20, frame_rate=100):
        if image_width < 1 or image_height < 1:
            raise ValueError(f"Invalid image size {image_width}x{image_height}")
        self.image_width = int(image_width)
        self.image_height = int(image_height)

        self._validate_tail(tail_start, tail_end)
        _validate_positive("n_segments", n_segments)
        _validate_positive("morph_radius", morph_radius)
        _validate_positive("frame_rate", frame_rate)
        _validate_threshold(threshold)

        self._threshold = int(threshold)
        self._frame_rate = int(frame_rate)
        self.frame_count = 0

        # Guards the state reference and the background flag
        self._region_lock = threading.Lock()
        # Serializes recomputation, always taken before _region_lock
        self._geometry_lock = threading.Lock()

        geometry = ScanGeometry.compute(tail_start, tail_end, int(n_segments))
        self._state = self._build_state(geometry, int(morph_radius))
        self._last_regions = None

        w, h = self.image_width, self.image_height
        self._background = ClosingBackgroundModel(w, h, self._state.regions.element)
        self._frame = RasterBuffer(w, h)
        self._foreground = RasterBuffer(w, h)
        self._thresholded = RasterBuffer(w, h)
        self._mask = RasterBuffer(w, h)
        self._scratch = RasterBuffer(w, h)
        self._closed = False

        self._log_orientation(tail_start, tail_end)
        logger.info(
            f"Tail tracker initialized: {w}x{h}, {geometry.n_segments} segments, "
            f"tail length {geometry.tail_length:.1f}px, region {self._state.regions.inner}"
        )

    @classmethod
    def from_params(cls, image_width, image_height, tail_start, tail_end, params):
        """Create a tracker from a parameter dictionary."""
        return cls(
            image_width,
            image_height,
            tail_start,
            tail_end,
            n_segments=params.get("TAIL_SEGMENTS", 5),
            morph_radius=params.get("MORPH_RADIUS", 3),
            threshold=params.get("TAIL_THRESHOLD", 20),
            frame_rate=params.get("FRAME_RATE", 100),
        )

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------

    def _validate_tail(self, tail_start, tail_end):
        for name, point in (("tail_start", tail_start), ("tail_end", tail_end)):
            x, y = point
            if not (0 <= x < self.image_width and 0 <= y < self.image_height):
                raise ValueError(
                    f"{name} {tuple(point)} lies outside of the "
                    f"{self.image_width}x{self.image_height} image"
                )
        if euclidean_distance(tail_start, tail_end) < 1.0:
            raise ValueError("Tail start and end must be at least one pixel apart")

    def _compute_regions(self, geometry, element):
        x0 = int(round(geometry.tail_start[0]))
        y0 = int(round(geometry.tail_start[1]))
        # Lower half disc around the tail start, with room for the 3x3 closing
        # margins so every scan pixel lies where the mask is written
        reach = int(math.ceil(geometry.tail_length)) + 2
        inner = Region(x0 - reach, y0 - 1, 2 * reach + 1, reach + 2)
        inner = inner.clip(self.image_width, self.image_height)
        outer = inner.expand(2 * element.footprint).clip(self.image_width, self.image_height)
        return TrackingRegions(inner=inner, outer=outer, element=element)

    def _build_state(self, geometry, morph_radius, element=None):
        if element is None:
            element = generate_disk_element(morph_radius)
        regions = self._compute_regions(geometry, element)
        return TrackingState(geometry=geometry, regions=regions, morph_radius=morph_radius)

    def _swap_state(self, state):
        with self._region_lock:
            self._state = state
            self._background.invalidate()

    @staticmethod
    def orientation_of(tail_start, tail_end) -> str:
        """'vertical' if the endpoints are further apart in y than in x."""
        dx = abs(tail_end[0] - tail_start[0])
        dy = abs(tail_end[1] - tail_start[1])
        return "vertical" if dy >= dx else "horizontal"

    def _log_orientation(self, tail_start, tail_end):
        if self.orientation_of(tail_start, tail_end) != "vertical":
            logger.warning("Horizontal tails are not supported, tracking downward sweep")
        elif tail_end[1] < tail_start[1]:
            logger.warning("Upward facing tails are not supported, tracking downward sweep")

    def set_tail(self, tail_start, tail_end):
        """
        Move the tail endpoints.

        Recomputes scan geometry and tracked regions and invalidates the
        background. Raises ValueError without changing state if either point
        lies outside the image.
        """
        self._validate_tail(tail_start, tail_end)
        with self._geometry_lock:
            current = self.state
            geometry = ScanGeometry.compute(tail_start, tail_end, current.n_segments)
            state = self._build_state(geometry, current.morph_radius, current.regions.element)
            self._swap_state(state)

        self._log_orientation(tail_start, tail_end)
        logger.info(
            f"Tail moved to {geometry.tail_start} -> {geometry.tail_end}, "
            f"region {state.regions.inner}"
        )

    @property
    def state(self) -> TrackingState:
        """Current geometry and regions as one consistent snapshot."""
        with self._region_lock:
            return self._state

    @property
    def tail_start(self):
        return self.scan_geometry.tail_start

    @property
    def tail_end(self):
        return self.scan_geometry.tail_end

    @property
    def orientation(self) -> str:
        geometry = self.scan_geometry
        return self.orientation_of(geometry.tail_start, geometry.tail_end)

    @property
    def scan_geometry(self) -> ScanGeometry:
        return self.state.geometry

    @property
    def track_region(self) -> Region:
        return self.state.regions.inner

    @property
    def background_region(self) -> Region:
        return self.state.regions.outer

    @property
    def n_segments(self) -> int:
        return self.state.n_segments

    @n_segments.setter
    def n_segments(self, value):
        _validate_positive("n_segments", value)
        with self._geometry_lock:
            current = self.state
            geometry = ScanGeometry.compute(
                current.geometry.tail_start, current.geometry.tail_end, int(value)
            )
            self._swap_state(
                TrackingState(
                    geometry=geometry, regions=current.regions, morph_radius=current.morph_radius
                )
            )
        logger.info(f"Segment count set to {value}")

    @property
    def morph_radius(self) -> int:
        return self.state.morph_radius

    @morph_radius.setter
    def morph_radius(self, value):
        _validate_positive("morph_radius", value)
        with self._geometry_lock:
            current = self.state
            if int(value) == current.morph_radius:
                return
            state = self._build_state(current.geometry, int(value))
            self._swap_state(state)
        logger.info(f"Morphology radius set to {value}, background region {state.regions.outer}")

    @property
    def threshold(self) -> int:
        return self._threshold

    @threshold.setter
    def threshold(self, value):
        _validate_threshold(value)
        self._threshold = int(value)

    @property
    def frame_rate(self) -> int:
        return self._frame_rate

    @frame_rate.setter
    def frame_rate(self, value):
        _validate_positive("frame_rate", value)
        self._frame_rate = int(value)

    @property
    def background_valid(self) -> bool:
        with self._region_lock:
            return self._background.is_valid

    @property
    def background(self) -> np.ndarray:
        return self._background.background

    @property
    def mask(self) -> np.ndarray:
        """Cleaned binary tail mask of the last tracked frame."""
        return self._mask.view

    # ------------------------------------------------------------------
    # Tracking
    # ------------------------------------------------------------------

    def _load_frame(self, frame, region):
        if isinstance(frame, RasterBuffer):
            if frame.dtype != np.uint8 or frame.shape != (self.image_height, self.image_width):
                raise ValueError(f"Frame {frame!r} does not match the tracker image")
            self._frame.copy_from(frame, region)
            return
        frame = np.asarray(frame)
        if frame.ndim != 2 or frame.dtype != np.uint8:
            raise ValueError(
                f"Expected a 2D uint8 grayscale frame, got {frame.dtype} {frame.shape}"
            )
        if frame.shape != (self.image_height, self.image_width):
            raise ValueError(
                f"Frame shape {frame.shape} does not match tracker image "
                f"{(self.image_height, self.image_width)}"
            )
        self._frame.copy_from(frame, region)

    def track_tail(self, frame):
        """
        Measure the tail in one frame.

        Args:
            frame (np.ndarray or RasterBuffer): 8-bit grayscale frame

        Returns:
            list of TailPoint: One measurement per segment, innermost first
        """
        if self._closed:
            raise ValueError("Tail tracker has been closed")

        with self._region_lock:
            state = self._state
            rebuild = self._background.claim_rebuild(self.frame_count, self._frame_rate)
        regions = state.regions
        geometry = state.geometry

        self._load_frame(frame, regions.outer)

        if rebuild:
            logger.debug(f"Rebuilding background at frame {self.frame_count}")
            self._background.rebuild(self._frame, regions.outer, regions.element)

        if regions is not self._last_regions:
            # Drop mask pixels left over from a previous region
            self._mask.fill(0)
            self._last_regions = regions

        inner = regions.inner
        absolute_difference(self._background.buffer, self._frame, self._foreground, inner)
        threshold(self._foreground, self._thresholded, inner, self._threshold)
        closing_3x3(self._thresholded, self._mask, inner, self._scratch)

        mask = self._mask.view
        points = [
            self._measure_segment(mask, radius, angles, pts)
            for radius, angles, pts in zip(geometry.radii, geometry.angles, geometry.points)
        ]
        self.frame_count += 1
        return points

    def _measure_segment(self, mask, radius, angles, points):
        xs = points[:, 0]
        ys = points[:, 1]
        inside = np.flatnonzero(
            (xs >= 0) & (xs < self.image_width) & (ys >= 0) & (ys < self.image_height)
        )
        hits = inside[mask[ys[inside], xs[inside]] == MASK_ON]

        count = len(hits)
        if count == 0:
            return TailPoint(math.nan, float(radius), None)
        if count < 3:
            index = hits[0]
        else:
            # Median hit, lower one for even counts
            index = hits[(count - 1) // 2]
        return TailPoint(float(angles[index]), float(radius), (int(xs[index]), int(ys[index])))

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self):
        """Release all image buffers. Safe to call more than once."""
        if self._closed:
            return
        self._background.close()
        for buffer in (self._frame, self._foreground, self._thresholded, self._mask, self._scratch):
            buffer.close()
        self._closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


def _is_integral(value):
    if value is None or isinstance(value, bool):
        return False
    try:
        return math.isfinite(value) and int(value) == value
    except TypeError:
        return False


def _validate_positive(name, value):
    if not _is_integral(value) or value < 1:
        raise ValueError(f"{name} must be an integer >= 1, got {value!r}")


def _validate_threshold(value):
    if not _is_integral(value) or not 0 <= value <= 255:
        raise ValueError(f"threshold must be an integer from 0 to 255, got {value!r}")
