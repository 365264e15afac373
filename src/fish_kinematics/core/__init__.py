"""
Core analysis algorithms.

This package contains the raster and morphology primitives, the background
models, the tail tracker and the batch and realtime movement analyzers.
"""
from .movement_analysis import Bout, BoutDetector, MovementAnalyzer
from .post_processing import TrajectorySmoother, causal_boxcar, smooth_trajectory
from .raster import RasterBuffer, Region
from .realtime_movement import BoxcarFIRFilter, PointAnalysis, RealtimeMovementAnalyzer
from .tail_tracker import ScanGeometry, TailPoint, TailTracker, TrackingState

__all__ = [
    "Bout",
    "BoutDetector",
    "BoxcarFIRFilter",
    "MovementAnalyzer",
    "PointAnalysis",
    "RasterBuffer",
    "RealtimeMovementAnalyzer",
    "Region",
    "ScanGeometry",
    "TailPoint",
    "TailTracker",
    "TrackingState",
    "TrajectorySmoother",
    "causal_boxcar",
    "smooth_trajectory",
]
