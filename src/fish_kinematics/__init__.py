"""
fish-kinematics

Tail posture tracking and swim bout analysis for larval fish recordings.

Key Features:
- Tail bend angles from background differencing around a fixed tail base
- Instant speeds and bout segmentation of stored trajectories
- Realtime speed and bout detection with causal FIR smoothing
- Zero phase lag smoothing of stored trajectories
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
