"""
Loading stored trajectories and writing analysis results.
"""

import logging

import numpy as np
import pandas as pd

from ..core.movement_analysis import BOUT_HEADER

logger = logging.getLogger(__name__)


def load_trajectory(path) -> np.ndarray:
    """
    Load an (n, 2) trajectory from a CSV file.

    The file needs X and Y columns (any letter case). When a FrameID column
    is present, rows are ordered by it.

    Args:
        path (str): CSV file path

    Returns:
        np.ndarray: Float64 positions, one row per frame

    Raises:
        ValueError: If the X or Y column is missing
    """
    df = pd.read_csv(path)
    columns = {str(c).strip().lower(): c for c in df.columns}
    missing = [name for name in ("x", "y") if name not in columns]
    if missing:
        raise ValueError(
            f"Trajectory file {path} is missing column(s): {', '.join(m.upper() for m in missing)}"
        )
    if "frameid" in columns:
        df = df.sort_values(columns["frameid"], kind="stable")

    trajectory = df[[columns["x"], columns["y"]]].to_numpy(dtype=np.float64)
    n_missing = int(np.isnan(trajectory).any(axis=1).sum())
    if n_missing:
        logger.warning(f"{n_missing} frames in {path} have missing coordinates")
    logger.info(f"Loaded trajectory with {len(trajectory)} frames from {path}")
    return trajectory


def save_speeds(path, speeds):
    """Write a speed trace as a FrameID, Speed CSV."""
    speeds = np.asarray(speeds, dtype=np.float64)
    df = pd.DataFrame({"FrameID": np.arange(len(speeds)), "Speed": speeds})
    df.to_csv(path, index=False)
    logger.info(f"Saved {len(speeds)} speed samples to {path}")


def save_bouts(path, bouts):
    """Write bouts as a tab-delimited table with a header row."""
    df = pd.DataFrame([bout.to_row() for bout in bouts], columns=BOUT_HEADER)
    df.to_csv(path, sep="\t", index=False)
    logger.info(f"Saved {len(bouts)} bouts to {path}")
