"""Trajectory loading and result writing."""

from .csv_writer import TAIL_POINT_HEADER, CSVWriterThread
from .trajectory_io import load_trajectory, save_bouts, save_speeds

__all__ = [
    "CSVWriterThread",
    "TAIL_POINT_HEADER",
    "load_trajectory",
    "save_bouts",
    "save_speeds",
]
