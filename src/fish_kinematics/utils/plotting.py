"""
Speed trace figures with detected bouts highlighted.
"""

import logging

import matplotlib

matplotlib.use("Agg")  # file output only
from matplotlib.backends.backend_agg import FigureCanvasAgg as FigureCanvas
from matplotlib.figure import Figure
import numpy as np

logger = logging.getLogger(__name__)


def plot_speed_trace(path, speeds, bouts, speed_threshold, frame_rate):
    """
    Save a figure of a speed trace with bouts shaded and peaks marked.

    Args:
        path (str): Output image path, format taken from the extension
        speeds (array-like): Speed trace in pixels per second
        bouts (list of Bout): Detected bouts
        speed_threshold (float): Threshold drawn as a horizontal line
        frame_rate (int): Frames per second, for the time axis
    """
    speeds = np.asarray(speeds, dtype=np.float64)
    t = np.arange(len(speeds)) / float(frame_rate)

    figure = Figure(figsize=(10, 4), dpi=100)
    FigureCanvas(figure)
    axis = figure.add_subplot(111)
    axis.plot(t, speeds, color="black", linewidth=0.8, label="Speed")
    axis.axhline(speed_threshold, color="tab:red", linestyle="--", linewidth=0.8, label="Threshold")
    for bout in bouts:
        axis.axvspan(bout.start / frame_rate, bout.end / frame_rate, color="tab:blue", alpha=0.2)
        axis.plot(bout.peak / frame_rate, bout.peak_speed, "v", color="tab:blue", markersize=4)

    axis.set_title(f"Speed trace ({len(bouts)} bouts)")
    axis.set_xlabel("Time (s)")
    axis.set_ylabel("Speed (px/s)")
    axis.legend(loc="upper right")
    figure.tight_layout()
    figure.savefig(path)
    logger.info(f"Saved speed plot to {path}")
