#!/usr/bin/env python3
"""
Main entry point for fish-kinematics.

This module provides the command-line interface for tail tracking of recorded
videos and for speed and bout analysis of stored trajectories.
"""

import argparse
import logging
import os
import sys

from tqdm import tqdm

from .. import __version__
from ..config import load_params
from ..core.movement_analysis import BOUT_HEADER, MovementAnalyzer
from ..core.post_processing import TrajectorySmoother
from ..core.realtime_movement import RealtimeMovementAnalyzer
from ..core.tail_tracker import TailTracker
from ..data.csv_writer import TAIL_POINT_HEADER, CSVWriterThread
from ..data.trajectory_io import load_trajectory, save_bouts, save_speeds
from ..utils.geometry import Rotation, rotate_point, rotate_point_inverse
from ..utils.video_io import iter_grayscale_frames, probe_video

logger = logging.getLogger(__name__)


def setup_logging(log_level: object = logging.INFO) -> object:
    """Set up console logging for the application."""
    handlers = [logging.StreamHandler(sys.stdout)]

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
        force=True,
    )

    logger.debug(f"Python version: {sys.version}")
    logger.debug(f"Working directory: {os.getcwd()}")


def parse_arguments(argv=None) -> object:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="fish-kinematics",
        description="fish-kinematics - Tail tracking and swim bout analysis",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  fish-kinematics tail larva.avi --start 320 100 --end 320 180 --output tail.csv
  fish-kinematics bouts track.csv --smooth --plot speeds.png --output bouts.tsv
  fish-kinematics realtime track.csv --output bouts.tsv
        """,
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
        help="Set the logging level (default: INFO)",
    )
    parser.add_argument(
        "--config",
        type=str,
        help="JSON file with analysis parameters (default: built-in defaults)",
    )
    parser.add_argument(
        "--version", action="version", version=f"fish-kinematics {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    tail = subparsers.add_parser("tail", help="Track the tail bend in a video")
    tail.add_argument("video", help="Input video file")
    tail.add_argument(
        "--start", nargs=2, type=float, required=True, metavar=("X", "Y"),
        help="Tail base in video pixel coordinates",
    )
    tail.add_argument(
        "--end", nargs=2, type=float, required=True, metavar=("X", "Y"),
        help="Tail tip in video pixel coordinates",
    )
    tail.add_argument(
        "--rotate",
        choices=[r.value for r in Rotation],
        default=Rotation.NONE.value,
        help="Rotate frames before tracking so the tail points down (default: none)",
    )
    tail.add_argument("--output", required=True, help="Output CSV of tail points")

    bouts = subparsers.add_parser("bouts", help="Detect bouts in a stored trajectory")
    bouts.add_argument("trajectory", help="Trajectory CSV with X and Y columns")
    bouts.add_argument(
        "--smooth", action="store_true",
        help="Smooth the trajectory with SMOOTHING_WINDOW before computing speeds",
    )
    bouts.add_argument("--speeds", help="Also write the speed trace to this CSV")
    bouts.add_argument("--plot", help="Also save a speed trace figure to this file")
    bouts.add_argument("--output", required=True, help="Output TSV of bouts")

    realtime = subparsers.add_parser(
        "realtime", help="Replay a stored trajectory through the realtime analyzer"
    )
    realtime.add_argument("trajectory", help="Trajectory CSV with X and Y columns")
    realtime.add_argument("--output", required=True, help="Output TSV of bouts")

    return parser.parse_args(argv)


def run_tail(args, params):
    """Track the tail in every frame of a video and write the points."""
    info = probe_video(args.video)
    size = (info["width"], info["height"])
    rotation = Rotation(args.rotate)
    width, height = rotation.rotated_size(size)
    tail_start = rotate_point(args.start, size, rotation)
    tail_end = rotate_point(args.end, size, rotation)

    writer = CSVWriterThread(args.output, header=TAIL_POINT_HEADER)
    writer.start()
    n_frames = 0
    try:
        with TailTracker.from_params(width, height, tail_start, tail_end, params) as tracker:
            frames = iter_grayscale_frames(args.video, rotation)
            total = info["frame_count"] if info["frame_count"] > 0 else None
            for frame_index, frame in tqdm(frames, total=total, desc="Tracking", unit="frame"):
                for segment, point in enumerate(tracker.track_tail(frame)):
                    x, y = "", ""
                    if point.coordinate is not None:
                        x, y = rotate_point_inverse(point.coordinate, size, rotation)
                    writer.enqueue([frame_index, segment, point.angle, point.radius, x, y])
                n_frames += 1
    finally:
        writer.stop()
        writer.join()
    logger.info(f"Tracked {n_frames} frames, tail points written to {args.output}")


def run_bouts(args, params):
    """Compute speeds and detect bouts in a stored trajectory."""
    trajectory = load_trajectory(args.trajectory)
    frame_rate = params["FRAME_RATE"]
    if args.smooth:
        with TrajectorySmoother() as smoother:
            trajectory = smoother.smooth(trajectory, params["SMOOTHING_WINDOW"])

    with MovementAnalyzer(len(trajectory)) as analyzer:
        speeds = analyzer.compute_instant_speeds(trajectory, frame_rate)
        raw_speeds = speeds.copy()
        bouts = analyzer.detect_bouts(
            speeds,
            params["SPEED_THRESHOLD"],
            params["MIN_FRAMES_PER_BOUT"],
            params["MAX_FRAMES_AT_PEAK"],
            frame_rate,
        )

    save_bouts(args.output, bouts)
    if args.speeds:
        save_speeds(args.speeds, raw_speeds)
    if args.plot:
        from ..utils.plotting import plot_speed_trace

        plot_speed_trace(args.plot, raw_speeds, bouts, params["SPEED_THRESHOLD"], frame_rate)


def run_realtime(args, params):
    """Feed a stored trajectory one sample at a time through the realtime analyzer."""
    trajectory = load_trajectory(args.trajectory)
    analyzer = RealtimeMovementAnalyzer.from_params(params)

    writer = CSVWriterThread(args.output, header=BOUT_HEADER, delimiter="\t")
    writer.start()
    n_bouts = 0
    try:
        for point in trajectory:
            result = analyzer.process_next_point(point)
            if result.completed_bout is not None:
                writer.enqueue(result.completed_bout.to_row())
                n_bouts += 1
    finally:
        writer.stop()
        writer.join()
    logger.info(f"Realtime replay of {len(trajectory)} samples found {n_bouts} bouts")


COMMANDS = {
    "tail": run_tail,
    "bouts": run_bouts,
    "realtime": run_realtime,
}


def main(argv=None) -> object:
    """
    Application entry point.

    Parses command line arguments, sets up logging, loads parameters and
    runs the selected command. Exits with status 1 on invalid input.
    """
    args = parse_arguments(argv)

    log_level = getattr(logging, args.log_level.upper())
    setup_logging(log_level=log_level)

    try:
        params = load_params(args.config)
        COMMANDS[args.command](args, params)
    except (ValueError, OSError) as e:
        logger.error(f"{args.command} failed: {e}")
        sys.exit(1)
    return 0


if __name__ == "__main__":
    main()
