"""
Analysis parameters: defaults, JSON loading and validation.

Parameters are kept in a flat dictionary with upper-case keys. Analyzers take
explicit keyword arguments and offer `from_params` to read this dictionary.
"""

import json
import logging
import os

logger = logging.getLogger(__name__)

DEFAULT_PARAMS = {
    "FRAME_RATE": 100,
    "TAIL_THRESHOLD": 20,
    "SPEED_THRESHOLD": 5.0,
    "MIN_FRAMES_PER_BOUT": 2,
    "MAX_FRAMES_AT_PEAK": 1,
    "MORPH_RADIUS": 3,
    "TAIL_SEGMENTS": 5,
    "FIR_TAP_COUNT": 5,
    "SMOOTHING_WINDOW": 5,
}

# key: (minimum, maximum or None)
_INTEGER_RANGES = {
    "FRAME_RATE": (1, None),
    "TAIL_THRESHOLD": (0, 255),
    "MIN_FRAMES_PER_BOUT": (1, None),
    "MAX_FRAMES_AT_PEAK": (0, None),
    "MORPH_RADIUS": (1, None),
    "TAIL_SEGMENTS": (1, None),
    "FIR_TAP_COUNT": (1, None),
    "SMOOTHING_WINDOW": (1, None),
}


def validate_params(params):
    """
    Check every known parameter against its allowed range.

    Args:
        params (dict): Parameter dictionary

    Raises:
        ValueError: On the first missing, mistyped or out-of-range value
    """
    for key, (low, high) in _INTEGER_RANGES.items():
        value = params.get(key)
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"{key} must be an integer, got {value!r}")
        if value < low or (high is not None and value > high):
            bound = f">= {low}" if high is None else f"between {low} and {high}"
            raise ValueError(f"{key} must be {bound}, got {value}")

    speed = params.get("SPEED_THRESHOLD")
    if isinstance(speed, bool) or not isinstance(speed, (int, float)) or speed < 0:
        raise ValueError(f"SPEED_THRESHOLD must be a number >= 0, got {speed!r}")


def load_params(path=None):
    """
    Load parameters from a JSON file on top of the defaults.

    Unknown keys are reported and ignored.

    Args:
        path (str, optional): JSON file; defaults only when None

    Returns:
        dict: Validated parameters

    Raises:
        OSError: If the file cannot be read
        ValueError: If the file is not a JSON object or a value is invalid
    """
    params = dict(DEFAULT_PARAMS)
    if path is None:
        return params

    if not os.path.isfile(path):
        raise OSError(f"Configuration file not found: {path}")
    with open(path, "r") as f:
        try:
            cfg = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {path}: {e}") from e
    if not isinstance(cfg, dict):
        raise ValueError(f"Configuration in {path} must be a JSON object")

    for key, value in cfg.items():
        name = str(key).upper()
        if name not in DEFAULT_PARAMS:
            logger.warning(f"Ignoring unknown parameter {key!r} in {path}")
            continue
        params[name] = value

    validate_params(params)
    logger.info(f"Configuration loaded from {path}")
    return params
