"""Camera helpers: read timeout, frame-rate enumeration and resolution choice."""

from __future__ import annotations

import errno as _errno
import math
import os
import re
import struct
from dataclasses import dataclass
from typing import Mapping, Optional

from mediadev.availability import AvailabilityError, BusyError, NoDeviceError

__all__ = [
    "LABEL_SEPARATOR",
    "MAX_EMPTY_FRAME_COUNT",
    "PRIORITIZED_DEVICE",
    "BUF_COUNT",
    "READ_TIMEOUT_ENV",
    "SUPPORTED_RESOLUTIONS",
    "FrameRate",
    "FrameSize",
    "read_timeout",
    "calc_framerate",
    "enum_framerate",
    "candidate_resolutions",
    "availability_from_errno",
]

# Separates labels of a device found at several locations on a host.
LABEL_SEPARATOR = ";"
MAX_EMPTY_FRAME_COUNT = 5
PRIORITIZED_DEVICE = "video0"
BUF_COUNT = 2
READ_TIMEOUT_ENV = "PION_MEDIADEVICES_CAMERA_READ_TIMEOUT"
_DEFAULT_READ_TIMEOUT = 5

SUPPORTED_RESOLUTIONS: tuple[tuple[int, int], ...] = (
    (320, 240),
    (640, 480),
    (768, 576),
    (800, 600),
    (1024, 768),
    (1280, 854),
    (1280, 960),
    (1280, 1024),
    (1400, 1050),
    (1600, 1200),
    (2048, 1536),
    (320, 200),
    (800, 480),
    (854, 480),
    (1024, 600),
    (1152, 768),
    (1280, 720),
    (1280, 768),
    (1366, 768),
    (1280, 800),
    (1440, 900),
    (1440, 960),
    (1680, 1050),
    (1920, 1080),
    (2048, 1080),
    (1920, 1200),
    (2560, 1600),
)


@dataclass(frozen=True)
class FrameRate:
    """A discrete (steps both zero) or stepwise frame interval range."""

    min_numerator: int = 0
    max_numerator: int = 0
    step_numerator: int = 0
    min_denominator: int = 0
    max_denominator: int = 0
    step_denominator: int = 0


@dataclass(frozen=True)
class FrameSize:
    """A discrete (a step of zero) or stepwise frame size range."""

    min_width: int = 0
    max_width: int = 0
    step_width: int = 0
    min_height: int = 0
    max_height: int = 0
    step_height: int = 0


_INT_RE = re.compile(r"[+-]?\d+")


def read_timeout(environ: Optional[Mapping[str, str]] = None) -> int:
    """Camera read timeout in seconds, from the environment or 5 by default."""
    env = os.environ if environ is None else environ
    value = env.get(READ_TIMEOUT_ENV)
    if value is not None and _INT_RE.fullmatch(value):
        seconds = int(value)
        if seconds > 0:
            return seconds
    return _DEFAULT_READ_TIMEOUT


def _to_float32(value: float) -> float:
    return struct.unpack("f", struct.pack("f", value))[0]


def calc_framerate(numerator: int, denominator: int) -> float:
    """Turn a frame interval fraction into frames per second, to 3 decimals."""
    if denominator == 0:
        raise ValueError("framerate denominator is zero")
    if numerator == 0:
        return math.inf
    fps = 1000.0 / (numerator / denominator)
    return _to_float32(math.floor(fps + 0.5) / 1000)


def _steps(start: int, stop: int, step: int) -> range:
    # A zero step in only one dimension would never advance; use its start alone.
    return range(start, stop + 1, step) if step else range(start, min(start, stop) + 1)


def enum_framerate(framerate: FrameRate) -> list[float]:
    """All frame rates a discrete or stepwise frame interval allows."""
    if framerate.step_numerator == 0 and framerate.step_denominator == 0:
        try:
            return [calc_framerate(framerate.max_numerator, framerate.max_denominator)]
        except ValueError:
            return []
    rates = []
    for n in _steps(framerate.min_numerator, framerate.max_numerator, framerate.step_numerator):
        for d in _steps(framerate.min_denominator, framerate.max_denominator, framerate.step_denominator):
            if d == 0:
                continue
            rates.append(calc_framerate(n, d))
    return rates


def candidate_resolutions(frame_size: FrameSize) -> list[tuple[int, int]]:
    """Resolutions to offer for a frame size range, as (width, height) pairs."""
    if frame_size.step_width == 0 or frame_size.step_height == 0:
        return [(frame_size.max_width, frame_size.max_height)]
    return [
        (width, height)
        for width, height in SUPPORTED_RESOLUTIONS
        if frame_size.min_width <= width <= frame_size.max_width
        and frame_size.min_height <= height <= frame_size.max_height
        and (width - frame_size.min_width) % frame_size.step_width == 0
        and (height - frame_size.min_height) % frame_size.step_height == 0
    ]


def availability_from_errno(errno: Optional[int]) -> bool:
    """Map the errno of a device probe to availability.

    Returns True for success (0 or None) and raises the matching
    availability error otherwise.
    """
    if not errno:
        return True
    if errno == _errno.EBUSY:
        raise BusyError()
    if errno in (_errno.ENODEV, _errno.ENOENT):
        raise NoDeviceError()
    raise AvailabilityError(os.strerror(errno))