"""Synthetic video and audio drivers for testing."""

from __future__ import annotations

import math
import random
import threading
import time
from array import array
from dataclasses import dataclass
from typing import Iterator, Optional

from mediadev.driver import (
    DeviceType,
    Driver,
    Info,
    Manager,
    MediaProperties,
    get_manager,
)
from mediadev.frame import Format, SubsampleRatio, YCbCr

__all__ = ["VideoTest", "AudioTest", "AudioChunk", "register_test_drivers"]

_COLORS = (
    (235, 128, 128),
    (210, 16, 146),
    (170, 166, 16),
    (145, 54, 34),
    (107, 202, 222),
    (82, 90, 240),
    (41, 240, 110),
)


class VideoTest:
    """A camera that shows colour bars, a gray ramp and a noise patch."""

    def __init__(self) -> None:
        self._closed: Optional[threading.Event] = None

    def open(self) -> None:
        self._closed = threading.Event()

    def close(self) -> None:
        if self._closed is not None:
            self._closed.set()

    def video_record(self, props: MediaProperties) -> Iterator[YCbCr]:
        """Yield frames at ``props.frame_rate`` until the device is closed."""
        if props.frame_rate <= 0:
            raise ValueError("frame rate must be positive")
        if self._closed is None:
            raise RuntimeError("device is not open")
        return self._frames(props, self._closed)

    def _frames(self, props: MediaProperties, closed: threading.Event) -> Iterator[YCbCr]:
        width, height = props.width, props.height
        yi = width * height
        ci = yi // 2
        y_base = bytearray(yi)
        cb_base = bytearray(ci)
        cr_base = bytearray(ci)
        bar_end = height * 3 // 4
        ramp_end = width * 5 // 7

        for row in range(bar_end):
            ys, cs = width * row, width * row // 2
            for x in range(width):
                luma, cb, cr = _COLORS[x * 7 // width]
                y_base[ys + x] = luma * 75 // 100
                cb_base[cs + x // 2] = cb
                cr_base[cs + x // 2] = cr
        for row in range(bar_end, height):
            ys, cs = width * row, width * row // 2
            for x in range(ramp_end):
                y_base[ys + x] = x * 255 // ramp_end
            for x in range(width):
                cb_base[cs + x // 2] = 128
                cr_base[cs + x // 2] = 128

        rng = random.Random(0)
        period = 1.0 / props.frame_rate
        next_tick = time.monotonic() + period
        cb_plane, cr_plane = bytes(cb_base), bytes(cr_base)

        while not closed.is_set():
            if closed.wait(max(0.0, next_tick - time.monotonic())):
                return
            now = time.monotonic()
            next_tick = max(next_tick + period, now)

            yy = bytearray(y_base)
            for row in range(bar_end, height):
                ys = width * row
                for x in range(ramp_end, width):
                    yy[ys + x] = rng.randint(0, 1) * 255
            yield YCbCr(
                y=bytes(yy),
                y_stride=width,
                cb=cb_plane,
                cr=cr_plane,
                c_stride=width // 2,
                subsample_ratio=SubsampleRatio.RATIO_422,
                width=width,
                height=height,
            )

    def properties(self) -> list[MediaProperties]:
        return [MediaProperties(width=640, height=480, frame_format=Format.YUYV, frame_rate=30)]


@dataclass(frozen=True)
class AudioChunk:
    """Interleaved 32-bit float samples: ``data[i * channels + ch]``."""

    channels: int
    length: int
    sampling_rate: int
    data: tuple[float, ...]


_SINE = tuple(array("f", (math.sin(2 * math.pi * i / 100) * 0.25 for i in range(100))))
_DEFAULT_LATENCY = 0.02


class AudioTest:
    """A microphone that plays a steady sine tone."""

    def __init__(self) -> None:
        self._closed: Optional[threading.Event] = None

    def open(self) -> None:
        self._closed = threading.Event()

    def close(self) -> None:
        if self._closed is not None:
            self._closed.set()

    def audio_record(self, props: MediaProperties) -> Iterator[AudioChunk]:
        """Yield a chunk every ``props.latency`` seconds until the device is closed."""
        if self._closed is None:
            raise RuntimeError("device is not open")
        return self._chunks(props, self._closed)

    @staticmethod
    def _chunks(props: MediaProperties, closed: threading.Event) -> Iterator[AudioChunk]:
        latency = props.latency or _DEFAULT_LATENCY
        latency_ns = round(latency * 1_000_000_000)
        n_samples = props.sample_rate * latency_ns // 1_000_000_000
        channels = props.channel_count
        next_read = time.monotonic()
        phase = 0

        while not closed.is_set():
            time.sleep(max(0.0, next_read - time.monotonic()))
            next_read += latency

            data = []
            for _ in range(n_samples):
                phase = (phase + 1) % 100
                data.extend([_SINE[phase]] * channels)
            yield AudioChunk(
                channels=channels,
                length=n_samples,
                sampling_rate=props.sample_rate,
                data=tuple(data),
            )

    def properties(self) -> list[MediaProperties]:
        return [
            MediaProperties(sample_rate=48000, latency=_DEFAULT_LATENCY, channel_count=1),
            MediaProperties(sample_rate=48000, latency=_DEFAULT_LATENCY, channel_count=2),
        ]


def register_test_drivers(manager: Optional[Manager] = None) -> list[Driver]:
    """Register one VideoTest camera and one AudioTest microphone."""
    target = manager if manager is not None else get_manager()
    return [
        target.register(VideoTest(), Info(label="VideoTest", device_type=DeviceType.CAMERA)),
        target.register(AudioTest(), Info(label="AudioTest", device_type=DeviceType.MICROPHONE)),
    ]