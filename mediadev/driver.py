"""Device drivers, their life-cycle state and the registry that holds them."""

from __future__ import annotations

import contextlib
import dataclasses
import threading
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from mediadev.availability import UnimplementedError

__all__ = [
    "DeviceType",
    "Priority",
    "State",
    "Info",
    "MediaProperties",
    "Driver",
    "VideoDriver",
    "AudioDriver",
    "Manager",
    "transition",
    "is_available",
    "wrap_adapter",
    "filter_video_recorder",
    "filter_audio_recorder",
    "filter_id",
    "filter_device_type",
    "filter_and",
    "filter_not",
    "get_manager",
]


class DeviceType(str, Enum):
    """Human readable kind of device."""

    CAMERA = "camera"
    MICROPHONE = "microphone"
    SCREEN = "screen"


class Priority(float, Enum):
    """Device selection priority level."""

    HIGH = 0.1
    NORMAL = 0.0
    LOW = -0.1


class State(str, Enum):
    """Life-cycle state of a driver."""

    CLOSED = "closed"
    OPENED = "opened"
    RUNNING = "running"


def _check_opened(current: State) -> None:
    if current != State.CLOSED:
        raise RuntimeError("invalid state: driver is already opened")


def _check_closed(current: State) -> None:
    return None


def _check_running(current: State) -> None:
    if current == State.CLOSED:
        raise RuntimeError("invalid state: driver is closed")
    if current == State.RUNNING:
        raise RuntimeError("invalid state: driver is already running")


_CHECKS = {
    State.OPENED: _check_opened,
    State.CLOSED: _check_closed,
    State.RUNNING: _check_running,
}


def transition(current: State, target: State, action: Callable[[], Any]) -> State:
    """Move from ``current`` to ``target`` after running ``action``.

    Raises RuntimeError if the move is not allowed; any error raised by
    ``action`` propagates and the caller keeps its current state.
    """
    _CHECKS[State(target)](State(current))
    action()
    return State(target)


@dataclass(frozen=True)
class Info:
    """Descriptive information about a registered device."""

    label: str = ""
    device_type: Optional[DeviceType] = None
    priority: float = Priority.NORMAL
    name: str = ""


@dataclass
class MediaProperties:
    """A set of media properties a device supports or is asked to use.

    Durations are in seconds.
    """

    device_id: str = ""
    width: int = 0
    height: int = 0
    frame_format: str = ""
    frame_rate: float = 0.0
    discard_frames_older_than: float = 0.0
    sample_rate: int = 0
    latency: float = 0.0
    channel_count: int = 0
    sample_size: int = 0
    is_float: bool = False
    is_interleaved: bool = False
    is_big_endian: bool = False


class Driver:
    """An adapter wrapped with an identifier, information and a state."""

    def __init__(self, adapter: Any, info: Info) -> None:
        self._adapter = adapter
        self._id = str(uuid.uuid4())
        self._info = info
        self._state = State.CLOSED

    @property
    def id(self) -> str:
        return self._id

    @property
    def info(self) -> Info:
        return self._info

    @property
    def status(self) -> State:
        return self._state

    def open(self) -> None:
        self._state = transition(self._state, State.OPENED, self._adapter.open)

    def close(self) -> None:
        self._state = transition(self._state, State.CLOSED, self._adapter.close)

    def properties(self) -> list[MediaProperties]:
        """Supported properties, tagged with this driver's id; empty while closed."""
        if self._state == State.CLOSED:
            return []
        return [
            dataclasses.replace(p, device_id=self._id)
            for p in self._adapter.properties() or []
        ]

    def is_available(self) -> bool:
        check = getattr(self._adapter, "is_available", None)
        if check is None:
            raise UnimplementedError()
        return check()

    def _record(self, record: Callable[[MediaProperties], Any], props: MediaProperties) -> Any:
        result = None

        def action() -> None:
            nonlocal result
            result = record(props)

        try:
            self._state = transition(self._state, State.RUNNING, action)
        except Exception:
            with contextlib.suppress(Exception):
                self.close()
            raise
        return result

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self._id!r}, info={self._info!r}, status={self._state.value!r})"


class VideoDriver(Driver):
    """A driver whose adapter records video."""

    def video_record(self, props: MediaProperties) -> Any:
        return self._record(self._adapter.video_record, props)


class AudioDriver(Driver):
    """A driver whose adapter records audio."""

    def audio_record(self, props: MediaProperties) -> Any:
        return self._record(self._adapter.audio_record, props)


def is_available(driver: Any) -> bool:
    """Ask ``driver`` whether its device is available."""
    check = getattr(driver, "is_available", None)
    if check is None:
        raise UnimplementedError()
    return check()


def wrap_adapter(adapter: Any, info: Info) -> Driver:
    """Wrap an adapter as a video or audio driver."""
    if callable(getattr(adapter, "video_record", None)):
        return VideoDriver(adapter, info)
    if callable(getattr(adapter, "audio_record", None)):
        return AudioDriver(adapter, info)
    raise TypeError("adapter has to be either VideoRecorder/AudioRecorder")


FilterFn = Callable[[Driver], bool]


def filter_video_recorder() -> FilterFn:
    return lambda d: isinstance(d, VideoDriver)


def filter_audio_recorder() -> FilterFn:
    return lambda d: isinstance(d, AudioDriver)


def filter_id(driver_id: str) -> FilterFn:
    return lambda d: d.id == driver_id


def filter_device_type(device_type: DeviceType) -> FilterFn:
    return lambda d: d.info.device_type == device_type


def filter_and(*args: FilterFn) -> FilterFn:
    return lambda d: all(f(d) for f in args)


def filter_not(flt: FilterFn) -> FilterFn:
    return lambda d: not flt(d)


class Manager:
    """Thread-safe registry of drivers."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._drivers: dict[str, Driver] = {}

    def register(self, adapter: Any, info: Info) -> Driver:
        """Wrap ``adapter`` and make it discoverable by :meth:`query`."""
        with self._lock:
            driver = wrap_adapter(adapter, info)
            self._drivers[driver.id] = driver
            return driver

    def query(self, flt: FilterFn) -> list[Driver]:
        with self._lock:
            return [d for d in self._drivers.values() if flt(d)]

    def delete(self, driver_id: str) -> None:
        with self._lock:
            self._drivers.pop(driver_id, None)


_manager = Manager()


def get_manager() -> Manager:
    """Return the process-wide manager."""
    return _manager