"""Errors that describe why a device cannot be used right now."""

from __future__ import annotations

__all__ = [
    "AvailabilityError",
    "UnimplementedError",
    "BusyError",
    "NoDeviceError",
    "is_error",
]


class AvailabilityError(Exception):
    """Base class for every device availability error."""


class UnimplementedError(AvailabilityError):
    """The driver cannot report whether its device is available."""

    def __init__(self, message: str = "not implemented") -> None:
        super().__init__(message)


class BusyError(AvailabilityError):
    """The device is held by someone else."""

    def __init__(self, message: str = "device or resource busy") -> None:
        super().__init__(message)


class NoDeviceError(AvailabilityError):
    """The device does not exist (any more)."""

    def __init__(self, message: str = "no such device") -> None:
        super().__init__(message)


def is_error(err: BaseException | None) -> bool:
    """Tell whether ``err`` is an availability error."""
    return isinstance(err, AvailabilityError)