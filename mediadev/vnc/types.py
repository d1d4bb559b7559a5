"""Basic RFB protocol types: colours, pointer buttons and pixel formats."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntFlag
from typing import BinaryIO

__all__ = [
    "Color",
    "ButtonMask",
    "PixelFormat",
    "read_exact",
    "read_pixel_format",
    "write_pixel_format",
]


@dataclass(frozen=True)
class Color:
    """A single colour-map entry, 16 bits per channel."""

    r: int = 0
    g: int = 0
    b: int = 0


class ButtonMask(IntFlag):
    """Pointer buttons; a set bit means the button is pressed."""

    LEFT = 1 << 0
    MIDDLE = 1 << 1
    RIGHT = 1 << 2
    BUTTON4 = 1 << 3
    BUTTON5 = 1 << 4
    BUTTON6 = 1 << 5
    BUTTON7 = 1 << 6
    BUTTON8 = 1 << 7


@dataclass(frozen=True)
class PixelFormat:
    """How a pixel is laid out on the wire (RFC 6143, section 7.4)."""

    bpp: int = 0
    depth: int = 0
    big_endian: bool = False
    true_color: bool = False
    red_max: int = 0
    green_max: int = 0
    blue_max: int = 0
    red_shift: int = 0
    green_shift: int = 0
    blue_shift: int = 0


_PIXEL_FORMAT = struct.Struct(">BBBBHHHBBB3x")


def read_exact(stream: BinaryIO, size: int) -> bytes:
    """Read exactly ``size`` bytes from ``stream``; raise EOFError if it ends early."""
    if size < 0:
        raise ValueError(f"negative read size: {size}")
    data = bytearray()
    while len(data) < size:
        chunk = stream.read(size - len(data))
        if not chunk:
            raise EOFError(f"unexpected end of stream: wanted {size} bytes, got {len(data)}")
        data += chunk
    return bytes(data)


def read_pixel_format(stream: BinaryIO) -> PixelFormat:
    """Read a 16-byte pixel format from ``stream``.

    Colour maxima and shifts are only taken when the true-colour flag is set.
    """
    (bpp, depth, big_endian, true_color, red_max, green_max, blue_max,
     red_shift, green_shift, blue_shift) = _PIXEL_FORMAT.unpack(read_exact(stream, 16))
    if not true_color:
        return PixelFormat(bpp=bpp, depth=depth, big_endian=big_endian != 0)
    return PixelFormat(
        bpp=bpp,
        depth=depth,
        big_endian=big_endian != 0,
        true_color=True,
        red_max=red_max,
        green_max=green_max,
        blue_max=blue_max,
        red_shift=red_shift,
        green_shift=green_shift,
        blue_shift=blue_shift,
    )


def write_pixel_format(fmt: PixelFormat) -> bytes:
    """Encode ``fmt`` as the 16 bytes sent on the wire, zero padded."""
    if fmt.true_color:
        return _PIXEL_FORMAT.pack(
            fmt.bpp, fmt.depth, int(fmt.big_endian), 1,
            fmt.red_max, fmt.green_max, fmt.blue_max,
            fmt.red_shift, fmt.green_shift, fmt.blue_shift,
        )
    return _PIXEL_FORMAT.pack(fmt.bpp, fmt.depth, int(fmt.big_endian), 0, 0, 0, 0, 0, 0, 0)