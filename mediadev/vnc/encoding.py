"""Pixel data encodings a server may use in framebuffer updates.

The connection object passed to ``read`` must provide ``pixel_format``
(a :class:`PixelFormat`) and ``color_map`` (a sequence of 256 colours).
The rectangle must provide ``width`` and ``height``.
"""

from __future__ import annotations

import abc
import struct
import zlib
from dataclasses import dataclass, field
from typing import Any, BinaryIO, ClassVar, Optional

from mediadev.vnc.types import Color, read_exact

__all__ = ["Encoding", "CursorEncoding", "RawEncoding", "ZlibEncoding"]


class Encoding(abc.ABC):
    """A method of encoding pixel data sent by the server."""

    encoding_type: ClassVar[int]

    @abc.abstractmethod
    def read(self, conn: Any, rect: Any, stream: BinaryIO) -> "Encoding":
        """Read one rectangle of pixel data and return it as a new encoding."""


def _channel(raw: int, shift: int, maximum: int) -> int:
    return (raw >> shift) & maximum


def _decode_pixels(conn: Any, rect: Any, data: bytes) -> tuple[list[Color], list[int]]:
    pf = conn.pixel_format
    count = rect.width * rect.height
    order = ">" if pf.big_endian else "<"
    if pf.bpp == 8:
        values = list(data)
    elif pf.bpp == 16:
        values = [v for (v,) in struct.iter_unpack(order + "H", data)]
    elif pf.bpp == 32:
        values = [v for (v,) in struct.iter_unpack(order + "I", data)]
    else:
        values = [0] * count

    colors = []
    raw_pixels = []
    for raw in values:
        if pf.true_color:
            r = _channel(raw, pf.red_shift, pf.red_max)
            g = _channel(raw, pf.green_shift, pf.green_max)
            b = _channel(raw, pf.blue_shift, pf.blue_max)
            if pf.bpp == 16:
                b = ((b << 3) | (b >> 2)) & 0xFFFF
                g = ((g << 2) | (g >> 2)) & 0xFFFF
                r = ((r << 3) | (r >> 2)) & 0xFFFF
            color = Color(r, g, b)
        else:
            color = conn.color_map[raw]
        colors.append(color)
        raw_pixels.append((0xFF << 24 | color.b << 16 | color.g << 8 | color.r) & 0xFFFFFFFF)
    return colors, raw_pixels


def _pixel_bytes(conn: Any, rect: Any) -> int:
    return rect.width * rect.height * (conn.pixel_format.bpp // 8)


@dataclass
class CursorEncoding(Encoding):
    """The cursor pseudo-encoding; its data is read and discarded."""

    encoding_type: ClassVar[int] = -239

    def read(self, conn: Any, rect: Any, stream: BinaryIO) -> "CursorEncoding":
        read_exact(stream, rect.height * rect.width * conn.pixel_format.bpp // 8)
        read_exact(stream, ((rect.width + 7) // 8) * rect.height)
        return CursorEncoding()


@dataclass
class RawEncoding(Encoding):
    """Uncompressed pixel data (RFC 6143, section 7.7.1).

    ``raw_pixel`` holds one 0xAABBGGRR value per pixel, row-major.
    """

    colors: list[Color] = field(default_factory=list)
    raw_pixel: list[int] = field(default_factory=list)
    encoding_type: ClassVar[int] = 0

    def read(self, conn: Any, rect: Any, stream: BinaryIO) -> "RawEncoding":
        data = read_exact(stream, _pixel_bytes(conn, rect))
        colors, raw_pixels = _decode_pixels(conn, rect, data)
        return RawEncoding(colors=colors, raw_pixel=raw_pixels)


@dataclass
class ZlibEncoding(Encoding):
    """Raw pixel data compressed with one zlib stream kept across rectangles."""

    colors: list[Color] = field(default_factory=list)
    raw_pixel: list[int] = field(default_factory=list)
    encoding_type: ClassVar[int] = 6
    _inflater: Optional[Any] = field(default=None, init=False, repr=False, compare=False)
    _pending: bytearray = field(default_factory=bytearray, init=False, repr=False, compare=False)

    def read(self, conn: Any, rect: Any, stream: BinaryIO) -> "ZlibEncoding":
        (length,) = struct.unpack(">I", read_exact(stream, 4))
        compressed = read_exact(stream, length)

        if self._inflater is None:
            self._inflater = zlib.decompressobj()
            self._pending = bytearray()
        try:
            self._pending += self._inflater.decompress(compressed)
        except zlib.error as exc:
            raise ValueError(f"zlib: {exc}") from exc

        size = _pixel_bytes(conn, rect)
        if len(self._pending) < size:
            raise EOFError(f"zlib stream ended early: wanted {size} bytes, got {len(self._pending)}")
        data = bytes(self._pending[:size])
        del self._pending[:size]

        colors, raw_pixels = _decode_pixels(conn, rect, data)
        return ZlibEncoding(colors=colors, raw_pixel=raw_pixels)

    def close(self) -> None:
        """Drop the zlib stream so the next rectangle starts a new one."""
        self._inflater = None
        self._pending = bytearray()