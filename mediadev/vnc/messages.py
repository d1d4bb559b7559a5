"""Messages a server sends to the client (RFC 6143, section 7.6).

The connection object passed to ``read`` must provide ``encs`` (the
encodings the client announced), ``pixel_format`` and a mutable
``color_map``.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Any, BinaryIO, ClassVar, Optional

from mediadev.vnc.encoding import Encoding, RawEncoding
from mediadev.vnc.types import Color, read_exact

__all__ = [
    "Rectangle",
    "FramebufferUpdateMessage",
    "SetColorMapEntriesMessage",
    "BellMessage",
    "ServerCutTextMessage",
]

_RECT_HEADER = struct.Struct(">HHHHi")
_COLOR = struct.Struct(">HHH")


@dataclass
class Rectangle:
    """A rectangle of pixel data and the encoding that carried it."""

    x: int = 0
    y: int = 0
    width: int = 0
    height: int = 0
    enc: Optional[Encoding] = None


@dataclass
class FramebufferUpdateMessage:
    """A sequence of rectangles to put into the framebuffer."""

    rectangles: list[Rectangle] = field(default_factory=list)
    message_type: ClassVar[int] = 0

    def read(self, conn: Any, stream: BinaryIO) -> "FramebufferUpdateMessage":
        read_exact(stream, 1)
        (count,) = struct.unpack(">H", read_exact(stream, 2))

        encodings = {enc.encoding_type: enc for enc in getattr(conn, "encs", None) or ()}
        # The raw encoding is always supported.
        encodings[RawEncoding.encoding_type] = RawEncoding()

        rectangles = []
        for _ in range(count):
            x, y, width, height, enc_type = _RECT_HEADER.unpack(read_exact(stream, _RECT_HEADER.size))
            enc = encodings.get(enc_type)
            if enc is None:
                raise ValueError(f"unsupported encoding type: {enc_type}")
            rect = Rectangle(x=x, y=y, width=width, height=height)
            rect.enc = enc.read(conn, rect, stream)
            rectangles.append(rect)
        return FramebufferUpdateMessage(rectangles)


@dataclass
class SetColorMapEntriesMessage:
    """New colour-map values; reading it also updates the connection's map."""

    first_color: int = 0
    colors: list[Color] = field(default_factory=list)
    message_type: ClassVar[int] = 1

    def read(self, conn: Any, stream: BinaryIO) -> "SetColorMapEntriesMessage":
        read_exact(stream, 1)
        first_color, count = struct.unpack(">HH", read_exact(stream, 4))
        colors = []
        for i in range(count):
            color = Color(*_COLOR.unpack(read_exact(stream, _COLOR.size)))
            conn.color_map[(first_color + i) & 0xFFFF] = color
            colors.append(color)
        return SetColorMapEntriesMessage(first_color=first_color, colors=colors)


@dataclass
class BellMessage:
    """The client should sound a bell."""

    message_type: ClassVar[int] = 2

    def read(self, conn: Any, stream: BinaryIO) -> "BellMessage":
        return BellMessage()


@dataclass
class ServerCutTextMessage:
    """The server has new Latin-1 text in its cut buffer."""

    text: str = ""
    message_type: ClassVar[int] = 3

    def read(self, conn: Any, stream: BinaryIO) -> "ServerCutTextMessage":
        read_exact(stream, 3)
        (length,) = struct.unpack(">I", read_exact(stream, 4))
        return ServerCutTextMessage(read_exact(stream, length).decode("latin-1"))