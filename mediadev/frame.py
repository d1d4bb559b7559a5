"""Decoders that turn raw camera frames into images."""

from __future__ import annotations

import io
import struct
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Union

from PIL import Image

__all__ = [
    "Format",
    "SubsampleRatio",
    "YCbCr",
    "Gray16",
    "Decoder",
    "new_decoder",
    "decode_i420",
    "decode_nv21",
    "decode_nv12",
    "decode_yuy2",
    "decode_uyvy",
    "decode_z16",
    "decode_mjpeg",
    "add_motion_dht",
]


class Format(str, Enum):
    """Raw frame formats a device may deliver."""

    I420 = "I420"
    I444 = "I444"
    NV21 = "NV21"
    NV12 = "NV12"
    YUY2 = "YUY2"
    YUYV = "YUYV"
    UYVY = "UYVY"
    RGBA = "RGBA"
    MJPEG = "MJPEG"
    Z16 = "Z16"


class SubsampleRatio(str, Enum):
    """Chroma subsampling of a YCbCr image."""

    RATIO_444 = "4:4:4"
    RATIO_422 = "4:2:2"
    RATIO_420 = "4:2:0"


@dataclass(frozen=True)
class YCbCr:
    """A planar Y'CbCr image."""

    y: bytes
    y_stride: int
    cb: bytes
    cr: bytes
    c_stride: int
    subsample_ratio: SubsampleRatio
    width: int
    height: int


@dataclass(frozen=True)
class Gray16:
    """A 16-bit grayscale image, row-major."""

    width: int
    height: int
    pix: tuple[int, ...]

    def at(self, x: int, y: int) -> int:
        """Value of the pixel at column ``x``, row ``y``."""
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"pixel ({x}, {y}) out of bounds")
        return self.pix[y * self.width + x]


Decoder = Callable[[bytes, int, int], object]


def _too_short(length: int, expected: int) -> ValueError:
    return ValueError(f"frame length ({length}) less than expected ({expected})")


def decode_i420(frame: bytes, width: int, height: int) -> YCbCr:
    """Decode a planar 4:2:0 frame (Y, then Cb, then Cr)."""
    frame = bytes(frame)
    yi = width * height
    cbi = yi + width * height // 4
    cri = cbi + width * height // 4
    if cri > len(frame):
        raise _too_short(len(frame), cri)
    return YCbCr(
        y=frame[:yi],
        y_stride=width,
        cb=frame[yi:cbi],
        cr=frame[cbi:cri],
        c_stride=width // 2,
        subsample_ratio=SubsampleRatio.RATIO_420,
        width=width,
        height=height,
    )


def decode_nv21(frame: bytes, width: int, height: int) -> YCbCr:
    """Decode a Y plane followed by interleaved Cr/Cb pairs."""
    frame = bytes(frame)
    yi = width * height
    ci = yi + width * height // 2
    if ci > len(frame):
        raise _too_short(len(frame), ci)
    return YCbCr(
        y=frame[:yi],
        y_stride=width,
        cb=frame[yi + 1 : ci + 1 : 2],
        cr=frame[yi:ci:2],
        c_stride=width // 2,
        subsample_ratio=SubsampleRatio.RATIO_420,
        width=width,
        height=height,
    )


def decode_nv12(frame: bytes, width: int, height: int) -> YCbCr:
    """Decode a Y plane followed by interleaved Cb/Cr pairs."""
    img = decode_nv21(frame, width, height)
    return YCbCr(
        y=img.y,
        y_stride=img.y_stride,
        cb=img.cr,
        cr=img.cb,
        c_stride=img.c_stride,
        subsample_ratio=img.subsample_ratio,
        width=img.width,
        height=img.height,
    )


def _decode_packed_422(
    frame: bytes, width: int, height: int, y0: int, cb: int, y1: int, cr: int
) -> YCbCr:
    frame = bytes(frame)
    yi = width * height
    ci = yi // 2
    fi = yi + 2 * ci
    if len(frame) < fi:
        raise _too_short(len(frame), fi)
    if yi % 2:
        raise ValueError("packed 4:2:2 frames need an even number of pixels")
    y = bytearray(yi)
    y[0::2] = frame[y0:fi:4]
    y[1::2] = frame[y1:fi:4]
    return YCbCr(
        y=bytes(y),
        y_stride=width,
        cb=frame[cb:fi:4],
        cr=frame[cr:fi:4],
        c_stride=width // 2,
        subsample_ratio=SubsampleRatio.RATIO_422,
        width=width,
        height=height,
    )


def decode_yuy2(frame: bytes, width: int, height: int) -> YCbCr:
    """Decode packed Y0 Cb Y1 Cr quadruples."""
    return _decode_packed_422(frame, width, height, y0=0, cb=1, y1=2, cr=3)


def decode_uyvy(frame: bytes, width: int, height: int) -> YCbCr:
    """Decode packed Cb Y0 Cr Y1 quadruples."""
    return _decode_packed_422(frame, width, height, y0=1, cb=0, y1=3, cr=2)


def decode_z16(frame: bytes, width: int, height: int) -> Gray16:
    """Decode little-endian 16-bit depth values, row by row."""
    frame = bytes(frame)
    expected = 2 * (width * height)
    if expected != len(frame):
        raise ValueError(f"frame length ({len(frame)}) not expected size ({expected})")
    pix = struct.unpack(f"<{width * height}H", frame)
    return Gray16(width=width, height=height, pix=pix)


# Default Huffman tables for motion JPEG frames that omit their own.
_DHT_MARKER = b"\xff\xc4"
_DHT = bytes((
    1, 162, 0, 0, 1, 5, 1, 1, 1, 1, 1, 1, 0, 0, 0, 0, 0, 0, 0, 0, 1, 2, 3, 4, 5, 6, 7, 8, 9, 10, 11,
    1, 0, 3, 1, 1, 1, 1, 1, 1, 1, 1, 1, 0, 0, 0, 0, 0, 0, 1, 2, 3, 4, 5, 6, 7, 8, 9, 10, 11,
    16, 0, 2, 1, 3, 3, 2, 4, 3, 5, 5, 4, 4, 0, 0, 1, 125,
    1, 2, 3, 0, 4, 17, 5, 18, 33, 49, 65, 6, 19, 81, 97, 7, 34, 113, 20, 50, 129, 145, 161, 8,
    35, 66, 177, 193, 21, 82, 209, 240, 36, 51, 98, 114, 130, 9, 10, 22, 23, 24, 25, 26, 37, 38,
    39, 40, 41, 42, 52, 53, 54, 55, 56, 57, 58, 67, 68, 69, 70, 71, 72, 73, 74, 83, 84, 85, 86,
    87, 88, 89, 90, 99, 100, 101, 102, 103, 104, 105, 106, 115, 116, 117, 118, 119, 120, 121,
    122, 131, 132, 133, 134, 135, 136, 137, 138, 146, 147, 148, 149, 150, 151, 152, 153, 154,
    162, 163, 164, 165, 166, 167, 168, 169, 170, 178, 179, 180, 181, 182, 183, 184, 185, 186,
    194, 195, 196, 197, 198, 199, 200, 201, 202, 210, 211, 212, 213, 214, 215, 216, 217, 218,
    225, 226, 227, 228, 229, 230, 231, 232, 233, 234, 241, 242, 243, 244, 245, 246, 247, 248,
    249, 250,
    17, 0, 2, 1, 2, 4, 4, 3, 4, 7, 5, 4, 4, 0, 1, 2, 119,
    0, 1, 2, 3, 17, 4, 5, 33, 49, 6, 18, 65, 81, 7, 97, 113, 19, 34, 50, 129, 8, 20, 66, 145,
    161, 177, 193, 9, 35, 51, 82, 240, 21, 98, 114, 209, 10, 22, 36, 52, 225, 37, 241, 23, 24,
    25, 26, 38, 39, 40, 41, 42, 53, 54, 55, 56, 57, 58, 67, 68, 69, 70, 71, 72, 73, 74, 83, 84,
    85, 86, 87, 88, 89, 90, 99, 100, 101, 102, 103, 104, 105, 106, 115, 116, 117, 118, 119, 120,
    121, 122, 130, 131, 132, 133, 134, 135, 136, 137, 138, 146, 147, 148, 149, 150, 151, 152,
    153, 154, 162, 163, 164, 165, 166, 167, 168, 169, 170, 178, 179, 180, 181, 182, 183, 184,
    185, 186, 194, 195, 196, 197, 198, 199, 200, 201, 202, 210, 211, 212, 213, 214, 215, 216,
    217, 218, 226, 227, 228, 229, 230, 231, 232, 233, 234, 242, 243, 244, 245, 246, 247, 248,
    249, 250,
))
_SOS_MARKER = b"\xff\xda"


def add_motion_dht(frame: bytes) -> bytes:
    """Insert default Huffman tables just before the start-of-scan marker.

    Frames that do not hold exactly one start-of-scan marker come back unchanged.
    """
    frame = bytes(frame)
    parts = frame.split(_SOS_MARKER)
    if len(parts) != 2:
        return frame
    head, tail = parts
    return b"".join((head, _DHT_MARKER, _DHT, _SOS_MARKER, tail))


def _load_jpeg(data: bytes) -> Image.Image:
    img = Image.open(io.BytesIO(data))
    img.load()
    return img


def decode_mjpeg(frame: bytes, width: int, height: int) -> Image.Image:
    """Decode a JPEG frame, adding default Huffman tables if it lacks them."""
    frame = bytes(frame)
    try:
        return _load_jpeg(frame)
    except (OSError, SyntaxError, ValueError) as first:
        fixed = add_motion_dht(frame)
        if fixed == frame:
            raise ValueError(f"invalid JPEG format: {first}") from first
        try:
            return _load_jpeg(fixed)
        except (OSError, SyntaxError, ValueError) as second:
            raise ValueError(f"invalid JPEG format: {second}") from second


_DECODERS: dict[Format, Decoder] = {
    Format.I420: decode_i420,
    Format.NV21: decode_nv21,
    Format.NV12: decode_nv12,
    Format.YUY2: decode_yuy2,
    Format.YUYV: decode_yuy2,
    Format.UYVY: decode_uyvy,
    Format.MJPEG: decode_mjpeg,
    Format.Z16: decode_z16,
}


def new_decoder(fmt: Union[Format, str]) -> Decoder:
    """Return the decoder for ``fmt``; raise ValueError if there is none."""
    value = fmt.value if isinstance(fmt, Format) else str(fmt)
    try:
        return _DECODERS[Format(value)]
    except (ValueError, KeyError):
        raise ValueError(f"{value} is not supported") from None