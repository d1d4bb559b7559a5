import io
import struct
import zlib
from types import SimpleNamespace

import pytest

from mediadev.vnc.encoding import CursorEncoding, RawEncoding, ZlibEncoding
from mediadev.vnc.messages import Rectangle
from mediadev.vnc.types import Color, PixelFormat

TRUE32 = PixelFormat(
    bpp=32, depth=24, big_endian=False, true_color=True,
    red_max=255, green_max=255, blue_max=255,
    red_shift=16, green_shift=8, blue_shift=0,
)
TRUE16 = PixelFormat(
    bpp=16, depth=16, big_endian=False, true_color=True,
    red_max=31, green_max=63, blue_max=31,
    red_shift=11, green_shift=5, blue_shift=0,
)
PIXELS = b"\x11\x22\x33\x00\x44\x55\x66\x00"


def _conn(pixel_format, color_map=None):
    return SimpleNamespace(
        pixel_format=pixel_format,
        color_map=color_map if color_map is not None else [Color()] * 256,
        encs=[],
    )


def _zlib_payload(compressor, data):
    chunk = compressor.compress(data) + compressor.flush(zlib.Z_SYNC_FLUSH)
    return struct.pack(">I", len(chunk)) + chunk


def test_raw_true_color_32bpp():
    stream = io.BytesIO(PIXELS + b"next")
    enc = RawEncoding().read(_conn(TRUE32), Rectangle(width=2, height=1), stream)
    assert enc.colors == [Color(0x33, 0x22, 0x11), Color(0x66, 0x55, 0x44)]
    assert all(p >> 24 == 0xFF for p in enc.raw_pixel)
    assert [p & 0xFF for p in enc.raw_pixel] == [c.r for c in enc.colors]
    assert stream.read() == b"next"


def test_raw_big_endian_matches_little_endian():
    big = PixelFormat(**{**TRUE32.__dict__, "big_endian": True})
    swapped = b"".join(PIXELS[i:i + 4][::-1] for i in range(0, len(PIXELS), 4))
    rect = Rectangle(width=2, height=1)
    little_enc = RawEncoding().read(_conn(TRUE32), rect, io.BytesIO(PIXELS))
    big_enc = RawEncoding().read(_conn(big), rect, io.BytesIO(swapped))
    assert big_enc == little_enc


def test_raw_16bpp_expands_channels():
    enc = RawEncoding().read(_conn(TRUE16), Rectangle(width=2, height=1),
                             io.BytesIO(b"\xff\xff\x00\x00"))
    assert enc.colors == [Color(255, 255, 255), Color(0, 0, 0)]
    assert enc.raw_pixel[0] == 0xFFFFFFFF


def test_raw_color_map_lookup():
    color_map = [Color()] * 256
    color_map[5] = Color(1, 2, 3)
    color_map[9] = Color(7, 8, 9)
    indexed = PixelFormat(bpp=8, depth=8)
    enc = RawEncoding().read(_conn(indexed, color_map), Rectangle(width=2, height=1),
                             io.BytesIO(b"\x05\x09"))
    assert enc.colors == [Color(1, 2, 3), Color(7, 8, 9)]


def test_raw_truncated_data():
    with pytest.raises(EOFError):
        RawEncoding().read(_conn(TRUE32), Rectangle(width=2, height=1), io.BytesIO(PIXELS[:5]))


def test_cursor_consumes_pixels_and_mask():
    rect = Rectangle(width=3, height=2)
    body = bytes(3 * 2 * 4) + bytes(((3 + 7) // 8) * 2)
    stream = io.BytesIO(body + b"tail")
    result = CursorEncoding().read(_conn(TRUE32), rect, stream)
    assert result == CursorEncoding()
    assert stream.read() == b"tail"


def test_zlib_matches_raw_across_rectangles():
    conn = _conn(TRUE32)
    rect = Rectangle(width=2, height=1)
    second = PIXELS[4:] + PIXELS[:4]
    compressor = zlib.compressobj()
    stream = io.BytesIO(_zlib_payload(compressor, PIXELS) + _zlib_payload(compressor, second))

    state = ZlibEncoding()
    first_enc = state.read(conn, rect, stream)
    second_enc = state.read(conn, rect, stream)

    assert first_enc.colors == RawEncoding().read(conn, rect, io.BytesIO(PIXELS)).colors
    assert second_enc.raw_pixel == RawEncoding().read(conn, rect, io.BytesIO(second)).raw_pixel
    assert stream.read() == b""


def test_zlib_close_starts_a_new_stream():
    conn = _conn(TRUE32)
    rect = Rectangle(width=2, height=1)
    state = ZlibEncoding()
    state.read(conn, rect, io.BytesIO(_zlib_payload(zlib.compressobj(), PIXELS)))
    state.close()
    again = state.read(conn, rect, io.BytesIO(_zlib_payload(zlib.compressobj(), PIXELS)))
    assert again.colors == [Color(0x33, 0x22, 0x11), Color(0x66, 0x55, 0x44)]


def test_zlib_too_little_data():
    conn = _conn(TRUE32)
    stream = io.BytesIO(_zlib_payload(zlib.compressobj(), PIXELS[:4]))
    with pytest.raises(EOFError):
        ZlibEncoding().read(conn, Rectangle(width=2, height=1), stream)


def test_zlib_corrupt_data():
    bogus = b"\xff\xff\xff\xff"
    stream = io.BytesIO(struct.pack(">I", len(bogus)) + bogus)
    with pytest.raises(ValueError):
        ZlibEncoding().read(_conn(TRUE32), Rectangle(width=1, height=1), stream)