"""A video driver that shows the framebuffer of a VNC server."""

from __future__ import annotations

import queue
import socket
import struct
import threading
import time
from contextlib import suppress
from typing import Iterator, Optional

from PIL import Image

from mediadev.driver import MediaProperties
from mediadev.frame import Format
from mediadev.vnc.client import ClientConfig, ClientConn, client
from mediadev.vnc.encoding import CursorEncoding, RawEncoding, ZlibEncoding
from mediadev.vnc.messages import FramebufferUpdateMessage, Rectangle

__all__ = ["VncDevice"]

_IDLE_REQUEST = 10.0
_POLL = 0.2
_DEFAULT_FRAME_RATE = 30


def _split_address(address: str) -> tuple[str, int]:
    host, sep, port = address.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"missing port in address {address!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return host, int(port)


class VncDevice:
    """A camera-like device whose frames are a remote desktop's framebuffer."""

    def __init__(self, vnc_addr: str) -> None:
        self.vnc_addr = vnc_addr
        self.width = 0
        self.height = 0
        self._client: Optional[ClientConn] = None
        self._closed: Optional[threading.Event] = None
        self._messages: Optional[queue.Queue] = None
        self._lock = threading.Lock()
        self._pixels_lock = threading.Lock()
        self._raw_pixel = bytearray()

    def pointer_event(self, mask: int, x: int, y: int) -> None:
        """Forward a pointer event to the server when connected."""
        conn = self._client
        if conn is not None:
            with suppress(OSError):
                conn.pointer_event(mask, x, y)

    def key_event(self, keysym: int, down: bool) -> None:
        """Forward a key event to the server when connected."""
        conn = self._client
        if conn is not None:
            with suppress(OSError):
                conn.key_event(keysym, down)

    def open(self) -> None:
        """Connect to the server and start following framebuffer updates."""
        if self._client is not None:
            return
        closed = threading.Event()
        messages: queue.Queue = queue.Queue(maxsize=1)
        config = ClientConfig(server_message_queue=messages, exclusive=False)
        with self._lock:
            sock = socket.create_connection(_split_address(self.vnc_addr))
            conn = client(sock, config)
            self._closed = closed
            self._messages = messages
            self._client = conn
            conn.set_encodings([ZlibEncoding(), RawEncoding(), CursorEncoding()])
            width, height = conn.frame_buffer_width, conn.frame_buffer_height
            with self._pixels_lock:
                self.width, self.height = width, height
                self._raw_pixel = bytearray(width * height * 4)
        threading.Thread(
            target=self._pump,
            args=(conn, messages, closed, width, height),
            name="vnc-device",
            daemon=True,
        ).start()

    def _pump(
        self,
        conn: ClientConn,
        messages: queue.Queue,
        closed: threading.Event,
        width: int,
        height: int,
    ) -> None:
        with suppress(OSError):
            conn.framebuffer_update_request(True, 0, 0, width, height)
        deadline = time.monotonic() + _IDLE_REQUEST
        while not closed.is_set():
            try:
                msg = messages.get(timeout=_POLL)
            except queue.Empty:
                if time.monotonic() < deadline:
                    continue
                try:
                    conn.framebuffer_update_request(True, 0, 0, width, height)
                except OSError:
                    closed.set()
                    return
                deadline = time.monotonic() + _IDLE_REQUEST
                continue
            deadline = time.monotonic() + _IDLE_REQUEST
            if isinstance(msg, FramebufferUpdateMessage):
                self._apply(msg.rectangles, width, height)
                with suppress(OSError):
                    conn.framebuffer_update_request(True, 0, 0, width, height)

    def _apply(self, rectangles: list[Rectangle], width: int, height: int) -> None:
        for rect in rectangles:
            enc = rect.enc
            if isinstance(enc, CursorEncoding) or not isinstance(enc, (RawEncoding, ZlibEncoding)):
                continue
            cols = min(rect.width, width - rect.x)
            if cols <= 0:
                continue
            pix = enc.raw_pixel
            for row in range(min(rect.height, height - rect.y)):
                start = row * rect.width
                line = struct.pack(f"<{cols}I", *pix[start:start + cols])
                offset = ((rect.y + row) * width + rect.x) * 4
                with self._pixels_lock:
                    self._raw_pixel[offset:offset + len(line)] = line

    def close(self) -> None:
        """Disconnect from the server and end any running recording."""
        if self._closed is not None:
            self._closed.set()
        with self._lock:
            if self._client is not None:
                self._client.close()
                self._client = None
        if self._messages is not None:
            with suppress(queue.Empty):
                while True:
                    self._messages.get_nowait()

    def video_record(self, props: MediaProperties) -> Iterator[Image.Image]:
        """Yield RGBA snapshots of the framebuffer at ``props.frame_rate`` (30 by default)."""
        if self._closed is None:
            raise RuntimeError("device is not open")
        rate = props.frame_rate or _DEFAULT_FRAME_RATE
        if rate < 0:
            raise ValueError("frame rate must not be negative")
        return self._frames(1.0 / rate, self._closed)

    def _frames(self, period: float, closed: threading.Event) -> Iterator[Image.Image]:
        next_tick = time.monotonic() + period
        while not closed.is_set():
            if closed.wait(max(0.0, next_tick - time.monotonic())):
                return
            next_tick = max(next_tick + period, time.monotonic())
            with self._pixels_lock:
                size = (self.width, self.height)
                data = bytes(self._raw_pixel)
            yield Image.frombytes("RGBA", size, data)

    def properties(self) -> list[MediaProperties]:
        return [MediaProperties(width=self.width, height=self.height, frame_format=Format.RGBA)]