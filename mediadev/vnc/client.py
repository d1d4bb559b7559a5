"""An RFB (VNC) client connection (RFC 6143)."""

from __future__ import annotations

import queue
import re
import socket
import struct
import threading
from contextlib import suppress
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from mediadev.vnc.auth import ClientAuthNone
from mediadev.vnc.encoding import Encoding
from mediadev.vnc.messages import (
    BellMessage,
    FramebufferUpdateMessage,
    ServerCutTextMessage,
    SetColorMapEntriesMessage,
)
from mediadev.vnc.types import (
    ButtonMask,
    Color,
    PixelFormat,
    read_exact,
    read_pixel_format,
    write_pixel_format,
)

__all__ = ["ClientConfig", "ClientConn", "parse_protocol_version", "client"]

_PV_LEN = 12
_PV_RE = re.compile(r"RFB (\d+)\.(\d+)\n")


class _SocketStream:
    """Minimal file-like view of a socket: exact writes, plain reads."""

    def __init__(self, sock: socket.socket) -> None:
        self._sock = sock
        self._lock = threading.Lock()

    def read(self, size: int = -1) -> bytes:
        if size == 0:
            return b""
        return self._sock.recv(size if size > 0 else 65536)

    def write(self, data: bytes) -> int:
        with self._lock:
            self._sock.sendall(data)
        return len(data)


@dataclass
class ClientConfig:
    """Settings for a client connection; do not change it once in use.

    ``auth`` lists the authentication schemes to try, in order; ``None``
    means no authentication. Every message read from the server is put on
    ``server_message_queue`` when one is given. ``server_messages`` adds
    handlers for message types beyond the standard ones.
    """

    auth: Optional[list[Any]] = None
    exclusive: bool = False
    server_message_queue: Optional[queue.Queue] = None
    server_messages: list[Any] = field(default_factory=list)


def parse_protocol_version(pv: bytes) -> tuple[int, int]:
    """Parse a ProtocolVersion message into (major, minor)."""
    pv = bytes(pv)
    if len(pv) < _PV_LEN:
        raise ValueError(f"ProtocolVersion message too short ({len(pv)} < {_PV_LEN})")
    match = _PV_RE.match(pv.decode("latin-1"))
    if match is None:
        raise ValueError("error parsing ProtocolVersion.")
    return int(match.group(1)), int(match.group(2))


class ClientConn:
    """An established connection to a VNC server."""

    def __init__(self, sock: socket.socket, config: Optional[ClientConfig] = None) -> None:
        self._sock = sock
        self._stream = _SocketStream(sock)
        self.config = config if config is not None else ClientConfig()
        self.color_map: list[Color] = [Color()] * 256
        self.encs: list[Encoding] = []
        self.frame_buffer_width = 0
        self.frame_buffer_height = 0
        self.desktop_name = ""
        self.pixel_format = PixelFormat()
        self._closed = False
        self._close_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None

    def __enter__(self) -> "ClientConn":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the connection; further calls do nothing."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        with suppress(OSError):
            self._sock.shutdown(socket.SHUT_RDWR)
        self._sock.close()

    def cut_text(self, text: str) -> None:
        """Tell the server the client has new Latin-1 text in its cut buffer."""
        for char in text:
            if ord(char) > 0xFF:
                raise ValueError(f"Character '{ord(char)}' is not valid Latin-1")
        data = text.encode("latin-1")
        self._stream.write(struct.pack(">BxxxI", 6, len(data)) + data)

    def framebuffer_update_request(
        self, incremental: bool, x: int, y: int, width: int, height: int
    ) -> None:
        """Ask the server for an update of the given area."""
        self._stream.write(struct.pack(">BBHHHH", 3, 1 if incremental else 0, x, y, width, height))

    def key_event(self, keysym: int, down: bool) -> None:
        """Send a key press (``down``) or release, as an X keysym."""
        self._stream.write(struct.pack(">BBxxI", 4, 1 if down else 0, keysym))

    def pointer_event(self, mask: ButtonMask | int, x: int, y: int) -> None:
        """Send the pointer position and the buttons held down."""
        self._stream.write(struct.pack(">BBHH", 5, int(mask), x, y))

    def set_encodings(self, encs: Sequence[Encoding]) -> None:
        """Announce the encodings the client accepts, most preferred first."""
        encs = list(encs)
        data = struct.pack(">BxH", 2, len(encs)) + b"".join(
            struct.pack(">i", enc.encoding_type) for enc in encs
        )
        self._stream.write(data)
        self.encs = encs

    def set_pixel_format(self, fmt: PixelFormat) -> None:
        """Ask the server to send pixels in ``fmt``; resets the colour map."""
        self._stream.write(b"\x00\x00\x00\x00" + write_pixel_format(fmt))
        self.color_map = [Color()] * 256

    def _read_u8(self) -> int:
        return read_exact(self._stream, 1)[0]

    def _read_u32(self) -> int:
        (value,) = struct.unpack(">I", read_exact(self._stream, 4))
        return value

    def _read_error_reason(self) -> str:
        try:
            length = self._read_u32()
            return read_exact(self._stream, length).decode("utf-8", errors="replace")
        except (OSError, EOFError):
            return "<error>"

    def _handshake(self) -> None:
        major, minor = parse_protocol_version(read_exact(self._stream, _PV_LEN))
        if major < 3:
            raise ConnectionError(f"unsupported major version, less than 3: {major}")
        if minor < 3:
            raise ConnectionError(f"unsupported minor version, less than 3: {minor}")

        if minor < 8:
            self._stream.write(b"RFB 003.003\n")
            if self._read_u32() == 0:
                raise ConnectionError(f"no security types: {self._read_error_reason()}")
        else:
            self._stream.write(b"RFB 003.008\n")
            count = self._read_u8()
            if count == 0:
                raise ConnectionError(f"no security types: {self._read_error_reason()}")
            server_types = read_exact(self._stream, count)

            auths = self.config.auth if self.config.auth is not None else [ClientAuthNone()]
            auth = next((a for a in auths if a.security_type in server_types), None)
            if auth is None:
                raise ConnectionError(
                    f"no suitable auth schemes found. server supported: {list(server_types)}"
                )
            self._stream.write(bytes([auth.security_type]))
            auth.handshake(self._stream)

            if self._read_u32() == 1:
                raise ConnectionError(f"security handshake failed: {self._read_error_reason()}")

        self._stream.write(b"\x00" if self.config.exclusive else b"\x01")

        self.frame_buffer_width, self.frame_buffer_height = struct.unpack(
            ">HH", read_exact(self._stream, 4)
        )
        self.pixel_format = read_pixel_format(self._stream)
        name_length = self._read_u32()
        self.desktop_name = read_exact(self._stream, name_length).decode("utf-8", errors="replace")

    def _start(self) -> None:
        self._thread = threading.Thread(target=self._main_loop, name="vnc-client", daemon=True)
        self._thread.start()

    def _main_loop(self) -> None:
        handlers = {
            msg.message_type: msg
            for msg in (
                FramebufferUpdateMessage(),
                SetColorMapEntriesMessage(),
                BellMessage(),
                ServerCutTextMessage(),
                *(self.config.server_messages or ()),
            )
        }
        try:
            while True:
                handler = handlers.get(self._read_u8())
                if handler is None:
                    break
                message = handler.read(self, self._stream)
                if self.config.server_message_queue is not None:
                    self.config.server_message_queue.put(message)
        except Exception:
            # Any read or parse failure ends the session.
            pass
        finally:
            self.close()


def client(sock: socket.socket, config: Optional[ClientConfig] = None) -> ClientConn:
    """Run the RFB handshake over ``sock`` and start reading server messages.

    The socket is closed if the handshake fails.
    """
    conn = ClientConn(sock, config)
    try:
        conn._handshake()
    except BaseException:
        conn.close()
        raise
    conn._start()
    return conn