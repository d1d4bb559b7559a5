"""Client authentication schemes for the RFB handshake."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar

from Crypto.Cipher import DES

from mediadev.vnc.types import read_exact

__all__ = ["ClientAuthNone", "PasswordAuth", "reverse_bits"]


def reverse_bits(b: int) -> int:
    """Reverse the bit order of one byte."""
    if not 0 <= b <= 0xFF:
        raise ValueError(f"not a byte: {b}")
    return int(f"{b:08b}"[::-1], 2)


def _flush(conn: Any) -> None:
    flush = getattr(conn, "flush", None)
    if flush is not None:
        flush()


def _send(conn: Any, data: bytes) -> None:
    conn.write(data)
    _flush(conn)


@dataclass(frozen=True)
class ClientAuthNone:
    """The "None" security type; no exchange takes place."""

    security_type: ClassVar[int] = 1

    def handshake(self, conn: Any) -> None:
        """Push out anything already written; the scheme itself sends nothing."""
        _flush(conn)


@dataclass(frozen=True)
class PasswordAuth:
    """VNC authentication: DES challenge-response keyed by the password."""

    password: str = field(default_factory=str)
    security_type: ClassVar[int] = 2

    def handshake(self, conn: Any) -> None:
        """Read the 16-byte challenge from ``conn`` and write the response."""
        challenge = read_exact(conn, 16)
        _send(conn, self.encrypt(challenge))

    def encrypt(self, challenge: bytes) -> bytes:
        """Encrypt the first 16 bytes of ``challenge`` with the password key."""
        challenge = bytes(challenge)
        if len(challenge) < 16:
            raise ValueError(f"challenge too short: {len(challenge)} < 16")
        key_material = self.password.encode()[:8]
        key = bytes(reverse_bits(b) for b in key_material).ljust(8, b"\x00")
        cipher = DES.new(key, DES.MODE_ECB)
        return cipher.encrypt(challenge[:16])