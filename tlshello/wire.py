"""Length-prefixed big-endian encoding used by TLS handshake messages."""

from __future__ import annotations

from contextlib import contextmanager
from enum import IntEnum
from typing import Iterator

__all__ = [
    "HandshakeType",
    "ExtensionType",
    "DecodeError",
    "Builder",
    "Reader",
    "SCSV_RENEGOTIATION",
    "STATUS_TYPE_OCSP",
]

SCSV_RENEGOTIATION = 0x00FF
STATUS_TYPE_OCSP = 1


class HandshakeType(IntEnum):
    """Handshake message types."""

    HELLO_REQUEST = 0
    CLIENT_HELLO = 1
    SERVER_HELLO = 2
    NEW_SESSION_TICKET = 4
    END_OF_EARLY_DATA = 5
    ENCRYPTED_EXTENSIONS = 8
    CERTIFICATE = 11
    SERVER_KEY_EXCHANGE = 12
    CERTIFICATE_REQUEST = 13
    SERVER_HELLO_DONE = 14
    CERTIFICATE_VERIFY = 15
    CLIENT_KEY_EXCHANGE = 16
    FINISHED = 20
    CERTIFICATE_STATUS = 22
    KEY_UPDATE = 24
    COMPRESSED_CERTIFICATE = 25
    MESSAGE_HASH = 254


class ExtensionType(IntEnum):
    """Hello extension code points."""

    SERVER_NAME = 0
    STATUS_REQUEST = 5
    SUPPORTED_CURVES = 10
    SUPPORTED_POINTS = 11
    SIGNATURE_ALGORITHMS = 13
    ALPN = 16
    SCT = 18
    EXTENDED_MASTER_SECRET = 23
    SESSION_TICKET = 35
    PRE_SHARED_KEY = 41
    EARLY_DATA = 42
    SUPPORTED_VERSIONS = 43
    COOKIE = 44
    PSK_MODES = 45
    CERTIFICATE_AUTHORITIES = 47
    SIGNATURE_ALGORITHMS_CERT = 50
    KEY_SHARE = 51
    RENEGOTIATION_INFO = 0xFF01


class DecodeError(ValueError):
    """Raised when encoded data is truncated or malformed."""


def _encode_uint(value: int, size: int) -> bytes:
    try:
        return int(value).to_bytes(size, "big")
    except OverflowError as exc:
        raise ValueError(f"value {value} does not fit in {size * 8} bits") from exc


class Builder:
    """Accumulates big-endian integers, raw bytes and length-prefixed blocks."""

    def __init__(self) -> None:
        self._buf = bytearray()

    def __len__(self) -> int:
        return len(self._buf)

    def add_uint8(self, value: int) -> None:
        self._buf += _encode_uint(value, 1)

    def add_uint16(self, value: int) -> None:
        self._buf += _encode_uint(value, 2)

    def add_uint24(self, value: int) -> None:
        self._buf += _encode_uint(value, 3)

    def add_uint32(self, value: int) -> None:
        self._buf += _encode_uint(value, 4)

    def add_uint64(self, value: int) -> None:
        self._buf += _encode_uint(value, 8)

    def add_bytes(self, data: bytes) -> None:
        self._buf += data

    def add_bytes_with_length(self, data: bytes, length: int) -> None:
        """Append data, insisting that it is exactly ``length`` bytes long."""
        if len(data) != length:
            raise ValueError(
                f"invalid value length: expected {length}, got {len(data)}"
            )
        self._buf += data

    @contextmanager
    def _prefixed(self, size: int) -> Iterator[Builder]:
        child = Builder()
        yield child
        body = child._buf
        if len(body) >= 1 << (size * 8):
            raise ValueError(
                f"length {len(body)} exceeds a {size * 8}-bit length prefix"
            )
        self._buf += len(body).to_bytes(size, "big")
        self._buf += body

    def uint8_prefixed(self):
        """Context manager yielding a builder whose output gets a 1-byte length."""
        return self._prefixed(1)

    def uint16_prefixed(self):
        """Context manager yielding a builder whose output gets a 2-byte length."""
        return self._prefixed(2)

    def uint24_prefixed(self):
        """Context manager yielding a builder whose output gets a 3-byte length."""
        return self._prefixed(3)

    def bytes(self) -> bytes:
        return bytes(self._buf)


class Reader:
    """Consumes big-endian integers and length-prefixed blocks from bytes."""

    def __init__(self, data: bytes = b"") -> None:
        self._data = bytes(data)
        self._pos = 0

    def __len__(self) -> int:
        return len(self._data) - self._pos

    def read_bytes(self, n: int) -> bytes:
        if n < 0 or len(self) < n:
            raise DecodeError(f"need {n} bytes, have {len(self)}")
        start = self._pos
        self._pos += n
        return self._data[start:self._pos]

    def _read_uint(self, size: int) -> int:
        return int.from_bytes(self.read_bytes(size), "big")

    def read_uint8(self) -> int:
        return self._read_uint(1)

    def read_uint16(self) -> int:
        return self._read_uint(2)

    def read_uint24(self) -> int:
        return self._read_uint(3)

    def read_uint32(self) -> int:
        return self._read_uint(4)

    def read_uint64(self) -> int:
        return self._read_uint(8)

    def read_uint8_prefixed(self) -> bytes:
        return self.read_bytes(self.read_uint8())

    def read_uint16_prefixed(self) -> bytes:
        return self.read_bytes(self.read_uint16())

    def read_uint24_prefixed(self) -> bytes:
        return self.read_bytes(self.read_uint24())

    def skip(self, n: int) -> None:
        self.read_bytes(n)

    def empty(self) -> bool:
        return len(self) == 0