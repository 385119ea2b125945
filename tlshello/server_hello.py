"""The TLS ServerHello (and HelloRetryRequest) handshake message."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator

from .client_hello import KeyShare
from .wire import Builder, DecodeError, ExtensionType, HandshakeType, Reader

__all__ = ["ServerHello"]


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise DecodeError(message)


@contextmanager
def _extension(b: Builder, ext_type: int) -> Iterator[Builder]:
    b.add_uint16(ext_type)
    with b.uint16_prefixed() as data:
        yield data


def _empty_extension(b: Builder, ext_type: int) -> None:
    b.add_uint16(ext_type)
    b.add_uint16(0)


@dataclass
class ServerHello:
    """A ServerHello message; ``raw`` caches the encoded form.

    The same structure carries a HelloRetryRequest, whose key_share extension
    only names a group (``selected_group``) and which may hold a ``cookie``.
    """

    vers: int = 0
    random: bytes = b""
    session_id: bytes = b""
    cipher_suite: int = 0
    compression_method: int = 0
    ocsp_stapling: bool = False
    ticket_supported: bool = False
    secure_renegotiation_supported: bool = False
    secure_renegotiation: bytes = b""
    alpn_protocol: str = ""
    ems: bool = False
    scts: list[bytes] = field(default_factory=list)
    supported_version: int = 0
    server_share: KeyShare = field(default_factory=lambda: KeyShare(0))
    selected_identity_present: bool = False
    selected_identity: int = 0
    supported_points: bytes = b""
    cookie: bytes = b""
    selected_group: int = 0
    next_proto_neg: bool = False
    next_protos: list[str] = field(default_factory=list)
    raw: bytes | None = field(default=None, compare=False, repr=False)

    def marshal(self) -> bytes:
        """Encode the message, returning the cached encoding if present."""
        if self.raw is not None:
            return self.raw

        b = Builder()
        b.add_uint8(HandshakeType.SERVER_HELLO)
        with b.uint24_prefixed() as body:
            body.add_uint16(self.vers)
            body.add_bytes_with_length(self.random, 32)
            with body.uint8_prefixed() as sid:
                sid.add_bytes(self.session_id)
            body.add_uint16(self.cipher_suite)
            body.add_uint8(self.compression_method)
            extensions = self._marshal_extensions()
            if extensions:
                with body.uint16_prefixed() as ext:
                    ext.add_bytes(extensions)

        self.raw = b.bytes()
        return self.raw

    def _marshal_extensions(self) -> bytes:
        b = Builder()
        if self.ocsp_stapling:
            _empty_extension(b, ExtensionType.STATUS_REQUEST)
        if self.ticket_supported:
            _empty_extension(b, ExtensionType.SESSION_TICKET)
        if self.secure_renegotiation_supported:
            with _extension(b, ExtensionType.RENEGOTIATION_INFO) as data:
                with data.uint8_prefixed() as reneg:
                    reneg.add_bytes(self.secure_renegotiation)
        if self.alpn_protocol:
            with _extension(b, ExtensionType.ALPN) as data:
                with data.uint16_prefixed() as protos:
                    with protos.uint8_prefixed() as proto:
                        proto.add_bytes(
                            self.alpn_protocol.encode("utf-8", "surrogateescape")
                        )
        if self.scts:
            with _extension(b, ExtensionType.SCT) as data:
                with data.uint16_prefixed() as lst:
                    for sct in self.scts:
                        with lst.uint16_prefixed() as entry:
                            entry.add_bytes(sct)
        if self.supported_version:
            with _extension(b, ExtensionType.SUPPORTED_VERSIONS) as data:
                data.add_uint16(self.supported_version)
        if self.server_share.group:
            with _extension(b, ExtensionType.KEY_SHARE) as data:
                data.add_uint16(self.server_share.group)
                with data.uint16_prefixed() as key:
                    key.add_bytes(self.server_share.data)
        if self.selected_identity_present:
            with _extension(b, ExtensionType.PRE_SHARED_KEY) as data:
                data.add_uint16(self.selected_identity)
        if self.cookie:
            with _extension(b, ExtensionType.COOKIE) as data:
                with data.uint16_prefixed() as cookie:
                    cookie.add_bytes(self.cookie)
        if self.selected_group:
            with _extension(b, ExtensionType.KEY_SHARE) as data:
                data.add_uint16(self.selected_group)
        if self.supported_points:
            with _extension(b, ExtensionType.SUPPORTED_POINTS) as data:
                with data.uint8_prefixed() as points:
                    points.add_bytes(bytes(self.supported_points))
        return b.bytes()

    @classmethod
    def unmarshal(cls, data: bytes) -> ServerHello:
        """Decode a ServerHello, raising DecodeError if it is malformed."""
        data = bytes(data)
        m = cls(raw=data)
        s = Reader(data)
        s.skip(4)  # message type and uint24 length
        m.vers = s.read_uint16()
        m.random = s.read_bytes(32)
        m.session_id = s.read_uint8_prefixed()
        m.cipher_suite = s.read_uint16()
        m.compression_method = s.read_uint8()

        if s.empty():
            return m

        extensions = Reader(s.read_uint16_prefixed())
        _require(s.empty(), "trailing data after extensions")

        while not extensions.empty():
            ext_type = extensions.read_uint16()
            ext_data = Reader(extensions.read_uint16_prefixed())
            if not m._parse_extension(ext_type, ext_data):
                continue
            _require(ext_data.empty(), f"trailing data in extension {ext_type}")
        return m

    def _parse_extension(self, ext_type: int, data: Reader) -> bool:
        """Parse one known extension; return False for unknown ones."""
        if ext_type == ExtensionType.STATUS_REQUEST:
            self.ocsp_stapling = True
        elif ext_type == ExtensionType.SESSION_TICKET:
            self.ticket_supported = True
        elif ext_type == ExtensionType.EXTENDED_MASTER_SECRET:
            self.ems = True
        elif ext_type == ExtensionType.RENEGOTIATION_INFO:
            self.secure_renegotiation = data.read_uint8_prefixed()
            self.secure_renegotiation_supported = True
        elif ext_type == ExtensionType.ALPN:
            protos = Reader(data.read_uint16_prefixed())
            _require(not protos.empty(), "empty ALPN list")
            proto = protos.read_uint8_prefixed()
            _require(bool(proto), "empty ALPN protocol")
            _require(protos.empty(), "server selected more than one ALPN protocol")
            self.alpn_protocol = proto.decode("utf-8", "surrogateescape")
        elif ext_type == ExtensionType.SCT:
            lst = Reader(data.read_uint16_prefixed())
            _require(not lst.empty(), "empty SCT list")
            while not lst.empty():
                sct = lst.read_uint16_prefixed()
                _require(bool(sct), "empty SCT")
                self.scts.append(sct)
        elif ext_type == ExtensionType.SUPPORTED_VERSIONS:
            self.supported_version = data.read_uint16()
        elif ext_type == ExtensionType.COOKIE:
            self.cookie = data.read_uint16_prefixed()
            _require(bool(self.cookie), "empty cookie")
        elif ext_type == ExtensionType.KEY_SHARE:
            # ServerHello carries a full share, HelloRetryRequest only a group.
            if len(data) == 2:
                self.selected_group = data.read_uint16()
            else:
                group = data.read_uint16()
                self.server_share = KeyShare(group, data.read_uint16_prefixed())
        elif ext_type == ExtensionType.PRE_SHARED_KEY:
            self.selected_identity_present = True
            self.selected_identity = data.read_uint16()
        elif ext_type == ExtensionType.SUPPORTED_POINTS:
            self.supported_points = data.read_uint8_prefixed()
            _require(bool(self.supported_points), "empty point format list")
        else:
            return False
        return True