"""The TLS ClientHello handshake message."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterable, Iterator

from .wire import (
    SCSV_RENEGOTIATION,
    STATUS_TYPE_OCSP,
    Builder,
    DecodeError,
    ExtensionType,
    HandshakeType,
    Reader,
)

__all__ = ["KeyShare", "PskIdentity", "ClientHello"]


@dataclass
class KeyShare:
    """A key_share entry: a named group and its public key data."""

    group: int
    data: bytes = b""


@dataclass
class PskIdentity:
    """A pre_shared_key identity with its obfuscated ticket age."""

    label: bytes
    obfuscated_ticket_age: int = 0


def _encode_name(name: str) -> bytes:
    return name.encode("utf-8", "surrogateescape")


def _decode_name(data: bytes) -> str:
    return data.decode("utf-8", "surrogateescape")


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise DecodeError(message)


@contextmanager
def _extension(b: Builder, ext_type: int) -> Iterator[Builder]:
    b.add_uint16(ext_type)
    with b.uint16_prefixed() as data:
        yield data


def _add_uint16_list(b: Builder, values: Iterable[int]) -> None:
    with b.uint16_prefixed() as lst:
        for value in values:
            lst.add_uint16(value)


def _read_uint16_list(reader: Reader) -> list[int]:
    values = []
    while not reader.empty():
        values.append(reader.read_uint16())
    return values


def _read_nonempty_uint16_list(data: Reader, what: str) -> list[int]:
    lst = Reader(data.read_uint16_prefixed())
    _require(not lst.empty(), f"empty {what} list")
    return _read_uint16_list(lst)


def _binders_block(binders: Iterable[bytes]) -> bytes:
    b = Builder()
    with b.uint16_prefixed() as lst:
        for binder in binders:
            with lst.uint8_prefixed() as entry:
                entry.add_bytes(binder)
    return b.bytes()


@dataclass
class ClientHello:
    """A ClientHello message; ``raw`` caches the encoded form."""

    vers: int = 0
    random: bytes = b""
    session_id: bytes = b""
    cipher_suites: list[int] = field(default_factory=list)
    compression_methods: bytes = b""
    server_name: str = ""
    ocsp_stapling: bool = False
    supported_curves: list[int] = field(default_factory=list)
    supported_points: bytes = b""
    ticket_supported: bool = False
    session_ticket: bytes = b""
    supported_signature_algorithms: list[int] = field(default_factory=list)
    supported_signature_algorithms_cert: list[int] = field(default_factory=list)
    secure_renegotiation_supported: bool = False
    secure_renegotiation: bytes = b""
    alpn_protocols: list[str] = field(default_factory=list)
    scts: bool = False
    ems: bool = False
    supported_versions: list[int] = field(default_factory=list)
    cookie: bytes = b""
    key_shares: list[KeyShare] = field(default_factory=list)
    early_data: bool = False
    psk_modes: bytes = b""
    psk_identities: list[PskIdentity] = field(default_factory=list)
    psk_binders: list[bytes] = field(default_factory=list)
    next_proto_neg: bool = False
    raw: bytes | None = field(default=None, compare=False, repr=False)

    def marshal(self) -> bytes:
        """Encode the message, returning the cached encoding if present."""
        if self.raw is not None:
            return self.raw

        b = Builder()
        b.add_uint8(HandshakeType.CLIENT_HELLO)
        with b.uint24_prefixed() as body:
            body.add_uint16(self.vers)
            body.add_bytes_with_length(self.random, 32)
            with body.uint8_prefixed() as sid:
                sid.add_bytes(self.session_id)
            _add_uint16_list(body, self.cipher_suites)
            with body.uint8_prefixed() as comp:
                comp.add_bytes(bytes(self.compression_methods))
            extensions = self._marshal_extensions()
            if extensions:
                with body.uint16_prefixed() as ext:
                    ext.add_bytes(extensions)

        self.raw = b.bytes()
        return self.raw

    def _marshal_extensions(self) -> bytes:
        b = Builder()
        if self.server_name:
            with _extension(b, ExtensionType.SERVER_NAME) as data:
                with data.uint16_prefixed() as names:
                    names.add_uint8(0)  # host_name
                    with names.uint16_prefixed() as name:
                        name.add_bytes(_encode_name(self.server_name))
        if self.ocsp_stapling:
            with _extension(b, ExtensionType.STATUS_REQUEST) as data:
                data.add_uint8(STATUS_TYPE_OCSP)
                data.add_uint16(0)  # responder_id_list
                data.add_uint16(0)  # request_extensions
        if self.supported_curves:
            with _extension(b, ExtensionType.SUPPORTED_CURVES) as data:
                _add_uint16_list(data, self.supported_curves)
        if self.supported_points:
            with _extension(b, ExtensionType.SUPPORTED_POINTS) as data:
                with data.uint8_prefixed() as points:
                    points.add_bytes(bytes(self.supported_points))
        if self.ticket_supported:
            with _extension(b, ExtensionType.SESSION_TICKET) as data:
                data.add_bytes(self.session_ticket)
        if self.supported_signature_algorithms:
            with _extension(b, ExtensionType.SIGNATURE_ALGORITHMS) as data:
                _add_uint16_list(data, self.supported_signature_algorithms)
        if self.supported_signature_algorithms_cert:
            with _extension(b, ExtensionType.SIGNATURE_ALGORITHMS_CERT) as data:
                _add_uint16_list(data, self.supported_signature_algorithms_cert)
        if self.secure_renegotiation_supported:
            with _extension(b, ExtensionType.RENEGOTIATION_INFO) as data:
                with data.uint8_prefixed() as reneg:
                    reneg.add_bytes(self.secure_renegotiation)
        if self.alpn_protocols:
            with _extension(b, ExtensionType.ALPN) as data:
                with data.uint16_prefixed() as protos:
                    for proto in self.alpn_protocols:
                        with protos.uint8_prefixed() as entry:
                            entry.add_bytes(_encode_name(proto))
        if self.scts:
            b.add_uint16(ExtensionType.SCT)
            b.add_uint16(0)
        if self.supported_versions:
            with _extension(b, ExtensionType.SUPPORTED_VERSIONS) as data:
                with data.uint8_prefixed() as versions:
                    for vers in self.supported_versions:
                        versions.add_uint16(vers)
        if self.cookie:
            with _extension(b, ExtensionType.COOKIE) as data:
                with data.uint16_prefixed() as cookie:
                    cookie.add_bytes(self.cookie)
        if self.key_shares:
            with _extension(b, ExtensionType.KEY_SHARE) as data:
                with data.uint16_prefixed() as shares:
                    for share in self.key_shares:
                        shares.add_uint16(share.group)
                        with shares.uint16_prefixed() as key:
                            key.add_bytes(share.data)
        if self.early_data:
            b.add_uint16(ExtensionType.EARLY_DATA)
            b.add_uint16(0)
        if self.psk_modes:
            with _extension(b, ExtensionType.PSK_MODES) as data:
                with data.uint8_prefixed() as modes:
                    modes.add_bytes(bytes(self.psk_modes))
        if self.psk_identities:  # pre_shared_key must be the last extension
            with _extension(b, ExtensionType.PRE_SHARED_KEY) as data:
                with data.uint16_prefixed() as identities:
                    for psk in self.psk_identities:
                        with identities.uint16_prefixed() as label:
                            label.add_bytes(psk.label)
                        identities.add_uint32(psk.obfuscated_ticket_age)
                data.add_bytes(_binders_block(self.psk_binders))
        return b.bytes()

    def marshal_without_binders(self) -> bytes:
        """The encoding truncated before the PSK binders list."""
        binders_len = 2 + sum(1 + len(binder) for binder in self.psk_binders)
        full = self.marshal()
        return full[: len(full) - binders_len]

    def update_binders(self, binders: Iterable[bytes]) -> None:
        """Replace the PSK binders, keeping every binder's length unchanged."""
        binders = [bytes(binder) for binder in binders]
        if len(binders) != len(self.psk_binders) or any(
            len(new) != len(old) for new, old in zip(binders, self.psk_binders)
        ):
            raise ValueError("tls: internal error: pskBinders length mismatch")
        self.psk_binders = binders
        if self.raw is not None:
            updated = self.marshal_without_binders() + _binders_block(binders)
            if len(updated) != len(self.raw):
                raise ValueError("tls: internal error: failed to update binders")
            self.raw = updated

    @classmethod
    def unmarshal(cls, data: bytes) -> ClientHello:
        """Decode a ClientHello, raising DecodeError if it is malformed."""
        data = bytes(data)
        m = cls(raw=data)
        s = Reader(data)
        s.skip(4)  # message type and uint24 length
        m.vers = s.read_uint16()
        m.random = s.read_bytes(32)
        m.session_id = s.read_uint8_prefixed()

        m.cipher_suites = _read_uint16_list(Reader(s.read_uint16_prefixed()))
        m.secure_renegotiation_supported = SCSV_RENEGOTIATION in m.cipher_suites
        m.compression_methods = s.read_uint8_prefixed()

        if s.empty():
            return m

        extensions = Reader(s.read_uint16_prefixed())
        _require(s.empty(), "trailing data after extensions")

        while not extensions.empty():
            ext_type = extensions.read_uint16()
            ext_data = Reader(extensions.read_uint16_prefixed())
            if not m._parse_extension(ext_type, ext_data, extensions):
                continue
            _require(ext_data.empty(), f"trailing data in extension {ext_type}")
        return m

    def _parse_extension(self, ext_type: int, data: Reader, rest: Reader) -> bool:
        """Parse one known extension; return False for unknown ones."""
        if ext_type == ExtensionType.SERVER_NAME:
            names = Reader(data.read_uint16_prefixed())
            _require(not names.empty(), "empty server name list")
            while not names.empty():
                name_type = names.read_uint8()
                name = names.read_uint16_prefixed()
                _require(bool(name), "empty server name")
                if name_type != 0:
                    continue
                _require(not self.server_name, "multiple host names")
                self.server_name = _decode_name(name)
                _require(not self.server_name.endswith("."), "SNI with trailing dot")
        elif ext_type == ExtensionType.STATUS_REQUEST:
            status_type = data.read_uint8()
            data.read_uint16_prefixed()
            data.read_uint16_prefixed()
            self.ocsp_stapling = status_type == STATUS_TYPE_OCSP
        elif ext_type == ExtensionType.SUPPORTED_CURVES:
            self.supported_curves = _read_nonempty_uint16_list(data, "curve")
        elif ext_type == ExtensionType.SUPPORTED_POINTS:
            self.supported_points = data.read_uint8_prefixed()
            _require(bool(self.supported_points), "empty point format list")
        elif ext_type == ExtensionType.SESSION_TICKET:
            self.ticket_supported = True
            self.session_ticket = data.read_bytes(len(data))
        elif ext_type == ExtensionType.SIGNATURE_ALGORITHMS:
            self.supported_signature_algorithms = _read_nonempty_uint16_list(
                data, "signature algorithm"
            )
        elif ext_type == ExtensionType.SIGNATURE_ALGORITHMS_CERT:
            self.supported_signature_algorithms_cert = _read_nonempty_uint16_list(
                data, "signature algorithm"
            )
        elif ext_type == ExtensionType.RENEGOTIATION_INFO:
            self.secure_renegotiation = data.read_uint8_prefixed()
            self.secure_renegotiation_supported = True
        elif ext_type == ExtensionType.ALPN:
            protos = Reader(data.read_uint16_prefixed())
            _require(not protos.empty(), "empty ALPN list")
            while not protos.empty():
                proto = protos.read_uint8_prefixed()
                _require(bool(proto), "empty ALPN protocol")
                self.alpn_protocols.append(_decode_name(proto))
        elif ext_type == ExtensionType.SCT:
            self.scts = True
        elif ext_type == ExtensionType.SUPPORTED_VERSIONS:
            versions = Reader(data.read_uint8_prefixed())
            _require(not versions.empty(), "empty supported versions list")
            self.supported_versions = _read_uint16_list(versions)
        elif ext_type == ExtensionType.COOKIE:
            self.cookie = data.read_uint16_prefixed()
            _require(bool(self.cookie), "empty cookie")
        elif ext_type == ExtensionType.KEY_SHARE:
            shares = Reader(data.read_uint16_prefixed())
            while not shares.empty():
                group = shares.read_uint16()
                key = shares.read_uint16_prefixed()
                _require(bool(key), "empty key share")
                self.key_shares.append(KeyShare(group, key))
        elif ext_type == ExtensionType.EARLY_DATA:
            self.early_data = True
        elif ext_type == ExtensionType.PSK_MODES:
            self.psk_modes = data.read_uint8_prefixed()
        elif ext_type == ExtensionType.PRE_SHARED_KEY:
            _require(rest.empty(), "pre_shared_key must be the last extension")
            identities = Reader(data.read_uint16_prefixed())
            _require(not identities.empty(), "empty PSK identity list")
            while not identities.empty():
                label = identities.read_uint16_prefixed()
                age = identities.read_uint32()
                _require(bool(label), "empty PSK identity")
                self.psk_identities.append(PskIdentity(label, age))
            binders = Reader(data.read_uint16_prefixed())
            _require(not binders.empty(), "empty PSK binder list")
            while not binders.empty():
                binder = binders.read_uint8_prefixed()
                _require(bool(binder), "empty PSK binder")
                self.psk_binders.append(binder)
        else:
            return False
        return True