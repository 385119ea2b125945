"""TLS 1.3 handshake messages and the shared certificate-chain encoding."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import Iterable, Iterator

from .wire import (
    STATUS_TYPE_OCSP,
    Builder,
    DecodeError,
    ExtensionType,
    HandshakeType,
    Reader,
)

__all__ = [
    "CertificateChain",
    "marshal_certificate",
    "unmarshal_certificate",
    "EncryptedExtensions",
    "EndOfEarlyData",
    "KeyUpdate",
    "NewSessionTicketTLS13",
    "CertificateRequestTLS13",
    "CertificateMsgTLS13",
]


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


def _add_uint16_list(b: Builder, values: Iterable[int]) -> None:
    with b.uint16_prefixed() as lst:
        for value in values:
            lst.add_uint16(value)


def _read_nonempty_uint16_list(data: Reader, what: str) -> list[int]:
    lst = Reader(data.read_uint16_prefixed())
    _require(not lst.empty(), f"empty {what} list")
    values = []
    while not lst.empty():
        values.append(lst.read_uint16())
    return values


def _read_single_alpn(data: Reader) -> str:
    protos = Reader(data.read_uint16_prefixed())
    _require(not protos.empty(), "empty ALPN list")
    proto = protos.read_uint8_prefixed()
    _require(bool(proto), "empty ALPN protocol")
    _require(protos.empty(), "more than one ALPN protocol")
    return proto.decode("utf-8", "surrogateescape")


def _iter_extensions(extensions: Reader) -> Iterator[tuple[int, Reader]]:
    while not extensions.empty():
        ext_type = extensions.read_uint16()
        yield ext_type, Reader(extensions.read_uint16_prefixed())


def _start_message(data: bytes) -> Reader:
    s = Reader(data)
    s.skip(4)  # message type and uint24 length
    return s


@dataclass
class CertificateChain:
    """A certificate chain, leaf first, with the leaf's OCSP staple and SCTs.

    ``None`` means the staple or SCT list is absent; it is then not encoded.
    """

    certificate: list[bytes] = field(default_factory=list)
    ocsp_staple: bytes | None = None
    signed_certificate_timestamps: list[bytes] | None = None


def _marshal_leaf_extensions(b: Builder, chain: CertificateChain) -> None:
    if chain.ocsp_staple is not None:
        with _extension(b, ExtensionType.STATUS_REQUEST) as data:
            data.add_uint8(STATUS_TYPE_OCSP)
            with data.uint24_prefixed() as staple:
                staple.add_bytes(chain.ocsp_staple)
    if chain.signed_certificate_timestamps is not None:
        with _extension(b, ExtensionType.SCT) as data:
            with data.uint16_prefixed() as lst:
                for sct in chain.signed_certificate_timestamps:
                    with lst.uint16_prefixed() as entry:
                        entry.add_bytes(sct)


def marshal_certificate(builder: Builder, chain: CertificateChain) -> None:
    """Append the TLS 1.3 CertificateEntry list for ``chain`` to ``builder``.

    Only the leaf certificate carries OCSP and SCT extensions.
    """
    with builder.uint24_prefixed() as certs:
        for index, cert in enumerate(chain.certificate):
            with certs.uint24_prefixed() as entry:
                entry.add_bytes(cert)
            with certs.uint16_prefixed() as exts:
                if index == 0:
                    _marshal_leaf_extensions(exts, chain)


def unmarshal_certificate(reader: Reader) -> CertificateChain:
    """Read a TLS 1.3 CertificateEntry list from ``reader``."""
    chain = CertificateChain()
    cert_list = Reader(reader.read_uint24_prefixed())
    while not cert_list.empty():
        cert = cert_list.read_uint24_prefixed()
        extensions = Reader(cert_list.read_uint16_prefixed())
        chain.certificate.append(cert)
        for ext_type, data in _iter_extensions(extensions):
            if len(chain.certificate) > 1:
                # OCSP and SCTs are only supported for the leaf.
                continue
            if ext_type == ExtensionType.STATUS_REQUEST:
                _require(data.read_uint8() == STATUS_TYPE_OCSP, "unknown status type")
                chain.ocsp_staple = data.read_uint24_prefixed()
                _require(bool(chain.ocsp_staple), "empty OCSP staple")
            elif ext_type == ExtensionType.SCT:
                lst = Reader(data.read_uint16_prefixed())
                _require(not lst.empty(), "empty SCT list")
                if chain.signed_certificate_timestamps is None:
                    chain.signed_certificate_timestamps = []
                while not lst.empty():
                    sct = lst.read_uint16_prefixed()
                    _require(bool(sct), "empty SCT")
                    chain.signed_certificate_timestamps.append(sct)
            else:
                continue
            _require(data.empty(), f"trailing data in extension {ext_type}")
    return chain


@dataclass
class EncryptedExtensions:
    """The EncryptedExtensions message; only ALPN is understood."""

    alpn_protocol: str = ""
    raw: bytes | None = field(default=None, compare=False, repr=False)

    def marshal(self) -> bytes:
        if self.raw is not None:
            return self.raw
        b = Builder()
        b.add_uint8(HandshakeType.ENCRYPTED_EXTENSIONS)
        with b.uint24_prefixed() as body:
            with body.uint16_prefixed() as exts:
                if self.alpn_protocol:
                    with _extension(exts, ExtensionType.ALPN) as data:
                        with data.uint16_prefixed() as protos:
                            with protos.uint8_prefixed() as proto:
                                proto.add_bytes(
                                    self.alpn_protocol.encode("utf-8", "surrogateescape")
                                )
        self.raw = b.bytes()
        return self.raw

    @classmethod
    def unmarshal(cls, data: bytes) -> EncryptedExtensions:
        data = bytes(data)
        m = cls(raw=data)
        s = _start_message(data)
        extensions = Reader(s.read_uint16_prefixed())
        _require(s.empty(), "trailing data after extensions")
        for ext_type, ext_data in _iter_extensions(extensions):
            if ext_type != ExtensionType.ALPN:
                continue
            m.alpn_protocol = _read_single_alpn(ext_data)
            _require(ext_data.empty(), f"trailing data in extension {ext_type}")
        return m


@dataclass
class EndOfEarlyData:
    """The empty EndOfEarlyData message."""

    def marshal(self) -> bytes:
        return bytes([HandshakeType.END_OF_EARLY_DATA, 0, 0, 0])

    @classmethod
    def unmarshal(cls, data: bytes) -> EndOfEarlyData:
        _require(len(data) == 4, "EndOfEarlyData must be 4 bytes")
        return cls()


@dataclass
class KeyUpdate:
    """The KeyUpdate message."""

    update_requested: bool = False
    raw: bytes | None = field(default=None, compare=False, repr=False)

    def marshal(self) -> bytes:
        if self.raw is not None:
            return self.raw
        b = Builder()
        b.add_uint8(HandshakeType.KEY_UPDATE)
        with b.uint24_prefixed() as body:
            body.add_uint8(1 if self.update_requested else 0)
        self.raw = b.bytes()
        return self.raw

    @classmethod
    def unmarshal(cls, data: bytes) -> KeyUpdate:
        data = bytes(data)
        s = _start_message(data)
        value = s.read_uint8()
        _require(s.empty(), "trailing data in KeyUpdate")
        _require(value in (0, 1), f"invalid KeyUpdate request value {value}")
        return cls(update_requested=value == 1, raw=data)


@dataclass
class NewSessionTicketTLS13:
    """The TLS 1.3 NewSessionTicket message."""

    lifetime: int = 0
    age_add: int = 0
    nonce: bytes = b""
    label: bytes = b""
    max_early_data: int = 0
    raw: bytes | None = field(default=None, compare=False, repr=False)

    def marshal(self) -> bytes:
        if self.raw is not None:
            return self.raw
        b = Builder()
        b.add_uint8(HandshakeType.NEW_SESSION_TICKET)
        with b.uint24_prefixed() as body:
            body.add_uint32(self.lifetime)
            body.add_uint32(self.age_add)
            with body.uint8_prefixed() as nonce:
                nonce.add_bytes(self.nonce)
            with body.uint16_prefixed() as label:
                label.add_bytes(self.label)
            with body.uint16_prefixed() as exts:
                if self.max_early_data > 0:
                    with _extension(exts, ExtensionType.EARLY_DATA) as data:
                        data.add_uint32(self.max_early_data)
        self.raw = b.bytes()
        return self.raw

    @classmethod
    def unmarshal(cls, data: bytes) -> NewSessionTicketTLS13:
        data = bytes(data)
        m = cls(raw=data)
        s = _start_message(data)
        m.lifetime = s.read_uint32()
        m.age_add = s.read_uint32()
        m.nonce = s.read_uint8_prefixed()
        m.label = s.read_uint16_prefixed()
        extensions = Reader(s.read_uint16_prefixed())
        _require(s.empty(), "trailing data after extensions")
        for ext_type, ext_data in _iter_extensions(extensions):
            if ext_type != ExtensionType.EARLY_DATA:
                continue
            m.max_early_data = ext_data.read_uint32()
            _require(ext_data.empty(), f"trailing data in extension {ext_type}")
        return m


@dataclass
class CertificateRequestTLS13:
    """The TLS 1.3 CertificateRequest message."""

    ocsp_stapling: bool = False
    scts: bool = False
    supported_signature_algorithms: list[int] = field(default_factory=list)
    supported_signature_algorithms_cert: list[int] = field(default_factory=list)
    certificate_authorities: list[bytes] = field(default_factory=list)
    raw: bytes | None = field(default=None, compare=False, repr=False)

    def marshal(self) -> bytes:
        if self.raw is not None:
            return self.raw
        b = Builder()
        b.add_uint8(HandshakeType.CERTIFICATE_REQUEST)
        with b.uint24_prefixed() as body:
            body.add_uint8(0)  # empty certificate_request_context
            with body.uint16_prefixed() as exts:
                if self.ocsp_stapling:
                    _empty_extension(exts, ExtensionType.STATUS_REQUEST)
                if self.scts:
                    _empty_extension(exts, ExtensionType.SCT)
                if self.supported_signature_algorithms:
                    with _extension(exts, ExtensionType.SIGNATURE_ALGORITHMS) as data:
                        _add_uint16_list(data, self.supported_signature_algorithms)
                if self.supported_signature_algorithms_cert:
                    with _extension(exts, ExtensionType.SIGNATURE_ALGORITHMS_CERT) as data:
                        _add_uint16_list(data, self.supported_signature_algorithms_cert)
                if self.certificate_authorities:
                    with _extension(exts, ExtensionType.CERTIFICATE_AUTHORITIES) as data:
                        with data.uint16_prefixed() as lst:
                            for ca in self.certificate_authorities:
                                with lst.uint16_prefixed() as entry:
                                    entry.add_bytes(ca)
        self.raw = b.bytes()
        return self.raw

    @classmethod
    def unmarshal(cls, data: bytes) -> CertificateRequestTLS13:
        data = bytes(data)
        m = cls(raw=data)
        s = _start_message(data)
        _require(s.read_uint8_prefixed() == b"", "non-empty request context")
        extensions = Reader(s.read_uint16_prefixed())
        _require(s.empty(), "trailing data after extensions")
        for ext_type, ext_data in _iter_extensions(extensions):
            if ext_type == ExtensionType.STATUS_REQUEST:
                m.ocsp_stapling = True
            elif ext_type == ExtensionType.SCT:
                m.scts = True
            elif ext_type == ExtensionType.SIGNATURE_ALGORITHMS:
                m.supported_signature_algorithms = _read_nonempty_uint16_list(
                    ext_data, "signature algorithm"
                )
            elif ext_type == ExtensionType.SIGNATURE_ALGORITHMS_CERT:
                m.supported_signature_algorithms_cert = _read_nonempty_uint16_list(
                    ext_data, "signature algorithm"
                )
            elif ext_type == ExtensionType.CERTIFICATE_AUTHORITIES:
                auths = Reader(ext_data.read_uint16_prefixed())
                _require(not auths.empty(), "empty certificate authorities list")
                while not auths.empty():
                    ca = auths.read_uint16_prefixed()
                    _require(bool(ca), "empty certificate authority")
                    m.certificate_authorities.append(ca)
            else:
                continue
            _require(ext_data.empty(), f"trailing data in extension {ext_type}")
        return m


@dataclass
class CertificateMsgTLS13:
    """The TLS 1.3 Certificate message.

    The leaf's OCSP staple and SCTs are only sent when the matching flag is set.
    """

    certificate: CertificateChain = field(default_factory=CertificateChain)
    ocsp_stapling: bool = False
    scts: bool = False
    raw: bytes | None = field(default=None, compare=False, repr=False)

    def marshal(self) -> bytes:
        if self.raw is not None:
            return self.raw
        chain = replace(
            self.certificate,
            ocsp_staple=self.certificate.ocsp_staple if self.ocsp_stapling else None,
            signed_certificate_timestamps=(
                self.certificate.signed_certificate_timestamps if self.scts else None
            ),
        )
        b = Builder()
        b.add_uint8(HandshakeType.CERTIFICATE)
        with b.uint24_prefixed() as body:
            body.add_uint8(0)  # certificate_request_context
            marshal_certificate(body, chain)
        self.raw = b.bytes()
        return self.raw

    @classmethod
    def unmarshal(cls, data: bytes) -> CertificateMsgTLS13:
        data = bytes(data)
        s = _start_message(data)
        _require(s.read_uint8_prefixed() == b"", "non-empty request context")
        chain = unmarshal_certificate(s)
        _require(s.empty(), "trailing data after certificate list")
        return cls(
            certificate=chain,
            ocsp_stapling=chain.ocsp_staple is not None,
            scts=chain.signed_certificate_timestamps is not None,
            raw=data,
        )