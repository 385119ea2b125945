"""Handshake messages used by TLS 1.2 and earlier."""

from __future__ import annotations

from dataclasses import dataclass, field

from .wire import STATUS_TYPE_OCSP, Builder, DecodeError, HandshakeType, Reader

__all__ = [
    "CertificateMsg",
    "ServerKeyExchange",
    "CertificateStatus",
    "ServerHelloDone",
    "ClientKeyExchange",
    "Finished",
    "CertificateRequest",
    "CertificateVerify",
    "NewSessionTicket",
    "HelloRequest",
]


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise DecodeError(message)


def _declared_length(data: bytes) -> int:
    return int.from_bytes(data[1:4], "big")


def _simple_message(msg_type: int, body: bytes) -> bytes:
    b = Builder()
    b.add_uint8(msg_type)
    with b.uint24_prefixed() as inner:
        inner.add_bytes(body)
    return b.bytes()


def _start_message(data: bytes) -> Reader:
    s = Reader(data)
    s.skip(4)  # message type and uint24 length
    return s


@dataclass
class CertificateMsg:
    """The Certificate message: a list of DER certificates, leaf first."""

    certificates: list[bytes] = field(default_factory=list)
    raw: bytes | None = field(default=None, compare=False, repr=False)

    def marshal(self) -> bytes:
        if self.raw is not None:
            return self.raw
        b = Builder()
        b.add_uint8(HandshakeType.CERTIFICATE)
        with b.uint24_prefixed() as body:
            with body.uint24_prefixed() as certs:
                for cert in self.certificates:
                    with certs.uint24_prefixed() as entry:
                        entry.add_bytes(cert)
        self.raw = b.bytes()
        return self.raw

    @classmethod
    def unmarshal(cls, data: bytes) -> CertificateMsg:
        data = bytes(data)
        _require(len(data) >= 7, "Certificate message too short")
        certs_len = int.from_bytes(data[4:7], "big")
        _require(len(data) == certs_len + 7, "Certificate list length mismatch")

        certificates = []
        rest = data[7:]
        while rest:
            _require(len(rest) >= 4, "truncated certificate entry")
            cert_len = int.from_bytes(rest[:3], "big")
            _require(len(rest) >= 3 + cert_len, "truncated certificate")
            certificates.append(rest[3:3 + cert_len])
            rest = rest[3 + cert_len:]
        return cls(certificates=certificates, raw=data)


@dataclass
class ServerKeyExchange:
    """The ServerKeyExchange message; ``key`` is the opaque body."""

    key: bytes = b""
    raw: bytes | None = field(default=None, compare=False, repr=False)

    def marshal(self) -> bytes:
        if self.raw is not None:
            return self.raw
        self.raw = _simple_message(HandshakeType.SERVER_KEY_EXCHANGE, self.key)
        return self.raw

    @classmethod
    def unmarshal(cls, data: bytes) -> ServerKeyExchange:
        data = bytes(data)
        _require(len(data) >= 4, "ServerKeyExchange message too short")
        return cls(key=data[4:], raw=data)


@dataclass
class CertificateStatus:
    """The CertificateStatus message carrying an OCSP response."""

    response: bytes = b""
    raw: bytes | None = field(default=None, compare=False, repr=False)

    def marshal(self) -> bytes:
        if self.raw is not None:
            return self.raw
        b = Builder()
        b.add_uint8(HandshakeType.CERTIFICATE_STATUS)
        with b.uint24_prefixed() as body:
            body.add_uint8(STATUS_TYPE_OCSP)
            with body.uint24_prefixed() as response:
                response.add_bytes(self.response)
        self.raw = b.bytes()
        return self.raw

    @classmethod
    def unmarshal(cls, data: bytes) -> CertificateStatus:
        data = bytes(data)
        s = _start_message(data)
        _require(s.read_uint8() == STATUS_TYPE_OCSP, "unknown certificate status type")
        response = s.read_uint24_prefixed()
        _require(bool(response), "empty OCSP response")
        _require(s.empty(), "trailing data in CertificateStatus")
        return cls(response=response, raw=data)


@dataclass
class ServerHelloDone:
    """The empty ServerHelloDone message."""

    def marshal(self) -> bytes:
        return bytes([HandshakeType.SERVER_HELLO_DONE, 0, 0, 0])

    @classmethod
    def unmarshal(cls, data: bytes) -> ServerHelloDone:
        _require(len(data) == 4, "ServerHelloDone must be 4 bytes")
        return cls()


@dataclass
class ClientKeyExchange:
    """The ClientKeyExchange message; ``ciphertext`` is the opaque body."""

    ciphertext: bytes = b""
    raw: bytes | None = field(default=None, compare=False, repr=False)

    def marshal(self) -> bytes:
        if self.raw is not None:
            return self.raw
        self.raw = _simple_message(HandshakeType.CLIENT_KEY_EXCHANGE, self.ciphertext)
        return self.raw

    @classmethod
    def unmarshal(cls, data: bytes) -> ClientKeyExchange:
        data = bytes(data)
        _require(len(data) >= 4, "ClientKeyExchange message too short")
        _require(_declared_length(data) == len(data) - 4,
                 "ClientKeyExchange length mismatch")
        return cls(ciphertext=data[4:], raw=data)


@dataclass
class Finished:
    """The Finished message."""

    verify_data: bytes = b""
    raw: bytes | None = field(default=None, compare=False, repr=False)

    def marshal(self) -> bytes:
        if self.raw is not None:
            return self.raw
        self.raw = _simple_message(HandshakeType.FINISHED, self.verify_data)
        return self.raw

    @classmethod
    def unmarshal(cls, data: bytes) -> Finished:
        data = bytes(data)
        s = Reader(data)
        s.skip(1)
        verify_data = s.read_uint24_prefixed()
        _require(s.empty(), "trailing data in Finished")
        return cls(verify_data=verify_data, raw=data)


@dataclass
class CertificateRequest:
    """The TLS 1.2 (and earlier) CertificateRequest message.

    ``has_signature_algorithm`` selects the TLS 1.2 format, which carries
    a list of supported signature algorithms.
    """

    has_signature_algorithm: bool = False
    certificate_types: bytes = b""
    supported_signature_algorithms: list[int] = field(default_factory=list)
    certificate_authorities: list[bytes] = field(default_factory=list)
    raw: bytes | None = field(default=None, compare=False, repr=False)

    def marshal(self) -> bytes:
        if self.raw is not None:
            return self.raw
        b = Builder()
        b.add_uint8(HandshakeType.CERTIFICATE_REQUEST)
        with b.uint24_prefixed() as body:
            with body.uint8_prefixed() as types:
                types.add_bytes(bytes(self.certificate_types))
            if self.has_signature_algorithm:
                with body.uint16_prefixed() as algs:
                    for alg in self.supported_signature_algorithms:
                        algs.add_uint16(alg)
            with body.uint16_prefixed() as cas:
                for ca in self.certificate_authorities:
                    with cas.uint16_prefixed() as entry:
                        entry.add_bytes(ca)
        self.raw = b.bytes()
        return self.raw

    @classmethod
    def unmarshal(cls, data: bytes, has_signature_algorithm: bool = False) -> CertificateRequest:
        data = bytes(data)
        _require(len(data) >= 5, "CertificateRequest message too short")
        _require(len(data) - 4 == _declared_length(data),
                 "CertificateRequest length mismatch")
        m = cls(has_signature_algorithm=has_signature_algorithm, raw=data)

        s = Reader(data[4:])
        num_types = s.read_uint8()
        _require(num_types != 0 and len(s) > num_types, "bad certificate types list")
        m.certificate_types = s.read_bytes(num_types)

        if has_signature_algorithm:
            algs_len = s.read_uint16()
            _require(algs_len % 2 == 0, "odd signature algorithms length")
            algs = Reader(s.read_bytes(algs_len))
            while not algs.empty():
                m.supported_signature_algorithms.append(algs.read_uint16())

        cas = Reader(s.read_uint16_prefixed())
        while not cas.empty():
            m.certificate_authorities.append(cas.read_uint16_prefixed())

        _require(s.empty(), "trailing data in CertificateRequest")
        return m


@dataclass
class CertificateVerify:
    """The CertificateVerify message.

    ``has_signature_algorithm`` selects the TLS 1.2 format, which names
    the signature scheme before the signature.
    """

    has_signature_algorithm: bool = False
    signature_algorithm: int = 0
    signature: bytes = b""
    raw: bytes | None = field(default=None, compare=False, repr=False)

    def marshal(self) -> bytes:
        if self.raw is not None:
            return self.raw
        b = Builder()
        b.add_uint8(HandshakeType.CERTIFICATE_VERIFY)
        with b.uint24_prefixed() as body:
            if self.has_signature_algorithm:
                body.add_uint16(self.signature_algorithm)
            with body.uint16_prefixed() as sig:
                sig.add_bytes(self.signature)
        self.raw = b.bytes()
        return self.raw

    @classmethod
    def unmarshal(cls, data: bytes, has_signature_algorithm: bool = False) -> CertificateVerify:
        data = bytes(data)
        m = cls(has_signature_algorithm=has_signature_algorithm, raw=data)
        s = _start_message(data)
        if has_signature_algorithm:
            m.signature_algorithm = s.read_uint16()
        m.signature = s.read_uint16_prefixed()
        _require(s.empty(), "trailing data in CertificateVerify")
        return m


@dataclass
class NewSessionTicket:
    """The TLS 1.2 NewSessionTicket message; the lifetime hint is sent as zero."""

    ticket: bytes = b""
    raw: bytes | None = field(default=None, compare=False, repr=False)

    def marshal(self) -> bytes:
        if self.raw is not None:
            return self.raw
        b = Builder()
        b.add_uint8(HandshakeType.NEW_SESSION_TICKET)
        with b.uint24_prefixed() as body:
            body.add_uint32(0)  # ticket_lifetime_hint
            with body.uint16_prefixed() as ticket:
                ticket.add_bytes(self.ticket)
        self.raw = b.bytes()
        return self.raw

    @classmethod
    def unmarshal(cls, data: bytes) -> NewSessionTicket:
        data = bytes(data)
        _require(len(data) >= 10, "NewSessionTicket message too short")
        _require(len(data) - 4 == _declared_length(data),
                 "NewSessionTicket length mismatch")
        ticket_len = int.from_bytes(data[8:10], "big")
        _require(len(data) - 10 == ticket_len, "session ticket length mismatch")
        return cls(ticket=data[10:], raw=data)


@dataclass
class HelloRequest:
    """The empty HelloRequest message."""

    def marshal(self) -> bytes:
        return bytes([HandshakeType.HELLO_REQUEST, 0, 0, 0])

    @classmethod
    def unmarshal(cls, data: bytes) -> HelloRequest:
        _require(len(data) == 4, "HelloRequest must be 4 bytes")
        return cls()