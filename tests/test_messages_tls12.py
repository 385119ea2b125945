import pytest

from tlshello.messages_tls12 import (
    CertificateMsg,
    CertificateRequest,
    CertificateStatus,
    CertificateVerify,
    ClientKeyExchange,
    Finished,
    HelloRequest,
    NewSessionTicket,
    ServerHelloDone,
    ServerKeyExchange,
)
from tlshello.wire import DecodeError, HandshakeType


def test_empty_messages_wire_bytes():
    assert ServerHelloDone().marshal() == bytes([HandshakeType.SERVER_HELLO_DONE, 0, 0, 0])
    assert HelloRequest().marshal() == bytes([HandshakeType.HELLO_REQUEST, 0, 0, 0])


def test_empty_messages_reject_wrong_length():
    with pytest.raises(DecodeError):
        ServerHelloDone.unmarshal(b"\x0e\x00\x00\x00\x00")
    with pytest.raises(DecodeError):
        HelloRequest.unmarshal(b"\x00\x00")
    assert HelloRequest.unmarshal(HelloRequest().marshal()) == HelloRequest()


def test_certificate_msg_round_trip():
    msg = CertificateMsg(certificates=[b"leaf-cert", b"intermediate"])
    data = msg.marshal()
    assert data[0] == HandshakeType.CERTIFICATE
    assert len(data) == 4 + 3 + sum(3 + len(c) for c in msg.certificates)
    parsed = CertificateMsg.unmarshal(data)
    assert parsed.certificates == [b"leaf-cert", b"intermediate"]
    assert parsed.raw == data
    assert parsed.marshal() == data


def test_certificate_msg_empty_list():
    data = CertificateMsg().marshal()
    assert CertificateMsg.unmarshal(data).certificates == []


def test_certificate_msg_errors():
    with pytest.raises(DecodeError):
        CertificateMsg.unmarshal(b"\x0b\x00\x00")
    data = CertificateMsg(certificates=[b"abc"]).marshal()
    with pytest.raises(DecodeError):
        CertificateMsg.unmarshal(data + b"\x00")


def test_server_key_exchange_round_trip():
    msg = ServerKeyExchange(key=b"server-params")
    data = msg.marshal()
    assert ServerKeyExchange.unmarshal(data).key == b"server-params"
    with pytest.raises(DecodeError):
        ServerKeyExchange.unmarshal(b"\x0c\x00")


def test_certificate_status_round_trip_and_errors():
    data = CertificateStatus(response=b"ocsp-response").marshal()
    assert CertificateStatus.unmarshal(data).response == b"ocsp-response"
    with pytest.raises(DecodeError):
        CertificateStatus.unmarshal(CertificateStatus(response=b"").marshal())
    bad_type = bytearray(data)
    bad_type[4] = 2
    with pytest.raises(DecodeError):
        CertificateStatus.unmarshal(bytes(bad_type))


def test_client_key_exchange_round_trip_and_length_check():
    data = ClientKeyExchange(ciphertext=b"encrypted-pms").marshal()
    assert ClientKeyExchange.unmarshal(data).ciphertext == b"encrypted-pms"
    with pytest.raises(DecodeError):
        ClientKeyExchange.unmarshal(data + b"x")


def test_finished_round_trip_and_trailing_data():
    data = Finished(verify_data=b"\x01" * 12).marshal()
    assert Finished.unmarshal(data).verify_data == b"\x01" * 12
    with pytest.raises(DecodeError):
        Finished.unmarshal(data + b"\x00")


@pytest.mark.parametrize("has_sig", [False, True])
def test_certificate_request_round_trip(has_sig):
    msg = CertificateRequest(
        has_signature_algorithm=has_sig,
        certificate_types=b"\x01\x40",
        supported_signature_algorithms=[0x0403, 0x0804] if has_sig else [],
        certificate_authorities=[b"ca-one", b"ca-two"],
    )
    data = msg.marshal()
    parsed = CertificateRequest.unmarshal(data, has_sig)
    assert parsed == msg
    assert parsed.raw == data


def test_certificate_request_errors():
    no_types = CertificateRequest(certificate_types=b"").marshal()
    with pytest.raises(DecodeError):
        CertificateRequest.unmarshal(no_types)
    msg = CertificateRequest(
        has_signature_algorithm=True,
        certificate_types=b"\x01",
        supported_signature_algorithms=[0x0401],
    ).marshal()
    with pytest.raises(DecodeError):
        CertificateRequest.unmarshal(msg + b"\x00")


def test_certificate_request_odd_signature_length():
    body = b"\x01\x01" + b"\x00\x03\x04\x01\x00" + b"\x00\x00"
    data = bytes([HandshakeType.CERTIFICATE_REQUEST]) + len(body).to_bytes(3, "big") + body
    with pytest.raises(DecodeError):
        CertificateRequest.unmarshal(data, True)


@pytest.mark.parametrize("has_sig", [False, True])
def test_certificate_verify_round_trip(has_sig):
    msg = CertificateVerify(
        has_signature_algorithm=has_sig,
        signature_algorithm=0x0804 if has_sig else 0,
        signature=b"signature-bytes",
    )
    data = msg.marshal()
    assert CertificateVerify.unmarshal(data, has_sig) == msg
    with pytest.raises(DecodeError):
        CertificateVerify.unmarshal(data + b"\x00", has_sig)


def test_new_session_ticket_round_trip_and_errors():
    data = NewSessionTicket(ticket=b"opaque-ticket").marshal()
    assert data[4:8] == b"\x00\x00\x00\x00"
    assert NewSessionTicket.unmarshal(data).ticket == b"opaque-ticket"
    with pytest.raises(DecodeError):
        NewSessionTicket.unmarshal(data[:9])
    broken = bytearray(data)
    broken[9] += 1
    with pytest.raises(DecodeError):
        NewSessionTicket.unmarshal(bytes(broken))


def test_marshal_returns_cached_raw():
    msg = Finished(verify_data=b"abc")
    first = msg.marshal()
    msg.verify_data = b"changed"
    assert msg.marshal() == first