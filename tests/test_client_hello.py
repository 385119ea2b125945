import pytest

from tlshello.client_hello import ClientHello, KeyShare, PskIdentity
from tlshello.wire import (
    SCSV_RENEGOTIATION,
    Builder,
    DecodeError,
    ExtensionType,
    HandshakeType,
)


def _full_hello() -> ClientHello:
    return ClientHello(
        vers=0x0303,
        random=bytes(range(32)),
        session_id=bytes(range(32, 64)),
        cipher_suites=[0x1301, 0x1302, 0xC02B],
        compression_methods=b"\x00",
        server_name="example.com",
        ocsp_stapling=True,
        supported_curves=[29, 23],
        supported_points=b"\x00",
        ticket_supported=True,
        session_ticket=b"ticket-bytes",
        supported_signature_algorithms=[0x0403, 0x0804],
        supported_signature_algorithms_cert=[0x0403],
        secure_renegotiation_supported=True,
        secure_renegotiation=b"",
        alpn_protocols=["h2", "http/1.1"],
        scts=True,
        supported_versions=[0x0304, 0x0303],
        cookie=b"cookie",
        key_shares=[KeyShare(29, b"\x01" * 32)],
        early_data=True,
        psk_modes=b"\x01",
        psk_identities=[PskIdentity(b"label", 1234)],
        psk_binders=[b"\xaa" * 32],
    )


def _ext(code: int, data: bytes = b"") -> bytes:
    b = Builder()
    b.add_uint16(code)
    with b.uint16_prefixed() as body:
        body.add_bytes(data)
    return b.bytes()


def _raw_hello(extensions: bytes) -> bytes:
    b = Builder()
    b.add_uint8(HandshakeType.CLIENT_HELLO)
    with b.uint24_prefixed() as body:
        body.add_uint16(0x0303)
        body.add_bytes(bytes(32))
        with body.uint8_prefixed():
            pass
        with body.uint16_prefixed() as suites:
            suites.add_uint16(0x1301)
        with body.uint8_prefixed() as comp:
            comp.add_uint8(0)
        with body.uint16_prefixed() as ext:
            ext.add_bytes(extensions)
    return b.bytes()


def _server_name_data(*names: tuple[int, bytes]) -> bytes:
    b = Builder()
    with b.uint16_prefixed() as lst:
        for name_type, name in names:
            lst.add_uint8(name_type)
            with lst.uint16_prefixed() as entry:
                entry.add_bytes(name)
    return b.bytes()


def test_full_round_trip():
    hello = _full_hello()
    decoded = ClientHello.unmarshal(hello.marshal())
    assert decoded == hello
    assert decoded.marshal() == hello.marshal()


def test_header_and_length():
    raw = _full_hello().marshal()
    assert raw[0] == HandshakeType.CLIENT_HELLO
    assert int.from_bytes(raw[1:4], "big") == len(raw) - 4


def test_minimal_hello_omits_extension_block():
    hello = ClientHello(vers=0x0301, random=bytes(32), cipher_suites=[0x002F],
                        compression_methods=b"\x00")
    raw = hello.marshal()
    # type, length, version, random, empty session id, suites, compression
    assert len(raw) == 4 + 2 + 32 + 1 + 2 + 2 + 2
    assert raw.endswith(b"\x00\x02\x00\x2f\x01\x00")
    decoded = ClientHello.unmarshal(raw)
    assert decoded == hello
    assert decoded.server_name == ""
    assert decoded.supported_versions == []


def test_marshal_is_cached():
    hello = _full_hello()
    first = hello.marshal()
    hello.server_name = "changed.example.com"
    assert hello.marshal() is first


def test_wrong_random_length_rejected():
    with pytest.raises(ValueError):
        ClientHello(random=b"short").marshal()


def test_scsv_sets_secure_renegotiation():
    hello = ClientHello(random=bytes(32), cipher_suites=[0x1301, SCSV_RENEGOTIATION],
                        compression_methods=b"\x00")
    decoded = ClientHello.unmarshal(hello.marshal())
    assert decoded.secure_renegotiation_supported is True
    assert decoded.cipher_suites == [0x1301, SCSV_RENEGOTIATION]


def test_truncated_data_rejected():
    raw = _full_hello().marshal()
    with pytest.raises(DecodeError):
        ClientHello.unmarshal(raw[:30])


def test_trailing_dot_in_sni_rejected():
    raw = _raw_hello(_ext(ExtensionType.SERVER_NAME,
                          _server_name_data((0, b"example.com."))))
    with pytest.raises(DecodeError):
        ClientHello.unmarshal(raw)


def test_duplicate_host_name_rejected():
    data = _server_name_data((0, b"a.example.com"), (0, b"b.example.com"))
    with pytest.raises(DecodeError):
        ClientHello.unmarshal(_raw_hello(_ext(ExtensionType.SERVER_NAME, data)))


def test_non_host_name_entries_are_skipped():
    data = _server_name_data((1, b"other"), (0, b"example.com"))
    decoded = ClientHello.unmarshal(_raw_hello(_ext(ExtensionType.SERVER_NAME, data)))
    assert decoded.server_name == "example.com"


def test_unknown_extension_is_ignored():
    raw = _raw_hello(_ext(0x1234, b"anything") + _ext(ExtensionType.SCT))
    decoded = ClientHello.unmarshal(raw)
    assert decoded.scts is True


def test_sct_with_data_rejected():
    with pytest.raises(DecodeError):
        ClientHello.unmarshal(_raw_hello(_ext(ExtensionType.SCT, b"\x00")))


def test_pre_shared_key_must_be_last():
    hello = _full_hello()
    raw = hello.marshal()
    psk_start = len(hello.marshal_without_binders())
    # Locate the pre_shared_key extension and append another after it.
    b = Builder()
    with b.uint16_prefixed() as lst:
        with lst.uint16_prefixed() as ident:
            ident.add_bytes(b"label")
        lst.add_uint32(0)
    with b.uint16_prefixed() as binders:
        with binders.uint8_prefixed() as binder:
            binder.add_bytes(b"\x01")
    psk = _ext(ExtensionType.PRE_SHARED_KEY, b.bytes())
    with pytest.raises(DecodeError):
        ClientHello.unmarshal(_raw_hello(psk + _ext(ExtensionType.EARLY_DATA)))
    assert ClientHello.unmarshal(_raw_hello(psk)).psk_identities == [
        PskIdentity(b"label", 0)
    ]
    assert raw[psk_start:] != b""


def test_trailing_bytes_after_extensions_rejected():
    raw = _raw_hello(_ext(ExtensionType.EARLY_DATA)) + b"\x00"
    fixed = bytearray(raw)
    length = len(raw) - 4
    fixed[1:4] = length.to_bytes(3, "big")
    with pytest.raises(DecodeError):
        ClientHello.unmarshal(bytes(fixed))


def test_marshal_without_binders_is_prefix():
    hello = _full_hello()
    full = hello.marshal()
    without = hello.marshal_without_binders()
    binder = hello.psk_binders[0]
    assert full.startswith(without)
    assert full[len(without):] == bytes([0, len(binder) + 1, len(binder)]) + binder


def test_update_binders_rewrites_raw():
    hello = _full_hello()
    before = hello.marshal()
    new_binder = b"\x55" * 32
    hello.update_binders([new_binder])
    after = hello.marshal()
    assert len(after) == len(before)
    assert after.endswith(new_binder)
    assert ClientHello.unmarshal(after).psk_binders == [new_binder]


def test_update_binders_length_mismatch():
    hello = _full_hello()
    hello.marshal()
    with pytest.raises(ValueError):
        hello.update_binders([b"\x00" * 31])
    with pytest.raises(ValueError):
        hello.update_binders([b"\x00" * 32, b"\x00" * 32])


def test_empty_key_share_data_rejected():
    b = Builder()
    with b.uint16_prefixed() as shares:
        shares.add_uint16(29)
        with shares.uint16_prefixed():
            pass
    with pytest.raises(DecodeError):
        ClientHello.unmarshal(_raw_hello(_ext(ExtensionType.KEY_SHARE, b.bytes())))