import pytest

from tlshello.wire import Builder, DecodeError, Reader


def test_uint16_is_big_endian():
    b = Builder()
    b.add_uint16(0x0102)
    assert b.bytes() == b"\x01\x02"


def test_uint24_prefixed_block():
    b = Builder()
    with b.uint24_prefixed() as inner:
        inner.add_bytes(b"abc")
    assert b.bytes() == b"\x00\x00\x03abc"


def test_integer_round_trip():
    b = Builder()
    b.add_uint8(7)
    b.add_uint16(0xBEEF)
    b.add_uint24(0x123456)
    b.add_uint32(0xDEADBEEF)
    b.add_uint64(0x0123456789ABCDEF)
    r = Reader(b.bytes())
    assert r.read_uint8() == 7
    assert r.read_uint16() == 0xBEEF
    assert r.read_uint24() == 0x123456
    assert r.read_uint32() == 0xDEADBEEF
    assert r.read_uint64() == 0x0123456789ABCDEF
    assert r.empty()


def test_nested_prefixes_round_trip():
    b = Builder()
    with b.uint16_prefixed() as outer:
        with outer.uint8_prefixed() as inner:
            inner.add_bytes(b"hello")
        outer.add_uint16(5)
    r = Reader(b.bytes())
    body = Reader(r.read_uint16_prefixed())
    assert r.empty()
    assert body.read_uint8_prefixed() == b"hello"
    assert body.read_uint16() == 5
    assert body.empty()


def test_empty_prefixed_block_writes_zero_length():
    b = Builder()
    with b.uint16_prefixed():
        pass
    r = Reader(b.bytes())
    assert r.read_uint16_prefixed() == b""
    assert r.empty()


@pytest.mark.parametrize(
    "method,value",
    [("add_uint8", 256), ("add_uint16", 1 << 16), ("add_uint24", 1 << 24),
     ("add_uint32", 1 << 32), ("add_uint8", -1)],
)
def test_out_of_range_values_raise(method, value):
    with pytest.raises(ValueError):
        getattr(Builder(), method)(value)


def test_add_bytes_with_length_checks_size():
    b = Builder()
    b.add_bytes_with_length(b"x" * 32, 32)
    assert len(b) == 32
    with pytest.raises(ValueError):
        b.add_bytes_with_length(b"x" * 31, 32)


def test_oversized_uint8_block_raises_and_leaves_builder_untouched():
    b = Builder()
    b.add_uint8(1)
    with pytest.raises(ValueError):
        with b.uint8_prefixed() as inner:
            inner.add_bytes(b"z" * 256)
    assert b.bytes() == Builder_with_one()


def Builder_with_one():
    b = Builder()
    b.add_uint8(1)
    return b.bytes()


def test_exception_inside_block_discards_block():
    b = Builder()
    with pytest.raises(RuntimeError):
        with b.uint16_prefixed() as inner:
            inner.add_bytes(b"abc")
            raise RuntimeError("abort")
    assert len(b) == 0


def test_short_reads_raise_decode_error():
    with pytest.raises(DecodeError):
        Reader(b"\x01").read_uint16()
    with pytest.raises(DecodeError):
        Reader(b"\x05ab").read_uint8_prefixed()
    with pytest.raises(DecodeError):
        Reader(b"").skip(1)


def test_decode_error_is_value_error():
    with pytest.raises(ValueError):
        Reader(b"\x00").read_uint32()


def test_skip_and_remaining_length():
    r = Reader(b"\x01\x02\x03\x04")
    r.skip(3)
    assert len(r) == 1
    assert not r.empty()
    assert r.read_bytes(1) == b"\x04"
    assert r.empty()


def test_uint24_prefixed_round_trip():
    payload = bytes(range(200)) * 3
    b = Builder()
    with b.uint24_prefixed() as inner:
        inner.add_bytes(payload)
    assert Reader(b.bytes()).read_uint24_prefixed() == payload