# tlshello

`tlshello` reads and writes TLS handshake messages byte for byte, and
decodes CPU feature bits into named capability flags. It has no
dependencies beyond the standard library.

## Installation

```
pip install .
```

To run the test suite as well:

```
pip install ".[test]"
pytest
```

## Handshake messages

Each message is a dataclass. `marshal()` returns the wire bytes, including
the 4-byte handshake header, and caches them in the `raw` field. The
`unmarshal()` class method parses wire bytes and raises
`tlshello.wire.DecodeError` (a `ValueError`) if they are truncated or
malformed.

```python
from tlshello.client_hello import ClientHello, KeyShare

hello = ClientHello(
    vers=0x0303,
    random=bytes(32),
    session_id=bytes(32),
    cipher_suites=[0x1301, 0xC02B],
    compression_methods=b"\x00",
    server_name="example.com",
    supported_versions=[0x0304, 0x0303],
    key_shares=[KeyShare(group=29, data=bytes(32))],
)
raw = hello.marshal()
parsed = ClientHello.unmarshal(raw)
assert parsed.server_name == "example.com"
```

The modules are:

- `tlshello.client_hello`: `ClientHello`, `KeyShare` and `PskIdentity`,
  along with PSK binder handling (`marshal_without_binders`,
  `update_binders`).
- `tlshello.server_hello`: `ServerHello`, which also covers the
  HelloRetryRequest form (`selected_group`, `cookie`).
- `tlshello.messages_tls13`: `EncryptedExtensions`, `EndOfEarlyData`,
  `KeyUpdate`, `NewSessionTicketTLS13`, `CertificateRequestTLS13` and
  `CertificateMsgTLS13`, plus `CertificateChain` with
  `marshal_certificate` and `unmarshal_certificate`.
- `tlshello.messages_tls12`: `CertificateMsg`, `ServerKeyExchange`,
  `CertificateStatus`, `ServerHelloDone`, `ClientKeyExchange`, `Finished`,
  `CertificateRequest`, `CertificateVerify`, `NewSessionTicket` and
  `HelloRequest`. `CertificateRequest.unmarshal` and
  `CertificateVerify.unmarshal` take a `has_signature_algorithm` flag that
  selects the TLS 1.2 layout.

The byte-level helpers are in `tlshello.wire`, together with the
`HandshakeType` and `ExtensionType` enums:

- `Builder` appends big-endian integers and bytes; `uint8_prefixed()`,
  `uint16_prefixed()` and `uint24_prefixed()` are context managers that
  yield a child builder whose output is written with a length prefix.
- `Reader` consumes a byte string; the `read_uint*_prefixed()` methods
  return the prefixed bytes.

```python
from tlshello.wire import Builder, Reader

b = Builder()
b.add_uint8(1)
with b.uint16_prefixed() as inner:
    inner.add_bytes(b"abc")
data = b.bytes()

r = Reader(data)
assert r.read_uint8() == 1
assert r.read_uint16_prefixed() == b"abc"
assert r.empty()
```

## CPU feature decoding

The `tlshello.cpu` package turns raw feature words into feature flags.
Each architecture has its own module:

- `x86`: `detect_x86`, `cpu_name`, `X86Features`
- `arm64`: `detect_arm64`, `hwcap_features`, `isar0_features`,
  `darwin_features`, `extract_bits`, `ARM64Features`
- `s390x`: `detect_s390x`, `FacilityList`, `QueryResult`, `Facility`,
  `Function`, `bit_is_set`, `S390XFeatures`
- `others`: `arm_features`, `mips64_features`, `ppc64_linux_features`,
  `ppc64_aix_features`, `cache_line_pad_size`, `option_names` and
  `generic_cpu_name`

You supply the words yourself: CPUID results, HWCAP values, facility
lists and so on, as callables or plain numbers. Nothing here reads the
processor, so decoding can be tested on any machine.

```python
from tlshello.cpu.arm64 import hwcap_features

features = hwcap_features((1 << 3) | (1 << 8), "linux")
assert features.has_aes and features.has_atomics
```

## What this package does not do

- It does not perform a TLS handshake, open connections or do any
  cryptography; it only encodes and decodes messages.
- It has no command-line tool, and in particular does not generate
  certificates or keys.
- It does not apply `cpu.<feature>=on|off` style overrides to detected
  features; the per-architecture option name tables are provided, but
  acting on them is left to the caller.