"""s390x processor feature detection from STFLE and CPACF query results."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Mapping, Sequence

__all__ = [
    "Facility",
    "Function",
    "FacilityList",
    "QueryResult",
    "S390XFeatures",
    "bit_is_set",
    "detect_s390x",
    "CACHE_LINE_PAD_SIZE",
    "OPTION_NAMES",
]

CACHE_LINE_PAD_SIZE = 256

# Option name -> S390XFeatures attribute, as used by debug options.
OPTION_NAMES = {
    "zarch": "has_zarch",
    "stfle": "has_stfle",
    "ldisp": "has_ldisp",
    "msa": "has_msa",
    "eimm": "has_eimm",
    "dfp": "has_dfp",
    "etf3eh": "has_etf3eh",
    "vx": "has_vx",
    "vxe": "has_vxe",
    "kdsa": "has_kdsa",
}

# The vector facility needs kernel support, so it is read from HWCAP.
_HWCAP_VX = 1 << 11

_MSB = 1 << 63
_MASK64 = (1 << 64) - 1


class Function(IntEnum):
    """CPACF function codes; KDSA codes share values with digest codes."""

    # KM{,A,C,CTR}
    AES128 = 18
    AES192 = 19
    AES256 = 20
    # K{I,L}MD
    SHA1 = 1
    SHA256 = 2
    SHA512 = 3
    SHA3_224 = 32
    SHA3_256 = 33
    SHA3_384 = 34
    SHA3_512 = 35
    SHAKE128 = 36
    SHAKE256 = 37
    # KLMD
    GHASH = 65
    # KDSA
    ECDSA_VERIFY_P256 = 1
    ECDSA_VERIFY_P384 = 2
    ECDSA_VERIFY_P521 = 3
    ECDSA_SIGN_P256 = 9
    ECDSA_SIGN_P384 = 10
    ECDSA_SIGN_P521 = 11
    EDDSA_VERIFY_ED25519 = 32
    EDDSA_VERIFY_ED448 = 36
    EDDSA_SIGN_ED25519 = 40
    EDDSA_SIGN_ED448 = 44


class Facility(IntEnum):
    """Bit indices in the STFLE facility list."""

    ZARCH = 1
    STFLEF = 7
    LDISP = 18
    EIMM = 21
    DFP = 42
    ETF3EH = 30
    MSA = 17
    MSA3 = 76
    MSA4 = 77
    MSA5 = 57
    MSA8 = 146
    MSA9 = 155
    VXE = 135


def bit_is_set(bits: Sequence[int], index: int) -> bool:
    """Whether big-endian bit ``index`` is set; bit 0 is the leftmost."""
    return bits[index // 64] & (_MSB >> (index % 64)) != 0


def _bits_with(words: int, indices) -> tuple[int, ...]:
    bits = [0] * words
    for index in indices:
        if not 0 <= index < words * 64:
            raise ValueError(f"bit index {index} out of range")
        bits[index // 64] |= _MSB >> (index % 64)
    return tuple(bits)


def _check_words(bits: Sequence[int], words: int) -> tuple[int, ...]:
    bits = tuple(int(b) & _MASK64 for b in bits)
    if len(bits) != words:
        raise ValueError(f"expected {words} 64-bit words, got {len(bits)}")
    return bits


@dataclass(frozen=True)
class FacilityList:
    """The result of STFLE: 256 facility bits in four big-endian words."""

    bits: tuple[int, int, int, int] = (0, 0, 0, 0)

    def __post_init__(self) -> None:
        object.__setattr__(self, "bits", _check_words(self.bits, 4))

    @classmethod
    def of(cls, *facilities: int) -> FacilityList:
        """A facility list with exactly the given facilities set."""
        return cls(_bits_with(4, facilities))

    def has(self, *args: int) -> bool:
        """Whether every given facility is present."""
        if not args:
            raise ValueError("no facility bits provided")
        return all(bit_is_set(self.bits, int(f)) for f in args)


@dataclass(frozen=True)
class QueryResult:
    """The result of a CPACF query: 128 function bits in two big-endian words."""

    bits: tuple[int, int] = (0, 0)

    def __post_init__(self) -> None:
        object.__setattr__(self, "bits", _check_words(self.bits, 2))

    @classmethod
    def of(cls, *functions: int) -> QueryResult:
        """A query result with exactly the given functions available."""
        return cls(_bits_with(2, functions))

    def has(self, *args: int) -> bool:
        """Whether every given function is available."""
        if not args:
            raise ValueError("no function codes provided")
        return all(bit_is_set(self.bits, int(f)) for f in args)


@dataclass
class S390XFeatures:
    """s390x feature flags."""

    has_zarch: bool = False
    has_stfle: bool = False
    has_ldisp: bool = False
    has_eimm: bool = False
    has_dfp: bool = False
    has_etf3eh: bool = False
    has_msa: bool = False
    has_aes: bool = False
    has_aescbc: bool = False
    has_aesctr: bool = False
    has_aesgcm: bool = False
    has_ghash: bool = False
    has_sha1: bool = False
    has_sha256: bool = False
    has_sha512: bool = False
    has_sha3: bool = False
    has_vx: bool = False
    has_vxe: bool = False
    has_kdsa: bool = False
    has_ecdsa: bool = False
    has_eddsa: bool = False


_AES = (Function.AES128, Function.AES192, Function.AES256)
_SHA3 = (
    Function.SHA3_224, Function.SHA3_256, Function.SHA3_384, Function.SHA3_512,
    Function.SHAKE128, Function.SHAKE256,
)


def detect_s390x(facilities: FacilityList, queries: Mapping[str, QueryResult],
                 hwcap: int) -> S390XFeatures:
    """Derive features from STFLE, CPACF query results and the HWCAP word.

    ``queries`` maps the query instruction ("km", "kmc", "kmctr", "kma",
    "kimd", "klmd", "kdsa") to its result; a query is only looked up when
    the facilities say the instruction exists.
    """
    f = S390XFeatures(
        has_zarch=facilities.has(Facility.ZARCH),
        has_stfle=facilities.has(Facility.STFLEF),
        has_ldisp=facilities.has(Facility.LDISP),
        has_eimm=facilities.has(Facility.EIMM),
        has_dfp=facilities.has(Facility.DFP),
        has_etf3eh=facilities.has(Facility.ETF3EH),
        has_msa=facilities.has(Facility.MSA),
    )

    if f.has_msa:
        f.has_aes = queries["km"].has(*_AES)
        f.has_aescbc = queries["kmc"].has(*_AES)
        if facilities.has(Facility.MSA4):
            f.has_aesctr = queries["kmctr"].has(*_AES)
        if facilities.has(Facility.MSA8):
            f.has_aesgcm = queries["kma"].has(*_AES)

        kimd = queries["kimd"]  # intermediate (no padding)
        klmd = queries["klmd"]  # last (padding)
        f.has_sha1 = kimd.has(Function.SHA1) and klmd.has(Function.SHA1)
        f.has_sha256 = kimd.has(Function.SHA256) and klmd.has(Function.SHA256)
        f.has_sha512 = kimd.has(Function.SHA512) and klmd.has(Function.SHA512)
        f.has_ghash = kimd.has(Function.GHASH)  # there is no KLMD-GHASH
        f.has_sha3 = kimd.has(*_SHA3) and klmd.has(*_SHA3)
        f.has_kdsa = facilities.has(Facility.MSA9)
        if f.has_kdsa:
            kdsa = queries["kdsa"]
            f.has_ecdsa = kdsa.has(
                Function.ECDSA_VERIFY_P256, Function.ECDSA_SIGN_P256,
                Function.ECDSA_VERIFY_P384, Function.ECDSA_SIGN_P384,
                Function.ECDSA_VERIFY_P521, Function.ECDSA_SIGN_P521,
            )
            f.has_eddsa = kdsa.has(
                Function.EDDSA_VERIFY_ED25519, Function.EDDSA_SIGN_ED25519,
                Function.EDDSA_VERIFY_ED448, Function.EDDSA_SIGN_ED448,
            )

    f.has_vx = hwcap & _HWCAP_VX != 0
    if f.has_vx:
        f.has_vxe = facilities.has(Facility.VXE)
    return f