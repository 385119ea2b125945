"""x86 processor feature detection from CPUID and XGETBV results."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Tuple

__all__ = ["X86Features", "detect_x86", "cpu_name", "CACHE_LINE_PAD_SIZE", "OPTION_NAMES"]

CACHE_LINE_PAD_SIZE = 64

CpuidFunc = Callable[[int, int], Tuple[int, int, int, int]]
XgetbvFunc = Callable[[], Tuple[int, int]]

# ecx bits of leaf 1
_SSE3 = 1 << 0
_PCLMULQDQ = 1 << 1
_SSSE3 = 1 << 9
_FMA = 1 << 12
_SSE41 = 1 << 19
_SSE42 = 1 << 20
_POPCNT = 1 << 23
_AES = 1 << 25
_OSXSAVE = 1 << 27
_AVX = 1 << 28

# ebx bits of leaf 7
_BMI1 = 1 << 3
_AVX2 = 1 << 5
_BMI2 = 1 << 8
_ERMS = 1 << 9
_ADX = 1 << 19

# edx bits of leaf 0x80000001
_RDTSCP = 1 << 27

_EXTENDED_BASE = 0x80000000

# Option name -> X86Features attribute, as used by debug options.
OPTION_NAMES = {
    "adx": "has_adx",
    "aes": "has_aes",
    "avx": "has_avx",
    "avx2": "has_avx2",
    "bmi1": "has_bmi1",
    "bmi2": "has_bmi2",
    "erms": "has_erms",
    "fma": "has_fma",
    "pclmulqdq": "has_pclmulqdq",
    "popcnt": "has_popcnt",
    "rdtscp": "has_rdtscp",
    "sse3": "has_sse3",
    "sse41": "has_sse41",
    "sse42": "has_sse42",
    "ssse3": "has_ssse3",
}


def _is_set(value: int, bit: int) -> bool:
    return value & bit != 0


@dataclass
class X86Features:
    """x86 feature flags; AVX ones also require OS register support."""

    has_aes: bool = False
    has_adx: bool = False
    has_avx: bool = False
    has_avx2: bool = False
    has_bmi1: bool = False
    has_bmi2: bool = False
    has_erms: bool = False
    has_fma: bool = False
    has_osxsave: bool = False
    has_pclmulqdq: bool = False
    has_popcnt: bool = False
    has_rdtscp: bool = False
    has_sse3: bool = False
    has_ssse3: bool = False
    has_sse41: bool = False
    has_sse42: bool = False


def detect_x86(cpuid: CpuidFunc, xgetbv: XgetbvFunc) -> X86Features:
    """Derive feature flags from a CPUID query function and an XGETBV reader."""
    features = X86Features()

    max_id = cpuid(0, 0)[0]
    if max_id < 1:
        return features

    _, _, ecx1, _ = cpuid(1, 0)
    features.has_sse3 = _is_set(ecx1, _SSE3)
    features.has_pclmulqdq = _is_set(ecx1, _PCLMULQDQ)
    features.has_ssse3 = _is_set(ecx1, _SSSE3)
    features.has_sse41 = _is_set(ecx1, _SSE41)
    features.has_sse42 = _is_set(ecx1, _SSE42)
    features.has_popcnt = _is_set(ecx1, _POPCNT)
    features.has_aes = _is_set(ecx1, _AES)
    features.has_osxsave = _is_set(ecx1, _OSXSAVE)
    # FMA only has VEX-encoded instructions, which need OSXSAVE.
    features.has_fma = _is_set(ecx1, _FMA) and features.has_osxsave

    os_supports_avx = False
    if features.has_osxsave:
        eax, _ = xgetbv()
        # XMM and YMM state must both be enabled by the OS.
        os_supports_avx = _is_set(eax, 1 << 1) and _is_set(eax, 1 << 2)

    features.has_avx = _is_set(ecx1, _AVX) and os_supports_avx

    if max_id < 7:
        return features

    _, ebx7, _, _ = cpuid(7, 0)
    features.has_bmi1 = _is_set(ebx7, _BMI1)
    features.has_avx2 = _is_set(ebx7, _AVX2) and os_supports_avx
    features.has_bmi2 = _is_set(ebx7, _BMI2)
    features.has_erms = _is_set(ebx7, _ERMS)
    features.has_adx = _is_set(ebx7, _ADX)

    max_extended = cpuid(_EXTENDED_BASE, 0)[0]
    if max_extended < _EXTENDED_BASE + 1:
        return features

    edx_ext1 = cpuid(_EXTENDED_BASE + 1, 0)[3]
    features.has_rdtscp = _is_set(edx_ext1, _RDTSCP)
    return features


def cpu_name(cpuid: CpuidFunc) -> str:
    """The vendor's processor brand string, or "" if it is unavailable."""
    if cpuid(_EXTENDED_BASE, 0)[0] < _EXTENDED_BASE + 4:
        return ""

    data = b"".join(
        register.to_bytes(4, "little")
        for leaf in range(_EXTENDED_BASE + 2, _EXTENDED_BASE + 5)
        for register in cpuid(leaf, 0)
    )
    data = data.lstrip(b" ")
    data = data.split(b"\x00", 1)[0]
    return data.decode("utf-8", "replace")