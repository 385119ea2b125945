"""ARM64 processor feature detection for the supported operating systems."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Tuple

__all__ = [
    "ARM64Features",
    "extract_bits",
    "hwcap_features",
    "darwin_features",
    "isar0_features",
    "detect_arm64",
    "CACHE_LINE_PAD_SIZE",
    "OPTION_NAMES",
]

CACHE_LINE_PAD_SIZE = 64

# Option name -> ARM64Features attribute, as used by debug options.
OPTION_NAMES = {
    "aes": "has_aes",
    "pmull": "has_pmull",
    "sha1": "has_sha1",
    "sha2": "has_sha2",
    "crc32": "has_crc32",
    "atomics": "has_atomics",
    "cpuid": "has_cpuid",
    "isNeoverseN1": "is_neoverse_n1",
    "isZeus": "is_zeus",
}

# Linux HWCAP bits
_HWCAP_AES = 1 << 3
_HWCAP_PMULL = 1 << 4
_HWCAP_SHA1 = 1 << 5
_HWCAP_SHA2 = 1 << 6
_HWCAP_CRC32 = 1 << 7
_HWCAP_ATOMICS = 1 << 8
_HWCAP_CPUID = 1 << 11

_IMPLEMENTOR_ARM = ord("A")
_PART_NEOVERSE_N1 = 0xD0C
_PART_ZEUS = 0xD40

SysctlFunc = Callable[[str], Tuple[int, int]]


@dataclass
class ARM64Features:
    """ARM64 feature flags."""

    has_aes: bool = False
    has_pmull: bool = False
    has_sha1: bool = False
    has_sha2: bool = False
    has_crc32: bool = False
    has_atomics: bool = False
    has_cpuid: bool = False
    is_neoverse_n1: bool = False
    is_zeus: bool = False


def _is_set(value: int, bit: int) -> bool:
    return value & bit != 0


def extract_bits(data: int, start: int, end: int) -> int:
    """The bits ``start`` through ``end`` (inclusive) of ``data``."""
    return (data >> start) & ((1 << (end - start + 1)) - 1)


def hwcap_features(hwcap: int, os_name: str, midr: int = 0) -> ARM64Features:
    """Features from the Linux/Android HWCAP word and, with CPUID, the MIDR."""
    features = ARM64Features(
        has_aes=_is_set(hwcap, _HWCAP_AES),
        has_pmull=_is_set(hwcap, _HWCAP_PMULL),
        has_sha1=_is_set(hwcap, _HWCAP_SHA1),
        has_sha2=_is_set(hwcap, _HWCAP_SHA2),
        has_crc32=_is_set(hwcap, _HWCAP_CRC32),
        has_cpuid=_is_set(hwcap, _HWCAP_CPUID),
        # Some Android kernels report atomics that not every core supports.
        has_atomics=_is_set(hwcap, _HWCAP_ATOMICS) and os_name != "android",
    )
    if features.has_cpuid:
        part_num = (midr >> 4) & 0xFFF
        implementor = (midr >> 24) & 0xFF
        if implementor == _IMPLEMENTOR_ARM and part_num == _PART_NEOVERSE_N1:
            features.is_neoverse_n1 = True
        if implementor == _IMPLEMENTOR_ARM and part_num == _PART_ZEUS:
            features.is_zeus = True
    return features


def _sysctl_enabled(sysctl: SysctlFunc, name: str) -> bool:
    ret, value = sysctl(name)
    if ret < 0:
        return False
    return value > 0


def darwin_features(sysctl: SysctlFunc) -> ARM64Features:
    """Features on macOS, given a sysctl lookup returning (status, value)."""
    return ARM64Features(
        has_atomics=_sysctl_enabled(sysctl, "hw.optional.armv8_1_atomics"),
        has_crc32=_sysctl_enabled(sysctl, "hw.optional.armv8_crc32"),
        # No sysctl exists for these; every Apple Silicon part has them.
        has_aes=True,
        has_pmull=True,
        has_sha1=True,
        has_sha2=True,
    )


def isar0_features(isar0: int) -> ARM64Features:
    """Features from the ID_AA64ISAR0_EL1 system register (FreeBSD)."""
    features = ARM64Features()

    aes = extract_bits(isar0, 4, 7)
    if aes == 1:
        features.has_aes = True
    elif aes == 2:
        features.has_aes = True
        features.has_pmull = True

    if extract_bits(isar0, 8, 11) == 1:
        features.has_sha1 = True
    if extract_bits(isar0, 12, 15) in (1, 2):
        features.has_sha2 = True
    if extract_bits(isar0, 16, 19) == 1:
        features.has_crc32 = True
    if extract_bits(isar0, 20, 23) == 2:
        features.has_atomics = True
    return features


def detect_arm64(os_name: str, hwcap: int = 0, midr: int = 0, isar0: int = 0,
                 sysctl: Optional[SysctlFunc] = None) -> ARM64Features:
    """Detect features the way the given operating system allows."""
    if os_name in ("linux", "android"):
        return hwcap_features(hwcap, os_name, midr)
    if os_name == "freebsd":
        return isar0_features(isar0)
    if os_name == "darwin":
        if sysctl is None:
            raise ValueError("darwin detection needs a sysctl lookup")
        return darwin_features(sysctl)
    # Other systems (including iOS) expose no way to read features.
    return ARM64Features()