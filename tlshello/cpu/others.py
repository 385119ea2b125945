"""Feature detection for ARM, MIPS, POWER, RISC-V and WebAssembly targets."""

from __future__ import annotations

from .x86 import OPTION_NAMES as _X86_OPTION_NAMES

__all__ = [
    "cache_line_pad_size",
    "option_names",
    "arm_features",
    "mips64_features",
    "ppc64_linux_features",
    "ppc64_aix_features",
    "generic_cpu_name",
]

_CACHE_LINE_PAD_SIZE = {
    "386": 64,
    "amd64": 64,
    "arm": 32,
    "arm64": 64,
    "mips": 32,
    "mipsle": 32,
    "mips64": 32,
    "mips64le": 32,
    "ppc64": 128,
    "ppc64le": 128,
    "riscv64": 32,
    "s390x": 256,
    "wasm": 64,
}

_OPTION_NAMES = {
    "arm": ("vfpv4", "idiva"),
    "mips": (),
    "mipsle": (),
    "mips64": ("msa",),
    "mips64le": ("msa",),
    "ppc64": ("darn", "scv", "power9"),
    "ppc64le": ("darn", "scv", "power9"),
    "riscv64": (),
    "wasm": (),
    "386": tuple(_X86_OPTION_NAMES),
    "amd64": tuple(_X86_OPTION_NAMES),
}

# ARM HWCAP bits
_HWCAP_VFPV4 = 1 << 16
_HWCAP_IDIVA = 1 << 17

# MIPS64 HWCAP bits
_HWCAP_MIPS_MSA = 1 << 1

# POWER HWCAP2 bits
_HWCAP2_ARCH_3_00 = 0x00800000
_HWCAP2_DARN = 0x00200000
_HWCAP2_SCV = 0x00100000

# AIX getsystemcfg implementation bit
_IMPL_POWER9 = 0x20000


def _is_set(value: int, bit: int) -> bool:
    return value & bit != 0


def cache_line_pad_size(arch: str) -> int:
    """Assumed cache line size in bytes for an architecture name."""
    try:
        return _CACHE_LINE_PAD_SIZE[arch]
    except KeyError:
        raise ValueError(f"unknown architecture {arch!r}") from None


def option_names(arch: str) -> list[str]:
    """Names of the debug-tunable CPU features of an architecture."""
    try:
        return list(_OPTION_NAMES[arch])
    except KeyError:
        raise ValueError(f"no option table for architecture {arch!r}") from None


def arm_features(hwcap: int) -> dict[str, bool]:
    """ARM features from the HWCAP auxiliary vector word."""
    return {
        "vfpv4": _is_set(hwcap, _HWCAP_VFPV4),
        "idiva": _is_set(hwcap, _HWCAP_IDIVA),
    }


def mips64_features(hwcap: int) -> dict[str, bool]:
    """MIPS64 features from the HWCAP auxiliary vector word."""
    return {"msa": _is_set(hwcap, _HWCAP_MIPS_MSA)}


def ppc64_linux_features(hwcap2: int) -> dict[str, bool]:
    """POWER features from the Linux HWCAP2 auxiliary vector word."""
    return {
        "darn": _is_set(hwcap2, _HWCAP2_DARN),
        "scv": _is_set(hwcap2, _HWCAP2_SCV),
        "power9": _is_set(hwcap2, _HWCAP2_ARCH_3_00),
    }


def ppc64_aix_features(impl: int) -> dict[str, bool]:
    """POWER features from the AIX processor implementation word."""
    return {
        "darn": False,
        "scv": False,
        "power9": _is_set(impl, _IMPL_POWER9),
    }


def generic_cpu_name() -> str:
    """Processor name on targets that cannot read one: always empty."""
    return ""