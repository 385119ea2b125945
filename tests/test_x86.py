import pytest

from tlshello.cpu.x86 import OPTION_NAMES, X86Features, cpu_name, detect_x86

EXT = 0x80000000


class FakeCpu:
    def __init__(self, leaves=None, xcr0=0b110):
        self.leaves = leaves or {}
        self.xcr0 = xcr0
        self.calls = []
        self.xgetbv_called = False

    def cpuid(self, eax, ecx):
        self.calls.append((eax, ecx))
        return self.leaves.get(eax, (0, 0, 0, 0))

    def xgetbv(self):
        self.xgetbv_called = True
        return self.xcr0, 0


def _brand_leaves(brand: bytes) -> dict:
    padded = brand.ljust(48, b"\x00")
    regs = [int.from_bytes(padded[i:i + 4], "little") for i in range(0, 48, 4)]
    return {
        EXT + 2: tuple(regs[0:4]),
        EXT + 3: tuple(regs[4:8]),
        EXT + 4: tuple(regs[8:12]),
    }


def test_no_basic_leaves_gives_no_features():
    cpu = FakeCpu({0: (0, 0, 0, 0), 1: (0, 0, 0xFFFFFFFF, 0)})
    assert detect_x86(cpu.cpuid, cpu.xgetbv) == X86Features()


def test_leaf1_features_with_avx_support():
    ecx = (1 << 0) | (1 << 25) | (1 << 27) | (1 << 28) | (1 << 12) | (1 << 20)
    cpu = FakeCpu({0: (1, 0, 0, 0), 1: (0, 0, ecx, 0)})
    f = detect_x86(cpu.cpuid, cpu.xgetbv)
    assert f.has_sse3 and f.has_aes and f.has_osxsave and f.has_sse42
    assert f.has_avx and f.has_fma
    assert not f.has_ssse3
    assert cpu.xgetbv_called


def test_without_osxsave_avx_and_fma_are_off():
    ecx = (1 << 28) | (1 << 12)
    cpu = FakeCpu({0: (7, 0, 0, 0), 1: (0, 0, ecx, 0), 7: (0, 1 << 5, 0, 0)})
    f = detect_x86(cpu.cpuid, cpu.xgetbv)
    assert not f.has_avx
    assert not f.has_fma
    assert not f.has_avx2
    assert not cpu.xgetbv_called


def test_os_without_ymm_state_disables_avx():
    ecx = (1 << 27) | (1 << 28)
    cpu = FakeCpu({0: (7, 0, 0, 0), 1: (0, 0, ecx, 0), 7: (0, 1 << 5, 0, 0)},
                  xcr0=0b010)
    f = detect_x86(cpu.cpuid, cpu.xgetbv)
    assert f.has_osxsave
    assert not f.has_avx
    assert not f.has_avx2


def test_leaf7_ignored_below_max_id_7():
    cpu = FakeCpu({0: (6, 0, 0, 0), 7: (0, (1 << 3) | (1 << 8), 0, 0)})
    f = detect_x86(cpu.cpuid, cpu.xgetbv)
    assert not f.has_bmi1 and not f.has_bmi2
    assert (7, 0) not in cpu.calls


def test_leaf7_features():
    ebx = (1 << 3) | (1 << 8) | (1 << 9) | (1 << 19)
    cpu = FakeCpu({0: (7, 0, 0, 0), 7: (0, ebx, 0, 0)})
    f = detect_x86(cpu.cpuid, cpu.xgetbv)
    assert f.has_bmi1 and f.has_bmi2 and f.has_erms and f.has_adx
    assert not f.has_avx2


@pytest.mark.parametrize("max_ext, expected", [(EXT, False), (EXT + 1, True)])
def test_rdtscp_needs_extended_leaf(max_ext, expected):
    cpu = FakeCpu({0: (7, 0, 0, 0), EXT: (max_ext, 0, 0, 0),
                   EXT + 1: (0, 0, 0, 1 << 27)})
    assert detect_x86(cpu.cpuid, cpu.xgetbv).has_rdtscp is expected


def test_option_names_cover_attributes():
    fields = set(X86Features.__dataclass_fields__)
    assert set(OPTION_NAMES.values()) <= fields
    assert "has_osxsave" not in OPTION_NAMES.values()


def test_cpu_name_unavailable():
    cpu = FakeCpu({EXT: (EXT + 3, 0, 0, 0)})
    assert cpu_name(cpu.cpuid) == ""


def test_cpu_name_trims_spaces_and_nulls():
    leaves = _brand_leaves(b"   Example CPU @ 3.00GHz")
    leaves[EXT] = (EXT + 8, 0, 0, 0)
    cpu = FakeCpu(leaves)
    assert cpu_name(cpu.cpuid) == "Example CPU @ 3.00GHz"


def test_cpu_name_stops_at_first_null():
    leaves = _brand_leaves(b"Model A\x00Model B")
    leaves[EXT] = (EXT + 4, 0, 0, 0)
    cpu = FakeCpu(leaves)
    assert cpu_name(cpu.cpuid) == "Model A"