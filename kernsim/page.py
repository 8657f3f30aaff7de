"""Page descriptors, page-size arithmetic and the Sv39 address layout."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntFlag

_UINT64_MASK = (1 << 64) - 1

# Page geometry.
PGSIZE = 4096
PGSHIFT = 12

# Kernel memory layout.
KERNBASE = 0xFFFFFFFFC0200000
KMEMSIZE = 0x7E00000
KERNTOP = KERNBASE + KMEMSIZE
PHYSICAL_MEMORY_END = 0x88000000
PHYSICAL_MEMORY_OFFSET = 0xFFFFFFFF40000000
KERNEL_BEGIN_PADDR = 0x80200000
KERNEL_BEGIN_VADDR = 0xFFFFFFFFC0200000
KSTACKPAGE = 2
KSTACKSIZE = KSTACKPAGE * PGSIZE

# Sv39 page-table constants.
SV39_NENTRY = 512
SV39_PGSIZE = 4096
SV39_PGSHIFT = 12
SV39_PTSIZE = PGSIZE * SV39_NENTRY
SV39_PTSHIFT = 21
SV39_VPN0SHIFT = 12
SV39_VPN1SHIFT = 21
SV39_VPN2SHIFT = 30
SV39_PTE_PPN_SHIFT = 10
SV39_PT0 = 0
SV39_PT1 = 1
SV39_PT2 = 2
_VPN_MASK = 0x1FF

# Page-table entry bits.
PTE_V = 0x001
PTE_R = 0x002
PTE_W = 0x004
PTE_X = 0x008
PTE_U = 0x010
PTE_G = 0x020
PTE_A = 0x040
PTE_D = 0x080
PTE_SOFT = 0x300

PAGE_TABLE_DIR = PTE_V
READ_ONLY = PTE_R | PTE_V
READ_WRITE = PTE_R | PTE_W | PTE_V
EXEC_ONLY = PTE_X | PTE_V
READ_EXEC = PTE_R | PTE_X | PTE_V
READ_WRITE_EXEC = PTE_R | PTE_W | PTE_X | PTE_V
PTE_USER = PTE_R | PTE_W | PTE_X | PTE_U | PTE_V


class PageFlag(IntFlag):
    """Status bits of a physical page frame."""

    RESERVED = 1 << 0
    PROPERTY = 1 << 1


@dataclass
class Page:
    """Descriptor of one physical page frame.

    ``property`` holds the size of the free block this page heads, and is
    meaningful only while the PROPERTY flag is set.
    """

    ref: int = 0
    flags: PageFlag = field(default_factory=lambda: PageFlag(0))
    property: int = 0

    def reserved(self) -> bool:
        """Whether the page is reserved for the kernel."""
        return PageFlag.RESERVED in self.flags

    def is_head(self) -> bool:
        """Whether the page heads a free block."""
        return PageFlag.PROPERTY in self.flags


def _check_unsigned(name: str, value: int) -> int:
    value = int(value)
    if value < 0:
        raise ValueError(f"{name} must not be negative, got {value}")
    return value


def round_down(a: int, n: int) -> int:
    """Round ``a`` down to the nearest multiple of ``n``."""
    a = _check_unsigned("a", a)
    if n <= 0:
        raise ValueError(f"alignment must be positive, got {n}")
    return a - a % n


def round_up(a: int, n: int) -> int:
    """Round ``a`` up to the nearest multiple of ``n``."""
    a = _check_unsigned("a", a)
    if n <= 0:
        raise ValueError(f"alignment must be positive, got {n}")
    return round_down(a + n - 1, n)


def ppn(la: int) -> int:
    """Page number of an address."""
    return (int(la) & _UINT64_MASK) >> PGSHIFT


def vpn(la: int, n: int) -> int:
    """The ``n``-th level virtual page number field of an Sv39 address."""
    if n < 0:
        raise ValueError(f"page-table level must not be negative, got {n}")
    return ((int(la) & _UINT64_MASK) >> PGSHIFT >> (9 * n)) & _VPN_MASK


def pgaddr(v2: int, v1: int, v0: int, offset: int) -> int:
    """Build an Sv39 address from its three page-table indexes and offset."""
    address = (
        int(v2) << SV39_VPN2SHIFT
        | int(v1) << SV39_VPN1SHIFT
        | int(v0) << SV39_VPN0SHIFT
        | int(offset)
    )
    return address & _UINT64_MASK


def pte_addr(pte: int) -> int:
    """Address held in a page-table or page-directory entry."""
    return ((int(pte) & _UINT64_MASK & ~_VPN_MASK) << 3) & _UINT64_MASK