"""Physical memory manager: page descriptor array and page allocation."""

from __future__ import annotations

import inspect
from typing import Any

from kernsim.console import Console
from kernsim.dtb import MemoryRegion
from kernsim.first_fit import FirstFitManager
from kernsim.page import (
    KERNBASE,
    KERNTOP,
    PGSHIFT,
    PGSIZE,
    PHYSICAL_MEMORY_OFFSET,
    Page,
    PageFlag,
    ppn,
    round_down,
    round_up,
)

DRAM_BASE = 0x80000000
NBASE = DRAM_BASE // PGSIZE
# Size in bytes of one page descriptor in kernel memory.
PAGE_STRUCT_SIZE = 40


class PhysicalMemory:
    """Pages of a physical memory region, handed out by a first-fit allocator.

    Pages are named by their index in ``pages``; index 0 is the page at DRAM_BASE.
    """

    nbase = NBASE

    def __init__(self, console: Console, region: MemoryRegion | None, kernel_end: int) -> None:
        self._console = console
        self._region = region
        self._kernel_end = kernel_end
        self.pages: list[Page] = []
        self.npage = 0
        self.va_pa_offset = PHYSICAL_MEMORY_OFFSET
        self.manager: FirstFitManager | None = None

    def _panic(self, fmt: str, *args: Any) -> None:
        frame = inspect.currentframe()
        line = frame.f_back.f_lineno if frame is not None and frame.f_back is not None else 0
        self._console.panic(__name__, line, fmt, *args)

    def _require_manager(self) -> FirstFitManager:
        if self.manager is None:
            raise RuntimeError("physical memory manager is not initialised")
        return self.manager

    def init(self) -> None:
        """Set up the allocator, hand it the free memory and verify it."""
        self.manager = FirstFitManager(self.pages)
        self._console.cprintf("memory management: %s\n", self.manager.name)
        self.manager.init()
        self._page_init()
        self.manager.check()
        self._console.cprintf("check_alloc_page() succeeded!\n")

    def _page_init(self) -> None:
        self.va_pa_offset = PHYSICAL_MEMORY_OFFSET
        mem_begin = self._region.base if self._region is not None else 0
        mem_size = self._region.size if self._region is not None else 0
        if mem_size == 0:
            self._panic("DTB memory info not available")
        mem_end = mem_begin + mem_size

        self._console.cprintf("physcial memory map:\n")
        self._console.cprintf(
            "  memory: 0x%016lx, [0x%016lx, 0x%016lx].\n", mem_size, mem_begin, mem_end - 1
        )

        maxpa = min(mem_end, KERNTOP)
        self.npage = maxpa // PGSIZE
        count = self.npage - self.nbase
        if count < 0:
            raise ValueError(f"memory ending at {mem_end:#x} lies below DRAM base {DRAM_BASE:#x}")

        pages_va = round_up(self._kernel_end, PGSIZE)
        self.pages[:] = [Page(flags=PageFlag.RESERVED) for _ in range(count)]

        freemem = self.paddr(pages_va + PAGE_STRUCT_SIZE * count)
        mem_begin = round_up(freemem, PGSIZE)
        mem_end = round_down(mem_end, PGSIZE)
        if freemem < mem_end:
            self._require_manager().init_memmap(self.pa2page(mem_begin), (mem_end - mem_begin) // PGSIZE)

    def alloc_pages(self, n: int) -> int | None:
        """Allocate ``n`` contiguous pages; return the first index, or None."""
        return self._require_manager().alloc_pages(n)

    def free_pages(self, base: int, n: int) -> None:
        """Free ``n`` pages starting at index ``base``."""
        self._require_manager().free_pages(base, n)

    def nr_free_pages(self) -> int:
        """Number of free pages."""
        return self._require_manager().nr_free_pages()

    def page2pa(self, index: int) -> int:
        """Physical address of the page at ``index``."""
        return (index + self.nbase) << PGSHIFT

    def pa2page(self, pa: int) -> int:
        """Index of the page holding physical address ``pa``; panics if out of range."""
        number = ppn(pa)
        if number >= self.npage or number < self.nbase:
            self._panic("pa2page called with invalid pa")
        return number - self.nbase

    def paddr(self, kva: int) -> int:
        """Physical address of a kernel virtual address; panics below KERNBASE."""
        if kva < KERNBASE:
            self._panic("PADDR called with invalid kva %08lx", kva)
        return kva - self.va_pa_offset