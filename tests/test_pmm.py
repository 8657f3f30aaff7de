import io

import pytest

from kernsim.console import Console, KernelPanic
from kernsim.dtb import MemoryRegion
from kernsim.page import KERNBASE, KERNEL_BEGIN_VADDR, PGSIZE
from kernsim.pmm import PhysicalMemory

KERNEL_END = KERNEL_BEGIN_VADDR + 0x10000
REGION = MemoryRegion(0x80000000, 0x400000)


def make_pmm(region=REGION, kernel_end=KERNEL_END):
    out = io.StringIO()
    console = Console(output=out, input=io.StringIO(""))
    return PhysicalMemory(console, region, kernel_end), out


@pytest.fixture
def pmm():
    memory, _ = make_pmm()
    memory.init()
    return memory


def test_init_output():
    memory, out = make_pmm()
    memory.init()
    text = out.getvalue()
    assert "memory management: default_pmm_manager\n" in text
    assert "physcial memory map:\n" in text
    assert text.endswith("check_alloc_page() succeeded!\n")


def test_page_count_matches_region(pmm):
    assert len(pmm.pages) == REGION.size // PGSIZE
    assert pmm.npage == REGION.end // PGSIZE


def test_free_block_reaches_end(pmm):
    blocks = pmm.manager.free_blocks()
    assert len(blocks) == 1
    start, length = blocks[0]
    assert start + length == len(pmm.pages)
    assert pmm.nr_free_pages() == length


def test_page_array_is_reserved(pmm):
    start, _ = pmm.manager.free_blocks()[0]
    assert all(page.reserved() for page in pmm.pages[:start])
    assert not pmm.pages[start].reserved()


def test_free_memory_lies_after_page_array(pmm):
    start, _ = pmm.manager.free_blocks()[0]
    array_end = pmm.paddr(KERNEL_END + 40 * len(pmm.pages))
    assert pmm.page2pa(start) >= array_end
    assert pmm.page2pa(start) - array_end < PGSIZE


def test_alloc_free_round_trip(pmm):
    before = pmm.nr_free_pages()
    index = pmm.alloc_pages(7)
    assert pmm.nr_free_pages() == before - 7
    pmm.free_pages(index, 7)
    assert pmm.nr_free_pages() == before
    assert len(pmm.manager.free_blocks()) == 1


def test_alloc_too_many_returns_none(pmm):
    assert pmm.alloc_pages(pmm.nr_free_pages() + 1) is None


def test_page2pa_of_first_page(pmm):
    assert pmm.page2pa(0) == 0x80000000


def test_pa2page_round_trip(pmm):
    for index in (0, 5, len(pmm.pages) - 1):
        assert pmm.pa2page(pmm.page2pa(index)) == index
        assert pmm.pa2page(pmm.page2pa(index) + PGSIZE - 1) == index


def test_pa2page_out_of_range_panics(pmm):
    with pytest.raises(KernelPanic) as info:
        pmm.pa2page(REGION.end)
    assert info.value.message == "pa2page called with invalid pa"


def test_paddr_of_kernbase(pmm):
    assert pmm.paddr(KERNBASE) == 0x80200000


def test_paddr_below_kernbase_panics():
    memory, out = make_pmm()
    with pytest.raises(KernelPanic) as info:
        memory.paddr(0x1000)
    assert info.value.message.startswith("PADDR called with invalid kva")


def test_missing_memory_panics():
    memory, out = make_pmm(region=MemoryRegion(0x80000000, 0))
    with pytest.raises(KernelPanic) as info:
        memory.init()
    assert info.value.message == "DTB memory info not available"


def test_no_region_panics():
    memory, _ = make_pmm(region=None)
    with pytest.raises(KernelPanic):
        memory.init()


def test_alloc_before_init_raises():
    memory, _ = make_pmm()
    with pytest.raises(RuntimeError):
        memory.alloc_pages(1)


def test_memory_below_dram_raises():
    memory, _ = make_pmm(region=MemoryRegion(0x1000, 0x1000))
    with pytest.raises(ValueError):
        memory.init()