import pytest

from kernsim.first_fit import FirstFitManager
from kernsim.page import Page, PageFlag


def make_manager(npages, regions=None):
    pages = [Page(flags=PageFlag.RESERVED) for _ in range(npages)]
    manager = FirstFitManager(pages)
    manager.init()
    for base, n in regions or [(0, npages)]:
        manager.init_memmap(base, n)
    return manager, pages


def test_init_memmap_creates_one_block():
    manager, pages = make_manager(16)
    assert manager.free_blocks() == [(0, 16)]
    assert manager.nr_free_pages() == 16
    assert pages[0].is_head()
    assert not pages[1].reserved()


def test_init_memmap_keeps_address_order():
    manager, _ = make_manager(20, [(10, 5), (0, 4)])
    assert manager.free_blocks() == [(0, 4), (10, 5)]
    assert manager.nr_free_pages() == 9


def test_init_memmap_requires_reserved_pages():
    pages = [Page() for _ in range(4)]
    manager = FirstFitManager(pages)
    manager.init()
    with pytest.raises(ValueError):
        manager.init_memmap(0, 4)


def test_alloc_splits_first_block():
    manager, pages = make_manager(10)
    assert manager.alloc_pages(3) == 0
    assert manager.free_blocks() == [(3, 7)]
    assert manager.nr_free_pages() == 7
    assert not pages[0].is_head()


def test_alloc_is_first_fit_not_best_fit():
    manager, _ = make_manager(20, [(0, 5), (10, 2)])
    assert manager.alloc_pages(2) == 0
    assert manager.free_blocks() == [(2, 3), (10, 2)]


def test_alloc_skips_blocks_too_small():
    manager, _ = make_manager(20, [(0, 2), (10, 6)])
    assert manager.alloc_pages(4) == 10
    assert manager.free_blocks() == [(0, 2), (14, 2)]


def test_alloc_returns_none_when_exhausted():
    manager, _ = make_manager(4)
    assert manager.alloc_pages(5) is None
    assert manager.alloc_pages(4) == 0
    assert manager.alloc_pages(1) is None


def test_alloc_none_when_fragmented():
    manager, _ = make_manager(20, [(0, 3), (10, 3)])
    assert manager.alloc_pages(4) is None
    assert manager.nr_free_pages() == 6


def test_alloc_rejects_nonpositive():
    manager, _ = make_manager(4)
    with pytest.raises(ValueError):
        manager.alloc_pages(0)


def test_free_merges_with_both_neighbours():
    manager, _ = make_manager(9)
    a = manager.alloc_pages(3)
    b = manager.alloc_pages(3)
    c = manager.alloc_pages(3)
    manager.free_pages(a, 3)
    manager.free_pages(c, 3)
    assert manager.free_blocks() == [(a, 3), (c, 3)]
    manager.free_pages(b, 3)
    assert manager.free_blocks() == [(0, 9)]
    assert manager.nr_free_pages() == 9


def test_free_merges_with_previous():
    manager, pages = make_manager(8)
    a = manager.alloc_pages(4)
    manager.free_pages(a, 2)
    manager.free_pages(a + 2, 2)
    assert manager.free_blocks() == [(0, 8)]
    assert not pages[a + 2].is_head()


def test_free_twice_rejected():
    manager, _ = make_manager(8)
    a = manager.alloc_pages(2)
    manager.free_pages(a, 2)
    with pytest.raises(ValueError):
        manager.free_pages(a, 2)


def test_free_out_of_range_rejected():
    manager, _ = make_manager(8)
    with pytest.raises(IndexError):
        manager.free_pages(6, 4)


def test_alloc_free_round_trip_restores_state():
    manager, _ = make_manager(32, [(0, 12), (16, 16)])
    before = manager.free_blocks()
    taken = [(manager.alloc_pages(n), n) for n in (1, 5, 7, 3)]
    assert all(index is not None for index, _ in taken)
    for index, n in reversed(taken):
        manager.free_pages(index, n)
    assert manager.free_blocks() == before
    assert manager.nr_free_pages() == sum(n for _, n in before)


def test_check_passes_and_preserves_free_list():
    manager, _ = make_manager(64)
    before = manager.free_blocks()
    manager.check()
    assert manager.free_blocks() == before
    assert manager.nr_free_pages() == 64


def test_check_with_several_regions():
    manager, _ = make_manager(40, [(0, 3), (8, 30)])
    before = manager.free_blocks()
    manager.check()
    assert manager.free_blocks() == before


def test_check_fails_without_enough_memory():
    manager, _ = make_manager(4)
    assert manager.nr_free_pages() == 4
    assert manager.alloc_pages(5) is None
    with pytest.raises(AssertionError):
        manager.check()