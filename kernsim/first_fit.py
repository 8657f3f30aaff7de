"""First-fit physical page allocator.

Free memory is kept as a list of free blocks ordered by address. Each block
is identified by the index of its head page, whose ``property`` holds the
block's length in pages. Allocation takes the first block that is large
enough and splits off what is left. Freeing inserts the block in address
order and merges it with adjacent free neighbours.
"""

from __future__ import annotations

from bisect import bisect_left
from typing import Sequence

from kernsim.page import Page, PageFlag

NAME = "default_pmm_manager"


def _require(condition: bool, description: str) -> None:
    if not condition:
        raise AssertionError(f"allocator check failed: {description}")


class FirstFitManager:
    """First-fit allocator over a fixed array of page descriptors.

    Pages are addressed by their index in ``pages``.
    """

    name = NAME

    def __init__(self, pages: Sequence[Page]) -> None:
        self._pages = pages
        self._free: list[int] = []
        self._nr_free = 0

    def _check_range(self, base: int, n: int) -> None:
        if n <= 0:
            raise ValueError(f"page count must be positive, got {n}")
        if base < 0 or base + n > len(self._pages):
            raise IndexError(
                f"pages [{base}, {base + n}) outside the {len(self._pages)} managed pages"
            )

    def init(self) -> None:
        """Empty the free list."""
        self._free = []
        self._nr_free = 0

    def init_memmap(self, base: int, n: int) -> None:
        """Hand the reserved pages ``[base, base + n)`` to the allocator as one free block."""
        self._check_range(base, n)
        block = self._pages[base:base + n]
        for index, page in enumerate(block, start=base):
            if not page.reserved():
                raise ValueError(f"page {index} is not reserved")
        for page in block:
            page.flags = PageFlag(0)
            page.property = 0
            page.ref = 0
        head = self._pages[base]
        head.property = n
        head.flags |= PageFlag.PROPERTY
        self._nr_free += n
        self._free.insert(bisect_left(self._free, base), base)

    def alloc_pages(self, n: int) -> int | None:
        """Allocate ``n`` contiguous pages; return the first page's index, or None."""
        if n <= 0:
            raise ValueError(f"page count must be positive, got {n}")
        if n > self._nr_free:
            return None
        for position, index in enumerate(self._free):
            page = self._pages[index]
            if page.property >= n:
                break
        else:
            return None
        del self._free[position]
        if page.property > n:
            rest = self._pages[index + n]
            rest.property = page.property - n
            rest.flags |= PageFlag.PROPERTY
            self._free.insert(position, index + n)
        self._nr_free -= n
        page.flags &= ~PageFlag.PROPERTY
        return index

    def free_pages(self, base: int, n: int) -> None:
        """Return the pages ``[base, base + n)`` to the free list, merging neighbours."""
        self._check_range(base, n)
        block = self._pages[base:base + n]
        for index, page in enumerate(block, start=base):
            if page.reserved() or page.is_head():
                raise ValueError(f"page {index} is reserved or already free")
        for page in block:
            page.flags = PageFlag(0)
            page.ref = 0
        head = self._pages[base]
        head.property = n
        head.flags |= PageFlag.PROPERTY
        self._nr_free += n

        position = bisect_left(self._free, base)
        self._free.insert(position, base)

        if position > 0:
            prev_index = self._free[position - 1]
            prev = self._pages[prev_index]
            if prev_index + prev.property == base:
                prev.property += head.property
                head.flags &= ~PageFlag.PROPERTY
                del self._free[position]
                position -= 1
                base, head = prev_index, prev

        if position + 1 < len(self._free):
            next_index = self._free[position + 1]
            if base + head.property == next_index:
                following = self._pages[next_index]
                head.property += following.property
                following.flags &= ~PageFlag.PROPERTY
                del self._free[position + 1]

    def nr_free_pages(self) -> int:
        """Number of free pages."""
        return self._nr_free

    def free_blocks(self) -> list[tuple[int, int]]:
        """The free blocks in address order, as (head index, length) pairs."""
        return [(index, self._pages[index].property) for index in self._free]

    def _basic_check(self) -> None:
        p0 = self.alloc_pages(1)
        _require(p0 is not None, "first single page allocated")
        p1 = self.alloc_pages(1)
        _require(p1 is not None, "second single page allocated")
        p2 = self.alloc_pages(1)
        _require(p2 is not None, "third single page allocated")

        _require(len({p0, p1, p2}) == 3, "allocated pages are distinct")
        _require(
            all(self._pages[p].ref == 0 for p in (p0, p1, p2)),
            "allocated pages have no references",
        )
        _require(
            all(p < len(self._pages) for p in (p0, p1, p2)),
            "allocated pages lie within memory",
        )

        free_store, nr_free_store = self._free, self._nr_free
        self._free, self._nr_free = [], 0

        _require(self.alloc_pages(1) is None, "nothing allocated from an empty list")

        for p in (p0, p1, p2):
            self.free_pages(p, 1)
        _require(self._nr_free == 3, "three pages free after freeing three")

        p0 = self.alloc_pages(1)
        _require(p0 is not None, "page reallocated")
        p1 = self.alloc_pages(1)
        _require(p1 is not None, "page reallocated")
        p2 = self.alloc_pages(1)
        _require(p2 is not None, "page reallocated")

        _require(self.alloc_pages(1) is None, "free list exhausted")

        self.free_pages(p0, 1)
        _require(bool(self._free), "free list holds the freed page")

        p = self.alloc_pages(1)
        _require(p == p0, "the freed page is allocated again")
        _require(self.alloc_pages(1) is None, "free list exhausted again")

        _require(self._nr_free == 0, "no pages left free")
        self._free, self._nr_free = free_store, nr_free_store

        self.free_pages(p, 1)
        self.free_pages(p1, 1)
        self.free_pages(p2, 1)

    def check(self) -> None:
        """Exercise the allocator and raise AssertionError on any misbehaviour.

        The free list is left as it was found.
        """
        count = total = 0
        for index in self._free:
            page = self._pages[index]
            _require(page.is_head(), "every listed block has its head flag")
            count += 1
            total += page.property
        _require(total == self.nr_free_pages(), "block sizes add up to the free count")

        self._basic_check()

        p0 = self.alloc_pages(5)
        _require(p0 is not None, "five pages allocated")
        _require(not self._pages[p0].is_head(), "allocated head loses its flag")

        free_store = self._free
        self._free = []
        _require(self.alloc_pages(1) is None, "nothing allocated from an empty list")

        nr_free_store = self._nr_free
        self._nr_free = 0

        self.free_pages(p0 + 2, 3)
        _require(self.alloc_pages(4) is None, "four pages do not fit in three")
        _require(
            self._pages[p0 + 2].is_head() and self._pages[p0 + 2].property == 3,
            "freed block of three is listed",
        )
        p1 = self.alloc_pages(3)
        _require(p1 is not None, "block of three allocated")
        _require(self.alloc_pages(1) is None, "free list exhausted")
        _require(p0 + 2 == p1, "block of three reallocated in place")

        p2 = p0 + 1
        self.free_pages(p0, 1)
        self.free_pages(p1, 3)
        _require(
            self._pages[p0].is_head() and self._pages[p0].property == 1,
            "single freed page is a block of one",
        )
        _require(
            self._pages[p1].is_head() and self._pages[p1].property == 3,
            "freed block of three is a block of three",
        )

        p0 = self.alloc_pages(1)
        _require(p0 == p2 - 1, "first fit takes the lowest block")
        self.free_pages(p0, 1)
        p0 = self.alloc_pages(2)
        _require(p0 == p2 + 1, "first fit skips blocks that are too small")

        self.free_pages(p0, 2)
        self.free_pages(p2, 1)

        p0 = self.alloc_pages(5)
        _require(p0 is not None, "merged blocks serve five pages")
        _require(self.alloc_pages(1) is None, "free list exhausted")

        _require(self._nr_free == 0, "no pages left free")
        self._nr_free = nr_free_store
        self._free = free_store
        self.free_pages(p0, 5)

        for index in self._free:
            count -= 1
            total -= self._pages[index].property
        _require(count == 0, "block count restored")
        _require(total == 0, "free page total restored")