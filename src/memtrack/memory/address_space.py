"""Address space — the flat array of cells that *is* physical memory.

Every other structure in the tracker (page table, segment list,
process registry) is bookkeeping *about* this array.  When they
disagree, the array wins.

Each cell is one of three things::

    None            free
    PageCell        part of a page frame owned by a process
    SegmentCell     part of a segment owned by a process

Cells never point at each other; a cell only knows who owns it and
where it sits inside that owner's page or segment.

Free space is never stored as a free list.  ``scan_free_blocks()``
walks the array left to right and reports the maximal runs of free
cells.  That costs O(capacity) per call, but a free list that drifts
out of sync with the cells is impossible by construction.
"""

from collections.abc import Iterator
from dataclasses import dataclass
from typing import TypeAlias


@dataclass(frozen=True)
class PageCell:
    """A cell inside a page frame.

    Attributes:
        pid: Owning process id.
        name: Owning process name.
        page_number: Logical page number within the process.
        offset: Position of this cell inside the page.

    """

    pid: int
    name: str
    page_number: int
    offset: int


@dataclass(frozen=True)
class SegmentCell:
    """A cell inside a segment.

    Attributes:
        pid: Owning process id.
        name: Owning process name.
        kind: Segment kind tag (``"code"``, ``"data"``, ...).
        offset: Position of this cell inside the segment.

    """

    pid: int
    name: str
    kind: str
    offset: int


Cell: TypeAlias = PageCell | SegmentCell | None


@dataclass(frozen=True)
class FreeBlock:
    """A maximal run of free cells."""

    start: int
    size: int

    @property
    def end(self) -> int:
        """Return the first offset past the block."""
        return self.start + self.size


class AddressSpace:
    """Fixed-size array of cells with range fill, clear and move."""

    def __init__(self, capacity: int) -> None:
        """Create an all-free address space of *capacity* cells."""
        self._capacity = capacity
        self._cells: list[Cell] = [None] * capacity

    @property
    def capacity(self) -> int:
        """Return the number of cells."""
        return self._capacity

    def __len__(self) -> int:
        """Return the number of cells."""
        return self._capacity

    def __getitem__(self, index: int) -> Cell:
        """Return the cell at *index*."""
        return self._cells[index]

    def __iter__(self) -> Iterator[Cell]:
        """Iterate cells in address order."""
        return iter(self._cells)

    def snapshot(self) -> list[Cell]:
        """Return a copy of every cell in address order."""
        return list(self._cells)

    def occupied_count(self) -> int:
        """Return the number of cells that are not free."""
        return sum(1 for cell in self._cells if cell is not None)

    def is_free(self, start: int, size: int) -> bool:
        """Return True if every cell in ``[start, start + size)`` is free."""
        return all(cell is None for cell in self._cells[start : start + size])

    def write(self, start: int, cells: list[Cell]) -> None:
        """Overwrite consecutive cells starting at *start*."""
        self._check_range(start, len(cells))
        self._cells[start : start + len(cells)] = cells

    def clear(self, start: int, size: int) -> None:
        """Mark ``[start, start + size)`` free."""
        self._check_range(start, size)
        self._cells[start : start + size] = [None] * size

    def move(self, *, src: int, dst: int, size: int) -> None:
        """Relocate *size* cells from *src* to *dst*.

        The source range is cleared first, so overlapping ranges move
        correctly in either direction.
        """
        self._check_range(src, size)
        self._check_range(dst, size)
        block = self._cells[src : src + size]
        self._cells[src : src + size] = [None] * size
        self._cells[dst : dst + size] = block

    def reset(self) -> None:
        """Free every cell."""
        self._cells = [None] * self._capacity

    def scan_free_blocks(self) -> list[FreeBlock]:
        """Return the maximal free runs in ascending start order.

        A single left-to-right pass: a run opens on the first free cell
        after an occupied one (or at offset 0) and closes on the next
        occupied cell or at the end of memory.
        """
        blocks: list[FreeBlock] = []
        run_start: int | None = None
        for index, cell in enumerate(self._cells):
            if cell is None:
                if run_start is None:
                    run_start = index
            elif run_start is not None:
                blocks.append(FreeBlock(start=run_start, size=index - run_start))
                run_start = None
        if run_start is not None:
            blocks.append(FreeBlock(start=run_start, size=self._capacity - run_start))
        return blocks

    def owners(self) -> dict[int, int]:
        """Return a mapping of pid to the number of cells it occupies."""
        counts: dict[int, int] = {}
        for cell in self._cells:
            if cell is not None:
                counts[cell.pid] = counts.get(cell.pid, 0) + 1
        return counts

    def _check_range(self, start: int, size: int) -> None:
        if start < 0 or size < 0 or start + size > self._capacity:
            msg = f"Range [{start}, {start + size}) outside address space of {self._capacity}"
            raise IndexError(msg)
