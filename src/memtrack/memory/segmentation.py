"""Segmentation allocator — variable-size segments, best fit, compaction.

Segmentation gives each logical unit of a program (code, data, stack,
heap) its own contiguous **segment** of exactly the requested size.
There is no internal fragmentation, but as segments come and go the
free space splinters into holes between them: **external
fragmentation**.  Enough memory may be free in total while no single
hole is large enough.

Placement policy — best fit:
    Choose the smallest free block that still fits.  Blocks arrive in
    ascending start order and only a *strictly* smaller candidate
    replaces the current best, so ties go to the lowest address.

Compaction:
    Slide every live segment toward address 0, preserving their order,
    until they sit back to back.  All free space then forms one block
    at the end of memory.  Running it twice changes nothing.

External fragmentation is reported as the share of free space lying
outside the largest free block::

    round(100 * (free_total - largest) / free_total)
"""

import dataclasses
from dataclasses import dataclass

from memtrack.memory.address_space import AddressSpace, Cell, FreeBlock, SegmentCell

DEFAULT_SEGMENT_KIND = "code"


@dataclass
class Segment:
    """A contiguous range of cells owned by one process.

    ``start`` is the only field that changes after placement; compaction
    rewrites it when the segment slides.

    Attributes:
        pid: Owning process id.
        name: Owning process name.
        kind: Segment kind tag.
        start: First cell of the segment.
        size: Number of cells.

    """

    pid: int
    name: str
    kind: str
    start: int
    size: int

    @property
    def limit(self) -> int:
        """Return the highest valid offset inside the segment."""
        return self.size - 1

    @property
    def end(self) -> int:
        """Return the first cell past the segment."""
        return self.start + self.size

    def overlaps(self, other: "Segment") -> bool:
        """Return True if the two segments share any cell."""
        return self.start < other.end and other.start < self.end

    def copy(self) -> "Segment":
        """Return an independent copy."""
        return dataclasses.replace(self)


def best_fit(blocks: list[FreeBlock], size: int) -> FreeBlock | None:
    """Return the smallest block of at least *size* cells, or None."""
    best: FreeBlock | None = None
    for block in blocks:
        if block.size >= size and (best is None or block.size < best.size):
            best = block
    return best


def external_fragmentation(blocks: list[FreeBlock]) -> int:
    """Return the percentage of free space outside the largest block."""
    free_total = sum(block.size for block in blocks)
    if free_total == 0:
        return 0
    largest = max(block.size for block in blocks)
    return round(100 * (free_total - largest) / free_total)


class SegmentationAllocator:
    """Place, release and compact segments over a shared address space."""

    def __init__(self, *, space: AddressSpace) -> None:
        """Create an allocator with no live segments."""
        self._space = space
        self._segments: list[Segment] = []

    @property
    def segment_count(self) -> int:
        """Return the number of live segments."""
        return len(self._segments)

    def segments(self) -> list[Segment]:
        """Return copies of the live segments in placement order."""
        return [segment.copy() for segment in self._segments]

    def segments_for(self, pid: int) -> list[Segment]:
        """Return the live segment records owned by *pid*."""
        return [segment for segment in self._segments if segment.pid == pid]

    def free_blocks(self) -> list[FreeBlock]:
        """Return the current free blocks in ascending start order."""
        return self._space.scan_free_blocks()

    def find_block(self, size: int) -> FreeBlock | None:
        """Return the best-fit block for *size* cells, or None."""
        return best_fit(self.free_blocks(), size)

    def place(self, *, pid: int, name: str, size: int, kind: str, block: FreeBlock) -> Segment:
        """Create a segment at the start of *block* and mark its cells.

        Args:
            pid: Owning process id.
            name: Owning process name.
            size: Segment size in cells (``<= block.size``).
            kind: Segment kind tag.
            block: A free block chosen by ``find_block``.

        Returns:
            The live segment record.

        """
        if size > block.size:
            msg = f"Segment of {size} cells does not fit block of {block.size} at {block.start}"
            raise ValueError(msg)
        segment = Segment(pid=pid, name=name, kind=kind, start=block.start, size=size)
        cells: list[Cell] = [
            SegmentCell(pid=pid, name=name, kind=kind, offset=offset) for offset in range(size)
        ]
        self._space.write(segment.start, cells)
        self._segments.append(segment)
        return segment

    def release(self, pid: int) -> list[Segment]:
        """Remove every segment owned by *pid* and free its cells.

        Returns:
            The removed segment records.

        """
        removed = self.segments_for(pid)
        for segment in removed:
            self._space.clear(segment.start, segment.size)
        self._segments = [segment for segment in self._segments if segment.pid != pid]
        return removed

    def compact(self) -> int:
        """Pack live segments contiguously from address 0.

        Segments keep their relative order.  Each segment's record is
        updated in place, so every holder of the record (such as the
        owning process) sees the new start.

        Returns:
            The number of segments that moved.

        """
        self._segments.sort(key=lambda segment: segment.start)
        cursor = 0
        moved = 0
        for segment in self._segments:
            if segment.start != cursor:
                self._space.move(src=segment.start, dst=cursor, size=segment.size)
                segment.start = cursor
                moved += 1
            cursor += segment.size
        return moved

    def external_fragmentation(self) -> int:
        """Return the current external fragmentation percentage."""
        return external_fragmentation(self.free_blocks())

    def reset(self) -> None:
        """Forget every segment (the address space is reset by its owner)."""
        self._segments = []
