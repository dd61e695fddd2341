"""Paging allocator — fixed-size frames handed out lowest-index first.

Physical memory is divided into equal **frames** of ``page_size``
cells.  A process asking for ``size`` cells receives
``ceil(size / page_size)`` frames; its logical page 0 lives in the
first frame it was given, page 1 in the second, and so on.  The frames
themselves can be scattered anywhere in memory.

Why no best-fit here?
    Any free frame is as good as any other, so placement is simply the
    first free frames in index order.  That also means paging never
    suffers external fragmentation and never needs compaction.

The cost is **internal fragmentation**: the last page of a process is
usually only partly used.  A 6-cell request with 4-cell pages takes
two frames (8 cells) and wastes 2.

The allocator keeps one ``PageTableSlot`` per frame and mirrors every
binding into the ``AddressSpace`` so both views always agree.
"""

import math
from dataclasses import dataclass

from memtrack.errors import OutOfMemoryError
from memtrack.memory.address_space import AddressSpace, Cell, PageCell


@dataclass(frozen=True)
class PageTableSlot:
    """Binding of one physical frame to one logical page of a process.

    Attributes:
        pid: Owning process id.
        name: Owning process name.
        page_number: Logical page number within the process.
        used: Cells of the frame actually requested (``<= page_size``).

    """

    pid: int
    name: str
    page_number: int
    used: int


@dataclass(frozen=True)
class PageAllocation:
    """Result of a successful paging allocation."""

    frames: tuple[int, ...]
    internal_fragmentation: int


def pages_needed(size: int, page_size: int) -> int:
    """Return how many frames a request of *size* cells occupies."""
    return math.ceil(size / page_size)


def internal_fragmentation(size: int, page_size: int) -> int:
    """Return the unused cells in the last page of a *size*-cell request."""
    remainder = size % page_size
    return page_size - remainder if remainder else 0


class PagingAllocator:
    """Manage page frames over a shared address space."""

    def __init__(self, *, space: AddressSpace, page_size: int) -> None:
        """Create a paging allocator with every frame free.

        Args:
            space: The address space frames are carved from.
            page_size: Cells per frame.

        """
        self._space = space
        self._page_size = page_size
        self._total_frames = space.capacity // page_size
        self._slots: list[PageTableSlot | None] = [None] * self._total_frames

    @property
    def page_size(self) -> int:
        """Return the number of cells per frame."""
        return self._page_size

    @property
    def total_frames(self) -> int:
        """Return the number of physical frames."""
        return self._total_frames

    @property
    def free_frames(self) -> int:
        """Return the number of unbound frames."""
        return sum(1 for slot in self._slots if slot is None)

    def page_table(self) -> list[PageTableSlot | None]:
        """Return a copy of the page table, one slot per frame."""
        return list(self._slots)

    def slot(self, frame: int) -> PageTableSlot | None:
        """Return the binding of *frame* (``None`` if free)."""
        return self._slots[frame]

    def frames_for(self, pid: int) -> list[int]:
        """Return the frames bound to *pid*, ordered by logical page."""
        owned = [
            (slot.page_number, frame)
            for frame, slot in enumerate(self._slots)
            if slot is not None and slot.pid == pid
        ]
        return [frame for _, frame in sorted(owned)]

    def find_free_frames(self, count: int) -> list[int]:
        """Return up to *count* free frame indices, lowest first."""
        found: list[int] = []
        for frame, slot in enumerate(self._slots):
            if len(found) == count:
                break
            if slot is None:
                found.append(frame)
        return found

    def allocate(self, pid: int, name: str, size: int) -> PageAllocation:
        """Bind enough frames to hold *size* cells for a process.

        Nothing is mutated unless every required frame is available.

        Args:
            pid: The process receiving the frames.
            name: The process name, recorded in slots and cells.
            size: Requested number of cells.

        Returns:
            The bound frames and the slack in the last page.

        Raises:
            OutOfMemoryError: If fewer free frames exist than required.

        """
        required = pages_needed(size, self._page_size)
        frames = self.find_free_frames(required)
        if len(frames) < required:
            msg = (
                f"Cannot allocate {required} pages for process {name} (PID: {pid}): "
                f"only {len(frames)} free frames"
            )
            raise OutOfMemoryError(msg)

        slack = internal_fragmentation(size, self._page_size)
        last = required - 1
        for page_number, frame in enumerate(frames):
            used = self._page_size - slack if page_number == last else self._page_size
            self._slots[frame] = PageTableSlot(
                pid=pid, name=name, page_number=page_number, used=used
            )
            cells: list[Cell] = [
                PageCell(pid=pid, name=name, page_number=page_number, offset=offset)
                for offset in range(self._page_size)
            ]
            self._space.write(frame * self._page_size, cells)
        return PageAllocation(frames=tuple(frames), internal_fragmentation=slack)

    def free(self, frames: list[int]) -> None:
        """Release *frames*: empty their slots and clear their cells."""
        for frame in frames:
            self._slots[frame] = None
            self._space.clear(frame * self._page_size, self._page_size)

    def reset(self) -> None:
        """Unbind every frame (the address space is reset by its owner)."""
        self._slots = [None] * self._total_frames
