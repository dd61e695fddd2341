"""Memory subsystem — the address space and its two allocators.

Re-exports public symbols so callers can write::

    from memtrack.memory import AddressSpace, PagingAllocator
"""

from memtrack.memory.address_space import (
    AddressSpace,
    Cell,
    FreeBlock,
    PageCell,
    SegmentCell,
)
from memtrack.memory.paging import (
    PageAllocation,
    PageTableSlot,
    PagingAllocator,
    internal_fragmentation,
    pages_needed,
)
from memtrack.memory.segmentation import (
    DEFAULT_SEGMENT_KIND,
    Segment,
    SegmentationAllocator,
    best_fit,
    external_fragmentation,
)

__all__ = [
    "DEFAULT_SEGMENT_KIND",
    "AddressSpace",
    "Cell",
    "FreeBlock",
    "PageAllocation",
    "PageCell",
    "PageTableSlot",
    "PagingAllocator",
    "Segment",
    "SegmentCell",
    "SegmentationAllocator",
    "best_fit",
    "external_fragmentation",
    "internal_fragmentation",
    "pages_needed",
]
