"""Usage statistics — running counters and immutable snapshots.

``StatsCounter`` is the tracker's mutable tally; ``MemoryStats`` is
the frozen view handed to callers.  Used and free are maintained in
*requested* cells (a 6-cell paging request counts 6, not 8), so they
always sum to capacity.

The ``fragmentation`` figure depends on the mode: in paging it is the
total internal fragmentation in cells, in segmentation it is the
external fragmentation percentage.
"""

from dataclasses import asdict, dataclass

from memtrack.config import Mode


@dataclass(frozen=True)
class MemoryStats:
    """Point-in-time statistics for a tracker."""

    mode: Mode
    total: int
    used: int
    free: int
    page_faults: int
    segment_violations: int
    internal_fragmentation: int
    external_fragmentation: int

    @property
    def fragmentation(self) -> int:
        """Return the fragmentation figure relevant to the mode."""
        if self.mode is Mode.PAGING:
            return self.internal_fragmentation
        return self.external_fragmentation

    @property
    def utilization(self) -> float:
        """Return the used share of capacity in ``[0, 1]``."""
        return self.used / self.total if self.total else 0.0

    def as_dict(self) -> dict[str, object]:
        """Return a JSON-friendly dict including the derived figures."""
        data: dict[str, object] = asdict(self)
        data["mode"] = str(self.mode)
        data["fragmentation"] = self.fragmentation
        return data


@dataclass
class StatsCounter:
    """Mutable counters owned by the tracker."""

    capacity: int
    used: int = 0
    free: int = 0
    page_faults: int = 0
    segment_violations: int = 0
    internal_fragmentation: int = 0
    external_fragmentation: int = 0

    def __post_init__(self) -> None:
        """Start with all capacity free."""
        self.free = self.capacity - self.used

    def reserve(self, size: int, *, slack: int = 0) -> None:
        """Account for *size* newly used cells and their page slack."""
        self.used += size
        self.free -= size
        self.internal_fragmentation += slack

    def release(self, size: int, *, slack: int = 0) -> None:
        """Account for *size* freed cells and their page slack."""
        self.used -= size
        self.free += size
        self.internal_fragmentation -= slack

    def reset(self) -> None:
        """Zero every counter and mark all capacity free."""
        self.used = 0
        self.free = self.capacity
        self.page_faults = 0
        self.segment_violations = 0
        self.internal_fragmentation = 0
        self.external_fragmentation = 0

    def snapshot(self, mode: Mode) -> MemoryStats:
        """Freeze the counters into a ``MemoryStats``."""
        return MemoryStats(
            mode=mode,
            total=self.capacity,
            used=self.used,
            free=self.free,
            page_faults=self.page_faults,
            segment_violations=self.segment_violations,
            internal_fragmentation=self.internal_fragmentation,
            external_fragmentation=self.external_fragmentation,
        )
