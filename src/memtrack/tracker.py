"""Memory tracker — the allocator core.

The tracker owns one simulated address space and runs it under one of
two memory-management disciplines at a time:

- **Paging** — memory is cut into equal frames; a process gets as many
  frames as it needs, wherever they are.
- **Segmentation** — a process gets one contiguous segment of exactly
  the size it asked for, placed by best fit, with compaction as the
  fallback when no hole is big enough.

Lifecycle::

    tracker = MemoryTracker(capacity=64, page_size=4)
    pid = tracker.allocate("OS Kernel", 8)
    tracker.deallocate(pid)
    tracker.set_mode(Mode.SEGMENTATION)   # wipes everything

Every public operation runs to completion before returning and leaves
the tracker consistent (see ``check_invariants``).  The tracker is not
thread-safe: an embedding that calls it from several threads must
serialise the calls behind a single lock.

Failures never crash the tracker.  Each one is logged, reported to
observers, and raised as an ``AllocationError`` subclass with nothing
changed in memory.
"""

from memtrack.config import Mode, TrackerConfig, parse_mode
from memtrack.errors import (
    AllocationError,
    ConfigError,
    InsufficientMemoryError,
    InvalidModeError,
    InvalidSizeError,
    InvariantError,
    OutOfMemoryError,
    UnknownProcessError,
)
from memtrack.events import MemoryObserver
from memtrack.logging import Logger, LogLevel, LogSource
from memtrack.memory.address_space import AddressSpace, Cell, FreeBlock, PageCell, SegmentCell
from memtrack.memory.paging import PageTableSlot, PagingAllocator
from memtrack.memory.segmentation import DEFAULT_SEGMENT_KIND, Segment, SegmentationAllocator
from memtrack.registry import Process, ProcessRegistry
from memtrack.stats import MemoryStats, StatsCounter

# Sample workload seeded by the `demo` command.
DEMO_WORKLOAD: tuple[tuple[str, int], ...] = (
    ("OS Kernel", 8),
    ("Browser", 12),
    ("Editor", 6),
)


class MemoryTracker:
    """Allocate, free and compact memory under paging or segmentation."""

    def __init__(
        self,
        config: TrackerConfig | None = None,
        *,
        capacity: int | None = None,
        page_size: int | None = None,
        mode: Mode | str | None = None,
        logger: Logger | None = None,
    ) -> None:
        """Create a tracker with all memory free.

        Either pass a ready ``config`` or any of the keyword shortcuts;
        unspecified values take the ``TrackerConfig`` defaults.

        Args:
            config: Complete construction parameters.
            capacity: Total cells in the address space.
            page_size: Cells per page frame.
            mode: Starting discipline.
            logger: Log buffer to write to (a fresh one by default).

        Raises:
            ConfigError: If the geometry or mode is invalid, or if
                ``config`` is combined with keyword shortcuts.

        """
        overrides: dict[str, object] = {
            key: value
            for key, value in (("capacity", capacity), ("page_size", page_size), ("mode", mode))
            if value is not None
        }
        if config is None:
            config = TrackerConfig(**overrides)  # type: ignore[arg-type]
        elif overrides:
            msg = f"Pass either config or keyword shortcuts, not both (got {sorted(overrides)})"
            raise ConfigError(msg)
        self._config = config
        self._mode = config.mode
        self._logger = logger if logger is not None else Logger()
        self._observers: list[MemoryObserver] = []

        self._space = AddressSpace(config.capacity)
        self._paging = PagingAllocator(space=self._space, page_size=config.page_size)
        self._segmentation = SegmentationAllocator(space=self._space)
        self._registry = ProcessRegistry()
        self._stats = StatsCounter(capacity=config.capacity)

    # -- Configuration --------------------------------------------------------

    @property
    def config(self) -> TrackerConfig:
        """Return the construction parameters."""
        return self._config

    @property
    def mode(self) -> Mode:
        """Return the current discipline."""
        return self._mode

    @property
    def capacity(self) -> int:
        """Return the total number of cells."""
        return self._config.capacity

    @property
    def page_size(self) -> int:
        """Return the number of cells per frame."""
        return self._config.page_size

    @property
    def total_frames(self) -> int:
        """Return the number of page frames."""
        return self._paging.total_frames

    @property
    def logger(self) -> Logger:
        """Return the tracker's log buffer."""
        return self._logger

    # -- Observers ------------------------------------------------------------

    def subscribe(self, observer: MemoryObserver) -> None:
        """Start delivering notifications to *observer*."""
        if observer not in self._observers:
            self._observers.append(observer)

    def unsubscribe(self, observer: MemoryObserver) -> None:
        """Stop delivering notifications to *observer* (no-op if absent)."""
        if observer in self._observers:
            self._observers.remove(observer)

    def _log(self, level: LogLevel, message: str, *, source: LogSource) -> None:
        self._logger.log(level, message, source=source)
        for observer in tuple(self._observers):
            observer.on_log(level, message)

    def _state_changed(self) -> None:
        for observer in tuple(self._observers):
            observer.on_state_changed()

    def _fail(self, error: AllocationError, *, source: LogSource) -> AllocationError:
        """Log *error* and hand it back for the caller to raise."""
        self._log(LogLevel.ERROR, str(error), source=source)
        return error

    @property
    def _source(self) -> LogSource:
        return LogSource.PAGING if self._mode is Mode.PAGING else LogSource.SEGMENTATION

    # -- Mode switching -------------------------------------------------------

    def set_mode(self, mode: Mode | str) -> None:
        """Switch discipline, discarding every allocation and statistic.

        Switching to the current mode still resets.

        Raises:
            InvalidModeError: If *mode* is not a known mode; nothing changes.

        """
        try:
            target = parse_mode(mode)
        except ValueError:
            msg = f"Mode must be either 'paging' or 'segmentation', got {mode!r}"
            raise self._fail(InvalidModeError(msg), source=LogSource.TRACKER) from None

        self._space.reset()
        self._paging.reset()
        self._segmentation.reset()
        self._registry.reset()
        self._stats.reset()
        self._mode = target

        self._log(LogLevel.INFO, f"Switched to {target} mode", source=LogSource.TRACKER)
        self._state_changed()

    # -- Allocation -----------------------------------------------------------

    def _check_request(self, size: object) -> int:
        """Validate a size against the free total; return it as an int."""
        if isinstance(size, bool) or not isinstance(size, int) or size <= 0:
            msg = f"Invalid size: {size} KB"
            raise self._fail(InvalidSizeError(msg), source=LogSource.TRACKER)
        if size > self._stats.free:
            msg = f"Not enough memory: requested {size} KB, available {self._stats.free} KB"
            raise self._fail(InsufficientMemoryError(msg), source=LogSource.TRACKER)
        return size

    def allocate(self, name: str, size: int, kind: str = DEFAULT_SEGMENT_KIND) -> int:
        """Allocate *size* cells for a new process.

        In paging mode *kind* is ignored.  In segmentation mode it tags
        the process's first segment.

        Args:
            name: Process name.
            size: Number of cells requested.
            kind: Segment kind (segmentation mode only).

        Returns:
            The new process id.

        Raises:
            InvalidSizeError: If *size* is not a positive integer.
            InsufficientMemoryError: If *size* exceeds the free total.
            OutOfMemoryError: If no placement exists for the request.

        """
        size = self._check_request(size)
        pid = self._registry.next_pid

        if self._mode is Mode.PAGING:
            try:
                allocation = self._paging.allocate(pid, name, size)
            except OutOfMemoryError as e:
                raise self._fail(e, source=LogSource.PAGING) from None
            process = Process(
                pid=pid,
                name=name,
                size=size,
                frames=list(allocation.frames),
                internal_fragmentation=allocation.internal_fragmentation,
            )
            self._stats.reserve(size, slack=allocation.internal_fragmentation)
            message = (
                f"Allocated {size} KB ({len(allocation.frames)} pages) "
                f"for process {name} (PID: {pid})"
            )
        else:
            segment = self._place_segment(pid, name, size, kind)
            process = Process(pid=pid, name=name, size=size, segments=[segment])
            self._stats.reserve(size)
            self._refresh_external_fragmentation()
            message = f"Allocated {size} KB for '{kind}' segment of process {name} (PID: {pid})"

        self._registry.reserve_pid()
        self._registry.add(process)
        self._log(LogLevel.INFO, message, source=self._source)
        self._state_changed()
        return pid

    def add_segment(self, pid: int, size: int, kind: str = DEFAULT_SEGMENT_KIND) -> Segment:
        """Give an existing segmentation-mode process another segment.

        Returns:
            A copy of the new segment record.

        Raises:
            InvalidModeError: If the tracker is in paging mode.
            UnknownProcessError: If *pid* is not registered.
            InvalidSizeError: If *size* is not a positive integer.
            InsufficientMemoryError: If *size* exceeds the free total.
            OutOfMemoryError: If no placement exists for the request.

        """
        if self._mode is not Mode.SEGMENTATION:
            msg = "Adding segments requires segmentation mode"
            raise self._fail(InvalidModeError(msg), source=LogSource.TRACKER)
        process = self._lookup(pid)
        size = self._check_request(size)

        segment = self._place_segment(pid, process.name, size, kind)
        process.segments.append(segment)
        process.size += size
        self._stats.reserve(size)
        self._refresh_external_fragmentation()

        self._log(
            LogLevel.INFO,
            f"Allocated {size} KB for '{kind}' segment of process {process.name} (PID: {pid})",
            source=LogSource.SEGMENTATION,
        )
        self._state_changed()
        return segment.copy()

    def _place_segment(self, pid: int, name: str, size: int, kind: str) -> Segment:
        """Best-fit a segment, compacting once if nothing fits."""
        block = self._segmentation.find_block(size)
        if block is None:
            self._compact()
            block = self._segmentation.find_block(size)
        if block is None:
            msg = (
                f"Could not allocate {size} KB for segment '{kind}' "
                f"of process {name} (PID: {pid})"
            )
            error = self._fail(OutOfMemoryError(msg), source=LogSource.SEGMENTATION)
            self._stats.segment_violations += 1
            for observer in tuple(self._observers):
                observer.on_segment_violation()
            raise error
        return self._segmentation.place(pid=pid, name=name, size=size, kind=kind, block=block)

    def _lookup(self, pid: int) -> Process:
        # True and 1.0 hash like 1, so only genuine ints may reach the registry.
        valid = type(pid) is int
        process = self._registry.get(pid) if valid else None
        if process is None:
            msg = f"Process with PID {pid} not found"
            raise self._fail(UnknownProcessError(msg), source=LogSource.TRACKER)
        return process

    # -- Deallocation ---------------------------------------------------------

    def deallocate(self, pid: int) -> None:
        """Free every page or segment owned by *pid*.

        Raises:
            UnknownProcessError: If *pid* is not registered.

        """
        process = self._lookup(pid)
        self._registry.remove(pid)

        if self._mode is Mode.PAGING:
            self._paging.free(process.frames)
            self._stats.release(process.size, slack=process.internal_fragmentation)
            units = f"{len(process.frames)} pages"
        else:
            self._segmentation.release(pid)
            self._stats.release(process.size)
            self._refresh_external_fragmentation()
            units = f"{len(process.segments)} segments"

        self._log(
            LogLevel.INFO,
            f"Deallocated {process.size} KB ({units}) from process {process.name} (PID: {pid})",
            source=self._source,
        )
        self._state_changed()

    # -- Compaction -----------------------------------------------------------

    def compact(self) -> None:
        """Pack all segments toward address 0 (segmentation mode only)."""
        if self._mode is not Mode.SEGMENTATION:
            return
        self._compact()

    def _compact(self) -> None:
        moved = self._segmentation.compact()
        self._refresh_external_fragmentation()
        self._log(
            LogLevel.INFO,
            f"Memory compaction performed ({moved} segments moved)",
            source=LogSource.SEGMENTATION,
        )
        self._state_changed()

    def _refresh_external_fragmentation(self) -> None:
        self._stats.external_fragmentation = self._segmentation.external_fragmentation()

    # -- Fault simulation -----------------------------------------------------

    def simulate_page_fault(self) -> None:
        """Count a page fault and notify observers (paging mode only)."""
        if self._mode is not Mode.PAGING:
            return
        self._stats.page_faults += 1
        for observer in tuple(self._observers):
            observer.on_page_fault()
        self._log(LogLevel.WARNING, "Page fault simulated", source=LogSource.PAGING)

    def simulate_segment_violation(self) -> None:
        """Count a segment violation and notify observers (segmentation only)."""
        if self._mode is not Mode.SEGMENTATION:
            return
        self._stats.segment_violations += 1
        for observer in tuple(self._observers):
            observer.on_segment_violation()
        self._log(LogLevel.ERROR, "Segment violation simulated", source=LogSource.SEGMENTATION)

    # -- Queries --------------------------------------------------------------

    def stats(self) -> MemoryStats:
        """Return a snapshot of the usage counters."""
        return self._stats.snapshot(self._mode)

    def memory_state(self) -> list[Cell]:
        """Return every cell in address order."""
        return self._space.snapshot()

    def page_table(self) -> list[PageTableSlot | None]:
        """Return one slot per frame (all empty in segmentation mode)."""
        return self._paging.page_table()

    def segments(self) -> list[Segment]:
        """Return copies of the live segments (empty in paging mode)."""
        return self._segmentation.segments()

    def free_blocks(self) -> list[FreeBlock]:
        """Return the maximal free runs of cells."""
        return self._space.scan_free_blocks()

    def processes(self) -> dict[int, Process]:
        """Return copies of every process record, keyed by pid."""
        return self._registry.snapshot()

    def process(self, pid: int) -> Process:
        """Return a copy of one process record.

        Raises:
            UnknownProcessError: If *pid* is not registered.

        """
        return self._lookup(pid).snapshot()

    def dmesg(self) -> list[str]:
        """Return the log as formatted lines."""
        return [str(entry) for entry in self._logger.entries]

    # -- Demo & diagnostics ---------------------------------------------------

    def seed_demo(self) -> list[int]:
        """Allocate the sample workload and return the new pids."""
        return [self.allocate(name, size) for name, size in DEMO_WORKLOAD]

    def check_invariants(self) -> None:
        """Verify the bookkeeping against the address space.

        Raises:
            InvariantError: Describing the first inconsistency found.

        """
        stats = self._stats
        if stats.used + stats.free != self.capacity:
            msg = f"used {stats.used} + free {stats.free} != capacity {self.capacity}"
            raise InvariantError(msg)
        registered = sum(process.size for process in self._registry)
        if registered != stats.used:
            msg = f"registered size {registered} != used {stats.used}"
            raise InvariantError(msg)

        owners = self._space.owners()
        for process in self._registry:
            if owners.get(process.pid, 0) == 0:
                msg = f"PID {process.pid} owns no cells"
                raise InvariantError(msg)
        for pid in owners:
            if pid not in self._registry:
                msg = f"Cells owned by unregistered PID {pid}"
                raise InvariantError(msg)

        if self._mode is Mode.PAGING:
            self._check_paging()
        else:
            self._check_segmentation()

    def _check_paging(self) -> None:
        page_size = self.page_size
        if self._segmentation.segment_count:
            msg = "Segments exist in paging mode"
            raise InvariantError(msg)
        for frame, slot in enumerate(self._paging.page_table()):
            cells = [self._space[frame * page_size + i] for i in range(page_size)]
            if slot is None:
                if any(cell is not None for cell in cells):
                    msg = f"Free frame {frame} has occupied cells"
                    raise InvariantError(msg)
                continue
            if slot.used > page_size:
                msg = f"Frame {frame} claims {slot.used} used cells of {page_size}"
                raise InvariantError(msg)
            for offset, cell in enumerate(cells):
                expected = PageCell(
                    pid=slot.pid, name=slot.name, page_number=slot.page_number, offset=offset
                )
                if cell != expected:
                    msg = f"Frame {frame} cell {offset} is {cell!r}, expected {expected!r}"
                    raise InvariantError(msg)
        for process in self._registry:
            if process.frames != self._paging.frames_for(process.pid):
                msg = f"PID {process.pid} frames disagree with the page table"
                raise InvariantError(msg)

    def _check_segmentation(self) -> None:
        if any(slot is not None for slot in self._paging.page_table()):
            msg = "Page table is bound in segmentation mode"
            raise InvariantError(msg)
        ordered = sorted(self._segmentation.segments(), key=lambda s: s.start)
        for left, right in zip(ordered, ordered[1:], strict=False):
            if left.overlaps(right):
                msg = f"Segments at {left.start} and {right.start} overlap"
                raise InvariantError(msg)
        for segment in ordered:
            for offset in range(segment.size):
                cell = self._space[segment.start + offset]
                if not (
                    isinstance(cell, SegmentCell)
                    and cell.pid == segment.pid
                    and cell.offset == offset
                ):
                    msg = f"Segment at {segment.start} cell {offset} is {cell!r}"
                    raise InvariantError(msg)
        covered = sum(s.size for s in ordered) + sum(b.size for b in self.free_blocks())
        if covered != self.capacity:
            msg = f"Segments and free blocks cover {covered} of {self.capacity} cells"
            raise InvariantError(msg)
        for process in self._registry:
            live = sorted((s.start, s.size) for s in self._segmentation.segments_for(process.pid))
            held = sorted((s.start, s.size) for s in process.segments)
            if live != held:
                msg = f"PID {process.pid} segments disagree with the segment list"
                raise InvariantError(msg)
