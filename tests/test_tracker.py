"""Tests for mode-independent tracker behaviour.

Mode switching, observer notifications and their order, fault
simulation, snapshot isolation, the log buffer, and the invariant
checker.  A seeded random workload at the end exercises conservation
and disjointness over many mixed operations.
"""

import contextlib
import random

import pytest

from memtrack.config import Mode, TrackerConfig
from memtrack.errors import (
    AllocationError,
    ConfigError,
    InvalidModeError,
    InvariantError,
    UnknownProcessError,
)
from memtrack.events import Event, EventKind, EventQueue, NullObserver
from memtrack.logging import Logger, LogLevel, LogSource
from memtrack.memory.address_space import FreeBlock, PageCell, SegmentCell
from memtrack.tracker import DEMO_WORKLOAD, MemoryTracker

CAPACITY = 64
PAGE_SIZE = 4


def _tracker(mode: Mode = Mode.PAGING) -> MemoryTracker:
    return MemoryTracker(capacity=CAPACITY, page_size=PAGE_SIZE, mode=mode)


class TestConstruction:
    """Verify how a tracker is built."""

    def test_defaults(self) -> None:
        """A bare tracker uses 64 cells, 4-cell pages and paging."""
        tracker = MemoryTracker()
        expected_frames = 16
        assert tracker.capacity == CAPACITY
        assert tracker.page_size == PAGE_SIZE
        assert tracker.total_frames == expected_frames
        assert tracker.mode is Mode.PAGING

    def test_from_config(self) -> None:
        """A ready config is used as-is."""
        config = TrackerConfig(capacity=32, page_size=8, mode=Mode.SEGMENTATION)
        tracker = MemoryTracker(config)
        assert tracker.config is config
        assert tracker.mode is Mode.SEGMENTATION

    def test_mode_string_accepted(self) -> None:
        """The mode keyword also takes a plain string."""
        tracker = MemoryTracker(mode="Segmentation")
        assert tracker.mode is Mode.SEGMENTATION

    def test_bad_geometry_rejected(self) -> None:
        """A capacity that is not a page multiple cannot be built."""
        with pytest.raises(ConfigError):
            MemoryTracker(capacity=10, page_size=4)

    def test_config_with_shortcuts_rejected(self) -> None:
        """A config cannot be combined with keyword shortcuts."""
        with pytest.raises(ConfigError, match="not both"):
            MemoryTracker(TrackerConfig(), capacity=128)

    def test_initial_state(self) -> None:
        """A new tracker has everything free and nothing counted."""
        stats = _tracker().stats()
        assert (stats.total, stats.used, stats.free) == (CAPACITY, 0, CAPACITY)
        assert (stats.page_faults, stats.segment_violations) == (0, 0)
        assert _tracker().free_blocks() == [FreeBlock(0, CAPACITY)]

    def test_shared_logger(self) -> None:
        """A caller-supplied logger receives the tracker's entries."""
        logger = Logger()
        tracker = MemoryTracker(logger=logger)
        tracker.allocate("a", 4)
        assert tracker.logger is logger
        assert len(logger) == 1


class TestModeSwitch:
    """Verify set_mode semantics."""

    def test_switch_wipes_everything(self) -> None:
        """Switching discards processes, cells and counters."""
        tracker = _tracker()
        tracker.seed_demo()
        tracker.simulate_page_fault()
        tracker.set_mode(Mode.SEGMENTATION)
        stats = tracker.stats()
        assert tracker.mode is Mode.SEGMENTATION
        assert tracker.processes() == {}
        assert (stats.used, stats.free, stats.page_faults) == (0, CAPACITY, 0)
        assert all(cell is None for cell in tracker.memory_state())
        assert all(slot is None for slot in tracker.page_table())
        tracker.check_invariants()

    def test_switch_restarts_pids(self) -> None:
        """Pids begin again at 1 after a switch."""
        tracker = _tracker()
        tracker.seed_demo()
        tracker.set_mode("segmentation")
        assert tracker.allocate("a", 4) == 1

    def test_same_mode_still_resets(self) -> None:
        """Switching to the current mode also wipes state."""
        tracker = _tracker()
        tracker.allocate("a", 4)
        tracker.set_mode(Mode.PAGING)
        assert tracker.processes() == {}

    def test_switch_back_and_forth(self) -> None:
        """Each mode works normally after a round trip."""
        tracker = _tracker()
        tracker.set_mode(Mode.SEGMENTATION)
        tracker.allocate("seg", 5)
        tracker.set_mode(Mode.PAGING)
        pid = tracker.allocate("page", 5)
        assert tracker.process(pid).frames == [0, 1]
        assert tracker.segments() == []

    def test_unknown_mode_changes_nothing(self) -> None:
        """An unrecognised mode raises and leaves the tracker intact."""
        tracker = _tracker()
        pid = tracker.allocate("a", 8)
        before = tracker.memory_state()
        with pytest.raises(InvalidModeError, match="either 'paging' or 'segmentation'"):
            tracker.set_mode("buddy")
        assert tracker.mode is Mode.PAGING
        assert tracker.memory_state() == before
        assert pid in tracker.processes()

    def test_switch_keeps_log(self) -> None:
        """The log is an audit trail and survives the reset."""
        tracker = _tracker()
        tracker.allocate("a", 4)
        tracker.set_mode(Mode.SEGMENTATION)
        messages = [entry.message for entry in tracker.logger.entries]
        assert messages[0].startswith("Allocated 4 KB")
        assert messages[-1] == "Switched to segmentation mode"


class TestNotifications:
    """Verify observer hooks and their order."""

    def test_allocate_logs_then_changes_state(self) -> None:
        """A successful allocation emits the log entry, then state_changed."""
        tracker = _tracker()
        queue = EventQueue()
        tracker.subscribe(queue)
        tracker.allocate("OS Kernel", 8)
        assert queue.kinds() == [EventKind.LOG, EventKind.STATE_CHANGED]
        log_event = queue.peek()[0]
        assert log_event.level is LogLevel.INFO
        assert log_event.message == "Allocated 8 KB (2 pages) for process OS Kernel (PID: 1)"

    def test_failure_only_logs(self) -> None:
        """A rejected request logs an error and does not signal a change."""
        tracker = _tracker()
        queue = EventQueue()
        tracker.subscribe(queue)
        with pytest.raises(AllocationError):
            tracker.allocate("x", 0)
        events = queue.drain()
        assert [e.kind for e in events] == [EventKind.LOG]
        assert events[0].level is LogLevel.ERROR

    def test_page_fault_order(self) -> None:
        """A simulated page fault notifies, then logs a warning."""
        tracker = _tracker()
        queue = EventQueue()
        tracker.subscribe(queue)
        tracker.simulate_page_fault()
        assert queue.kinds() == [EventKind.PAGE_FAULT, EventKind.LOG]
        assert queue.peek()[1].level is LogLevel.WARNING

    def test_segment_violation_order(self) -> None:
        """A simulated violation notifies, then logs an error."""
        tracker = _tracker(Mode.SEGMENTATION)
        queue = EventQueue()
        tracker.subscribe(queue)
        tracker.simulate_segment_violation()
        assert queue.kinds() == [EventKind.SEGMENT_VIOLATION, EventKind.LOG]
        assert queue.peek()[1].level is LogLevel.ERROR

    def test_deallocate_and_mode_switch_notify(self) -> None:
        """Deallocation and mode switches both end with state_changed."""
        tracker = _tracker()
        pid = tracker.allocate("a", 4)
        queue = EventQueue()
        tracker.subscribe(queue)
        tracker.deallocate(pid)
        tracker.set_mode(Mode.SEGMENTATION)
        assert queue.kinds() == [
            EventKind.LOG,
            EventKind.STATE_CHANGED,
            EventKind.LOG,
            EventKind.STATE_CHANGED,
        ]

    def test_unsubscribe_stops_delivery(self) -> None:
        """An unsubscribed observer hears nothing more."""
        tracker = _tracker()
        queue = EventQueue()
        tracker.subscribe(queue)
        tracker.unsubscribe(queue)
        tracker.allocate("a", 4)
        assert queue.pending == 0

    def test_subscribe_twice_delivers_once(self) -> None:
        """Subscribing the same observer again is a no-op."""
        tracker = _tracker()
        queue = EventQueue()
        tracker.subscribe(queue)
        tracker.subscribe(queue)
        tracker.simulate_page_fault()
        assert queue.kinds().count(EventKind.PAGE_FAULT) == 1

    def test_partial_observer(self) -> None:
        """A NullObserver subclass overrides only the hooks it wants."""

        class FaultCounter(NullObserver):
            def __init__(self) -> None:
                self.faults = 0

            def on_page_fault(self) -> None:
                self.faults += 1

        tracker = _tracker()
        counter = FaultCounter()
        tracker.subscribe(counter)
        tracker.allocate("a", 4)
        tracker.simulate_page_fault()
        tracker.simulate_page_fault()
        expected = 2
        assert counter.faults == expected

    def test_event_formatting(self) -> None:
        """Log events show level and message; others show the kind."""
        assert str(Event(kind=EventKind.PAGE_FAULT)) == "page_fault"
        event = Event(kind=EventKind.LOG, level=LogLevel.INFO, message="hi")
        assert str(event) == "log[INFO]: hi"


class TestFaultSimulation:
    """Verify fault and violation counters."""

    def test_page_fault_counts_in_paging(self) -> None:
        """Each simulated fault increments the counter."""
        tracker = _tracker()
        tracker.simulate_page_fault()
        tracker.simulate_page_fault()
        expected = 2
        assert tracker.stats().page_faults == expected

    def test_page_fault_ignored_in_segmentation(self) -> None:
        """Page faults do nothing outside paging mode."""
        tracker = _tracker(Mode.SEGMENTATION)
        queue = EventQueue()
        tracker.subscribe(queue)
        tracker.simulate_page_fault()
        assert tracker.stats().page_faults == 0
        assert queue.pending == 0

    def test_violation_ignored_in_paging(self) -> None:
        """Segment violations do nothing outside segmentation mode."""
        tracker = _tracker()
        tracker.simulate_segment_violation()
        assert tracker.stats().segment_violations == 0

    def test_violation_counts_in_segmentation(self) -> None:
        """A simulated violation is counted and logged."""
        tracker = _tracker(Mode.SEGMENTATION)
        tracker.simulate_segment_violation()
        assert tracker.stats().segment_violations == 1
        last = tracker.logger.entries[-1]
        assert last.source == LogSource.SEGMENTATION

    def test_fault_changes_no_memory(self) -> None:
        """Simulations never touch cells."""
        tracker = _tracker()
        tracker.seed_demo()
        before = tracker.memory_state()
        tracker.simulate_page_fault()
        assert tracker.memory_state() == before


class TestQueries:
    """Verify snapshots are isolated from live state."""

    def test_memory_state_is_a_copy(self) -> None:
        """Editing the returned cells changes nothing."""
        tracker = _tracker()
        cells = tracker.memory_state()
        cells[0] = PageCell(pid=9, name="x", page_number=0, offset=0)
        assert tracker.memory_state()[0] is None

    def test_process_is_a_copy(self) -> None:
        """Editing a returned process record changes nothing."""
        tracker = _tracker()
        pid = tracker.allocate("a", 8)
        record = tracker.process(pid)
        record.frames.append(99)
        record.size = 1
        assert tracker.process(pid).frames == [0, 1]
        tracker.check_invariants()

    def test_process_segments_are_copies(self) -> None:
        """Editing a returned segment does not move the live one."""
        tracker = _tracker(Mode.SEGMENTATION)
        pid = tracker.allocate("a", 4)
        tracker.process(pid).segments[0].start = 30
        tracker.segments()[0].start = 30
        assert tracker.process(pid).segments[0].start == 0
        tracker.check_invariants()

    def test_processes_keyed_by_pid(self) -> None:
        """processes() maps every pid to its record."""
        tracker = _tracker()
        pids = tracker.seed_demo()
        processes = tracker.processes()
        assert list(processes) == pids
        assert [p.name for p in processes.values()] == [name for name, _ in DEMO_WORKLOAD]

    def test_process_unknown_pid(self) -> None:
        """Looking up a missing pid raises."""
        with pytest.raises(UnknownProcessError):
            _tracker().process(1)

    @pytest.mark.parametrize("pid", [True, 1.0])
    def test_non_integer_pid_is_unknown(self, pid: object) -> None:
        """Values that merely compare equal to a pid do not find it."""
        tracker = _tracker()
        tracker.allocate("a", 8)
        with pytest.raises(UnknownProcessError):
            tracker.deallocate(pid)  # type: ignore[arg-type]
        with pytest.raises(UnknownProcessError):
            tracker.process(pid)  # type: ignore[arg-type]
        assert tracker.stats().used == 8
        assert 1 in tracker.processes()

    def test_dmesg_formats_entries(self) -> None:
        """dmesg() returns one formatted line per entry."""
        tracker = _tracker()
        tracker.allocate("a", 4)
        assert tracker.dmesg() == ["[INFO] paging: Allocated 4 KB (1 pages) for process a (PID: 1)"]

    def test_stats_utilization(self) -> None:
        """Utilization is used over total."""
        tracker = _tracker()
        tracker.allocate("a", 16)
        expected = 0.25
        assert tracker.stats().utilization == expected


class TestDemo:
    """Verify the sample workload."""

    def test_demo_in_paging(self) -> None:
        """Kernel 8, Browser 12, Editor 6 use 7 frames and 26 cells."""
        tracker = _tracker()
        tracker.seed_demo()
        stats = tracker.stats()
        expected_used = 26
        expected_frames = 7
        assert stats.used == expected_used
        bound = [slot for slot in tracker.page_table() if slot is not None]
        assert len(bound) == expected_frames
        assert stats.internal_fragmentation == PAGE_SIZE - 2

    def test_demo_in_segmentation(self) -> None:
        """The same workload packs back to back as segments."""
        tracker = _tracker(Mode.SEGMENTATION)
        tracker.seed_demo()
        layout = [(s.name, s.start, s.size) for s in tracker.segments()]
        assert layout == [("OS Kernel", 0, 8), ("Browser", 8, 12), ("Editor", 20, 6)]


class TestInvariantChecker:
    """Verify check_invariants detects corruption."""

    def test_fresh_tracker_is_consistent(self) -> None:
        """An untouched tracker passes."""
        _tracker().check_invariants()
        _tracker(Mode.SEGMENTATION).check_invariants()

    def test_detects_counter_drift(self) -> None:
        """used + free must equal capacity."""
        tracker = _tracker()
        tracker._stats.free -= 1
        with pytest.raises(InvariantError, match="capacity"):
            tracker.check_invariants()

    def test_detects_stray_cell(self) -> None:
        """A cell owned by an unregistered pid is reported."""
        tracker = _tracker(Mode.SEGMENTATION)
        tracker._space.write(10, [SegmentCell(pid=7, name="ghost", kind="code", offset=0)])
        with pytest.raises(InvariantError, match="unregistered PID 7"):
            tracker.check_invariants()

    def test_detects_corrupted_frame(self) -> None:
        """A bound frame whose cells were wiped is reported."""
        tracker = _tracker()
        tracker.allocate("a", 8)
        tracker._space.clear(PAGE_SIZE, 1)
        with pytest.raises(InvariantError, match="Frame 1"):
            tracker.check_invariants()


class TestRandomWorkload:
    """Conservation and disjointness over many mixed operations."""

    @pytest.mark.parametrize("mode", [Mode.PAGING, Mode.SEGMENTATION])
    @pytest.mark.parametrize("seed", [1, 7, 42])
    def test_invariants_hold(self, mode: Mode, seed: int) -> None:
        """Every step leaves used + free == capacity and no overlaps."""
        rng = random.Random(seed)
        tracker = _tracker(mode)
        live: list[int] = []
        for step in range(200):
            action = rng.random()
            if action < 0.55 or not live:
                with contextlib.suppress(AllocationError):
                    live.append(tracker.allocate(f"p{step}", rng.randint(1, 12)))
            elif action < 0.9:
                tracker.deallocate(live.pop(rng.randrange(len(live))))
            else:
                tracker.compact()
            stats = tracker.stats()
            assert stats.used + stats.free == CAPACITY
            assert set(tracker.processes()) == set(live)
            tracker.check_invariants()

        for pid in live:
            tracker.deallocate(pid)
        assert tracker.stats().used == 0
        assert tracker.stats().internal_fragmentation == 0
        assert tracker.free_blocks() == [FreeBlock(0, CAPACITY)]
