"""Process registry — who owns which pages or segments.

A *process* here is only an allocation record: it comes into being
when its first allocation succeeds and disappears when it is
deallocated.  Process ids are handed out in increasing order and are
never reused, even after the process is gone.  A failed allocation
does not consume an id.

Registry order is insertion order (a plain dict), which is also pid
order since ids only grow.
"""

from collections.abc import Iterator
from dataclasses import dataclass, field

from memtrack.memory.segmentation import Segment


@dataclass
class Process:
    """One registered allocation.

    In paging mode ``frames`` is filled and ``segments`` stays empty;
    in segmentation mode it is the other way round.

    Attributes:
        pid: Process identifier.
        name: Human-readable name.
        size: Total cells requested by the process.
        frames: Frame indices, ordered by logical page.
        segments: Live segment records owned by the process.
        internal_fragmentation: Unused cells in the last page.

    """

    pid: int
    name: str
    size: int
    frames: list[int] = field(default_factory=list)
    segments: list[Segment] = field(default_factory=list)
    internal_fragmentation: int = 0

    @property
    def unit_count(self) -> int:
        """Return the number of frames or segments held."""
        return len(self.frames) + len(self.segments)

    def snapshot(self) -> "Process":
        """Return a deep copy safe to hand to callers."""
        return Process(
            pid=self.pid,
            name=self.name,
            size=self.size,
            frames=list(self.frames),
            segments=[segment.copy() for segment in self.segments],
            internal_fragmentation=self.internal_fragmentation,
        )


class ProcessRegistry:
    """Map process ids to their allocation records."""

    def __init__(self) -> None:
        """Create an empty registry; the first pid will be 1."""
        self._processes: dict[int, Process] = {}
        self._next_pid = 1

    @property
    def next_pid(self) -> int:
        """Return the id the next registered process will get."""
        return self._next_pid

    def reserve_pid(self) -> int:
        """Consume and return the next process id."""
        pid = self._next_pid
        self._next_pid += 1
        return pid

    def add(self, process: Process) -> None:
        """Register *process* under its pid.

        Raises:
            ValueError: If the pid is already registered.

        """
        if process.pid in self._processes:
            msg = f"PID {process.pid} is already registered"
            raise ValueError(msg)
        self._processes[process.pid] = process

    def get(self, pid: int) -> Process | None:
        """Return the live record for *pid*, or None."""
        return self._processes.get(pid)

    def remove(self, pid: int) -> Process:
        """Unregister and return the record for *pid*.

        Raises:
            KeyError: If *pid* is not registered.

        """
        return self._processes.pop(pid)

    def snapshot(self) -> dict[int, Process]:
        """Return copies of every record, in registration order."""
        return {pid: process.snapshot() for pid, process in self._processes.items()}

    def reset(self) -> None:
        """Drop every record and restart pids at 1."""
        self._processes = {}
        self._next_pid = 1

    def __contains__(self, pid: object) -> bool:
        """Return True if *pid* is registered."""
        return pid in self._processes

    def __iter__(self) -> Iterator[Process]:
        """Iterate live records in registration order."""
        return iter(list(self._processes.values()))

    def __len__(self) -> int:
        """Return the number of registered processes."""
        return len(self._processes)
