"""Tracker event log.

Every allocation, deallocation, compaction, mode switch and failure
is recorded as a structured log entry.  The tracker keeps its own log
buffer (the equivalent of a ``dmesg`` ring) and also forwards each
entry to subscribed observers so a UI can show it live.

- **LogLevel** — severity levels ordered for filtering (DEBUG < ERROR).
- **LogEntry** — a single structured record (level, message, source).
- **Logger** — an append-only log with filtering and clearing.

Sources name the part of the tracker that produced the event:
``"tracker"`` for mode switches and validation, ``"paging"`` and
``"segmentation"`` for the two allocators.
"""

from dataclasses import dataclass
from enum import IntEnum, StrEnum


class LogLevel(IntEnum):
    """Severity levels for log entries.

    Using IntEnum means levels compare with ``<`` / ``>`` naturally,
    which makes minimum-level filtering trivial.
    """

    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3

    @property
    def label(self) -> str:
        """Return the lowercase name used by observers (``"info"``)."""
        return self.name.lower()


class LogSource(StrEnum):
    """Subsystems that write to the tracker log."""

    TRACKER = "tracker"
    PAGING = "paging"
    SEGMENTATION = "segmentation"


@dataclass(frozen=True)
class LogEntry:
    """A single structured log record.

    Attributes:
        level: The severity of this event.
        message: A human-readable description of what happened.
        source: The subsystem that generated the event.

    """

    level: LogLevel
    message: str
    source: str

    def __str__(self) -> str:
        """Format as ``[LEVEL] source: message``."""
        return f"[{self.level.name}] {self.source}: {self.message}"


class Logger:
    """Append-only log buffer with filtering.

    The buffer survives mode switches: it is an audit trail of what
    the tracker did, not part of the allocator state being reset.
    """

    def __init__(self) -> None:
        """Create an empty logger."""
        self._entries: list[LogEntry] = []

    @property
    def entries(self) -> list[LogEntry]:
        """Return all log entries in chronological order."""
        return list(self._entries)

    def log(self, level: LogLevel, message: str, *, source: str) -> LogEntry:
        """Append a new entry to the log and return it.

        Args:
            level: Severity of the event.
            message: Human-readable event description.
            source: Subsystem that generated the event.

        """
        entry = LogEntry(level=level, message=message, source=source)
        self._entries.append(entry)
        return entry

    def filter(
        self,
        *,
        min_level: LogLevel | None = None,
        source: str | None = None,
    ) -> list[LogEntry]:
        """Return entries matching the given criteria.

        Args:
            min_level: If set, only return entries at or above this level.
            source: If set, only return entries from this source.

        Returns:
            A filtered list of log entries.

        """
        result = self._entries
        if min_level is not None:
            result = [e for e in result if e.level >= min_level]
        if source is not None:
            result = [e for e in result if e.source == source]
        return result if result is not self._entries else list(result)

    def tail(self, count: int) -> list[LogEntry]:
        """Return the last *count* entries (all of them if fewer)."""
        if count <= 0:
            return []
        return self._entries[-count:]

    def clear(self) -> None:
        """Remove all log entries."""
        self._entries.clear()

    def __len__(self) -> int:
        """Return the number of recorded entries."""
        return len(self._entries)
