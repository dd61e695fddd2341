"""memtrack — a paging and segmentation memory allocation tracker.

Re-exports the public API so callers can write::

    from memtrack import MemoryTracker, Mode
"""

from memtrack.config import Mode, TrackerConfig
from memtrack.errors import (
    AllocationError,
    AllocErrorKind,
    ConfigError,
    InsufficientMemoryError,
    InvalidModeError,
    InvalidSizeError,
    InvariantError,
    OutOfMemoryError,
    UnknownProcessError,
)
from memtrack.events import Event, EventKind, EventQueue, MemoryObserver, NullObserver
from memtrack.logging import LogEntry, Logger, LogLevel
from memtrack.registry import Process
from memtrack.stats import MemoryStats
from memtrack.tracker import MemoryTracker

__all__ = [
    "AllocErrorKind",
    "AllocationError",
    "ConfigError",
    "Event",
    "EventKind",
    "EventQueue",
    "InsufficientMemoryError",
    "InvalidModeError",
    "InvalidSizeError",
    "InvariantError",
    "LogEntry",
    "LogLevel",
    "Logger",
    "MemoryObserver",
    "MemoryStats",
    "MemoryTracker",
    "Mode",
    "NullObserver",
    "OutOfMemoryError",
    "Process",
    "TrackerConfig",
    "UnknownProcessError",
]
