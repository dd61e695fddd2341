"""Error kinds for the allocator core.

Every allocation failure in the tracker is **recoverable and local**:
the operation leaves memory exactly as it found it, logs what went
wrong, and raises one of the exceptions below.  Callers that need to
branch on the reason can either catch the specific subclass or read
the ``kind`` attribute, which never requires parsing a message.

Hierarchy::

    AllocationError
    ├── InvalidSizeError         size <= 0
    ├── InsufficientMemoryError  size > free total
    ├── OutOfMemoryError         no placement found (even after compaction)
    ├── UnknownProcessError      pid not registered
    └── InvalidModeError         unrecognised mode

``ConfigError`` is separate: it is raised while *building* a tracker,
never while running one.
"""

from enum import StrEnum


class AllocErrorKind(StrEnum):
    """Classify why an allocator operation failed."""

    INVALID_SIZE = "invalid_size"
    INSUFFICIENT_MEMORY = "insufficient_memory"
    OUT_OF_MEMORY = "out_of_memory"
    UNKNOWN_PROCESS = "unknown_process"
    INVALID_MODE = "invalid_mode"


class AllocationError(Exception):
    """Base class for every recoverable allocator failure."""

    kind: AllocErrorKind


class InvalidSizeError(AllocationError):
    """Raise when a requested size is not a positive integer."""

    kind = AllocErrorKind.INVALID_SIZE


class InsufficientMemoryError(AllocationError):
    """Raise when a request exceeds the total free memory."""

    kind = AllocErrorKind.INSUFFICIENT_MEMORY


class OutOfMemoryError(AllocationError):
    """Raise when free memory exists but cannot be placed."""

    kind = AllocErrorKind.OUT_OF_MEMORY


class UnknownProcessError(AllocationError):
    """Raise when a pid is not in the process registry."""

    kind = AllocErrorKind.UNKNOWN_PROCESS


class InvalidModeError(AllocationError):
    """Raise when asked to switch to an unrecognised mode."""

    kind = AllocErrorKind.INVALID_MODE


class ConfigError(ValueError):
    """Raise when tracker configuration is invalid."""


class InvariantError(Exception):
    """Raise when tracker bookkeeping disagrees with the address space."""
