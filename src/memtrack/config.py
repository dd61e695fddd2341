"""Tracker configuration — memory geometry and the starting mode.

A tracker is built from three numbers and a word: how many cells of
memory exist, how many cells make up one page, and which discipline
(paging or segmentation) to start in.  ``TrackerConfig`` bundles them
and refuses impossible combinations up front, so the allocator never
has to wonder whether its own geometry makes sense.

Values can also come from the process environment, the same
``KEY=VALUE`` strings a shell would export::

    MEMTRACK_CAPACITY=128 MEMTRACK_PAGE_SIZE=8 MEMTRACK_MODE=segmentation
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum

from memtrack.errors import ConfigError

DEFAULT_CAPACITY = 64
DEFAULT_PAGE_SIZE = 4

ENV_CAPACITY = "MEMTRACK_CAPACITY"
ENV_PAGE_SIZE = "MEMTRACK_PAGE_SIZE"
ENV_MODE = "MEMTRACK_MODE"


class Mode(StrEnum):
    """Memory-management discipline the tracker is running.

    The two modes never share live state: switching between them
    wipes every allocation.
    """

    PAGING = "paging"
    SEGMENTATION = "segmentation"


def parse_mode(value: Mode | str) -> Mode:
    """Convert *value* to a ``Mode``, accepting any letter case.

    Raises:
        ValueError: If *value* names no known mode.

    """
    if isinstance(value, Mode):
        return value
    return Mode(str(value).strip().lower())


def _positive_int(name: str, value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        msg = f"{name} must be an integer, got {value!r}"
        raise ConfigError(msg)
    if value <= 0:
        msg = f"{name} must be positive, got {value}"
        raise ConfigError(msg)
    return value


@dataclass(frozen=True)
class TrackerConfig:
    """Immutable construction parameters for a ``MemoryTracker``.

    Attributes:
        capacity: Total number of cells in the address space.
        page_size: Cells per page frame; must divide ``capacity``.
        mode: Discipline the tracker starts in.

    """

    capacity: int = DEFAULT_CAPACITY
    page_size: int = DEFAULT_PAGE_SIZE
    mode: Mode = Mode.PAGING

    def __post_init__(self) -> None:
        """Validate the geometry and normalise the mode."""
        _positive_int("capacity", self.capacity)
        _positive_int("page_size", self.page_size)
        if self.page_size > self.capacity:
            msg = f"page_size {self.page_size} exceeds capacity {self.capacity}"
            raise ConfigError(msg)
        if self.capacity % self.page_size:
            msg = f"capacity {self.capacity} is not a multiple of page_size {self.page_size}"
            raise ConfigError(msg)
        try:
            mode = parse_mode(self.mode)
        except ValueError:
            msg = f"Unknown mode {self.mode!r}"
            raise ConfigError(msg) from None
        # Frozen dataclass: bypass __setattr__ to store the normalised enum.
        object.__setattr__(self, "mode", mode)

    @property
    def total_frames(self) -> int:
        """Return how many page frames fit in the address space."""
        return self.capacity // self.page_size

    @classmethod
    def from_environment(cls, env: Mapping[str, str] | None = None) -> "TrackerConfig":
        """Build a config from ``MEMTRACK_*`` variables.

        Unset variables fall back to the defaults.

        Args:
            env: Variables to read; defaults to ``os.environ``.

        Raises:
            ConfigError: If a numeric variable is not an integer or the
                resulting geometry is invalid.

        """
        source = os.environ if env is None else env

        def _int(key: str, default: int) -> int:
            raw = source.get(key)
            if raw is None or not raw.strip():
                return default
            try:
                return int(raw)
            except ValueError:
                msg = f"{key} must be an integer, got {raw!r}"
                raise ConfigError(msg) from None

        return cls(
            capacity=_int(ENV_CAPACITY, DEFAULT_CAPACITY),
            page_size=_int(ENV_PAGE_SIZE, DEFAULT_PAGE_SIZE),
            mode=source.get(ENV_MODE) or Mode.PAGING,  # type: ignore[arg-type]
        )
