"""Change notifications for renderers, loggers and other observers.

The tracker never draws anything.  Instead it announces what happened
through four hooks, and whoever cares (a canvas, a terminal, a test)
listens:

- ``on_state_changed()`` — memory layout or statistics changed.
- ``on_page_fault()`` — a page fault was simulated.
- ``on_segment_violation()`` — a segment violation occurred.
- ``on_log(level, message)`` — a log entry was written.

Observers are plain objects with those four methods (the
``MemoryObserver`` protocol).  ``NullObserver`` implements all four
as no-ops so a subclass overrides only what it needs.

``EventQueue`` is the observer for callers that prefer pulling to
being called: it records every notification as an ``Event`` and hands
them over in order via ``drain()``.
"""

from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol

from memtrack.logging import LogLevel


class MemoryObserver(Protocol):
    """Interface the tracker calls at each notification point."""

    def on_state_changed(self) -> None:
        """Handle a change to memory layout or statistics."""
        ...

    def on_page_fault(self) -> None:
        """Handle a simulated page fault."""
        ...

    def on_segment_violation(self) -> None:
        """Handle a segment violation."""
        ...

    def on_log(self, level: LogLevel, message: str) -> None:
        """Handle a new log entry."""
        ...


class NullObserver:
    """Observer that ignores every notification."""

    def on_state_changed(self) -> None:
        """Ignore the notification."""

    def on_page_fault(self) -> None:
        """Ignore the notification."""

    def on_segment_violation(self) -> None:
        """Ignore the notification."""

    def on_log(self, level: LogLevel, message: str) -> None:
        """Ignore the notification."""


class EventKind(StrEnum):
    """Which hook produced an event."""

    STATE_CHANGED = "state_changed"
    PAGE_FAULT = "page_fault"
    SEGMENT_VIOLATION = "segment_violation"
    LOG = "log"


@dataclass(frozen=True)
class Event:
    """One recorded notification.

    ``level`` and ``message`` are only set for ``LOG`` events.
    """

    kind: EventKind
    level: LogLevel | None = None
    message: str = ""

    def __str__(self) -> str:
        """Format as ``kind`` or ``log[LEVEL]: message``."""
        if self.kind is EventKind.LOG and self.level is not None:
            return f"log[{self.level.name}]: {self.message}"
        return str(self.kind)


class EventQueue:
    """Observer that queues notifications for the caller to drain."""

    def __init__(self) -> None:
        """Create an empty queue."""
        self._events: list[Event] = []

    @property
    def pending(self) -> int:
        """Return the number of undrained events."""
        return len(self._events)

    def peek(self) -> list[Event]:
        """Return the queued events without removing them."""
        return list(self._events)

    def drain(self) -> list[Event]:
        """Return every queued event in order and empty the queue."""
        events, self._events = self._events, []
        return events

    def kinds(self) -> list[EventKind]:
        """Return the kinds of the queued events, in order."""
        return [event.kind for event in self._events]

    def on_state_changed(self) -> None:
        """Queue a state-changed event."""
        self._events.append(Event(kind=EventKind.STATE_CHANGED))

    def on_page_fault(self) -> None:
        """Queue a page-fault event."""
        self._events.append(Event(kind=EventKind.PAGE_FAULT))

    def on_segment_violation(self) -> None:
        """Queue a segment-violation event."""
        self._events.append(Event(kind=EventKind.SEGMENT_VIOLATION))

    def on_log(self, level: LogLevel, message: str) -> None:
        """Queue a log event."""
        self._events.append(Event(kind=EventKind.LOG, level=level, message=message))
