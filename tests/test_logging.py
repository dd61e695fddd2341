"""Tests for the tracker log buffer.

The logger is append-only, filterable by level and source, and
formats entries as ``[LEVEL] source: message``.
"""

from memtrack.logging import LogEntry, Logger, LogLevel, LogSource

EXPECTED_TWO = 2


def _logger() -> Logger:
    logger = Logger()
    logger.log(LogLevel.INFO, "Allocated 8 KB", source=LogSource.PAGING)
    logger.log(LogLevel.WARNING, "Page fault simulated", source=LogSource.PAGING)
    logger.log(LogLevel.ERROR, "Invalid size: 0 KB", source=LogSource.TRACKER)
    return logger


class TestLogLevel:
    """Verify level ordering and labels."""

    def test_levels_are_ordered(self) -> None:
        """Levels compare by severity."""
        assert LogLevel.DEBUG < LogLevel.INFO < LogLevel.WARNING < LogLevel.ERROR

    def test_label_is_lowercase(self) -> None:
        """The label is the lowercase level name."""
        assert LogLevel.WARNING.label == "warning"


class TestLogEntry:
    """Verify entry formatting."""

    def test_str(self) -> None:
        """Entries render as [LEVEL] source: message."""
        entry = LogEntry(level=LogLevel.INFO, message="hello", source=LogSource.SEGMENTATION)
        assert str(entry) == "[INFO] segmentation: hello"


class TestLogger:
    """Verify logging, filtering and clearing."""

    def test_log_returns_entry(self) -> None:
        """log() appends and returns the new entry."""
        logger = Logger()
        entry = logger.log(LogLevel.DEBUG, "x", source=LogSource.TRACKER)
        assert logger.entries == [entry]
        assert len(logger) == 1

    def test_entries_is_a_copy(self) -> None:
        """Mutating the returned list does not touch the buffer."""
        logger = _logger()
        logger.entries.clear()
        assert len(logger) == len(_logger())

    def test_filter_by_level(self) -> None:
        """min_level keeps entries at or above the level."""
        entries = _logger().filter(min_level=LogLevel.WARNING)
        assert [e.level for e in entries] == [LogLevel.WARNING, LogLevel.ERROR]

    def test_filter_by_source(self) -> None:
        """source keeps entries from that subsystem only."""
        entries = _logger().filter(source=LogSource.PAGING)
        assert len(entries) == EXPECTED_TWO

    def test_filter_combined(self) -> None:
        """Both criteria apply together."""
        entries = _logger().filter(min_level=LogLevel.WARNING, source=LogSource.PAGING)
        assert [e.message for e in entries] == ["Page fault simulated"]

    def test_filter_without_criteria_copies(self) -> None:
        """An unfiltered result is still a separate list."""
        logger = _logger()
        logger.filter().clear()
        assert len(logger) == len(_logger())

    def test_tail(self) -> None:
        """tail() returns the newest entries in order."""
        logger = _logger()
        assert [e.level for e in logger.tail(2)] == [LogLevel.WARNING, LogLevel.ERROR]
        assert len(logger.tail(10)) == len(logger)
        assert logger.tail(0) == []

    def test_clear(self) -> None:
        """clear() empties the buffer."""
        logger = _logger()
        logger.clear()
        assert len(logger) == 0
