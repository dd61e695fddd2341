"""The shell — a command interpreter for driving a tracker by hand.

The shell reads a command string, splits it into a command name and
arguments, dispatches to the matching handler, and returns the output
as a string.

Design choices:
    - **Returns strings, not prints.**  This keeps the shell fully
      testable; the REPL decides how to display output.
    - **Command dispatch via a dict.**  Adding a command means writing
      a method and adding one dict entry.
    - **Quoted arguments.**  ``alloc "OS Kernel" 8`` keeps the space in
      the process name (``shlex`` splitting).
    - **Errors are output.**  A failed allocation prints ``Error: ...``
      and the session carries on, exactly as the tracker itself does.
"""

import shlex
from collections.abc import Callable
from typing import TypeAlias

from memtrack.config import Mode
from memtrack.errors import AllocationError, InvariantError
from memtrack.tracker import MemoryTracker

# Type alias for a command handler: takes a list of args, returns output.
_Handler: TypeAlias = Callable[[list[str]], str]

_DEFAULT_LOG_LINES = 20
_MAP_ROW_WIDTH = 16
_FREE_GLYPH = "."
_PID_GLYPHS = "123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def _parse_int(text: str, what: str) -> int:
    try:
        return int(text)
    except ValueError:
        msg = f"{what} must be an integer, got {text!r}"
        raise ValueError(msg) from None


class Shell:
    """Command interpreter bound to one ``MemoryTracker``."""

    EXIT_SENTINEL = "__EXIT__"

    def __init__(self, *, tracker: MemoryTracker) -> None:
        """Create a shell that drives *tracker*."""
        self._tracker = tracker
        self._history: list[str] = []

        # Command dispatch table — maps command names to handler methods.
        self._commands: dict[str, _Handler] = {
            "help": self._cmd_help,
            "mode": self._cmd_mode,
            "alloc": self._cmd_alloc,
            "segment": self._cmd_segment,
            "free": self._cmd_free,
            "compact": self._cmd_compact,
            "fault": self._cmd_fault,
            "violation": self._cmd_violation,
            "stats": self._cmd_stats,
            "ps": self._cmd_ps,
            "pages": self._cmd_pages,
            "segments": self._cmd_segments,
            "blocks": self._cmd_blocks,
            "map": self._cmd_map,
            "check": self._cmd_check,
            "demo": self._cmd_demo,
            "log": self._cmd_log,
            "history": self._cmd_history,
            "exit": self._cmd_exit,
        }

    @property
    def tracker(self) -> MemoryTracker:
        """Return the tracker this shell drives."""
        return self._tracker

    @property
    def command_names(self) -> list[str]:
        """Return the sorted list of command names."""
        return sorted(self._commands)

    def execute(self, command: str) -> str:
        """Parse and execute one command line.

        Args:
            command: The raw command string (e.g. ``alloc "OS Kernel" 8``).

        Returns:
            The command output, or an error message.

        """
        stripped = command.strip()
        if not stripped:
            return ""
        self._history.append(stripped)

        try:
            parts = shlex.split(stripped)
        except ValueError as e:
            return f"Error: {e}"
        name, args = parts[0], parts[1:]

        handler = self._commands.get(name)
        if handler is None:
            return f"Unknown command: {name}"
        try:
            return handler(args)
        except AllocationError as e:
            return f"Error: {e}"
        except ValueError as e:
            return f"Error: {e}"

    # -- Commands -------------------------------------------------------------

    def _cmd_help(self, _args: list[str]) -> str:
        """List available commands."""
        return "Available commands: " + ", ".join(self.command_names)

    def _cmd_mode(self, args: list[str]) -> str:
        """Show or switch the memory-management mode."""
        if not args:
            return f"Mode: {self._tracker.mode}"
        self._tracker.set_mode(args[0])
        return f"Switched to {self._tracker.mode} mode"

    def _cmd_alloc(self, args: list[str]) -> str:
        """Allocate memory for a new process."""
        if len(args) < 2:  # noqa: PLR2004
            return "Usage: alloc <name> <size> [kind]"
        size = _parse_int(args[1], "size")
        kind = args[2] if len(args) > 2 else "code"  # noqa: PLR2004
        pid = self._tracker.allocate(args[0], size, kind)
        return f"Allocated {size} KB for {args[0]} (PID: {pid})"

    def _cmd_segment(self, args: list[str]) -> str:
        """Add a segment to an existing process."""
        if len(args) < 2:  # noqa: PLR2004
            return "Usage: segment <pid> <size> [kind]"
        pid = _parse_int(args[0], "pid")
        size = _parse_int(args[1], "size")
        kind = args[2] if len(args) > 2 else "data"  # noqa: PLR2004
        segment = self._tracker.add_segment(pid, size, kind)
        return (
            f"Added '{segment.kind}' segment at {segment.start} "
            f"(size {segment.size}) to PID {pid}"
        )

    def _cmd_free(self, args: list[str]) -> str:
        """Deallocate every unit owned by a process."""
        if not args:
            return "Usage: free <pid>"
        pid = _parse_int(args[0], "pid")
        self._tracker.deallocate(pid)
        return f"Freed PID {pid}"

    def _cmd_compact(self, _args: list[str]) -> str:
        """Compact memory (segmentation mode only)."""
        self._tracker.compact()
        if self._tracker.mode is not Mode.SEGMENTATION:
            return "Nothing to compact."
        return "Compaction done."

    def _cmd_fault(self, _args: list[str]) -> str:
        """Simulate a page fault."""
        self._tracker.simulate_page_fault()
        return f"Page faults: {self._tracker.stats().page_faults}"

    def _cmd_violation(self, _args: list[str]) -> str:
        """Simulate a segment violation."""
        self._tracker.simulate_segment_violation()
        return f"Segment violations: {self._tracker.stats().segment_violations}"

    def _cmd_stats(self, _args: list[str]) -> str:
        """Show usage statistics."""
        stats = self._tracker.stats()
        unit = "KB internal" if stats.mode is Mode.PAGING else "% external"
        return "\n".join(
            [
                f"Mode:               {stats.mode}",
                f"Total:              {stats.total} KB",
                f"Used:               {stats.used} KB",
                f"Free:               {stats.free} KB",
                f"Fragmentation:      {stats.fragmentation} {unit}",
                f"Page faults:        {stats.page_faults}",
                f"Segment violations: {stats.segment_violations}",
            ]
        )

    def _cmd_ps(self, _args: list[str]) -> str:
        """List registered processes."""
        processes = self._tracker.processes()
        if not processes:
            return "No processes."
        lines = ["PID    SIZE   UNITS  NAME"]
        lines.extend(
            f"{p.pid:<6} {p.size:<6} {p.unit_count:<6} {p.name}" for p in processes.values()
        )
        return "\n".join(lines)

    def _cmd_pages(self, _args: list[str]) -> str:
        """Show the page table."""
        lines = ["FRAME  PID    PAGE   USED   NAME"]
        for frame, slot in enumerate(self._tracker.page_table()):
            if slot is None:
                lines.append(f"{frame:<6} -")
            else:
                lines.append(
                    f"{frame:<6} {slot.pid:<6} {slot.page_number:<6} {slot.used:<6} {slot.name}"
                )
        return "\n".join(lines)

    def _cmd_segments(self, _args: list[str]) -> str:
        """Show the live segments."""
        segments = self._tracker.segments()
        if not segments:
            return "No segments."
        lines = ["START  SIZE   LIMIT  PID    KIND   NAME"]
        lines.extend(
            f"{s.start:<6} {s.size:<6} {s.limit:<6} {s.pid:<6} {s.kind:<6} {s.name}"
            for s in sorted(segments, key=lambda s: s.start)
        )
        return "\n".join(lines)

    def _cmd_blocks(self, _args: list[str]) -> str:
        """Show the free blocks."""
        blocks = self._tracker.free_blocks()
        if not blocks:
            return "No free blocks."
        return "\n".join(f"[{b.start}, {b.end})  size {b.size}" for b in blocks)

    def _cmd_map(self, _args: list[str]) -> str:
        """Show one glyph per cell: '.' for free, a pid glyph otherwise."""
        glyphs: list[str] = []
        for cell in self._tracker.memory_state():
            if cell is None:
                glyphs.append(_FREE_GLYPH)
            else:
                glyphs.append(_PID_GLYPHS[(cell.pid - 1) % len(_PID_GLYPHS)])
        width = self._tracker.page_size if self._tracker.mode is Mode.PAGING else _MAP_ROW_WIDTH
        rows = ["".join(glyphs[i : i + width]) for i in range(0, len(glyphs), width)]
        return "\n".join(f"{i * width:>5}  {row}" for i, row in enumerate(rows))

    def _cmd_check(self, _args: list[str]) -> str:
        """Verify the tracker's bookkeeping."""
        try:
            self._tracker.check_invariants()
        except InvariantError as e:
            return f"Inconsistent: {e}"
        return "OK"

    def _cmd_demo(self, _args: list[str]) -> str:
        """Allocate the sample workload."""
        pids = self._tracker.seed_demo()
        return "Seeded PIDs: " + ", ".join(str(pid) for pid in pids)

    def _cmd_log(self, args: list[str]) -> str:
        """Show recent log entries."""
        count = _parse_int(args[0], "count") if args else _DEFAULT_LOG_LINES
        entries = self._tracker.logger.tail(count)
        return "\n".join(str(e) for e in entries) if entries else "No log entries."

    def _cmd_history(self, _args: list[str]) -> str:
        """Show command history."""
        if not self._history:
            return "No history."
        return "\n".join(f"  {i + 1}  {cmd}" for i, cmd in enumerate(self._history))

    def _cmd_exit(self, _args: list[str]) -> str:
        """Signal the REPL to stop."""
        return self.EXIT_SENTINEL
