"""Interactive REPL (Read-Eval-Print Loop) for the memory tracker.

The REPL builds a tracker from the environment, wraps it in a shell,
and enters the classic loop:

    1. **Read** — display a prompt and read user input.
    2. **Eval** — pass the command to ``shell.execute()``.
    3. **Print** — display the result.
    4. **Loop** — repeat until the shell returns the exit sentinel.

The helper functions (``build_prompt``, ``format_banner``) are pure
and testable.  The ``run()`` function is the I/O entrypoint.
"""

import readline

from memtrack.config import TrackerConfig
from memtrack.errors import ConfigError
from memtrack.shell import Shell
from memtrack.tracker import MemoryTracker

_BANNER_WIDTH = 38


def format_banner(tracker: MemoryTracker) -> str:
    """Format the start-up banner for *tracker*.

    Returns:
        A string describing the geometry and mode, ready to print.

    """
    border = "=" * _BANNER_WIDTH
    header = (
        f"\n  {border}\n         memtrack v0.1.0\n    Memory allocation tracker\n  {border}\n\n"
    )
    body = (
        f"  Capacity:  {tracker.capacity} KB\n"
        f"  Page size: {tracker.page_size} KB ({tracker.total_frames} frames)\n"
        f"  Mode:      {tracker.mode}\n"
    )
    footer = "\nType 'help' for commands, 'demo' for sample processes, 'exit' to quit.\n"
    return header + body + footer


def build_prompt(tracker: MemoryTracker) -> str:
    """Build the prompt, e.g. ``paging 20/64 $ ``."""
    stats = tracker.stats()
    return f"{stats.mode} {stats.used}/{stats.total} $ "


def complete_command(shell: Shell, text: str, state: int) -> str | None:
    """Return the *state*-th command name starting with *text* (readline hook)."""
    matches = [name for name in shell.command_names if name.startswith(text)]
    return matches[state] if state < len(matches) else None


def run() -> None:
    """Build a tracker and run the interactive REPL.

    This is the ``memtrack`` console entry point.  It handles:
    - Configuration from ``MEMTRACK_*`` environment variables.
    - The read-eval-print loop.
    - Graceful handling of Ctrl+C and Ctrl+D.
    """
    try:
        config = TrackerConfig.from_environment()
    except ConfigError as e:
        print(f"Invalid configuration: {e}")  # noqa: T201
        raise SystemExit(2) from None

    tracker = MemoryTracker(config)
    shell = Shell(tracker=tracker)

    readline.set_completer_delims(" \t")
    readline.parse_and_bind("tab: complete")
    readline.set_completer(lambda text, state: complete_command(shell, text, state))

    print(format_banner(tracker))  # noqa: T201

    try:
        while True:
            try:
                command = input(build_prompt(tracker))
            except EOFError:
                # Ctrl+D — graceful exit
                print()  # noqa: T201
                break

            result = shell.execute(command)
            if result == Shell.EXIT_SENTINEL:
                break
            if result:
                print(result)  # noqa: T201

    except KeyboardInterrupt:
        # Ctrl+C — graceful exit
        print("\nInterrupted.")  # noqa: T201

    finally:
        print("Bye.")  # noqa: T201
