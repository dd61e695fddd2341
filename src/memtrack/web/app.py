"""Flask application factory for the memtrack HTTP API.

The ``create_app`` function builds one tracker and returns a Flask app
serving it:

- ``GET /api/state`` — stats, processes, page table, segments, free blocks.
- ``GET /api/memory`` — one entry per cell.
- ``GET /api/log`` — log entries (``?limit=N`` for the last N).
- ``POST /api/mode`` — ``{"mode": "segmentation"}``.
- ``POST /api/allocate`` — ``{"name": "...", "size": 8, "kind": "code"}``.
- ``POST /api/deallocate`` — ``{"pid": 1}``.
- ``POST /api/segment`` — ``{"pid": 1, "size": 4, "kind": "data"}``.
- ``POST /api/compact``, ``POST /api/fault``, ``POST /api/violation``.

Allocation failures come back as HTTP 400 with ``error`` and ``kind``;
an unknown pid is a 404.
"""

from __future__ import annotations

from typing import Any

from flask import Flask, Response, jsonify, request

from memtrack.config import TrackerConfig
from memtrack.errors import AllocationError, AllocErrorKind
from memtrack.memory.address_space import Cell, PageCell
from memtrack.memory.paging import PageTableSlot
from memtrack.memory.segmentation import DEFAULT_SEGMENT_KIND, Segment
from memtrack.registry import Process
from memtrack.tracker import MemoryTracker

_HTTP_CREATED = 201
_HTTP_BAD_REQUEST = 400
_HTTP_NOT_FOUND = 404


def _cell_json(cell: Cell) -> dict[str, Any] | None:
    if cell is None:
        return None
    if isinstance(cell, PageCell):
        return {
            "type": "page",
            "pid": cell.pid,
            "name": cell.name,
            "page_number": cell.page_number,
            "offset": cell.offset,
        }
    return {
        "type": "segment",
        "pid": cell.pid,
        "name": cell.name,
        "kind": cell.kind,
        "offset": cell.offset,
    }


def _slot_json(slot: PageTableSlot | None) -> dict[str, Any] | None:
    if slot is None:
        return None
    return {"pid": slot.pid, "name": slot.name, "page_number": slot.page_number, "used": slot.used}


def _segment_json(segment: Segment) -> dict[str, Any]:
    return {
        "pid": segment.pid,
        "name": segment.name,
        "kind": segment.kind,
        "start": segment.start,
        "size": segment.size,
        "limit": segment.limit,
    }


def _process_json(process: Process) -> dict[str, Any]:
    return {
        "pid": process.pid,
        "name": process.name,
        "size": process.size,
        "frames": process.frames,
        "segments": [_segment_json(s) for s in process.segments],
        "internal_fragmentation": process.internal_fragmentation,
    }


def _error(error: AllocationError) -> tuple[Response, int]:
    status = _HTTP_NOT_FOUND if error.kind is AllocErrorKind.UNKNOWN_PROCESS else _HTTP_BAD_REQUEST
    return jsonify({"error": str(error), "kind": str(error.kind)}), status


def _bad_request(message: str) -> tuple[Response, int]:
    return jsonify({"error": message}), _HTTP_BAD_REQUEST


def _is_int(value: object) -> bool:
    """Return True for a JSON integer (booleans and floats excluded)."""
    return isinstance(value, int) and not isinstance(value, bool)


def create_app(config: TrackerConfig | None = None) -> Flask:
    """Create and configure the Flask application.

    Args:
        config: Tracker geometry; read from ``MEMTRACK_*`` variables
            when omitted.

    Returns:
        A configured Flask application ready to serve.

    """
    tracker = MemoryTracker(config if config is not None else TrackerConfig.from_environment())

    app = Flask(__name__)
    app.extensions["memtrack"] = tracker

    def state_json() -> dict[str, Any]:
        return {
            "stats": tracker.stats().as_dict(),
            "processes": [_process_json(p) for p in tracker.processes().values()],
            "page_table": [_slot_json(s) for s in tracker.page_table()],
            "segments": [_segment_json(s) for s in tracker.segments()],
            "free_blocks": [{"start": b.start, "size": b.size} for b in tracker.free_blocks()],
        }

    def body() -> dict[str, Any] | None:
        data = request.get_json(silent=True)
        return data if isinstance(data, dict) else None

    @app.route("/api/state")
    def state() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Return the full tracker state."""
        return jsonify(state_json())

    @app.route("/api/memory")
    def memory() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Return one entry per cell (``null`` for free cells)."""
        return jsonify({"cells": [_cell_json(c) for c in tracker.memory_state()]})

    @app.route("/api/log")
    def log() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Return log entries, optionally only the last ``limit``."""
        limit = request.args.get("limit", type=int)
        entries = tracker.logger.entries if limit is None else tracker.logger.tail(limit)
        return jsonify(
            {
                "entries": [
                    {"level": e.level.label, "source": e.source, "message": e.message}
                    for e in entries
                ]
            }
        )

    @app.route("/api/mode", methods=["POST"])
    def mode() -> tuple[Response, int] | Response:  # pyright: ignore[reportUnusedFunction]
        """Switch mode, wiping all allocations."""
        data = body()
        if data is None or "mode" not in data:
            return _bad_request("Missing 'mode' field")
        try:
            tracker.set_mode(str(data["mode"]))
        except AllocationError as e:
            return _error(e)
        return jsonify(state_json())

    @app.route("/api/allocate", methods=["POST"])
    def allocate() -> tuple[Response, int] | Response:  # pyright: ignore[reportUnusedFunction]
        """Allocate memory for a new process."""
        data = body()
        if data is None or "size" not in data:
            return _bad_request("Missing 'size' field")
        name = str(data.get("name") or f"Process {len(tracker.processes()) + 1}")
        kind = str(data.get("kind") or DEFAULT_SEGMENT_KIND)
        try:
            pid = tracker.allocate(name, data["size"], kind)
        except AllocationError as e:
            return _error(e)
        return jsonify({"pid": pid, "stats": tracker.stats().as_dict()}), _HTTP_CREATED

    @app.route("/api/segment", methods=["POST"])
    def segment() -> tuple[Response, int] | Response:  # pyright: ignore[reportUnusedFunction]
        """Add a segment to an existing process."""
        data = body()
        if data is None or "pid" not in data or "size" not in data:
            return _bad_request("Missing 'pid' or 'size' field")
        if not _is_int(data["pid"]):
            return _bad_request("'pid' must be an integer")
        kind = str(data.get("kind") or DEFAULT_SEGMENT_KIND)
        try:
            new = tracker.add_segment(data["pid"], data["size"], kind)
        except AllocationError as e:
            return _error(e)
        return jsonify({"segment": _segment_json(new)}), _HTTP_CREATED

    @app.route("/api/deallocate", methods=["POST"])
    def deallocate() -> tuple[Response, int] | Response:  # pyright: ignore[reportUnusedFunction]
        """Free every unit owned by a process."""
        data = body()
        if data is None or "pid" not in data:
            return _bad_request("Missing 'pid' field")
        if not _is_int(data["pid"]):
            return _bad_request("'pid' must be an integer")
        try:
            tracker.deallocate(data["pid"])
        except AllocationError as e:
            return _error(e)
        return jsonify({"stats": tracker.stats().as_dict()})

    @app.route("/api/compact", methods=["POST"])
    def compact() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Compact memory (no-op in paging mode)."""
        tracker.compact()
        return jsonify(state_json())

    @app.route("/api/fault", methods=["POST"])
    def fault() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Simulate a page fault."""
        tracker.simulate_page_fault()
        return jsonify({"stats": tracker.stats().as_dict()})

    @app.route("/api/violation", methods=["POST"])
    def violation() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Simulate a segment violation."""
        tracker.simulate_segment_violation()
        return jsonify({"stats": tracker.stats().as_dict()})

    return app


def main() -> None:
    """Run the API development server.

    This is the ``memtrack-web`` console entry point.
    """
    app = create_app()
    app.run(debug=True, port=8080)
