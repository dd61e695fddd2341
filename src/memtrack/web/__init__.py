"""HTTP API for memtrack.

This package provides a Flask application that exposes one tracker
over JSON, for browser front-ends that draw the memory map.  It is an
**optional** extra — install with::

    pip install memtrack[web]

The ``create_app`` factory in ``app.py`` builds a tracker and serves
its state and operations under ``/api``.
"""
