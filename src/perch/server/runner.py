"""Serve an App with uvicorn.

uvicorn runs with ``lifespan="on"``: the App's lifespan startup (open the
database, run migrations) must succeed before the socket accepts
traffic, and a startup failure makes uvicorn exit without serving.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import uvicorn

    from perch.app import App

_LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def configure_logging(level: str = "info") -> None:
    """Give the ``perch`` logger tree a stderr handler, once."""
    root = logging.getLogger("perch")
    root.setLevel(level.upper())
    if root.handlers:
        return
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    root.addHandler(handler)


def build_server(app: App, host: str, port: int, *, log_level: str = "info") -> uvicorn.Server:
    """Create (but do not start) a uvicorn server for *app*."""
    import uvicorn

    config = uvicorn.Config(
        app,
        host=host,
        port=port,
        lifespan="on",
        log_level=log_level,
        # perch.middleware.AccessLog writes the access log
        access_log=False,
    )
    return uvicorn.Server(config)


def run_server(app: App, host: str, port: int, *, log_level: str = "info") -> None:
    """Serve *app* until interrupted. Exits non-zero if startup fails."""
    configure_logging(log_level)
    server = build_server(app, host, port, log_level=log_level)
    server.run()
    if not server.started:
        sys.exit(3)
