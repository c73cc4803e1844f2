"""Database attachment — open, migrate, and expose the handle per request.

``open_database`` is run once during startup. It returns the shared
``Database`` together with a middleware that makes that same handle
available through ``get_db()`` for the duration of each request::

    db, attach = await open_database(DatabaseSettings("sqlite:///app.db", "migrations"))
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from contextvars import ContextVar
from typing import TYPE_CHECKING

from perch.data.database import Database
from perch.data.migrate import migrate

if TYPE_CHECKING:
    from perch.config import DatabaseSettings
    from perch.http.request import Request
    from perch.http.response import Response
    from perch.middleware.protocol import Middleware, Next

logger = logging.getLogger("perch.data")

_db_var: ContextVar[Database] = ContextVar("perch_db")


def get_db() -> Database:
    """Return the database attached to the current request.

    Raises ``LookupError`` outside a request or when no database is
    configured.
    """
    return _db_var.get()


def attach_middleware(source: Database | Callable[[], Database | None]) -> Middleware:
    """Build a middleware that exposes a database via ``get_db()``.

    *source* is either the handle or a callable returning the current
    handle, asked again on every request. A ``None`` handle attaches
    nothing.
    """
    current = source if callable(source) else lambda: source

    async def attach_db(request: Request, next: Next) -> Response:
        db = current()
        if db is None:
            return await next(request)
        token = _db_var.set(db)
        try:
            return await next(request)
        finally:
            _db_var.reset(token)

    return attach_db


async def open_database(settings: DatabaseSettings) -> tuple[Database, Middleware]:
    """Connect to ``settings.url`` and apply pending migrations.

    Raises:
        DataError: If the database cannot be opened.
        MigrationError: If a migration fails. The connection is closed first.
    """
    db = Database(settings.url, echo=settings.echo)
    await db.connect()
    if settings.migrations is not None:
        try:
            result = await migrate(db, settings.migrations)
        except BaseException:
            await db.disconnect()
            raise
        logger.info("%s", result.summary)
    return db, attach_middleware(db)
