"""Async SQLite access for perch services.

SQL in, dicts or frozen dataclasses out. Not an ORM.

Configured on the service, the handle is opened and migrated once at
startup and attached to every request as ``ctx.db``::

    ServiceConfig(
        routes=...,
        db=DatabaseSettings("sqlite:///app.db", migrations="migrations"),
    )

    async def list_rows(ctx):
        return await ctx.db.fetch_all("SELECT * FROM hello")

Standalone::

    async with Database(":memory:") as db:
        await db.execute("CREATE TABLE t (id INTEGER)")
"""

from perch.data.attach import get_db, open_database
from perch.data.database import MEMORY, Database, RunResult
from perch.data.errors import DataError, DriverNotInstalledError, MigrationError, QueryError
from perch.data.migrate import MigrationResult, migrate

__all__ = [
    "MEMORY",
    "DataError",
    "Database",
    "DriverNotInstalledError",
    "MigrationError",
    "MigrationResult",
    "QueryError",
    "RunResult",
    "get_db",
    "migrate",
    "open_database",
]
