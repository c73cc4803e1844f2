"""Async SQLite database handle.

One connection per ``Database``, opened at startup and shared by every
request. Statements are serialised on that connection by an ``anyio``
lock; perch adds no pooling and no per-request transactions.

Accepted URLs::

    sqlite:///path/to/app.db     # file, created if missing
    ./app.db                     # bare path, same thing
    :memory:                     # process-local, gone at exit
    sqlite:///:memory:
"""

from __future__ import annotations

import logging
import sys
import threading
import time
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import IO, Any, overload

import anyio

from perch.data._mapping import map_row, map_rows
from perch.data._sqlite import Connection, Outcome
from perch.data.errors import DataError, DriverNotInstalledError, QueryError

logger = logging.getLogger("perch.data")

MEMORY = ":memory:"
"""Reserved URL for a non-persistent, process-local database."""

# Set inside transaction(); query methods reuse the transaction's
# connection instead of taking the lock again.
_current_conn: ContextVar[Connection] = ContextVar("perch_db_conn")


@dataclass(frozen=True, slots=True)
class RunResult:
    """Outcome of ``Database.run()``."""

    last_row_id: int | None
    changes: int


def parse_sqlite_path(url: str) -> str:
    """Extract the filesystem path (or ``:memory:``) from a database URL."""
    if not url:
        msg = "Database URL must not be empty"
        raise DataError(msg)
    for prefix in ("sqlite:///", "sqlite://"):
        if url.startswith(prefix):
            return url[len(prefix) :] or MEMORY
    if "://" in url:
        scheme = url.split("://", 1)[0]
        msg = (
            f"Unsupported database URL scheme: {scheme!r}. "
            "Supported: sqlite:///path, a bare file path, or :memory:"
        )
        raise DriverNotInstalledError(msg)
    return url


class Database:
    """Typed async access to one SQLite database.

    Usage::

        db = Database("sqlite:///app.db")
        await db.connect()

        rows = await db.fetch_all("SELECT * FROM hello")
        user = await db.fetch_one(User, "SELECT * FROM users WHERE id = ?", 42)
        result = await db.run("INSERT INTO hello(world) VALUES (?)", "world")

        async with db.transaction():
            await db.execute("INSERT INTO users ...", name)
            await db.execute("INSERT INTO profiles ...", user_id)
    """

    __slots__ = ("_async_lock", "_conn", "_echo", "_lock", "_path", "url")

    def __init__(self, url: str, /, *, echo: bool = False) -> None:
        self.url = url
        self._path = parse_sqlite_path(url)
        self._echo = echo
        self._lock = threading.Lock()
        self._async_lock: anyio.Lock | None = None  # created on first use, inside a loop
        self._conn: Connection | None = None

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    @property
    def is_memory(self) -> bool:
        return self._path == MEMORY

    # -- Connection management --

    def _get_lock(self) -> anyio.Lock:
        if self._async_lock is None:
            self._async_lock = anyio.Lock()
        return self._async_lock

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[Connection]:
        """Yield the shared connection, serialised against other tasks."""
        if self._conn is None:
            await self.connect()

        try:
            conn = _current_conn.get()
        except LookupError:
            pass
        else:
            yield conn
            return

        async with self._get_lock():
            assert self._conn is not None
            yield self._conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Run the enclosed statements atomically.

        Commits on clean exit and rolls back on exception. A nested
        ``transaction()`` joins the outer one.
        """
        if self._conn is None:
            await self.connect()

        try:
            _current_conn.get()
        except LookupError:
            pass
        else:
            yield
            return

        async with self._get_lock():
            conn = self._conn
            assert conn is not None
            token = _current_conn.set(conn)
            try:
                conn.autocommit = False
                yield
                await conn.commit()
            except BaseException:
                await conn.rollback()
                raise
            finally:
                conn.autocommit = True
                _current_conn.reset(token)

    def _log_query(self, sql: str, params: Sequence[Any], elapsed: float) -> None:
        if not self._echo:
            return
        param_str = f"  params={tuple(params)!r}" if params else ""
        print(f"[perch.data] {elapsed * 1000:6.1f}ms  {sql}{param_str}", file=sys.stderr)

    async def _statement(self, sql: str, params: Sequence[Any]) -> Outcome:
        t0 = time.perf_counter()
        async with self._connection() as conn:
            try:
                return await conn.execute(sql, params)
            except Exception as exc:
                raise QueryError(str(exc)) from exc
            finally:
                self._log_query(sql, params, time.perf_counter() - t0)

    # -- Public query API --

    async def fetch_all(self, sql: str, /, *params: Any) -> list[dict[str, Any]]:
        """Run a query and return every row as a ``{column: value}`` dict."""
        return (await self._statement(sql, params)).records()

    async def fetch[T](self, cls: type[T], sql: str, /, *params: Any) -> list[T]:
        """Run a query and return every row as a *cls* dataclass."""
        return map_rows(cls, await self.fetch_all(sql, *params))

    async def fetch_one[T](self, cls: type[T], sql: str, /, *params: Any) -> T | None:
        """Run a query and return the first row as *cls*, or ``None``."""
        rows = await self.fetch_all(sql, *params)
        return map_row(cls, rows[0]) if rows else None

    @overload
    async def fetch_val(self, sql: str, /, *params: Any) -> Any: ...
    @overload
    async def fetch_val[T](self, sql: str, /, *params: Any, as_type: type[T]) -> T | None: ...

    async def fetch_val(self, sql: str, /, *params: Any, as_type: type | None = None) -> Any:
        """Return the first column of the first row (``COUNT``, ``MAX`` ...)."""
        rows = await self.fetch_all(sql, *params)
        if not rows:
            return None
        value = next(iter(rows[0].values()))
        return as_type(value) if as_type is not None and value is not None else value

    async def stream[T](
        self, cls: type[T], sql: str, /, *params: Any, batch_size: int = 100
    ) -> AsyncIterator[T]:
        """Yield rows as *cls* in batches of *batch_size*."""
        async with self._connection() as conn:
            try:
                async for columns, rows in conn.batches(sql, params, batch_size):
                    for row in rows:
                        yield map_row(cls, dict(zip(columns, row, strict=True)))
            except Exception as exc:
                raise QueryError(str(exc)) from exc

    async def execute(self, sql: str, /, *params: Any) -> int:
        """Run an INSERT/UPDATE/DELETE and return the number of rows affected."""
        return (await self._statement(sql, params)).rowcount

    async def run(self, sql: str, /, *params: Any) -> RunResult:
        """Run a statement and report the last inserted rowid and row count."""
        outcome = await self._statement(sql, params)
        return RunResult(last_row_id=outcome.lastrowid, changes=outcome.rowcount)

    async def execute_many(self, sql: str, params_seq: Sequence[tuple[Any, ...]], /) -> int:
        """Run *sql* once per parameter tuple; return total rows affected."""
        t0 = time.perf_counter()
        async with self._connection() as conn:
            try:
                count = await conn.execute_many(sql, params_seq)
            except Exception as exc:
                raise QueryError(str(exc)) from exc
            finally:
                self._log_query(sql, (), time.perf_counter() - t0)
        return max(count, 0)

    async def execute_script(self, sql: str, /) -> None:
        """Run several ``;``-separated statements (used by migrations)."""
        t0 = time.perf_counter()
        async with self._connection() as conn:
            try:
                await conn.execute_script(sql)
            except Exception as exc:
                raise QueryError(str(exc)) from exc
            finally:
                self._log_query(sql, (), time.perf_counter() - t0)

    # -- Inspection --

    async def dump_table(
        self,
        name: str,
        limit: int | None = None,
        offset: int | None = None,
        *,
        file: IO[str] | None = None,
    ) -> None:
        """Print the rows of table *name* as a text table.

        Skips *offset* rows, then shows at most *limit*. For operators
        poking at state from a handler: nothing is returned, and a bad
        table name or a failed query is logged on ``perch.data`` instead
        of raised.
        """
        try:
            sql, params = dump_table_sql(name, limit, offset)
            outcome = await self._statement(sql, params)
        except DataError as exc:
            logger.warning("dump_table(%r) failed: %s", name, exc)
            return
        print(render_table(list(outcome.columns), outcome.records()), file=file or sys.stdout)

    # -- Lifecycle --

    async def connect(self) -> None:
        """Open the connection. Called automatically on first query."""
        if self._conn is not None:
            return
        from perch.data._sqlite import open_connection

        try:
            conn = await open_connection(self._path)
            await conn.execute("PRAGMA foreign_keys=ON")
            if not self.is_memory:
                await conn.execute("PRAGMA journal_mode=WAL")
        except Exception as exc:
            msg = f"Cannot open database {self.url!r}: {exc}"
            raise DataError(msg) from exc
        with self._lock:
            if self._conn is None:
                self._conn = conn
                return
        await conn.close()

    async def disconnect(self) -> None:
        """Close the connection. Safe to call twice."""
        with self._lock:
            conn, self._conn = self._conn, None
        if conn is not None:
            await conn.close()

    async def __aenter__(self) -> Database:
        await self.connect()
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.disconnect()

    def __repr__(self) -> str:
        state = "connected" if self.is_connected else "closed"
        return f"<Database {self.url!r} {state}>"


def quote_identifier(name: str) -> str:
    """Quote a table name for interpolation into SQL."""
    if not name or "\x00" in name:
        msg = f"Invalid table name: {name!r}"
        raise DataError(msg)
    return '"' + name.replace('"', '""') + '"'


def dump_table_sql(
    name: str, limit: int | None = None, offset: int | None = None
) -> tuple[str, tuple[int, ...]]:
    """Build the ``dump_table`` query.

    ``offset`` rows are skipped before ``limit`` rows are taken. SQLite
    only parses ``LIMIT`` before ``OFFSET`` and needs ``LIMIT -1`` for
    "no limit", so that is the form emitted.
    """
    sql = f"SELECT * FROM {quote_identifier(name)}"
    if not limit and not offset:
        return sql, ()
    sql += " LIMIT ?"
    params: tuple[int, ...] = (limit or -1,)
    if offset:
        sql += " OFFSET ?"
        params = (*params, offset)
    return sql, params


def render_table(columns: list[str], rows: list[dict[str, Any]]) -> str:
    """Render rows as an aligned, index-numbered text table."""
    header = ["(index)", *columns]
    body = [[str(i), *(_cell(row[c]) for c in columns)] for i, row in enumerate(rows)]
    widths = [max(len(cell) for cell in col) for col in zip(header, *body, strict=True)]

    def line(cells: list[str]) -> str:
        return "│ " + " │ ".join(c.ljust(w) for c, w in zip(cells, widths, strict=True)) + " │"

    rule = "─" * (sum(widths) + 3 * len(widths) + 1)
    return "\n".join([rule, line(header), rule, *(line(r) for r in body), rule])


def _cell(value: Any) -> str:
    return repr(value) if isinstance(value, str) else str(value)
