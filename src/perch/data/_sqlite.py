"""The one SQLite connection behind a ``Database``.

Blocking ``sqlite3`` work is pushed to anyio worker threads, one hop per
statement: a query executes and drains its rows in the same hop, so the
event loop never waits on the disk. The connection is opened with
``check_same_thread=False`` (hops may land on different threads) and
``autocommit=True``; ``Database.transaction()`` flips that off while it
runs.
"""

import sqlite3
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass
from functools import partial
from typing import Any

from anyio import to_thread


@dataclass(frozen=True, slots=True)
class Outcome:
    """Everything one statement produced."""

    columns: tuple[str, ...]
    rows: list[tuple[Any, ...]]
    rowcount: int
    lastrowid: int | None

    def records(self) -> list[dict[str, Any]]:
        return [dict(zip(self.columns, row, strict=True)) for row in self.rows]


def _columns(cursor: sqlite3.Cursor) -> tuple[str, ...]:
    return tuple(desc[0] for desc in cursor.description or ())


def _execute(conn: sqlite3.Connection, sql: str, params: Sequence[Any]) -> Outcome:
    cursor = conn.execute(sql, params)
    columns = _columns(cursor)
    rows = cursor.fetchall() if columns else []
    return Outcome(columns, rows, cursor.rowcount, cursor.lastrowid)


class Connection:
    __slots__ = ("_conn",)

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    @property
    def autocommit(self) -> bool:
        return bool(self._conn.autocommit)

    @autocommit.setter
    def autocommit(self, value: bool) -> None:
        self._conn.autocommit = value

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> Outcome:
        return await to_thread.run_sync(_execute, self._conn, sql, params)

    async def execute_many(self, sql: str, params_seq: Sequence[Sequence[Any]]) -> int:
        """Run *sql* per parameter set; returns sqlite's total row count."""
        cursor = await to_thread.run_sync(self._conn.executemany, sql, params_seq)
        return cursor.rowcount

    async def execute_script(self, sql: str) -> None:
        await to_thread.run_sync(self._conn.executescript, sql)

    async def batches(
        self, sql: str, params: Sequence[Any], size: int
    ) -> AsyncIterator[tuple[tuple[str, ...], list[tuple[Any, ...]]]]:
        """Yield ``(columns, rows)`` with at most *size* rows at a time."""
        cursor = await to_thread.run_sync(self._conn.execute, sql, params)
        columns = _columns(cursor)
        fetch = partial(cursor.fetchmany, size)
        while rows := await to_thread.run_sync(fetch):
            yield columns, rows

    async def commit(self) -> None:
        await to_thread.run_sync(self._conn.commit)

    async def rollback(self) -> None:
        await to_thread.run_sync(self._conn.rollback)

    async def close(self) -> None:
        await to_thread.run_sync(self._conn.close)


async def open_connection(path: str) -> Connection:
    """Open *path* (created if missing) or ``:memory:``."""
    conn = await to_thread.run_sync(
        partial(sqlite3.connect, path, autocommit=True, check_same_thread=False)
    )
    return Connection(conn)
