"""Forward-only SQL migration runner.

Migrations are numbered ``.sql`` files in a directory::

    migrations/
        001_create_hello.sql
        002-add-index.sql

Either ``_`` or ``-`` may separate the version from the description.
A file may hold ``-- Up`` and ``-- Down`` sections; only the Up section
is applied (perch never migrates down). Files without markers are
applied whole.

Applied versions are recorded in ``_perch_migrations``, so each file runs
exactly once per database. A failure stops the run and raises
``MigrationError``; at startup that keeps the service from listening.
"""

import logging
import re
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from perch.data.database import Database
from perch.data.errors import MigrationError

logger = logging.getLogger("perch.data")

_TRACKING_TABLE = "_perch_migrations"

_CREATE_TRACKING_SQL = f"""
CREATE TABLE IF NOT EXISTS {_TRACKING_TABLE} (
    version    INTEGER PRIMARY KEY,
    name       TEXT    NOT NULL,
    applied_at TEXT    NOT NULL
)
"""

_FILENAME = re.compile(r"^(?P<version>\d+)[_-](?P<label>.+)$")
_UP_MARKER = re.compile(r"^\s*--\s*up\b.*$", re.IGNORECASE | re.MULTILINE)
_DOWN_MARKER = re.compile(r"^\s*--\s*down\b.*$", re.IGNORECASE | re.MULTILINE)


@dataclass(frozen=True, slots=True)
class Migration:
    """A single migration file."""

    version: int
    name: str
    sql: str


@dataclass(frozen=True, slots=True)
class MigrationResult:
    """Result of running migrations."""

    applied: list[str]
    already_applied: int
    total_available: int

    @property
    def summary(self) -> str:
        if not self.applied:
            return f"Already up to date ({self.already_applied} migrations applied)"
        return f"Applied {len(self.applied)} migration(s): {', '.join(self.applied)}"


def up_section(sql: str) -> str:
    """Return the part of *sql* between ``-- Up`` and ``-- Down``.

    Without an Up marker the whole text counts as Up, still cut at a
    ``-- Down`` marker if there is one.
    """
    up = _UP_MARKER.search(sql)
    start = up.end() if up else 0
    down = _DOWN_MARKER.search(sql, start)
    end = down.start() if down else len(sql)
    return sql[start:end].strip()


def discover_migrations(directory: str | Path) -> list[Migration]:
    """Parse the migration files in *directory*, sorted by version."""
    path = Path(directory)
    if not path.is_dir():
        msg = f"Migration directory does not exist: {path}"
        raise MigrationError(msg)

    migrations: list[Migration] = []
    for sql_file in path.glob("*.sql"):
        match = _FILENAME.match(sql_file.stem)
        if match is None:
            msg = f"Invalid migration filename: {sql_file.name} (expected NNN_description.sql)"
            raise MigrationError(msg)

        sql = up_section(sql_file.read_text(encoding="utf-8"))
        if not sql:
            msg = f"Empty migration file: {sql_file.name}"
            raise MigrationError(msg)

        migrations.append(Migration(int(match["version"]), sql_file.stem, sql))

    migrations.sort(key=lambda m: m.version)
    versions = [m.version for m in migrations]
    if len(versions) != len(set(versions)):
        msg = f"Duplicate migration version numbers found in {path}"
        raise MigrationError(msg)
    return migrations


async def _applied_versions(db: Database) -> set[int]:
    rows = await db.fetch_all(f"SELECT version FROM {_TRACKING_TABLE}")
    return {row["version"] for row in rows}


async def _apply(db: Database, migration: Migration) -> None:
    """Run one migration and record it in a single transaction.

    A script that fails partway leaves neither its earlier statements
    nor a tracking row behind, so the next run retries it from scratch.
    Scripts must not carry their own BEGIN/COMMIT.
    """
    async with db.transaction():
        await db.execute_script(migration.sql)
        await db.execute(
            f"INSERT INTO {_TRACKING_TABLE} (version, name, applied_at) VALUES (?, ?, ?)",
            migration.version,
            migration.name,
            datetime.now(UTC).isoformat(),
        )


async def migrate(db: Database, directory: str | Path) -> MigrationResult:
    """Apply the pending migrations in *directory* in version order.

    Raises:
        MigrationError: If the directory is invalid or a migration fails.
    """
    migrations = discover_migrations(directory)
    await db.execute(_CREATE_TRACKING_SQL)
    applied_versions = await _applied_versions(db)

    applied: list[str] = []
    for migration in migrations:
        if migration.version in applied_versions:
            continue
        try:
            await _apply(db, migration)
        except Exception as exc:
            msg = f"Migration {migration.name} failed: {exc}"
            raise MigrationError(msg) from exc
        logger.info("Applied migration %s", migration.name)
        applied.append(migration.name)

    return MigrationResult(
        applied=applied,
        already_applied=len(applied_versions),
        total_available=len(migrations),
    )
