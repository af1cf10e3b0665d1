"""Database connection helpers for the feed SQLite database."""

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import aiosqlite


def get_db_path() -> Path:
    """Get the database path from environment or default."""
    return Path(os.environ.get("GTFS_AUDIT_DB_PATH", "data/gtfs.db"))


def normalize_namespace(namespace: str | None) -> str:
    """Turn a namespace into a table name prefix.

    A namespace is the alias of an attached SQLite database. ``""`` (or None)
    means the main database.
    """
    if not namespace:
        return ""
    return namespace if namespace.endswith(".") else f"{namespace}."


def qualify(namespace: str | None, table_name: str) -> str:
    """Return ``table_name`` prefixed with its namespace."""
    return f"{normalize_namespace(namespace)}{table_name}"


async def table_exists(db: aiosqlite.Connection, namespace: str | None, table_name: str) -> bool:
    """Check whether a table exists inside the given namespace."""
    sql = f"SELECT 1 FROM {qualify(namespace, 'sqlite_master')} WHERE type = 'table' AND name = ?"
    async with db.execute(sql, (table_name,)) as cursor:
        return await cursor.fetchone() is not None


async def column_exists(
    db: aiosqlite.Connection, namespace: str | None, table_name: str, column: str
) -> bool:
    """Check whether a table has the given column."""
    schema = normalize_namespace(namespace)
    async with db.execute(f"PRAGMA {schema}table_info({table_name})") as cursor:
        rows = await cursor.fetchall()
    return any(row[1] == column for row in rows)


@asynccontextmanager
async def get_db(
    db_path: Path | None = None, namespace: str | None = None
) -> AsyncIterator[aiosqlite.Connection]:
    """Async context manager for DB connections with Row factory.

    Args:
        db_path: Optional path to the database. If not provided, uses GTFS_AUDIT_DB_PATH
                 environment variable or defaults to 'data/gtfs.db'.
        namespace: If given, the database is attached under this alias to an
                   in-memory main database instead of being opened as main.

    Yields:
        aiosqlite.Connection configured with Row factory for dict-like access.

    Raises:
        FileNotFoundError: If the database file doesn't exist.
    """
    if db_path is None:
        db_path = get_db_path()

    if not db_path.exists():
        raise FileNotFoundError(
            f"Database not found at {db_path}. Run 'gtfs-audit ingest <gtfs_path>' to create it."
        )

    alias = normalize_namespace(namespace).rstrip(".")
    async with aiosqlite.connect(":memory:" if alias else db_path) as db:
        db.row_factory = aiosqlite.Row
        if alias:
            await db.execute(f"ATTACH DATABASE ? AS {alias}", (str(db_path),))
        yield db
