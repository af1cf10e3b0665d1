"""Shared fixtures: an in-memory feed database and a helper to fill its tables."""

from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

import aiosqlite
import pytest

from gtfs_audit.data.feed import Feed
from gtfs_audit.data.feed_loader import build_schema_sql
from gtfs_audit.errors.storage import ErrorStorage

InsertRows = Callable[[str, list[dict[str, Any]]], Awaitable[None]]


@pytest.fixture
async def db() -> AsyncIterator[aiosqlite.Connection]:
    """In-memory database with empty feed tables."""
    async with aiosqlite.connect(":memory:") as connection:
        await connection.executescript(build_schema_sql())
        yield connection


@pytest.fixture
def insert_rows(db: aiosqlite.Connection) -> InsertRows:
    """Insert rows into a feed table; csv_line defaults to the row's position after the header."""

    async def insert(table: str, rows: list[dict[str, Any]]) -> None:
        for index, row in enumerate(rows):
            values = {"csv_line": index + 2, **row}
            columns = ",".join(values)
            placeholders = ",".join(["?"] * len(values))
            await db.execute(
                f"INSERT INTO {table} ({columns}) VALUES ({placeholders})", list(values.values())
            )
        await db.commit()

    return insert


@pytest.fixture
def feed(db: aiosqlite.Connection) -> Feed:
    return Feed(db)


@pytest.fixture
async def storage(db: aiosqlite.Connection) -> ErrorStorage:
    return await ErrorStorage.open(db, create_tables=True)


async def fetch_errors(db: aiosqlite.Connection) -> list[tuple[str, str | None]]:
    """(type, bad value) of every stored error, in ID order."""
    async with db.execute("SELECT type, problems FROM errors ORDER BY error_id") as cursor:
        return [tuple(row) for row in await cursor.fetchall()]


@pytest.fixture
def stored_errors(db: aiosqlite.Connection) -> Callable[[], Awaitable[list[tuple[str, str | None]]]]:
    """Read back stored errors as (type, bad value) pairs."""
    return lambda: fetch_errors(db)
