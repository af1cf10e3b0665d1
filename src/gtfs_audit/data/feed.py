"""Namespace-scoped read access to the feed tables."""

from collections.abc import AsyncIterator
from typing import Generic, TypeVar

import aiosqlite

from gtfs_audit.data.database import normalize_namespace, qualify, table_exists
from gtfs_audit.models.gtfs import (
    BookingRule,
    Entity,
    FareRule,
    Location,
    LocationGroup,
    LocationGroupStop,
    Pattern,
    Route,
    Stop,
    StopTime,
    Trip,
)

T = TypeVar("T", bound=Entity)

# Natural ordering per table. Tables not listed are read in insertion order.
ORDER_BY: dict[str, str] = {
    "stop_times": "trip_id, stop_sequence",
}


class TableReader(Generic[T]):
    """Reads one feed table as pydantic models.

    Iterating again re-runs the query, so a reader can be iterated any number
    of times. A table that does not exist reads as empty.
    """

    def __init__(self, connection: aiosqlite.Connection, namespace: str, model: type[T]):
        self._db = connection
        self._namespace = namespace
        self.model = model

    @property
    def table_name(self) -> str:
        return qualify(self._namespace, self.model.table_name)

    async def exists(self) -> bool:
        return await table_exists(self._db, self._namespace, self.model.table_name)

    def __aiter__(self) -> AsyncIterator[T]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[T]:
        if not await self.exists():
            return
        sql = f"SELECT * FROM {self.table_name}"
        order_by = ORDER_BY.get(self.model.table_name)
        sql += f" ORDER BY {order_by}" if order_by else " ORDER BY rowid"
        async with self._db.execute(sql) as cursor:
            names = [column[0] for column in cursor.description]
            async for row in cursor:
                yield self.model.model_validate(dict(zip(names, row)))

    async def all(self) -> list[T]:
        """Read the whole table into a list."""
        return [record async for record in self]

    async def by_id(self) -> dict[str, T]:
        """Read the whole table into a dict keyed by entity ID (first row wins)."""
        records: dict[str, T] = {}
        async for record in self:
            entity_id = record.entity_id
            if entity_id is not None and entity_id not in records:
                records[entity_id] = record
        return records

    async def count(self) -> int:
        if not await self.exists():
            return 0
        async with self._db.execute(f"SELECT COUNT(*) FROM {self.table_name}") as cursor:
            row = await cursor.fetchone()
        return row[0] if row else 0


class Feed:
    """The feed tables of one namespace, read over a shared connection.

    Args:
        connection: Open connection to the feed database.
        namespace: Alias of the attached database holding the feed, or "" for main.
    """

    def __init__(self, connection: aiosqlite.Connection, namespace: str = ""):
        self.connection = connection
        self.namespace = normalize_namespace(namespace)
        self.routes = TableReader(connection, self.namespace, Route)
        self.stops = TableReader(connection, self.namespace, Stop)
        self.trips = TableReader(connection, self.namespace, Trip)
        self.stop_times = TableReader(connection, self.namespace, StopTime)
        self.locations = TableReader(connection, self.namespace, Location)
        self.location_groups = TableReader(connection, self.namespace, LocationGroup)
        self.location_group_stops = TableReader(connection, self.namespace, LocationGroupStop)
        self.booking_rules = TableReader(connection, self.namespace, BookingRule)
        self.fare_rules = TableReader(connection, self.namespace, FareRule)
        self.patterns = TableReader(connection, self.namespace, Pattern)

    def table_name(self, table: str) -> str:
        """Return a table name prefixed with this feed's namespace."""
        return qualify(self.namespace, table)

    async def stop_times_by_trip(self) -> AsyncIterator[tuple[str, list[StopTime]]]:
        """Yield (trip_id, ordered stop times) for every trip that has stop times."""
        current_trip_id: str | None = None
        current: list[StopTime] = []
        async for stop_time in self.stop_times:
            if stop_time.trip_id != current_trip_id:
                if current_trip_id is not None:
                    yield current_trip_id, current
                current_trip_id = stop_time.trip_id
                current = []
            current.append(stop_time)
        if current_trip_id is not None:
            yield current_trip_id, current
