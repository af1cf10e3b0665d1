"""Persist inferred patterns and link trips to them."""

import logging
from collections.abc import Sequence

import aiosqlite

from gtfs_audit.data.database import column_exists
from gtfs_audit.data.feed import Feed
from gtfs_audit.models.gtfs import (
    PatternHalt,
    PatternLocation,
    PatternLocationGroup,
    PatternStop,
    StopTime,
)
from gtfs_audit.patterns.finder import InferredPattern
from gtfs_audit.patterns.key import Halt, HaltKind

logger = logging.getLogger(__name__)

PATTERNS_SCHEMA = """(
    csv_line INTEGER,
    pattern_id TEXT,
    route_id TEXT,
    name TEXT,
    direction_id INTEGER,
    shape_id TEXT
)"""

_HALT_COLUMNS = """
    csv_line INTEGER,
    pattern_id TEXT,
    stop_sequence INTEGER,
    pickup_type INTEGER,
    drop_off_type INTEGER,
    timepoint INTEGER,
    continuous_pickup INTEGER,
    continuous_drop_off INTEGER,
    pickup_booking_rule_id TEXT,
    drop_off_booking_rule_id TEXT,"""

PATTERN_STOPS_SCHEMA = f"""({_HALT_COLUMNS}
    stop_id TEXT,
    stop_headsign TEXT,
    default_travel_time INTEGER,
    default_dwell_time INTEGER,
    shape_dist_traveled REAL
)"""

PATTERN_LOCATIONS_SCHEMA = f"""({_HALT_COLUMNS}
    location_id TEXT,
    flex_default_travel_time INTEGER,
    flex_default_zone_time INTEGER
)"""

PATTERN_LOCATION_GROUPS_SCHEMA = f"""({_HALT_COLUMNS}
    location_group_id TEXT,
    flex_default_travel_time INTEGER,
    flex_default_zone_time INTEGER
)"""

HALT_TABLES: dict[type[PatternHalt], str] = {
    PatternStop: PATTERN_STOPS_SCHEMA,
    PatternLocation: PATTERN_LOCATIONS_SCHEMA,
    PatternLocationGroup: PATTERN_LOCATION_GROUPS_SCHEMA,
}


def _departure(halt: Halt, stop_time: StopTime) -> int | None:
    """When a vehicle leaves a halt: end of the window for flex halts."""
    if halt.kind.is_flex:
        return stop_time.end_pickup_drop_off_window
    return stop_time.departure_time


def calculate_previous_departure_times(
    halts: Sequence[Halt], stop_times: Sequence[StopTime]
) -> list[int | None]:
    """Compute the last valid departure before each halt.

    The first halt always gets 0. A later halt gets the latest departure seen so
    far, except that between two flex halts there is no departure and the value
    resets to 0. Missing times never replace a known departure.
    """
    if not halts:
        return []
    last_valid = _departure(halts[0], stop_times[0])
    previous_departures: list[int | None] = [0]
    for i in range(1, len(halts)):
        prev_halt, halt = halts[i - 1], halts[i]
        if prev_halt.kind.is_flex and halt.kind.is_flex:
            last_valid = 0
        else:
            prev_departure = _departure(prev_halt, stop_times[i - 1])
            if prev_departure is not None and (last_valid is None or prev_departure > last_valid):
                last_valid = prev_departure
        previous_departures.append(last_valid)
    return previous_departures


def _difference(later: int | None, earlier: int | None) -> int | None:
    if later is None or earlier is None:
        return None
    return later - earlier


def build_pattern_halts(pattern: InferredPattern) -> list[PatternHalt]:
    """Build pattern stop, location and location group rows from the representative trip.

    Pattern halts are numbered from 0 in trip order.
    """
    halts = pattern.key.halts
    stop_times = pattern.halt_stop_times
    previous_departures = calculate_previous_departure_times(halts, stop_times)

    rows: list[PatternHalt] = []
    for sequence, (halt, stop_time) in enumerate(zip(halts, stop_times)):
        last_valid = previous_departures[sequence]
        common = {
            "pattern_id": pattern.pattern_id,
            "stop_sequence": sequence,
            "pickup_type": stop_time.pickup_type,
            "drop_off_type": stop_time.drop_off_type,
            "timepoint": stop_time.timepoint,
            "continuous_pickup": stop_time.continuous_pickup,
            "continuous_drop_off": stop_time.continuous_drop_off,
            "pickup_booking_rule_id": stop_time.pickup_booking_rule_id,
            "drop_off_booking_rule_id": stop_time.drop_off_booking_rule_id,
        }

        if halt.kind is HaltKind.STOP:
            travel_time = 0 if sequence == 0 else _difference(stop_time.arrival_time, last_valid)
            rows.append(
                PatternStop(
                    **common,
                    stop_id=halt.halt_id,
                    stop_headsign=stop_time.stop_headsign,
                    default_travel_time=travel_time,
                    default_dwell_time=_difference(
                        stop_time.departure_time, stop_time.arrival_time
                    ),
                    shape_dist_traveled=stop_time.shape_dist_traveled,
                )
            )
            continue

        prev_is_flex = sequence > 0 and halts[sequence - 1].kind.is_flex
        if sequence == 0 or prev_is_flex:
            travel_time = 0
        else:
            travel_time = _difference(stop_time.start_pickup_drop_off_window, last_valid)
        zone_time = _difference(
            stop_time.end_pickup_drop_off_window, stop_time.start_pickup_drop_off_window
        )
        if halt.kind is HaltKind.LOCATION:
            rows.append(
                PatternLocation(
                    **common,
                    location_id=halt.halt_id,
                    flex_default_travel_time=travel_time,
                    flex_default_zone_time=zone_time,
                )
            )
        else:
            rows.append(
                PatternLocationGroup(
                    **common,
                    location_group_id=halt.halt_id,
                    flex_default_travel_time=travel_time,
                    flex_default_zone_time=zone_time,
                )
            )
    return rows


class PatternBuilder:
    """Writes patterns, pattern halts and trips.pattern_id into the feed's namespace.

    Re-running with the same patterns leaves the tables unchanged.
    """

    def __init__(self, feed: Feed):
        self.feed = feed
        self._db = feed.connection

    async def create(self, patterns: Sequence[InferredPattern]) -> None:
        """Persist patterns and commit.

        Reused patterns keep their existing rows. Every other row of the patterns
        table is replaced by the new patterns, and the pattern halt tables are
        rebuilt from scratch.

        Raises:
            aiosqlite.Error: If a statement fails. Pattern changes are rolled back,
                errors already written on the same connection are kept.
        """
        await self._db.execute("SAVEPOINT pattern_builder")
        try:
            await self._write_patterns(patterns)
            await self._write_halts(patterns)
            await self._update_trips(patterns)
        except aiosqlite.Error:
            await self._db.execute("ROLLBACK TO pattern_builder")
            await self._db.execute("RELEASE pattern_builder")
            raise
        await self._db.execute("RELEASE pattern_builder")
        await self._db.commit()
        logger.info(f"Stored {len(patterns)} patterns")

    async def _write_patterns(self, patterns: Sequence[InferredPattern]) -> None:
        patterns_table = self.feed.table_name("patterns")
        await self._db.execute(f"CREATE TABLE IF NOT EXISTS {patterns_table} {PATTERNS_SCHEMA}")

        reused_ids = {p.pattern_id for p in patterns if p.reused}
        async with self._db.execute(f"SELECT DISTINCT pattern_id FROM {patterns_table}") as cursor:
            existing_ids = [row[0] for row in await cursor.fetchall()]
        stale_ids = [(pattern_id,) for pattern_id in existing_ids if pattern_id not in reused_ids]
        if stale_ids:
            logger.info(f"Removing {len(stale_ids)} patterns not reused by any trips")
            await self._db.executemany(
                f"DELETE FROM {patterns_table} WHERE pattern_id = ?", stale_ids
            )

        new_rows = [
            (
                p.pattern.line_number,
                p.pattern_id,
                p.pattern.route_id,
                p.pattern.name,
                p.pattern.direction_id,
                p.pattern.shape_id,
            )
            for p in patterns
            if not p.reused
        ]
        await self._db.executemany(
            f"INSERT INTO {patterns_table} "
            "(csv_line, pattern_id, route_id, name, direction_id, shape_id) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            new_rows,
        )

    async def _write_halts(self, patterns: Sequence[InferredPattern]) -> None:
        rows_by_model: dict[type[PatternHalt], list[PatternHalt]] = {
            model: [] for model in HALT_TABLES
        }
        for pattern in patterns:
            for halt in build_pattern_halts(pattern):
                rows_by_model[type(halt)].append(halt)

        for model, schema in HALT_TABLES.items():
            table = self.feed.table_name(model.table_name)
            await self._db.execute(f"DROP TABLE IF EXISTS {table}")
            await self._db.execute(f"CREATE TABLE {table} {schema}")
            rows = rows_by_model[model]
            if not rows:
                continue
            columns = ["csv_line", *(name for name in model.model_fields if name != "line_number")]
            placeholders = ",".join(["?"] * len(columns))
            values = [
                (row.line_number, *(getattr(row, name) for name in columns[1:])) for row in rows
            ]
            await self._db.executemany(
                f"INSERT INTO {table} ({','.join(columns)}) VALUES ({placeholders})", values
            )
            logger.info(f"  Stored {len(rows):,} rows in {model.table_name}")

    async def _update_trips(self, patterns: Sequence[InferredPattern]) -> None:
        trips_table = self.feed.table_name("trips")
        if not await column_exists(self._db, self.feed.namespace, "trips", "pattern_id"):
            await self._db.execute(f"ALTER TABLE {trips_table} ADD COLUMN pattern_id TEXT")

        logger.info("Updating trips with pattern IDs")
        await self._db.execute(f"UPDATE {trips_table} SET pattern_id = NULL")
        await self._db.executemany(
            f"UPDATE {trips_table} SET pattern_id = ? WHERE trip_id = ?",
            [(p.pattern_id, trip_id) for p in patterns for trip_id in p.trip_ids],
        )
        await self._db.execute(
            f"CREATE INDEX IF NOT EXISTS {self.feed.namespace}idx_trips_pattern "
            "ON trips(pattern_id)"
        )
