"""Tests for namespace-scoped feed readers."""

import aiosqlite

from gtfs_audit.data.feed import Feed
from gtfs_audit.data.feed_loader import build_schema_sql
from gtfs_audit.models.gtfs import Stop, StopTime


class TestTableReader:
    """Tests for reading feed tables as models."""

    async def test_reads_models_with_line_numbers(self, feed: Feed, insert_rows) -> None:
        """Test that rows become models carrying their source line."""
        await insert_rows("stops", [{"stop_id": "S1", "stop_name": "First"}, {"stop_id": "S2"}])

        stops = await feed.stops.all()

        assert stops == [
            Stop(stop_id="S1", stop_name="First", line_number=2),
            Stop(stop_id="S2", line_number=3),
        ]

    async def test_iterates_repeatedly(self, feed: Feed, insert_rows) -> None:
        """Test that a reader can be iterated more than once."""
        await insert_rows("stops", [{"stop_id": "S1"}])

        first = [stop.stop_id async for stop in feed.stops]
        second = [stop.stop_id async for stop in feed.stops]

        assert first == second == ["S1"]

    async def test_missing_values_are_none(self, feed: Feed, insert_rows) -> None:
        """Test that NULL columns read as None, distinct from zero."""
        await insert_rows(
            "stop_times",
            [{"trip_id": "T1", "stop_sequence": 1, "pickup_type": 0}],
        )

        [stop_time] = await feed.stop_times.all()

        assert stop_time.pickup_type == 0
        assert stop_time.drop_off_type is None
        assert stop_time.has_pickup_drop_off_window is False

    async def test_stop_times_ordered_by_trip_and_sequence(
        self, feed: Feed, insert_rows
    ) -> None:
        """Test that stop times come back in trip and sequence order."""
        await insert_rows(
            "stop_times",
            [
                {"trip_id": "T2", "stop_sequence": 1},
                {"trip_id": "T1", "stop_sequence": 2},
                {"trip_id": "T1", "stop_sequence": 1},
            ],
        )

        keys = [(st.trip_id, st.stop_sequence) async for st in feed.stop_times]

        assert keys == [("T1", 1), ("T1", 2), ("T2", 1)]

    async def test_count_and_by_id(self, feed: Feed, insert_rows) -> None:
        """Test counting rows and indexing by ID."""
        await insert_rows("routes", [{"route_id": "R1"}, {"route_id": "R2"}])

        assert await feed.routes.count() == 2
        assert set(await feed.routes.by_id()) == {"R1", "R2"}
        assert await feed.booking_rules.count() == 0

    async def test_missing_table_reads_empty(self) -> None:
        """Test that a table that does not exist reads as empty."""
        async with aiosqlite.connect(":memory:") as db:
            feed = Feed(db)

            assert await feed.patterns.all() == []
            assert await feed.patterns.count() == 0


class TestStopTimesByTrip:
    """Tests for grouping stop times by trip."""

    async def test_groups_consecutive_rows(self, feed: Feed, insert_rows) -> None:
        """Test that each trip's stop times are yielded together."""
        await insert_rows(
            "stop_times",
            [
                {"trip_id": "T1", "stop_sequence": 1, "stop_id": "A"},
                {"trip_id": "T2", "stop_sequence": 1, "stop_id": "C"},
                {"trip_id": "T1", "stop_sequence": 2, "stop_id": "B"},
            ],
        )

        groups = [
            (trip_id, [st.stop_id for st in stop_times])
            async for trip_id, stop_times in feed.stop_times_by_trip()
        ]

        assert groups == [("T1", ["A", "B"]), ("T2", ["C"])]

    async def test_empty_table(self, feed: Feed) -> None:
        """Test that no groups are yielded for an empty table."""
        assert [group async for group in feed.stop_times_by_trip()] == []


class TestNamespace:
    """Tests for reading a feed from an attached database."""

    async def test_reads_attached_namespace(self) -> None:
        """Test that a namespace selects the attached database's tables."""
        async with aiosqlite.connect(":memory:") as db:
            await db.execute("ATTACH DATABASE ':memory:' AS feed1")
            await db.executescript(build_schema_sql().replace("CREATE TABLE ", "CREATE TABLE feed1."))
            await db.execute(
                "INSERT INTO feed1.stop_times (csv_line, trip_id, stop_sequence) VALUES (2, 'T1', 1)"
            )

            feed = Feed(db, "feed1")

            assert feed.namespace == "feed1."
            assert feed.table_name("trips") == "feed1.trips"
            assert await feed.stop_times.all() == [
                StopTime(trip_id="T1", stop_sequence=1, line_number=2)
            ]
