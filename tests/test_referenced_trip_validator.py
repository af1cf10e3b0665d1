"""Tests for unreferenced entity detection."""

from gtfs_audit.data.feed import Feed
from gtfs_audit.errors.storage import ErrorStorage
from gtfs_audit.models.gtfs import Location, LocationGroup, Route, Stop, StopTime, Trip
from gtfs_audit.validators.base import ValidationResult
from gtfs_audit.validators.referenced_trip_validator import ReferencedTripValidator


class TestReferencedTripValidator:
    """Tests for ReferencedTripValidator."""

    async def test_unused_stop_and_empty_trip(
        self, feed: Feed, storage: ErrorStorage, insert_rows, stored_errors
    ) -> None:
        """Test that a stop no trip visits and a trip never offered are reported."""
        await insert_rows("routes", [{"route_id": "R1"}])
        await insert_rows("stops", [{"stop_id": "A"}, {"stop_id": "B"}, {"stop_id": "C"}])
        await insert_rows(
            "trips", [{"trip_id": "T1", "route_id": "R1"}, {"trip_id": "T2", "route_id": "R1"}]
        )
        stops = await feed.stops.by_id()
        validator = ReferencedTripValidator(feed, storage)

        await validator.validate_trip(
            Trip(trip_id="T1", route_id="R1"),
            Route(route_id="R1"),
            [
                StopTime(trip_id="T1", stop_sequence=1, stop_id="A"),
                StopTime(trip_id="T1", stop_sequence=2, stop_id="B"),
            ],
            [stops["A"], stops["B"]],
            [],
            [],
        )
        await validator.complete(ValidationResult())
        await storage.finish()

        assert await stored_errors() == [("STOP_UNUSED", "C"), ("TRIP_EMPTY", None)]
        assert validator.error_count == 2
        async with feed.connection.execute(
            "SELECT entity_type, line_number, entity_id FROM error_refs ORDER BY error_id"
        ) as cursor:
            refs = [tuple(row) for row in await cursor.fetchall()]
        assert refs == [("Stop", 4, "C"), ("Trip", 3, "T2")]

    async def test_unused_route(
        self, feed: Feed, storage: ErrorStorage, insert_rows, stored_errors
    ) -> None:
        """Test that a route with no validated trips is reported."""
        await insert_rows("routes", [{"route_id": "R1"}, {"route_id": "R2"}])
        validator = ReferencedTripValidator(feed, storage)

        await validator.validate_trip(
            Trip(trip_id="T1", route_id="R1"),
            Route(route_id="R1"),
            [StopTime(trip_id="T1", stop_sequence=1, stop_id="A")],
            [],
            [],
            [],
        )
        await validator.complete(ValidationResult())
        await storage.finish()

        assert await stored_errors() == [("ROUTE_UNUSED", None)]

    async def test_parent_station_counts_as_referenced(
        self, feed: Feed, storage: ErrorStorage, insert_rows, stored_errors
    ) -> None:
        """Test that visiting a platform keeps its station from being reported."""
        await insert_rows(
            "stops",
            [
                {"stop_id": "STATION", "location_type": 1},
                {"stop_id": "PLATFORM", "parent_station": "STATION"},
            ],
        )
        validator = ReferencedTripValidator(feed, storage)

        await validator.validate_trip(
            Trip(trip_id="T1", route_id="R1"),
            None,
            [StopTime(trip_id="T1", stop_sequence=1, stop_id="PLATFORM")],
            [Stop(stop_id="PLATFORM", parent_station="STATION")],
            [],
            [],
        )
        await validator.complete(ValidationResult())
        await storage.finish()

        assert await stored_errors() == []

    async def test_unused_locations_and_groups(
        self, feed: Feed, storage: ErrorStorage, insert_rows, stored_errors
    ) -> None:
        """Test that flex halts only orphan stop times visit are reported as unused."""
        await insert_rows("locations", [{"location_id": "L1"}, {"location_id": "L2"}])
        await insert_rows(
            "location_groups", [{"location_group_id": "G1"}, {"location_group_id": "G2"}]
        )
        await insert_rows(
            "stop_times",
            [{"trip_id": "ORPHAN", "stop_sequence": 1, "location_group_id": "G2"}],
        )
        validator = ReferencedTripValidator(feed, storage)

        await validator.validate_trip(
            Trip(trip_id="T1", route_id="R1"),
            None,
            [
                StopTime(trip_id="T1", stop_sequence=1, location_id="L1"),
                StopTime(trip_id="T1", stop_sequence=2, location_group_id="G1"),
            ],
            [],
            [Location(location_id="L1")],
            [LocationGroup(location_group_id="G1")],
        )
        await validator.complete(ValidationResult())
        await storage.finish()

        assert await stored_errors() == [
            ("LOCATION_UNUSED", "L2"),
            ("LOCATION_GROUP_UNUSED", "G2"),
        ]
        async with feed.connection.execute(
            "SELECT entity_type, entity_id FROM error_refs ORDER BY error_id"
        ) as cursor:
            refs = [tuple(row) for row in await cursor.fetchall()]
        assert refs == [("Location", "L2"), ("LocationGroup", "G2")]

    async def test_dangling_location_reference(
        self, feed: Feed, storage: ErrorStorage, insert_rows, stored_errors
    ) -> None:
        """Test that a stop time naming a location missing from the feed is reported once."""
        await insert_rows(
            "stop_times",
            [
                {"trip_id": "ORPHAN", "stop_sequence": 1, "location_id": "GHOST"},
                {"trip_id": "ORPHAN", "stop_sequence": 2, "location_id": "GHOST"},
            ],
        )
        validator = ReferencedTripValidator(feed, storage)

        await validator.complete(ValidationResult())
        await storage.finish()

        assert await stored_errors() == [("LOCATION_UNUSED", "GHOST")]
        async with feed.connection.execute(
            "SELECT entity_type, line_number, entity_id, sequence_number FROM error_refs"
        ) as cursor:
            refs = [tuple(row) for row in await cursor.fetchall()]
        assert refs == [("StopTime", 2, "ORPHAN", 1)]

    async def test_no_errors_when_everything_is_used(
        self, feed: Feed, storage: ErrorStorage, insert_rows, stored_errors
    ) -> None:
        await insert_rows("routes", [{"route_id": "R1"}])
        await insert_rows("stops", [{"stop_id": "A"}])
        await insert_rows("trips", [{"trip_id": "T1", "route_id": "R1"}])
        validator = ReferencedTripValidator(feed, storage)

        await validator.validate_trip(
            Trip(trip_id="T1", route_id="R1"),
            Route(route_id="R1"),
            [StopTime(trip_id="T1", stop_sequence=1, stop_id="A")],
            [Stop(stop_id="A")],
            [],
            [],
        )
        await validator.complete(ValidationResult())
        await storage.finish()

        assert await stored_errors() == []
        assert validator.error_count == 0
