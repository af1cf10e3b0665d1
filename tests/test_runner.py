"""Tests for running validators over a feed."""

import aiosqlite
import pytest

from gtfs_audit.data.feed import Feed
from gtfs_audit.errors.storage import ErrorStorage, StorageError
from gtfs_audit.models.gtfs import Location, LocationGroup, Route, Stop, StopTime, Trip
from gtfs_audit.validators.base import FeedValidator, TripValidator, ValidationResult
from gtfs_audit.validators.referenced_trip_validator import ReferencedTripValidator
from gtfs_audit.validators.runner import ValidationRunner, validate_feed


class RecordingValidator(TripValidator):
    """Remembers every trip it is offered."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.trip_ids: list[str] = []
        self.stop_ids: list[list[str]] = []
        self.completed = False

    async def validate_trip(
        self,
        trip: Trip,
        route: Route | None,
        stop_times: list[StopTime],
        stops: list[Stop],
        locations: list[Location],
        location_groups: list[LocationGroup],
    ) -> None:
        self.trip_ids.append(trip.trip_id)
        self.stop_ids.append([stop.stop_id for stop in stops])

    async def complete(self, validation_result: ValidationResult) -> None:
        self.completed = True


class ExplodingValidator(TripValidator):
    """Fails on the first trip it sees."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.calls = 0

    async def validate_trip(self, trip, route, stop_times, stops, locations, location_groups):
        self.calls += 1
        raise RuntimeError("boom")

    async def complete(self, validation_result: ValidationResult) -> None:
        raise AssertionError("failed validators are not completed")


class SometimesFailingValidator(RecordingValidator):
    """Records trips, raising on the first one when built with fail=True."""

    def __init__(self, *args, fail: bool = False, **kwargs):
        super().__init__(*args, **kwargs)
        self.fail = fail

    async def validate_trip(self, trip, route, stop_times, stops, locations, location_groups):
        if self.fail:
            raise RuntimeError("boom")
        await super().validate_trip(trip, route, stop_times, stops, locations, location_groups)


class BrokenStorageValidator(FeedValidator):
    async def validate(self) -> None:
        raise StorageError("disk full")


@pytest.fixture
async def sample_feed(insert_rows) -> None:
    """Two routes, four stops and four trips; R2, S1 and T4 are unused."""
    await insert_rows("routes", [{"route_id": "R1"}, {"route_id": "R2"}])
    await insert_rows(
        "stops",
        [{"stop_id": "A"}, {"stop_id": "B"}, {"stop_id": "C"}, {"stop_id": "S1"}],
    )
    await insert_rows(
        "trips",
        [
            {"trip_id": "T1", "route_id": "R1", "shape_id": "SH1"},
            {"trip_id": "T2", "route_id": "R1", "shape_id": "SH1"},
            {"trip_id": "T3", "route_id": "R1"},
            {"trip_id": "T4", "route_id": "R1"},
        ],
    )
    rows = []
    for trip_id, stop_ids in (("T1", "ABC"), ("T2", "ABC"), ("T3", "ACB"), ("ORPHAN", "AB")):
        for i, stop_id in enumerate(stop_ids):
            rows.append({"trip_id": trip_id, "stop_sequence": i + 1, "stop_id": stop_id})
    await insert_rows("stop_times", rows)


class TestValidateFeed:
    """End-to-end tests for validate_feed with the default validators."""

    async def test_sample_feed(
        self, db: aiosqlite.Connection, sample_feed, stored_errors
    ) -> None:
        """Test the result summary, stored errors and assigned patterns."""
        result = await validate_feed(db)

        assert result.passed is True
        assert result.fatal_exception is None
        assert result.trips_validated == 3
        assert result.error_count == 3
        assert sum(result.priority_counts.values()) == 3
        assert result.validator_error_counts == {
            "FlexValidator": 0,
            "ReferencedTripValidator": 3,
            "PatternFinderValidator": 0,
        }
        assert result.failed_validators == []
        assert await stored_errors() == [
            ("STOP_UNUSED", "S1"),
            ("TRIP_EMPTY", None),
            ("ROUTE_UNUSED", None),
        ]
        async with db.execute("SELECT trip_id, pattern_id FROM trips ORDER BY trip_id") as cursor:
            assert [tuple(row) for row in await cursor.fetchall()] == [
                ("T1", "1"),
                ("T2", "1"),
                ("T3", "2"),
                ("T4", None),
            ]

    async def test_error_ids_continue_across_runs(
        self, db: aiosqlite.Connection, sample_feed
    ) -> None:
        """Test that a second run appends errors after the first run's IDs."""
        await validate_feed(db)
        result = await validate_feed(db)

        assert result.error_count == 3
        async with db.execute("SELECT error_id FROM errors ORDER BY error_id") as cursor:
            assert [row[0] for row in await cursor.fetchall()] == [0, 1, 2, 3, 4, 5]

    async def test_small_batches(self, db: aiosqlite.Connection, sample_feed, stored_errors) -> None:
        result = await validate_feed(db, batch_size=1, progress_interval=1)

        assert result.error_count == 3
        assert len(await stored_errors()) == 3


class TestValidationRunner:
    """Tests for ValidationRunner dispatch and failure handling."""

    async def test_only_trips_with_stop_times_are_offered(
        self, feed: Feed, storage: ErrorStorage, sample_feed
    ) -> None:
        """Test that trips without stop times and stop times without trips are skipped."""
        runner = ValidationRunner(feed, storage, [RecordingValidator])

        result = await runner.run()

        [recorder] = runner.validators
        assert recorder.trip_ids == ["T1", "T2", "T3"]
        assert recorder.stop_ids == [["A", "B", "C"], ["A", "B", "C"], ["A", "C", "B"]]
        assert recorder.completed is True
        assert result.trips_validated == 3

    async def test_failing_validator_is_recorded(
        self, feed: Feed, storage: ErrorStorage, sample_feed, stored_errors
    ) -> None:
        """Test that a failure is stored as VALIDATOR_FAILED and the others still run."""
        runner = ValidationRunner(
            feed, storage, [ExplodingValidator, ReferencedTripValidator, RecordingValidator]
        )

        result = await runner.run()

        exploding, _, recorder = runner.validators
        assert exploding.calls == 1
        assert recorder.trip_ids == ["T1", "T2", "T3"]
        assert result.passed is False
        assert result.fatal_exception is None
        assert result.failed_validators == ["ExplodingValidator"]
        assert result.validator_error_counts["ExplodingValidator"] == 1
        errors = await stored_errors()
        assert errors[0] == ("VALIDATOR_FAILED", "ExplodingValidator: boom")
        assert ("STOP_UNUSED", "S1") in errors

    async def test_storage_failure_aborts_run(
        self, feed: Feed, storage: ErrorStorage, sample_feed
    ) -> None:
        """Test that a storage failure ends the run and is reported as fatal."""
        runner = ValidationRunner(feed, storage, [BrokenStorageValidator, RecordingValidator])

        result = await runner.run()

        recorder = runner.validators[1]
        assert result.passed is False
        assert result.fatal_exception == "disk full"
        assert recorder.trip_ids == []

    async def test_feed_validators_run_before_trip_pass(
        self, feed: Feed, storage: ErrorStorage, sample_feed
    ) -> None:
        order: list[str] = []

        class FirstValidator(FeedValidator):
            async def validate(self) -> None:
                order.append("feed")

        class SecondValidator(RecordingValidator):
            async def complete(self, validation_result: ValidationResult) -> None:
                order.append("complete")

        await ValidationRunner(feed, storage, [SecondValidator, FirstValidator]).run()

        assert order == ["feed", "complete"]

    async def test_failure_is_tracked_per_instance(
        self, feed: Feed, storage: ErrorStorage, sample_feed
    ) -> None:
        """Test that a failing instance does not stop another instance of the same class."""
        runner = ValidationRunner(
            feed,
            storage,
            [
                lambda feed, storage: SometimesFailingValidator(feed, storage, fail=True),
                lambda feed, storage: SometimesFailingValidator(feed, storage),
            ],
        )

        result = await runner.run()

        failing, healthy = runner.validators
        assert failing.completed is False
        assert healthy.trip_ids == ["T1", "T2", "T3"]
        assert healthy.completed is True
        assert result.failed_validators == ["SometimesFailingValidator"]
        assert result.validator_error_counts == {"SometimesFailingValidator": 1}
