"""Runs a set of validators over one feed.

Feed validators run first, one after another. Trip validators then share a
single pass over every trip that has stop times, and each is completed once
the pass is over. A validator that raises is recorded as a VALIDATOR_FAILED
error and the run continues with the others; a storage failure ends the run.
"""

import logging
import time
from collections.abc import Callable, Sequence

import aiosqlite

from gtfs_audit.data.database import table_exists
from gtfs_audit.data.feed import Feed
from gtfs_audit.errors.storage import INSERT_BATCH_SIZE, ErrorStorage, StorageError
from gtfs_audit.errors.types import ErrorType
from gtfs_audit.models.gtfs import Location, LocationGroup, Stop
from gtfs_audit.validators.base import FeedValidator, TripValidator, ValidationResult, Validator
from gtfs_audit.validators.flex_validator import FlexValidator
from gtfs_audit.validators.pattern_finder_validator import PatternFinderValidator
from gtfs_audit.validators.referenced_trip_validator import ReferencedTripValidator

logger = logging.getLogger(__name__)

ValidatorFactory = Callable[[Feed, ErrorStorage], Validator]

DEFAULT_VALIDATORS: tuple[ValidatorFactory, ...] = (
    FlexValidator,
    ReferencedTripValidator,
    PatternFinderValidator,
)

PROGRESS_INTERVAL = 100_000


class ValidationRunner:
    """Runs validators against a feed, storing every finding.

    Usage:
        storage = await ErrorStorage.open(db, namespace, create_tables=False)
        runner = ValidationRunner(Feed(db, namespace), storage)
        result = await runner.run()
    """

    def __init__(
        self,
        feed: Feed,
        storage: ErrorStorage,
        validators: Sequence[ValidatorFactory] = DEFAULT_VALIDATORS,
        progress_interval: int = PROGRESS_INTERVAL,
    ):
        self.feed = feed
        self.storage = storage
        self.validators = [factory(feed, storage) for factory in validators]
        self.progress_interval = progress_interval
        # id() of each validator that raised.
        self._failed: set[int] = set()

    async def run(self) -> ValidationResult:
        """Run all validators and commit the stored errors.

        Returns:
            The run summary. If error storage failed the run is aborted and the
            summary carries the failure in ``fatal_exception``.
        """
        result = ValidationResult()
        start = time.monotonic()
        errors_before = self.storage.count
        try:
            for validator in self.validators:
                if isinstance(validator, FeedValidator):
                    await self._run_feed_validator(validator)

            trip_validators = [v for v in self.validators if isinstance(v, TripValidator)]
            if trip_validators:
                result.trips_validated = await self._run_trip_pass(trip_validators)
                for validator in trip_validators:
                    if id(validator) in self._failed:
                        logger.warning(f"Skipping completion of failed validator {validator.name}")
                        continue
                    await self._guarded(validator, validator.complete(result))

            await self.storage.finish()
        except StorageError as e:
            logger.error(f"Validation aborted, could not store errors: {e}")
            result.passed = False
            result.fatal_exception = str(e)

        result.error_count = self.storage.count - errors_before
        result.priority_counts = self.storage.priority_counts
        for validator in self.validators:
            counts = result.validator_error_counts
            counts[validator.name] = counts.get(validator.name, 0) + validator.error_count
        result.failed_validators = sorted(
            v.name for v in self.validators if id(v) in self._failed
        )
        if self._failed:
            result.passed = False
        result.validation_time_millis = int((time.monotonic() - start) * 1000)
        logger.info(
            f"Validation finished in {result.validation_time_millis:,} ms "
            f"with {result.error_count:,} errors"
        )
        return result

    async def _run_feed_validator(self, validator: FeedValidator) -> None:
        logger.info(f"Running {validator.name}")
        await self._guarded(validator, validator.validate())

    async def _run_trip_pass(self, validators: list[TripValidator]) -> int:
        """Offer every trip with stop times to each validator still running."""
        names = ", ".join(v.name for v in validators)
        logger.info(f"Running trip validators: {names}")

        routes = await self.feed.routes.by_id()
        trips = await self.feed.trips.by_id()
        stops = await self.feed.stops.by_id()
        locations = await self.feed.locations.by_id()
        location_groups = await self.feed.location_groups.by_id()

        trip_count = 0
        async for trip_id, stop_times in self.feed.stop_times_by_trip():
            trip = trips.get(trip_id)
            if trip is None:
                continue
            trip_count += 1
            if trip_count % self.progress_interval == 0:
                logger.info(f"Validated {trip_count:,} trips")

            trip_stops: list[Stop] = []
            trip_locations: list[Location] = []
            trip_location_groups: list[LocationGroup] = []
            for stop_time in stop_times:
                if stop_time.stop_id in stops:
                    trip_stops.append(stops[stop_time.stop_id])
                if stop_time.location_id in locations:
                    trip_locations.append(locations[stop_time.location_id])
                if stop_time.location_group_id in location_groups:
                    trip_location_groups.append(location_groups[stop_time.location_group_id])

            for validator in validators:
                if id(validator) in self._failed:
                    continue
                await self._guarded(
                    validator,
                    validator.validate_trip(
                        trip,
                        routes.get(trip.route_id),
                        stop_times,
                        trip_stops,
                        trip_locations,
                        trip_location_groups,
                    ),
                )
        logger.info(f"Trip pass complete, {trip_count:,} trips validated")
        return trip_count

    async def _guarded(self, validator: Validator, step) -> None:
        """Await one validator step, turning a failure into a VALIDATOR_FAILED error."""
        try:
            await step
        except StorageError:
            raise
        except Exception as e:
            logger.error(f"{validator.name} failed: {e}")
            self._failed.add(id(validator))
            await validator.register_feed_error(ErrorType.VALIDATOR_FAILED, f"{validator.name}: {e}")


async def validate_feed(
    connection: aiosqlite.Connection,
    namespace: str = "",
    validators: Sequence[ValidatorFactory] = DEFAULT_VALIDATORS,
    batch_size: int = INSERT_BATCH_SIZE,
    progress_interval: int = PROGRESS_INTERVAL,
) -> ValidationResult:
    """Validate the feed stored in ``namespace``.

    Error IDs continue from any errors already stored in the namespace. The
    error tables are created if the namespace does not have them yet.
    """
    feed = Feed(connection, namespace)
    create_tables = not await table_exists(connection, namespace, "errors")
    storage = await ErrorStorage.open(
        connection, namespace, create_tables=create_tables, batch_size=batch_size
    )
    runner = ValidationRunner(feed, storage, validators, progress_interval=progress_interval)
    return await runner.run()
