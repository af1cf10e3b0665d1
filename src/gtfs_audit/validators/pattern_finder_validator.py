"""Trip validator that infers patterns while the trip pass runs.

It does not check for bad data: it uses the shared trip pass to group trips
into patterns, then persists the patterns once the pass is complete.
"""

import logging

from gtfs_audit.data.feed import Feed
from gtfs_audit.errors.storage import ErrorStorage
from gtfs_audit.models.gtfs import Location, LocationGroup, Route, Stop, StopTime, Trip
from gtfs_audit.patterns.builder import PatternBuilder
from gtfs_audit.patterns.finder import PROGRESS_INTERVAL, PatternFinder
from gtfs_audit.validators.base import TripValidator, ValidationResult

logger = logging.getLogger(__name__)


class PatternFinderValidator(TripValidator):
    """Accumulates trips into a PatternFinder and stores the resulting patterns."""

    def __init__(
        self, feed: Feed, storage: ErrorStorage, progress_interval: int = PROGRESS_INTERVAL
    ):
        super().__init__(feed, storage)
        self.pattern_finder = PatternFinder(progress_interval=progress_interval)
        self.pattern_builder = PatternBuilder(feed)

    async def validate_trip(
        self,
        trip: Trip,
        route: Route | None,
        stop_times: list[StopTime],
        stops: list[Stop],
        locations: list[Location],
        location_groups: list[LocationGroup],
    ) -> None:
        self.pattern_finder.process_trip(trip, stop_times)

    async def complete(self, validation_result: ValidationResult) -> None:
        """Resolve and store patterns, then set pattern_id on every trip."""
        logger.info("Finding patterns...")
        errors_before = self.storage.count
        patterns = await self.pattern_finder.create_patterns(
            stops=await self.feed.stops.by_id(),
            locations=await self.feed.locations.by_id(),
            location_groups=await self.feed.location_groups.by_id(),
            patterns_from_feed=await self.feed.patterns.all(),
            storage=self.storage,
        )
        self.error_count += self.storage.count - errors_before
        await self.pattern_builder.create(patterns)
