"""Find the distinct halt sequences ("patterns") that trips follow.

Trips are accumulated one by one during the shared trip pass, then resolved
into patterns once every trip has been seen. Resolution does not depend on
the order in which trips were processed: buckets are resolved in order of
their representative (lexicographically first) trip ID.
"""

import logging
from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field

from gtfs_audit.errors.storage import ErrorStorage
from gtfs_audit.errors.types import ErrorType
from gtfs_audit.errors.validation_error import ValidationError
from gtfs_audit.models.gtfs import Location, LocationGroup, Pattern, Stop, StopTime, Trip
from gtfs_audit.patterns.key import Halt, TripPatternKey
from gtfs_audit.patterns.naming import name_patterns

logger = logging.getLogger(__name__)

PROGRESS_INTERVAL = 100_000


@dataclass
class _Bucket:
    """Trips sharing one key, plus the halts of the representative trip."""

    trips: list[Trip] = field(default_factory=list)
    representative: Trip | None = None
    halt_stop_times: list[StopTime] = field(default_factory=list)

    def add(self, trip: Trip, halt_stop_times: list[StopTime]) -> None:
        self.trips.append(trip)
        if self.representative is None or trip.trip_id < self.representative.trip_id:
            self.representative = trip
            self.halt_stop_times = halt_stop_times


@dataclass
class InferredPattern:
    """A pattern resolved from a bucket of trips, ready to be persisted."""

    key: TripPatternKey
    pattern: Pattern
    trip_ids: list[str]
    # Stop times of the representative trip, aligned with key.halts.
    halt_stop_times: list[StopTime]
    # Distinct shape IDs referenced by the trips; None when a trip has no shape.
    shape_ids: set[str | None]
    reused: bool = False

    @property
    def pattern_id(self) -> str:
        return self.pattern.pattern_id

    @property
    def representative_trip_id(self) -> str:
        return self.trip_ids[0]


def format_shape_ids(shape_ids: Iterable[str | None]) -> str:
    """Render shape IDs as a sorted list, missing shapes shown as null."""
    return "[" + ", ".join(sorted("null" if s is None else s for s in shape_ids)) + "]"


def representative_shape(trips: Sequence[Trip]) -> str | None:
    """Most frequent non-null shape ID; ties go to the one seen first."""
    counts = Counter(trip.shape_id for trip in trips if trip.shape_id is not None)
    if not counts:
        return None
    return counts.most_common(1)[0][0]


class PatternFinder:
    """Groups trips by their TripPatternKey and turns each group into a pattern.

    Usage:
        finder = PatternFinder()
        for trip, stop_times in ...:
            finder.process_trip(trip, stop_times)
        patterns = await finder.create_patterns(stops, locations, groups, feed_patterns, storage)
    """

    def __init__(self, progress_interval: int = PROGRESS_INTERVAL):
        self._buckets: dict[TripPatternKey, _Bucket] = {}
        self._progress_interval = progress_interval
        self.trips_processed = 0

    @property
    def key_count(self) -> int:
        return len(self._buckets)

    def process_trip(self, trip: Trip, ordered_stop_times: Iterable[StopTime]) -> TripPatternKey | None:
        """Add a trip to the bucket for its key.

        Stop times that name no halt are left out of the key. Returns the key,
        or None if the trip has no halts at all and was ignored.
        """
        self.trips_processed += 1
        if self.trips_processed % self._progress_interval == 0:
            logger.info(f"Processed {self.trips_processed:,} trips")

        halt_stop_times = [st for st in ordered_stop_times if Halt.from_stop_time(st) is not None]
        key = TripPatternKey.from_stop_times(trip.route_id, halt_stop_times)
        if not key.halts:
            logger.debug(f"Trip {trip.trip_id} has no halts, not assigned to a pattern")
            return None
        self._buckets.setdefault(key, _Bucket()).add(trip, halt_stop_times)
        return key

    async def create_patterns(
        self,
        stops: Mapping[str, Stop],
        locations: Mapping[str, Location],
        location_groups: Mapping[str, LocationGroup],
        patterns_from_feed: Iterable[Pattern] = (),
        storage: ErrorStorage | None = None,
    ) -> list[InferredPattern]:
        """Resolve every bucket into a pattern.

        A bucket keeps an existing pattern from the feed only when all of its trips
        already reference that same pattern ID. Other buckets get sequential IDs
        "1", "2", ... that skip the reused IDs, and a generated name.

        Args:
            stops: Stops by ID, used for naming.
            locations: Locations by ID, used for naming.
            location_groups: Location groups by ID, used for naming.
            patterns_from_feed: Rows of the feed's patterns table.
            storage: Where MULTIPLE_SHAPES_FOR_PATTERN errors go. Errors are not
                recorded when None.

        Returns:
            Patterns in order of representative trip ID.
        """
        feed_patterns: dict[str, Pattern] = {}
        for feed_pattern in patterns_from_feed:
            feed_patterns.setdefault(feed_pattern.pattern_id, feed_pattern)

        buckets = sorted(
            self._buckets.items(),
            key=lambda item: item[1].representative.trip_id,  # type: ignore[union-attr]
        )

        # First decide which buckets reuse a pattern, so new IDs can skip them.
        reused_ids: dict[TripPatternKey, str] = {}
        claimed: set[str] = set()
        for key, bucket in buckets:
            existing_ids = {trip.pattern_id for trip in bucket.trips}
            if len(existing_ids) != 1:
                continue
            existing_id = existing_ids.pop()
            if existing_id is not None and existing_id in feed_patterns and existing_id not in claimed:
                reused_ids[key] = existing_id
                claimed.add(existing_id)

        next_id = 1
        patterns: list[InferredPattern] = []
        new_patterns: list[InferredPattern] = []
        for key, bucket in buckets:
            trips = sorted(bucket.trips, key=lambda trip: trip.trip_id)
            representative = bucket.representative
            shape_id = representative_shape(trips)

            if key in reused_ids:
                pattern = feed_patterns[reused_ids[key]].model_copy()
                reused = True
            else:
                while str(next_id) in claimed:
                    next_id += 1
                pattern = Pattern(
                    pattern_id=str(next_id),
                    route_id=key.route_id,
                    direction_id=representative.direction_id if representative else None,
                    shape_id=shape_id,
                )
                next_id += 1
                reused = False

            inferred = InferredPattern(
                key=key,
                pattern=pattern,
                trip_ids=[trip.trip_id for trip in trips],
                halt_stop_times=bucket.halt_stop_times,
                shape_ids={trip.shape_id for trip in trips},
                reused=reused,
            )
            patterns.append(inferred)
            if not reused:
                new_patterns.append(inferred)

            if len(inferred.shape_ids) > 1 and storage is not None:
                await storage.store(
                    ValidationError.for_entity(
                        pattern,
                        ErrorType.MULTIPLE_SHAPES_FOR_PATTERN,
                        format_shape_ids(inferred.shape_ids),
                    )
                )

        name_patterns(new_patterns, stops, locations, location_groups)
        logger.info(
            f"Total patterns: {len(patterns)} ({len(reused_ids)} reused from feed, "
            f"{len(new_patterns)} new)"
        )
        return patterns
