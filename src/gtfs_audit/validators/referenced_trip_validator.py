"""Detects stops, trips, routes, locations and location groups nothing refers to."""

import logging

from gtfs_audit.errors.types import ErrorType
from gtfs_audit.models.gtfs import Location, LocationGroup, Route, Stop, StopTime, Trip
from gtfs_audit.validators.base import TripValidator, ValidationResult

logger = logging.getLogger(__name__)


class ReferencedTripValidator(TripValidator):
    """Counts references during the trip pass, then reports unreferenced entities.

    A stop used by a trip also marks its parent station as referenced, so
    stations are not reported just because trips only visit their platforms.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.referenced_stops: set[str] = set()
        self.referenced_trips: set[str] = set()
        self.referenced_routes: set[str] = set()
        self.referenced_locations: set[str] = set()
        self.referenced_location_groups: set[str] = set()

    async def validate_trip(
        self,
        trip: Trip,
        route: Route | None,
        stop_times: list[StopTime],
        stops: list[Stop],
        locations: list[Location],
        location_groups: list[LocationGroup],
    ) -> None:
        self.referenced_trips.add(trip.trip_id)
        if route is not None:
            self.referenced_routes.add(route.route_id)
        for stop in stops:
            self.referenced_stops.add(stop.stop_id)
            if stop.parent_station is not None:
                self.referenced_stops.add(stop.parent_station)
        for location in locations:
            self.referenced_locations.add(location.location_id)
        for location_group in location_groups:
            self.referenced_location_groups.add(location_group.location_group_id)

    async def complete(self, validation_result: ValidationResult) -> None:
        async for stop in self.feed.stops:
            if stop.stop_id not in self.referenced_stops:
                await self.register_error(stop, ErrorType.STOP_UNUSED, stop.stop_id)
        async for trip in self.feed.trips:
            if trip.trip_id not in self.referenced_trips:
                await self.register_error(trip, ErrorType.TRIP_EMPTY)
        async for route in self.feed.routes:
            if route.route_id not in self.referenced_routes:
                await self.register_error(route, ErrorType.ROUTE_UNUSED)

        # Stop times the trip pass never saw, such as those of a missing trip, can
        # still name flex halts. Those halts count as unused even if not in the feed.
        dangling_locations: dict[str, StopTime] = {}
        dangling_location_groups: dict[str, StopTime] = {}
        async for stop_time in self.feed.stop_times:
            location_id = stop_time.location_id
            if location_id is not None and location_id not in self.referenced_locations:
                dangling_locations.setdefault(location_id, stop_time)
            group_id = stop_time.location_group_id
            if group_id is not None and group_id not in self.referenced_location_groups:
                dangling_location_groups.setdefault(group_id, stop_time)

        locations = await self.feed.locations.by_id()
        for location_id, stop_time in dangling_locations.items():
            entity = locations.get(location_id, stop_time)
            await self.register_error(entity, ErrorType.LOCATION_UNUSED, location_id)
        for location_id, location in locations.items():
            if (
                location_id not in self.referenced_locations
                and location_id not in dangling_locations
            ):
                await self.register_error(location, ErrorType.LOCATION_UNUSED, location_id)

        location_groups = await self.feed.location_groups.by_id()
        for group_id, stop_time in dangling_location_groups.items():
            entity = location_groups.get(group_id, stop_time)
            await self.register_error(entity, ErrorType.LOCATION_GROUP_UNUSED, group_id)
        for group_id, location_group in location_groups.items():
            if (
                group_id not in self.referenced_location_groups
                and group_id not in dangling_location_groups
            ):
                await self.register_error(location_group, ErrorType.LOCATION_GROUP_UNUSED, group_id)
        logger.info(f"{self.name} found {self.error_count:,} errors")
