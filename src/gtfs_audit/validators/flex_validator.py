"""GTFS-Flex field constraints.

Flex checks only run on feeds that define at least one booking rule, location
group, location group stop or location. Each rule is a plain function
returning the errors it finds, so rules can be checked in isolation; the
validator applies all of them and stores the results.
"""

import logging
from collections.abc import Iterable, Sized

from gtfs_audit.errors.types import ErrorType
from gtfs_audit.errors.validation_error import ValidationError
from gtfs_audit.models.gtfs import (
    BookingRule,
    FareRule,
    Location,
    LocationGroup,
    Route,
    StopTime,
    Trip,
)
from gtfs_audit.validators.base import FeedValidator

logger = logging.getLogger(__name__)

# booking_rules.booking_type values
REAL_TIME_BOOKING = 0
SAME_DAY_BOOKING = 1
PRIOR_DAYS_BOOKING = 2

# pickup/drop_off_type values forbidden with a pickup/drop-off window
FORBIDDEN_WINDOW_PICKUP_TYPES = (0, 3)
FORBIDDEN_WINDOW_DROP_OFF_TYPES = (0,)


def is_flex_feed(
    booking_rules: Sized,
    location_groups: Sized,
    location_group_stops: Sized,
    locations: Sized,
) -> bool:
    """True if any of the flex tables has a row."""
    return any(len(table) > 0 for table in (booking_rules, location_groups, location_group_stops, locations))


def _error(entity, error_type: ErrorType, bad_value: object = None) -> ValidationError:
    return ValidationError.for_entity(entity, error_type, None if bad_value is None else str(bad_value))


# Stop times


def check_arrival_time(stop_time: StopTime) -> list[ValidationError]:
    if stop_time.arrival_time is not None and stop_time.has_pickup_drop_off_window:
        return [_error(stop_time, ErrorType.FLEX_FORBIDDEN_ARRIVAL_TIME, stop_time.arrival_time)]
    return []


def check_departure_time(stop_time: StopTime) -> list[ValidationError]:
    if stop_time.departure_time is not None and stop_time.has_pickup_drop_off_window:
        return [_error(stop_time, ErrorType.FLEX_FORBIDDEN_DEPARTURE_TIME, stop_time.departure_time)]
    return []


def check_halt_fields(stop_time: StopTime) -> list[ValidationError]:
    """Exactly one of stop_id, location_group_id and location_id must be set.

    At most one error is reported: a stop ID next to any flex halt is reported
    first, then a location group ID next to a location ID.
    """
    if stop_time.stop_id is None and not stop_time.has_flex_halt:
        return [_error(stop_time, ErrorType.FLEX_REQUIRED_STOP_ID)]
    if stop_time.stop_id is not None and stop_time.has_flex_halt:
        return [_error(stop_time, ErrorType.FLEX_FORBIDDEN_STOP_ID, stop_time.stop_id)]
    if stop_time.location_group_id is not None and stop_time.location_id is not None:
        return [
            _error(
                stop_time, ErrorType.FLEX_FORBIDDEN_LOCATION_GROUP_ID, stop_time.location_group_id
            )
        ]
    return []


def check_pickup_drop_off_windows(stop_time: StopTime) -> list[ValidationError]:
    errors = []
    start = stop_time.start_pickup_drop_off_window
    end = stop_time.end_pickup_drop_off_window
    has_scheduled_time = stop_time.arrival_time is not None or stop_time.departure_time is not None

    if start is None and (stop_time.has_flex_halt or end is not None):
        errors.append(_error(stop_time, ErrorType.FLEX_REQUIRED_START_PICKUP_DROP_OFF_WINDOW))
    if end is None and (stop_time.has_flex_halt or start is not None):
        errors.append(_error(stop_time, ErrorType.FLEX_REQUIRED_END_PICKUP_DROP_OFF_WINDOW))
    if start is not None and has_scheduled_time:
        errors.append(_error(stop_time, ErrorType.FLEX_FORBIDDEN_START_PICKUP_DROP_OFF_WINDOW, start))
    if end is not None and has_scheduled_time:
        errors.append(_error(stop_time, ErrorType.FLEX_FORBIDDEN_END_PICKUP_DROP_OFF_WINDOW, end))
    return errors


def check_pickup_drop_off_types(stop_time: StopTime) -> list[ValidationError]:
    if not stop_time.has_pickup_drop_off_window:
        return []
    errors = []
    if stop_time.pickup_type in FORBIDDEN_WINDOW_PICKUP_TYPES:
        errors.append(_error(stop_time, ErrorType.FLEX_FORBIDDEN_PICKUP_TYPE, stop_time.pickup_type))
    if stop_time.drop_off_type in FORBIDDEN_WINDOW_DROP_OFF_TYPES:
        errors.append(
            _error(stop_time, ErrorType.FLEX_FORBIDDEN_DROP_OFF_TYPE, stop_time.drop_off_type)
        )
    return errors


def check_continuous_pickup_drop_off(stop_time: StopTime) -> list[ValidationError]:
    """Continuous pickup and drop-off are both forbidden on stop times with a window.

    Both errors fire on the window alone, whether or not the fields are set.
    """
    if not stop_time.has_pickup_drop_off_window:
        return []
    return [
        _error(stop_time, ErrorType.FLEX_FORBIDDEN_CONTINUOUS_PICKUP, stop_time.continuous_pickup),
        _error(
            stop_time, ErrorType.FLEX_FORBIDDEN_CONTINUOUS_DROP_OFF, stop_time.continuous_drop_off
        ),
    ]


STOP_TIME_CHECKS = (
    check_arrival_time,
    check_departure_time,
    check_halt_fields,
    check_pickup_drop_off_windows,
    check_pickup_drop_off_types,
    check_continuous_pickup_drop_off,
)


def validate_stop_time(stop_time: StopTime) -> list[ValidationError]:
    """Apply every stop time rule."""
    errors = []
    for check in STOP_TIME_CHECKS:
        errors.extend(check(stop_time))
    return errors


# Booking rules


def validate_booking_rule(rule: BookingRule) -> list[ValidationError]:
    errors = []
    booking_type = rule.booking_type
    if booking_type == SAME_DAY_BOOKING and rule.prior_notice_duration_min is None:
        errors.append(_error(rule, ErrorType.FLEX_REQUIRED_PRIOR_NOTICE_DURATION_MIN))
    if booking_type != SAME_DAY_BOOKING and rule.prior_notice_duration_min is not None:
        errors.append(
            _error(
                rule, ErrorType.FLEX_FORBIDDEN_PRIOR_NOTICE_DURATION_MIN, rule.prior_notice_duration_min
            )
        )
    if (
        booking_type in (REAL_TIME_BOOKING, PRIOR_DAYS_BOOKING)
        and rule.prior_notice_duration_max is not None
    ):
        errors.append(
            _error(
                rule, ErrorType.FLEX_FORBIDDEN_PRIOR_NOTICE_DURATION_MAX, rule.prior_notice_duration_max
            )
        )
    if booking_type == PRIOR_DAYS_BOOKING and rule.prior_notice_last_day is None:
        errors.append(_error(rule, ErrorType.FLEX_REQUIRED_PRIOR_NOTICE_LAST_DAY))
    if booking_type != PRIOR_DAYS_BOOKING and rule.prior_notice_last_day is not None:
        errors.append(
            _error(rule, ErrorType.FLEX_FORBIDDEN_PRIOR_NOTICE_LAST_DAY, rule.prior_notice_last_day)
        )
    if booking_type == REAL_TIME_BOOKING and rule.prior_notice_start_day is not None:
        errors.append(
            _error(
                rule,
                ErrorType.FLEX_FORBIDDEN_PRIOR_NOTICE_START_DAY_FOR_BOOKING_TYPE,
                rule.prior_notice_start_day,
            )
        )
    if (
        booking_type == SAME_DAY_BOOKING
        and rule.prior_notice_start_day is not None
        and rule.prior_notice_duration_max is not None
    ):
        errors.append(
            _error(rule, ErrorType.FLEX_FORBIDDEN_PRIOR_NOTICE_START_DAY, rule.prior_notice_start_day)
        )
    if rule.prior_notice_start_day is not None and rule.prior_notice_start_time is None:
        errors.append(_error(rule, ErrorType.FLEX_REQUIRED_PRIOR_NOTICE_START_TIME))
    if rule.prior_notice_start_time is not None and rule.prior_notice_start_day is None:
        errors.append(
            _error(rule, ErrorType.FLEX_FORBIDDEN_PRIOR_START_TIME, rule.prior_notice_start_time)
        )
    service_id = rule.prior_notice_service_id
    if booking_type != PRIOR_DAYS_BOOKING and service_id is not None and service_id.strip():
        errors.append(_error(rule, ErrorType.FLEX_FORBIDDEN_PRIOR_NOTICE_SERVICE_ID, service_id))
    return errors


# Routes, trips, locations


def validate_route(route: Route, has_pickup_drop_off_window: bool) -> list[ValidationError]:
    """Check a route's continuous pickup/drop-off against its trips' windows.

    Args:
        route: The route.
        has_pickup_drop_off_window: True if any trip on the route has a stop time
            with a pickup/drop-off window.
    """
    if not has_pickup_drop_off_window:
        return []
    errors = []
    if route.continuous_drop_off is not None:
        errors.append(
            _error(route, ErrorType.FLEX_FORBIDDEN_ROUTE_CONTINUOUS_DROP_OFF, route.continuous_drop_off)
        )
    if route.continuous_pickup is not None:
        errors.append(
            _error(route, ErrorType.FLEX_FORBIDDEN_ROUTE_CONTINUOUS_PICKUP, route.continuous_pickup)
        )
    return errors


def has_flex_location(trip: Trip, stop_times: Iterable[StopTime]) -> bool:
    """True if any of the trip's stop times visits a location or location group."""
    for stop_time in stop_times:
        if stop_time.trip_id == trip.trip_id and stop_time.has_flex_halt:
            return True
    return False


def validate_trip(trip: Trip, stop_times: Iterable[StopTime]) -> list[ValidationError]:
    """Flag trips whose speed cannot be validated because they visit flex halts."""
    if has_flex_location(trip, stop_times):
        return [_error(trip, ErrorType.TRIP_SPEED_NOT_VALIDATED, trip.trip_id)]
    return []


def validate_location_group(
    location_group: LocationGroup, stop_ids: set[str], location_ids: set[str]
) -> list[ValidationError]:
    group_id = location_group.location_group_id
    if group_id in stop_ids or group_id in location_ids:
        return [_error(location_group, ErrorType.FLEX_FORBIDDEN_DUPLICATE_LOCATION_GROUP_ID, group_id)]
    return []


def has_fare_rule_for_zone(fare_rules: Iterable[FareRule], zone_id: str) -> bool:
    """True if a fare rule names the zone as its contains, destination or origin ID."""
    for fare_rule in fare_rules:
        if zone_id in (fare_rule.contains_id, fare_rule.destination_id, fare_rule.origin_id):
            return True
    return False


def validate_location(
    location: Location,
    stop_ids: set[str],
    location_group_ids: set[str],
    fare_rules: list[FareRule],
) -> list[ValidationError]:
    errors = []
    location_id = location.location_id
    if location_id in stop_ids or location_id in location_group_ids:
        errors.append(_error(location, ErrorType.FLEX_FORBIDDEN_DUPLICATE_LOCATION_ID, location_id))
    zone_id = location.zone_id
    if zone_id is not None and fare_rules and not has_fare_rule_for_zone(fare_rules, zone_id):
        errors.append(_error(location, ErrorType.FLEX_MISSING_FARE_RULE, zone_id))
    return errors


class FlexValidator(FeedValidator):
    """Applies the GTFS-Flex rules to stop times, trips, routes, booking rules and locations."""

    async def validate(self) -> None:
        booking_rules = await self.feed.booking_rules.all()
        location_groups = await self.feed.location_groups.all()
        location_group_stops = await self.feed.location_group_stops.all()
        locations = await self.feed.locations.all()
        if not is_flex_feed(booking_rules, location_groups, location_group_stops, locations):
            logger.info("Feed has no flex tables, skipping flex validation")
            return

        trips_with_window: set[str] = set()
        trips_with_flex_halt: set[str] = set()
        async for stop_time in self.feed.stop_times:
            await self.store_errors(validate_stop_time(stop_time))
            if stop_time.has_pickup_drop_off_window:
                trips_with_window.add(stop_time.trip_id)
            if stop_time.has_flex_halt:
                trips_with_flex_halt.add(stop_time.trip_id)

        routes_with_window: set[str] = set()
        async for trip in self.feed.trips:
            if trip.trip_id in trips_with_flex_halt:
                await self.register_error(trip, ErrorType.TRIP_SPEED_NOT_VALIDATED, trip.trip_id)
            if trip.trip_id in trips_with_window:
                routes_with_window.add(trip.route_id)

        async for route in self.feed.routes:
            await self.store_errors(validate_route(route, route.route_id in routes_with_window))

        for rule in booking_rules:
            await self.store_errors(validate_booking_rule(rule))

        stop_ids = {stop.stop_id async for stop in self.feed.stops}
        location_ids = {location.location_id for location in locations}
        location_group_ids = {group.location_group_id for group in location_groups}
        fare_rules = await self.feed.fare_rules.all()
        for group in location_groups:
            await self.store_errors(validate_location_group(group, stop_ids, location_ids))
        for location in locations:
            await self.store_errors(
                validate_location(location, stop_ids, location_group_ids, fare_rules)
            )
        logger.info(f"{self.name} found {self.error_count:,} errors")
