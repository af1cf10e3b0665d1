"""Pydantic models for GTFS and GTFS-Flex entities.

Optional fields use ``None`` for "missing", which keeps an omitted value
distinct from an explicit zero. Times are seconds after midnight.
"""

from typing import ClassVar

from pydantic import AliasChoices, BaseModel, Field


class Entity(BaseModel):
    """Base for all records read from (or written to) a feed table."""

    table_name: ClassVar[str] = ""
    id_field: ClassVar[str | None] = None

    # Source line in the feed file; -1 for records that were never in a file.
    line_number: int = Field(default=-1, validation_alias=AliasChoices("csv_line", "line_number"))

    @property
    def entity_id(self) -> str | None:
        if self.id_field is None:
            return None
        return getattr(self, self.id_field)

    @property
    def sequence_number(self) -> int | None:
        return None


class Route(Entity):
    """GTFS route entity."""

    table_name: ClassVar[str] = "routes"
    id_field: ClassVar[str | None] = "route_id"

    route_id: str
    agency_id: str | None = None
    route_short_name: str | None = None
    route_long_name: str | None = None
    route_type: int | None = None
    route_color: str | None = None
    route_text_color: str | None = None
    continuous_pickup: int | None = None
    continuous_drop_off: int | None = None


class Stop(Entity):
    """GTFS stop entity."""

    table_name: ClassVar[str] = "stops"
    id_field: ClassVar[str | None] = "stop_id"

    stop_id: str
    stop_code: str | None = None
    stop_name: str | None = None
    stop_lat: float | None = None
    stop_lon: float | None = None
    zone_id: str | None = None
    location_type: int | None = None  # 0=stop, 1=station, 2=entrance
    parent_station: str | None = None
    wheelchair_boarding: int | None = None


class Trip(Entity):
    """GTFS trip entity."""

    table_name: ClassVar[str] = "trips"
    id_field: ClassVar[str | None] = "trip_id"

    trip_id: str
    route_id: str
    service_id: str | None = None
    trip_headsign: str | None = None
    direction_id: int | None = None
    block_id: str | None = None
    shape_id: str | None = None
    wheelchair_accessible: int | None = None
    pattern_id: str | None = None


class StopTime(Entity):
    """GTFS stop_times entity, including the flex fields.

    Exactly one of ``stop_id``, ``location_group_id`` and ``location_id``
    should be set; the flex validator reports rows where that does not hold.
    """

    table_name: ClassVar[str] = "stop_times"
    id_field: ClassVar[str | None] = "trip_id"

    trip_id: str
    stop_sequence: int
    arrival_time: int | None = None
    departure_time: int | None = None
    stop_id: str | None = None
    location_group_id: str | None = None
    location_id: str | None = None
    stop_headsign: str | None = None
    pickup_type: int | None = None
    drop_off_type: int | None = None
    continuous_pickup: int | None = None
    continuous_drop_off: int | None = None
    shape_dist_traveled: float | None = None
    timepoint: int | None = None
    pickup_booking_rule_id: str | None = None
    drop_off_booking_rule_id: str | None = None
    start_pickup_drop_off_window: int | None = None
    end_pickup_drop_off_window: int | None = None

    @property
    def sequence_number(self) -> int | None:
        return self.stop_sequence

    @property
    def has_pickup_drop_off_window(self) -> bool:
        return (
            self.start_pickup_drop_off_window is not None
            or self.end_pickup_drop_off_window is not None
        )

    @property
    def has_flex_halt(self) -> bool:
        """True if this stop time visits a location or a location group."""
        return self.location_group_id is not None or self.location_id is not None


class Location(Entity):
    """GTFS-Flex location (a zone from locations.geojson)."""

    table_name: ClassVar[str] = "locations"
    id_field: ClassVar[str | None] = "location_id"

    location_id: str
    stop_name: str | None = None
    stop_desc: str | None = None
    zone_id: str | None = None
    stop_url: str | None = None


class LocationGroup(Entity):
    """GTFS-Flex location group."""

    table_name: ClassVar[str] = "location_groups"
    id_field: ClassVar[str | None] = "location_group_id"

    location_group_id: str
    location_group_name: str | None = None


class LocationGroupStop(Entity):
    """Membership of a stop in a location group."""

    table_name: ClassVar[str] = "location_group_stops"
    id_field: ClassVar[str | None] = "location_group_id"

    location_group_id: str
    stop_id: str | None = None


class BookingRule(Entity):
    """GTFS-Flex booking rule."""

    table_name: ClassVar[str] = "booking_rules"
    id_field: ClassVar[str | None] = "booking_rule_id"

    booking_rule_id: str
    booking_type: int | None = None  # 0=real time, 1=same day, 2=prior day(s)
    prior_notice_duration_min: int | None = None
    prior_notice_duration_max: int | None = None
    prior_notice_last_day: int | None = None
    prior_notice_last_time: str | None = None
    prior_notice_start_day: int | None = None
    prior_notice_start_time: str | None = None
    prior_notice_service_id: str | None = None
    message: str | None = None
    pickup_message: str | None = None
    drop_off_message: str | None = None
    phone_number: str | None = None
    info_url: str | None = None
    booking_url: str | None = None


class FareRule(Entity):
    """GTFS fare_rules entity."""

    table_name: ClassVar[str] = "fare_rules"
    id_field: ClassVar[str | None] = "fare_id"

    fare_id: str
    route_id: str | None = None
    origin_id: str | None = None
    destination_id: str | None = None
    contains_id: str | None = None


class Pattern(Entity):
    """A unique sequence of halts on a route, shared by one or more trips."""

    table_name: ClassVar[str] = "patterns"
    id_field: ClassVar[str | None] = "pattern_id"

    pattern_id: str
    route_id: str | None = None
    name: str | None = None
    direction_id: int | None = None
    shape_id: str | None = None


class PatternHalt(Entity):
    """Fields shared by every kind of pattern halt."""

    id_field: ClassVar[str | None] = "pattern_id"

    pattern_id: str
    stop_sequence: int
    pickup_type: int | None = None
    drop_off_type: int | None = None
    timepoint: int | None = None
    continuous_pickup: int | None = None
    continuous_drop_off: int | None = None
    pickup_booking_rule_id: str | None = None
    drop_off_booking_rule_id: str | None = None

    @property
    def sequence_number(self) -> int | None:
        return self.stop_sequence


class PatternStop(PatternHalt):
    """A pattern halt at a fixed stop."""

    table_name: ClassVar[str] = "pattern_stops"

    stop_id: str
    stop_headsign: str | None = None
    default_travel_time: int | None = None
    default_dwell_time: int | None = None
    shape_dist_traveled: float | None = None


class PatternLocation(PatternHalt):
    """A pattern halt inside a flex location."""

    table_name: ClassVar[str] = "pattern_locations"

    location_id: str
    flex_default_travel_time: int | None = None
    flex_default_zone_time: int | None = None


class PatternLocationGroup(PatternHalt):
    """A pattern halt at a flex location group."""

    table_name: ClassVar[str] = "pattern_location_groups"

    location_group_id: str
    flex_default_travel_time: int | None = None
    flex_default_zone_time: int | None = None
