"""Validator contracts shared by every validation stage.

A validator either checks the feed as a whole (``FeedValidator``) or is
offered every trip during one shared pass and then completed once the pass
is over (``TripValidator``). Both report findings through ``register_error``;
findings are stored, never raised.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable

from pydantic import BaseModel, Field

from gtfs_audit.data.feed import Feed
from gtfs_audit.errors.storage import ErrorStorage
from gtfs_audit.errors.types import ErrorType, Priority
from gtfs_audit.errors.validation_error import ValidationError
from gtfs_audit.models.gtfs import Entity, Location, LocationGroup, Route, Stop, StopTime, Trip


class ValidationResult(BaseModel):
    """Summary of one validation run."""

    passed: bool = True
    error_count: int = 0
    priority_counts: dict[Priority, int] = Field(default_factory=dict)
    validator_error_counts: dict[str, int] = Field(default_factory=dict)
    failed_validators: list[str] = Field(default_factory=list)
    trips_validated: int = 0
    validation_time_millis: int = 0
    fatal_exception: str | None = None


def _to_bad_value(value: object) -> str | None:
    return None if value is None else str(value)


class Validator(ABC):
    """Base for all validators.

    Args:
        feed: The feed being validated.
        storage: Where findings are stored.
    """

    def __init__(self, feed: Feed, storage: ErrorStorage):
        self.feed = feed
        self.storage = storage
        self.error_count = 0

    @property
    def name(self) -> str:
        return type(self).__name__

    async def register_error(
        self, entity: Entity, error_type: ErrorType, bad_value: object = None
    ) -> None:
        """Store an error about one entity, referencing its line number, ID and sequence."""
        await self.store_error(
            ValidationError.for_entity(entity, error_type, _to_bad_value(bad_value))
        )

    async def register_feed_error(self, error_type: ErrorType, bad_value: object = None) -> None:
        """Store an error about the feed as a whole."""
        await self.store_error(ValidationError.for_feed(error_type, _to_bad_value(bad_value)))

    async def store_error(self, error: ValidationError) -> None:
        await self.storage.store(error)
        self.error_count += 1

    async def store_errors(self, errors: Iterable[ValidationError]) -> None:
        for error in errors:
            await self.store_error(error)


class FeedValidator(Validator):
    """Validator that runs once over the whole feed."""

    @abstractmethod
    async def validate(self) -> None:
        """Check the feed, registering an error for every problem found."""


class TripValidator(Validator):
    """Validator offered each trip during the shared trip pass.

    ``complete`` runs once, after every trip has been offered.
    """

    @abstractmethod
    async def validate_trip(
        self,
        trip: Trip,
        route: Route | None,
        stop_times: list[StopTime],
        stops: list[Stop],
        locations: list[Location],
        location_groups: list[LocationGroup],
    ) -> None:
        """Check one trip.

        Args:
            trip: The trip.
            route: The trip's route, or None if the route does not exist.
            stop_times: The trip's stop times ordered by stop_sequence. Never empty.
            stops: Stops visited by the trip, in stop time order.
            locations: Locations visited by the trip, in stop time order.
            location_groups: Location groups visited by the trip, in stop time order.
        """

    async def complete(self, validation_result: ValidationResult) -> None:
        """Called once after the trip pass. Does nothing by default."""
