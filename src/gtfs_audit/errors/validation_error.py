"""A single validation finding and the entities it points at."""

from pydantic import BaseModel, ConfigDict

from gtfs_audit.errors.types import ErrorType
from gtfs_audit.models.gtfs import Entity

# Line number recorded for entities that were not read from a feed file.
SYNTHETIC_LINE_NUMBER = -1


class EntityReference(BaseModel):
    """Locates one entity involved in an error."""

    model_config = ConfigDict(frozen=True)

    entity_type: str
    line_number: int = SYNTHETIC_LINE_NUMBER
    entity_id: str | None = None
    sequence_number: int | None = None

    @classmethod
    def for_entity(cls, entity: Entity) -> "EntityReference":
        return cls(
            entity_type=type(entity).__name__,
            line_number=entity.line_number,
            entity_id=entity.entity_id,
            sequence_number=entity.sequence_number,
        )


class ValidationError(BaseModel):
    """One occurrence of an error type, immutable once built.

    Feed-level errors carry no entity references.
    """

    model_config = ConfigDict(frozen=True)

    error_type: ErrorType
    referenced_entities: tuple[EntityReference, ...] = ()
    bad_value: str | None = None

    @classmethod
    def for_entity(
        cls, entity: Entity, error_type: ErrorType, bad_value: str | None = None
    ) -> "ValidationError":
        return cls(
            error_type=error_type,
            referenced_entities=(EntityReference.for_entity(entity),),
            bad_value=bad_value,
        )

    @classmethod
    def for_feed(cls, error_type: ErrorType, bad_value: str | None = None) -> "ValidationError":
        return cls(error_type=error_type, bad_value=bad_value)
