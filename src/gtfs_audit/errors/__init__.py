"""Error catalog, validation errors and their SQL storage."""

from gtfs_audit.errors.storage import ErrorStorage, ErrorSummary, StorageError
from gtfs_audit.errors.types import ErrorType, Priority, error_types_by_priority
from gtfs_audit.errors.validation_error import EntityReference, ValidationError

__all__ = [
    # Catalog
    "ErrorType",
    "Priority",
    "error_types_by_priority",
    # Errors
    "EntityReference",
    "ValidationError",
    # Storage
    "ErrorStorage",
    "ErrorSummary",
    "StorageError",
]
