"""Validators and the runner that drives them."""

from gtfs_audit.validators.base import FeedValidator, TripValidator, ValidationResult, Validator
from gtfs_audit.validators.flex_validator import FlexValidator, is_flex_feed
from gtfs_audit.validators.pattern_finder_validator import PatternFinderValidator
from gtfs_audit.validators.referenced_trip_validator import ReferencedTripValidator
from gtfs_audit.validators.runner import DEFAULT_VALIDATORS, ValidationRunner, validate_feed

__all__ = [
    # Framework
    "Validator",
    "FeedValidator",
    "TripValidator",
    "ValidationResult",
    "ValidationRunner",
    "validate_feed",
    "DEFAULT_VALIDATORS",
    # Validators
    "FlexValidator",
    "ReferencedTripValidator",
    "PatternFinderValidator",
    "is_flex_feed",
]
