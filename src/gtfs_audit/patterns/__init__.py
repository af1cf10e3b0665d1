"""Pattern inference: group trips by halt sequence and persist the patterns."""

from gtfs_audit.patterns.builder import (
    PatternBuilder,
    build_pattern_halts,
    calculate_previous_departure_times,
)
from gtfs_audit.patterns.finder import InferredPattern, PatternFinder
from gtfs_audit.patterns.key import Halt, HaltKind, TripPatternKey
from gtfs_audit.patterns.naming import name_patterns

__all__ = [
    # Keys
    "Halt",
    "HaltKind",
    "TripPatternKey",
    # Finder
    "InferredPattern",
    "PatternFinder",
    "name_patterns",
    # Builder
    "PatternBuilder",
    "build_pattern_halts",
    "calculate_previous_departure_times",
]
