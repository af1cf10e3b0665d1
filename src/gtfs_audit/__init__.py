"""Validation and pattern inference for GTFS and GTFS-Flex feeds."""

__version__ = "0.1.0"
