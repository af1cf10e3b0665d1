"""Human-readable pattern names, unique within a route.

A pattern is named after its first and last halts. When several patterns on
a route share both termini, a distinguishing via halt is added; failing
that, a pair of patterns is told apart as express/local, and as a last
resort the name points at the pattern's representative trip. Every name
ends up prefixed with the halt count and suffixed with the trip count:

    "3 stops from Berri to Lionel-Groulx via McGill (12 trips)"
"""

import logging
from collections import defaultdict
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING

from gtfs_audit.models.gtfs import Location, LocationGroup, Stop
from gtfs_audit.patterns.key import Halt, HaltKind

if TYPE_CHECKING:
    from gtfs_audit.patterns.finder import InferredPattern

logger = logging.getLogger(__name__)


def halt_name(
    halt: Halt,
    stops: Mapping[str, Stop],
    locations: Mapping[str, Location],
    location_groups: Mapping[str, LocationGroup],
) -> str:
    """Display name of a halt, falling back to its ID when the entity has no name."""
    if halt.kind is HaltKind.STOP:
        stop = stops.get(halt.halt_id)
        if stop is not None and stop.stop_name:
            return stop.stop_name
    elif halt.kind is HaltKind.LOCATION:
        location = locations.get(halt.halt_id)
        if location is not None and location.stop_name:
            return location.stop_name
    else:
        group = location_groups.get(halt.halt_id)
        if group is not None and group.location_group_name:
            return group.location_group_name
    return halt.halt_id


def name_patterns(
    patterns: Sequence["InferredPattern"],
    stops: Mapping[str, Stop],
    locations: Mapping[str, Location],
    location_groups: Mapping[str, LocationGroup],
) -> None:
    """Assign a name to each pattern in place.

    Uniqueness is only required within a route, so each route is named separately.
    """
    logger.info(f"Generating unique names for {len(patterns)} patterns")
    by_route: dict[str | None, list["InferredPattern"]] = defaultdict(list)
    for pattern in patterns:
        if pattern.key.halts and pattern.trip_ids:
            by_route[pattern.key.route_id].append(pattern)

    for route_patterns in by_route.values():
        _name_route_patterns(route_patterns, stops, locations, location_groups)


def _name_route_patterns(
    patterns: list["InferredPattern"],
    stops: Mapping[str, Stop],
    locations: Mapping[str, Location],
    location_groups: Mapping[str, LocationGroup],
) -> None:
    halt_names = [
        [halt_name(halt, stops, locations, location_groups) for halt in pattern.key.halts]
        for pattern in patterns
    ]

    from_index: dict[str, set[int]] = defaultdict(set)
    to_index: dict[str, set[int]] = defaultdict(set)
    via_index: dict[str, set[int]] = defaultdict(set)
    for i, names in enumerate(halt_names):
        from_name, to_name = names[0], names[-1]
        from_index[from_name].add(i)
        to_index[to_name].add(i)
        for name in names:
            if name not in (from_name, to_name):
                via_index[name].add(i)

    for i, pattern in enumerate(patterns):
        names = halt_names[i]
        from_name, to_name = names[0], names[-1]
        termini = f"from {from_name} to {to_name}"
        same_termini = from_index[from_name] & to_index[to_name]

        name = None
        if len(same_termini) == 1:
            name = termini
        else:
            for via in names:
                if same_termini & via_index.get(via, set()) == {i}:
                    name = f"{termini} via {via}"
                    break

        if name is None and len(same_termini) == 2:
            # One pattern skips halts of the other.
            other = patterns[next(j for j in same_termini if j != i)]
            if len(pattern.key.halts) < len(other.key.halts):
                name = f"{termini} express"
            elif len(pattern.key.halts) > len(other.key.halts):
                name = f"{termini} local"

        if name is None:
            name = f"{termini} like trip {pattern.representative_trip_id}"

        pattern.pattern.name = (
            f"{len(pattern.key.halts)} stops {name} ({len(pattern.trip_ids)} trips)"
        )
