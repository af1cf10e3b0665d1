"""Keys used to group trips that share a sequence of halts."""

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from gtfs_audit.models.gtfs import StopTime


class HaltKind(str, Enum):
    """What a halt refers to. Part of a halt's identity."""

    STOP = "stop"
    LOCATION_GROUP = "location_group"
    LOCATION = "location"

    @property
    def is_flex(self) -> bool:
        return self is not HaltKind.STOP


@dataclass(frozen=True)
class Halt:
    """One position in a trip pattern."""

    kind: HaltKind
    halt_id: str
    has_start_window: bool = False
    has_end_window: bool = False

    @classmethod
    def from_stop_time(cls, stop_time: StopTime) -> "Halt | None":
        """Build the halt a stop time visits, or None if it names no stop, group or location.

        stop_id takes precedence over location_group_id, which takes precedence over location_id.
        """
        if stop_time.stop_id is not None:
            kind, halt_id = HaltKind.STOP, stop_time.stop_id
        elif stop_time.location_group_id is not None:
            kind, halt_id = HaltKind.LOCATION_GROUP, stop_time.location_group_id
        elif stop_time.location_id is not None:
            kind, halt_id = HaltKind.LOCATION, stop_time.location_id
        else:
            return None
        return cls(
            kind=kind,
            halt_id=halt_id,
            has_start_window=stop_time.start_pickup_drop_off_window is not None,
            has_end_window=stop_time.end_pickup_drop_off_window is not None,
        )


@dataclass(frozen=True)
class TripPatternKey:
    """Route ID plus the ordered halts of a trip.

    Two trips belong to the same pattern exactly when their keys are equal.
    The same sequence on two routes gives two keys.
    """

    route_id: str | None
    halts: tuple[Halt, ...]

    @classmethod
    def from_stop_times(
        cls, route_id: str | None, ordered_stop_times: Iterable[StopTime]
    ) -> "TripPatternKey":
        halts = []
        for stop_time in ordered_stop_times:
            halt = Halt.from_stop_time(stop_time)
            if halt is not None:
                halts.append(halt)
        return cls(route_id=route_id, halts=tuple(halts))

    def __len__(self) -> int:
        return len(self.halts)
