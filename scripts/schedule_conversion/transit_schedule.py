"""In-memory unmapped transit schedule, vehicle fleet and shape reference.

"Unmapped" means stop facilities are not referenced to network links and
transit routes hold stop sequences only, no link paths.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import pandas as pd

# =============================================================================
# SCHEDULE
# =============================================================================


@dataclass
class StopFacility:
    """A stop location in the output coordinate system."""

    stop_id: str
    x: float
    y: float
    name: Optional[str] = None
    is_blocking: bool = False


@dataclass(frozen=True)
class RouteStop:
    """One entry of a route profile; offsets are seconds from the first departure."""

    stop_id: str
    arrival_offset: Optional[int]
    departure_offset: Optional[int]
    await_departure: bool = True


@dataclass
class Departure:
    departure_id: str
    departure_time: int
    vehicle_id: Optional[str] = None


@dataclass
class TransitRoute:
    """A stop sequence with fixed offsets and the departures that run it."""

    route_id: str
    transport_mode: str
    stops: tuple[RouteStop, ...]
    departures: list[Departure] = field(default_factory=list)
    description: Optional[str] = None


@dataclass
class TransitLine:
    line_id: str
    name: Optional[str] = None
    routes: dict[str, TransitRoute] = field(default_factory=dict)


@dataclass
class TransitSchedule:
    """Stop facilities, minimal transfer times and transit lines."""

    coordinate_system: Optional[str] = None
    facilities: dict[str, StopFacility] = field(default_factory=dict)
    lines: dict[str, TransitLine] = field(default_factory=dict)
    # (from_stop_id, to_stop_id) -> seconds
    minimal_transfer_times: dict[tuple[str, str], int] = field(default_factory=dict)

    def iter_routes(self):
        """Yield ``(line, route)`` pairs in insertion order."""
        for line in self.lines.values():
            for route in line.routes.values():
                yield line, route

    def departure_count(self) -> int:
        return sum(len(route.departures) for _, route in self.iter_routes())


# =============================================================================
# VEHICLES
# =============================================================================


@dataclass(frozen=True)
class VehicleType:
    """Default vehicle characteristics for one transport mode."""

    type_id: str
    seats: int
    standing_room: int
    length: float
    width: float
    access_time: float
    egress_time: float
    pce: float
    network_mode: str = "car"
    door_operation_mode: str = "serial"
    description: Optional[str] = None


@dataclass(frozen=True)
class Vehicle:
    vehicle_id: str
    type_id: str


@dataclass
class Vehicles:
    types: dict[str, VehicleType] = field(default_factory=dict)
    vehicles: dict[str, Vehicle] = field(default_factory=dict)


# =============================================================================
# SHAPE REFERENCE
# =============================================================================


@dataclass
class TransitRouteShapeReference:
    """Associates (line id, route id) with the GTFS ``shape_id`` the route follows."""

    shape_ids: dict[tuple[str, str], Optional[str]] = field(default_factory=dict)

    def set_shape_id(self, line_id: str, route_id: str, shape_id: Optional[str]) -> None:
        self.shape_ids[(line_id, route_id)] = shape_id

    def to_frame(self) -> pd.DataFrame:
        """Return one row per transit route, ``shapeId`` blank when unknown."""
        rows = [
            {"transitLineId": line_id, "transitRouteId": route_id, "shapeId": shape_id}
            for (line_id, route_id), shape_id in self.shape_ids.items()
        ]
        return pd.DataFrame(rows, columns=["transitLineId", "transitRouteId", "shapeId"])
