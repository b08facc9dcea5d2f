"""Convert a GTFS feed into an unmapped transit schedule and default vehicles.

For the services picked by a sample day:

- every GTFS route becomes a transit line
- trips of a route that share shape, stop sequence *and* offsets become one
  transit route; each trip (or each frequency-based run) is a departure
- served stops become stop facilities, projected to the output CRS (kept
  as lon/lat when pyproj does not know it)
- one default vehicle per departure, typed by transport mode
- each transit route remembers the ``shape_id`` of its trips
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
import pandas as pd

from scripts.schedule_conversion.coordinates import (
    GTFS_CRS,
    UnresolvableCoordinateSystemError,
    transform_points,
)
from scripts.schedule_conversion.gtfs_feed import GtfsFeed
from scripts.schedule_conversion.sample_day import SampleDay
from scripts.schedule_conversion.transit_schedule import (
    Departure,
    RouteStop,
    StopFacility,
    TransitLine,
    TransitRoute,
    TransitRouteShapeReference,
    TransitSchedule,
    Vehicle,
    Vehicles,
    VehicleType,
)
from scripts.utils.gtfs_helpers import format_seconds, parse_gtfs_time

# =============================================================================
# CONFIGURATION
# =============================================================================

ROUTE_TYPE_MODES: dict[int, str] = {
    0: "tram",
    1: "subway",
    2: "rail",
    3: "bus",
    4: "ferry",
    5: "cablecar",
    6: "gondola",
    7: "funicular",
    11: "trolleybus",
    12: "monorail",
}

# Extended route types, keyed by their hundreds block (e.g. 700-799 → bus)
EXTENDED_ROUTE_TYPE_MODES: dict[int, str] = {
    100: "rail",
    200: "bus",
    300: "rail",
    400: "subway",
    500: "subway",
    600: "subway",
    700: "bus",
    800: "trolleybus",
    900: "tram",
    1000: "ferry",
    1100: "air",
    1200: "ferry",
    1300: "gondola",
    1400: "funicular",
    1500: "taxi",
    1700: "other",
}

UNKNOWN_MODE = "other"

# seats, standing room, length [m], width [m], access/egress [s/person], PCE
DEFAULT_VEHICLE_TYPES: dict[str, dict] = {
    "bus": dict(seats=38, standing_room=52, length=18.0, width=2.5,
                access_time=0.5, egress_time=0.5, pce=2.8, network_mode="car"),
    "trolleybus": dict(seats=38, standing_room=52, length=18.0, width=2.5,
                       access_time=0.5, egress_time=0.5, pce=2.8, network_mode="car"),
    "tram": dict(seats=80, standing_room=100, length=36.0, width=2.4,
                 access_time=0.25, egress_time=0.25, pce=5.2, network_mode="tram"),
    "rail": dict(seats=400, standing_room=0, length=200.0, width=2.8,
                 access_time=0.25, egress_time=0.25, pce=27.1, network_mode="rail"),
    "subway": dict(seats=200, standing_room=300, length=120.0, width=3.0,
                   access_time=0.1, egress_time=0.1, pce=16.5, network_mode="subway"),
    "monorail": dict(seats=100, standing_room=150, length=60.0, width=2.8,
                     access_time=0.2, egress_time=0.2, pce=8.5, network_mode="monorail"),
    "ferry": dict(seats=250, standing_room=0, length=50.0, width=6.0,
                  access_time=0.5, egress_time=0.5, pce=7.1, network_mode="ferry"),
    "cablecar": dict(seats=30, standing_room=30, length=8.0, width=2.5,
                     access_time=1.0, egress_time=1.0, pce=1.5, network_mode="cablecar"),
    "gondola": dict(seats=8, standing_room=0, length=3.0, width=2.0,
                    access_time=2.0, egress_time=2.0, pce=0.5, network_mode="gondola"),
    "funicular": dict(seats=50, standing_room=100, length=25.0, width=2.8,
                      access_time=0.5, egress_time=0.5, pce=3.5, network_mode="funicular"),
    "air": dict(seats=150, standing_room=0, length=40.0, width=4.0,
                access_time=2.0, egress_time=2.0, pce=5.6, network_mode="air"),
    "taxi": dict(seats=4, standing_room=0, length=5.0, width=2.0,
                 access_time=2.0, egress_time=2.0, pce=1.0, network_mode="car"),
    UNKNOWN_MODE: dict(seats=38, standing_room=52, length=18.0, width=2.5,
                       access_time=0.5, egress_time=0.5, pce=2.8, network_mode="car"),
}

LOGGER = logging.getLogger(__name__)

# =============================================================================
# HELPERS
# =============================================================================


def route_type_to_mode(route_type) -> str:
    """Map a basic or extended GTFS ``route_type`` to a transport mode."""
    try:
        code = int(str(route_type).strip())
    except ValueError:
        LOGGER.warning("Unknown route_type '%s'; using mode '%s'.", route_type, UNKNOWN_MODE)
        return UNKNOWN_MODE
    if code in ROUTE_TYPE_MODES:
        return ROUTE_TYPE_MODES[code]
    mode = EXTENDED_ROUTE_TYPE_MODES.get((code // 100) * 100)
    if mode is None:
        LOGGER.warning("Unknown route_type '%s'; using mode '%s'.", route_type, UNKNOWN_MODE)
        return UNKNOWN_MODE
    return mode


def _text(value) -> Optional[str]:
    """Return a stripped string, or None for blanks and NaN."""
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return None
    text = str(value).strip()
    return text or None


def prepare_stop_times(stop_times: pd.DataFrame) -> pd.DataFrame:
    """Sort stop times and fill ``arrival``/``departure`` seconds.

    A missing arrival takes the departure (and vice versa); stops with
    neither are interpolated linearly along the trip. Trips whose first or
    last stop has no time are dropped.
    """
    st = stop_times.copy()
    st["stop_sequence"] = st["stop_sequence"].astype(int)
    st = st.sort_values(["trip_id", "stop_sequence"], kind="stable")

    arrival = pd.to_numeric(st["arrival_time"].map(parse_gtfs_time), errors="coerce")
    departure = pd.to_numeric(st["departure_time"].map(parse_gtfs_time), errors="coerce")
    st["arrival"] = arrival.fillna(departure)
    st["departure"] = departure.fillna(arrival)

    if st["arrival"].isna().any():
        for col in ("arrival", "departure"):
            st[col] = st.groupby("trip_id")[col].transform(
                lambda s: s.interpolate(limit_area="inside")
            )
        invalid = st.loc[st["arrival"].isna(), "trip_id"].unique()
        if len(invalid):
            LOGGER.warning(
                "Dropped %d trip(s) without times at their first or last stop.", len(invalid)
            )
            st = st[~st["trip_id"].isin(invalid)].copy()

    st["arrival"] = st["arrival"].round().astype(int)
    st["departure"] = st["departure"].round().astype(int)
    return st


def _route_profile(trip_stop_times: pd.DataFrame) -> tuple[int, tuple[RouteStop, ...]]:
    """Return the first departure and the offset profile of one trip."""
    start = int(trip_stop_times["departure"].iloc[0])
    last = len(trip_stop_times) - 1
    stops = tuple(
        RouteStop(
            stop_id=str(row.stop_id),
            arrival_offset=None if i == 0 else int(row.arrival) - start,
            departure_offset=None if i == last else int(row.departure) - start,
        )
        for i, row in enumerate(trip_stop_times.itertuples(index=False))
    )
    return start, stops


def _frequency_departures(frequencies: Optional[pd.DataFrame]) -> dict[str, list[int]]:
    """Expand ``frequencies.txt`` into departure times per trip_id."""
    runs: dict[str, list[int]] = {}
    if frequencies is None or frequencies.empty:
        return runs
    for row in frequencies.itertuples(index=False):
        start = parse_gtfs_time(row.start_time)
        end = parse_gtfs_time(row.end_time)
        headway = int(float(row.headway_secs))
        if start is None or end is None or headway <= 0:
            raise ValueError(f"Invalid frequencies.txt row for trip '{row.trip_id}'.")
        runs.setdefault(str(row.trip_id), []).extend(range(start, end, headway))
    return runs


@dataclass
class ConversionResult:
    schedule: TransitSchedule
    vehicles: Vehicles
    shape_reference: TransitRouteShapeReference


# =============================================================================
# CONVERTER
# =============================================================================


class GtfsConverter:
    """Reads a GTFS folder and converts it for a given sample day.

    Args:
        gtfs_folder: Folder with the unzipped GTFS text files.
        output_coordinate_system: Target CRS; ``"WGS84"`` for no transformation.
    """

    def __init__(self, gtfs_folder: str, output_coordinate_system: str):
        self.gtfs_folder = gtfs_folder
        self.output_coordinate_system = output_coordinate_system
        self.feed = GtfsFeed.from_folder(gtfs_folder)

    def convert(self, sample_day: SampleDay) -> ConversionResult:
        LOGGER.info("Converting GTFS feed '%s' for sample day '%s'.", self.gtfs_folder, sample_day)
        service_ids = self.feed.service_ids_for(sample_day)

        trips = self.feed.trips[self.feed.trips["service_id"].isin(service_ids)]
        stop_times = self.feed.tables["stop_times"]
        stop_times = prepare_stop_times(stop_times[stop_times["trip_id"].isin(trips["trip_id"])])

        schedule = TransitSchedule(coordinate_system=self.output_coordinate_system)
        shape_reference = TransitRouteShapeReference()
        self._create_lines(schedule, shape_reference, trips, stop_times)
        self._create_stop_facilities(schedule)
        self._create_minimal_transfer_times(schedule)
        vehicles = create_default_vehicles(schedule)

        LOGGER.info(
            "Created %d transit lines, %d transit routes and %d departures.",
            len(schedule.lines),
            sum(1 for _ in schedule.iter_routes()),
            schedule.departure_count(),
        )
        return ConversionResult(schedule, vehicles, shape_reference)

    # -------------------------------------------------------------------------

    def _create_lines(
        self,
        schedule: TransitSchedule,
        shape_reference: TransitRouteShapeReference,
        trips: pd.DataFrame,
        stop_times: pd.DataFrame,
    ) -> None:
        routes = self.feed.tables["routes"].drop_duplicates("route_id")
        routes = routes.set_index("route_id", drop=False)
        frequency_runs = _frequency_departures(self.feed.table("frequencies"))
        st_by_trip = dict(tuple(stop_times.groupby("trip_id", sort=False)))

        # (line_id, shape_id, profile) -> route_id
        profiles: dict[tuple[str, Optional[str], tuple[RouteStop, ...]], str] = {}
        line_modes: dict[str, str] = {}

        for trip in trips.itertuples(index=False):
            trip_id = str(trip.trip_id)
            trip_st = st_by_trip.get(trip_id)
            if trip_st is None or len(trip_st) < 2:
                LOGGER.warning("Trip %s has fewer than 2 stop times; skipped.", trip_id)
                continue

            line_id = str(trip.route_id)
            if line_id not in routes.index:
                raise ValueError(f"Trip '{trip_id}' references unknown route '{line_id}'.")
            line = schedule.lines.get(line_id)
            if line is None:
                gtfs_route = routes.loc[line_id]
                name = _text(gtfs_route.get("route_short_name")) or _text(
                    gtfs_route.get("route_long_name")
                )
                line = TransitLine(line_id=line_id, name=name)
                schedule.lines[line_id] = line
                line_modes[line_id] = route_type_to_mode(gtfs_route["route_type"])
            mode = line_modes[line_id]

            start, stops = _route_profile(trip_st)
            shape_id = _text(getattr(trip, "shape_id", None))
            key = (line_id, shape_id, stops)
            route_id = profiles.get(key)
            if route_id is None:
                route_id = trip_id
                profiles[key] = route_id
                line.routes[route_id] = TransitRoute(
                    route_id=route_id,
                    transport_mode=mode,
                    stops=stops,
                    description=_text(getattr(trip, "trip_headsign", None)),
                )
                shape_reference.set_shape_id(line_id, route_id, shape_id)
            route = line.routes[route_id]

            if trip_id in frequency_runs:
                for t in frequency_runs[trip_id]:
                    route.departures.append(Departure(f"{trip_id}_{format_seconds(t)}", t))
            else:
                route.departures.append(Departure(trip_id, start))

        for _, route in schedule.iter_routes():
            route.departures.sort(key=lambda d: d.departure_time)

    def _create_stop_facilities(self, schedule: TransitSchedule) -> None:
        used: list[str] = []
        seen: set[str] = set()
        for _, route in schedule.iter_routes():
            for stop in route.stops:
                if stop.stop_id not in seen:
                    seen.add(stop.stop_id)
                    used.append(stop.stop_id)
        if not used:
            LOGGER.warning("No stops served on the selected sample day.")
            return

        stops = self.feed.tables["stops"].copy()
        stops["stop_id"] = stops["stop_id"].astype(str)
        stops = stops.drop_duplicates("stop_id").set_index("stop_id", drop=False)
        unknown = [sid for sid in used if sid not in stops.index]
        if unknown:
            raise ValueError(f"stop_times.txt references unknown stop(s): {', '.join(unknown)}")

        served = stops.loc[used]
        lon = served["stop_lon"].astype(float).to_numpy()
        lat = served["stop_lat"].astype(float).to_numpy()
        try:
            x, y = transform_points(lon, lat, self.output_coordinate_system)
        except UnresolvableCoordinateSystemError:
            LOGGER.warning(
                "Coordinate system '%s' not recognized by pyproj; stop coordinates kept "
                "in %s.",
                self.output_coordinate_system,
                GTFS_CRS,
            )
            x, y = lon, lat
        names = served["stop_name"] if "stop_name" in served.columns else [None] * len(served)
        for stop_id, name, sx, sy in zip(served["stop_id"], names, x, y, strict=True):
            schedule.facilities[stop_id] = StopFacility(
                stop_id=stop_id, x=float(sx), y=float(sy), name=_text(name)
            )

    def _create_minimal_transfer_times(self, schedule: TransitSchedule) -> None:
        transfers = self.feed.table("transfers")
        if transfers is None or "min_transfer_time" not in transfers.columns:
            return
        for row in transfers.itertuples(index=False):
            from_stop, to_stop = _text(row.from_stop_id), _text(row.to_stop_id)
            min_time = _text(row.min_transfer_time)
            if _text(row.transfer_type) != "2" or min_time is None:
                continue
            if from_stop in schedule.facilities and to_stop in schedule.facilities:
                schedule.minimal_transfer_times[(from_stop, to_stop)] = int(float(min_time))


def create_default_vehicles(schedule: TransitSchedule) -> Vehicles:
    """Create one vehicle per departure and link the departure to it."""
    vehicles = Vehicles()
    counter = 0
    for _, route in schedule.iter_routes():
        mode = route.transport_mode
        if mode not in vehicles.types:
            params = DEFAULT_VEHICLE_TYPES.get(mode, DEFAULT_VEHICLE_TYPES[UNKNOWN_MODE])
            vehicles.types[mode] = VehicleType(type_id=mode, **params)
        for departure in route.departures:
            counter += 1
            vehicle_id = f"veh_{counter}_{mode}"
            vehicles.vehicles[vehicle_id] = Vehicle(vehicle_id, mode)
            departure.vehicle_id = vehicle_id
    LOGGER.info("Created %d default vehicles.", len(vehicles.vehicles))
    return vehicles
