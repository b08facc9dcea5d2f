"""Writers for the converted schedule, vehicles and route shape reference.

Outputs:
    - transit schedule: MATSim ``transitSchedule_v2`` XML
    - vehicles: MATSim ``vehicleDefinitions_v2.0`` XML
    - shape reference: CSV with ``transitLineId,transitRouteId,shapeId``
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Optional

from scripts.schedule_conversion.transit_schedule import (
    RouteStop,
    TransitRouteShapeReference,
    TransitSchedule,
    Vehicles,
)
from scripts.utils.gtfs_helpers import format_seconds

# =============================================================================
# CONFIGURATION
# =============================================================================

SCHEDULE_DOCTYPE = (
    '<!DOCTYPE transitSchedule SYSTEM "http://www.matsim.org/files/dtd/transitSchedule_v2.dtd">'
)
VEHICLES_NAMESPACE = "http://www.matsim.org/files/dtd"
VEHICLES_SCHEMA = "http://www.matsim.org/files/dtd/vehicleDefinitions_v2.0.xsd"
XSI_NAMESPACE = "http://www.w3.org/2001/XMLSchema-instance"

LOGGER = logging.getLogger(__name__)

# =============================================================================
# HELPERS
# =============================================================================


def _fmt(value: float) -> str:
    """Format a number without a trailing ``.0`` for integral floats."""
    return repr(float(value)) if float(value) != int(value) else f"{int(value)}.0"


def _attribute(parent: ET.Element, name: str, java_class: str, value: str) -> None:
    attr = ET.SubElement(parent, "attribute", {"name": name, "class": java_class})
    attr.text = value


def _write_xml(root: ET.Element, out_path: Path, doctype: Optional[str] = None) -> None:
    """Serialise *root* to *out_path*, creating parent directories.

    Raises:
        IOError: If the file cannot be written.
    """
    ET.indent(root, space="\t")
    body = ET.tostring(root, encoding="unicode")
    try:
        out_path.parent.mkdir(parents=True, exist_ok=True)
        with open(out_path, "w", encoding="utf-8") as f:
            f.write('<?xml version="1.0" encoding="UTF-8"?>\n')
            if doctype:
                f.write(doctype + "\n")
            f.write(body)
            f.write("\n")
    except OSError as e:
        raise IOError(f"Could not write {out_path}: {e}") from e


def _route_stop_element(parent: ET.Element, stop: RouteStop) -> None:
    attrs = {"refId": stop.stop_id}
    if stop.arrival_offset is not None:
        attrs["arrivalOffset"] = format_seconds(stop.arrival_offset)
    if stop.departure_offset is not None:
        attrs["departureOffset"] = format_seconds(stop.departure_offset)
    attrs["awaitDeparture"] = "true" if stop.await_departure else "false"
    ET.SubElement(parent, "stop", attrs)


# =============================================================================
# WRITERS
# =============================================================================


def write_transit_schedule(schedule: TransitSchedule, out_path: Path | str) -> None:
    """Write *schedule* as a MATSim transit schedule (v2)."""
    out_path = Path(out_path)
    root = ET.Element("transitSchedule")

    if schedule.coordinate_system:
        attributes = ET.SubElement(root, "attributes")
        _attribute(
            attributes, "coordinateReferenceSystem", "java.lang.String", schedule.coordinate_system
        )

    stops_el = ET.SubElement(root, "transitStops")
    for facility in schedule.facilities.values():
        attrs = {"id": facility.stop_id, "x": _fmt(facility.x), "y": _fmt(facility.y)}
        if facility.name is not None:
            attrs["name"] = facility.name
        attrs["isBlocking"] = "true" if facility.is_blocking else "false"
        ET.SubElement(stops_el, "stopFacility", attrs)

    if schedule.minimal_transfer_times:
        mtt = ET.SubElement(root, "minimalTransferTimes")
        for (from_stop, to_stop), seconds in schedule.minimal_transfer_times.items():
            ET.SubElement(
                mtt,
                "relation",
                {"fromStop": from_stop, "toStop": to_stop, "transferTime": _fmt(seconds)},
            )

    for line in schedule.lines.values():
        line_attrs = {"id": line.line_id}
        if line.name is not None:
            line_attrs["name"] = line.name
        line_el = ET.SubElement(root, "transitLine", line_attrs)
        for route in line.routes.values():
            route_el = ET.SubElement(line_el, "transitRoute", {"id": route.route_id})
            if route.description:
                ET.SubElement(route_el, "description").text = route.description
            ET.SubElement(route_el, "transportMode").text = route.transport_mode
            profile = ET.SubElement(route_el, "routeProfile")
            for stop in route.stops:
                _route_stop_element(profile, stop)
            departures = ET.SubElement(route_el, "departures")
            for dep in route.departures:
                dep_attrs = {
                    "id": dep.departure_id,
                    "departureTime": format_seconds(dep.departure_time),
                }
                if dep.vehicle_id is not None:
                    dep_attrs["vehicleRefId"] = dep.vehicle_id
                ET.SubElement(departures, "departure", dep_attrs)

    _write_xml(root, out_path, SCHEDULE_DOCTYPE)
    LOGGER.info(
        "Wrote transit schedule with %d stops and %d lines to %s",
        len(schedule.facilities),
        len(schedule.lines),
        out_path,
    )


def write_vehicles(vehicles: Vehicles, out_path: Path | str) -> None:
    """Write *vehicles* as MATSim vehicle definitions (v2.0)."""
    out_path = Path(out_path)
    root = ET.Element(
        "vehicleDefinitions",
        {
            "xmlns": VEHICLES_NAMESPACE,
            "xmlns:xsi": XSI_NAMESPACE,
            "xsi:schemaLocation": f"{VEHICLES_NAMESPACE} {VEHICLES_SCHEMA}",
        },
    )

    for vt in vehicles.types.values():
        vt_el = ET.SubElement(root, "vehicleType", {"id": vt.type_id})
        attributes = ET.SubElement(vt_el, "attributes")
        _attribute(
            attributes, "accessTimeInSecondsPerPerson", "java.lang.Double", _fmt(vt.access_time)
        )
        _attribute(
            attributes,
            "doorOperationMode",
            "org.matsim.vehicles.VehicleType$DoorOperationMode",
            vt.door_operation_mode,
        )
        _attribute(
            attributes, "egressTimeInSecondsPerPerson", "java.lang.Double", _fmt(vt.egress_time)
        )
        if vt.description:
            ET.SubElement(vt_el, "description").text = vt.description
        ET.SubElement(
            vt_el,
            "capacity",
            {"seats": str(vt.seats), "standingRoomInPersons": str(vt.standing_room)},
        )
        ET.SubElement(vt_el, "length", {"meter": _fmt(vt.length)})
        ET.SubElement(vt_el, "width", {"meter": _fmt(vt.width)})
        ET.SubElement(vt_el, "passengerCarEquivalents", {"pce": _fmt(vt.pce)})
        ET.SubElement(vt_el, "networkMode", {"networkMode": vt.network_mode})

    for vehicle in vehicles.vehicles.values():
        ET.SubElement(root, "vehicle", {"id": vehicle.vehicle_id, "type": vehicle.type_id})

    _write_xml(root, out_path)
    LOGGER.info(
        "Wrote %d vehicles of %d types to %s",
        len(vehicles.vehicles),
        len(vehicles.types),
        out_path,
    )


def write_shape_reference(
    shape_reference: TransitRouteShapeReference, out_path: Path | str
) -> None:
    """Write the transit route → shape_id association as CSV."""
    out_path = Path(out_path)
    df = shape_reference.to_frame()
    try:
        out_path.parent.mkdir(parents=True, exist_ok=True)
        df.to_csv(out_path, index=False)
    except OSError as e:
        raise IOError(f"Could not write {out_path}: {e}") from e
    LOGGER.info("Wrote %d transit route shape references to %s", len(df), out_path)
