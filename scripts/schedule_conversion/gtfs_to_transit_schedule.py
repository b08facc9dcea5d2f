"""Convert a GTFS folder into an unmapped transit schedule.

"Unmapped" means stop facilities are not referenced to links and transit
routes do not have link sequences. A default vehicles file and a CSV
referencing transit routes to GTFS shapes can be written as well.

Usage:
    python -m scripts.schedule_conversion.gtfs_to_transit_schedule \\
        GTFS_FOLDER SAMPLE_DAY OUTPUT_CRS SCHEDULE_FILE [VEHICLE_FILE [SHAPE_REF_FILE]]

Arguments:
    GTFS_FOLDER: folder with the unzipped GTFS text files (zip archives are
        not supported)
    SAMPLE_DAY: services of which sample day to use, one of
        - a date in the format yyyymmdd
        - dayWithMostTrips (default)
        - dayWithMostServices
        - all
    OUTPUT_CRS: output coordinate system, ``WGS84`` for no transformation
    SCHEDULE_FILE: output transit schedule file
    VEHICLE_FILE: output default vehicles file (optional)
    SHAPE_REF_FILE: output CSV referencing transit routes and shapes
        (optional; the output CRS must be an ``EPSG:*`` code or a name
        pyproj can resolve)
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from typing import Optional, Sequence

from scripts.schedule_conversion.coordinates import (
    UnresolvableCoordinateSystemError,
    resolve_crs,
)
from scripts.schedule_conversion.gtfs_converter import GtfsConverter
from scripts.schedule_conversion.sample_day import SampleDay, resolve_selector
from scripts.schedule_conversion.schedule_writers import (
    write_shape_reference,
    write_transit_schedule,
    write_vehicles,
)
from scripts.utils.logging_helper import quiet_loggers, setup_logging

# =============================================================================
# CONFIGURATION
# =============================================================================

MIN_ARGS = 4
MAX_ARGS = 6

LOGGER = logging.getLogger(__name__)


class ArgumentCountError(ValueError):
    """The entry point got an unsupported number of positional arguments."""


@dataclass(frozen=True)
class RunOptions:
    """Per-run settings.

    Attributes:
        quiet_loggers: Loggers of the geospatial stack filtered for the run.
        quiet_level: Minimum level those loggers let through.
    """

    quiet_loggers: tuple[str, ...] = ("pyproj", "fiona", "pyogrio")
    quiet_level: int = logging.WARNING


@dataclass(frozen=True)
class ConversionRequest:
    """A validated run: resolved sample day plus the output destinations."""

    gtfs_folder: str
    sample_day: SampleDay
    output_coordinate_system: str
    schedule_file: str
    vehicle_file: Optional[str] = None
    transit_route_shape_ref_file: Optional[str] = None


# =============================================================================
# FUNCTIONS
# =============================================================================


def _shape_reference_crs_known(output_coordinate_system: str) -> bool:
    try:
        resolve_crs(output_coordinate_system)
    except UnresolvableCoordinateSystemError:
        LOGGER.warning(
            "Code %s not recognized by pyproj. Shape reference file not written.",
            output_coordinate_system,
        )
        return False
    return True


def convert(request: ConversionRequest) -> None:
    """Convert the feed and write every requested output."""
    converter = GtfsConverter(request.gtfs_folder, request.output_coordinate_system)
    result = converter.convert(request.sample_day)

    write_transit_schedule(result.schedule, request.schedule_file)
    if request.vehicle_file is not None:
        write_vehicles(result.vehicles, request.vehicle_file)
    if request.transit_route_shape_ref_file is not None:
        if _shape_reference_crs_known(request.output_coordinate_system):
            write_shape_reference(result.shape_reference, request.transit_route_shape_ref_file)


def run(
    gtfs_folder: str,
    sample_day_param: Optional[str],
    output_coordinate_system: str,
    schedule_file: str,
    vehicle_file: Optional[str] = None,
    transit_route_shape_ref_file: Optional[str] = None,
    options: RunOptions = RunOptions(),
) -> None:
    """Read a GTFS folder and write an unmapped transit schedule.

    Args:
        gtfs_folder: Folder where the GTFS files are located.
        sample_day_param: ``yyyymmdd``, ``dayWithMostTrips`` (default, also
            used for None), ``dayWithMostServices`` or ``all``.
        output_coordinate_system: Output CRS; ``WGS84`` for no transformation.
        schedule_file: Output transit schedule file.
        vehicle_file: Output default vehicles file, None to skip.
        transit_route_shape_ref_file: Output route shape reference CSV, None
            to skip. Skipped with a warning when the output CRS cannot be
            resolved.
        options: Per-run logging settings.

    Raises:
        InvalidSelectorError: *sample_day_param* not recognized; nothing is
            read or written.
    """
    with quiet_loggers(options.quiet_loggers, options.quiet_level):
        request = ConversionRequest(
            gtfs_folder=gtfs_folder,
            sample_day=resolve_selector(sample_day_param),
            output_coordinate_system=output_coordinate_system,
            schedule_file=schedule_file,
            vehicle_file=vehicle_file,
            transit_route_shape_ref_file=transit_route_shape_ref_file,
        )
        convert(request)


# =============================================================================
# MAIN
# =============================================================================


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Dispatch 4, 5 or 6 positional arguments to :func:`run`.

    Raises:
        ArgumentCountError: Any other number of arguments.
    """
    args = list(sys.argv[1:] if argv is None else argv)
    if not MIN_ARGS <= len(args) <= MAX_ARGS:
        raise ArgumentCountError(
            f"Wrong number of input arguments: expected {MIN_ARGS} to {MAX_ARGS}, got {len(args)}."
        )
    args += [None] * (MAX_ARGS - len(args))
    run(*args)


def cli() -> None:
    """Console entry point: log fatal errors and exit non-zero."""
    setup_logging()
    try:
        main()
    except Exception:  # pylint: disable=broad-except
        LOGGER.exception("Unhandled exception")
        sys.exit(1)


if __name__ == "__main__":
    cli()
