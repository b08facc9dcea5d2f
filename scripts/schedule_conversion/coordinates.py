"""Coordinate reference system lookup and point projection."""

from __future__ import annotations

import logging

import geopandas as gpd
import numpy as np
from pyproj import CRS
from pyproj.exceptions import CRSError

# =============================================================================
# CONFIGURATION
# =============================================================================

GTFS_CRS = "EPSG:4326"  # Standard CRS for GTFS (WGS 84)
NO_TRANSFORMATION = "WGS84"  # Output CRS literal that keeps feed lon/lat

LOGGER = logging.getLogger(__name__)


class UnresolvableCoordinateSystemError(ValueError):
    """The identifier is not a coordinate system pyproj knows."""


def resolve_crs(identifier: str) -> CRS:
    """Look up a coordinate system by authority code (``EPSG:2056``) or name.

    Raises:
        UnresolvableCoordinateSystemError: pyproj cannot resolve *identifier*.
    """
    try:
        return CRS.from_user_input(identifier)
    except CRSError as err:
        raise UnresolvableCoordinateSystemError(
            f"Coordinate system '{identifier}' not recognized: {err}"
        ) from err


def is_no_transformation(identifier: str) -> bool:
    return identifier in (NO_TRANSFORMATION, GTFS_CRS)


def transform_points(
    lon: np.ndarray, lat: np.ndarray, output_crs: str
) -> tuple[np.ndarray, np.ndarray]:
    """Project WGS 84 lon/lat arrays to *output_crs*.

    Returns:
        ``(x, y)`` arrays in the output system; the inputs unchanged when
        *output_crs* means no transformation.

    Raises:
        UnresolvableCoordinateSystemError: *output_crs* cannot be resolved.
    """
    lon = np.asarray(lon, dtype=float)
    lat = np.asarray(lat, dtype=float)
    if is_no_transformation(output_crs):
        return lon, lat

    target = resolve_crs(output_crs)
    points = gpd.GeoSeries(gpd.points_from_xy(lon, lat), crs=GTFS_CRS).to_crs(target)
    LOGGER.info("Projected %d stop coordinates to %s.", len(points), output_crs)
    return points.x.to_numpy(), points.y.to_numpy()
