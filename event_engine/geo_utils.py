"""Geodesy helpers shared by the area index and proximity index."""

import math
from typing import Tuple

import numpy as np

from .constants import EARTH_RADIUS_M, METERS_PER_DEG_LAT


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate the great-circle distance between two points on Earth.

    Args:
        lat1, lon1: Latitude and longitude of point 1 (degrees)
        lat2, lon2: Latitude and longitude of point 2 (degrees)

    Returns:
        Distance in meters
    """
    lat1, lon1, lat2, lon2 = map(math.radians, [lat1, lon1, lat2, lon2])

    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    c = 2 * math.asin(min(1.0, math.sqrt(a)))

    return EARTH_RADIUS_M * c


def meters_per_deg_lon(lat: float) -> float:
    """Length of one degree of longitude at ``lat``, floored near the poles."""
    return METERS_PER_DEG_LAT * max(math.cos(math.radians(lat)), 0.01)


def local_projector(lat0: float, lon0: float):
    """
    Build an equirectangular projection centred on (lat0, lon0).

    Returns a function mapping arrays of (lon, lat) degrees to (x, y) meters,
    usable with ``shapely.transform``. Accurate to well under 1% over the
    few-kilometre scales used for docking distances.
    """
    kx = meters_per_deg_lon(lat0)
    ky = METERS_PER_DEG_LAT

    def project(coords: np.ndarray) -> np.ndarray:
        out = np.empty_like(coords, dtype=float)
        dlon = (coords[:, 0] - lon0 + 180.0) % 360.0 - 180.0
        out[:, 0] = dlon * kx
        out[:, 1] = (coords[:, 1] - lat0) * ky
        return out

    return project


def degree_box(lat: float, lon: float, radius_m: float) -> Tuple[float, float, float, float]:
    """(min_lon, min_lat, max_lon, max_lat) box enclosing a radius around a point."""
    dlat = radius_m / METERS_PER_DEG_LAT
    dlon = radius_m / meters_per_deg_lon(lat)
    return lon - dlon, lat - dlat, lon + dlon, lat + dlat
