"""
CPA (Closest Point of Approach) calculation utilities.

Positions and velocities are expressed in ECEF meters so that every pair is
compared in the same Cartesian frame regardless of latitude.
"""

import logging
from typing import Tuple

import numpy as np

from ..constants import KNOTS_TO_MPS, WGS84_A, WGS84_E2

logger = logging.getLogger(__name__)


def lat_lon_to_ecef(lat: float, lon: float, alt: float = 0.0) -> np.ndarray:
    """
    Convert latitude/longitude to ECEF coordinates.

    Args:
        lat: Latitude in degrees
        lon: Longitude in degrees
        alt: Altitude in meters (default: 0 for sea level)

    Returns:
        ECEF coordinates [x, y, z] in meters
    """
    lat_rad = np.radians(lat)
    lon_rad = np.radians(lon)

    # Prime vertical radius of curvature
    N = WGS84_A / np.sqrt(1 - WGS84_E2 * np.sin(lat_rad) ** 2)

    x = (N + alt) * np.cos(lat_rad) * np.cos(lon_rad)
    y = (N + alt) * np.cos(lat_rad) * np.sin(lon_rad)
    z = (N * (1 - WGS84_E2) + alt) * np.sin(lat_rad)

    return np.array([x, y, z])


def calc_velocity_ecef(lat: float, lon: float, sog_knots: float, cog_deg: float) -> np.ndarray:
    """
    Calculate velocity vector in ECEF coordinates.

    Args:
        lat: Latitude in degrees
        lon: Longitude in degrees
        sog_knots: Speed over ground in knots
        cog_deg: Course over ground in degrees (0=North, 90=East)

    Returns:
        Velocity vector [vx, vy, vz] in m/s
    """
    speed_ms = sog_knots * KNOTS_TO_MPS

    # Navigation to math convention
    cog_rad = np.radians(90 - cog_deg)

    # Velocity in local tangent plane (East North)
    v_east = speed_ms * np.cos(cog_rad)
    v_north = speed_ms * np.sin(cog_rad)

    lat_rad = np.radians(lat)
    lon_rad = np.radians(lon)
    sin_lat = np.sin(lat_rad)
    cos_lat = np.cos(lat_rad)
    sin_lon = np.sin(lon_rad)
    cos_lon = np.cos(lon_rad)

    # ENU -> ECEF rotation (no vertical component at sea level)
    vx = -sin_lon * v_east - sin_lat * cos_lon * v_north
    vy = cos_lon * v_east - sin_lat * sin_lon * v_north
    vz = cos_lat * v_north

    return np.array([vx, vy, vz])


def closest_approach(pA: np.ndarray, vA: np.ndarray, pB: np.ndarray, vB: np.ndarray,
                     horizon_s: float) -> Tuple[float, float]:
    """
    Closest approach of two straight-line trajectories within a horizon.

    Both vessels are projected forward at constant velocity for ``horizon_s``
    seconds; the minimum separation of the two projected segments is found by
    clamping the unconstrained TCPA to [0, horizon_s].

    Args:
        pA, vA: Position (m) and velocity (m/s) of vessel A in ECEF
        pB, vB: Position (m) and velocity (m/s) of vessel B in ECEF
        horizon_s: Projection horizon in seconds

    Returns:
        Tuple of (min_separation_m, tcpa_s)
    """
    rel_p = pB - pA
    rel_v = vB - vA

    rel_v_norm_sq = float(np.dot(rel_v, rel_v))
    if rel_v_norm_sq < 1e-10:
        # Stationary relative to each other
        return float(np.linalg.norm(rel_p)), 0.0

    tcpa_s = -float(np.dot(rel_p, rel_v)) / rel_v_norm_sq
    tcpa_s = min(max(tcpa_s, 0.0), horizon_s)

    cpa_pos = rel_p + rel_v * tcpa_s
    return float(np.linalg.norm(cpa_pos)), tcpa_s
