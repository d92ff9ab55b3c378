"""
Proximity Module

Grid-bucketed proximity index and CPA-based collision risk estimation
"""

from .cpa_utils import (
    closest_approach,
    lat_lon_to_ecef,
    calc_velocity_ecef
)
from .proximity_index import ProximityIndex, Track
from .collision import CollisionEstimator, canonical_pair

__all__ = [
    'closest_approach',
    'lat_lon_to_ecef',
    'calc_velocity_ecef',
    'ProximityIndex',
    'Track',
    'CollisionEstimator',
    'canonical_pair'
]
