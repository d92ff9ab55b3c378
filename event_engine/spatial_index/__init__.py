"""
Spatial Area Index Module

Immutable docking-area index with atomic snapshot replacement
"""

from .area_index import AreaIndex, AreaIndexHolder
from .area_loader import load_areas, load_areas_yaml, load_areas_geojson

__all__ = ['AreaIndex', 'AreaIndexHolder', 'load_areas', 'load_areas_yaml', 'load_areas_geojson']
