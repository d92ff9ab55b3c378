"""
Docking area loaders.

Two formats are accepted:

YAML::

    areas:
      - id: PORT-1
        name: Example Terminal
        polygon: [[lat, lon], [lat, lon], ...]

GeoJSON FeatureCollection of Polygon/MultiPolygon features with ``id`` (or
``area_id``) and ``name`` properties.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List

import yaml
from shapely.geometry import shape, Polygon, MultiPolygon

from ..data_structures import DockingArea

logger = logging.getLogger(__name__)


def validate_geojson(data: Dict[str, Any]) -> bool:
    """Basic GeoJSON structure validation."""
    if not isinstance(data, dict) or "type" not in data:
        return False
    if data["type"] == "FeatureCollection":
        return "features" in data and isinstance(data["features"], list)
    elif data["type"] == "Feature":
        return "geometry" in data and "properties" in data
    return False


def load_areas_yaml(filepath: str) -> List[DockingArea]:
    """Load docking areas from a YAML file."""
    with open(filepath, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f) or {}

    entries = data.get('areas', []) if isinstance(data, dict) else data
    areas = []
    for entry in entries:
        coords = entry.get('polygon') or []
        if len(coords) < 3:
            raise ValueError(f"Area {entry.get('id')} needs at least 3 vertices")
        area_id = str(entry['id'])
        areas.append(DockingArea.from_latlon(area_id, entry.get('name', area_id), coords))

    logger.info(f"Loaded {len(areas)} docking areas from {filepath}")
    return areas


def load_areas_geojson(filepath: str) -> List[DockingArea]:
    """Load docking areas from a GeoJSON Feature or FeatureCollection."""
    with open(filepath, 'r', encoding='utf-8') as f:
        data = json.load(f)

    if not validate_geojson(data):
        raise ValueError(f"Invalid GeoJSON structure in {filepath}")

    features = data['features'] if data['type'] == 'FeatureCollection' else [data]
    areas = []
    for i, feature in enumerate(features):
        geom = shape(feature['geometry'])
        if isinstance(geom, MultiPolygon):
            # Keep the main basin, small islands of the same area are noise here
            geom = max(geom.geoms, key=lambda g: g.area)
        if not isinstance(geom, Polygon):
            logger.debug(f"Skipping non-polygon feature {i} in {filepath}")
            continue
        props = feature.get('properties') or {}
        area_id = str(props.get('id', props.get('area_id', feature.get('id', i))))
        areas.append(DockingArea(area_id=area_id,
                                 name=props.get('name', area_id),
                                 polygon=geom))

    logger.info(f"Loaded {len(areas)} docking areas from {filepath}")
    return areas


def load_areas(filepath: str) -> List[DockingArea]:
    """Load docking areas, choosing the parser from the file extension."""
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Area file not found: {path}")

    suffix = path.suffix.lower()
    if suffix in ('.yaml', '.yml'):
        return load_areas_yaml(str(path))
    elif suffix in ('.json', '.geojson'):
        return load_areas_geojson(str(path))
    raise ValueError(f"Unsupported area file format: {suffix}")
