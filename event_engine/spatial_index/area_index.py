"""
Spatial Area Index.

Immutable index over docking-area polygons. A shapely STRtree prunes candidate
polygons by bounding box before the exact point-in-polygon test, so a query
touches only the handful of areas near the point even with thousands loaded.
Reloads never edit an index in place: ``AreaIndexHolder`` builds a new
``AreaIndex`` and swaps the reference, so concurrent shard readers always see
one complete snapshot.
"""

import logging
import threading
from typing import Callable, Dict, Iterable, List, Optional, Set

import shapely
from shapely.geometry import Point, box
from shapely.strtree import STRtree

from ..data_structures import DockingArea
from ..errors import IndexUnavailable
from ..geo_utils import haversine_m, local_projector, degree_box

logger = logging.getLogger(__name__)


class AreaIndex:
    """Read-only spatial index for one snapshot of docking areas."""

    def __init__(self, areas: Iterable[DockingArea], version: int = 0):
        self.areas: List[DockingArea] = sorted(areas, key=lambda a: a.area_id)
        self.version = version
        self._by_id: Dict[str, DockingArea] = {}
        for area in self.areas:
            if area.area_id in self._by_id:
                raise ValueError(f"Duplicate docking area id: {area.area_id}")
            if area.polygon.is_empty or not area.polygon.is_valid:
                raise ValueError(f"Invalid polygon for docking area {area.area_id}")
            self._by_id[area.area_id] = area
        self._tree = STRtree([a.polygon for a in self.areas]) if self.areas else None

    def __len__(self) -> int:
        return len(self.areas)

    def get(self, area_id: str) -> Optional[DockingArea]:
        return self._by_id.get(area_id)

    def areas_containing(self, lat: float, lon: float) -> Set[DockingArea]:
        """Areas whose polygon contains the point (boundary inclusive)."""
        if self._tree is None:
            return set()
        idx = self._tree.query(Point(lon, lat), predicate='intersects')
        return {self.areas[i] for i in idx}

    def areas_within(self, lat: float, lon: float, radius_m: float) -> Set[DockingArea]:
        """Areas lying within ``radius_m`` of the point (containing areas included)."""
        if self._tree is None:
            return set()
        idx = self._tree.query(box(*degree_box(lat, lon, radius_m)))
        return {self.areas[i] for i in idx
                if self.distance_to_area(lat, lon, self.areas[i]) <= radius_m}

    def distance_to_boundary(self, lat: float, lon: float, area: DockingArea) -> float:
        """Distance in meters from the point to the area's boundary ring."""
        projected = shapely.transform(area.polygon, local_projector(lat, lon))
        return float(projected.boundary.distance(Point(0.0, 0.0)))

    def distance_to_area(self, lat: float, lon: float, area: DockingArea) -> float:
        """Distance in meters from the point to the area; 0 when inside."""
        projected = shapely.transform(area.polygon, local_projector(lat, lon))
        return float(projected.distance(Point(0.0, 0.0)))

    def distance_to_centroid(self, lat: float, lon: float, area: DockingArea) -> float:
        """Great-circle distance in meters from the point to the area centroid."""
        c_lat, c_lon = area.centroid
        return haversine_m(lat, lon, c_lat, c_lon)


class AreaIndexHolder:
    """
    Atomic reference to the current ``AreaIndex`` snapshot.

    Readers grab ``holder.current`` once per report and use that snapshot for
    the whole report. Writers build a complete new index and replace the
    reference in a single assignment.
    """

    def __init__(self, areas: Iterable[DockingArea] = (),
                 loader: Optional[Callable[[], Iterable[DockingArea]]] = None):
        self._loader = loader
        self._lock = threading.Lock()  # Serialises writers only
        self._version = 0
        self.current: AreaIndex = AreaIndex(areas, version=0)
        self.reload_failures = 0
        self.degraded = False

    def swap(self, areas: Iterable[DockingArea]) -> AreaIndex:
        """Build a new snapshot from ``areas`` and make it current."""
        with self._lock:
            index = AreaIndex(areas, version=self._version + 1)
            self._version = index.version
            self.current = index
            self.degraded = False
        logger.info(f"Docking area index v{index.version} active with {len(index)} areas")
        return index

    def _load(self) -> List[DockingArea]:
        try:
            return list(self._loader())
        except Exception as e:
            raise IndexUnavailable(f"Docking area reload failed: {e}") from e

    def reload(self, raise_on_error: bool = False) -> bool:
        """
        Reload areas through the configured loader.

        Args:
            raise_on_error: Re-raise ``IndexUnavailable`` after recording the
                failure instead of returning False

        Returns:
            True on success; False when the reload failed and the last good
            snapshot was kept.
        """
        if self._loader is None:
            return False
        try:
            areas = self._load()
            try:
                self.swap(areas)
            except ValueError as e:
                raise IndexUnavailable(f"Docking area snapshot rejected: {e}") from e
        except IndexUnavailable as e:
            self.reload_failures += 1
            self.degraded = True
            logger.warning(f"{e}; serving last good snapshot v{self.current.version} "
                           f"({len(self.current)} areas)")
            if raise_on_error:
                raise
            return False
        return True
