"""
Proximity Index.

Uniform lat/lon grid of the latest position of every active vessel. Cells are
sized to the proximity search radius so a neighbour query touches a 3x3 block
of cells at mid latitudes (wider in longitude towards the poles). Buckets are
guarded by striped locks so shards updating different parts of the map do not
contend; vessel density per cell is low enough that contention stays rare.
"""

import logging
import math
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np

from ..constants import METERS_PER_DEG_LAT
from ..geo_utils import haversine_m, meters_per_deg_lon
from .cpa_utils import lat_lon_to_ecef, calc_velocity_ecef

logger = logging.getLogger(__name__)

Cell = Tuple[int, int]


@dataclass(frozen=True)
class Track:
    """Latest kinematic snapshot of one vessel, with ECEF position/velocity."""
    mmsi: int
    timestamp: datetime
    lat: float
    lon: float
    sog: float
    cog: float
    position: np.ndarray
    velocity: np.ndarray

    @classmethod
    def from_kinematics(cls, mmsi: int, timestamp: datetime, lat: float, lon: float,
                        sog: float, cog: float) -> 'Track':
        return cls(mmsi=mmsi, timestamp=timestamp, lat=lat, lon=lon, sog=sog, cog=cog,
                   position=lat_lon_to_ecef(lat, lon),
                   velocity=calc_velocity_ecef(lat, lon, sog, cog or 0.0))

    def position_at(self, ts: datetime) -> np.ndarray:
        """Dead-reckoned ECEF position at ``ts``."""
        dt = (ts - self.timestamp).total_seconds()
        return self.position + self.velocity * dt


class ProximityIndex:
    """Spatially bucketed, time-decaying index of active vessel positions."""

    def __init__(self, cell_size_m: float = 1000.0, active_window_seconds: float = 600.0,
                 lock_stripes: int = 64):
        self.cell_deg = cell_size_m / METERS_PER_DEG_LAT
        self.n_lon_cells = int(math.ceil(360.0 / self.cell_deg))
        self.n_lat_cells = int(math.ceil(180.0 / self.cell_deg))
        self.active_window_seconds = active_window_seconds

        self._buckets: Dict[Cell, Dict[int, Track]] = {}
        self._cells: Dict[int, Cell] = {}
        self._stripes = [threading.Lock() for _ in range(lock_stripes)]
        self._loc_lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._cells)

    def _cell_of(self, lat: float, lon: float) -> Cell:
        row = min(int((lat + 90.0) / self.cell_deg), self.n_lat_cells - 1)
        col = int((lon + 180.0) / self.cell_deg) % self.n_lon_cells
        return row, col

    def _stripe(self, cell: Cell) -> threading.Lock:
        return self._stripes[hash(cell) % len(self._stripes)]

    def _is_active(self, track: Track, now: datetime) -> bool:
        return abs((now - track.timestamp).total_seconds()) <= self.active_window_seconds

    def update(self, track: Track):
        """Insert or move a vessel's latest track."""
        cell = self._cell_of(track.lat, track.lon)
        with self._loc_lock:
            old = self._cells.get(track.mmsi)
            self._cells[track.mmsi] = cell

        if old is not None and old != cell:
            self._discard(old, track.mmsi)
        with self._stripe(cell):
            self._buckets.setdefault(cell, {})[track.mmsi] = track

    def _discard(self, cell: Cell, mmsi: int):
        with self._stripe(cell):
            bucket = self._buckets.get(cell)
            if bucket is not None:
                bucket.pop(mmsi, None)
                if not bucket:
                    del self._buckets[cell]

    def remove(self, mmsi: int) -> bool:
        with self._loc_lock:
            cell = self._cells.pop(mmsi, None)
        if cell is None:
            return False
        self._discard(cell, mmsi)
        return True

    def get(self, mmsi: int) -> Optional[Track]:
        cell = self._cells.get(mmsi)
        if cell is None:
            return None
        with self._stripe(cell):
            return self._buckets.get(cell, {}).get(mmsi)

    def neighbors(self, lat: float, lon: float, radius_m: float, now: datetime,
                  exclude: Optional[int] = None) -> List[Track]:
        """
        Active tracks within ``radius_m`` of a point.

        Args:
            lat, lon: Query position (degrees)
            radius_m: Search radius in meters
            now: Stream time used for the recency window
            exclude: MMSI to leave out (usually the querying vessel)

        Returns:
            Tracks sorted by MMSI
        """
        row0, col0 = self._cell_of(lat, lon)
        d_rows = int(math.ceil(radius_m / (self.cell_deg * METERS_PER_DEG_LAT)))
        d_cols = int(math.ceil(radius_m / (self.cell_deg * meters_per_deg_lon(lat))))
        d_cols = min(d_cols, self.n_lon_cells // 2)

        found = []
        for row in range(max(row0 - d_rows, 0), min(row0 + d_rows, self.n_lat_cells - 1) + 1):
            for dc in range(-d_cols, d_cols + 1):
                cell = (row, (col0 + dc) % self.n_lon_cells)
                with self._stripe(cell):
                    bucket = self._buckets.get(cell)
                    candidates = list(bucket.values()) if bucket else []
                for track in candidates:
                    if track.mmsi == exclude or not self._is_active(track, now):
                        continue
                    if haversine_m(lat, lon, track.lat, track.lon) <= radius_m:
                        found.append(track)

        found.sort(key=lambda t: t.mmsi)
        return found

    def has_neighbors(self, lat: float, lon: float, radius_m: float, now: datetime,
                      exclude: Optional[int] = None) -> bool:
        return bool(self.neighbors(lat, lon, radius_m, now, exclude))

    def prune(self, now: datetime, mmsis: Optional[Iterable[int]] = None) -> List[int]:
        """
        Drop tracks that fell out of the recency window.

        Callers must own the vessels they prune (shards pass their own
        ``mmsis``), since a track is only ever written by its owning shard.

        Returns:
            MMSIs removed from the index
        """
        if mmsis is None:
            with self._loc_lock:
                mmsis = list(self._cells)

        pruned = []
        for mmsi in mmsis:
            track = self.get(mmsi)
            if track is not None and (now - track.timestamp).total_seconds() > self.active_window_seconds:
                self.remove(mmsi)
                pruned.append(mmsi)

        if pruned:
            logger.debug(f"Pruned {len(pruned)} inactive tracks from proximity index")
        return pruned
