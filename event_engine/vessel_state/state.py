"""
Per-vessel mutable state.

A ``VesselState`` is owned by exactly one shard and mutated only on that
shard's thread, so it carries no locks.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any, List

from ..data_structures import EventKind


class DockState(Enum):
    """Docking track states."""
    OUTSIDE = "outside"
    CANDIDATE = "candidate"
    DOCKED = "docked"
    UNDOCKING = "undocking"


@dataclass
class VesselState:
    """Vessel state carried forward report by report."""
    mmsi: int
    last_seen: datetime
    lat: float = 0.0
    lon: float = 0.0
    sog: float = 0.0
    cog: float = 0.0
    report_count: int = 0

    # Docking track
    dock_state: DockState = DockState.OUTSIDE
    area_id: Optional[str] = None
    dwell_start: Optional[datetime] = None
    dock_excursion_start: Optional[datetime] = None
    docked_at: Optional[datetime] = None  # When the Docking event was emitted
    dock_end: Optional[datetime] = None  # Open docking interval end, extends while docked
    undock_start: Optional[datetime] = None

    # Idle run
    idle_start: Optional[datetime] = None
    idle_excursion_start: Optional[datetime] = None
    idle_end: Optional[datetime] = None
    idle_speed_sum: float = 0.0
    idle_speed_count: int = 0
    idle_emitted: bool = False

    # Dedup bookkeeping
    last_event_keys: Dict[EventKind, str] = field(default_factory=dict)

    @property
    def idle_mean_speed(self) -> float:
        if self.idle_speed_count == 0:
            return 0.0
        return self.idle_speed_sum / self.idle_speed_count

    def reset_dock_track(self):
        self.dock_state = DockState.OUTSIDE
        self.area_id = None
        self.dwell_start = None
        self.dock_excursion_start = None
        self.docked_at = None
        self.dock_end = None
        self.undock_start = None

    def reset_idle_run(self):
        self.idle_start = None
        self.idle_excursion_start = None
        self.idle_end = None
        self.idle_speed_sum = 0.0
        self.idle_speed_count = 0
        self.idle_emitted = False

    def open_intervals(self) -> List[Dict[str, Any]]:
        """Currently open Docking and Idle intervals that have been emitted."""
        intervals = []
        if self.dock_state in (DockState.DOCKED, DockState.UNDOCKING):
            intervals.append({
                'kind': EventKind.DOCKING.value,
                'mmsi': self.mmsi,
                'area_id': self.area_id,
                'start': self.dwell_start.isoformat(),
                'end': self.dock_end.isoformat(),
                'key': self.last_event_keys.get(EventKind.DOCKING),
            })
        if self.idle_emitted:
            intervals.append({
                'kind': EventKind.IDLE.value,
                'mmsi': self.mmsi,
                'start': self.idle_start.isoformat(),
                'end': self.idle_end.isoformat(),
                'key': self.last_event_keys.get(EventKind.IDLE),
            })
        return intervals

    def snapshot(self) -> Dict[str, Any]:
        """Point-in-time copy of the state for the reporting collaborator."""
        return {
            'mmsi': self.mmsi,
            'last_seen': self.last_seen.isoformat(),
            'lat': self.lat,
            'lon': self.lon,
            'sog': self.sog,
            'cog': self.cog,
            'report_count': self.report_count,
            'dock_state': self.dock_state.value,
            'area_id': self.area_id,
            'dwell_start': self.dwell_start.isoformat() if self.dwell_start else None,
            'undock_start': self.undock_start.isoformat() if self.undock_start else None,
            'idle_start': self.idle_start.isoformat() if self.idle_start else None,
            'idle': self.idle_start is not None and self.idle_excursion_start is None,
            'open_intervals': self.open_intervals(),
        }
