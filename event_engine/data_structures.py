"""
Core data structures for position reports, docking areas and events.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any, Tuple

from shapely.geometry import Polygon


def to_utc(ts: datetime) -> datetime:
    """Return ``ts`` as an aware UTC datetime (naive values are taken as UTC)."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


@dataclass(frozen=True)
class PositionReport:
    """A single validated AIS position report."""
    mmsi: int
    timestamp: datetime
    lat: float
    lon: float
    sog: float  # Speed Over Ground (knots)
    cog: float = 0.0  # Course Over Ground (degrees)
    heading: Optional[float] = None
    nav_status: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert report to dictionary."""
        return {
            'mmsi': self.mmsi,
            'timestamp': self.timestamp.isoformat(),
            'lat': self.lat,
            'lon': self.lon,
            'sog': self.sog,
            'cog': self.cog,
            'heading': self.heading,
            'nav_status': self.nav_status,
        }


@dataclass(frozen=True)
class DockingArea:
    """
    Named docking area polygon.

    The polygon uses shapely's x/y convention (x=longitude, y=latitude).
    ``centroid`` is (lat, lon).
    """
    area_id: str
    name: str
    polygon: Polygon = field(compare=False, repr=False)
    centroid: Tuple[float, float] = field(default=None, compare=False)

    def __post_init__(self):
        if self.centroid is None:
            c = self.polygon.centroid
            object.__setattr__(self, 'centroid', (c.y, c.x))

    def __hash__(self):
        return hash(self.area_id)

    @classmethod
    def from_latlon(cls, area_id: str, name: str, coords) -> 'DockingArea':
        """Build an area from a list of (lat, lon) vertices."""
        return cls(area_id=str(area_id), name=name,
                   polygon=Polygon([(lon, lat) for lat, lon in coords]))


class EventKind(Enum):
    """Kinds of detected maritime events."""
    DOCKING = "docking"
    UNDOCKING = "undocking"
    IDLE = "idle"
    COLLISION_RISK = "collision_risk"


class EventStatus(Enum):
    """Lifecycle of an emitted event record."""
    OPEN = "open"          # First emission
    EXTENDED = "extended"  # Same key, later interval end
    EXPIRED = "expired"    # Terminal marker written on vessel eviction


@dataclass(frozen=True)
class Event:
    """
    Immutable detected event.

    Single-vessel kinds carry one MMSI in ``vessels``; collision risk carries
    the canonical (smaller, larger) pair and ``start == end == detected_at``.
    """
    kind: EventKind
    vessels: Tuple[int, ...]
    start: datetime
    end: datetime
    status: EventStatus = EventStatus.OPEN
    area_id: Optional[str] = None
    separation_m: Optional[float] = None
    min_separation_m: Optional[float] = None
    tcpa_s: Optional[float] = None
    details: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def idempotency_key(self) -> str:
        participants = "-".join(str(m) for m in self.vessels)
        return f"{self.kind.value}|{participants}|{self.start.isoformat()}"

    @property
    def detected_at(self) -> datetime:
        return self.start if self.kind == EventKind.COLLISION_RISK else self.end

    @property
    def duration_seconds(self) -> float:
        return (self.end - self.start).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for JSON serialization."""
        record = {
            'key': self.idempotency_key,
            'kind': self.kind.value,
            'status': self.status.value,
            'vessels': list(self.vessels),
            'start': self.start.isoformat(),
            'end': self.end.isoformat(),
        }
        if self.area_id is not None:
            record['area_id'] = self.area_id
        if self.kind == EventKind.COLLISION_RISK:
            record['separation_m'] = self.separation_m
            record['min_separation_m'] = self.min_separation_m
            record['tcpa_s'] = self.tcpa_s
        if self.details:
            record['details'] = dict(self.details)
        return record
