"""Shared builders for engine tests."""

import math
from datetime import datetime, timedelta, timezone

from event_engine.data_structures import PositionReport, DockingArea

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)
METERS_PER_DEG = 111195.0  # Spherical degree length, matches haversine_m

AREA_LAT = 10.0
AREA_LON = 20.0


def at(seconds: float) -> datetime:
    return T0 + timedelta(seconds=seconds)


def report(mmsi: int, t: float, lat: float = AREA_LAT, lon: float = AREA_LON,
           sog: float = 0.0, cog: float = 0.0) -> PositionReport:
    return PositionReport(mmsi=mmsi, timestamp=at(t), lat=lat, lon=lon, sog=sog, cog=cog)


def offset(lat: float, lon: float, north_m: float = 0.0, east_m: float = 0.0):
    """Shift a position by metric offsets on a locally flat earth."""
    return (lat + north_m / METERS_PER_DEG,
            lon + east_m / (METERS_PER_DEG * math.cos(math.radians(lat))))


def square_area(area_id: str = "AREA-1", lat: float = AREA_LAT, lon: float = AREA_LON,
                half_deg: float = 0.005) -> DockingArea:
    return DockingArea.from_latlon(area_id, f"Area {area_id}", [
        (lat - half_deg, lon - half_deg),
        (lat - half_deg, lon + half_deg),
        (lat + half_deg, lon + half_deg),
        (lat + half_deg, lon - half_deg),
    ])


def steady(mmsi: int, start: float, stop: float, step: float = 60, **kwargs):
    """Reports every ``step`` seconds in [start, stop]."""
    out = []
    t = start
    while t <= stop:
        out.append(report(mmsi, t, **kwargs))
        t += step
    return out


def of_kind(events, kind):
    return [e for e in events if e.kind == kind]
