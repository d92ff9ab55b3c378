"""
Vessel State Store.

Vessel identities are hashed onto a fixed set of shards. Each shard owns its
vessels outright: only the shard's own ``apply`` and ``evict_inactive`` ever
mutate them, and a shard is driven by one thread at a time, so no per-vessel
locking is needed. The area index is an immutable snapshot read through an
atomic reference; the proximity index is the one structure shared between
shards and carries its own bucket locks.
"""

import logging
import zlib
from collections import Counter
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Any

from ..config import EngineConfig
from ..constants import ERROR_STALE_REPORT
from ..data_structures import PositionReport, Event, to_utc
from ..detectors import DockingStateMachine, IdleDetector
from ..errors import ValidationError, StaleReportError
from ..proximity import ProximityIndex, CollisionEstimator, Track
from ..spatial_index import AreaIndexHolder
from .state import VesselState, DockState
from .validator import validate_report

logger = logging.getLogger(__name__)


class VesselShard:
    """Single-threaded owner of a disjoint set of vessel states."""

    def __init__(self, shard_id: int, config: EngineConfig, areas: AreaIndexHolder,
                 proximity: ProximityIndex, collisions: CollisionEstimator):
        self.shard_id = shard_id
        self.config = config
        self.areas = areas
        self.proximity = proximity
        self.collisions = collisions
        self.docking = DockingStateMachine(config)
        self.idle = IdleDetector(config)

        self.vessels: Dict[int, VesselState] = {}
        self.high_water: Optional[datetime] = None
        self.stats = Counter()
        self._jitter = timedelta(seconds=config.jitter_tolerance_seconds)

    def __len__(self) -> int:
        return len(self.vessels)

    def apply(self, report: PositionReport) -> List[Event]:
        """
        Apply one report to the owning vessel's state.

        Returns:
            Events produced by the report (possibly empty)

        Raises:
            ValidationError: the report is malformed; state is untouched
            StaleReportError: the report is older than last-seen minus jitter
        """
        try:
            validate_report(report)
        except ValidationError:
            self.stats['validation_errors'] += 1
            raise

        ts = to_utc(report.timestamp)
        state = self.vessels.get(report.mmsi)
        if state is not None:
            if ts < state.last_seen - self._jitter:
                self.stats['stale_reports'] += 1
                raise StaleReportError(ERROR_STALE_REPORT.format(
                    report.mmsi, ts.isoformat(), state.last_seen.isoformat(),
                    self.config.jitter_tolerance_seconds))
            # Inside the jitter window: apply, but never let time run backwards
            ts = max(ts, state.last_seen)
        else:
            state = VesselState(mmsi=report.mmsi, last_seen=ts)
            self.vessels[report.mmsi] = state
            self.stats['vessels_created'] += 1

        state.last_seen = ts
        state.lat = report.lat
        state.lon = report.lon
        state.sog = report.sog
        state.cog = report.cog if report.cog is not None else 0.0
        state.report_count += 1
        if self.high_water is None or ts > self.high_water:
            self.high_water = ts

        index = self.areas.current
        containing = index.areas_containing(report.lat, report.lon)

        events = self.docking.step(state, ts, report.lat, report.lon, report.sog, index, containing)
        events.extend(self.idle.step(state, ts, report.sog))

        track = Track.from_kinematics(report.mmsi, ts, report.lat, report.lon,
                                      report.sog, state.cog)
        self.proximity.update(track)
        events.extend(self.collisions.evaluate(track))

        self.stats['applied'] += 1
        self.stats['events'] += len(events)
        return events

    def is_priority(self, report: PositionReport) -> bool:
        """
        Whether a report may matter for Docking/Undocking/CollisionRisk.

        Called from the submitting thread, so it only reads.
        """
        state = self.vessels.get(report.mmsi)
        if state is not None and state.dock_state != DockState.OUTSIDE:
            return True
        try:
            validate_report(report)
        except ValidationError:
            return False
        if self.areas.current.areas_within(report.lat, report.lon,
                                           self.config.undock_distance_meters):
            return True
        return self.proximity.has_neighbors(report.lat, report.lon,
                                            self.config.proximity_search_meters,
                                            to_utc(report.timestamp), exclude=report.mmsi)

    def evict_inactive(self, now: Optional[datetime] = None) -> List[Event]:
        """
        Remove vessels silent for longer than the eviction timeout.

        Open, already-emitted Docking and Idle intervals are closed with
        ``expired`` markers first. ``now`` defaults to the newest timestamp
        this shard has seen, so replays evict identically.
        """
        now = now or self.high_water
        if now is None:
            return []
        now = to_utc(now)

        timeout = timedelta(seconds=self.config.vessel_eviction_timeout)
        events = []
        for mmsi in sorted(self.vessels):
            state = self.vessels[mmsi]
            if now - state.last_seen <= timeout:
                continue
            events.extend(self.docking.expire(state))
            events.extend(self.idle.expire(state))
            del self.vessels[mmsi]
            self.proximity.remove(mmsi)
            self.collisions.forget(mmsi)
            self.stats['evicted'] += 1

        for mmsi in self.proximity.prune(now, list(self.vessels)):
            self.collisions.forget(mmsi)

        if events:
            logger.info(f"Shard {self.shard_id}: eviction closed {len(events)} open intervals")
        self.stats['events'] += len(events)
        return events

    def open_intervals(self) -> List[Dict[str, Any]]:
        intervals = []
        for mmsi in sorted(self.vessels):
            intervals.extend(self.vessels[mmsi].open_intervals())
        return intervals


class VesselStateStore:
    """Hash-partitioned collection of vessel shards."""

    def __init__(self, config: Optional[EngineConfig] = None,
                 areas: Optional[AreaIndexHolder] = None,
                 proximity: Optional[ProximityIndex] = None):
        self.config = config or EngineConfig()
        self.areas = areas or AreaIndexHolder()
        self.proximity = proximity or ProximityIndex(
            cell_size_m=self.config.proximity_search_meters,
            active_window_seconds=self.config.active_window_seconds)
        self.collisions = CollisionEstimator(self.config, self.proximity)
        self.shards = [
            VesselShard(i, self.config, self.areas, self.proximity, self.collisions)
            for i in range(self.config.shard_count)
        ]

    def shard_index(self, mmsi: int) -> int:
        # CRC32 rather than hash() so routing is stable across processes
        return zlib.crc32(str(mmsi).encode()) % len(self.shards)

    def shard_for(self, mmsi: int) -> VesselShard:
        return self.shards[self.shard_index(mmsi)]

    def apply(self, report: PositionReport) -> List[Event]:
        if report.mmsi is None or isinstance(report.mmsi, bool) or not isinstance(report.mmsi, int):
            # Cannot route without an identity
            self.shards[0].stats['validation_errors'] += 1
            raise ValidationError("Missing required field: mmsi")
        return self.shard_for(report.mmsi).apply(report)

    def get_state(self, mmsi: int) -> Optional[Dict[str, Any]]:
        """Point-in-time snapshot of one vessel's state, or None if unknown."""
        state = self.shard_for(mmsi).vessels.get(mmsi)
        return state.snapshot() if state is not None else None

    def open_intervals(self) -> List[Dict[str, Any]]:
        intervals = []
        for shard in self.shards:
            intervals.extend(shard.open_intervals())
        return intervals

    def evict_inactive(self, now: Optional[datetime] = None) -> List[Event]:
        """Run the eviction sweep on every shard from the calling thread."""
        events = []
        for shard in self.shards:
            events.extend(shard.evict_inactive(now))
        return events

    @property
    def vessel_count(self) -> int:
        return sum(len(s) for s in self.shards)

    @property
    def stats(self) -> Dict[str, int]:
        total = Counter()
        for shard in self.shards:
            total.update(shard.stats)
        return dict(total)
