"""
Collision risk estimator.

On every position update the reporting vessel is compared against its active
neighbours: each neighbour is dead-reckoned to the report time, both are
projected along course at speed over the horizon, and the closest approach of
the two segments is computed. A pair is at risk when it is within the
proximity threshold now and its projected closest approach is too.

Pairs are keyed smaller-MMSI-first. An event is emitted when a pair enters
risk, and again every ``collision_realert_seconds`` while it stays at risk if
re-alerting is enabled.
"""

import logging
import threading
from datetime import datetime
from typing import Dict, List, Set, Tuple

import numpy as np

from ..config import EngineConfig
from ..data_structures import Event, EventKind
from .cpa_utils import closest_approach
from .proximity_index import ProximityIndex, Track

logger = logging.getLogger(__name__)

Pair = Tuple[int, int]


def canonical_pair(a: int, b: int) -> Pair:
    return (a, b) if a <= b else (b, a)


class CollisionEstimator:
    """Pairwise CPA screening with per-pair alert suppression."""

    def __init__(self, config: EngineConfig, index: ProximityIndex):
        self.config = config
        self.index = index
        self._lock = threading.Lock()
        self._last_alert: Dict[Pair, datetime] = {}
        self._partners: Dict[int, Set[int]] = {}

    @property
    def pairs_at_risk(self) -> List[Pair]:
        with self._lock:
            return sorted(self._last_alert)

    def assess(self, track: Track, other: Track) -> Tuple[float, float, float]:
        """
        Current separation, projected minimum separation and its time.

        Returns:
            Tuple of (separation_m, min_separation_m, tcpa_s)
        """
        other_now = other.position_at(track.timestamp)
        separation = float(np.linalg.norm(other_now - track.position))
        min_sep, tcpa = closest_approach(track.position, track.velocity,
                                         other_now, other.velocity,
                                         self.config.collision_horizon_seconds)
        return separation, min_sep, tcpa

    def evaluate(self, track: Track) -> List[Event]:
        """Screen one updated track against its neighbours."""
        limit = self.config.collision_proximity_meters
        neighbours = self.index.neighbors(track.lat, track.lon,
                                          self.config.proximity_search_meters,
                                          track.timestamp, exclude=track.mmsi)

        risky = {}
        for other in neighbours:
            separation, min_sep, tcpa = self.assess(track, other)
            if separation <= limit and min_sep <= limit:
                risky[other.mmsi] = (separation, min_sep, tcpa)

        events = []
        with self._lock:
            for mmsi in sorted(risky):
                pair = canonical_pair(track.mmsi, mmsi)
                last = self._last_alert.get(pair)
                if last is not None:
                    realert = self.config.collision_realert_seconds
                    if not realert or (track.timestamp - last).total_seconds() < realert:
                        continue
                separation, min_sep, tcpa = risky[mmsi]
                self._last_alert[pair] = track.timestamp
                self._partners.setdefault(pair[0], set()).add(pair[1])
                self._partners.setdefault(pair[1], set()).add(pair[0])
                events.append(Event(
                    kind=EventKind.COLLISION_RISK,
                    vessels=pair,
                    start=track.timestamp,
                    end=track.timestamp,
                    separation_m=round(separation, 1),
                    min_separation_m=round(min_sep, 1),
                    tcpa_s=round(tcpa, 1),
                ))
                logger.info(f"Collision risk: {pair[0]}/{pair[1]} separation {separation:.0f} m, "
                            f"CPA {min_sep:.0f} m in {tcpa:.0f} s")

            for mmsi in list(self._partners.get(track.mmsi, ())):
                if mmsi not in risky:
                    self._clear(canonical_pair(track.mmsi, mmsi))
        return events

    def _clear(self, pair: Pair):
        self._last_alert.pop(pair, None)
        for a, b in (pair, pair[::-1]):
            partners = self._partners.get(a)
            if partners is not None:
                partners.discard(b)
                if not partners:
                    del self._partners[a]

    def forget(self, mmsi: int):
        """Drop all pair state involving a vessel (eviction or inactivity)."""
        with self._lock:
            for other in list(self._partners.get(mmsi, ())):
                self._clear(canonical_pair(mmsi, other))
