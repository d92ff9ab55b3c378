"""
Docking/Undocking state machine.

One docking track per vessel::

    OUTSIDE --inside & slow--> CANDIDATE --slow for dwell--> DOCKED
       ^                          |                            |
       |<--left area / long excursion                  first fast report
       |                                                       v
       +<------------- far enough within window ------- UNDOCKING
                                                 (window expiry -> DOCKED)

Speed excursions shorter than the hysteresis grace period do not reset a
candidate dwell. Per-vessel state is O(1): a few timestamps and an area id.
"""

import logging
from datetime import datetime
from typing import List, Optional, Set

from ..config import EngineConfig
from ..data_structures import DockingArea, Event, EventKind, EventStatus
from ..spatial_index import AreaIndex
from ..vessel_state.state import VesselState, DockState

logger = logging.getLogger(__name__)


def _seconds(later: datetime, earlier: datetime) -> float:
    return (later - earlier).total_seconds()


class DockingStateMachine:
    """Drives a vessel's docking track from position updates and area membership."""

    def __init__(self, config: EngineConfig):
        self.config = config

    def step(self, state: VesselState, ts: datetime, lat: float, lon: float, sog: float,
             index: AreaIndex, containing: Set[DockingArea]) -> List[Event]:
        """
        Apply one position update.

        Args:
            state: Vessel state (already updated with the report's kinematics)
            ts: Effective report timestamp
            lat, lon: Report position
            sog: Speed over ground in knots
            index: Area index snapshot used for this report
            containing: Areas containing the position (from ``index``)

        Returns:
            Docking/Undocking events produced by this update
        """
        slow = sog <= self.config.docking_speed_threshold_knots
        inside_ids = {a.area_id for a in containing}

        if state.dock_state == DockState.CANDIDATE:
            self._step_candidate(state, ts, slow, inside_ids)
            if state.dock_state == DockState.CANDIDATE:
                return self._maybe_dock(state, ts, slow)

        if state.dock_state == DockState.OUTSIDE:
            self._maybe_start_candidate(state, ts, slow, inside_ids)
            return self._maybe_dock(state, ts, slow)

        events = []
        if state.dock_state == DockState.UNDOCKING:
            events = self._step_undocking(state, ts, lat, lon, index)
            if events:
                return events

        if state.dock_state == DockState.DOCKED:
            if slow:
                state.dock_end = max(state.dock_end, ts)
            else:
                state.dock_state = DockState.UNDOCKING
                state.undock_start = ts
                logger.debug(f"Vessel {state.mmsi} speed {sog:.1f} kn above threshold "
                             f"while docked at {state.area_id}")
                # A single fast report can already be far enough away
                events = self._step_undocking(state, ts, lat, lon, index)
        return events

    def _maybe_start_candidate(self, state: VesselState, ts: datetime, slow: bool, inside_ids: Set[str]):
        if slow and inside_ids:
            state.dock_state = DockState.CANDIDATE
            state.area_id = min(inside_ids)
            state.dwell_start = ts
            state.dock_excursion_start = None

    def _step_candidate(self, state: VesselState, ts: datetime, slow: bool, inside_ids: Set[str]):
        if state.area_id not in inside_ids:
            logger.debug(f"Vessel {state.mmsi} left {state.area_id} before docking, dwell reset")
            state.reset_dock_track()
            return

        if slow:
            # Back under threshold: the excursion ends without resetting
            state.dock_excursion_start = None
            return

        if state.dock_excursion_start is None:
            state.dock_excursion_start = ts
        elif _seconds(ts, state.dock_excursion_start) > self.config.hysteresis_grace_seconds:
            logger.debug(f"Vessel {state.mmsi} exceeded docking speed past grace period, dwell reset")
            state.reset_dock_track()

    def _maybe_dock(self, state: VesselState, ts: datetime, slow: bool) -> List[Event]:
        if state.dock_state != DockState.CANDIDATE or not slow:
            return []
        if _seconds(ts, state.dwell_start) < self.config.docking_dwell_seconds:
            return []

        state.dock_state = DockState.DOCKED
        state.dock_excursion_start = None
        state.docked_at = ts
        state.dock_end = ts
        event = Event(
            kind=EventKind.DOCKING,
            vessels=(state.mmsi,),
            start=state.dwell_start,
            end=ts,
            area_id=state.area_id,
        )
        state.last_event_keys[EventKind.DOCKING] = event.idempotency_key
        logger.info(f"Docking: vessel {state.mmsi} at {state.area_id} since {state.dwell_start.isoformat()}")
        return [event]

    def _distance(self, lat: float, lon: float, index: AreaIndex, area_id: str) -> Optional[float]:
        area = index.get(area_id)
        if area is None:
            return None
        if self.config.undock_distance_reference == "boundary":
            return index.distance_to_area(lat, lon, area)
        return index.distance_to_centroid(lat, lon, area)

    def _step_undocking(self, state: VesselState, ts: datetime, lat: float, lon: float,
                        index: AreaIndex) -> List[Event]:
        elapsed = _seconds(ts, state.undock_start)
        distance = self._distance(lat, lon, index, state.area_id)
        if distance is None:
            # Area dropped by a reload; the track cannot resolve against it
            logger.warning(f"Docking area {state.area_id} for vessel {state.mmsi} no longer indexed")
            distance = 0.0

        if elapsed <= self.config.undock_window_seconds and distance >= self.config.undock_distance_meters:
            events = self._close_docking(state)
            event = Event(
                kind=EventKind.UNDOCKING,
                vessels=(state.mmsi,),
                start=state.undock_start,
                end=ts,
                area_id=state.area_id,
                details={'distance_m': round(distance, 1),
                         'docked_since': state.dwell_start.isoformat()},
            )
            state.last_event_keys[EventKind.UNDOCKING] = event.idempotency_key
            logger.info(f"Undocking: vessel {state.mmsi} from {state.area_id}, "
                        f"{distance:.0f} m after {elapsed:.0f} s")
            state.reset_dock_track()
            events.append(event)
            return events

        if elapsed > self.config.undock_window_seconds:
            # Never got far enough: still effectively docked
            state.dock_state = DockState.DOCKED
            state.undock_start = None
        return []

    def _close_docking(self, state: VesselState) -> List[Event]:
        """Final Docking record when the interval grew after it was first emitted."""
        if state.docked_at is None or state.dock_end <= state.docked_at:
            return []
        return [Event(
            kind=EventKind.DOCKING,
            vessels=(state.mmsi,),
            start=state.dwell_start,
            end=state.dock_end,
            status=EventStatus.EXTENDED,
            area_id=state.area_id,
        )]

    def expire(self, state: VesselState) -> List[Event]:
        """Terminal marker for an emitted, still open docking interval."""
        if state.dock_state not in (DockState.DOCKED, DockState.UNDOCKING):
            return []
        event = Event(
            kind=EventKind.DOCKING,
            vessels=(state.mmsi,),
            start=state.dwell_start,
            end=state.dock_end,
            status=EventStatus.EXPIRED,
            area_id=state.area_id,
        )
        state.reset_dock_track()
        return [event]
