"""
Idle detector.

Tracks one candidate idle run per vessel regardless of location. Short speed
excursions are merged into the run; an excursion longer than the tolerance
closes it. Once a run has lasted ``idle_duration_seconds`` an Idle event is
emitted, and every later idle report re-emits it with the same key and a
later end.
"""

import logging
from datetime import datetime
from typing import List

from ..config import EngineConfig
from ..data_structures import Event, EventKind, EventStatus
from ..vessel_state.state import VesselState

logger = logging.getLogger(__name__)


class IdleDetector:

    def __init__(self, config: EngineConfig):
        self.config = config

    def step(self, state: VesselState, ts: datetime, sog: float) -> List[Event]:
        idle = sog <= self.config.idle_speed_threshold_knots

        if not idle:
            if state.idle_start is None:
                return []
            if state.idle_excursion_start is None:
                state.idle_excursion_start = ts
                return []
            excursion = (ts - state.idle_excursion_start).total_seconds()
            if excursion > self.config.idle_excursion_tolerance_seconds:
                if state.idle_emitted:
                    logger.debug(f"Vessel {state.mmsi} idle run closed after {excursion:.0f} s excursion")
                state.reset_idle_run()
            return []

        if state.idle_start is None:
            state.idle_start = ts
        state.idle_excursion_start = None
        state.idle_speed_sum += sog
        state.idle_speed_count += 1

        if (ts - state.idle_start).total_seconds() < self.config.idle_duration_seconds:
            return []
        if state.idle_emitted and state.idle_end is not None and ts <= state.idle_end:
            return []

        status = EventStatus.EXTENDED if state.idle_emitted else EventStatus.OPEN
        state.idle_emitted = True
        state.idle_end = ts
        event = self._event(state, status)
        state.last_event_keys[EventKind.IDLE] = event.idempotency_key
        if status == EventStatus.OPEN:
            logger.info(f"Idle: vessel {state.mmsi} since {state.idle_start.isoformat()}")
        return [event]

    def _event(self, state: VesselState, status: EventStatus) -> Event:
        return Event(
            kind=EventKind.IDLE,
            vessels=(state.mmsi,),
            start=state.idle_start,
            end=state.idle_end,
            status=status,
            details={'mean_speed_kn': round(state.idle_mean_speed, 3),
                     'reports': state.idle_speed_count},
        )

    def expire(self, state: VesselState) -> List[Event]:
        """Terminal marker for an emitted idle interval; unemitted runs are discarded."""
        events = []
        if state.idle_emitted:
            events.append(self._event(state, EventStatus.EXPIRED))
        state.reset_idle_run()
        return events
