"""
Event Sink Adapter.

Sits between the shards and the downstream queue/log. ``submit`` never blocks:
events land in a bounded pending buffer keyed by idempotency key, and a
background flusher hands them downstream in batches.

- An extension of a still-pending event replaces it in the buffer. Expiry
  markers queue behind the record they close instead of replacing it.
- Re-submission of an already delivered event (same key, same status, no
  later end) is dropped as a duplicate.
- When the buffer is full, the lowest-priority pending event is shed: Idle
  extensions first, then expiry markers and new Idle intervals. Docking,
  Undocking and CollisionRisk go last.
- Failed deliveries are put back and retried, so delivery is at-least-once.
"""

import json
import logging
import threading
from collections import Counter, OrderedDict
from dataclasses import replace
from pathlib import Path
from typing import Callable, Dict, List, Optional, Any, Union

from ..constants import (
    SINK_MAX_PENDING, SINK_BATCH_SIZE, SINK_FLUSH_INTERVAL, SINK_DEDUP_CAPACITY,
)
from ..data_structures import Event, EventKind, EventStatus
from ..errors import SinkBackpressure

logger = logging.getLogger(__name__)

Downstream = Callable[[List[Event]], None]


def pending_key(event: Event) -> str:
    """Buffer slot for an event; expiry markers get their own slot."""
    if event.status == EventStatus.EXPIRED:
        return f"{event.idempotency_key}|expired"
    return event.idempotency_key


def event_priority(event: Event) -> int:
    """Shedding priority; lower values are dropped first."""
    if event.status == EventStatus.EXTENDED:
        return 0
    if event.kind == EventKind.IDLE or event.status == EventStatus.EXPIRED:
        return 1
    return 2


class MemorySink:
    """Downstream that keeps delivered events in a list."""

    def __init__(self):
        self.events: List[Event] = []
        self._lock = threading.Lock()

    def __call__(self, batch: List[Event]):
        with self._lock:
            self.events.extend(batch)

    def records(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [e.to_dict() for e in self.events]


class JsonLinesSink:
    """Downstream that appends one JSON record per event to a file."""

    def __init__(self, filepath: Union[str, Path]):
        self.filepath = Path(filepath)
        self.filepath.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def __call__(self, batch: List[Event]):
        with self._lock:
            with open(self.filepath, 'a', encoding='utf-8') as f:
                for event in batch:
                    f.write(json.dumps(event.to_dict(), ensure_ascii=False) + "\n")


class EventSinkAdapter:
    """Deduplicating, bounded, non-blocking hand-off to a downstream sink."""

    def __init__(self, downstream: Optional[Downstream] = None,
                 max_pending: int = SINK_MAX_PENDING,
                 batch_size: int = SINK_BATCH_SIZE,
                 flush_interval: float = SINK_FLUSH_INTERVAL,
                 dedup_capacity: int = SINK_DEDUP_CAPACITY):
        self.downstream = downstream or MemorySink()
        self.max_pending = max_pending
        self.batch_size = batch_size
        self.flush_interval = flush_interval
        self.dedup_capacity = dedup_capacity

        self._pending: "OrderedDict[str, Event]" = OrderedDict()
        self._delivered: "OrderedDict[str, Event]" = OrderedDict()
        self._lock = threading.Lock()
        self._flush_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.stats = Counter()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def _is_duplicate(self, event: Event) -> bool:
        previous = self._delivered.get(event.idempotency_key)
        if previous is None:
            return False
        if event.end > previous.end:
            return False
        return event.status in (previous.status, EventStatus.EXTENDED)

    def submit(self, event: Event) -> bool:
        """
        Queue an event for delivery without blocking.

        Returns:
            False when the event was dropped (duplicate or shed)
        """
        key = pending_key(event)
        with self._lock:
            self.stats['submitted'] += 1
            if self._is_duplicate(event):
                self.stats['duplicates'] += 1
                return False

            queued = self._pending.get(key)
            if queued is not None:
                if queued.status == EventStatus.OPEN and event.status == EventStatus.EXTENDED:
                    # Keep the record that announces the interval, with the later end
                    event = replace(event, status=EventStatus.OPEN)
                self._pending[key] = event
                self.stats['coalesced'] += 1
                return True

            if len(self._pending) >= self.max_pending:
                try:
                    self._make_room(event)
                except SinkBackpressure as e:
                    logger.debug(f"Rejected {event.idempotency_key}: {e}")
                    self._record_drop(event)
                    return False
            self._pending[key] = event
            return True

    def submit_many(self, events: List[Event]) -> int:
        return sum(1 for e in events if self.submit(e))

    def _make_room(self, event: Event):
        """
        Drop the lowest-priority pending event ranked below ``event``.

        Raises:
            SinkBackpressure: every pending event outranks or ties ``event``
        """
        incoming = event_priority(event)
        victim_key = None
        victim_priority = incoming
        for key, queued in self._pending.items():
            p = event_priority(queued)
            if p < victim_priority:
                victim_key, victim_priority = key, p
                if p == 0:
                    break

        if victim_key is None:
            raise SinkBackpressure(f"{len(self._pending)} events pending, "
                                   f"none below priority {incoming}")
        self._record_drop(self._pending.pop(victim_key))

    def _record_drop(self, event: Event):
        self.stats['dropped'] += 1
        self.stats[f'dropped_{event.kind.value}'] += 1
        if self.stats['dropped'] == 1 or self.stats['dropped'] % 1000 == 0:
            logger.warning(f"Sink backpressure: {self.stats['dropped']} events shed, "
                           f"{len(self._pending)} pending")

    def flush(self) -> int:
        """Deliver pending events in batches; returns the number delivered."""
        delivered = 0
        with self._flush_lock:
            while True:
                with self._lock:
                    if not self._pending:
                        break
                    batch = []
                    while self._pending and len(batch) < self.batch_size:
                        batch.append(self._pending.popitem(last=False)[1])

                try:
                    self.downstream(batch)
                except Exception as e:
                    self.stats['delivery_failures'] += 1
                    logger.error(f"Event delivery failed for batch of {len(batch)}: {e}")
                    self._requeue(batch)
                    break

                with self._lock:
                    for event in batch:
                        self._remember(event)
                    self.stats['delivered'] += len(batch)
                delivered += len(batch)
        return delivered

    def _requeue(self, batch: List[Event]):
        with self._lock:
            for event in reversed(batch):
                key = pending_key(event)
                if key in self._pending:
                    continue  # A newer version arrived meanwhile
                self._pending[key] = event
                self._pending.move_to_end(key, last=False)

    def _remember(self, event: Event):
        key = event.idempotency_key
        self._delivered[key] = event
        self._delivered.move_to_end(key)
        while len(self._delivered) > self.dedup_capacity:
            self._delivered.popitem(last=False)

    def _run(self):
        while not self._stop.wait(self.flush_interval):
            self.flush()
        self.flush()

    def start(self):
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="event-sink-flusher", daemon=True)
        self._thread.start()

    def stop(self):
        if self._thread is None:
            self.flush()
            return
        self._stop.set()
        self._thread.join()
        self._thread = None
