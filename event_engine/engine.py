"""
Event engine: shard workers, backpressure and background maintenance.

Two ways to drive it:

- ``process(report)`` / ``replay(reports)`` apply reports synchronously on the
  calling thread. Replaying the same ordered stream always yields the same
  event stream.
- ``start()`` / ``submit(report)`` / ``stop()`` run one worker thread per
  shard, each draining its own bounded queue strictly in order. Eviction
  sweeps are delivered to shards as queue messages so only the owning worker
  ever touches a shard's vessels.
"""

import logging
import queue
import threading
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional

from .config import EngineConfig
from .data_structures import Event, PositionReport
from .errors import ValidationError, StaleReportError
from .sink import EventSinkAdapter
from .spatial_index import AreaIndexHolder, load_areas
from .vessel_state import VesselStateStore, VesselShard

logger = logging.getLogger(__name__)

_SWEEP = object()
_STOP = object()


class EventEngine:
    """Turns a stream of position reports into Docking, Undocking, Idle and CollisionRisk events."""

    def __init__(self, config: Optional[EngineConfig] = None,
                 areas: Optional[AreaIndexHolder] = None,
                 downstream=None):
        """
        Initialize the engine.

        Args:
            config: Engine configuration (defaults apply when omitted)
            areas: Docking area holder; built from ``config.areas_path`` when omitted
            downstream: Callable receiving batches of events (defaults to an in-memory sink)
        """
        self.config = config or EngineConfig()
        if areas is None:
            loader = None
            if self.config.areas_path:
                path = self.config.areas_path
                loader = lambda: load_areas(path)  # noqa: E731
            areas = AreaIndexHolder(loader=loader)
            if loader is not None and not areas.reload():
                logger.warning("Starting without docking areas; Docking/Undocking detection idle")
        self.areas = areas

        self.store = VesselStateStore(self.config, self.areas)
        self.sink = EventSinkAdapter(
            downstream,
            max_pending=self.config.sink_max_pending,
            batch_size=self.config.sink_batch_size,
            flush_interval=self.config.sink_flush_interval,
            dedup_capacity=self.config.sink_dedup_capacity,
        )

        self._counters = Counter()
        self._queues: List[queue.Queue] = []
        self._threads: List[threading.Thread] = []
        self._stop = threading.Event()
        self._running = False

    # Synchronous path

    def _apply(self, shard: VesselShard, report: PositionReport) -> List[Event]:
        try:
            events = shard.apply(report)
        except ValidationError as e:
            logger.debug(f"Rejected report: {e}")
            return []
        except StaleReportError as e:
            logger.debug(f"Discarded stale report: {e}")
            return []
        self.sink.submit_many(events)
        return events

    def process(self, report: PositionReport) -> List[Event]:
        """Apply one report on the calling thread and hand its events to the sink."""
        if not isinstance(report.mmsi, int) or isinstance(report.mmsi, bool):
            try:
                self.store.apply(report)
            except ValidationError as e:
                logger.debug(f"Rejected report: {e}")
            return []
        return self._apply(self.store.shard_for(report.mmsi), report)

    def replay(self, reports: Iterable[PositionReport], flush: bool = True) -> List[Event]:
        """Process an ordered stream synchronously; returns every emitted event."""
        events = []
        for report in reports:
            events.extend(self.process(report))
        if flush:
            self.sink.flush()
        return events

    def evict_inactive(self, now=None) -> List[Event]:
        """Run an eviction sweep on the calling thread (synchronous mode only)."""
        if self._running:
            raise RuntimeError("Eviction runs inside shard workers while the engine is started")
        events = self.store.evict_inactive(now)
        self.sink.submit_many(events)
        return events

    # Threaded path

    def start(self):
        """Start shard workers, background sweep/reload tasks and the sink flusher."""
        if self._running:
            return
        self._stop.clear()
        self._queues = [queue.Queue(maxsize=self.config.shard_queue_size)
                        for _ in self.store.shards]
        self._threads = [
            threading.Thread(target=self._worker, args=(shard, q),
                             name=f"shard-{shard.shard_id}", daemon=True)
            for shard, q in zip(self.store.shards, self._queues)
        ]
        self._threads.append(threading.Thread(target=self._sweep_loop, name="eviction-sweep", daemon=True))
        if self.config.area_reload_seconds:
            self._threads.append(threading.Thread(target=self._reload_loop, name="area-reload", daemon=True))

        self._running = True
        self.sink.start()
        for thread in self._threads:
            thread.start()
        logger.info(f"Event engine started with {len(self.store.shards)} shards")

    def _worker(self, shard: VesselShard, q: queue.Queue):
        while True:
            item = q.get()
            try:
                if item is _STOP:
                    return
                if item is _SWEEP:
                    self.sink.submit_many(shard.evict_inactive())
                else:
                    self._apply(shard, item)
            except Exception:
                # One bad report must not take the shard down
                self._counters['worker_errors'] += 1
                logger.exception(f"Shard {shard.shard_id} failed to process an item")
            finally:
                q.task_done()

    def _sweep_loop(self):
        while not self._stop.wait(self.config.eviction_sweep_seconds):
            for q in self._queues:
                q.put(_SWEEP)

    def _reload_loop(self):
        while not self._stop.wait(self.config.area_reload_seconds):
            self.areas.reload()

    def submit(self, report: PositionReport) -> bool:
        """
        Route a report to its shard's queue.

        When the queue is full, reports that may matter for Docking, Undocking
        or CollisionRisk wait for space; idle-only reports are dropped.

        Returns:
            False when the report was rejected or dropped
        """
        if not self._running:
            raise RuntimeError("Engine not started")
        if not isinstance(report.mmsi, int) or isinstance(report.mmsi, bool):
            self._counters['unroutable_reports'] += 1
            return False

        index = self.store.shard_index(report.mmsi)
        q = self._queues[index]
        try:
            q.put_nowait(report)
            return True
        except queue.Full:
            pass

        if self.store.shards[index].is_priority(report):
            self._counters['blocked_submits'] += 1
            q.put(report)
            return True

        self._counters['dropped_reports'] += 1
        dropped = self._counters['dropped_reports']
        if dropped == 1 or dropped % 1000 == 0:
            logger.warning(f"Shard {index} queue full: {dropped} idle-only reports dropped so far")
        return False

    def join(self):
        """Block until every queued report has been processed."""
        for q in self._queues:
            q.join()

    def stop(self):
        """Drain queues, stop background tasks and flush the sink."""
        if not self._running:
            self.sink.flush()
            return
        self._stop.set()
        for q in self._queues:
            q.put(_STOP)
        for thread in self._threads:
            thread.join()
        self._threads = []
        self._queues = []
        self._running = False
        self.sink.stop()
        logger.info("Event engine stopped")

    def __enter__(self) -> 'EventEngine':
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()

    # State query interface

    def vessel_state(self, mmsi: int) -> Optional[Dict[str, Any]]:
        return self.store.get_state(mmsi)

    def open_intervals(self) -> List[Dict[str, Any]]:
        return self.store.open_intervals()

    def reload_areas(self, raise_on_error: bool = False) -> bool:
        return self.areas.reload(raise_on_error=raise_on_error)

    @property
    def stats(self) -> Dict[str, Any]:
        stats = dict(self.store.stats)
        stats.update(self._counters)
        stats.update({f'sink_{k}': v for k, v in self.sink.stats.items()})
        stats['sink_pending'] = self.sink.pending
        stats['vessels'] = self.store.vessel_count
        stats['active_tracks'] = len(self.store.proximity)
        stats['area_index_version'] = self.areas.current.version
        stats['area_reload_failures'] = self.areas.reload_failures
        return stats
