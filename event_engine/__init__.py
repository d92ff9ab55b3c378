"""
AIS Event Engine

Streaming detection of maritime events from AIS position reports:
- Vessel State Store: sharded per-vessel state, validation and eviction
- Spatial Area Index: immutable docking-area snapshots with atomic reload
- Detectors: Docking/Undocking state machine and Idle detector
- Proximity: grid-bucketed proximity index and CPA collision-risk estimator
- Event Sink: deduplicating, bounded hand-off to downstream consumers
"""

from .engine import EventEngine
from .config import EngineConfig
from .data_structures import PositionReport, DockingArea, Event, EventKind, EventStatus
from .errors import (
    EngineError, ValidationError, StaleReportError, IndexUnavailable, SinkBackpressure, ConfigError
)

__version__ = "1.0.0"

__all__ = [
    "EventEngine",
    "EngineConfig",
    "PositionReport",
    "DockingArea",
    "Event",
    "EventKind",
    "EventStatus",
    "EngineError",
    "ValidationError",
    "StaleReportError",
    "IndexUnavailable",
    "SinkBackpressure",
    "ConfigError",
]
