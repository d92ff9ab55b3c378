"""
Engine configuration.

All thresholds are plain dataclass fields so they can be set from code, from a
dict, or from a YAML file::

    docking_speed_threshold_knots: 0.5
    docking_dwell_seconds: 1800
    shard_count: 8
"""

import logging
from dataclasses import dataclass, fields, asdict
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from . import constants as C
from .errors import ConfigError

logger = logging.getLogger(__name__)

DISTANCE_REFERENCES = ("centroid", "boundary")


@dataclass
class EngineConfig:
    """Configuration for the event engine."""
    # Docking / undocking
    docking_speed_threshold_knots: float = C.DOCKING_SPEED_THRESHOLD_KN
    docking_dwell_seconds: float = C.DOCKING_DWELL_SECONDS
    undock_distance_meters: float = C.UNDOCK_DISTANCE_METERS
    undock_window_seconds: float = C.UNDOCK_WINDOW_SECONDS
    undock_distance_reference: str = "centroid"  # or "boundary"
    hysteresis_grace_seconds: float = C.HYSTERESIS_GRACE_SECONDS

    # Idle
    idle_speed_threshold_knots: float = C.IDLE_SPEED_THRESHOLD_KN
    idle_duration_seconds: float = C.IDLE_DURATION_SECONDS
    idle_excursion_tolerance_seconds: float = C.IDLE_EXCURSION_TOLERANCE_SECONDS

    # Collision risk
    collision_proximity_meters: float = C.COLLISION_PROXIMITY_METERS
    collision_horizon_seconds: float = C.COLLISION_HORIZON_SECONDS
    collision_realert_seconds: Optional[float] = None  # None disables re-alerts
    proximity_search_meters: float = C.PROXIMITY_SEARCH_METERS
    active_window_seconds: float = C.ACTIVE_WINDOW_SECONDS

    # State store / workers
    jitter_tolerance_seconds: float = C.JITTER_TOLERANCE_SECONDS
    shard_count: int = C.DEFAULT_SHARD_COUNT
    shard_queue_size: int = C.SHARD_QUEUE_SIZE
    vessel_eviction_timeout: float = C.VESSEL_EVICTION_TIMEOUT
    eviction_sweep_seconds: float = C.EVICTION_SWEEP_SECONDS

    # Docking areas
    areas_path: Optional[str] = None
    area_reload_seconds: Optional[float] = None  # None disables periodic reload

    # Event sink
    sink_max_pending: int = C.SINK_MAX_PENDING
    sink_batch_size: int = C.SINK_BATCH_SIZE
    sink_flush_interval: float = C.SINK_FLUSH_INTERVAL
    sink_dedup_capacity: int = C.SINK_DEDUP_CAPACITY

    def __post_init__(self):
        self.validate()

    def validate(self):
        """Raise ConfigError on inconsistent settings."""
        if self.shard_count < 1:
            raise ConfigError(f"shard_count must be >= 1, got {self.shard_count}")
        if self.shard_queue_size < 1:
            raise ConfigError(f"shard_queue_size must be >= 1, got {self.shard_queue_size}")
        if self.undock_distance_reference not in DISTANCE_REFERENCES:
            raise ConfigError(
                f"undock_distance_reference must be one of {DISTANCE_REFERENCES}, "
                f"got {self.undock_distance_reference!r}")
        for name in ('docking_speed_threshold_knots', 'idle_speed_threshold_knots',
                     'docking_dwell_seconds', 'idle_duration_seconds',
                     'undock_distance_meters', 'undock_window_seconds',
                     'hysteresis_grace_seconds', 'idle_excursion_tolerance_seconds',
                     'collision_proximity_meters', 'collision_horizon_seconds',
                     'proximity_search_meters', 'active_window_seconds',
                     'jitter_tolerance_seconds', 'vessel_eviction_timeout'):
            if getattr(self, name) < 0:
                raise ConfigError(f"{name} must be non-negative")
        if self.proximity_search_meters < self.collision_proximity_meters:
            raise ConfigError("proximity_search_meters must cover collision_proximity_meters")

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'EngineConfig':
        data = dict(data or {})
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {unknown}")
        return cls(**data)

    @classmethod
    def from_yaml(cls, config_path: str) -> 'EngineConfig':
        """Load configuration from a YAML file."""
        path = Path(config_path)
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        # Allow the settings to sit under an ``engine:`` section
        if 'engine' in data and isinstance(data['engine'], dict):
            data = data['engine']
        logger.info(f"Loaded engine configuration from {path}")
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
