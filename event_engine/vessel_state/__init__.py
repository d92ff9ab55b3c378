"""
Vessel State Module

Report validation, per-vessel state and the sharded state store
"""

from .state import VesselState, DockState
from .validator import validate_report
from .store import VesselShard, VesselStateStore

__all__ = ['VesselState', 'DockState', 'validate_report', 'VesselShard', 'VesselStateStore']
