"""
Detectors Module

Per-vessel Docking/Undocking state machine and Idle detector
"""

from .docking import DockingStateMachine
from .idle import IdleDetector

__all__ = ['DockingStateMachine', 'IdleDetector']
