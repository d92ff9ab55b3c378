"""
Event Sink Module

Deduplicating, bounded hand-off of detected events to downstream consumers
"""

from .event_sink import EventSinkAdapter, MemorySink, JsonLinesSink, event_priority, pending_key

__all__ = ['EventSinkAdapter', 'MemorySink', 'JsonLinesSink', 'event_priority', 'pending_key']
