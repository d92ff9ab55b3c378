"""
Error taxonomy for the event engine.

None of these are fatal: the engine counts and logs them and keeps running.
"""


class EngineError(Exception):
    """Base class for event engine errors."""


class ValidationError(EngineError):
    """Malformed position report (bad coordinates, missing identity or timestamp)."""


class StaleReportError(EngineError):
    """Report older than the vessel's last-seen timestamp beyond the jitter tolerance."""


class IndexUnavailable(EngineError):
    """Docking area reload failed; the last good snapshot keeps serving."""


class SinkBackpressure(EngineError):
    """Downstream sink cannot keep up; events were shed."""


class ConfigError(EngineError):
    """Invalid engine configuration."""
