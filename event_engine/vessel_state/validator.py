"""
Position report validation.

Reports are checked once at the shard boundary; anything that fails never
touches vessel state.
"""

import math
from datetime import datetime

from ..constants import (
    LAT_MIN, LAT_MAX, LON_MIN, LON_MAX,
    ERROR_INVALID_COORDINATES, ERROR_INVALID_SPEED, ERROR_MISSING_FIELD,
)
from ..data_structures import PositionReport
from ..errors import ValidationError


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def validate_report(report: PositionReport) -> None:
    """
    Validate a position report.

    Raises:
        ValidationError: identity or timestamp missing, coordinates out of
            range, or speed negative / not a number.
    """
    if report.mmsi is None or isinstance(report.mmsi, bool) or not isinstance(report.mmsi, int):
        raise ValidationError(ERROR_MISSING_FIELD.format('mmsi'))
    if report.mmsi <= 0:
        raise ValidationError(f"Invalid MMSI: {report.mmsi}")
    if not isinstance(report.timestamp, datetime):
        raise ValidationError(ERROR_MISSING_FIELD.format('timestamp'))

    if not (_is_number(report.lat) and _is_number(report.lon)):
        raise ValidationError(ERROR_INVALID_COORDINATES.format(report.lat, report.lon))
    if not (LAT_MIN <= report.lat <= LAT_MAX and LON_MIN <= report.lon <= LON_MAX):
        raise ValidationError(ERROR_INVALID_COORDINATES.format(report.lat, report.lon))

    if not _is_number(report.sog) or report.sog < 0:
        raise ValidationError(ERROR_INVALID_SPEED.format(report.sog))
    if report.cog is not None and not _is_number(report.cog):
        raise ValidationError(f"Invalid course: {report.cog}")
