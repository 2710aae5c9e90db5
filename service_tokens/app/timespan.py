"""
Timespan strings such as ``"10s"``, ``"2 days"`` or ``"-1.5h"``.

A bare number is read as milliseconds. Results are returned in seconds.
"""

from __future__ import annotations

import math
import re
from typing import Optional, Union

_MAX_LENGTH = 100

_PATTERN = re.compile(
    r"(?P<value>-?(?:\d+)?\.?\d+) *"
    r"(?P<unit>milliseconds?|msecs?|ms|seconds?|secs?|s|minutes?|mins?|m"
    r"|hours?|hrs?|h|days?|d|weeks?|w|years?|yrs?|y)?",
    re.IGNORECASE,
)

_SECOND = 1.0
_MINUTE = _SECOND * 60
_HOUR = _MINUTE * 60
_DAY = _HOUR * 24
_WEEK = _DAY * 7
_YEAR = _DAY * 365.25

_UNITS = {
    "years": _YEAR, "year": _YEAR, "yrs": _YEAR, "yr": _YEAR, "y": _YEAR,
    "weeks": _WEEK, "week": _WEEK, "w": _WEEK,
    "days": _DAY, "day": _DAY, "d": _DAY,
    "hours": _HOUR, "hour": _HOUR, "hrs": _HOUR, "hr": _HOUR, "h": _HOUR,
    "minutes": _MINUTE, "minute": _MINUTE, "mins": _MINUTE, "min": _MINUTE, "m": _MINUTE,
    "seconds": _SECOND, "second": _SECOND, "secs": _SECOND, "sec": _SECOND, "s": _SECOND,
    "milliseconds": 0.001, "millisecond": 0.001, "msecs": 0.001, "msec": 0.001, "ms": 0.001,
}


def parse(text: str) -> Optional[float]:
    """Parse ``text`` into seconds, or ``None`` when it is not a timespan."""
    if not isinstance(text, str) or len(text) > _MAX_LENGTH:
        return None

    match = _PATTERN.fullmatch(text)
    if match is None:
        return None

    unit = (match.group("unit") or "ms").lower()
    return float(match.group("value")) * _UNITS[unit]


def resolve(value: Union[int, float, str], base: float) -> Optional[float]:
    """Apply a timespan to ``base``.

    Numbers are taken as seconds and added as is; strings are parsed and the
    sum is floored to whole seconds.
    """
    if isinstance(value, str):
        seconds = parse(value)
        if seconds is None:
            return None
        total = base + seconds
        return math.floor(total) if math.isfinite(total) else total
    return base + value
