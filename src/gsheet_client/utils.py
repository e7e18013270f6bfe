"""
Utility functions for the delivery client.

Includes time helpers and Go-style duration parsing for policy values.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Optional

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")

_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def unix_seconds(dt: datetime) -> float:
    """Whole seconds since the epoch."""
    return float(int(dt.timestamp()))


def parse_duration(text: str) -> Optional[timedelta]:
    """
    Parse a duration such as ``90s``, ``10m`` or ``1h30m``.

    Returns None when the string is not a valid duration.
    """
    s = text.strip().lower()
    sign = 1.0
    if s[:1] in ("+", "-"):
        sign = -1.0 if s[0] == "-" else 1.0
        s = s[1:]
    if s == "0":
        return timedelta(0)
    if not s:
        return None

    total = 0.0
    pos = 0
    for m in _DURATION_PART.finditer(s):
        if m.start() != pos:
            return None
        total += float(m.group(1)) * _UNIT_SECONDS[m.group(2)]
        pos = m.end()
    if pos != len(s):
        return None
    return timedelta(seconds=sign * total)
