"""
core/duration.py -- Coarse duration strings ("1h", "1d", "7d") to seconds.

Token lifetimes and presigned-URL expiries are configured as short strings
rather than raw integers so .env files stay readable. The format is a
positive integer followed by exactly one unit character.
"""

import re

_UNITS = {
    "s": 1,
    "m": 60,
    "h": 60 * 60,
    "d": 24 * 60 * 60,
    "w": 7 * 24 * 60 * 60,
}

_DURATION_RE = re.compile(r"^(\d+)([smhdw])$")


def parse_duration(value: str) -> int:
    """Return the number of seconds in a duration string.

    parse_duration("1h") -> 3600, parse_duration("7d") -> 604800.
    Raises ValueError for anything else (empty, missing unit, unknown unit,
    zero, negative).
    """
    match = _DURATION_RE.match(value.strip()) if isinstance(value, str) else None
    if match is None:
        raise ValueError(f"Invalid duration format: {value!r}")
    amount = int(match.group(1))
    if amount <= 0:
        raise ValueError(f"Duration must be positive: {value!r}")
    return amount * _UNITS[match.group(2)]
