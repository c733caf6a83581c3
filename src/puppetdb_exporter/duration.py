"""
Duration string parsing.

Accepts the duration syntax used by Prometheus-ecosystem exporters: a
sequence of decimal numbers, each with a unit suffix, such as "300ms",
"1.5h" or "2h45m". Valid units are "ns", "us" (or "µs"), "ms", "s",
"m" and "h". A bare "0" is also accepted.
"""

import re
from datetime import timedelta

from puppetdb_exporter.exceptions import InvalidDurationError

# Microseconds per unit; timedelta has microsecond resolution
UNITS = {
    "ns": 0.001,
    "us": 1,
    "µs": 1,
    "μs": 1,
    "ms": 1_000,
    "s": 1_000_000,
    "m": 60_000_000,
    "h": 3_600_000_000,
}

DURATION_PATTERN = re.compile(r"([+-]?)((?:(?:\d+\.?\d*|\.\d+)[a-zµμ]+)+)")
COMPONENT_PATTERN = re.compile(r"(\d+\.?\d*|\.\d+)([a-zµμ]+)")


def parse_duration(value: str) -> timedelta:
    """
    Parse a duration string into a timedelta.

    Args:
        value: Duration string, e.g. "2h" or "1m30s".

    Returns:
        The parsed duration. Sub-microsecond parts are rounded.

    Raises:
        InvalidDurationError: If the string is empty, has no unit or uses an
            unknown unit, or is too large for a timedelta.

    Example:
        >>> parse_duration("1h30m")
        datetime.timedelta(seconds=5400)
    """
    if not isinstance(value, str):
        raise InvalidDurationError(str(value))

    text = value.strip()
    if text in ("0", "+0", "-0"):
        return timedelta(0)

    match = DURATION_PATTERN.fullmatch(text)
    if match is None:
        raise InvalidDurationError(value)

    sign, body = match.groups()
    micros = 0.0
    for number, unit in COMPONENT_PATTERN.findall(body):
        if unit not in UNITS:
            raise InvalidDurationError(value, f"unknown unit {unit!r} in duration")
        micros += float(number) * UNITS[unit]

    try:
        delta = timedelta(microseconds=round(micros))
    except OverflowError as e:
        raise InvalidDurationError(value, "duration out of range") from e
    return -delta if sign == "-" else delta


def duration_seconds(value: str) -> float:
    """Parse a duration string and return it in seconds."""
    return parse_duration(value).total_seconds()
