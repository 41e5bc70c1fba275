"""
Time utilities.

Millisecond timestamps are used everywhere a wall-clock instant is stored;
datetime objects only appear at the display and parsing edges.
"""

import time
from datetime import UTC, datetime


def get_timestamp_ms() -> int:
    """
    Get current timestamp in milliseconds.

    Returns:
        Current Unix timestamp in milliseconds.
    """
    return time.time_ns() // 1_000_000


def ms_to_datetime(timestamp_ms: int) -> datetime:
    """Convert a millisecond timestamp to an aware UTC datetime."""
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=UTC)


def utc_midnight_ms(timestamp_ms: int) -> int:
    """
    Get the most recent UTC midnight at or before a timestamp.

    Args:
        timestamp_ms: Timestamp in milliseconds.

    Returns:
        UTC midnight of the same calendar day, in milliseconds.

    Example:
        >>> utc_midnight_ms(1704067200123)
        1704067200000
    """
    dt = ms_to_datetime(timestamp_ms)
    midnight = dt.replace(hour=0, minute=0, second=0, microsecond=0)
    return int(midnight.timestamp()) * 1000


def format_timestamp_ms(timestamp_ms: int, local: bool = True) -> str:
    """
    Format a timestamp as ``MM-DD HH:MM`` for timeline display.

    Args:
        timestamp_ms: Timestamp in milliseconds.
        local: Render in the process's local timezone instead of UTC.

    Example:
        >>> format_timestamp_ms(1704067200000, local=False)
        '01-01 00:00'
    """
    dt = ms_to_datetime(timestamp_ms)
    if local:
        dt = dt.astimezone()
    return dt.strftime("%m-%d %H:%M")


def to_iso(timestamp_ms: int | None) -> str | None:
    """Render a millisecond timestamp as an ISO-8601 UTC string, passing None through."""
    if timestamp_ms is None:
        return None
    return ms_to_datetime(timestamp_ms).isoformat().replace("+00:00", "Z")


def parse_iso_ms(value: str) -> int:
    """
    Parse an ISO-8601 string into milliseconds.

    Accepts a trailing ``Z``. Naive values are taken as UTC.

    Raises:
        ValueError: If the string is not ISO-8601.
    """
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return int(dt.timestamp() * 1000)
