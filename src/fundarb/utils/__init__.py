"""Utility functions for the funding arbitrage monitor."""

from fundarb.utils.time import (
    format_timestamp_ms,
    get_timestamp_ms,
    ms_to_datetime,
    parse_iso_ms,
    to_iso,
    utc_midnight_ms,
)


__all__ = [
    "format_timestamp_ms",
    "get_timestamp_ms",
    "ms_to_datetime",
    "parse_iso_ms",
    "to_iso",
    "utc_midnight_ms",
]
