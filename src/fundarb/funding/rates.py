"""
Funding rate normalization.

Venues settle funding on different schedules (1h, 4h, 8h...). These helpers
re-express a rate quoted per one interval as the equivalent rate over any
other interval, assuming the rate accrues linearly.

All functions are pure. Invalid numeric input propagates as NaN instead of
raising, the usual convention for numeric code: a zero source interval
yields NaN, and NaN inputs flow through the arithmetic unchanged. The one
exception is ``next_aligned_settlement``, which returns an integer
timestamp and therefore rejects non-positive intervals with ValueError.
"""

import math
from dataclasses import dataclass

from fundarb.config.constants import (
    DAY_SECONDS,
    EIGHT_HOUR_SECONDS,
    HOUR_SECONDS,
    YEAR_SECONDS,
)
from fundarb.core.types import ProfitEstimate, RateQuote
from fundarb.utils.time import get_timestamp_ms, parse_iso_ms, utc_midnight_ms


def normalize_rate(
    rate: float,
    from_interval_seconds: float,
    to_interval_seconds: float,
) -> float:
    """
    Convert a rate quoted per one interval into a rate over another.

    Args:
        rate: Rate in percent per ``from_interval_seconds``.
        from_interval_seconds: Interval the rate is quoted over.
        to_interval_seconds: Target interval.

    Returns:
        Equivalent rate per ``to_interval_seconds``, or NaN when the source
        interval is zero.

    Example:
        >>> round(normalize_rate(0.01, 3600, 28800), 10)
        0.08
    """
    if from_interval_seconds == 0:
        return math.nan
    rate_per_second = rate / from_interval_seconds
    return rate_per_second * to_interval_seconds


def to_eight_hour_rate(rate: float, interval_seconds: float) -> float:
    """Convert to an 8-hour rate (the Binance default period)."""
    return normalize_rate(rate, interval_seconds, EIGHT_HOUR_SECONDS)


def to_daily_rate(rate: float, interval_seconds: float) -> float:
    """Convert to a daily rate."""
    return normalize_rate(rate, interval_seconds, DAY_SECONDS)


def to_annual_rate(rate: float, interval_seconds: float) -> float:
    """Convert to an annualized rate (365-day year)."""
    return normalize_rate(rate, interval_seconds, YEAR_SECONDS)


def annual_to_interval_rate(annual_fraction: float, interval_seconds: float) -> float:
    """
    Convert an annualized decimal rate into a per-interval percentage.

    Venue A publishes funding as an annualized fraction (0.1095 = 10.95%
    per year); the rest of the system works with per-settlement percents.

    Example:
        >>> round(annual_to_interval_rate(0.1095, 3600), 6)
        0.00125
    """
    return normalize_rate(annual_fraction * 100.0, YEAR_SECONDS, interval_seconds)


def next_aligned_settlement(now_ms: int, interval_seconds: int) -> int:
    """
    Get the next settlement instant on a UTC-midnight aligned grid.

    Settlements are assumed to happen every ``interval_seconds`` starting
    from the most recent UTC midnight. A ``now`` that falls exactly on a
    boundary returns the following boundary.

    Args:
        now_ms: Current time in milliseconds.
        interval_seconds: Settlement interval.

    Returns:
        Next settlement timestamp in milliseconds.

    Raises:
        ValueError: If the interval is not positive.
    """
    if interval_seconds <= 0:
        raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")

    interval_ms = interval_seconds * 1000
    midnight_ms = utc_midnight_ms(now_ms)
    intervals_passed = (now_ms - midnight_ms) // interval_ms
    return midnight_ms + (intervals_passed + 1) * interval_ms


def format_interval(seconds: float) -> str:
    """
    Format an interval for display.

    Example:
        >>> format_interval(28800)
        '8h'
        >>> format_interval(86400)
        '1d'
        >>> format_interval(30)
        '30s'
    """
    if seconds >= DAY_SECONDS:
        return f"{seconds / DAY_SECONDS:g}d"
    if seconds >= HOUR_SECONDS:
        return f"{seconds / HOUR_SECONDS:g}h"
    return f"{seconds:g}s"


@dataclass(slots=True, frozen=True)
class FundingCountdown:
    """Time remaining until a venue's next funding settlement."""

    expired: bool
    hours: int
    minutes: int
    text: str


def time_to_funding(funding_time: str, now_ms: int | None = None) -> FundingCountdown:
    """
    Compute the time left until an ISO-8601 funding time.

    Args:
        funding_time: Next funding time as published by the venue.
        now_ms: Reference time, defaults to the current time.

    Raises:
        ValueError: If ``funding_time`` is not ISO-8601.
    """
    now_ms = get_timestamp_ms() if now_ms is None else now_ms
    diff_ms = parse_iso_ms(funding_time) - now_ms

    if diff_ms <= 0:
        return FundingCountdown(expired=True, hours=0, minutes=0, text="NOW")

    hours = diff_ms // 3_600_000
    minutes = (diff_ms % 3_600_000) // 60_000
    return FundingCountdown(expired=False, hours=hours, minutes=minutes, text=f"{hours}h {minutes}m")


def estimate_profit(
    venue_a: RateQuote,
    venue_b: RateQuote,
    position_size: float,
    holding_days: int = 1,
) -> ProfitEstimate:
    """
    Estimate funding profit from the flat daily rate difference.

    Unlike the timeline this ignores settlement alignment and the price
    spread; it is the headline "daily profit per notional" figure.

    Args:
        venue_a: Venue A rate quote.
        venue_b: Venue B rate quote.
        position_size: Notional per leg in quote currency.
        holding_days: Holding period.
    """
    a_daily = to_daily_rate(venue_a.rate_percent, venue_a.interval_seconds)
    b_daily = to_daily_rate(venue_b.rate_percent, venue_b.interval_seconds)

    daily_diff = abs(a_daily - b_daily)
    daily_profit = position_size * daily_diff / 100.0

    return ProfitEstimate(
        venue_a_daily_rate=a_daily,
        venue_b_daily_rate=b_daily,
        daily_diff=daily_diff,
        annualized_rate=daily_diff * 365,
        daily_profit=daily_profit,
        total_profit=daily_profit * holding_days,
        holding_days=holding_days,
        position_size=position_size,
    )
