"""Funding rate normalization helpers."""

from fundarb.funding.rates import (
    FundingCountdown,
    annual_to_interval_rate,
    estimate_profit,
    format_interval,
    next_aligned_settlement,
    normalize_rate,
    time_to_funding,
    to_annual_rate,
    to_daily_rate,
    to_eight_hour_rate,
)


__all__ = [
    "FundingCountdown",
    "annual_to_interval_rate",
    "estimate_profit",
    "format_interval",
    "next_aligned_settlement",
    "normalize_rate",
    "time_to_funding",
    "to_annual_rate",
    "to_daily_rate",
    "to_eight_hour_rate",
]
