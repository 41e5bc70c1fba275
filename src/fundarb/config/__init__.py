"""Configuration module for the funding arbitrage monitor."""

from fundarb.config.constants import (
    BINANCE_FUTURES_REST_URL,
    DAY_SECONDS,
    EIGHT_HOUR_SECONDS,
    VARIATIONAL_ASSETS_URL,
    YEAR_SECONDS,
)
from fundarb.config.settings import Settings, get_settings


__all__ = [
    "Settings",
    "get_settings",
    "BINANCE_FUTURES_REST_URL",
    "VARIATIONAL_ASSETS_URL",
    "DAY_SECONDS",
    "EIGHT_HOUR_SECONDS",
    "YEAR_SECONDS",
]
