"""
Monitor constants and configuration values.

This module contains all hardcoded values used throughout the funding
arbitrage monitor. Values are organized by category for easy maintenance.
"""

from typing import Final


# =============================================================================
# Venue Endpoints
# =============================================================================

# Venue A: Variational Omni (only reachable from a logged-in browser session)
VARIATIONAL_ASSETS_URL: Final[str] = "https://omni.variational.io/api/metadata/supported_assets"

# Venue B: Binance USD-M futures (public)
BINANCE_FUTURES_REST_URL: Final[str] = "https://fapi.binance.com"
ENDPOINT_PREMIUM_INDEX: Final[str] = "/fapi/v1/premiumIndex"
ENDPOINT_FUNDING_INFO: Final[str] = "/fapi/v1/fundingInfo"

TELEGRAM_API_URL: Final[str] = "https://api.telegram.org"

VENUE_A_NAME: Final[str] = "Variational"
VENUE_B_NAME: Final[str] = "Binance"

# Quote assets stripped from Binance contract symbols, in preference order
STABLECOIN_SUFFIXES: Final[tuple[str, ...]] = ("USDT", "USDC")


# =============================================================================
# Time Constants (seconds)
# =============================================================================

HOUR_SECONDS: Final[int] = 3600
EIGHT_HOUR_SECONDS: Final[int] = 8 * HOUR_SECONDS
DAY_SECONDS: Final[int] = 86400
YEAR_SECONDS: Final[int] = 365 * DAY_SECONDS

DEFAULT_BINANCE_INTERVAL_HOURS: Final[int] = 8


# =============================================================================
# Relay Configuration
# =============================================================================

RELAY_HOST: Final[str] = "127.0.0.1"
RELAY_PORT: Final[int] = 8766
RELAY_PING_INTERVAL: Final[float] = 15.0  # seconds
RELAY_PONG_TIMEOUT: Final[float] = 10.0  # seconds
RELAY_RPC_TIMEOUT: Final[float] = 30.0  # seconds
RELAY_MAX_MESSAGE_SIZE: Final[int] = 32 * 1024 * 1024  # asset lists are large
RELAY_CLOSE_TIMEOUT: Final[float] = 2.0  # seconds
RELAY_WAIT_POLL_INTERVAL: Final[float] = 0.1  # seconds
RELAY_FETCH_METHOD: Final[str] = "fetch"


# =============================================================================
# Aggregation
# =============================================================================

DEFAULT_CACHE_TTL: Final[float] = 30.0  # seconds
DEFAULT_REFRESH_INTERVAL: Final[float] = 300.0  # seconds
DEFAULT_INITIAL_BROWSER_WAIT: Final[float] = 120.0  # seconds
DEFAULT_RECONNECT_WAIT: Final[float] = 60.0  # seconds
DEFAULT_MAX_ATTEMPTS: Final[int] = 3
DEFAULT_HTTP_RETRY_DELAY: Final[float] = 1.0  # seconds
DEFAULT_HTTP_TIMEOUT: Final[float] = 30.0  # seconds

# 8h rate difference (percentage points) beyond which a direction is chosen
DEFAULT_RATE_DIFF_THRESHOLD: Final[float] = 0.01

DEFAULT_SIMULATE_DAYS: Final[int] = 1
DEFAULT_POSITION_SIZE: Final[float] = 10_000.0


# =============================================================================
# Dashboard
# =============================================================================

DASHBOARD_HOST: Final[str] = "0.0.0.0"
DASHBOARD_PORT: Final[int] = 10241
DASHBOARD_REFRESH_SECONDS: Final[int] = 30
DASHBOARD_MAX_TIMELINE_ROWS: Final[int] = 50

# Annualized difference (percent) above which a row is highlighted
HOT_ANNUAL_DIFF: Final[float] = 50.0


# =============================================================================
# Telegram Bot
# =============================================================================

TELEGRAM_POLL_TIMEOUT: Final[int] = 30  # seconds, long polling
TELEGRAM_ERROR_BACKOFF: Final[float] = 5.0  # seconds
TELEGRAM_TOP_N: Final[int] = 5
DEFAULT_SUBSCRIPTIONS_FILE: Final[str] = "subscriptions.json"


# =============================================================================
# Logging & Telemetry
# =============================================================================

LOG_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

# Maximum log queue size
MAX_LOG_QUEUE_SIZE: Final[int] = 10_000
