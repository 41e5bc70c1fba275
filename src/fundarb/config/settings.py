"""
Application settings with environment variable support.

Uses Pydantic Settings for type-safe configuration with automatic
environment variable loading and validation.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from fundarb.config.constants import (
    BINANCE_FUTURES_REST_URL,
    DASHBOARD_HOST,
    DASHBOARD_PORT,
    DEFAULT_CACHE_TTL,
    DEFAULT_HTTP_RETRY_DELAY,
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_INITIAL_BROWSER_WAIT,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_POSITION_SIZE,
    DEFAULT_RATE_DIFF_THRESHOLD,
    DEFAULT_RECONNECT_WAIT,
    DEFAULT_REFRESH_INTERVAL,
    DEFAULT_SIMULATE_DAYS,
    DEFAULT_SUBSCRIPTIONS_FILE,
    RELAY_HOST,
    RELAY_PING_INTERVAL,
    RELAY_PONG_TIMEOUT,
    RELAY_PORT,
    RELAY_RPC_TIMEOUT,
    VARIATIONAL_ASSETS_URL,
)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    Sensitive values use SecretStr for safe handling.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # =========================================================================
    # Browser Relay
    # =========================================================================

    relay_host: str = Field(
        default=RELAY_HOST,
        description="Interface the browser relay WebSocket server binds to",
    )
    relay_port: int = Field(
        default=RELAY_PORT,
        ge=1,
        le=65535,
        description="Port the browser extension connects to",
    )
    ping_interval: float = Field(
        default=RELAY_PING_INTERVAL,
        gt=0.0,
        description="Seconds between server-initiated pings",
    )
    pong_timeout: float = Field(
        default=RELAY_PONG_TIMEOUT,
        gt=0.0,
        description="Seconds to wait for a pong before dropping the browser",
    )
    rpc_timeout: float = Field(
        default=RELAY_RPC_TIMEOUT,
        gt=0.0,
        description="Default timeout for a relayed fetch",
    )
    initial_browser_wait: float = Field(
        default=DEFAULT_INITIAL_BROWSER_WAIT,
        ge=0.0,
        description="Seconds to wait for the first browser connection at startup",
    )
    reconnect_wait: float | None = Field(
        default=DEFAULT_RECONNECT_WAIT,
        description="Seconds to wait for the browser between retries (None = forever)",
    )

    # =========================================================================
    # Venues
    # =========================================================================

    variational_assets_url: str = Field(
        default=VARIATIONAL_ASSETS_URL,
        description="Venue A supported assets endpoint (fetched through the browser)",
    )
    binance_rest_url: str = Field(
        default=BINANCE_FUTURES_REST_URL,
        description="Binance USD-M futures REST base URL",
    )
    binance_proxy: str | None = Field(
        default=None,
        description="Optional HTTP proxy for Binance requests (e.g. http://127.0.0.1:10809)",
    )
    http_timeout: float = Field(
        default=DEFAULT_HTTP_TIMEOUT,
        gt=0.0,
        description="Total timeout for a direct HTTP request",
    )
    venue_a_max_attempts: int = Field(
        default=DEFAULT_MAX_ATTEMPTS,
        ge=1,
        le=10,
        description="Attempts for venue A before surfacing the error",
    )
    venue_b_max_attempts: int = Field(
        default=DEFAULT_MAX_ATTEMPTS,
        ge=1,
        le=10,
        description="Attempts for venue B before surfacing the error",
    )
    venue_b_retry_delay: float = Field(
        default=DEFAULT_HTTP_RETRY_DELAY,
        ge=0.0,
        description="Seconds to sleep between venue B attempts",
    )

    # =========================================================================
    # Aggregation
    # =========================================================================

    cache_ttl: float = Field(
        default=DEFAULT_CACHE_TTL,
        ge=0.0,
        description="Seconds an opportunity list is served without refetching",
    )
    refresh_interval: float = Field(
        default=DEFAULT_REFRESH_INTERVAL,
        gt=0.0,
        description="Seconds between forced background refreshes",
    )
    rate_diff_threshold: float = Field(
        default=DEFAULT_RATE_DIFF_THRESHOLD,
        ge=0.0,
        description="8h rate difference (percentage points) needed to pick a direction",
    )
    simulate_days: int = Field(
        default=DEFAULT_SIMULATE_DAYS,
        ge=1,
        le=30,
        description="Timeline simulation horizon in days",
    )
    position_size: float = Field(
        default=DEFAULT_POSITION_SIZE,
        gt=0.0,
        description="Notional used for the daily profit estimate",
    )
    sort_mode: Literal["final_profit", "annual_diff"] = Field(
        default="final_profit",
        description="Ranking key for the opportunity list",
    )

    # =========================================================================
    # Dashboard
    # =========================================================================

    dashboard_host: str = Field(default=DASHBOARD_HOST)
    dashboard_port: int = Field(default=DASHBOARD_PORT, ge=1, le=65535)

    # =========================================================================
    # Telegram
    # =========================================================================

    bot_token: SecretStr | None = Field(
        default=None,
        description="Telegram bot token; the bot is disabled when unset",
    )
    subscriptions_file: Path = Field(
        default=Path(DEFAULT_SUBSCRIPTIONS_FILE),
        description="JSON file holding chat subscriptions",
    )

    # =========================================================================
    # Operation Mode
    # =========================================================================

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: Path | None = Field(
        default=None,
        description="Optional log file path",
    )
    use_uvloop: bool = Field(
        default=True,
        description="Use uvloop for improved async performance",
    )

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("bot_token", mode="after")
    @classmethod
    def empty_token_disables_bot(cls, v: SecretStr | None) -> SecretStr | None:
        """Treat an empty token as no token."""
        if v is not None and not v.get_secret_value().strip():
            return None
        return v

    @field_validator("reconnect_wait", mode="after")
    @classmethod
    def validate_reconnect_wait(cls, v: float | None) -> float | None:
        """Reject negative waits."""
        if v is not None and v < 0:
            raise ValueError("reconnect_wait must be >= 0 or unset")
        return v

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def telegram_enabled(self) -> bool:
        """Whether the Telegram bot should be started."""
        return self.bot_token is not None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to ensure settings are loaded only once.
    Clear cache with `get_settings.cache_clear()` if needed.
    """
    return Settings()
