"""
Pydantic models for venue REST responses.

These models provide type-safe parsing of venue payloads
with automatic validation. Numeric strings are coerced to floats.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from fundarb.config.constants import DEFAULT_BINANCE_INTERVAL_HOURS


def _blank_to_none(v: Any) -> Any:
    if isinstance(v, str) and not v.strip():
        return None
    return v


# =============================================================================
# Venue A: Variational
# =============================================================================


class VariationalAsset(BaseModel):
    """One entry of the ``supported_assets`` listing."""

    asset: str
    name: str = ""
    price: float
    funding_rate: float = Field(description="Annualized funding as a decimal fraction")
    funding_interval_s: int
    funding_time: str | None = None
    volume_24h: float | None = None
    has_perp: bool = False
    is_close_only_mode: bool = False

    model_config = ConfigDict(extra="ignore")

    @field_validator("volume_24h", "funding_time", mode="before")
    @classmethod
    def blank_is_missing(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @property
    def is_tradable_perp(self) -> bool:
        """Perpetual listed and open for new positions."""
        return self.has_perp and not self.is_close_only_mode


# =============================================================================
# Venue B: Binance USD-M Futures
# =============================================================================


class PremiumIndex(BaseModel):
    """Mark price and funding state from ``/fapi/v1/premiumIndex``."""

    symbol: str
    mark_price: float = Field(alias="markPrice")
    index_price: float | None = Field(default=None, alias="indexPrice")
    last_funding_rate: float | None = Field(default=None, alias="lastFundingRate")
    next_funding_time: int | None = Field(default=None, alias="nextFundingTime")
    time: int | None = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("index_price", "last_funding_rate", mode="before")
    @classmethod
    def blank_is_missing(cls, v: Any) -> Any:
        # Delivery contracts report an empty funding rate
        return _blank_to_none(v)


class FundingInfo(BaseModel):
    """Per-symbol funding configuration from ``/fapi/v1/fundingInfo``."""

    symbol: str
    funding_interval_hours: int = Field(default=DEFAULT_BINANCE_INTERVAL_HOURS, alias="fundingIntervalHours")
    adjusted_funding_rate_cap: str | None = Field(default=None, alias="adjustedFundingRateCap")
    adjusted_funding_rate_floor: str | None = Field(default=None, alias="adjustedFundingRateFloor")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("funding_interval_hours", mode="before")
    @classmethod
    def default_interval(cls, v: Any) -> Any:
        if v is None or v == 0:
            return DEFAULT_BINANCE_INTERVAL_HOURS
        return v
