"""
Type definitions for the funding arbitrage monitor.

This module contains the enums, dataclasses and Protocol definitions
shared across the relay, the funding math and the aggregator. Value
objects are frozen so readers of a published opportunity list cannot
mutate it.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Protocol


# =============================================================================
# Enums
# =============================================================================


class Direction(str, Enum):
    """Which venue carries the short leg of the hedge."""

    SHORT_A = "SHORT_A"
    SHORT_B = "SHORT_B"
    NONE = "NONE"


class EventSource(str, Enum):
    """Origin of a timeline event."""

    OPEN = "OPEN"
    VENUE_A = "VENUE_A"
    VENUE_B = "VENUE_B"


class SortMode(str, Enum):
    """Ranking key for the opportunity list."""

    FINAL_PROFIT = "final_profit"
    ANNUAL_DIFF = "annual_diff"


# =============================================================================
# Market Data Types
# =============================================================================


@dataclass(slots=True, frozen=True)
class RateQuote:
    """
    Funding rate expressed per a specific settlement period.

    ``rate_percent`` is in percent (0.01 means 0.01%), paid once every
    ``interval_seconds``.
    """

    rate_percent: float
    interval_seconds: int

    def normalized(self, target_interval_seconds: int) -> float:
        """Re-express this rate over another interval."""
        from fundarb.funding.rates import normalize_rate

        return normalize_rate(self.rate_percent, self.interval_seconds, target_interval_seconds)


@dataclass(slots=True, frozen=True)
class VenueQuote:
    """One venue's view of a perpetual contract."""

    symbol: str
    price: float
    rate: RateQuote
    funding_time: str | None = None
    volume_24h: float = 0.0
    name: str = ""

    @property
    def rate_percent(self) -> float:
        return self.rate.rate_percent

    @property
    def interval_seconds(self) -> int:
        return self.rate.interval_seconds


# =============================================================================
# Simulation Types
# =============================================================================


@dataclass(slots=True, frozen=True)
class TimelineEvent:
    """
    Snapshot of the simulated position after one event.

    All amounts are percentages of notional. ``spread_profit`` is only
    non-zero on the OPEN event.
    """

    timestamp_ms: int
    source: EventSource
    venue_a_funding: float
    venue_b_funding: float
    net_funding: float
    spread_profit: float
    cumulative_profit: float
    venue_a_cumulative: float
    venue_b_cumulative: float

    @property
    def net_profit(self) -> float:
        """Profit contributed by this event alone."""
        return self.net_funding + self.spread_profit


@dataclass(slots=True, frozen=True)
class Timeline:
    """Projected cash flow of a hedged position over the simulation horizon."""

    events: tuple[TimelineEvent, ...]
    locked_spread_profit: float
    price_diff_percent: float
    direction: Direction
    simulate_days: int
    final_profit: float
    venue_a_total_funding: float
    venue_b_total_funding: float

    def count(self, source: EventSource) -> int:
        """Number of events from a given source."""
        return sum(1 for e in self.events if e.source == source)


@dataclass(slots=True, frozen=True)
class ProfitEstimate:
    """Flat daily-rate profit estimate for a notional position."""

    venue_a_daily_rate: float
    venue_b_daily_rate: float
    daily_diff: float
    annualized_rate: float
    daily_profit: float
    total_profit: float
    holding_days: int
    position_size: float


# =============================================================================
# Opportunity Types
# =============================================================================


@dataclass(slots=True, frozen=True)
class Opportunity:
    """
    Funding arbitrage opportunity for one symbol listed on both venues.

    Rates are percentages; ``*_8h_rate`` / ``*_daily_rate`` /
    ``*_annual_rate`` are the venue's rate normalized to that period.
    """

    symbol: str
    venue_a: VenueQuote
    venue_b: VenueQuote
    venue_a_8h_rate: float
    venue_b_8h_rate: float
    venue_a_daily_rate: float
    venue_b_daily_rate: float
    venue_a_annual_rate: float
    venue_b_annual_rate: float
    rate_diff_8h: float
    annual_diff: float
    strategy: str
    direction: Direction
    profit: ProfitEstimate
    timeline: Timeline

    @property
    def has_direction(self) -> bool:
        """Check if the rate difference cleared the threshold."""
        return self.direction != Direction.NONE

    @property
    def final_profit(self) -> float:
        """Simulated profit over the horizon, in percent."""
        return self.timeline.final_profit


# =============================================================================
# Protocols (Interfaces)
# =============================================================================


class QuoteSource(Protocol):
    """Protocol for venue clients feeding the aggregator."""

    @property
    def name(self) -> str:
        """Human-readable venue name."""
        ...

    async def fetch_quotes(self) -> list[VenueQuote]:
        """Fetch the current quote for every listed perpetual."""
        ...
