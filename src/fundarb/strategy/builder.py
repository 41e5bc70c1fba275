"""
Per-symbol opportunity construction.

Turns a matched pair of venue quotes into an ``Opportunity``: rates on a
common 8h basis, the direction decision, annualized figures, the flat
profit estimate and the simulated timeline.
"""

import logging

from fundarb.config.constants import (
    DEFAULT_POSITION_SIZE,
    DEFAULT_RATE_DIFF_THRESHOLD,
    DEFAULT_SIMULATE_DAYS,
    VENUE_A_NAME,
    VENUE_B_NAME,
)
from fundarb.core.types import Direction, Opportunity, VenueQuote
from fundarb.funding.rates import (
    estimate_profit,
    to_annual_rate,
    to_daily_rate,
    to_eight_hour_rate,
)
from fundarb.simulation.timeline import simulate_timeline


logger = logging.getLogger(__name__)


def strategy_label(direction: Direction) -> str:
    """Human-readable description of the hedge for a direction."""
    if direction == Direction.SHORT_A:
        return f"Short {VENUE_A_NAME} + Long {VENUE_B_NAME}"
    if direction == Direction.SHORT_B:
        return f"Short {VENUE_B_NAME} + Long {VENUE_A_NAME}"
    return "No arbitrage"


def choose_direction(rate_diff_8h: float, threshold: float) -> Direction:
    """
    Pick the short venue from the 8h rate difference (A minus B).

    The venue paying the higher rate is shorted. Differences within
    ``threshold`` (inclusive) yield no direction.
    """
    if rate_diff_8h > threshold:
        return Direction.SHORT_A
    if rate_diff_8h < -threshold:
        return Direction.SHORT_B
    return Direction.NONE


class OpportunityBuilder:
    """
    Builds opportunities from matched venue quotes.

    Stateless apart from its configuration; safe to share.
    """

    __slots__ = ("_threshold", "_simulate_days", "_position_size")

    def __init__(
        self,
        rate_diff_threshold: float = DEFAULT_RATE_DIFF_THRESHOLD,
        simulate_days: int = DEFAULT_SIMULATE_DAYS,
        position_size: float = DEFAULT_POSITION_SIZE,
    ) -> None:
        """
        Initialize the builder.

        Args:
            rate_diff_threshold: 8h rate difference (percentage points)
                required to choose a direction.
            simulate_days: Timeline horizon.
            position_size: Notional for the profit estimate.
        """
        self._threshold = rate_diff_threshold
        self._simulate_days = simulate_days
        self._position_size = position_size

    @property
    def rate_diff_threshold(self) -> float:
        return self._threshold

    def build(self, venue_a: VenueQuote, venue_b: VenueQuote, now_ms: int | None = None) -> Opportunity:
        """
        Build the opportunity for one symbol.

        Args:
            venue_a: Venue A quote.
            venue_b: Venue B quote for the same symbol.
            now_ms: Timeline start, defaults to the current time.

        Returns:
            Fully computed opportunity.
        """
        a_8h = to_eight_hour_rate(venue_a.rate_percent, venue_a.interval_seconds)
        b_8h = to_eight_hour_rate(venue_b.rate_percent, venue_b.interval_seconds)
        a_annual = to_annual_rate(venue_a.rate_percent, venue_a.interval_seconds)
        b_annual = to_annual_rate(venue_b.rate_percent, venue_b.interval_seconds)

        rate_diff_8h = a_8h - b_8h
        direction = choose_direction(rate_diff_8h, self._threshold)

        timeline = simulate_timeline(
            venue_a_price=venue_a.price,
            venue_b_price=venue_b.price,
            venue_a_rate=venue_a.rate,
            venue_b_rate=venue_b.rate,
            direction=direction,
            simulate_days=self._simulate_days,
            now_ms=now_ms,
        )

        return Opportunity(
            symbol=venue_a.symbol,
            venue_a=venue_a,
            venue_b=venue_b,
            venue_a_8h_rate=a_8h,
            venue_b_8h_rate=b_8h,
            venue_a_daily_rate=to_daily_rate(venue_a.rate_percent, venue_a.interval_seconds),
            venue_b_daily_rate=to_daily_rate(venue_b.rate_percent, venue_b.interval_seconds),
            venue_a_annual_rate=a_annual,
            venue_b_annual_rate=b_annual,
            rate_diff_8h=rate_diff_8h,
            annual_diff=a_annual - b_annual,
            strategy=strategy_label(direction),
            direction=direction,
            profit=estimate_profit(
                venue_a.rate,
                venue_b.rate,
                position_size=self._position_size,
                holding_days=self._simulate_days,
            ),
            timeline=timeline,
        )
