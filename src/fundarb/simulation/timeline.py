"""
Arbitrage timeline simulator.

Projects the cash flow of a delta-neutral position (short one venue, long
the other) over a horizon: the price spread locked in at open, then every
funding settlement on either venue in chronological order.

Sign convention: a positive funding rate means longs pay shorts. The short
leg therefore receives ``+rate`` at each of its venue's settlements and the
long leg pays ``-rate`` at each of its venue's settlements.
"""

import logging

from fundarb.config.constants import DAY_SECONDS
from fundarb.core.types import (
    Direction,
    EventSource,
    RateQuote,
    Timeline,
    TimelineEvent,
)
from fundarb.funding.rates import next_aligned_settlement
from fundarb.utils.time import get_timestamp_ms


logger = logging.getLogger(__name__)

# Simultaneous settlements are applied venue A first
_SOURCE_ORDER = {EventSource.VENUE_A: 0, EventSource.VENUE_B: 1}


def spread_capture(venue_a_price: float, venue_b_price: float, direction: Direction) -> tuple[float, float]:
    """
    Compute the price spread captured at open.

    Shorting the more expensive venue profits when prices converge.

    Returns:
        Tuple of (raw A-vs-B price difference %, locked profit %).
    """
    price_diff_pct = (venue_a_price - venue_b_price) / venue_b_price * 100.0

    if direction == Direction.SHORT_A:
        return price_diff_pct, price_diff_pct
    if direction == Direction.SHORT_B:
        return price_diff_pct, -price_diff_pct
    return price_diff_pct, 0.0


def settlement_times(now_ms: int, end_ms: int, interval_seconds: int) -> list[int]:
    """
    List a venue's settlement instants in ``(now_ms, end_ms]``.

    Args:
        now_ms: Simulation start.
        end_ms: Simulation end (inclusive).
        interval_seconds: Venue settlement interval.
    """
    times: list[int] = []
    step_ms = interval_seconds * 1000
    t = next_aligned_settlement(now_ms, interval_seconds)
    while t <= end_ms:
        times.append(t)
        t += step_ms
    return times


def funding_delta(source: EventSource, rate_percent: float, direction: Direction) -> float:
    """
    Funding received (positive) or paid (negative) at one settlement.

    Args:
        source: Venue that is settling.
        rate_percent: That venue's rate per settlement.
        direction: Position direction.
    """
    if direction == Direction.NONE:
        return 0.0

    short_venue = EventSource.VENUE_A if direction == Direction.SHORT_A else EventSource.VENUE_B
    return rate_percent if source == short_venue else -rate_percent


def simulate_timeline(
    venue_a_price: float,
    venue_b_price: float,
    venue_a_rate: RateQuote,
    venue_b_rate: RateQuote,
    direction: Direction,
    simulate_days: int = 1,
    now_ms: int | None = None,
) -> Timeline:
    """
    Build the event timeline for a hedged position.

    The result is deterministic for a given ``now_ms``; pin it for
    reproducible output.

    Args:
        venue_a_price: Venue A mark price.
        venue_b_price: Venue B mark price.
        venue_a_rate: Venue A funding rate and interval.
        venue_b_rate: Venue B funding rate and interval.
        direction: Which venue is shorted, or NONE.
        simulate_days: Horizon in days.
        now_ms: Position open time, defaults to the current time.

    Returns:
        Timeline with the OPEN event followed by every settlement in the
        horizon. For ``Direction.NONE`` the settlements are still listed
        (with zero deltas) so every symbol renders the same way.
    """
    now_ms = get_timestamp_ms() if now_ms is None else now_ms
    end_ms = now_ms + simulate_days * DAY_SECONDS * 1000

    price_diff_pct, locked_spread = spread_capture(venue_a_price, venue_b_price, direction)

    events: list[TimelineEvent] = [
        TimelineEvent(
            timestamp_ms=now_ms,
            source=EventSource.OPEN,
            venue_a_funding=0.0,
            venue_b_funding=0.0,
            net_funding=0.0,
            spread_profit=locked_spread,
            cumulative_profit=locked_spread,
            venue_a_cumulative=0.0,
            venue_b_cumulative=0.0,
        )
    ]

    schedule: list[tuple[int, EventSource, float]] = [
        (t, EventSource.VENUE_A, venue_a_rate.rate_percent)
        for t in settlement_times(now_ms, end_ms, venue_a_rate.interval_seconds)
    ]
    schedule.extend(
        (t, EventSource.VENUE_B, venue_b_rate.rate_percent)
        for t in settlement_times(now_ms, end_ms, venue_b_rate.interval_seconds)
    )
    schedule.sort(key=lambda item: (item[0], _SOURCE_ORDER[item[1]]))

    cumulative = locked_spread
    a_cumulative = 0.0
    b_cumulative = 0.0

    for timestamp_ms, source, rate in schedule:
        delta = funding_delta(source, rate, direction)

        if source == EventSource.VENUE_A:
            a_funding, b_funding = delta, 0.0
            a_cumulative += delta
        else:
            a_funding, b_funding = 0.0, delta
            b_cumulative += delta

        cumulative += delta

        events.append(
            TimelineEvent(
                timestamp_ms=timestamp_ms,
                source=source,
                venue_a_funding=a_funding,
                venue_b_funding=b_funding,
                net_funding=delta,
                spread_profit=0.0,
                cumulative_profit=cumulative,
                venue_a_cumulative=a_cumulative,
                venue_b_cumulative=b_cumulative,
            )
        )

    return Timeline(
        events=tuple(events),
        locked_spread_profit=locked_spread,
        price_diff_percent=price_diff_pct,
        direction=direction,
        simulate_days=simulate_days,
        final_profit=cumulative,
        venue_a_total_funding=a_cumulative,
        venue_b_total_funding=b_cumulative,
    )
