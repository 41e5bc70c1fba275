"""
Opportunity aggregation.

Collects quotes from both venues, joins them by symbol and ranks the
resulting opportunities. Results are cached for a short TTL; concurrent
requests during a refresh share the same in-flight fetch.
"""

import asyncio
import logging
import math
from collections.abc import Callable, Coroutine
from typing import Any

from fundarb.config.constants import DEFAULT_CACHE_TTL
from fundarb.core.exceptions import AggregationError
from fundarb.core.types import Opportunity, QuoteSource, SortMode, VenueQuote
from fundarb.strategy.builder import OpportunityBuilder
from fundarb.utils.time import get_timestamp_ms, to_iso


logger = logging.getLogger(__name__)


# Type alias for refresh callbacks
RefreshCallback = Callable[[list[Opportunity]], Coroutine[Any, Any, None]]


def _rank_key(value: float) -> float:
    # NaN sorts last
    return math.inf if math.isnan(value) else -abs(value)


def sort_opportunities(opportunities: list[Opportunity], mode: SortMode) -> list[Opportunity]:
    """
    Sort descending by absolute ranking value, keeping input order on ties.

    Args:
        opportunities: Unsorted opportunities.
        mode: ``FINAL_PROFIT`` ranks by simulated profit, ``ANNUAL_DIFF``
            by annualized rate difference.
    """
    if mode == SortMode.ANNUAL_DIFF:
        return sorted(opportunities, key=lambda o: _rank_key(o.annual_diff))
    return sorted(opportunities, key=lambda o: _rank_key(o.final_profit))


class _VenueState:
    """Last good quotes from one venue."""

    __slots__ = ("source", "quotes", "refreshed_ms", "last_error")

    def __init__(self, source: QuoteSource) -> None:
        self.source = source
        self.quotes: list[VenueQuote] | None = None
        self.refreshed_ms: int | None = None
        self.last_error: str | None = None


class OpportunityAggregator:
    """
    Builds and caches the ranked opportunity list.

    Features:
    - TTL cache with a shared in-flight refresh
    - Independent venue fetches; a failed venue falls back to its last
      good quotes
    - Per-symbol error isolation
    - Async callbacks after each successful refresh
    """

    def __init__(
        self,
        venue_a: QuoteSource,
        venue_b: QuoteSource,
        builder: OpportunityBuilder | None = None,
        cache_ttl: float = DEFAULT_CACHE_TTL,
        sort_mode: SortMode = SortMode.FINAL_PROFIT,
        clock: Callable[[], int] = get_timestamp_ms,
    ) -> None:
        """
        Initialize the aggregator.

        Args:
            venue_a: Venue A quote source.
            venue_b: Venue B quote source.
            builder: Per-symbol opportunity builder.
            cache_ttl: Seconds a result is served without refetching.
            sort_mode: Ranking key.
            clock: Millisecond clock, injectable for tests.
        """
        self._venue_a = _VenueState(venue_a)
        self._venue_b = _VenueState(venue_b)
        self._builder = builder or OpportunityBuilder()
        self._cache_ttl_ms = cache_ttl * 1000
        self._sort_mode = sort_mode
        self._clock = clock

        self._cache: list[Opportunity] | None = None
        self._fetched_at_ms = 0
        self._inflight: asyncio.Task[list[Opportunity]] | None = None
        self._callbacks: list[RefreshCallback] = []

        self._refresh_count = 0
        self._skipped_symbols = 0

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def sort_mode(self) -> SortMode:
        return self._sort_mode

    @property
    def refresh_count(self) -> int:
        """Number of completed refreshes (upstream fetch cycles)."""
        return self._refresh_count

    @property
    def venue_a_refreshed_ms(self) -> int | None:
        """Time venue A last returned data."""
        return self._venue_a.refreshed_ms

    @property
    def venue_b_refreshed_ms(self) -> int | None:
        """Time venue B last returned data."""
        return self._venue_b.refreshed_ms

    def latest(self) -> list[Opportunity]:
        """Get the last computed list without triggering a fetch."""
        return self._cache if self._cache is not None else []

    def add_refresh_callback(self, callback: RefreshCallback) -> None:
        """Register an async callback invoked with each refreshed list."""
        self._callbacks.append(callback)

    def remove_refresh_callback(self, callback: RefreshCallback) -> None:
        """Unregister a callback."""
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    # =========================================================================
    # Retrieval
    # =========================================================================

    async def get_opportunities(self, force: bool = False) -> list[Opportunity]:
        """
        Get the ranked opportunity list.

        Within the TTL the cached list object is returned unchanged. A
        refresh already in progress is joined rather than duplicated.

        Args:
            force: Ignore the TTL.

        Raises:
            AggregationError: Both venues are empty and nothing is cached.
        """
        now = self._clock()
        if not force and self._cache is not None and now - self._fetched_at_ms < self._cache_ttl_ms:
            return self._cache

        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.create_task(self._refresh(now))

        # Shielded so one caller giving up does not cancel the shared fetch
        return await asyncio.shield(self._inflight)

    async def snapshot(self, force: bool = False) -> dict[str, Any]:
        """
        Get the dashboard payload.

        Returns:
            Dict with ``opportunities`` and the ISO time each venue last
            returned data (None if never).
        """
        opportunities = await self.get_opportunities(force=force)
        return {
            "opportunities": opportunities,
            "venueARefreshISO": to_iso(self._venue_a.refreshed_ms),
            "venueBRefreshISO": to_iso(self._venue_b.refreshed_ms),
        }

    def status(self) -> dict[str, Any]:
        """Get cache and venue health for display."""
        age_ms = self._clock() - self._fetched_at_ms if self._cache is not None else None
        return {
            "cached": self._cache is not None,
            "cacheAgeSeconds": age_ms / 1000 if age_ms is not None else None,
            "opportunityCount": len(self._cache) if self._cache is not None else 0,
            "refreshCount": self._refresh_count,
            "skippedSymbols": self._skipped_symbols,
            "refreshing": self._inflight is not None and not self._inflight.done(),
            "venueAError": self._venue_a.last_error,
            "venueBError": self._venue_b.last_error,
            "venueARefreshISO": to_iso(self._venue_a.refreshed_ms),
            "venueBRefreshISO": to_iso(self._venue_b.refreshed_ms),
        }

    async def run_periodic(self, interval: float) -> None:
        """
        Force a refresh every ``interval`` seconds until cancelled.

        Failures are logged and the loop continues.
        """
        logger.info(f"[AUTO] Periodic refresh every {interval:.0f}s")
        while True:
            await asyncio.sleep(interval)
            try:
                opportunities = await self.get_opportunities(force=True)
                logger.info(f"[AUTO] Refresh complete: {len(opportunities)} pairs")
            except Exception as e:
                logger.error(f"[AUTO] Periodic refresh failed: {e}")

    # =========================================================================
    # Refresh
    # =========================================================================

    async def _refresh(self, started_ms: int) -> list[Opportunity]:
        """Fetch both venues and rebuild the list."""
        results = await asyncio.gather(
            self._venue_a.source.fetch_quotes(),
            self._venue_b.source.fetch_quotes(),
            return_exceptions=True,
        )

        a_quotes = self._resolve(self._venue_a, results[0])
        b_quotes = self._resolve(self._venue_b, results[1])

        if not a_quotes and not b_quotes:
            if self._cache is not None:
                logger.error("[Aggregator] Both venues returned nothing, serving cached list")
                return self._cache
            raise AggregationError(
                f"No data from either venue (A: {self._venue_a.last_error or 'empty'}, "
                f"B: {self._venue_b.last_error or 'empty'})"
            )
        if not a_quotes or not b_quotes:
            logger.warning(
                f"[Aggregator] One venue has no quotes (A: {len(a_quotes)}, B: {len(b_quotes)}), "
                "no pairs can be matched"
            )

        opportunities = sort_opportunities(self._join(a_quotes, b_quotes, started_ms), self._sort_mode)

        self._cache = opportunities
        self._fetched_at_ms = started_ms
        self._refresh_count += 1

        logger.info(
            f"[Aggregator] {len(opportunities)} pairs "
            f"({sum(1 for o in opportunities if o.has_direction)} with a direction)"
        )

        await self._notify(opportunities)
        return opportunities

    def _resolve(self, state: _VenueState, result: list[VenueQuote] | BaseException) -> list[VenueQuote]:
        """Accept fresh quotes, or fall back to the venue's last good quotes."""
        name = state.source.name

        if isinstance(result, BaseException):
            if not isinstance(result, Exception):
                raise result

            state.last_error = str(result) or type(result).__name__
            if state.quotes is not None:
                logger.warning(f"[Aggregator] {name} failed ({state.last_error}), using last good quotes")
                return state.quotes

            logger.error(f"[Aggregator] {name} failed with no cached quotes: {state.last_error}")
            return []

        state.quotes = result
        state.refreshed_ms = self._clock()
        state.last_error = None
        return result

    def _join(self, a_quotes: list[VenueQuote], b_quotes: list[VenueQuote], now_ms: int) -> list[Opportunity]:
        """Build an opportunity for every symbol listed on both venues."""
        b_by_symbol = {q.symbol: q for q in b_quotes}
        opportunities: list[Opportunity] = []
        skipped = 0

        for a_quote in a_quotes:
            b_quote = b_by_symbol.get(a_quote.symbol)
            if b_quote is None:
                continue

            try:
                opportunities.append(self._builder.build(a_quote, b_quote, now_ms=now_ms))
            except (ArithmeticError, ValueError) as e:
                skipped += 1
                logger.warning(f"[Aggregator] Skipping {a_quote.symbol}: {e}")

        self._skipped_symbols = skipped
        return opportunities

    async def _notify(self, opportunities: list[Opportunity]) -> None:
        """Invoke refresh callbacks; errors are logged, never raised."""
        for callback in self._callbacks:
            try:
                await callback(opportunities)
            except Exception as e:
                logger.error(f"[Aggregator] Refresh callback error: {e}")
