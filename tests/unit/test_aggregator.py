"""
Unit tests for OpportunityAggregator.

Tests caching, the shared in-flight refresh, venue fallback, ranking and
refresh callbacks.
"""

import asyncio
import math

import pytest

from fundarb.core.exceptions import AggregationError, UpstreamHttpError
from fundarb.core.types import Direction, Opportunity, SortMode
from fundarb.strategy.aggregator import OpportunityAggregator, sort_opportunities
from tests.mocks import FakeQuoteSource, make_opportunity, make_quote


class TestSortOpportunities:
    """Tests for ranking."""

    def test_final_profit_by_magnitude(self) -> None:
        """Test ranking by absolute simulated profit."""
        opps = [
            make_opportunity("A", final_profit=0.1),
            make_opportunity("B", final_profit=-0.5),
            make_opportunity("C", final_profit=0.3),
        ]

        ranked = sort_opportunities(opps, SortMode.FINAL_PROFIT)
        assert [o.symbol for o in ranked] == ["B", "C", "A"]

    def test_annual_diff_mode(self) -> None:
        """Test ranking by absolute annualized difference."""
        opps = [
            make_opportunity("A", final_profit=1.0, annual_diff=5.0),
            make_opportunity("B", final_profit=0.0, annual_diff=-40.0),
        ]

        ranked = sort_opportunities(opps, SortMode.ANNUAL_DIFF)
        assert [o.symbol for o in ranked] == ["B", "A"]

    def test_stable_and_nan_last(self) -> None:
        """Test ties keep input order and NaN sorts last."""
        opps = [
            make_opportunity("NAN", final_profit=math.nan),
            make_opportunity("X", final_profit=0.2),
            make_opportunity("Y", final_profit=-0.2),
        ]

        ranked = sort_opportunities(opps, SortMode.FINAL_PROFIT)
        assert [o.symbol for o in ranked] == ["X", "Y", "NAN"]


class TestGetOpportunities:
    """Tests for retrieval and caching."""

    @pytest.mark.asyncio
    async def test_joins_common_symbols(self, aggregator: OpportunityAggregator) -> None:
        """Test only symbols on both venues produce opportunities."""
        opps = await aggregator.get_opportunities()

        assert {o.symbol for o in opps} == {"BTC", "ETH"}
        assert aggregator.refresh_count == 1

    @pytest.mark.asyncio
    async def test_sorted_by_final_profit(self, aggregator: OpportunityAggregator) -> None:
        """Test default ranking is by simulated profit magnitude."""
        opps = await aggregator.get_opportunities()

        profits = [abs(o.final_profit) for o in opps]
        assert profits == sorted(profits, reverse=True)

    @pytest.mark.asyncio
    async def test_ttl_returns_same_list(
        self,
        aggregator: OpportunityAggregator,
        source_a: FakeQuoteSource,
        clock: list[int],
    ) -> None:
        """Test calls within the TTL return the identical cached list."""
        first = await aggregator.get_opportunities()
        clock[0] += 29_000
        second = await aggregator.get_opportunities()

        assert second is first
        assert source_a.calls == 1

    @pytest.mark.asyncio
    async def test_ttl_expiry_refetches(
        self,
        aggregator: OpportunityAggregator,
        source_a: FakeQuoteSource,
        clock: list[int],
    ) -> None:
        """Test an expired cache triggers a new fetch."""
        first = await aggregator.get_opportunities()
        clock[0] += 30_000
        second = await aggregator.get_opportunities()

        assert second is not first
        assert source_a.calls == 2

    @pytest.mark.asyncio
    async def test_force_bypasses_ttl(self, aggregator: OpportunityAggregator, source_b: FakeQuoteSource) -> None:
        """Test force=True refetches even when fresh."""
        await aggregator.get_opportunities()
        await aggregator.get_opportunities(force=True)

        assert source_b.calls == 2

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_refresh(
        self,
        aggregator: OpportunityAggregator,
        source_a: FakeQuoteSource,
        source_b: FakeQuoteSource,
    ) -> None:
        """Test simultaneous requests trigger a single upstream fetch."""
        source_a.delay = 0.05

        results = await asyncio.gather(*(aggregator.get_opportunities() for _ in range(5)))

        assert source_a.calls == 1
        assert source_b.calls == 1
        assert all(r is results[0] for r in results)
        assert aggregator.refresh_count == 1

    @pytest.mark.asyncio
    async def test_cancelled_caller_does_not_cancel_refresh(
        self, aggregator: OpportunityAggregator, source_a: FakeQuoteSource
    ) -> None:
        """Test one caller giving up leaves the shared fetch running."""
        source_a.delay = 0.05

        impatient = asyncio.create_task(aggregator.get_opportunities())
        patient = asyncio.create_task(aggregator.get_opportunities())
        await asyncio.sleep(0.01)
        impatient.cancel()

        opps = await patient
        assert len(opps) == 2
        assert source_a.calls == 1


class TestFallback:
    """Tests for venue failure handling."""

    @pytest.mark.asyncio
    async def test_failed_venue_uses_last_good_quotes(
        self,
        aggregator: OpportunityAggregator,
        source_a: FakeQuoteSource,
    ) -> None:
        """Test a failing venue falls back to its previous quotes."""
        first = await aggregator.get_opportunities()
        a_refreshed = aggregator.venue_a_refreshed_ms

        source_a.error = UpstreamHttpError("boom")
        second = await aggregator.get_opportunities(force=True)

        assert {o.symbol for o in second} == {o.symbol for o in first}
        assert aggregator.venue_a_refreshed_ms == a_refreshed
        assert aggregator.status()["venueAError"] == "boom"

    @pytest.mark.asyncio
    async def test_one_venue_never_succeeded(self, source_b: FakeQuoteSource, clock: list[int]) -> None:
        """Test a venue with no data yields an empty list, not an error."""
        aggregator = OpportunityAggregator(
            venue_a=FakeQuoteSource("Variational", error=UpstreamHttpError("down")),
            venue_b=source_b,
            clock=lambda: clock[0],
        )

        assert await aggregator.get_opportunities() == []
        assert aggregator.venue_a_refreshed_ms is None
        assert aggregator.venue_b_refreshed_ms == clock[0]

    @pytest.mark.asyncio
    async def test_both_fail_without_cache(self, clock: list[int]) -> None:
        """Test AggregationError when nothing was ever fetched."""
        aggregator = OpportunityAggregator(
            venue_a=FakeQuoteSource("Variational", error=UpstreamHttpError("a down")),
            venue_b=FakeQuoteSource("Binance", error=UpstreamHttpError("b down")),
            clock=lambda: clock[0],
        )

        with pytest.raises(AggregationError, match="a down"):
            await aggregator.get_opportunities()

    @pytest.mark.asyncio
    async def test_bad_symbol_is_skipped(
        self,
        source_a: FakeQuoteSource,
        source_b: FakeQuoteSource,
        clock: list[int],
    ) -> None:
        """Test one symbol failing to build does not sink the list."""
        source_a.quotes.append(make_quote("ZERO", price=1.0))
        source_b.quotes.append(make_quote("ZERO", price=0.0))
        aggregator = OpportunityAggregator(source_a, source_b, clock=lambda: clock[0])

        opps = await aggregator.get_opportunities()

        assert "ZERO" not in {o.symbol for o in opps}
        assert len(opps) == 2
        assert aggregator.status()["skippedSymbols"] == 1


class TestCallbacksAndStatus:
    """Tests for refresh callbacks, snapshots and status."""

    @pytest.mark.asyncio
    async def test_callback_receives_list(self, aggregator: OpportunityAggregator) -> None:
        """Test callbacks run after each refresh with the new list."""
        received: list[list[Opportunity]] = []

        async def on_refresh(opps: list[Opportunity]) -> None:
            received.append(opps)

        aggregator.add_refresh_callback(on_refresh)
        opps = await aggregator.get_opportunities()

        assert received == [opps]

    @pytest.mark.asyncio
    async def test_callback_error_isolated(self, aggregator: OpportunityAggregator) -> None:
        """Test a failing callback neither breaks the refresh nor later callbacks."""
        calls: list[str] = []

        async def broken(opps: list[Opportunity]) -> None:
            raise RuntimeError("callback failed")

        async def healthy(opps: list[Opportunity]) -> None:
            calls.append("ok")

        aggregator.add_refresh_callback(broken)
        aggregator.add_refresh_callback(healthy)

        assert len(await aggregator.get_opportunities()) == 2
        assert calls == ["ok"]

    @pytest.mark.asyncio
    async def test_remove_callback(self, aggregator: OpportunityAggregator) -> None:
        """Test removed callbacks are not called."""
        calls: list[int] = []

        async def on_refresh(opps: list[Opportunity]) -> None:
            calls.append(len(opps))

        aggregator.add_refresh_callback(on_refresh)
        aggregator.remove_refresh_callback(on_refresh)
        await aggregator.get_opportunities()

        assert calls == []

    @pytest.mark.asyncio
    async def test_snapshot(self, aggregator: OpportunityAggregator) -> None:
        """Test the dashboard payload carries ISO refresh times."""
        snapshot = await aggregator.snapshot()

        assert len(snapshot["opportunities"]) == 2
        assert snapshot["venueARefreshISO"] == "2024-01-01T00:00:00Z"
        assert snapshot["venueBRefreshISO"] == "2024-01-01T00:00:00Z"

    @pytest.mark.asyncio
    async def test_latest_does_not_fetch(self, aggregator: OpportunityAggregator, source_a: FakeQuoteSource) -> None:
        """Test latest() only reads the cache."""
        assert aggregator.latest() == []
        assert source_a.calls == 0

        opps = await aggregator.get_opportunities()
        assert aggregator.latest() is opps

    @pytest.mark.asyncio
    async def test_status(self, aggregator: OpportunityAggregator, clock: list[int]) -> None:
        """Test status reflects the cache."""
        assert aggregator.status()["cached"] is False

        await aggregator.get_opportunities()
        clock[0] += 5_000
        status = aggregator.status()

        assert status["cached"] is True
        assert status["cacheAgeSeconds"] == pytest.approx(5.0)
        assert status["opportunityCount"] == 2
        assert status["refreshing"] is False

    @pytest.mark.asyncio
    async def test_btc_direction(self, aggregator: OpportunityAggregator) -> None:
        """Test the sample BTC pair shorts venue A."""
        opps = {o.symbol: o for o in await aggregator.get_opportunities()}

        assert opps["BTC"].direction == Direction.SHORT_A
        assert opps["BTC"].timeline.events[0].timestamp_ms == 1704067200000
