"""
Pytest configuration and shared fixtures.

Provides reusable test fixtures for all test modules.
"""

from collections.abc import AsyncIterator

import pytest
import pytest_asyncio

from fundarb.core.types import VenueQuote
from fundarb.relay.server import BrowserConnection, BrowserRelay
from fundarb.strategy.aggregator import OpportunityAggregator
from fundarb.strategy.builder import OpportunityBuilder
from tests.mocks import MIDNIGHT_MS, FakeQuoteSource, MockBrowserSocket, make_quote


# =============================================================================
# Quote Fixtures
# =============================================================================


@pytest.fixture
def now_ms() -> int:
    """Pinned simulation start (UTC midnight)."""
    return MIDNIGHT_MS


@pytest.fixture
def quote_a_btc() -> VenueQuote:
    """Venue A BTC: 0.01% hourly."""
    return make_quote("BTC", price=100.0, rate_percent=0.01, interval_seconds=3600)


@pytest.fixture
def quote_b_btc() -> VenueQuote:
    """Venue B BTC: 0.02% every 8h."""
    return make_quote("BTC", price=99.0, rate_percent=0.02, interval_seconds=28800)


@pytest.fixture
def venue_a_quotes(quote_a_btc: VenueQuote) -> list[VenueQuote]:
    """Venue A listing: BTC, ETH and a symbol absent from venue B."""
    return [
        quote_a_btc,
        make_quote("ETH", price=3000.0, rate_percent=0.001, interval_seconds=3600),
        make_quote("ONLYA", price=1.0, rate_percent=0.05, interval_seconds=3600),
    ]


@pytest.fixture
def venue_b_quotes(quote_b_btc: VenueQuote) -> list[VenueQuote]:
    """Venue B listing: BTC, ETH and a symbol absent from venue A."""
    return [
        quote_b_btc,
        make_quote("ETH", price=3000.0, rate_percent=0.01, interval_seconds=28800),
        make_quote("ONLYB", price=2.0, rate_percent=0.01, interval_seconds=28800),
    ]


# =============================================================================
# Aggregation Fixtures
# =============================================================================


@pytest.fixture
def source_a(venue_a_quotes: list[VenueQuote]) -> FakeQuoteSource:
    """Venue A source returning the sample listing."""
    return FakeQuoteSource("Variational", quotes=venue_a_quotes)


@pytest.fixture
def source_b(venue_b_quotes: list[VenueQuote]) -> FakeQuoteSource:
    """Venue B source returning the sample listing."""
    return FakeQuoteSource("Binance", quotes=venue_b_quotes)


@pytest.fixture
def builder() -> OpportunityBuilder:
    """Builder with default threshold, one-day horizon."""
    return OpportunityBuilder(rate_diff_threshold=0.01, simulate_days=1, position_size=10_000.0)


@pytest.fixture
def clock() -> list[int]:
    """Mutable millisecond clock; tests advance ``clock[0]``."""
    return [MIDNIGHT_MS]


@pytest.fixture
def aggregator(
    source_a: FakeQuoteSource,
    source_b: FakeQuoteSource,
    builder: OpportunityBuilder,
    clock: list[int],
) -> OpportunityAggregator:
    """Aggregator over the fake sources with a 30s TTL and manual clock."""
    return OpportunityAggregator(
        venue_a=source_a,
        venue_b=source_b,
        builder=builder,
        cache_ttl=30.0,
        clock=lambda: clock[0],
    )


# =============================================================================
# Relay Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def relay() -> AsyncIterator[BrowserRelay]:
    """Relay that is never bound to a port; sockets are attached directly."""
    relay = BrowserRelay(ping_interval=60.0, pong_timeout=10.0, rpc_timeout=5.0)
    yield relay
    await relay.stop()


@pytest.fixture
def browser_socket() -> MockBrowserSocket:
    """Fresh mock browser socket."""
    return MockBrowserSocket()


@pytest_asyncio.fixture
async def connection(relay: BrowserRelay, browser_socket: MockBrowserSocket) -> BrowserConnection:
    """Mock socket adopted as the relay's browser connection."""
    return relay._adopt(browser_socket, "127.0.0.1")  # type: ignore[arg-type]
