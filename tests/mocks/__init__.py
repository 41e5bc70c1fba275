"""Mock implementations for testing."""

from tests.mocks.browser import MockBrowserSocket, MockFetchTransport, rpc_response
from tests.mocks.venues import MIDNIGHT_MS, FakeQuoteSource, make_opportunity, make_quote


__all__ = [
    "MIDNIGHT_MS",
    "FakeQuoteSource",
    "MockBrowserSocket",
    "MockFetchTransport",
    "make_opportunity",
    "make_quote",
    "rpc_response",
]
