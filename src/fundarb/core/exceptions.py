"""
Exception hierarchy for the funding arbitrage monitor.

Relay errors are raised to RPC callers; upstream errors are raised by the
venue clients and absorbed by the aggregator's cache fallback.
"""


class FundArbError(Exception):
    """Base exception for all monitor errors."""


# =============================================================================
# Relay
# =============================================================================


class RelayError(FundArbError):
    """Base exception for browser relay failures."""


class ConnectionUnavailableError(RelayError):
    """No browser is attached to the relay."""


class RequestTimeoutError(RelayError):
    """A relayed request received no response before its deadline."""

    def __init__(self, request_id: int, timeout: float) -> None:
        super().__init__(f"Request {request_id} timed out after {timeout:.1f}s")
        self.request_id = request_id
        self.timeout = timeout


class PeerDisconnectedError(RelayError):
    """The browser connection was torn down while the request was in flight."""


class RemoteCallError(RelayError):
    """The browser executed the request and reported an error."""

    def __init__(self, request_id: int, message: str) -> None:
        super().__init__(message)
        self.request_id = request_id


class WaitTimeoutError(RelayError):
    """No browser connected within the requested wait."""


class MalformedFrameError(RelayError):
    """An inbound frame could not be parsed into a known message."""


# =============================================================================
# Venues & Aggregation
# =============================================================================


class UpstreamHttpError(FundArbError):
    """A venue answered with a non-2xx status or an unusable body."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class AggregationError(FundArbError):
    """Neither venue produced data and no cached result exists."""
