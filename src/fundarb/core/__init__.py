"""Core module containing the engine, exceptions and type definitions."""

from fundarb.core.exceptions import (
    AggregationError,
    ConnectionUnavailableError,
    FundArbError,
    MalformedFrameError,
    PeerDisconnectedError,
    RelayError,
    RemoteCallError,
    RequestTimeoutError,
    UpstreamHttpError,
    WaitTimeoutError,
)
from fundarb.core.types import (
    Direction,
    EventSource,
    Opportunity,
    ProfitEstimate,
    QuoteSource,
    RateQuote,
    SortMode,
    Timeline,
    TimelineEvent,
    VenueQuote,
)


__all__ = [
    "AggregationError",
    "ConnectionUnavailableError",
    "Direction",
    "EventSource",
    "FundArbError",
    "MalformedFrameError",
    "Opportunity",
    "PeerDisconnectedError",
    "ProfitEstimate",
    "QuoteSource",
    "RateQuote",
    "RelayError",
    "RemoteCallError",
    "RequestTimeoutError",
    "SortMode",
    "Timeline",
    "TimelineEvent",
    "UpstreamHttpError",
    "VenueQuote",
    "WaitTimeoutError",
]
