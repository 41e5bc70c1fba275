"""
Venue B client: Binance USD-M futures public REST.

Two unauthenticated endpoints are combined per refresh:
- ``fundingInfo`` for symbols whose settlement interval differs from 8h
- ``premiumIndex`` for mark price, last funding rate and next funding time
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, TypeVar

import aiohttp
import orjson
from pydantic import BaseModel, ValidationError

from fundarb.config.constants import (
    BINANCE_FUTURES_REST_URL,
    DEFAULT_BINANCE_INTERVAL_HOURS,
    DEFAULT_HTTP_RETRY_DELAY,
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_MAX_ATTEMPTS,
    ENDPOINT_FUNDING_INFO,
    ENDPOINT_PREMIUM_INDEX,
    HOUR_SECONDS,
    STABLECOIN_SUFFIXES,
    VENUE_B_NAME,
)
from fundarb.core.exceptions import UpstreamHttpError
from fundarb.core.types import RateQuote, VenueQuote
from fundarb.exchange.models import FundingInfo, PremiumIndex
from fundarb.utils.time import get_timestamp_ms, to_iso


logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


# Some edges reject requests without browser-like headers
REQUEST_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "application/json, text/plain, */*",
    "Accept-Language": "en-US,en;q=0.9",
}


def split_contract_symbol(contract: str) -> tuple[str, str] | None:
    """
    Split a perpetual contract symbol into (base, quote).

    Returns None for contracts not quoted in a known stablecoin and for
    dated delivery contracts.

    Example:
        >>> split_contract_symbol("BTCUSDT")
        ('BTC', 'USDT')
        >>> split_contract_symbol("BTCUSDT_250627") is None
        True
    """
    if "_" in contract:
        return None
    for suffix in STABLECOIN_SUFFIXES:
        if contract.endswith(suffix) and len(contract) > len(suffix):
            return contract[: -len(suffix)], suffix
    return None


def build_quotes(
    premium_index: list[PremiumIndex],
    funding_info: list[FundingInfo],
) -> list[VenueQuote]:
    """
    Join premium index rows with their funding interval.

    When a base asset trades against several stablecoins, the one listed
    first in ``STABLECOIN_SUFFIXES`` wins.
    """
    intervals = {info.symbol: info.funding_interval_hours * HOUR_SECONDS for info in funding_info}
    default_interval = DEFAULT_BINANCE_INTERVAL_HOURS * HOUR_SECONDS

    chosen: dict[str, tuple[int, VenueQuote]] = {}

    for row in premium_index:
        split = split_contract_symbol(row.symbol)
        if split is None or row.last_funding_rate is None:
            continue

        base, quote_asset = split
        rank = STABLECOIN_SUFFIXES.index(quote_asset)
        existing = chosen.get(base)
        if existing is not None and existing[0] <= rank:
            continue

        chosen[base] = (
            rank,
            VenueQuote(
                symbol=base,
                price=row.mark_price,
                rate=RateQuote(
                    rate_percent=row.last_funding_rate * 100.0,
                    interval_seconds=intervals.get(row.symbol, default_interval),
                ),
                funding_time=to_iso(row.next_funding_time) if row.next_funding_time else None,
                name=row.symbol,
            ),
        )

    return [quote for _, quote in chosen.values()]


class BinanceFuturesClient:
    """
    Async Binance futures REST client for funding data.

    Features:
    - Single session with connection pooling
    - orjson for fast JSON parsing
    - Optional HTTP proxy
    - Bounded retries with a fixed delay
    """

    def __init__(
        self,
        base_url: str = BINANCE_FUTURES_REST_URL,
        proxy: str | None = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retry_delay: float = DEFAULT_HTTP_RETRY_DELAY,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
    ) -> None:
        """
        Initialize the client.

        Args:
            base_url: REST base URL.
            proxy: Optional HTTP proxy URL.
            max_attempts: Attempts per endpoint.
            retry_delay: Seconds to sleep between attempts.
            timeout: Total timeout per request.
        """
        self._base_url = base_url.rstrip("/")
        self._proxy = proxy
        self._max_attempts = max_attempts
        self._retry_delay = retry_delay
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: aiohttp.ClientSession | None = None
        self._last_success_ms: int | None = None

    @property
    def name(self) -> str:
        return VENUE_B_NAME

    @property
    def last_success_ms(self) -> int | None:
        """Time of the last successful fetch."""
        return self._last_success_ms

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=10,
                keepalive_timeout=30,
                enable_cleanup_closed=True,
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                headers=REQUEST_HEADERS,
                timeout=self._timeout,
            )
        return self._session

    async def close(self) -> None:
        """Close the client session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    @asynccontextmanager
    async def _request_context(self) -> AsyncIterator[aiohttp.ClientSession]:
        """Context manager mapping transport failures to UpstreamHttpError."""
        session = await self._get_session()
        try:
            yield session
        except aiohttp.ClientError as e:
            raise UpstreamHttpError(f"{VENUE_B_NAME}: network error: {e}") from e
        except TimeoutError as e:
            raise UpstreamHttpError(f"{VENUE_B_NAME}: request timed out") from e

    async def _get(self, endpoint: str) -> Any:
        """Perform one GET and return the decoded body."""
        url = f"{self._base_url}{endpoint}"
        async with self._request_context() as session:
            async with session.get(url, proxy=self._proxy) as response:
                return await self._handle_response(response)

    async def _handle_response(self, response: aiohttp.ClientResponse) -> Any:
        """Parse and validate response."""
        text = await response.text()

        if response.status >= 400:
            raise UpstreamHttpError(
                f"{VENUE_B_NAME}: HTTP {response.status}: {text[:200]}",
                status=response.status,
            )

        try:
            return orjson.loads(text)
        except orjson.JSONDecodeError as e:
            raise UpstreamHttpError(f"{VENUE_B_NAME}: invalid JSON response: {e}", status=response.status) from e

    async def _get_with_retry(self, endpoint: str) -> Any:
        """GET with bounded retries, raising the last error when exhausted."""
        last_error: UpstreamHttpError | None = None

        for attempt in range(1, self._max_attempts + 1):
            try:
                return await self._get(endpoint)
            except UpstreamHttpError as e:
                last_error = e
                logger.warning(f"[{VENUE_B_NAME}] {endpoint} attempt {attempt}/{self._max_attempts} failed: {e}")
                if attempt < self._max_attempts:
                    await asyncio.sleep(self._retry_delay)

        if last_error is None:
            raise UpstreamHttpError(f"{VENUE_B_NAME}: no request attempts configured for {endpoint}")
        raise last_error

    # =========================================================================
    # Public Endpoints
    # =========================================================================

    async def get_funding_info(self) -> list[FundingInfo]:
        """Get symbols with a non-default funding configuration."""
        data = await self._get_with_retry(ENDPOINT_FUNDING_INFO)
        return _validate_rows(data, FundingInfo, ENDPOINT_FUNDING_INFO)

    async def get_premium_index(self) -> list[PremiumIndex]:
        """Get mark price and funding for all contracts."""
        data = await self._get_with_retry(ENDPOINT_PREMIUM_INDEX)
        return _validate_rows(data, PremiumIndex, ENDPOINT_PREMIUM_INDEX)

    async def fetch_quotes(self) -> list[VenueQuote]:
        """
        Fetch a quote for every stablecoin-margined perpetual.

        Raises:
            UpstreamHttpError: When either endpoint fails after all retries.
        """
        funding_info, premium_index = await asyncio.gather(
            self.get_funding_info(),
            self.get_premium_index(),
        )
        quotes = build_quotes(premium_index, funding_info)

        self._last_success_ms = get_timestamp_ms()
        logger.info(f"[{VENUE_B_NAME}] Fetched {len(quotes)} perpetuals")
        return quotes

    async def __aenter__(self) -> "BinanceFuturesClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()


def _validate_rows(data: Any, model: type[ModelT], endpoint: str) -> list[ModelT]:
    """Validate a list payload row by row, skipping rows that do not parse."""
    if not isinstance(data, list):
        raise UpstreamHttpError(f"{VENUE_B_NAME}: {endpoint} returned {type(data).__name__}, expected a list")

    rows: list[ModelT] = []
    for raw in data:
        try:
            rows.append(model.model_validate(raw))
        except ValidationError as e:
            logger.debug(f"[{VENUE_B_NAME}] Skipping row from {endpoint}: {e.error_count()} error(s)")
    return rows
