"""
Venue A client: Variational Omni.

The asset listing is only served to an authenticated browser, so every
request goes through the browser relay. The relay may drop and regain its
browser at any time; the client waits for it between attempts.
"""

import logging
from typing import Any, Protocol

import orjson
from pydantic import ValidationError

from fundarb.config.constants import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_RECONNECT_WAIT,
    VARIATIONAL_ASSETS_URL,
    VENUE_A_NAME,
)
from fundarb.core.exceptions import RelayError, UpstreamHttpError
from fundarb.core.types import RateQuote, VenueQuote
from fundarb.exchange.models import VariationalAsset
from fundarb.funding.rates import annual_to_interval_rate
from fundarb.utils.time import get_timestamp_ms


logger = logging.getLogger(__name__)


class FetchTransport(Protocol):
    """The part of the browser relay the client depends on."""

    @property
    def is_connected(self) -> bool: ...

    async def wait_for_connection(self, timeout: float | None = None) -> None: ...

    async def fetch(self, url: str, options: dict[str, Any] | None = None, timeout: float | None = None) -> Any: ...


def parse_supported_assets(payload: Any) -> list[VenueQuote]:
    """
    Convert a ``supported_assets`` payload into venue quotes.

    The payload maps a listing key to a list of asset entries. Only
    perpetuals that are not close-only are kept. Entries that fail
    validation are skipped.

    Raises:
        UpstreamHttpError: If the payload is not the expected mapping.
    """
    if isinstance(payload, (str, bytes)):
        try:
            payload = orjson.loads(payload)
        except orjson.JSONDecodeError as e:
            raise UpstreamHttpError(f"{VENUE_A_NAME}: invalid JSON body: {e}") from e

    if not isinstance(payload, dict):
        raise UpstreamHttpError(f"{VENUE_A_NAME}: expected an object, got {type(payload).__name__}")

    quotes: list[VenueQuote] = []
    seen: set[str] = set()
    skipped = 0

    for entries in payload.values():
        if not isinstance(entries, list):
            continue

        for raw in entries:
            try:
                asset = VariationalAsset.model_validate(raw)
            except ValidationError:
                skipped += 1
                continue

            if not asset.is_tradable_perp or asset.asset in seen:
                continue
            if asset.funding_interval_s <= 0:
                skipped += 1
                continue

            seen.add(asset.asset)
            quotes.append(
                VenueQuote(
                    symbol=asset.asset,
                    price=asset.price,
                    rate=RateQuote(
                        rate_percent=annual_to_interval_rate(asset.funding_rate, asset.funding_interval_s),
                        interval_seconds=asset.funding_interval_s,
                    ),
                    funding_time=asset.funding_time,
                    volume_24h=asset.volume_24h or 0.0,
                    name=asset.name,
                )
            )

    if skipped:
        logger.debug(f"[{VENUE_A_NAME}] Skipped {skipped} malformed asset entries")

    return quotes


class VariationalClient:
    """
    Fetches venue A quotes through the browser relay.

    Each attempt first waits for a browser if none is attached. A failed
    attempt is retried up to ``max_attempts`` times; the last error is
    raised once attempts are exhausted.
    """

    def __init__(
        self,
        relay: FetchTransport,
        url: str = VARIATIONAL_ASSETS_URL,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        reconnect_wait: float | None = DEFAULT_RECONNECT_WAIT,
    ) -> None:
        """
        Initialize the client.

        Args:
            relay: Browser relay used as transport.
            url: Asset listing URL.
            max_attempts: Attempts per ``fetch_quotes`` call.
            reconnect_wait: Seconds to wait for a browser before an
                attempt, None to wait indefinitely.
        """
        self._relay = relay
        self._url = url
        self._max_attempts = max_attempts
        self._reconnect_wait = reconnect_wait
        self._last_success_ms: int | None = None

    @property
    def name(self) -> str:
        return VENUE_A_NAME

    @property
    def last_success_ms(self) -> int | None:
        """Time of the last successful fetch."""
        return self._last_success_ms

    async def fetch_quotes(self) -> list[VenueQuote]:
        """
        Fetch all tradable perpetuals.

        Raises:
            RelayError: Last relay failure once attempts are exhausted.
            UpstreamHttpError: Last payload failure once attempts are exhausted.
        """
        last_error: Exception | None = None

        for attempt in range(1, self._max_attempts + 1):
            try:
                if not self._relay.is_connected:
                    logger.info(f"[{self.name}] Browser not connected, waiting...")
                    await self._relay.wait_for_connection(self._reconnect_wait)
                    logger.info(f"[{self.name}] Browser connected")

                payload = await self._relay.fetch(self._url)
                quotes = parse_supported_assets(payload)

            except (RelayError, UpstreamHttpError) as e:
                last_error = e
                logger.warning(f"[{self.name}] Attempt {attempt}/{self._max_attempts} failed: {e}")
                continue

            self._last_success_ms = get_timestamp_ms()
            logger.info(f"[{self.name}] Fetched {len(quotes)} perpetuals")
            return quotes

        if last_error is None:
            raise RelayError(f"{self.name}: no fetch attempts configured")
        raise last_error
