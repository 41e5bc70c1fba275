"""
FastAPI server for the funding arbitrage dashboard.

Routes:
- ``GET /`` rendered HTML page
- ``GET /api/data`` JSON snapshot polled by the page
- ``GET /api/status`` relay and cache health
"""

import logging
from typing import Any, Protocol

import orjson
from fastapi import FastAPI
from fastapi.responses import HTMLResponse, PlainTextResponse, Response

from fundarb import __version__
from fundarb.core.exceptions import FundArbError
from fundarb.dashboard.view import render_dashboard
from fundarb.strategy.aggregator import OpportunityAggregator


logger = logging.getLogger(__name__)


class StatusSource(Protocol):
    def status(self) -> dict[str, Any]: ...


class OrjsonResponse(Response):
    """JSON response serialized with orjson (dataclasses and enums included)."""

    media_type = "application/json"

    def render(self, content: Any) -> bytes:
        return orjson.dumps(content, option=orjson.OPT_NON_STR_KEYS)


def create_app(aggregator: OpportunityAggregator, relay: StatusSource | None = None) -> FastAPI:
    """
    Create the dashboard application.

    Args:
        aggregator: Source of the opportunity list.
        relay: Optional browser relay, reported by ``/api/status``.
    """
    app = FastAPI(title="Funding Arbitrage Monitor", version=__version__)

    @app.get("/", response_class=HTMLResponse)
    @app.get("/index.html", response_class=HTMLResponse, include_in_schema=False)
    async def get_dashboard() -> Response:
        try:
            snapshot = await aggregator.snapshot()
        except FundArbError as e:
            logger.error(f"[Dashboard] Page render failed: {e}")
            return PlainTextResponse(f"Error: {e}", status_code=500)

        return HTMLResponse(
            render_dashboard(
                snapshot["opportunities"],
                snapshot["venueARefreshISO"],
                snapshot["venueBRefreshISO"],
            )
        )

    @app.get("/api/data")
    async def get_data() -> Response:
        try:
            snapshot = await aggregator.snapshot()
        except FundArbError as e:
            logger.error(f"[Dashboard] Data request failed: {e}")
            return OrjsonResponse({"error": str(e)}, status_code=500)
        return OrjsonResponse(snapshot)

    @app.get("/api/status")
    async def get_status() -> Response:
        return OrjsonResponse(
            {
                "relay": relay.status() if relay is not None else None,
                "aggregator": aggregator.status(),
            }
        )

    return app
