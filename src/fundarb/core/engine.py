"""
Monitor orchestrator.

Wires the relay, venue clients, aggregator, dashboard and bot together and
owns their lifecycle.
"""

import asyncio
import logging
import signal
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn

from fundarb.bot.subscriptions import SubscriptionStore
from fundarb.bot.telegram import TelegramBot
from fundarb.config.settings import Settings
from fundarb.core.exceptions import FundArbError, WaitTimeoutError
from fundarb.core.types import SortMode
from fundarb.dashboard.server import create_app
from fundarb.exchange.binance import BinanceFuturesClient
from fundarb.exchange.variational import VariationalClient
from fundarb.relay.server import BrowserRelay
from fundarb.strategy.aggregator import OpportunityAggregator
from fundarb.strategy.builder import OpportunityBuilder
from fundarb.telemetry.logger import AsyncLogger, setup_logging


logger = logging.getLogger(__name__)


class MonitorEngine:
    """
    Main monitor orchestrator.

    Manages the complete lifecycle of:
    - Browser relay server
    - Venue clients and the aggregator
    - Periodic refresh
    - Dashboard HTTP server
    - Telegram bot (when a token is configured)
    """

    def __init__(self, settings: Settings) -> None:
        """
        Initialize the engine.

        Args:
            settings: Application settings.
        """
        self._settings = settings
        self._running = False
        self._shutdown_event = asyncio.Event()
        self._shut_down = False

        # Components (initialized in setup)
        self._relay: BrowserRelay | None = None
        self._venue_b: BinanceFuturesClient | None = None
        self._aggregator: OpportunityAggregator | None = None
        self._bot: TelegramBot | None = None
        self._server: uvicorn.Server | None = None
        self._async_logger: AsyncLogger | None = None

        self._tasks: list[asyncio.Task[None]] = []

    @property
    def is_running(self) -> bool:
        """Check if engine is running."""
        return self._running

    @property
    def aggregator(self) -> OpportunityAggregator | None:
        return self._aggregator

    @property
    def relay(self) -> BrowserRelay | None:
        return self._relay

    @property
    def bot(self) -> TelegramBot | None:
        return self._bot

    async def setup(self) -> None:
        """Initialize all components and start the relay."""
        s = self._settings

        self._async_logger = setup_logging(
            level=s.log_level,
            log_file=s.log_file,
            secrets=[s.bot_token.get_secret_value()] if s.bot_token is not None else [],
        )
        logger.info("Initializing funding arbitrage monitor...")

        self._relay = BrowserRelay(
            host=s.relay_host,
            port=s.relay_port,
            ping_interval=s.ping_interval,
            pong_timeout=s.pong_timeout,
            rpc_timeout=s.rpc_timeout,
        )
        await self._relay.start()

        venue_a = VariationalClient(
            relay=self._relay,
            url=s.variational_assets_url,
            max_attempts=s.venue_a_max_attempts,
            reconnect_wait=s.reconnect_wait,
        )
        self._venue_b = BinanceFuturesClient(
            base_url=s.binance_rest_url,
            proxy=s.binance_proxy,
            max_attempts=s.venue_b_max_attempts,
            retry_delay=s.venue_b_retry_delay,
            timeout=s.http_timeout,
        )

        self._aggregator = OpportunityAggregator(
            venue_a=venue_a,
            venue_b=self._venue_b,
            builder=OpportunityBuilder(
                rate_diff_threshold=s.rate_diff_threshold,
                simulate_days=s.simulate_days,
                position_size=s.position_size,
            ),
            cache_ttl=s.cache_ttl,
            sort_mode=SortMode(s.sort_mode),
        )

        if s.bot_token is not None:
            # Loaded before the first refresh can save over the file
            store = SubscriptionStore(s.subscriptions_file)
            store.load()
            self._bot = TelegramBot(
                token=s.bot_token.get_secret_value(),
                store=store,
                opportunities_getter=self._aggregator.latest,
            )
            self._aggregator.add_refresh_callback(self._bot.check_and_notify)
        else:
            logger.info("BOT_TOKEN not set, Telegram bot disabled")

        self._server = uvicorn.Server(
            uvicorn.Config(
                create_app(self._aggregator, self._relay),
                host=s.dashboard_host,
                port=s.dashboard_port,
                log_level="warning",
                access_log=False,
            )
        )

        logger.info("Monitor initialization complete")

    async def run(self) -> None:
        """Run until a shutdown signal arrives or the HTTP server exits."""
        if self._relay is None or self._aggregator is None or self._server is None:
            raise RuntimeError("setup() must be called before run()")

        self._running = True
        s = self._settings

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self._handle_shutdown)

        try:
            logger.info(f"Waiting up to {s.initial_browser_wait:.0f}s for the browser...")
            try:
                await self._relay.wait_for_connection(s.initial_browser_wait)
                logger.info("Browser connected")
            except WaitTimeoutError:
                logger.warning("Browser not connected yet, continuing without venue A data")

            try:
                opportunities = await self._aggregator.get_opportunities(force=True)
                logger.info(f"Initial refresh: {len(opportunities)} pairs")
            except FundArbError as e:
                logger.error(f"Initial refresh failed: {e}")

            self._tasks.append(asyncio.create_task(self._aggregator.run_periodic(s.refresh_interval)))

            if self._bot is not None:
                self._tasks.append(asyncio.create_task(self._bot.run()))

            server_task = asyncio.create_task(self._server.serve())
            server_task.add_done_callback(lambda _: self._shutdown_event.set())
            self._tasks.append(server_task)
            logger.info(f"Dashboard: http://localhost:{s.dashboard_port}")

            await self._shutdown_event.wait()

        except Exception as e:
            logger.error(f"Engine error: {e}")
            raise

        finally:
            await self.shutdown()

    def _handle_shutdown(self) -> None:
        """Handle shutdown signal."""
        logger.info("Shutdown signal received")
        self._running = False
        self._shutdown_event.set()

    async def shutdown(self) -> None:
        """Gracefully shut down all components."""
        if self._shut_down:
            return
        self._shut_down = True
        self._running = False

        logger.info("Shutting down monitor...")

        if self._server is not None:
            self._server.should_exit = True

        if self._bot is not None:
            await self._bot.stop()

        for task in self._tasks:
            if not task.done():
                task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

        if self._relay is not None:
            await self._relay.stop()

        if self._venue_b is not None:
            await self._venue_b.close()

        logger.info("Monitor shutdown complete")

        if self._async_logger is not None:
            self._async_logger.stop()


@asynccontextmanager
async def create_engine(settings: Settings) -> AsyncIterator[MonitorEngine]:
    """
    Create and manage engine lifecycle.

    Usage:
        async with create_engine(settings) as engine:
            await engine.run()
    """
    engine = MonitorEngine(settings)

    try:
        await engine.setup()
        yield engine
    finally:
        await engine.shutdown()
