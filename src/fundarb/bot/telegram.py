"""
Telegram alert bot.

Long-polls the Bot API for commands and pushes an alert when a pair's
simulated profit reaches a chat's trigger. A pair alerts once, then stays
quiet until its profit falls below the chat's exit threshold.
"""

import asyncio
import logging
from collections.abc import Callable
from html import escape
from typing import Any

import aiohttp
import orjson

from fundarb.bot.subscriptions import SubscriptionStore, parse_percent
from fundarb.config.constants import (
    TELEGRAM_API_URL,
    TELEGRAM_ERROR_BACKOFF,
    TELEGRAM_POLL_TIMEOUT,
    TELEGRAM_TOP_N,
    VENUE_A_NAME,
    VENUE_B_NAME,
)
from fundarb.core.exceptions import UpstreamHttpError
from fundarb.core.types import Opportunity
from fundarb.funding.rates import time_to_funding


logger = logging.getLogger(__name__)


OpportunitiesGetter = Callable[[], list[Opportunity]]

HELP_TEXT = """<b>Funding Arbitrage Monitor</b>

<b>Commands:</b>
/m &lt;trigger&gt; &lt;exit&gt; - subscribe to alerts
  e.g. <code>/m 0.1% 0.01%</code>
  alerts when a pair's simulated profit over the
  holding horizon is ≥ 0.1%, then stays quiet
  until it drops below 0.01%

/list - top pairs by simulated profit

/status - your subscription

/cancel - unsubscribe

/help - show this help"""


def _signed(value: float, digits: int = 4) -> str:
    return f"{'+' if value >= 0 else ''}{value:.{digits}f}%"


def _profit_label(o: Opportunity) -> str:
    return f"{o.timeline.simulate_days}d profit"


def format_top_list(
    opportunities: list[Opportunity],
    limit: int = TELEGRAM_TOP_N,
    now_ms: int | None = None,
) -> str | None:
    """Format the best actionable pairs, or None if there are none."""
    top = [o for o in opportunities if o.has_direction][:limit]
    if not top:
        return None

    lines = [f"<b>📊 Top {len(top)} pairs by simulated profit</b>", ""]
    for i, o in enumerate(top, 1):
        profit = o.final_profit
        emoji = "🔥" if profit >= 0.1 else "✨" if profit >= 0.05 else "📈"
        lines.append(f"{i}. {emoji} <b>{escape(o.symbol)}</b>")
        lines.append(f"   {_profit_label(o)}: <b>{_signed(profit)}</b>")
        lines.append(f"   Strategy: {escape(o.strategy)}")
        lines.append(
            f"   {VENUE_A_NAME}: {_signed(o.venue_a.rate_percent)} | "
            f"{VENUE_B_NAME}: {_signed(o.venue_b.rate_percent)}"
        )
        if o.venue_b.funding_time:
            countdown = time_to_funding(o.venue_b.funding_time, now_ms)
            lines.append(f"   Next {VENUE_B_NAME} funding: {countdown.text}")
        lines.append("")
    return "\n".join(lines).rstrip()


def format_alert(o: Opportunity) -> str:
    """Format the push message for a triggered pair."""
    return (
        "🚨 <b>Arbitrage opportunity!</b>\n\n"
        f"<b>{escape(o.symbol)}</b>\n"
        f"{_profit_label(o)}: <b>{_signed(o.final_profit)}</b>\n"
        f"Annual diff: {_signed(o.annual_diff, 2)}\n\n"
        f"<b>Strategy:</b> {escape(o.strategy)}\n"
        f"{VENUE_A_NAME} rate: {_signed(o.venue_a.rate_percent)}\n"
        f"{VENUE_B_NAME} rate: {_signed(o.venue_b.rate_percent)}\n\n"
        f"{VENUE_A_NAME} price: ${o.venue_a.price:.4f}\n"
        f"{VENUE_B_NAME} price: ${o.venue_b.price:.4f}"
    )


class TelegramBot:
    """
    Command handler and alert pusher for the Telegram Bot API.

    Features:
    - Long polling with error backoff
    - Trigger/exit hysteresis per chat and symbol
    - Subscriptions persisted through ``SubscriptionStore``
    """

    def __init__(
        self,
        token: str,
        store: SubscriptionStore,
        opportunities_getter: OpportunitiesGetter | None = None,
        api_url: str = TELEGRAM_API_URL,
        poll_timeout: int = TELEGRAM_POLL_TIMEOUT,
        error_backoff: float = TELEGRAM_ERROR_BACKOFF,
    ) -> None:
        """
        Initialize the bot.

        Args:
            token: Bot API token.
            store: Subscription store, already loaded.
            opportunities_getter: Returns the latest opportunity list
                without fetching.
            api_url: Bot API base URL.
            poll_timeout: Long-poll timeout in seconds.
            error_backoff: Seconds to sleep after a polling error.
        """
        self._base_url = f"{api_url.rstrip('/')}/bot{token}"
        self._store = store
        self._get_opportunities = opportunities_getter
        self._poll_timeout = poll_timeout
        self._error_backoff = error_backoff

        self._session: aiohttp.ClientSession | None = None
        self._last_update_id = 0
        self._running = False

    @property
    def store(self) -> SubscriptionStore:
        return self._store

    @property
    def is_running(self) -> bool:
        return self._running

    # =========================================================================
    # Bot API
    # =========================================================================

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._poll_timeout + 10),
                json_serialize=lambda x: orjson.dumps(x).decode(),
            )
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def _call(
        self,
        method: str,
        *,
        params: dict[str, Any] | None = None,
        payload: dict[str, Any] | None = None,
    ) -> Any:
        """
        Invoke a Bot API method.

        Raises:
            UpstreamHttpError: On network failure, bad JSON or ``ok: false``.
        """
        session = await self._get_session()
        url = f"{self._base_url}/{method}"

        try:
            if payload is not None:
                async with session.post(url, json=payload) as response:
                    text = await response.text()
                    status = response.status
            else:
                async with session.get(url, params=params) as response:
                    text = await response.text()
                    status = response.status
        except aiohttp.ClientError as e:
            raise UpstreamHttpError(f"Telegram {method}: network error: {e}") from e
        except TimeoutError as e:
            raise UpstreamHttpError(f"Telegram {method}: request timed out") from e

        try:
            data = orjson.loads(text)
        except orjson.JSONDecodeError as e:
            raise UpstreamHttpError(f"Telegram {method}: invalid JSON response", status=status) from e

        if not isinstance(data, dict) or not data.get("ok"):
            description = data.get("description") if isinstance(data, dict) else None
            raise UpstreamHttpError(f"Telegram {method} failed: {description or text[:200]}", status=status)

        return data.get("result")

    async def send_message(self, chat_id: int | str, text: str) -> bool:
        """
        Send an HTML message.

        Returns:
            True on success. Failures are logged, not raised, so one
            unreachable chat does not stop alerts to the others.
        """
        try:
            await self._call("sendMessage", payload={"chat_id": chat_id, "text": text, "parse_mode": "HTML"})
        except UpstreamHttpError as e:
            logger.error(f"[BOT] Failed to send message to {chat_id}: {e}")
            return False
        return True

    async def get_updates(self, offset: int = 0) -> list[dict[str, Any]]:
        """
        Long-poll for updates.

        Raises:
            UpstreamHttpError: On any failure.
        """
        result = await self._call("getUpdates", params={"offset": offset, "timeout": self._poll_timeout})
        return result if isinstance(result, list) else []

    # =========================================================================
    # Commands
    # =========================================================================

    async def handle_command(self, message: dict[str, Any]) -> None:
        """Dispatch one incoming message."""
        chat_id = message["chat"]["id"]
        parts = (message.get("text") or "").strip().split()
        if not parts:
            return

        # "/list@SomeBot" in group chats
        command = parts[0].split("@", 1)[0].lower()

        if command in ("/start", "/help"):
            await self.send_message(chat_id, HELP_TEXT)

        elif command == "/m":
            await self._cmd_subscribe(chat_id, parts[1:])

        elif command == "/status":
            sub = self._store.get(chat_id)
            if sub is None:
                await self.send_message(chat_id, "You are not subscribed. Use /m to subscribe.")
                return
            await self.send_message(
                chat_id,
                "Current subscription:\n"
                f"Trigger: <b>{sub.trigger:g}%</b>\n"
                f"Exit: <b>{sub.exit:g}%</b>\n"
                f"Triggered, awaiting exit: <b>{len(sub.triggered)}</b>",
            )

        elif command == "/cancel":
            if self._store.unsubscribe(chat_id):
                await self.send_message(chat_id, "Subscription cancelled.")
            else:
                await self.send_message(chat_id, "You are not subscribed.")

        elif command == "/list":
            await self._cmd_list(chat_id)

    async def _cmd_subscribe(self, chat_id: int | str, args: list[str]) -> None:
        trigger = parse_percent(args[0] if len(args) > 0 else None)
        exit_ = parse_percent(args[1] if len(args) > 1 else None)

        if trigger is None or exit_ is None:
            await self.send_message(chat_id, "Invalid format!\nUsage: <code>/m 0.1% 0.01%</code>")
            return
        if trigger <= exit_:
            await self.send_message(chat_id, "The trigger must be greater than the exit!")
            return

        self._store.subscribe(chat_id, trigger, exit_)
        logger.info(f"[BOT] Chat {chat_id} subscribed (trigger {trigger:g}%, exit {exit_:g}%)")
        await self.send_message(
            chat_id,
            "Subscribed!\n"
            f"Trigger: <b>{trigger:g}%</b>\n"
            f"Exit: <b>{exit_:g}%</b>\n\n"
            f"You will be alerted when a pair's simulated profit is ≥ {trigger:g}%",
        )

    async def _cmd_list(self, chat_id: int | str) -> None:
        if self._get_opportunities is None:
            await self.send_message(chat_id, "Data not ready yet, try again later.")
            return

        opportunities = self._get_opportunities()
        if not opportunities:
            await self.send_message(chat_id, "No data yet, try again later.")
            return

        text = format_top_list(opportunities)
        if text is None:
            await self.send_message(chat_id, "No arbitrage opportunities right now.")
            return
        await self.send_message(chat_id, text)

    # =========================================================================
    # Alerts
    # =========================================================================

    async def check_and_notify(self, opportunities: list[Opportunity]) -> None:
        """
        Push alerts for pairs crossing each chat's trigger.

        A symbol alerts when its simulated profit reaches ``trigger`` and is
        re-armed once it falls below ``exit``. Pairs without a direction
        are ignored.
        """
        changed = False
        for chat_id, sub in self._store.items():
            for o in opportunities:
                if not o.has_direction:
                    continue

                profit = o.final_profit
                if sub.triggered.get(o.symbol):
                    if profit < sub.exit:
                        del sub.triggered[o.symbol]
                        changed = True
                        logger.info(f"[BOT] {o.symbol} fell below exit for chat {chat_id}, re-armed")
                elif profit >= sub.trigger:
                    sub.triggered[o.symbol] = True
                    changed = True
                    logger.info(f"[BOT] {o.symbol} triggered for chat {chat_id}")
                    await self.send_message(chat_id, format_alert(o))

        if changed:
            self._store.save()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def run(self) -> None:
        """Poll for commands until stopped. The store must already be loaded."""
        self._running = True
        logger.info("[BOT] Telegram bot started")

        try:
            while self._running:
                try:
                    updates = await self.get_updates(self._last_update_id + 1)
                    for update in updates:
                        self._last_update_id = update["update_id"]
                        if update.get("message"):
                            await self.handle_command(update["message"])
                except Exception as e:
                    logger.error(f"[BOT] Polling error: {e}")
                    await asyncio.sleep(self._error_backoff)
        finally:
            self._running = False
            await self.close()

    async def stop(self) -> None:
        """Stop polling and close the session."""
        self._running = False
        await self.close()
        logger.info("[BOT] Telegram bot stopped")
