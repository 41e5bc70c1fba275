"""
Unit tests for the Telegram alert bot and its subscription store.
"""

import dataclasses
from pathlib import Path
from unittest.mock import AsyncMock

import orjson
import pytest

from fundarb.bot.subscriptions import SubscriptionStore, parse_percent
from fundarb.bot.telegram import TelegramBot, format_alert, format_top_list
from fundarb.core.types import Direction, Opportunity
from fundarb.strategy.aggregator import OpportunityAggregator
from tests.mocks import MIDNIGHT_MS, make_opportunity


CHAT = 4242


def message(text: str, chat_id: int = CHAT) -> dict[str, object]:
    return {"chat": {"id": chat_id}, "text": text}


@pytest.fixture
def store(tmp_path: Path) -> SubscriptionStore:
    """Store backed by a temporary file."""
    return SubscriptionStore(tmp_path / "subs.json")


@pytest.fixture
def bot(store: SubscriptionStore) -> TelegramBot:
    """Bot with sending replaced by a recorder."""
    bot = TelegramBot(token="123:abc", store=store)
    bot.send_message = AsyncMock(return_value=True)  # type: ignore[method-assign]
    return bot


def sent_texts(bot: TelegramBot) -> list[str]:
    return [call.args[1] for call in bot.send_message.await_args_list]  # type: ignore[attr-defined]


class TestParsePercent:
    """Tests for threshold parsing."""

    @pytest.mark.parametrize(
        ("text", "expected"),
        [("0.1%", 0.1), ("0.1", 0.1), ("2", 2.0), (".5%", 0.5), (" 0.05% ", 0.05)],
    )
    def test_valid(self, text: str, expected: float) -> None:
        """Test accepted forms."""
        assert parse_percent(text) == pytest.approx(expected)

    @pytest.mark.parametrize("text", [None, "", "abc", "-0.1%", "0.1%%", "1e-3"])
    def test_invalid(self, text: str | None) -> None:
        """Test rejected forms."""
        assert parse_percent(text) is None


class TestSubscriptionStore:
    """Tests for persistence."""

    def test_round_trip(self, store: SubscriptionStore) -> None:
        """Test subscriptions survive a reload."""
        sub = store.subscribe(CHAT, 0.1, 0.01)
        sub.triggered["BTC"] = True
        store.save()

        reloaded = SubscriptionStore(store.path)
        reloaded.load()

        restored = reloaded.get(CHAT)
        assert restored is not None
        assert (restored.trigger, restored.exit) == (0.1, 0.01)
        assert restored.triggered == {"BTC": True}

    def test_file_layout(self, store: SubscriptionStore) -> None:
        """Test the on-disk JSON is keyed by chat id string."""
        store.subscribe(CHAT, 0.2, 0.05)

        raw = orjson.loads(store.path.read_bytes())
        assert raw == {str(CHAT): {"trigger": 0.2, "exit": 0.05, "triggered": {}}}

    def test_resubscribe_keeps_triggered(self, store: SubscriptionStore) -> None:
        """Test changing thresholds does not re-alert already triggered symbols."""
        store.subscribe(CHAT, 0.1, 0.01).triggered["ETH"] = True
        store.subscribe(CHAT, 0.2, 0.02)

        sub = store.get(CHAT)
        assert sub is not None
        assert sub.triggered == {"ETH": True}

    def test_unsubscribe(self, store: SubscriptionStore) -> None:
        """Test removal reports whether anything was removed."""
        store.subscribe(CHAT, 0.1, 0.01)

        assert store.unsubscribe(CHAT)
        assert not store.unsubscribe(CHAT)
        assert CHAT not in store

    def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        """Test loading without a file yields no subscriptions."""
        store = SubscriptionStore(tmp_path / "absent.json")
        store.load()

        assert len(store) == 0

    def test_corrupt_file_is_empty(self, tmp_path: Path) -> None:
        """Test a corrupt file is treated as empty."""
        path = tmp_path / "subs.json"
        path.write_text("{not json")

        store = SubscriptionStore(path)
        store.load()

        assert len(store) == 0


class TestFormatting:
    """Tests for message text."""

    def test_top_list_skips_undirected(self) -> None:
        """Test pairs without a direction are not listed."""
        opps = [
            make_opportunity("BTC", final_profit=0.2),
            make_opportunity("ETH", final_profit=0.0, direction=Direction.NONE),
        ]

        text = format_top_list(opps)

        assert text is not None
        assert "BTC" in text
        assert "ETH" not in text
        assert "🔥" in text

    def test_top_list_funding_countdown(self) -> None:
        """Test the next venue B settlement is shown when known."""
        opp = make_opportunity("BTC", final_profit=0.2)
        venue_b = dataclasses.replace(opp.venue_b, funding_time="2024-01-01T08:00:00Z")
        opp = dataclasses.replace(opp, venue_b=venue_b)

        text = format_top_list([opp], now_ms=MIDNIGHT_MS + 90 * 60_000)

        assert text is not None
        assert "Next Binance funding: 6h 30m" in text

    def test_profit_labelled_by_horizon(self) -> None:
        """Test profit lines name the simulated horizon, not a day."""
        opp = make_opportunity("BTC", final_profit=0.2)
        opp = dataclasses.replace(opp, timeline=dataclasses.replace(opp.timeline, simulate_days=7))

        top = format_top_list([opp])
        alert = format_alert(opp)

        assert top is not None
        assert "7d profit: <b>+0.2000%</b>" in top
        assert "7d profit: <b>+0.2000%</b>" in alert
        assert "Daily profit" not in top + alert

    def test_top_list_empty(self) -> None:
        """Test None when nothing is actionable."""
        assert format_top_list([make_opportunity(direction=Direction.NONE)]) is None

    def test_alert_escapes_html(self) -> None:
        """Test symbols are HTML-escaped."""
        text = format_alert(make_opportunity("<B&C>", final_profit=0.3))

        assert "&lt;B&amp;C&gt;" in text
        assert "+0.3000%" in text


class TestCommands:
    """Tests for command handling."""

    @pytest.mark.asyncio
    async def test_help(self, bot: TelegramBot) -> None:
        """Test /start replies with help."""
        await bot.handle_command(message("/start"))

        assert "/m" in sent_texts(bot)[0]

    @pytest.mark.asyncio
    async def test_subscribe(self, bot: TelegramBot, store: SubscriptionStore) -> None:
        """Test /m stores the thresholds."""
        await bot.handle_command(message("/m 0.1% 0.01%"))

        sub = store.get(CHAT)
        assert sub is not None
        assert (sub.trigger, sub.exit) == (0.1, 0.01)
        assert "Subscribed" in sent_texts(bot)[0]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["/m", "/m 0.1%", "/m abc 0.01", "/m 0.01% 0.1%", "/m 0.1 0.1"])
    async def test_subscribe_rejected(self, bot: TelegramBot, store: SubscriptionStore, text: str) -> None:
        """Test invalid or inverted thresholds are refused."""
        await bot.handle_command(message(text))

        assert CHAT not in store
        assert len(sent_texts(bot)) == 1

    @pytest.mark.asyncio
    async def test_status_and_cancel(self, bot: TelegramBot, store: SubscriptionStore) -> None:
        """Test /status and /cancel."""
        await bot.handle_command(message("/status"))
        assert "not subscribed" in sent_texts(bot)[-1]

        store.subscribe(CHAT, 0.1, 0.01)
        await bot.handle_command(message("/status"))
        assert "0.1%" in sent_texts(bot)[-1]

        await bot.handle_command(message("/cancel"))
        assert "cancelled" in sent_texts(bot)[-1]
        assert CHAT not in store

    @pytest.mark.asyncio
    async def test_list_with_bot_suffix(self, store: SubscriptionStore) -> None:
        """Test /list@Bot uses the opportunities getter."""
        bot = TelegramBot(
            token="123:abc", store=store, opportunities_getter=lambda: [make_opportunity("BTC", final_profit=0.05)]
        )
        bot.send_message = AsyncMock(return_value=True)  # type: ignore[method-assign]

        await bot.handle_command(message("/list@FundArbBot"))

        assert "BTC" in sent_texts(bot)[0]

    @pytest.mark.asyncio
    async def test_list_without_data(self, bot: TelegramBot, store: SubscriptionStore) -> None:
        """Test /list with no getter and with an empty list."""
        await bot.handle_command(message("/list"))

        empty = TelegramBot(token="123:abc", store=store, opportunities_getter=list)
        empty.send_message = AsyncMock(return_value=True)  # type: ignore[method-assign]
        await empty.handle_command(message("/list"))

        assert "not ready" in sent_texts(bot)[0]
        assert "No data" in sent_texts(empty)[0]

    @pytest.mark.asyncio
    async def test_unknown_command_ignored(self, bot: TelegramBot) -> None:
        """Test non-commands produce no reply."""
        await bot.handle_command(message("hello"))
        await bot.handle_command({"chat": {"id": CHAT}})

        assert sent_texts(bot) == []


class TestAlerts:
    """Tests for trigger/exit hysteresis."""

    @staticmethod
    def at(profit: float, symbol: str = "BTC") -> list[Opportunity]:
        return [make_opportunity(symbol, final_profit=profit)]

    @pytest.mark.asyncio
    async def test_hysteresis(self, bot: TelegramBot, store: SubscriptionStore) -> None:
        """Test a symbol alerts once, then re-arms only below exit."""
        store.subscribe(CHAT, 0.1, 0.01)

        await bot.check_and_notify(self.at(0.2))
        assert len(sent_texts(bot)) == 1

        await bot.check_and_notify(self.at(0.3))
        await bot.check_and_notify(self.at(0.05))
        assert len(sent_texts(bot)) == 1

        await bot.check_and_notify(self.at(0.005))
        sub = store.get(CHAT)
        assert sub is not None
        assert "BTC" not in sub.triggered

        await bot.check_and_notify(self.at(0.1))
        assert len(sent_texts(bot)) == 2

    @pytest.mark.asyncio
    async def test_undirected_never_alerts(self, bot: TelegramBot, store: SubscriptionStore) -> None:
        """Test pairs without a direction are ignored."""
        store.subscribe(CHAT, 0.1, 0.01)

        await bot.check_and_notify([make_opportunity("BTC", final_profit=5.0, direction=Direction.NONE)])

        assert sent_texts(bot) == []

    @pytest.mark.asyncio
    async def test_triggered_state_persisted(self, bot: TelegramBot, store: SubscriptionStore) -> None:
        """Test trigger state is written to disk."""
        store.subscribe(CHAT, 0.1, 0.01)

        await bot.check_and_notify(self.at(0.2))

        raw = orjson.loads(store.path.read_bytes())
        assert raw[str(CHAT)]["triggered"] == {"BTC": True}

    @pytest.mark.asyncio
    async def test_per_chat_thresholds(self, bot: TelegramBot, store: SubscriptionStore) -> None:
        """Test each chat uses its own trigger."""
        store.subscribe(1, 0.1, 0.01)
        store.subscribe(2, 0.5, 0.1)

        await bot.check_and_notify(self.at(0.2))

        recipients = [call.args[0] for call in bot.send_message.await_args_list]  # type: ignore[attr-defined]
        assert recipients == ["1"]

    @pytest.mark.asyncio
    async def test_no_change_leaves_file_alone(self, bot: TelegramBot, store: SubscriptionStore) -> None:
        """Test a refresh that changes no trigger state does not write the file."""
        await bot.check_and_notify(self.at(0.2))

        assert not store.path.exists()


class TestRefreshWiring:
    """Tests for the bot attached to an aggregator as a refresh callback."""

    @pytest.mark.asyncio
    async def test_first_refresh_keeps_saved_subscriptions(
        self, tmp_path: Path, aggregator: OpportunityAggregator
    ) -> None:
        """Test subscriptions on disk survive the first refresh after startup."""
        path = tmp_path / "subs.json"
        saved = {"42": {"trigger": 50.0, "exit": 0.01, "triggered": {"BTC": True}}}
        path.write_bytes(orjson.dumps(saved))

        store = SubscriptionStore(path)
        store.load()
        bot = TelegramBot(token="123:abc", store=store, opportunities_getter=aggregator.latest)
        bot.send_message = AsyncMock(return_value=True)  # type: ignore[method-assign]
        aggregator.add_refresh_callback(bot.check_and_notify)

        opportunities = await aggregator.get_opportunities(force=True)

        assert any(o.symbol == "BTC" for o in opportunities)
        assert orjson.loads(path.read_bytes()) == saved
        sub = store.get(42)
        assert sub is not None
        assert sub.triggered == {"BTC": True}
