"""
Unit tests for time helpers and the async logger.
"""

import logging
import queue
from pathlib import Path

from fundarb.telemetry.logger import AsyncLogger, DroppingQueueHandler, SecretFilter, setup_logging
from fundarb.utils.time import (
    format_timestamp_ms,
    get_timestamp_ms,
    parse_iso_ms,
    to_iso,
    utc_midnight_ms,
)
from tests.mocks import MIDNIGHT_MS


class TestTime:
    """Tests for timestamp helpers."""

    def test_timestamp_is_milliseconds(self) -> None:
        """Test the clock is in milliseconds."""
        assert 1_600_000_000_000 < get_timestamp_ms() < 10_000_000_000_000

    def test_utc_midnight(self) -> None:
        """Test flooring to UTC midnight."""
        assert utc_midnight_ms(MIDNIGHT_MS + 13 * 3_600_000 + 5) == MIDNIGHT_MS
        assert utc_midnight_ms(MIDNIGHT_MS) == MIDNIGHT_MS

    def test_iso_round_trip(self) -> None:
        """Test ISO rendering and parsing agree."""
        assert to_iso(MIDNIGHT_MS) == "2024-01-01T00:00:00Z"
        assert parse_iso_ms("2024-01-01T00:00:00Z") == MIDNIGHT_MS
        assert parse_iso_ms("2024-01-01T01:00:00+01:00") == MIDNIGHT_MS
        assert parse_iso_ms("2024-01-01T00:00:00") == MIDNIGHT_MS
        assert to_iso(None) is None

    def test_format_utc(self) -> None:
        """Test timeline timestamp format."""
        assert format_timestamp_ms(MIDNIGHT_MS + 8 * 3_600_000, local=False) == "01-01 08:00"


class TestAsyncLogger:
    """Tests for the queue-based logger."""

    def test_writes_to_file(self, tmp_path: Path) -> None:
        """Test records reach the log file once the listener stops."""
        log_file = tmp_path / "logs" / "monitor.log"

        with AsyncLogger("fundarb.test", level=logging.INFO, log_file=log_file) as async_logger:
            async_logger.logger.info("[Relay] hello")
            async_logger.logger.debug("hidden below INFO")

        content = log_file.read_text(encoding="utf-8")
        assert "[Relay] hello" in content
        assert "hidden below INFO" not in content
        assert "| INFO     | fundarb.test |" in content

    def test_stop_detaches_handler(self) -> None:
        """Test stopping removes the queue handler."""
        async_logger = AsyncLogger("fundarb.detach")
        async_logger.start()
        assert async_logger.logger.handlers

        async_logger.stop()
        assert not async_logger.logger.handlers

    def test_secrets_redacted(self, tmp_path: Path) -> None:
        """Test configured secrets never reach the log file."""
        log_file = tmp_path / "monitor.log"
        token = "123456:ABC-secret"

        with AsyncLogger("fundarb.secret", log_file=log_file, secrets=[token]) as async_logger:
            async_logger.logger.error("[BOT] POST https://api.telegram.org/bot%s/getUpdates failed", token)

        content = log_file.read_text(encoding="utf-8")
        assert token not in content
        assert "/bot***/getUpdates" in content

    def test_setup_restores_root_handlers(self) -> None:
        """Test stopping the app-wide logger puts back the root handlers it replaced."""
        root = logging.getLogger()
        marker = logging.NullHandler()
        root.addHandler(marker)
        level = root.level

        try:
            async_logger = setup_logging(level="WARNING")
            assert marker not in root.handlers
            assert logging.getLogger("aiohttp").level == logging.WARNING

            async_logger.stop()
            assert marker in root.handlers
        finally:
            root.removeHandler(marker)
            root.setLevel(level)


class TestLogHandlers:
    """Tests for the filter and queue handler in isolation."""

    @staticmethod
    def record(msg: str, *args: object) -> logging.LogRecord:
        return logging.LogRecord("fundarb", logging.INFO, __file__, 1, msg, args, None)

    def test_filter_leaves_clean_records(self) -> None:
        """Test records without secrets keep their lazy args."""
        rec = self.record("%d pairs", 5)

        assert SecretFilter(["tok"]).filter(rec)
        assert rec.args == (5,)
        assert rec.getMessage() == "5 pairs"

    def test_filter_ignores_empty_secret(self) -> None:
        """Test a blank secret does not mask every gap between characters."""
        rec = self.record("hello")
        SecretFilter([""]).filter(rec)

        assert rec.getMessage() == "hello"

    def test_full_queue_drops(self) -> None:
        """Test records past the queue bound are counted, not raised."""
        log_queue: queue.Queue[logging.LogRecord] = queue.Queue(maxsize=1)
        handler = DroppingQueueHandler(log_queue)

        for i in range(3):
            handler.handle(self.record("record %d", i))

        assert handler.dropped == 2
        assert log_queue.get_nowait().getMessage() == "record 0"
