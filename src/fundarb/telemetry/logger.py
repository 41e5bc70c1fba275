"""
Queue-backed logging for the monitor.

Records are queued on the event loop thread and written by a background
listener, so a slow terminal or log file never delays the relay heartbeat
or in-flight RPC timers. When the queue is full, records are dropped and
counted rather than blocking the loop.

The Telegram token travels in Bot API URLs, and aiohttp puts those URLs in
its error messages, so every record is scrubbed of configured secrets
before it is queued.
"""

import logging
import queue
import sys
from collections.abc import Iterable
from datetime import datetime
from logging.handlers import QueueHandler, QueueListener
from pathlib import Path

from fundarb.config.constants import LOG_DATE_FORMAT, LOG_FORMAT, MAX_LOG_QUEUE_SIZE


REDACTED = "***"

# Third-party loggers kept at WARNING regardless of the configured level
QUIET_LOGGERS = ("aiohttp", "asyncio", "uvicorn.access")


class MicrosecondFormatter(logging.Formatter):
    """Formatter with microsecond precision timestamps."""

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        ct = datetime.fromtimestamp(record.created)
        return f"{ct.strftime(datefmt or LOG_DATE_FORMAT)}.{ct.microsecond:06d}"


class SecretFilter(logging.Filter):
    """Replace secret substrings in the rendered message with ``***``."""

    def __init__(self, secrets: Iterable[str] = ()) -> None:
        super().__init__()
        self._secrets = tuple(s for s in secrets if s)

    def filter(self, record: logging.LogRecord) -> bool:
        if not self._secrets:
            return True

        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            # Bad format args; leave it to the handler's own error reporting
            return True
        scrubbed = message
        for secret in self._secrets:
            scrubbed = scrubbed.replace(secret, REDACTED)

        if scrubbed != message:
            record.msg = scrubbed
            record.args = None
        return True


class DroppingQueueHandler(QueueHandler):
    """QueueHandler that counts and discards records when the queue is full."""

    def __init__(self, log_queue: "queue.Queue[logging.LogRecord]") -> None:
        super().__init__(log_queue)
        self.dropped = 0

    def enqueue(self, record: logging.LogRecord) -> None:
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            self.dropped += 1


def build_handlers(level: int, log_file: Path | None = None) -> list[logging.Handler]:
    """
    Build the listener-side handlers.

    Console output follows ``level``; the file, when configured, receives
    everything from DEBUG up.
    """
    formatter = MicrosecondFormatter(LOG_FORMAT, LOG_DATE_FORMAT)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    console.setLevel(level)
    handlers: list[logging.Handler] = [console]

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        file_handler.setLevel(logging.DEBUG)
        handlers.append(file_handler)

    return handlers


class AsyncLogger:
    """
    Non-blocking log pipeline attached to one logger.

    ``start`` installs a queue handler on the logger and starts the
    listener thread; ``stop`` flushes the queue, closes file handlers and
    restores whatever handlers the logger had before.
    """

    def __init__(
        self,
        name: str,
        level: int = logging.INFO,
        log_file: Path | None = None,
        secrets: Iterable[str] = (),
        queue_size: int = MAX_LOG_QUEUE_SIZE,
    ) -> None:
        """
        Args:
            name: Logger name; ``""`` for the root logger.
            level: Level for the logger and console output.
            log_file: Optional file that receives every record.
            secrets: Strings scrubbed from every message.
            queue_size: Records buffered before new ones are dropped.
        """
        self._logger = logging.getLogger(name)
        self._level = level
        self._log_file = log_file
        self._filter = SecretFilter(secrets)
        self._queue: queue.Queue[logging.LogRecord] = queue.Queue(maxsize=queue_size)

        self._handler: DroppingQueueHandler | None = None
        self._listener: QueueListener | None = None
        self._outputs: list[logging.Handler] = []
        self._previous: list[logging.Handler] = []

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    @property
    def dropped(self) -> int:
        """Records discarded because the queue was full."""
        return self._handler.dropped if self._handler else 0

    def start(self, replace_handlers: bool = False) -> None:
        """
        Start the listener and attach the queue handler.

        Args:
            replace_handlers: Detach the logger's existing handlers until
                ``stop``, so records are not written twice.
        """
        if self._handler is not None:
            return

        if replace_handlers:
            self._previous = list(self._logger.handlers)
            for handler in self._previous:
                self._logger.removeHandler(handler)

        self._outputs = build_handlers(self._level, self._log_file)
        self._listener = QueueListener(self._queue, *self._outputs, respect_handler_level=True)
        self._listener.start()

        self._handler = DroppingQueueHandler(self._queue)
        self._handler.addFilter(self._filter)
        self._logger.addHandler(self._handler)
        self._logger.setLevel(self._level)

    def stop(self) -> None:
        """Flush queued records, release files and restore prior handlers."""
        if self._handler is not None:
            if self._handler.dropped:
                self._logger.warning(f"{self._handler.dropped} log records dropped (queue full)")
            self._logger.removeHandler(self._handler)

        if self._listener is not None:
            self._listener.stop()
            self._listener = None

        for output in self._outputs:
            output.close()
        self._outputs = []

        for handler in self._previous:
            self._logger.addHandler(handler)
        self._previous = []
        self._handler = None

    def __enter__(self) -> "AsyncLogger":
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        self.stop()


def setup_logging(
    level: str = "INFO",
    log_file: Path | None = None,
    secrets: Iterable[str] = (),
) -> AsyncLogger:
    """
    Route all logging, including uvicorn's and aiohttp's, through one queue.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR).
        log_file: Optional log file path.
        secrets: Strings to mask in every record, e.g. the bot token.

    Returns:
        The started AsyncLogger; call ``stop`` at shutdown.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    async_logger = AsyncLogger(name="", level=numeric_level, log_file=log_file, secrets=secrets)
    async_logger.start(replace_handlers=True)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return async_logger
