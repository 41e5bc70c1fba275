"""
Alert subscriptions persisted to a JSON file.

File layout (keys are chat ids as strings)::

    {"123": {"trigger": 0.1, "exit": 0.01, "triggered": {"BTC": true}}}
"""

import logging
import os
import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path

import orjson


logger = logging.getLogger(__name__)

_PERCENT_RE = re.compile(r"^(\d+(?:\.\d+)?|\.\d+)%?$")


def parse_percent(text: str | None) -> float | None:
    """
    Parse a non-negative percentage such as ``0.1%`` or ``0.1``.

    Example:
        >>> parse_percent("0.1%")
        0.1
        >>> parse_percent("abc") is None
        True
    """
    if not text:
        return None
    match = _PERCENT_RE.match(text.strip())
    if match is None:
        return None
    return float(match.group(1))


@dataclass(slots=True)
class Subscription:
    """
    A chat's alert thresholds.

    ``triggered`` holds symbols already alerted that have not yet dropped
    below ``exit``.
    """

    trigger: float
    exit: float
    triggered: dict[str, bool] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        return {"trigger": self.trigger, "exit": self.exit, "triggered": self.triggered}


class SubscriptionStore:
    """File-backed map of chat id to subscription."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        self._subscriptions: dict[str, Subscription] = {}

    @property
    def path(self) -> Path:
        return self._path

    def __len__(self) -> int:
        return len(self._subscriptions)

    def __contains__(self, chat_id: object) -> bool:
        return str(chat_id) in self._subscriptions

    def items(self) -> Iterator[tuple[str, Subscription]]:
        return iter(list(self._subscriptions.items()))

    def get(self, chat_id: int | str) -> Subscription | None:
        return self._subscriptions.get(str(chat_id))

    def subscribe(self, chat_id: int | str, trigger: float, exit: float) -> Subscription:
        """Create or update a subscription, keeping its triggered symbols."""
        existing = self._subscriptions.get(str(chat_id))
        sub = Subscription(
            trigger=trigger,
            exit=exit,
            triggered=existing.triggered if existing else {},
        )
        self._subscriptions[str(chat_id)] = sub
        self.save()
        return sub

    def unsubscribe(self, chat_id: int | str) -> bool:
        """Remove a subscription. Returns False if there was none."""
        if self._subscriptions.pop(str(chat_id), None) is None:
            return False
        self.save()
        return True

    def load(self) -> None:
        """
        Load subscriptions from disk.

        A missing file means no subscriptions. An unreadable or malformed
        file is logged and treated as empty.
        """
        self._subscriptions = {}
        if not self._path.exists():
            return

        try:
            raw = orjson.loads(self._path.read_bytes())
            if not isinstance(raw, dict):
                raise ValueError(f"expected an object, got {type(raw).__name__}")
            for chat_id, entry in raw.items():
                self._subscriptions[str(chat_id)] = Subscription(
                    trigger=float(entry["trigger"]),
                    exit=float(entry["exit"]),
                    triggered={str(s): True for s, on in (entry.get("triggered") or {}).items() if on},
                )
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.error(f"[BOT] Failed to load subscriptions from {self._path}: {e}")
            self._subscriptions = {}
            return

        logger.info(f"[BOT] Loaded {len(self._subscriptions)} subscription(s)")

    def save(self) -> None:
        """Write subscriptions to disk; failures are logged."""
        data = {chat_id: sub.to_dict() for chat_id, sub in self._subscriptions.items()}
        tmp = self._path.with_name(self._path.name + ".tmp")
        try:
            if self._path.parent != Path():
                self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_bytes(orjson.dumps(data, option=orjson.OPT_INDENT_2))
            os.replace(tmp, self._path)
        except OSError as e:
            logger.error(f"[BOT] Failed to save subscriptions to {self._path}: {e}")
