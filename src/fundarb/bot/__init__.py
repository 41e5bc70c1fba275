"""Telegram alert bot."""

from fundarb.bot.subscriptions import Subscription, SubscriptionStore, parse_percent
from fundarb.bot.telegram import TelegramBot, format_alert, format_top_list


__all__ = [
    "Subscription",
    "SubscriptionStore",
    "TelegramBot",
    "format_alert",
    "format_top_list",
    "parse_percent",
]
