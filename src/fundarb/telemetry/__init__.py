"""Telemetry module for logging."""

from fundarb.telemetry.logger import AsyncLogger, setup_logging


__all__ = [
    "AsyncLogger",
    "setup_logging",
]
