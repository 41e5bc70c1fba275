"""Simulation module for projecting arbitrage cash flows."""

from fundarb.simulation.timeline import (
    funding_delta,
    settlement_times,
    simulate_timeline,
    spread_capture,
)


__all__ = [
    "funding_delta",
    "settlement_times",
    "simulate_timeline",
    "spread_capture",
]
