"""
Funding Rate Arbitrage Monitor.

Watches perpetual funding rates on Variational (read through a logged-in
browser session) and Binance USD-M futures, ranks hedged funding trades,
serves a live dashboard and pushes Telegram alerts.
"""

__version__ = "1.0.0"
