"""
Entry point for the funding arbitrage monitor.

Usage:
    python -m fundarb
    fundarb  # if installed via pip
"""

import asyncio
import sys


# Try to use uvloop for better performance
try:
    import uvloop

    UVLOOP_AVAILABLE = True
except ImportError:
    UVLOOP_AVAILABLE = False


def main() -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success).
    """
    from pydantic import ValidationError

    from fundarb import __version__
    from fundarb.config.settings import get_settings
    from fundarb.core.engine import MonitorEngine

    print(
        f"""
╔═══════════════════════════════════════════════════════════════╗
║     FUNDING ARBITRAGE MONITOR v{__version__:<24}      ║
║                                                               ║
║     Variational vs Binance perpetual funding rates            ║
╚═══════════════════════════════════════════════════════════════╝
    """
    )

    try:
        settings = get_settings()
    except ValidationError as e:
        print(f"Configuration error: {e}")
        return 1

    use_uvloop = settings.use_uvloop and UVLOOP_AVAILABLE

    print("Configuration:")
    print(f"  Relay:          ws://{settings.relay_host}:{settings.relay_port}")
    print(f"  Dashboard:      http://{settings.dashboard_host}:{settings.dashboard_port}")
    print(f"  Cache TTL:      {settings.cache_ttl:.0f}s")
    print(f"  Auto refresh:   {settings.refresh_interval:.0f}s")
    print(f"  Threshold (8h): {settings.rate_diff_threshold}%")
    print(f"  Sort by:        {settings.sort_mode}")
    print(f"  Binance proxy:  {settings.binance_proxy or 'none'}")
    print(f"  Telegram bot:   {'Enabled' if settings.telegram_enabled else 'Disabled'}")
    print(f"  uvloop:         {'Enabled' if use_uvloop else 'Disabled'}")
    print()
    print("Open the Variational web app in a logged-in browser and load the relay")
    print("script so the monitor can read venue A.")
    print()

    async def run_engine() -> int:
        engine = MonitorEngine(settings)

        try:
            await engine.setup()
            await engine.run()
            return 0

        except KeyboardInterrupt:
            print("\nInterrupted by user")
            return 0

        except Exception as e:
            print(f"\nFatal error: {e}")
            import traceback

            traceback.print_exc()
            return 1

        finally:
            await engine.shutdown()

    if use_uvloop:
        return uvloop.run(run_engine())
    return asyncio.run(run_engine())


if __name__ == "__main__":
    sys.exit(main())
