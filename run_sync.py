#!/usr/bin/env python3
"""
Runner script for NPS Sync.

This script starts a dashboard session: loads cached or remote data, then
keeps the periodic refresh going until interrupted.
"""

import argparse
import asyncio
import json
import signal
from datetime import datetime

from nps_sync.core.config import settings
from nps_sync.core.logging import logger, setup_logging
from nps_sync.services.dashboard import NpsDashboard
from nps_sync.services.storage import MemoryStorage


async def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="NPS Sync runner")
    parser.add_argument("--once", action="store_true", help="Load data, print a summary and exit")
    parser.add_argument("--memory", action="store_true", help="Use in-memory storage instead of SQLite")
    parser.add_argument("--reset", action="store_true", help="Clear cached data and filters before starting")
    args = parser.parse_args()

    setup_logging()

    stop_event = asyncio.Event()

    def request_stop():
        logger.info("Shutting down gracefully...")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, request_stop)
        except NotImplementedError:
            # Signal handlers are not available on every platform
            pass

    dashboard = NpsDashboard(storage=MemoryStorage() if args.memory else None)

    try:
        print("\n" + "=" * 80)
        print(f"{settings.PROJECT_NAME} v{settings.VERSION}")
        print(f"Starting at {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
        print("=" * 80 + "\n")

        if args.reset:
            logger.info("Clearing cached data")
            dashboard.clear_all()

        outcome = await dashboard.start()
        logger.info(f"Initial load: {outcome.value}")

        if args.once:
            await dashboard.sync.wait_background()
            print(json.dumps(dashboard.summary(), indent=2))
            return

        logger.info("Refresh loop running, press Ctrl+C to stop")
        await dashboard.sync.run(stop_event)

    except Exception as e:
        logger.error(f"Error in main: {e}", exc_info=True)
    finally:
        logger.info("Cleaning up resources")
        await dashboard.close()
        logger.info("Shutdown complete")


if __name__ == "__main__":
    asyncio.run(main())
