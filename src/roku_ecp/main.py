"""
ECP Command Bridge - Main Entry Point
"""

import asyncio
import signal
import sys
import logging
import os
from typing import List

from .config_loader import DEFAULT_CONFIG_PATH
from .services.bridge_server import BridgeServer

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def install_signal_handlers(loop: asyncio.AbstractEventLoop, server) -> List[signal.Signals]:
    """Stop `server` on SIGINT/SIGTERM; returns the signals actually installed"""
    pending = set()

    def shutdown(signum: signal.Signals):
        logger.info(f"Received {signum.name}, shutting down...")
        task = loop.create_task(server.stop())
        pending.add(task)
        task.add_done_callback(pending.discard)

    installed = []
    for signum in SHUTDOWN_SIGNALS:
        try:
            loop.add_signal_handler(signum, shutdown, signum)
        except NotImplementedError:
            # Event loops without signal support fall back to KeyboardInterrupt
            logger.debug(f"No handler for {signum.name} on this event loop")
            continue
        installed.append(signum)
    return installed


async def main() -> int:
    """Load the configuration, run every service and wait for shutdown"""
    config_path = os.environ.get('CONFIG_FILE', DEFAULT_CONFIG_PATH)
    logger.info(f"Using configuration file: {config_path}")

    try:
        server = BridgeServer(config_path=config_path)
    except Exception as e:
        logger.error(f"Could not load configuration: {e}")
        return 1

    loop = asyncio.get_running_loop()
    installed = install_signal_handlers(loop, server)
    try:
        await server.start()
    except Exception as e:
        logger.error(f"Server failed: {e}")
        return 1
    finally:
        for signum in installed:
            loop.remove_signal_handler(signum)
        await server.stop()

    return 0

def run():
    """Console script entry point"""
    try:
        exit_code = asyncio.run(main())
        sys.exit(exit_code)
    except KeyboardInterrupt:
        print("\nServer stopped by user")
        sys.exit(0)

if __name__ == "__main__":
    run()
