"""
Launcher for the Captivate bridge.

Runs one bridge instance against a logging console stand-in until
interrupted. Useful for checking connectivity and watching the registry
and feedback traffic without a control surface attached.
"""

import argparse
import asyncio
import logging

from captivate_bridge.config.models import DEFAULT_HOST, DEFAULT_PORT
from captivate_bridge.host import LoggingConsoleHost
from captivate_bridge.instance import CaptivateInstance
from captivate_bridge.logging_utils import configure_logging

logger = logging.getLogger(__name__)


async def run_bridge(host=DEFAULT_HOST, port=DEFAULT_PORT, bonjour_host=None):
    """
    Connect to Captivate and keep the bridge alive until cancelled.

    Parameters
    ----------
    host : str
        Captivate machine hostname/IP
    port : int
        Captivate automation port
    bonjour_host : str, optional
        Discovered ``host:port`` pair; takes precedence over host/port
    """
    console = LoggingConsoleHost()
    instance = CaptivateInstance(console)
    await instance.init({"host": host, "port": port, "bonjour_host": bonjour_host})
    try:
        await asyncio.Event().wait()
    finally:
        await instance.destroy()


def main():
    """Command-line entry point."""
    parser = argparse.ArgumentParser(
        description='Captivate automation bridge'
    )
    parser.add_argument(
        '--host',
        default=DEFAULT_HOST,
        help=f'Captivate hostname/IP (default: {DEFAULT_HOST})'
    )
    parser.add_argument(
        '--port',
        type=int,
        default=DEFAULT_PORT,
        help=f'Captivate automation port (default: {DEFAULT_PORT})'
    )
    parser.add_argument(
        '--bonjour-host',
        default=None,
        help='Discovered host:port; overrides --host/--port'
    )
    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug logging'
    )
    args = parser.parse_args()

    configure_logging(args.debug)
    if not args.debug:
        # Keep websockets quiet unless debugging
        logging.getLogger('websockets').setLevel(logging.INFO)

    logger.info("Launching Captivate bridge")
    try:
        asyncio.run(run_bridge(args.host, args.port, args.bonjour_host))
    except KeyboardInterrupt:
        logger.info("Interrupted; bridge stopped")


if __name__ == '__main__':
    main()
