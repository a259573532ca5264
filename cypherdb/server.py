#!/usr/bin/env python3
"""
CypherDB Server Entry Point

This is the main entry point for starting the CypherDB server.

Usage:
    python -m cypherdb.server                         # Default settings (0.0.0.0:8080)
    python -m cypherdb.server --port 9090             # Custom port
    python -m cypherdb.server --host 127.0.0.1        # Custom host
    python -m cypherdb.server --data-file db.json     # Custom snapshot location
    python -m cypherdb.server --grace-period 3        # Shorter shutdown drain
    python -m cypherdb.server --debug                 # Enable debug logging

Environment Variables:
    CYPHERDB_HOST            - Server bind address
    CYPHERDB_PORT            - Server port
    CYPHERDB_DATA_FILE       - JSON snapshot location
    CYPHERDB_GRACE_PERIOD    - Seconds between shutdown warning and forced close
    CYPHERDB_POLL_INTERVAL   - Seconds between shutdown checks
    CYPHERDB_DEBUG           - Enable debug mode (true/false)

SIGINT and SIGTERM stop the server gracefully: open clients are warned,
given the grace period, then disconnected, and the store is saved.
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import List, Optional

from .config.settings import settings
from .network.tcp_server import CypherServer
from .storage.store import KVStore

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="CypherDB: In-Memory Key-Value Store Server",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--host",
        type=str,
        default=settings.HOST,
        help="Host address to bind to",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=settings.PORT,
        help="Port number to listen on",
    )

    parser.add_argument(
        "--data-file",
        type=str,
        default=settings.DATA_FILE,
        help="JSON snapshot loaded at startup and written at shutdown",
    )

    parser.add_argument(
        "--grace-period",
        type=float,
        default=settings.GRACE_PERIOD,
        help="Seconds clients get to disconnect after the shutdown warning",
    )

    parser.add_argument(
        "--poll-interval",
        type=float,
        default=settings.ACCEPT_POLL_INTERVAL,
        help="Seconds between checks for a shutdown request",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        default=settings.DEBUG,
        help="Enable debug logging",
    )

    return parser.parse_args(argv)


def setup_logging(debug: bool = False) -> None:
    """Configure logging based on debug flag."""
    level = logging.DEBUG if debug else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
        ]
    )


async def run(args: argparse.Namespace) -> int:
    """
    Run the server until a shutdown signal arrives.

    Returns:
        Process exit status: 0 after a graceful stop, 1 if the listener
        could not be bound.
    """
    store = KVStore(data_file=args.data_file)
    server = CypherServer(
        host=args.host,
        port=args.port,
        store=store,
        grace_period=args.grace_period,
        poll_interval=args.poll_interval,
    )

    try:
        await server.start()
    except OSError as exc:
        logger.error(f"Failed to start listener on {args.host}:{args.port}: {exc}")
        return 1

    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def request_shutdown(sig: signal.Signals) -> None:
        logger.info(f"Received signal {sig.name}, initiating shutdown...")
        shutdown_event.set()

    # Register signal handlers (Unix only)
    signals = (signal.SIGTERM, signal.SIGINT) if sys.platform != 'win32' else ()
    for sig in signals:
        loop.add_signal_handler(sig, request_shutdown, sig)

    try:
        await shutdown_event.wait()
    finally:
        for sig in signals:
            loop.remove_signal_handler(sig)
        await server.stop()

    return 0


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the server."""
    args = parse_args(argv)

    setup_logging(debug=args.debug)

    logger.info("Starting CypherDB server")
    logger.info(f"  Host: {args.host}")
    logger.info(f"  Port: {args.port}")
    logger.info(f"  Data file: {args.data_file}")
    logger.info(f"  Grace period: {args.grace_period}s")
    logger.info(f"  Debug: {args.debug}")

    try:
        status = asyncio.run(run(args))
    except KeyboardInterrupt:
        # Only reachable where signal handlers are unavailable (Windows)
        logger.info("Keyboard interrupt received")
        status = 0

    if status == 0:
        logger.info("Server shutdown complete")
    sys.exit(status)


if __name__ == "__main__":
    main()
