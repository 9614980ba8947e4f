"""
LayerEdge Node Bot - Main Entry Point

Loads the wallet and proxy lists, then keeps every wallet's light node
checked in, restarted and polled for points, once per cycle, forever.

Usage:
    python main.py                 # Run the continuous cycle loop
    python main.py --once          # Run a single cycle and exit
    python main.py --register 5    # Create and register 5 new wallets
    python main.py --quiet         # Hide verbose request lines
"""
from dotenv import load_dotenv

# Load environment variables from .env file into os.environ
load_dotenv()

import asyncio
import argparse
import logging
import signal
import sys
from typing import List, Optional

from rich.console import Console
from rich.panel import Panel

from core.config import BotSettings
from core.logging_setup import BotLogger, setup_logging
from core.orchestrator import NodeScheduler, register_wallets
from core.proxy_manager import ProxyManager

logger = logging.getLogger(__name__)

EXIT_FATAL = 1

BANNER = (
    "[bold cyan]LayerEdge Node Bot[/bold cyan]\n"
    "[dim]daily check-in · node restart · points polling[/dim]"
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="LayerEdge light-node automation")
    parser.add_argument("--once", action="store_true", help="Run a single cycle and exit")
    parser.add_argument("--register", type=int, metavar="N", help="Generate and register N new wallets")
    parser.add_argument("--wallets", type=str, help="Path to wallets.json")
    parser.add_argument("--proxies", type=str, help="Path to the proxy list")
    parser.add_argument("--quiet", action="store_true", help="Disable verbose output")
    parser.add_argument("--log-level", type=str, help="Logging level (DEBUG, VERBOSE, INFO...)")
    return parser


def apply_overrides(settings: BotSettings, args: argparse.Namespace) -> BotSettings:
    """Apply command line flags on top of env/.env settings."""
    if args.wallets:
        settings.wallets_file = args.wallets
    if args.proxies:
        settings.proxies_file = args.proxies
    if args.quiet:
        settings.verbose = False
    if args.log_level:
        settings.log_level = args.log_level.upper()
    return settings


async def main(argv: Optional[List[str]] = None) -> int:
    """
    Main execution routine.

    1. Parses command line arguments.
    2. Sets up logging.
    3. Either registers new wallets or builds the NodeScheduler.
    4. Runs until the loop ends, SIGTERM arrives, or a fatal error.

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.register is not None and args.register < 1:
        parser.error("--register needs a positive wallet count")
    settings = apply_overrides(BotSettings(), args)

    setup_logging(settings.log_level)
    Console().print(Panel.fit(BANNER))
    log = BotLogger(verbose=settings.verbose)
    log.info("Starting LayerEdge node bot", "initialising...")

    if args.register is not None:
        proxy_manager = ProxyManager.from_file(settings.proxies_file)
        await register_wallets(settings, args.register, proxy_manager, log=log)
        return 0

    try:
        scheduler = NodeScheduler.from_settings(settings, log=log)
    except Exception as e:
        log.error("Fatal error while loading configuration", "", e)
        return EXIT_FATAL

    def handle_sigterm():
        logger.info("Received SIGTERM. Stopping after the current wallet...")
        scheduler.stop()

    loop = asyncio.get_running_loop()
    if sys.platform != "win32":
        loop.add_signal_handler(signal.SIGTERM, handle_sigterm)

    try:
        return await scheduler.run(max_cycles=1 if args.once else None)
    except Exception as e:
        log.error("Fatal error", "", e)
        return EXIT_FATAL


def cli() -> None:
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("Stopping bot (KeyboardInterrupt)...")
        sys.exit(0)


if __name__ == "__main__":
    cli()
