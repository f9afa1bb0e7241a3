# main.py

"""Entry point for the price_tracker service (API server or one-off commands)."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from price_tracker.config.logging_config import setup_logging
from price_tracker.config.settings import Settings
from price_tracker.errors import ConfigurationError, StoreUnavailableError
from price_tracker.sources.factory import AVAILABLE_SOURCES

logger = logging.getLogger("price_tracker.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="price_tracker",
        description="Periodic product price tracker with an HTTP API.",
        epilog=f"Price sources: {', '.join(sorted(AVAILABLE_SOURCES))}",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--once",
        action="store_true",
        default=False,
        help="Run a single tracking round, print prices and exit.",
    )
    mode.add_argument(
        "--list",
        action="store_true",
        default=False,
        dest="list_products",
        help="List tracked products with their latest price.",
    )
    mode.add_argument(
        "--history",
        default=None,
        metavar="ID",
        help="Show the price history of one product.",
    )
    mode.add_argument(
        "--add",
        nargs=3,
        default=None,
        metavar=("ID", "NAME", "URL"),
        help="Register a product to track.",
    )
    mode.add_argument(
        "--no-api",
        action="store_true",
        default=False,
        dest="no_api",
        help="Track prices without starting the HTTP API.",
    )
    parser.add_argument(
        "-l",
        "--limit",
        type=int,
        default=None,
        help=(
            "Max history entries "
            f"(default: {Settings.DEFAULT_HISTORY_LIMIT})."
        ),
    )
    parser.add_argument(
        "-i",
        "--interval",
        type=float,
        default=None,
        help=f"Seconds between rounds (default: {Settings.TRACK_INTERVAL}).",
    )
    parser.add_argument(
        "-s",
        "--source",
        default=None,
        help=f"Price source (default: {Settings.PRICE_SOURCE}).",
    )
    parser.add_argument(
        "--db",
        default=None,
        dest="db_path",
        help=f"SQLite database path (default: {Settings.PRICE_DB_PATH}).",
    )
    return parser


def _dispatch(args: argparse.Namespace) -> int:
    """Run the selected command and return its exit code."""
    from price_tracker.cli import runner

    db_path = Path(args.db_path) if args.db_path else None

    if args.once:
        return asyncio.run(runner.run_once(db_path, args.source))
    if args.list_products:
        return runner.list_products(db_path)
    if args.history is not None:
        return runner.show_history(args.history, args.limit, db_path)
    if args.add is not None:
        product_id, name, url = args.add
        return runner.add_product(product_id, name, url, db_path)
    if args.no_api:
        return asyncio.run(
            runner.track_headless(db_path, args.source, args.interval)
        )
    return runner.serve(db_path, args.source, args.interval)


def main() -> None:
    """Validate settings, set up logging and route to a command."""
    log_file = setup_logging()
    logger.info("price_tracker starting, log file: %s", log_file)

    parser = _build_parser()
    args = parser.parse_args()
    if args.interval is not None and args.interval <= 0:
        parser.error("--interval must be > 0")
    if args.limit is not None and args.limit < 1:
        parser.error("--limit must be >= 1")

    try:
        Settings.validate()
        exit_code = _dispatch(args)
    except (ConfigurationError, StoreUnavailableError) as exc:
        logger.critical("Fatal startup error: %s", exc, exc_info=True)
        sys.exit(2)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
