# price_tracker/cli/runner.py

"""Command runners behind ``main.py``: serve, one-shot round and queries."""

import asyncio
import contextlib
import logging
import signal
from datetime import datetime
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.table import Table

from price_tracker.config.settings import Settings
from price_tracker.errors import (
    InvalidProductError,
    PersistenceError,
    ProductNotFoundError,
)
from price_tracker.models.price_entry import PriceEntry
from price_tracker.models.product import Product, ProductWithLatestPrice
from price_tracker.sources.factory import build_price_source
from price_tracker.storage.price_history_db import PriceHistoryDB
from price_tracker.tracking.tracker import PriceTracker

logger = logging.getLogger("price_tracker.cli")

# Stderr console for status messages so stdout stays clean for tables
_err = Console(stderr=True)


def sample_products() -> list[Product]:
    """Build the seed products from settings."""
    return [
        Product(id=p["id"], name=p["name"], url=p["url"])
        for p in Settings.SAMPLE_PRODUCTS
    ]


def _build_tracker(
    db: PriceHistoryDB, source_name: str | None,
) -> PriceTracker:
    """Wire a tracker to ``db`` and the configured price source."""
    return PriceTracker(db, build_price_source(source_name))


def _fmt_price(price: float | None) -> str:
    return f"${price:,.2f}" if price is not None else "—"


def _fmt_time(ts: datetime) -> str:
    # Stored in UTC, shown in local time
    return ts.astimezone().strftime("%Y-%m-%d %H:%M:%S")


def print_products(products: list[ProductWithLatestPrice]) -> None:
    """Render tracked products with their latest price."""
    table = Table(
        title="Tracked Products",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("ID", style="bold")
    table.add_column("Name", max_width=40)
    table.add_column("Latest", justify="right", style="green")
    table.add_column("Updated", style="dim")
    table.add_column("URL", overflow="fold", style="dim")

    for p in products:
        table.add_row(
            p.id,
            p.name,
            _fmt_price(p.latest_price),
            (
                _fmt_time(p.last_updated)
                if p.last_updated
                else "—"
            ),
            p.url,
        )
    Console().print(table)


def print_history(
    product_id: str,
    history: list[PriceEntry],
    trend: dict[str, Any] | None = None,
) -> None:
    """Render a product's history, newest first, with its trend."""
    table = Table(
        title=f"Price History: {product_id}",
        show_lines=False,
        title_style="bold cyan",
    )
    table.add_column("#", style="dim", width=4)
    table.add_column("Price", justify="right", style="green")
    table.add_column("Timestamp")

    for idx, entry in enumerate(history, 1):
        table.add_row(
            str(idx),
            _fmt_price(entry.price),
            _fmt_time(entry.timestamp),
        )
    Console().print(table)

    if trend:
        _err.print(
            f"[bold]Trend[/bold] over {trend['count']} entries: "
            f"min {_fmt_price(trend['min'])}, "
            f"max {_fmt_price(trend['max'])}, "
            f"avg {_fmt_price(trend['avg'])}, "
            f"latest {_fmt_price(trend['latest'])}"
        )


def serve(
    db_path: Path | None = None,
    source_name: str | None = None,
    interval: float | None = None,
) -> int:
    """Track prices and serve the HTTP API until SIGINT/SIGTERM.

    The app's lifespan owns the scheduler, so uvicorn's shutdown
    drains the in-flight round before the store is closed here.
    """
    import uvicorn

    from price_tracker.api.app import create_app

    db = PriceHistoryDB(db_path)
    try:
        tracker = _build_tracker(db, source_name)
        tracker.seed_products(sample_products())
        app = create_app(tracker, manage_tracker=True, interval=interval)
        _err.print(
            "[bold]Price tracker API on[/bold] "
            f"http://{Settings.API_HOST}:{Settings.API_PORT}"
        )
        uvicorn.run(
            app,
            host=Settings.API_HOST,
            port=Settings.API_PORT,
            log_level="warning",
        )
    finally:
        db.close()
    logger.info("Server stopped")
    return 0


async def track_headless(
    db_path: Path | None = None,
    source_name: str | None = None,
    interval: float | None = None,
) -> int:
    """Track prices without the API until SIGINT/SIGTERM."""
    db = PriceHistoryDB(db_path)
    try:
        tracker = _build_tracker(db, source_name)
        tracker.seed_products(sample_products())

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            # Not supported by Windows event loops; Ctrl+C still raises there
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, tracker.stop)

        _err.print("[bold]Tracking prices[/bold] [dim](Ctrl+C to stop)[/dim]")
        await tracker.start(interval)

        _err.print("[dim]Shutting down...[/dim]")
        if not await tracker.shutdown():
            _err.print(
                "[yellow]In-flight round abandoned after grace period[/yellow]"
            )
    finally:
        db.close()
    logger.info("Tracker stopped")
    return 0


async def run_once(
    db_path: Path | None = None,
    source_name: str | None = None,
) -> int:
    """Run a single tracking round and print the latest prices."""
    db = PriceHistoryDB(db_path)
    try:
        tracker = _build_tracker(db, source_name)
        if not len(tracker.registry):
            tracker.seed_products(sample_products())

        result = await tracker.track_all_products()
        await tracker.shutdown()

        _err.print(
            f"[green]✓ {result.saved} prices saved[/green] "
            f"[dim]({result.unavailable} unavailable, "
            f"{result.failed} failed, {result.duration:.2f}s)[/dim]"
        )
        print_products(tracker.get_products())
        return 0 if result.failed == 0 else 1
    finally:
        db.close()


def list_products(db_path: Path | None = None) -> int:
    """Print all tracked products."""
    db = PriceHistoryDB(db_path)
    try:
        products = db.get_products_with_latest_prices()
    except PersistenceError as exc:
        _err.print(f"[red]Store error: {exc}[/red]")
        return 1
    finally:
        db.close()

    if not products:
        _err.print("[yellow]No products tracked yet.[/yellow]")
        return 0
    print_products(products)
    return 0


def show_history(
    product_id: str,
    limit: int | None = None,
    db_path: Path | None = None,
) -> int:
    """Print a product's price history; exit 1 for unknown ids."""
    db = PriceHistoryDB(db_path)
    try:
        # Queries never fetch, so any source will do
        tracker = _build_tracker(db, "simulated")
        history = tracker.get_price_history(product_id, limit)
        trend = tracker.get_trend(product_id)
    except ProductNotFoundError as exc:
        _err.print(f"[red]{exc}[/red]")
        return 1
    finally:
        db.close()

    print_history(product_id, history, trend)
    return 0


def add_product(
    product_id: str,
    name: str,
    url: str,
    db_path: Path | None = None,
) -> int:
    """Register one product from the command line."""
    db = PriceHistoryDB(db_path)
    try:
        tracker = _build_tracker(db, "simulated")
        created = tracker.add_product(
            Product(id=product_id, name=name, url=url)
        )
    except (InvalidProductError, PersistenceError) as exc:
        _err.print(f"[red]Could not add product: {exc}[/red]")
        return 1
    finally:
        db.close()

    verb = "Added" if created else "Updated"
    _err.print(f"[green]✓ {verb} {product_id}[/green]")
    return 0
