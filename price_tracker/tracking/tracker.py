# price_tracker/tracking/tracker.py

"""Periodic price tracking: scheduler, worker pool and shutdown."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from price_tracker.config.settings import Settings
from price_tracker.errors import (
    ConfigurationError,
    PersistenceError,
    ProductNotFoundError,
)
from price_tracker.models.price_entry import (
    PriceEntry,
    is_valid_price,
    utc_now,
)
from price_tracker.models.product import Product, ProductWithLatestPrice
from price_tracker.sources.base_source import PriceSource
from price_tracker.storage.price_history_db import PriceHistoryDB
from price_tracker.tracking.fetch_pool import DaemonFetchPool
from price_tracker.tracking.registry import ProductRegistry

logger = logging.getLogger("price_tracker.tracker")


@dataclass
class RoundResult:
    """Outcome counters for one tracking round."""

    started_at: datetime = field(default_factory=utc_now)
    finished_at: datetime | None = None
    attempted: int = 0
    saved: int = 0
    unavailable: int = 0
    failed: int = 0

    @property
    def duration(self) -> float:
        """Wall-clock seconds the round took (0.0 while running)."""
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()


class PriceTracker:
    """Tracks prices for every registered product on a fixed interval.

    One instance owns the product registry, the worker thread pool
    and the scheduler task. The store and the price source are
    injected and outlive the tracker; the caller closes the store
    after :meth:`shutdown` returns.
    """

    def __init__(
        self,
        db: PriceHistoryDB,
        source: PriceSource,
        worker_count: int | None = None,
    ) -> None:
        self._db = db
        self._source = source
        self.worker_count = (
            Settings.WORKER_COUNT if worker_count is None else worker_count
        )
        if self.worker_count < 1:
            msg = f"worker_count must be >= 1, got {self.worker_count}"
            raise ConfigurationError(msg)

        self.registry = ProductRegistry(db)
        self.registry.load()

        self._pool = DaemonFetchPool(self.worker_count, "price-worker")
        self._stop_event = asyncio.Event()
        self._scheduler_task: asyncio.Task[None] | None = None
        self._round_task: asyncio.Task[RoundResult | None] | None = None

        self.state = "idle"
        self.rounds_completed = 0
        self.rounds_skipped = 0
        self.last_round: RoundResult | None = None

    # ── Registration and reads ───────────────────────────

    def add_product(self, product: Product) -> bool:
        """Register a product; True if it was not tracked before."""
        return self.registry.register(product)

    def seed_products(self, products: list[Product]) -> int:
        """Register sample products, logging failures. Returns count added."""
        added = 0
        for product in products:
            try:
                if self.add_product(product):
                    added += 1
            except (PersistenceError, ValueError) as exc:
                logger.error(
                    "Failed to add product %s: %s", product.id, exc
                )
        return added

    def get_products(self) -> list[ProductWithLatestPrice]:
        """Return every product with its latest price, if any."""
        return self._db.get_products_with_latest_prices()

    def get_price_history(
        self, product_id: str, limit: int | None = None,
    ) -> list[PriceEntry]:
        """Return a product's price history, newest first.

        Raises ProductNotFoundError for an unregistered id. A missing
        or non-positive ``limit`` falls back to the default.
        """
        if limit is None or limit < 1:
            limit = Settings.DEFAULT_HISTORY_LIMIT
        if not self._db.product_exists(product_id):
            raise ProductNotFoundError(product_id)
        return self._db.get_price_history(product_id, limit)

    def get_trend(self, product_id: str) -> dict[str, Any] | None:
        """Min / max / avg / count / latest price, None before any entry."""
        if not self._db.product_exists(product_id):
            raise ProductNotFoundError(product_id)
        return self._db.get_trend_summary(product_id)

    # ── Round execution ──────────────────────────────────

    async def track_all_products(self) -> RoundResult:
        """Fetch and store one price for every registered product.

        Products are drained from a shared queue by at most
        ``worker_count`` workers; a single collector persists results
        in completion order. Returns once every fetch has finished
        and every valid price has had a save attempt.
        """
        result = RoundResult()
        products = self.registry.snapshot()
        if not products:
            result.finished_at = utc_now()
            return result

        logger.info("Tracking prices for %d products", len(products))

        work: asyncio.Queue[Product] = asyncio.Queue()
        for product in products:
            work.put_nowait(product)
        results: asyncio.Queue[PriceEntry | None] = asyncio.Queue()

        workers = [
            asyncio.create_task(self._price_worker(work, results, result))
            for _ in range(min(self.worker_count, len(products)))
        ]
        collector = asyncio.create_task(self._collect(results, result))

        try:
            await asyncio.gather(*workers)
            results.put_nowait(None)
            await collector
        finally:
            for task in (*workers, collector):
                if not task.done():
                    task.cancel()

        result.finished_at = utc_now()
        logger.info(
            "Round finished in %.2fs: %d saved, %d unavailable, "
            "%d failed of %d",
            result.duration,
            result.saved,
            result.unavailable,
            result.failed,
            result.attempted,
        )
        return result

    async def _price_worker(
        self,
        work: asyncio.Queue[Product],
        results: asyncio.Queue[PriceEntry | None],
        stats: RoundResult,
    ) -> None:
        """Drain the work queue, fetching one price per product."""
        while True:
            try:
                product = work.get_nowait()
            except asyncio.QueueEmpty:
                return

            stats.attempted += 1
            try:
                price = await asyncio.wrap_future(
                    self._pool.submit(self._source.fetch_price, product)
                )
            except Exception as exc:
                logger.warning(
                    "Price fetch for %s raised: %s",
                    product.id,
                    exc,
                    exc_info=True,
                )
                price = 0.0

            if not is_valid_price(price):
                stats.unavailable += 1
                logger.info(
                    "Price unavailable for %s (got %r)", product.id, price
                )
                continue

            await results.put(
                PriceEntry(
                    product_id=product.id,
                    price=price,
                    timestamp=utc_now(),
                )
            )

    async def _collect(
        self,
        results: asyncio.Queue[PriceEntry | None],
        stats: RoundResult,
    ) -> None:
        """Persist entries one at a time until the ``None`` sentinel."""
        while True:
            entry = await results.get()
            if entry is None:
                return
            try:
                await asyncio.to_thread(
                    self._db.insert_price_entry,
                    entry.product_id,
                    entry.price,
                    entry.timestamp,
                )
            except PersistenceError as exc:
                stats.failed += 1
                logger.error(
                    "Failed to save price entry for %s: %s",
                    entry.product_id,
                    exc,
                )
            else:
                stats.saved += 1
                logger.info(
                    "Saved price for %s: $%.2f",
                    entry.product_id,
                    entry.price,
                )

    # ── Scheduling ───────────────────────────────────────

    def start(self, interval: float | None = None) -> asyncio.Task[None]:
        """Run :meth:`start_tracking` as a background task."""
        if self._scheduler_task is None or self._scheduler_task.done():
            self._scheduler_task = asyncio.create_task(
                self.start_tracking(interval), name="price-scheduler"
            )
        return self._scheduler_task

    async def start_tracking(self, interval: float | None = None) -> None:
        """Start one round per ``interval`` seconds until stopped.

        A tick that fires while the previous round is still running
        is skipped. The wait between ticks returns as soon as
        :meth:`stop` is called.
        """
        period = Settings.TRACK_INTERVAL if interval is None else interval
        if period <= 0:
            msg = f"tracking interval must be > 0, got {period}"
            raise ConfigurationError(msg)

        self.state = "running"
        logger.info("Starting price tracking with interval: %.1fs", period)
        try:
            while not self._stop_event.is_set():
                try:
                    await asyncio.wait_for(
                        self._stop_event.wait(), timeout=period
                    )
                except asyncio.TimeoutError:
                    pass
                if self._stop_event.is_set():
                    break
                self._on_tick()
        finally:
            self.state = "stopped"
            logger.info("Price tracking stopped")

    def _on_tick(self) -> None:
        """Start a round unless the previous one is still in flight."""
        if self._round_task is not None and not self._round_task.done():
            self.rounds_skipped += 1
            logger.warning(
                "Previous round still running, skipping tick (%d skipped)",
                self.rounds_skipped,
            )
            return
        self._round_task = asyncio.create_task(
            self._run_round(), name="price-round"
        )

    async def _run_round(self) -> RoundResult | None:
        """Run one round; errors are logged and never stop the scheduler."""
        try:
            result = await self.track_all_products()
        except asyncio.CancelledError:
            logger.warning("Tracking round cancelled")
            raise
        except Exception:
            logger.error("Tracking round failed", exc_info=True)
            return None
        self.rounds_completed += 1
        self.last_round = result
        return result

    # ── Lifecycle ────────────────────────────────────────

    def stop(self) -> None:
        """Signal the scheduler to stop; safe to call repeatedly."""
        self._stop_event.set()

    @property
    def stopping(self) -> bool:
        """True once :meth:`stop` has been called."""
        return self._stop_event.is_set()

    async def shutdown(self, grace: float | None = None) -> bool:
        """Stop scheduling and wait for the in-flight round.

        Waits at most ``grace`` seconds. If the round is still running
        after that it is abandoned (its pending saves are cancelled,
        running fetches are left on daemon threads that never delay
        process exit) and False is returned. The store is left open
        for the caller to close.
        """
        grace = Settings.SHUTDOWN_GRACE if grace is None else grace
        self.stop()

        if self._scheduler_task is not None:
            await asyncio.gather(
                self._scheduler_task, return_exceptions=True
            )

        clean = True
        round_task = self._round_task
        if round_task is not None and not round_task.done():
            logger.info("Waiting up to %.1fs for in-flight round", grace)
            done, _ = await asyncio.wait({round_task}, timeout=grace)
            if not done:
                clean = False
                logger.warning(
                    "In-flight round did not finish within %.1fs, "
                    "abandoning it",
                    grace,
                )
                round_task.cancel()
                await asyncio.gather(round_task, return_exceptions=True)

        self._pool.shutdown()
        self.state = "stopped"
        logger.info("Price tracker shut down (clean=%s)", clean)
        return clean
