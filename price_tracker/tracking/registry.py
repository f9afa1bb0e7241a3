# price_tracker/tracking/registry.py

"""In-memory product registry guarded by a reader/writer lock."""

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from price_tracker.errors import (
    InvalidProductError,
    PersistenceError,
    StoreUnavailableError,
)
from price_tracker.models.product import Product
from price_tracker.storage.price_history_db import PriceHistoryDB

logger = logging.getLogger("price_tracker.registry")


class ReadWriteLock:
    """Many concurrent readers or one writer.

    A waiting writer blocks new readers, so registrations are not
    starved by back-to-back snapshots.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        """Hold the lock in shared mode for the ``with`` body."""
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        """Hold the lock in exclusive mode for the ``with`` body."""
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


class ProductRegistry:
    """Cache of tracked products, mirrored from the price store.

    The store is the source of truth: registrations are persisted
    before they become visible here. The internal map is never handed
    out; callers get copies from :meth:`snapshot`.
    """

    def __init__(self, db: PriceHistoryDB) -> None:
        self._db = db
        self._products: dict[str, Product] = {}
        self._lock = ReadWriteLock()
        # Serialises register() calls so store and cache agree on the winner
        self._register_lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock.read_locked():
            return len(self._products)

    def __contains__(self, product_id: object) -> bool:
        with self._lock.read_locked():
            return product_id in self._products

    def load(self) -> int:
        """Hydrate the registry from the store; returns the count."""
        try:
            products = self._db.get_all_products()
        except PersistenceError as exc:
            msg = f"cannot load products: {exc}"
            raise StoreUnavailableError(msg) from exc

        with self._lock.write_locked():
            for product in products:
                self._products[product.id] = product

        logger.info("Loaded %d products from database", len(products))
        return len(products)

    def register(self, product: Product) -> bool:
        """Persist ``product`` then make it visible to snapshots.

        An existing id is overwritten (last registration wins).
        Returns True when the id was not tracked before.
        """
        if not product.id or not product.id.strip():
            raise InvalidProductError("product id must be non-empty")

        with self._register_lock:
            # Store first; a crash here leaves the store ahead of the cache.
            self._db.insert_product(product)
            with self._lock.write_locked():
                is_new = product.id not in self._products
                self._products[product.id] = product

        if is_new:
            logger.info("Added product: %s (%s)", product.name, product.id)
        else:
            logger.info(
                "Re-registered product: %s (%s)", product.name, product.id
            )
        return is_new

    def snapshot(self) -> list[Product]:
        """Return a point-in-time copy of all products, ordered by id."""
        with self._lock.read_locked():
            products = list(self._products.values())
        return sorted(products, key=lambda p: p.id)
