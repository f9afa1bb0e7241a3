# price_tracker/storage/price_history_db.py

"""SQLite-backed product registry and append-only price history."""

import logging
import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import Any

from price_tracker.config.settings import Settings
from price_tracker.errors import PersistenceError, StoreUnavailableError
from price_tracker.models.price_entry import PriceEntry
from price_tracker.models.product import Product, ProductWithLatestPrice

logger = logging.getLogger("price_tracker.storage")

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS products (
    id         TEXT PRIMARY KEY,
    name       TEXT NOT NULL,
    url        TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS price_entries (
    id         INTEGER PRIMARY KEY AUTOINCREMENT,
    product_id TEXT    NOT NULL REFERENCES products(id),
    price      REAL    NOT NULL,
    timestamp  TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_price_entries_product_id
    ON price_entries(product_id);

CREATE INDEX IF NOT EXISTS idx_price_entries_timestamp
    ON price_entries(timestamp);
"""

_LATEST_PRICES_SQL = """\
SELECT p.id, p.name, p.url, pe.price, pe.timestamp
FROM products p
LEFT JOIN (
    SELECT product_id, price, timestamp,
           ROW_NUMBER() OVER (
               PARTITION BY product_id
               ORDER BY timestamp DESC, id DESC
           ) AS rn
    FROM price_entries
) pe ON pe.product_id = p.id AND pe.rn = 1
ORDER BY p.name, p.id
"""


class PriceHistoryDB:
    """SQLite-backed store for products and their price entries.

    One connection is shared by every caller; a lock serialises
    statements so the engine's collector, the API handlers and the
    registry can use the store concurrently.
    """

    def __init__(
        self, db_path: Path | None = None,
    ) -> None:
        path = db_path or Settings.PRICE_DB_PATH
        self._lock = threading.Lock()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            self._conn: sqlite3.Connection | None = sqlite3.connect(
                str(path), check_same_thread=False,
            )
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA foreign_keys=ON")
            self._conn.executescript(_SCHEMA)
        except (sqlite3.Error, OSError) as exc:
            msg = f"cannot open price store at {path}: {exc}"
            raise StoreUnavailableError(msg) from exc
        logger.debug("PriceHistoryDB opened at %s", path)

    def close(self) -> None:
        """Close the connection once any in-flight statement finishes."""
        with self._lock:
            if self._conn is None:
                return
            self._conn.close()
            self._conn = None
        logger.debug("PriceHistoryDB closed")

    @property
    def closed(self) -> bool:
        """True once :meth:`close` has run."""
        return self._conn is None

    def _connection(self) -> sqlite3.Connection:
        """Return the open connection; caller must hold the lock."""
        if self._conn is None:
            raise PersistenceError("price store is closed")
        return self._conn

    # ── Products ─────────────────────────────────────────

    def insert_product(self, product: Product) -> None:
        """Insert a product, replacing name/url if the id exists."""
        with self._lock:
            conn = self._connection()
            try:
                conn.execute(
                    "INSERT INTO products (id, name, url) "
                    "VALUES (?, ?, ?) "
                    "ON CONFLICT(id) DO UPDATE SET "
                    "name=excluded.name, url=excluded.url",
                    (product.id, product.name, product.url),
                )
                conn.commit()
            except sqlite3.Error as exc:
                conn.rollback()
                msg = f"failed to save product {product.id}: {exc}"
                raise PersistenceError(msg) from exc

    def get_all_products(self) -> list[Product]:
        """Return every registered product ordered by name."""
        with self._lock:
            rows = self._fetchall(
                "SELECT id, name, url FROM products ORDER BY name, id",
                (),
            )
        return [Product(id=r[0], name=r[1], url=r[2]) for r in rows]

    def get_products_with_latest_prices(
        self,
    ) -> list[ProductWithLatestPrice]:
        """Return every product joined with its newest price entry."""
        with self._lock:
            rows = self._fetchall(_LATEST_PRICES_SQL, ())
        return [
            ProductWithLatestPrice(
                id=r[0],
                name=r[1],
                url=r[2],
                latest_price=r[3],
                last_updated=(
                    datetime.fromisoformat(r[4]) if r[4] else None
                ),
            )
            for r in rows
        ]

    def product_exists(self, product_id: str) -> bool:
        """Check whether a product id is registered."""
        with self._lock:
            rows = self._fetchall(
                "SELECT COUNT(*) FROM products WHERE id = ?",
                (product_id,),
            )
        return bool(rows[0][0])

    # ── Price entries ────────────────────────────────────

    def insert_price_entry(
        self,
        product_id: str,
        price: float,
        timestamp: datetime,
    ) -> int:
        """Append one price entry and return its row id.

        Raises PersistenceError on any SQLite failure, including a
        foreign-key violation for an unknown product.
        """
        with self._lock:
            conn = self._connection()
            try:
                cur = conn.execute(
                    "INSERT INTO price_entries "
                    "(product_id, price, timestamp) VALUES (?, ?, ?)",
                    (product_id, price, timestamp.isoformat()),
                )
                conn.commit()
            except sqlite3.Error as exc:
                conn.rollback()
                msg = (
                    f"failed to save price entry for {product_id}: {exc}"
                )
                raise PersistenceError(msg) from exc
        row_id = cur.lastrowid
        return int(row_id) if row_id is not None else 0

    def get_price_history(
        self, product_id: str, limit: int,
    ) -> list[PriceEntry]:
        """Return up to ``limit`` price entries, newest first."""
        with self._lock:
            rows = self._fetchall(
                "SELECT id, product_id, price, timestamp "
                "FROM price_entries "
                "WHERE product_id = ? "
                "ORDER BY timestamp DESC, id DESC "
                "LIMIT ?",
                (product_id, limit),
            )
        return [
            PriceEntry(
                id=r[0],
                product_id=r[1],
                price=r[2],
                timestamp=datetime.fromisoformat(r[3]),
            )
            for r in rows
        ]

    def get_trend_summary(
        self, product_id: str,
    ) -> dict[str, Any] | None:
        """Compute min / max / avg / latest price for a product."""
        with self._lock:
            stats = self._fetchall(
                "SELECT MIN(price), MAX(price), AVG(price), COUNT(id) "
                "FROM price_entries WHERE product_id = ?",
                (product_id,),
            )[0]
            if stats[3] == 0:
                return None
            latest = self._fetchall(
                "SELECT price FROM price_entries "
                "WHERE product_id = ? "
                "ORDER BY timestamp DESC, id DESC LIMIT 1",
                (product_id,),
            )
        return {
            "min": stats[0],
            "max": stats[1],
            "avg": round(stats[2], 2),
            "count": stats[3],
            "latest": latest[0][0] if latest else 0.0,
        }

    # ── Internals ────────────────────────────────────────

    def _fetchall(
        self, sql: str, params: tuple[object, ...],
    ) -> list[Any]:
        """Run a read query; caller must hold the lock."""
        try:
            return self._connection().execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise PersistenceError(f"query failed: {exc}") from exc
