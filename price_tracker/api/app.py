# price_tracker/api/app.py

"""HTTP API over a running PriceTracker."""

import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel

from price_tracker.config.settings import Settings
from price_tracker.errors import (
    InvalidProductError,
    PersistenceError,
    ProductNotFoundError,
)
from price_tracker.models.price_entry import utc_now
from price_tracker.models.product import Product
from price_tracker.tracking.tracker import PriceTracker

logger = logging.getLogger("price_tracker.api")

_INDEX_HTML = """<!DOCTYPE html>
<html>
<head>
    <title>Price Tracker</title>
    <style>
        body { font-family: Arial, sans-serif; margin: 40px; }
        .endpoint { margin: 20px 0; padding: 10px; background: #f5f5f5; border-radius: 5px; }
        code { background: #e9e9e9; padding: 2px 6px; border-radius: 3px; }
    </style>
</head>
<body>
    <h1>Product Price Tracker API</h1>
    <div class="endpoint">
        <h3>GET /api/v1/products</h3>
        <p>All tracked products with their latest prices</p>
        <p><a href="/api/v1/products">Try it</a></p>
    </div>
    <div class="endpoint">
        <h3>POST /api/v1/products</h3>
        <p>Track a product. Body: <code>{"id": "...", "name": "...", "url": "..."}</code></p>
    </div>
    <div class="endpoint">
        <h3>GET /api/v1/products/{id}/history</h3>
        <p>Price history for one product, newest first</p>
        <p>Parameters: <code>?limit=N</code> (default: 50)</p>
        <p><a href="/api/v1/products/laptop-1/history?limit=10">laptop-1 history (limit 10)</a></p>
    </div>
    <div class="endpoint">
        <h3>GET /api/v1/products/{id}/trend</h3>
        <p>Min, max, average and latest price for one product</p>
        <p><a href="/api/v1/products/laptop-1/trend">laptop-1 trend</a></p>
    </div>
    <div class="endpoint">
        <h3>GET /api/v1/health</h3>
        <p><a href="/api/v1/health">Try it</a></p>
    </div>
</body>
</html>"""


class ProductIn(BaseModel):
    """Request body for registering a product."""

    id: str
    name: str
    url: str = ""


def parse_limit(raw: str | None) -> int:
    """Parse ``?limit=``; anything but a positive integer gives the default."""
    if raw:
        try:
            value = int(raw)
        except ValueError:
            return Settings.DEFAULT_HISTORY_LIMIT
        if value > 0:
            return value
    return Settings.DEFAULT_HISTORY_LIMIT


def _error(status: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status, content={"error": message})


def create_app(
    tracker: PriceTracker,
    manage_tracker: bool = False,
    interval: float | None = None,
) -> FastAPI:
    """Build the FastAPI application bound to ``tracker``.

    With ``manage_tracker`` the app's lifespan starts the scheduler on
    startup and runs :meth:`PriceTracker.shutdown` before the server
    exits, so the store stays open until the last round has drained.
    """

    @asynccontextmanager
    async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
        if manage_tracker:
            tracker.start(interval)
        yield
        if manage_tracker:
            logger.info("Shutting down price tracker")
            clean = await tracker.shutdown()
            if not clean:
                logger.warning("Shutdown grace period expired")

    app = FastAPI(
        title="Price Tracker API",
        description="Tracked products, latest prices and price history.",
        version="1.0.0",
        lifespan=_lifespan,
    )
    app.state.tracker = tracker

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.middleware("http")
    async def log_requests(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        start = time.monotonic()
        response = await call_next(request)
        logger.info(
            "%s %s %d %.1fms",
            request.method,
            request.url.path,
            response.status_code,
            (time.monotonic() - start) * 1000,
        )
        return response

    @app.exception_handler(ProductNotFoundError)
    async def _not_found(
        request: Request, exc: ProductNotFoundError,
    ) -> JSONResponse:
        return _error(404, str(exc))

    @app.exception_handler(InvalidProductError)
    async def _invalid(
        request: Request, exc: InvalidProductError,
    ) -> JSONResponse:
        return _error(422, str(exc))

    @app.exception_handler(PersistenceError)
    async def _store_fault(
        request: Request, exc: PersistenceError,
    ) -> JSONResponse:
        logger.error(
            "Store error on %s %s: %s",
            request.method,
            request.url.path,
            exc,
        )
        return _error(500, "internal error")

    # Sync handlers run in the threadpool, so store calls never block the loop

    @app.get("/api/v1/products")
    def list_products() -> list[dict[str, Any]]:
        return [p.to_dict() for p in tracker.get_products()]

    @app.post("/api/v1/products")
    def add_product(body: ProductIn) -> JSONResponse:
        product = Product(id=body.id.strip(), name=body.name, url=body.url)
        created = tracker.add_product(product)
        return JSONResponse(
            status_code=201 if created else 200,
            content={"product": product.to_dict(), "created": created},
        )

    @app.get("/api/v1/products/{product_id}/history")
    def price_history(
        product_id: str, limit: str | None = None,
    ) -> dict[str, Any]:
        history = tracker.get_price_history(product_id, parse_limit(limit))
        return {
            "product_id": product_id,
            "history": [e.to_dict() for e in history],
            "count": len(history),
        }

    @app.get("/api/v1/products/{product_id}/trend")
    def price_trend(product_id: str) -> dict[str, Any]:
        return {
            "product_id": product_id,
            "trend": tracker.get_trend(product_id),
        }

    @app.get("/api/v1/health")
    def health() -> dict[str, Any]:
        last = tracker.last_round
        return {
            "status": "ok",
            "time": utc_now().isoformat(),
            "tracker": tracker.state,
            "products": len(tracker.registry),
            "rounds_completed": tracker.rounds_completed,
            "rounds_skipped": tracker.rounds_skipped,
            "last_round": (
                last.finished_at.isoformat()
                if last and last.finished_at
                else None
            ),
        }

    @app.get("/", response_class=HTMLResponse)
    def index() -> HTMLResponse:
        return HTMLResponse(_INDEX_HTML)

    return app
