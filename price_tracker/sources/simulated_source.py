# price_tracker/sources/simulated_source.py

"""Simulated price source with random latency and price drift."""

import random
import threading
import time

from price_tracker.models.product import Product
from price_tracker.sources.base_source import PriceSource


class SimulatedPriceSource(PriceSource):
    """Stands in for a network call: sleeps, then returns a noisy price."""

    def __init__(
        self,
        rng: random.Random | None = None,
        max_delay: float | None = None,
    ) -> None:
        super().__init__("simulated")
        self._rng = rng or random.Random()
        # random.Random is not safe to share between worker threads
        self._rng_lock = threading.Lock()
        self._max_delay = (
            self.settings.SIMULATED_MAX_DELAY
            if max_delay is None
            else max_delay
        )

    def base_price(self, product: Product) -> float:
        """Return the configured base price for ``product``."""
        return self.settings.BASE_PRICES.get(
            product.id, self.settings.DEFAULT_BASE_PRICE
        )

    def fetch_price(self, product: Product) -> float:
        """Simulate a slow lookup with a +/- variation around base."""
        with self._rng_lock:
            delay = self._rng.random() * self._max_delay
            jitter = self._rng.random() - 0.5
        time.sleep(delay)

        variation = jitter * 2 * self.settings.SIMULATED_VARIATION
        price = self.base_price(product) * (1 + variation)
        self.logger.debug(
            "[simulated] %s -> %.2f after %.3fs",
            product.id,
            price,
            delay,
        )
        return price
