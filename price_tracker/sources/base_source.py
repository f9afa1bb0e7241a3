# price_tracker/sources/base_source.py

"""Abstract base class for all price sources."""

import logging
import re
from abc import ABC, abstractmethod

from price_tracker.config.settings import Settings
from price_tracker.models.product import Product


class PriceSource(ABC):
    """Fetches the current price of one product.

    ``fetch_price`` may block for a long time and is called from
    several worker threads at once. A return value that is not a
    finite positive number means "no price this round".
    """

    def __init__(self, source_name: str) -> None:
        self.source_name = source_name
        self.logger = logging.getLogger(
            f"price_tracker.sources.{source_name}"
        )
        self.settings = Settings()

    @staticmethod
    def extract_price(text: str | None) -> float:
        """Extract a numeric price from a string like '$1,299.00'."""
        if not text:
            return 0.0
        cleaned = text.replace(",", "")
        numbers = re.findall(r"\d+\.?\d*", cleaned)
        return float(numbers[0]) if numbers else 0.0

    @abstractmethod
    def fetch_price(self, product: Product) -> float:
        """Return the current price of ``product`` or 0.0 if unavailable."""
        ...
