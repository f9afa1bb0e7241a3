# price_tracker/models/price_entry.py

"""Immutable price observation model for price history tracking."""

import math
from dataclasses import dataclass
from datetime import datetime, timezone


def utc_now() -> datetime:
    """Timezone-aware current time; every stored and reported time uses it."""
    return datetime.now(timezone.utc)


def is_valid_price(value: float) -> bool:
    """Return True for a finite, strictly positive price."""
    try:
        return math.isfinite(value) and value > 0
    except TypeError:
        return False


@dataclass(frozen=True)
class PriceEntry:
    """A single price observation for a product at a point in time."""

    product_id: str
    price: float
    timestamp: datetime
    id: int | None = None

    def to_dict(self) -> dict[str, object]:
        """Serialise to the API's JSON shape."""
        return {
            "id": self.id,
            "product_id": self.product_id,
            "price": self.price,
            "timestamp": self.timestamp.isoformat(),
        }
