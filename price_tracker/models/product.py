# price_tracker/models/product.py

"""Product data models for the tracking engine and its read surfaces."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Product:
    """A tracked product. ``url`` is opaque to the engine."""

    id: str
    name: str
    url: str = ""

    def to_dict(self) -> dict[str, object]:
        """Serialise to the API's JSON shape."""
        return {"id": self.id, "name": self.name, "url": self.url}


@dataclass
class ProductWithLatestPrice:
    """A product joined with its most recent price entry, if any."""

    id: str
    name: str
    url: str
    latest_price: float | None = None
    last_updated: datetime | None = None

    def to_dict(self) -> dict[str, object]:
        """Serialise, omitting the price fields when no entry exists."""
        data: dict[str, object] = {
            "id": self.id,
            "name": self.name,
            "url": self.url,
        }
        if self.latest_price is not None:
            data["latest_price"] = self.latest_price
        if self.last_updated is not None:
            data["last_updated"] = self.last_updated.isoformat()
        return data
