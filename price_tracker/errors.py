# price_tracker/errors.py

"""Exception hierarchy for the price tracking engine."""


class PriceTrackerError(Exception):
    """Base class for all price_tracker errors."""


class ConfigurationError(PriceTrackerError):
    """A setting is missing or out of range."""


class InvalidProductError(PriceTrackerError, ValueError):
    """A product failed registration checks (e.g. empty id)."""


class ProductNotFoundError(PriceTrackerError):
    """History was requested for a product that is not registered."""

    def __init__(self, product_id: str) -> None:
        super().__init__(f"product not found: {product_id}")
        self.product_id = product_id


class PersistenceError(PriceTrackerError):
    """A write or read against the price store failed."""


class StoreUnavailableError(PriceTrackerError):
    """The price store cannot be opened or read."""
