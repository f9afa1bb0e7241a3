# price_tracker/sources/factory.py

"""Resolve the configured price source by name."""

import importlib
from typing import Any

from price_tracker.config.settings import Settings
from price_tracker.errors import ConfigurationError
from price_tracker.sources.base_source import PriceSource

AVAILABLE_SOURCES: dict[str, str] = {
    "simulated": (
        "price_tracker.sources.simulated_source.SimulatedPriceSource"
    ),
    "http": "price_tracker.sources.http_source.HttpPriceSource",
}


def _load_source_class(dotted_path: str) -> type[Any]:
    """Dynamically import a source class from its dotted module path."""
    module_path, class_name = dotted_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    cls: type[Any] = getattr(module, class_name)
    return cls


def build_price_source(name: str | None = None) -> PriceSource:
    """Instantiate the source named ``name`` (default: settings)."""
    key = (name or Settings.PRICE_SOURCE).strip().lower()
    if key not in AVAILABLE_SOURCES:
        valid = ", ".join(sorted(AVAILABLE_SOURCES))
        msg = f"Unknown price source {key!r} (available: {valid})"
        raise ConfigurationError(msg)
    source: PriceSource = _load_source_class(AVAILABLE_SOURCES[key])()
    return source
