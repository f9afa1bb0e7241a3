# tests/test_sources.py

"""Tests for the simulated and HTTP price sources and the factory."""

import random
import unittest
from unittest.mock import MagicMock, patch

from price_tracker.config.settings import Settings
from price_tracker.errors import ConfigurationError
from price_tracker.models.product import Product
from price_tracker.sources.base_source import PriceSource
from price_tracker.sources.factory import (
    AVAILABLE_SOURCES,
    build_price_source,
)
from price_tracker.sources.http_source import HttpPriceSource
from price_tracker.sources.simulated_source import SimulatedPriceSource


class TestExtractPrice(unittest.TestCase):
    """Price text parsing shared by all sources."""

    def test_currency_and_thousands(self) -> None:
        """'$1,299.00' parses to 1299.0."""
        self.assertEqual(PriceSource.extract_price("$1,299.00"), 1299.0)

    def test_plain_integer(self) -> None:
        """Integers without decimals parse."""
        self.assertEqual(PriceSource.extract_price("AED 45"), 45.0)

    def test_no_digits(self) -> None:
        """Text without a number yields 0.0."""
        self.assertEqual(PriceSource.extract_price("Out of stock"), 0.0)

    def test_empty(self) -> None:
        """None and empty strings yield 0.0."""
        self.assertEqual(PriceSource.extract_price(None), 0.0)
        self.assertEqual(PriceSource.extract_price(""), 0.0)


class TestSimulatedPriceSource(unittest.TestCase):
    """Simulated source: configured base prices with bounded noise."""

    def setUp(self) -> None:
        self.source = SimulatedPriceSource(rng=random.Random(42))

    def test_known_base_prices(self) -> None:
        """Sample products use their configured base price."""
        for product_id, base in Settings.BASE_PRICES.items():
            with self.subTest(product_id=product_id):
                product = Product(id=product_id, name=product_id)
                self.assertEqual(self.source.base_price(product), base)

    def test_unknown_product_default_base(self) -> None:
        """Other products fall back to the default base price."""
        product = Product(id="mystery", name="Mystery")
        self.assertEqual(
            self.source.base_price(product), Settings.DEFAULT_BASE_PRICE
        )

    def test_price_within_variation(self) -> None:
        """Prices stay within the configured variation of the base."""
        product = Product(id="laptop-1", name="Laptop")
        base = Settings.BASE_PRICES["laptop-1"]
        spread = base * Settings.SIMULATED_VARIATION
        for _ in range(200):
            price = self.source.fetch_price(product)
            self.assertGreaterEqual(price, base - spread)
            self.assertLessEqual(price, base + spread)

    def test_prices_are_positive(self) -> None:
        """Simulated prices are always valid."""
        product = Product(id="x", name="X")
        for _ in range(50):
            self.assertGreater(self.source.fetch_price(product), 0)

    def test_sleeps_up_to_max_delay(self) -> None:
        """Each fetch sleeps for a delay below max_delay."""
        source = SimulatedPriceSource(rng=random.Random(1), max_delay=0.5)
        with patch(
            "price_tracker.sources.simulated_source.time.sleep"
        ) as mock_sleep:
            source.fetch_price(Product(id="x", name="X"))
        mock_sleep.assert_called_once()
        delay = mock_sleep.call_args[0][0]
        self.assertGreaterEqual(delay, 0.0)
        self.assertLess(delay, 0.5)

    def test_seeded_sources_agree(self) -> None:
        """Same seed, same sequence of prices."""
        a = SimulatedPriceSource(rng=random.Random(7))
        b = SimulatedPriceSource(rng=random.Random(7))
        product = Product(id="phone-1", name="Phone")
        self.assertEqual(
            [a.fetch_price(product) for _ in range(5)],
            [b.fetch_price(product) for _ in range(5)],
        )


def _response(status: int = 200, text: str = "") -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.text = text
    return resp


class TestHttpPriceSource(unittest.TestCase):
    """HTTP source: one GET per fetch, failures map to 0.0."""

    def setUp(self) -> None:
        self.source = HttpPriceSource()
        self.product = Product(
            id="laptop-1", name="Laptop", url="https://example.com/laptop-1"
        )

    def test_itemprop_content_preferred(self) -> None:
        """A content attribute beats the element text."""
        html = (
            '<html><body><span itemprop="price" content="1199.50">'
            "$1,250</span></body></html>"
        )
        with patch.object(
            self.source.session, "get", return_value=_response(text=html)
        ):
            self.assertEqual(self.source.fetch_price(self.product), 1199.5)

    def test_price_class_text(self) -> None:
        """Falls through to the .price selector text."""
        html = '<html><body><div class="price">$1,299.00</div></body></html>'
        with patch.object(
            self.source.session, "get", return_value=_response(text=html)
        ):
            self.assertEqual(self.source.fetch_price(self.product), 1299.0)

    def test_custom_selectors(self) -> None:
        """Selectors can be overridden per source."""
        source = HttpPriceSource(selectors=["#cost"])
        html = '<html><body><b id="cost">42.10</b></body></html>'
        with patch.object(
            source.session, "get", return_value=_response(text=html)
        ):
            self.assertEqual(source.fetch_price(self.product), 42.1)

    def test_no_price_on_page(self) -> None:
        """A page without a price yields 0.0."""
        html = "<html><body><p>Nothing here</p></body></html>"
        with patch.object(
            self.source.session, "get", return_value=_response(text=html)
        ):
            self.assertEqual(self.source.fetch_price(self.product), 0.0)

    def test_non_200_status(self) -> None:
        """A non-200 response yields 0.0."""
        with patch.object(
            self.source.session, "get", return_value=_response(status=503)
        ):
            self.assertEqual(self.source.fetch_price(self.product), 0.0)

    def test_request_exception(self) -> None:
        """Network errors are logged and yield 0.0."""
        with patch.object(
            self.source.session, "get", side_effect=OSError("boom")
        ):
            with self.assertLogs("price_tracker.sources.http", "WARNING"):
                self.assertEqual(self.source.fetch_price(self.product), 0.0)

    def test_single_request_per_fetch(self) -> None:
        """No retries: exactly one GET per fetch."""
        with patch.object(
            self.source.session, "get", return_value=_response(status=500)
        ) as mock_get:
            self.source.fetch_price(self.product)
        mock_get.assert_called_once()

    def test_empty_url_skips_request(self) -> None:
        """Products without a URL are not fetched."""
        product = Product(id="x", name="X")
        with patch.object(self.source.session, "get") as mock_get:
            self.assertEqual(self.source.fetch_price(product), 0.0)
        mock_get.assert_not_called()


class TestSourceFactory(unittest.TestCase):
    """build_price_source name resolution."""

    def test_simulated(self) -> None:
        """'simulated' builds a SimulatedPriceSource."""
        self.assertIsInstance(
            build_price_source("simulated"), SimulatedPriceSource
        )

    def test_http(self) -> None:
        """'http' builds an HttpPriceSource."""
        self.assertIsInstance(build_price_source("http"), HttpPriceSource)

    def test_name_is_normalised(self) -> None:
        """Names are case-insensitive and trimmed."""
        self.assertIsInstance(
            build_price_source("  Simulated "), SimulatedPriceSource
        )

    def test_default_from_settings(self) -> None:
        """No name means Settings.PRICE_SOURCE."""
        with patch.object(Settings, "PRICE_SOURCE", "simulated"):
            self.assertIsInstance(build_price_source(), SimulatedPriceSource)

    def test_unknown_raises(self) -> None:
        """Unknown names raise ConfigurationError listing the options."""
        with self.assertRaises(ConfigurationError) as ctx:
            build_price_source("carrier-pigeon")
        for name in AVAILABLE_SOURCES:
            self.assertIn(name, str(ctx.exception))


if __name__ == "__main__":
    unittest.main()
