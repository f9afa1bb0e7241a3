# tests/test_cli_runner.py

"""Tests for the command-line runners and argument routing."""

import asyncio
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

import main
from price_tracker.cli import runner
from price_tracker.config.settings import Settings
from price_tracker.errors import ConfigurationError
from price_tracker.models.price_entry import utc_now
from price_tracker.models.product import Product
from price_tracker.storage.price_history_db import PriceHistoryDB


class TestRunners(unittest.TestCase):
    """Runners against a temp database."""

    def setUp(self) -> None:
        self.tmp_dir = tempfile.mkdtemp()
        self.db_path = Path(self.tmp_dir) / "cli.db"

    def _open(self) -> PriceHistoryDB:
        db = PriceHistoryDB(db_path=self.db_path)
        self.addCleanup(db.close)
        return db

    def test_sample_products_match_settings(self) -> None:
        """Seed products mirror Settings.SAMPLE_PRODUCTS."""
        ids = [p.id for p in runner.sample_products()]
        self.assertEqual(ids, [p["id"] for p in Settings.SAMPLE_PRODUCTS])

    def test_run_once_seeds_and_saves(self) -> None:
        """A one-shot round on an empty store prices every sample."""
        code = asyncio.run(runner.run_once(self.db_path, "simulated"))
        self.assertEqual(code, 0)

        db = self._open()
        products = db.get_products_with_latest_prices()
        self.assertEqual(len(products), len(Settings.SAMPLE_PRODUCTS))
        for product in products:
            self.assertIsNotNone(product.latest_price)

    def test_add_then_list(self) -> None:
        """Added products show up in the listing."""
        self.assertEqual(
            runner.add_product("cam-1", "Camera", "", self.db_path), 0
        )
        self.assertEqual(runner.list_products(self.db_path), 0)
        self.assertTrue(self._open().product_exists("cam-1"))

    def test_add_blank_id_fails(self) -> None:
        """A blank id exits with 1."""
        self.assertEqual(runner.add_product(" ", "X", "", self.db_path), 1)

    def test_list_empty_store(self) -> None:
        """Listing an empty store still succeeds."""
        self.assertEqual(runner.list_products(self.db_path), 0)

    def test_history_unknown_product(self) -> None:
        """History of an unknown id exits with 1."""
        self.assertEqual(runner.show_history("ghost", None, self.db_path), 1)

    def test_history_known_product(self) -> None:
        """History of a registered product exits with 0."""
        db = self._open()
        db.insert_product(Product(id="a", name="A"))
        self.assertEqual(runner.show_history("a", 5, self.db_path), 0)

    def test_history_prints_trend(self) -> None:
        """History of a priced product also reports its trend."""
        db = self._open()
        db.insert_product(Product(id="a", name="A"))
        for price in (10.0, 20.0):
            db.insert_price_entry("a", price, utc_now())

        with patch.object(runner, "print_history") as mock_print:
            self.assertEqual(runner.show_history("a", 5, self.db_path), 0)
        _, history, trend = mock_print.call_args[0]
        self.assertEqual(len(history), 2)
        self.assertEqual(trend["count"], 2)
        self.assertEqual(trend["avg"], 15.0)


class TestMain(unittest.TestCase):
    """Argument parsing and exit codes of main.main()."""

    def _run(self, *argv: str) -> int:
        with patch("sys.argv", ["price_tracker", *argv]):
            with self.assertRaises(SystemExit) as ctx:
                main.main()
        code = ctx.exception.code
        return code if isinstance(code, int) else 0

    def test_list_routes_to_runner(self) -> None:
        """--list calls runner.list_products."""
        with patch.object(runner, "list_products", return_value=0) as mock:
            self.assertEqual(self._run("--list", "--db", "x.db"), 0)
        mock.assert_called_once_with(Path("x.db"))

    def test_history_routes_with_limit(self) -> None:
        """--history passes the id and limit through."""
        with patch.object(runner, "show_history", return_value=1) as mock:
            self.assertEqual(self._run("--history", "a", "-l", "3"), 1)
        mock.assert_called_once_with("a", 3, None)

    def test_default_mode_serves(self) -> None:
        """Without a mode flag the API server is started."""
        with patch.object(runner, "serve", return_value=0) as mock:
            self.assertEqual(self._run("-i", "5", "-s", "http"), 0)
        mock.assert_called_once_with(None, "http", 5.0)

    def test_modes_are_exclusive(self) -> None:
        """Two mode flags at once are rejected."""
        self.assertEqual(self._run("--once", "--list"), 2)

    def test_non_positive_interval_rejected(self) -> None:
        """--interval 0 is a usage error."""
        self.assertEqual(self._run("--no-api", "-i", "0"), 2)

    def test_non_positive_limit_rejected(self) -> None:
        """--limit 0 is a usage error."""
        self.assertEqual(self._run("--history", "a", "-l", "0"), 2)

    def test_configuration_error_exit_code(self) -> None:
        """Invalid settings abort with exit code 2."""
        with patch.object(
            Settings,
            "validate",
            side_effect=ConfigurationError("bad interval"),
        ):
            self.assertEqual(self._run("--list"), 2)


if __name__ == "__main__":
    unittest.main()
