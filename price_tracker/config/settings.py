# price_tracker/config/settings.py

"""Central configuration for the price_tracker engine."""

import os
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

from price_tracker.errors import ConfigurationError

load_dotenv()


def _env_float(name: str, default: float) -> float:
    """Read a float override from the environment."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        msg = f"{name} must be a number, got {raw!r}"
        raise ConfigurationError(msg) from exc


def _env_int(name: str, default: int) -> int:
    """Read an integer override from the environment."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        msg = f"{name} must be an integer, got {raw!r}"
        raise ConfigurationError(msg) from exc


class Settings:
    """Central configuration for the price_tracker engine."""

    # --- Tracking ---
    TRACK_INTERVAL: float = _env_float("TRACK_INTERVAL", 30.0)  # Seconds between rounds
    WORKER_COUNT: int = _env_int("WORKER_COUNT", 5)             # Concurrent fetch workers
    SHUTDOWN_GRACE: float = _env_float("SHUTDOWN_GRACE", 5.0)   # Wait for in-flight round
    DEFAULT_HISTORY_LIMIT: int = 50

    # --- Price source ---
    PRICE_SOURCE: str = os.getenv("PRICE_SOURCE", "simulated")
    SIMULATED_MAX_DELAY: float = _env_float("SIMULATED_MAX_DELAY", 1.0)
    SIMULATED_VARIATION: float = 0.10   # +/- fraction around base price
    DEFAULT_BASE_PRICE: float = 100.0
    BASE_PRICES: dict[str, float] = {
        "laptop-1": 1200.0,
        "phone-1": 800.0,
        "tablet-1": 500.0,
    }

    # --- HTTP source ---
    REQUEST_TIMEOUT: int = _env_int("REQUEST_TIMEOUT", 15)
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"
    PRICE_SELECTORS: list[str] = [
        "[itemprop=price]",
        "meta[property='product:price:amount']",
        ".price",
        "#price",
    ]
    DEFAULT_HEADERS: dict[str, str] = {
        "Accept": (
            "text/html,application/xhtml+xml,"
            "application/xml;q=0.9,*/*;q=0.8"
        ),
        "Accept-Language": "en-US,en;q=0.9",
        "Upgrade-Insecure-Requests": "1",
    }

    # --- API ---
    API_HOST: str = os.getenv("API_HOST", "127.0.0.1")
    API_PORT: int = _env_int("API_PORT", 8080)

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    DATA_DIR: Path = BASE_DIR / "data"
    PRICE_DB_PATH: Path = Path(
        os.getenv("PRICE_DB_PATH", str(DATA_DIR / "prices.db"))
    )
    LOGS_DIR: Path = BASE_DIR / "logs"

    # --- Products seeded on startup ---
    SAMPLE_PRODUCTS: list[dict[str, str]] = [
        {
            "id": "laptop-1",
            "name": "Gaming Laptop",
            "url": "https://example.com/laptop-1",
        },
        {
            "id": "phone-1",
            "name": "Smartphone X",
            "url": "https://example.com/phone-1",
        },
        {
            "id": "tablet-1",
            "name": "Tablet Pro",
            "url": "https://example.com/tablet-1",
        },
    ]

    @classmethod
    def validate(cls) -> None:
        """Raise ConfigurationError if any tunable is out of range."""
        if cls.TRACK_INTERVAL <= 0:
            msg = f"TRACK_INTERVAL must be > 0, got {cls.TRACK_INTERVAL}"
            raise ConfigurationError(msg)
        if cls.WORKER_COUNT < 1:
            msg = f"WORKER_COUNT must be >= 1, got {cls.WORKER_COUNT}"
            raise ConfigurationError(msg)
        if cls.SHUTDOWN_GRACE < 0:
            msg = f"SHUTDOWN_GRACE must be >= 0, got {cls.SHUTDOWN_GRACE}"
            raise ConfigurationError(msg)
        if cls.SIMULATED_MAX_DELAY < 0:
            msg = (
                "SIMULATED_MAX_DELAY must be >= 0, "
                f"got {cls.SIMULATED_MAX_DELAY}"
            )
            raise ConfigurationError(msg)
