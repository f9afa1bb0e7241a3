# price_tracker/config/logging_config.py

"""Per-run timestamped logging configuration for price_tracker.

Each process launch creates a dedicated log file inside ``logs/``,
named with the launch timestamp (e.g. ``logs/run_20260214_153045.log``).
All ``price_tracker.*`` loggers route through this file handler, so the
scheduler, the worker pool and the API land in the same per-run log.

Worker fetches run on executor threads, so the detailed format carries
the thread name alongside the module path.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from price_tracker.config.settings import Settings

_DETAILED_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | %(threadName)s | "
    "%(module)s:%(funcName)s:%(lineno)d | %(message)s"
)

_CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"

_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _active_log_file(logger: logging.Logger) -> Path | None:
    """Return the file an already-configured logger writes to."""
    for handler in logger.handlers:
        if isinstance(handler, logging.FileHandler):
            return Path(handler.baseFilename)
    return None


def setup_logging(console_level: int = logging.WARNING) -> Path:
    """Initialise the root ``price_tracker`` logger for the current run.

    A second call in the same process adds no handlers and returns
    the log file chosen by the first one.

    Args:
        console_level: Minimum level echoed to stderr.

    Returns:
        The :class:`~pathlib.Path` to the log file for this run.
    """
    root_logger = logging.getLogger("price_tracker")
    root_logger.setLevel(logging.DEBUG)

    existing = _active_log_file(root_logger)
    if existing is not None:
        return existing

    logs_dir: Path = Settings.LOGS_DIR
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_file = logs_dir / datetime.now().strftime("run_%Y%m%d_%H%M%S.log")

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(_DETAILED_FORMAT, datefmt=_DATE_FORMAT)
    )

    # stderr only carries what an operator must see; the file has the rest
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(
        logging.Formatter(_CONSOLE_FORMAT, datefmt=_DATE_FORMAT)
    )

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    root_logger.info(
        "Logging initialised (console level %s), log file: %s",
        logging.getLevelName(console_level),
        log_file,
    )
    return log_file
