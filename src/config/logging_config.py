# src/config/logging_config.py

"""Per-run timestamped logging for the price tracker.

Every launch of the TUI or the CLI writes to its own file inside
``logs/`` (e.g. ``logs/run_20261018_091502.log``).  All
``price_tracker.*`` loggers share that file, so a store failure seen
in the UI as "Failed to fetch prices" can be traced to the underlying
SQLite or HTTP error with its traceback.

The console only receives warnings and errors; the Textual screen
would otherwise be painted over by log lines.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from src.config.settings import Settings

ROOT_LOGGER_NAME = "price_tracker"

_FILE_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | "
    "%(module)s:%(funcName)s:%(lineno)d | %(message)s"
)

_CONSOLE_FORMAT = "%(levelname)-8s | %(name)s | %(message)s"

_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    logs_dir: Path | None = None,
    console_level: int = logging.WARNING,
) -> Path:
    """Attach the per-run file handler and a stderr handler.

    Calling it again in the same process is a no-op apart from
    returning a fresh path name; handlers are never duplicated.

    Returns:
        The :class:`~pathlib.Path` of this run's log file.
    """
    directory = logs_dir or Settings.LOGS_DIR
    directory.mkdir(parents=True, exist_ok=True)

    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = directory / f"run_{stamp}.log"

    project_logger = logging.getLogger(ROOT_LOGGER_NAME)
    project_logger.setLevel(logging.DEBUG)

    if project_logger.handlers:
        return log_file

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(_FILE_FORMAT, datefmt=_DATE_FORMAT)
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(
        logging.Formatter(_CONSOLE_FORMAT, datefmt=_DATE_FORMAT)
    )

    project_logger.addHandler(file_handler)
    project_logger.addHandler(console_handler)

    project_logger.info("Logging initialised, log file: %s", log_file)
    return log_file
