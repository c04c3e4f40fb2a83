# src/config/logging_config.py

"""Per-run timestamped logging for the aggregator.

Every process launch (a CLI sync, a server start) writes to its own log
file inside ``logs/``, named after the run mode and the launch time, e.g.
``logs/sync_20260214_153045.log``.  All ``aggregator.*`` loggers share
that file so a single sync run can be read end to end, including the
per-pair failures that only show up as one line in the result payload.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from src.config.settings import Settings

_DETAILED_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | %(threadName)s | "
    "%(module)s:%(funcName)s:%(lineno)d | %(message)s"
)

_CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that flood DEBUG output during scraping
_NOISY_LOGGERS: tuple[str, ...] = ("urllib3", "charset_normalizer")


def setup_logging(
    run_label: str = "run",
    console_level: int = logging.WARNING,
) -> Path:
    """Attach file and console handlers to the ``aggregator`` logger.

    Args:
        run_label: Prefix of the log file name (``sync``, ``serve`` ...).
        console_level: Minimum level echoed to stderr.

    Returns:
        The path of the log file for this run.  Repeated calls keep the
        handlers installed by the first call.
    """
    logs_dir: Path = Settings.LOGS_DIR
    logs_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = logs_dir / f"{run_label}_{timestamp}.log"

    root_logger = logging.getLogger("aggregator")
    root_logger.setLevel(logging.DEBUG)

    if root_logger.handlers:
        return log_file

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(_DETAILED_FORMAT, datefmt=_DATE_FORMAT)
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(
        logging.Formatter(_CONSOLE_FORMAT, datefmt=_DATE_FORMAT)
    )

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root_logger.info("Logging initialised, log file: %s", log_file)
    return log_file
