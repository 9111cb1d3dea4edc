"""Process logging for allocation runs.

Run outcomes (started, committed, rolled back, lock timeouts) go to stdout.
When ``SEAT_ALLOCATION_LOG_FILE`` is set they are also appended to that
file, which keeps a per-date, per-shift history of regenerations.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

from seat_allocation.utils.config import Settings, get_settings


_configured = False
_RUN_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _run_log_handlers(settings: Settings) -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.log_file is not None:
        settings.log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(settings.log_file, encoding="utf-8"))
    return handlers


def configure_logging(level: Optional[str] = None) -> None:
    """Install the run-log handlers on the root logger; later calls are no-ops."""
    global _configured
    if _configured:
        return
    settings = get_settings()
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format=_RUN_LOG_FORMAT,
        handlers=_run_log_handlers(settings),
    )
    _configured = True


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name)
