"""Logging setup for the match service."""

from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler

import structlog


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOG_FILE_PATH = "logs/service.log"


def build_formatter(log_format: str = "text") -> logging.Formatter:
    """Formatter for the root handlers.

    ``"json"`` renders each stdlib record as one JSON object per line
    through structlog, for log shippers. Anything else is plain text.
    """
    if log_format != "json":
        return logging.Formatter(LOG_FORMAT)

    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
        ],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
    )


def setup_logging(*, debug: bool = False, log_format: str = "text") -> None:
    """Configure Python logging.

    - Console output at INFO+ (or DEBUG+ when debug=True) for operational logs.
    - Rotating file output at DEBUG+ for deep diagnostics.
    - ``log_format="json"`` switches both handlers to JSON lines.
    """

    os.makedirs(os.path.dirname(LOG_FILE_PATH), exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    formatter = build_formatter(log_format)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    console_handler.setFormatter(formatter)

    file_handler = RotatingFileHandler(
        LOG_FILE_PATH, maxBytes=2_000_000, backupCount=5
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)

    # Avoid duplicate handlers when reloading in dev.
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)
    root_logger.addHandler(file_handler)


logger = logging.getLogger("lume_match")
