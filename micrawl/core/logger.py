"""Structured logging for the micrawl scraper.

This module configures the ``micrawl`` logger hierarchy with a console handler
and an optional rotating file handler. Log lines are human-readable with
timestamp, level, module, and message; structured payloads passed through
``extra=`` are appended as ``key=value`` pairs.

Examples:
    >>> from micrawl.core.logger import get_logger
    >>> logger = get_logger("micrawl")
    >>> logger.info("Scrape job completed", extra={"job_id": "abc", "status": 200})
    2026-01-14 23:45:00,123 | INFO | micrawl | Scrape job completed | job_id=abc status=200
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

# Human-readable log format with timestamp, level, module name, and message
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Rotating file handler limits (100MB max file size, 5 backup files)
MAX_LOG_SIZE_BYTES = 100 * 1024 * 1024  # 100MB
BACKUP_COUNT = 5

# Attributes every LogRecord carries; anything else came in through ``extra``
_RESERVED_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class PayloadFormatter(logging.Formatter):
    """Formatter that renders ``extra`` payload fields after the message."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        payload = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS and not key.startswith("_")
        }
        if not payload:
            return base
        rendered = " ".join(f"{key}={value}" for key, value in sorted(payload.items()))
        return f"{base} | {rendered}"


def get_logger(
    name: str = "micrawl",
    log_level: str = "INFO",
    log_file: Path | None = None,
) -> logging.Logger:
    """Create and configure a logger with console and optional file handlers.

    Args:
        name: Logger name. Configuring ``"micrawl"`` covers every module logger
            in the package, since they are created with ``logging.getLogger(__name__)``.
        log_level: Logging level as string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to a rotating log file. Parent directories are
            created automatically.

    Returns:
        Configured logging.Logger instance. Calling again reconfigures it.

    Raises:
        ValueError: If log_level is not a valid logging level name.
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Invalid log level: {log_level}")

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Clear existing handlers to allow reconfiguration
    logger.handlers.clear()

    formatter = PayloadFormatter(LOG_FORMAT)

    # Console handler writes to stderr so NDJSON on stdout stays clean
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=MAX_LOG_SIZE_BYTES,
            backupCount=BACKUP_COUNT,
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
