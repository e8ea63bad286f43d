"""
Logging Utility - Standard and Error Log Streams

Configures the two append-only log files kept under LOG_FOLDER plus an
operator console. Every line carries the component (logger) name.

- archiver.log:        INFO and above (DEBUG and above in debug mode)
- archiver.error.log:  ERROR and above
- console (stderr):    everything at INFO+ in verbose mode; otherwise only
                       CRITICAL records and records logged with
                       extra={"console": True}

Usage:
    from utils.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Archived %s", url, extra={"url": url, "hash": bookmark.hash})
"""

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import orjson

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Attributes present on every LogRecord; anything else came in through `extra`.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime"}

_HANDLER_MARKER = "_archiver_handler"


class JsonFormatter(logging.Formatter):
    """Render each record as a single orjson-encoded line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return orjson.dumps(payload, default=str).decode("utf-8")


class ConsoleFilter(logging.Filter):
    """Let through what the operator should see on the terminal."""

    def __init__(self, verbose: bool) -> None:
        super().__init__()
        self.verbose = verbose

    def filter(self, record: logging.LogRecord) -> bool:
        if self.verbose:
            return True
        return record.levelno >= logging.CRITICAL or bool(getattr(record, "console", False))


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a component.

    Args:
        name: Component name (typically __name__)

    Returns:
        Named logger instance
    """
    return logging.getLogger(name)


def _make_formatter(format_type: str) -> logging.Formatter:
    if format_type == "json":
        return JsonFormatter()
    return logging.Formatter(TEXT_FORMAT)


def setup_console_logging(verbose: bool = False) -> None:
    """Configure only the console handler (used before LOG_FOLDER is known)."""
    root = logging.getLogger()
    _remove_handlers(root)
    root.setLevel(logging.INFO)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.INFO)
    console.setFormatter(logging.Formatter(TEXT_FORMAT))
    console.addFilter(ConsoleFilter(verbose))
    setattr(console, _HANDLER_MARKER, True)
    root.addHandler(console)


def setup_logging(
    log_folder: Path,
    level: str = "INFO",
    format_type: str = "text",
    debug: bool = False,
    verbose: bool = False,
) -> None:
    """Configure application-wide logging.

    Replaces handlers installed by a previous call, so it is safe to call
    once per process run (and from tests).

    Args:
        log_folder: Directory holding archiver.log and archiver.error.log
        level: Standard log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: Log format for the files ('json' or 'text')
        debug: Force DEBUG on the standard log
        verbose: Echo progress to the terminal
    """
    log_folder = Path(log_folder)
    root = logging.getLogger()
    _remove_handlers(root)

    standard_level = logging.DEBUG if debug else getattr(logging, level.upper(), logging.INFO)
    root.setLevel(min(standard_level, logging.INFO))

    formatter = _make_formatter(format_type)

    standard = logging.FileHandler(log_folder / "archiver.log", encoding="utf-8")
    standard.setLevel(standard_level)
    standard.setFormatter(formatter)

    errors = logging.FileHandler(log_folder / "archiver.error.log", encoding="utf-8")
    errors.setLevel(logging.ERROR)
    errors.setFormatter(formatter)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.INFO)
    console.setFormatter(logging.Formatter(TEXT_FORMAT))
    console.addFilter(ConsoleFilter(verbose))

    for handler in (standard, errors, console):
        setattr(handler, _HANDLER_MARKER, True)
        root.addHandler(handler)


def shutdown_logging() -> None:
    """Close handlers installed by setup_logging (releases the log files)."""
    _remove_handlers(logging.getLogger())


def _remove_handlers(root: logging.Logger) -> None:
    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            root.removeHandler(handler)
            handler.close()
