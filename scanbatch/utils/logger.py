"""Centralized logging setup for the scan processing pipeline.

Every module logs through a named standard-library logger. Work done on
behalf of one scan goes through :class:`ScanLogAdapter` so interleaved
output from concurrently processed scans stays attributable.
"""

import logging
import sys
from collections.abc import MutableMapping
from typing import IO, Any

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(threadName)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_NOISY_LIBRARIES = ("PIL", "pytesseract", "pdf2image")


def setup_logging(level: str = "INFO", stream: IO[str] | None = None) -> None:
    """Attach a single formatted handler to the root logger.

    Logs go to stderr by default so stdout stays free for CLI output.
    Calling this again once a handler is installed does nothing.

    Args:
        level: Logging level name; unknown names fall back to INFO.
        stream: Destination stream, defaults to ``sys.stderr``.
    """
    root = logging.getLogger()
    if root.handlers:
        return

    numeric_level = getattr(logging, level.upper(), logging.INFO)
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    root.addHandler(handler)
    root.setLevel(numeric_level)

    # imaging and OCR wrappers are chatty at DEBUG
    for name in _NOISY_LIBRARIES:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    """Return the module logger for ``name`` (usually ``__name__``)."""
    return logging.getLogger(name)


class ScanLogAdapter(logging.LoggerAdapter):
    """Prefix log messages with the scan they belong to."""

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        return f"[scan {self.extra['scan_id']}] {msg}", kwargs


def scan_logger(logger: logging.Logger, scan_id: int) -> ScanLogAdapter:
    """Wrap ``logger`` so every message names ``scan_id``."""
    return ScanLogAdapter(logger, {"scan_id": scan_id})
