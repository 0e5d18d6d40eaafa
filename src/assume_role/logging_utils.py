"""Logging helpers for assume-role."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from assume_role.config import load_settings

_logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"


def configure_logging() -> None:
    """Send logs to stderr, and to the configured log file if any.

    Stdout is reserved for the exported credential variables.
    """
    settings = load_settings()
    level = getattr(logging, settings.logging.level.upper(), logging.WARNING)
    formatter = logging.Formatter(_LOG_FORMAT, datefmt=_DATE_FORMAT)

    handlers: list[logging.Handler] = []

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    handlers.append(stream_handler)

    if settings.logging.file:
        try:
            Path(settings.logging.file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(settings.logging.file)
            file_handler.setFormatter(formatter)
            handlers.append(file_handler)
        except OSError as exc:
            _logger.warning("Failed to open log file %s: %s", settings.logging.file, exc)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    # botocore is chatty at INFO.
    logging.getLogger("botocore").setLevel(max(level, logging.WARNING))
