"""Root logger setup for the vconv commands."""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import TYPE_CHECKING

from vconv.logging.context import JSONFormatter, RequestContextFilter

if TYPE_CHECKING:
    from pathlib import Path

    from vconv.config.models import LoggingConfig

TEXT_FORMAT = "%(asctime)s - %(request_tag)s%(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

# Loggers held at WARNING or above: aiohttp.access repeats the summary line
# request_middleware already writes for every request
_NOISY_LOGGERS = ("aiohttp.access",)


def _make_formatter(log_format: str) -> logging.Formatter:
    if log_format.casefold() == "json":
        return JSONFormatter()
    return logging.Formatter(TEXT_FORMAT, datefmt=DATE_FORMAT)


def _open_log_file(path: Path, config: LoggingConfig) -> logging.Handler | None:
    """Open the rotating log file, or return None if that is not possible.

    Failure is reported on stderr directly since logging is not set up yet.
    """
    path = path.expanduser()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        return RotatingFileHandler(
            path,
            maxBytes=config.max_bytes,
            backupCount=config.backup_count,
            encoding="utf-8",
        )
    except OSError as e:
        sys.stderr.write(f"Warning: Could not open log file {path}: {e}\n")
        return None


def configure_logging(config: LoggingConfig) -> None:
    """Replace the root logger's handlers according to config.

    Output goes to the rotating file when config.file is set and can be
    opened, and to stderr when include_stderr is set or no file is in use.
    Every handler tags records with the current request.

    Args:
        config: Logging configuration.
    """
    level = logging.getLevelName(config.level.upper())

    handlers: list[logging.Handler] = []
    if config.file is not None:
        file_handler = _open_log_file(config.file, config)
        if file_handler is not None:
            handlers.append(file_handler)
    if config.include_stderr or not handlers:
        handlers.append(logging.StreamHandler(sys.stderr))

    formatter = _make_formatter(config.format)
    context_filter = RequestContextFilter()
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        handler.addFilter(context_filter)

    root = logging.getLogger()
    root.handlers = handlers
    root.setLevel(level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
