"""Logging setup for the trira command line.

Library code only ever asks for ``logging.getLogger(__name__)`` (or takes an
injected logger); handlers are attached here, once, by the CLI.
"""

from __future__ import annotations

import logging
import sys
from typing import IO

APP_LOGGER = "trira"

# stdout carries JSON, so the console format stays bare and goes to stderr
CONSOLE_FORMAT = "%(levelname)s: %(message)s"
FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# HTTP transport loggers: shown with --verbose, otherwise warnings only
TRANSPORT_LOGGERS = ("urllib3",)

_HANDLER_NAME = "trira"


def parse_level(level: str | int) -> int | None:
    """Turn ``"debug"``, ``"WARN"``, ``10``... into a logging level, None if unknown"""
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.strip().upper())
    return value if isinstance(value, int) else None


def _remove_own_handlers(target: logging.Logger) -> None:
    for handler in list(target.handlers):
        if handler.get_name() == _HANDLER_NAME:
            target.removeHandler(handler)
            handler.close()


def _handler(handler: logging.Handler, fmt: str) -> logging.Handler:
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(fmt, datefmt=DATE_FORMAT))
    return handler


def setup_logging(
    level: str | int = "INFO",
    log_file: str | None = None,
    stream: IO[str] | None = None,
) -> logging.Logger:
    """Configure the ``trira`` logger and return it.

    Calling it again replaces the handlers of the previous call, never
    handlers installed by someone else.

    Args:
        level: Level name or number. Unknown names fall back to INFO with
            a warning.
        log_file: Also append timestamped records to this file.
        stream: Console stream (default: stderr).

    Example:
        >>> setup_logging("DEBUG")  # also shows urllib3 connection logs
        >>> setup_logging("INFO", "sync.log")
    """
    resolved = parse_level(level)
    app_logger = logging.getLogger(APP_LOGGER)
    app_logger.setLevel(logging.INFO if resolved is None else resolved)

    handlers = [_handler(logging.StreamHandler(stream or sys.stderr), CONSOLE_FORMAT)]
    if log_file:
        handlers.append(_handler(logging.FileHandler(log_file, encoding="utf-8"), FILE_FORMAT))

    _remove_own_handlers(app_logger)
    for handler in handlers:
        app_logger.addHandler(handler)
    app_logger.propagate = False

    verbose = app_logger.level <= logging.DEBUG
    for name in TRANSPORT_LOGGERS:
        transport = logging.getLogger(name)
        _remove_own_handlers(transport)
        if verbose:
            transport.setLevel(logging.DEBUG)
            for handler in handlers:
                transport.addHandler(handler)
            transport.propagate = False
        else:
            transport.setLevel(logging.WARNING)
            transport.propagate = True

    if resolved is None:
        app_logger.warning("Unknown log level %r, using INFO", level)
    return app_logger
