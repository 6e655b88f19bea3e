"""Logging utilities for the BookBrowser daemon."""

from __future__ import annotations

import logging
from typing import Any, Literal

from rich.console import Console
from rich.logging import RichHandler

_PACKAGE_LOGGER_NAME = "bookbrowser"
_SHARED_LOGGER_NAMES = (_PACKAGE_LOGGER_NAME, "uvicorn")
_CONFIGURED = False


def _qualify(name: str | None) -> str:
    if not name:
        return _PACKAGE_LOGGER_NAME
    if name.startswith(_PACKAGE_LOGGER_NAME):
        return name
    return f"{_PACKAGE_LOGGER_NAME}.{name}"


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] | int = "INFO",
    **rich_kwargs: Any,
) -> logging.Logger:
    """Route package and uvicorn logs through a single rich handler on stderr.

    Calling this again replaces the handler instead of stacking a new one.
    """

    global _CONFIGURED

    rich_kwargs.setdefault("rich_tracebacks", True)
    rich_kwargs.setdefault("show_path", False)
    handler = RichHandler(console=Console(stderr=True), **rich_kwargs)
    handler.setFormatter(logging.Formatter("%(message)s"))

    for name in _SHARED_LOGGER_NAMES:
        target = logging.getLogger(name)
        for existing in list(target.handlers):
            if isinstance(existing, RichHandler):
                target.removeHandler(existing)
        target.addHandler(handler)
        target.setLevel(level)

    _CONFIGURED = True
    return logging.getLogger(_PACKAGE_LOGGER_NAME)


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a logger scoped to the package namespace."""

    if not _CONFIGURED:
        configure_logging()

    qualified = _qualify(name)
    return logging.getLogger(qualified)


def flush_logging() -> None:
    """Flush every handler attached to the package loggers."""

    for name in _SHARED_LOGGER_NAMES:
        for handler in logging.getLogger(name).handlers:
            handler.flush()
