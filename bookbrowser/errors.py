"""Centralized error codes and the exceptions that carry them."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

__all__ = [
    "CONTENT_DIR_MISSING",
    "PATH_RESOLUTION_FAILED",
    "INVALID_ADDRESS",
    "INVALID_FLAG",
    "SCRATCH_DIR_UNAVAILABLE",
    "EMPTY_CATALOG",
    "INDEX_FAILED",
    "SERVE_FAILED",
    "NOT_FOUND",
    "BookBrowserError",
    "ConfigError",
    "EmptyCatalogError",
    "ServeError",
    "error_payload",
]

CONTENT_DIR_MISSING = "CONTENT_DIR_MISSING"
PATH_RESOLUTION_FAILED = "PATH_RESOLUTION_FAILED"
INVALID_ADDRESS = "INVALID_ADDRESS"
INVALID_FLAG = "INVALID_FLAG"
SCRATCH_DIR_UNAVAILABLE = "SCRATCH_DIR_UNAVAILABLE"
EMPTY_CATALOG = "EMPTY_CATALOG"
INDEX_FAILED = "INDEX_FAILED"
SERVE_FAILED = "SERVE_FAILED"
NOT_FOUND = "NOT_FOUND"


@dataclass(slots=True)
class BookBrowserError(Exception):
    """Domain-specific exception carrying an error code and message."""

    code: str
    message: str
    details: Mapping[str, Any] | None = None

    def __str__(self) -> str:  # pragma: no cover - delegation to message
        return self.message

    def to_dict(self) -> dict[str, Any]:
        return error_payload(self.code, self.message, details=self.details)


class ConfigError(BookBrowserError):
    """Raised when runtime configuration cannot be resolved."""


class EmptyCatalogError(BookBrowserError):
    """Raised when the initial index build finds no books."""


class ServeError(BookBrowserError):
    """Raised when the HTTP listener cannot be started or fails."""


def error_payload(code: str, message: str, *, details: Mapping[str, Any] | None = None) -> dict[str, Any]:
    """Build a structured error payload used in HTTP responses."""

    payload: dict[str, Any] = {
        "code": code,
        "message": message,
    }
    if details:
        payload["details"] = dict(details)
    return payload
