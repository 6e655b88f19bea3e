"""Transport wiring for the BookBrowser daemon."""

from __future__ import annotations

from .http import HttpTransportConfig, build_app, run_http

__all__ = [
    "HttpTransportConfig",
    "build_app",
    "run_http",
]
