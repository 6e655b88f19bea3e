"""Process entrypoint: ordered startup of the BookBrowser daemon."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Mapping, NoReturn, Sequence

from .config import load_config
from .errors import (
    EMPTY_CATALOG,
    INDEX_FAILED,
    SERVE_FAILED,
    BookBrowserError,
    ConfigError,
    EmptyCatalogError,
    ServeError,
)
from .logging import configure_logging, flush_logging, get_logger
from .scratch import decide_ownership
from .server import BookServer, Server
from .signals import SignalCoordinator
from .version import __version__

LOGGER = get_logger(__name__)

ServerFactory = Callable[[str, Path, Path, str, bool, bool], Server]


def run(
    argv: Sequence[str] | None = None,
    environ: Mapping[str, str] | None = None,
    *,
    server_factory: ServerFactory = BookServer,
    coordinator: SignalCoordinator | None = None,
) -> NoReturn:
    """Resolve configuration, index the catalog and serve it.

    Never returns normally: the process ends through a termination signal
    (exit code 0) or a fatal condition, which logs one line and raises
    ``SystemExit(1)``. A server that stops serving on its own is fatal too.
    """

    LOGGER.info("BookBrowser %s", __version__)

    try:
        config, probe = load_config(argv, environ)
    except ConfigError as exc:
        _fatal(exc)

    ownership = decide_ownership(config, probe)
    LOGGER.info(
        "Configuration loaded",
        extra={
            "context": {
                "content_dir": str(config.content_dir),
                "scratch_dir": str(config.scratch_dir),
                "bind_address": config.bind_address,
                "skip_cover_indexing": config.skip_cover_indexing,
                "scratch_dir_preexisting": ownership.preexisting,
            }
        },
    )

    coordinator = coordinator or SignalCoordinator()
    coordinator.install_termination_handler(ownership)

    server = server_factory(
        config.bind_address,
        config.content_dir,
        config.scratch_dir,
        __version__,
        True,
        config.skip_cover_indexing,
    )
    try:
        server.refresh_book_index()
    except Exception as exc:
        _fatal(
            BookBrowserError(
                INDEX_FAILED,
                f"Could not index books: {exc}",
                details={"content_dir": str(config.content_dir)},
            ),
            coordinator,
        )

    if len(server.books) == 0:
        _fatal(
            EmptyCatalogError(
                EMPTY_CATALOG,
                "no books found",
                details={"content_dir": str(config.content_dir)},
            ),
            coordinator,
        )

    coordinator.arm_refresh_handler(server.refresh_book_index)

    try:
        server.serve()
    except ServeError as exc:
        _fatal(exc, coordinator)
    except Exception as exc:
        _fatal(ServeError(SERVE_FAILED, str(exc) or type(exc).__name__), coordinator)
    _fatal(ServeError(SERVE_FAILED, "server stopped unexpectedly"), coordinator)


def _fatal(exc: BookBrowserError, coordinator: SignalCoordinator | None = None) -> NoReturn:
    if isinstance(exc, ServeError):
        LOGGER.error("Error starting server: %s", exc)
    else:
        LOGGER.error("Fatal error: %s", exc)
    if coordinator is not None:
        coordinator.release_for_exit()
    flush_logging()
    raise SystemExit(1) from exc


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for running the BookBrowser daemon."""

    configure_logging()
    run(argv)


if __name__ == "__main__":  # pragma: no cover - manual invocation only
    main()
