"""The book server: owns the catalog and the HTTP listener."""

from __future__ import annotations

import shutil
import threading
import time
from dataclasses import replace
from pathlib import Path
from typing import Protocol, Sized

from .catalog import Book, BookList, find_cover_source, iter_book_files, load_book, sort_key
from .errors import SERVE_FAILED, ServeError
from .logging import get_logger
from .transports import HttpTransportConfig, build_app, run_http

LOGGER = get_logger(__name__)


class Server(Protocol):
    """What the bootstrap needs from a catalog server."""

    @property
    def books(self) -> Sized: ...

    def refresh_book_index(self) -> None: ...

    def serve(self) -> None: ...


class BookServer:
    """Indexes a content directory and serves it over HTTP.

    ``refresh_book_index`` may run concurrently with request handling; the
    new book list replaces the old one in a single swap.
    """

    def __init__(
        self,
        address: str,
        content_dir: Path,
        scratch_dir: Path,
        version: str,
        verbose: bool = False,
        skip_covers: bool = False,
    ) -> None:
        self.address = address
        self.content_dir = Path(content_dir)
        self.scratch_dir = Path(scratch_dir)
        self.version = version
        self.verbose = verbose
        self.skip_covers = skip_covers
        self._books = BookList()
        self._refresh_lock = threading.Lock()

    @property
    def books(self) -> BookList:
        return self._books

    def refresh_book_index(self) -> None:
        """Rebuild the catalog from disk. Concurrent calls are serialized."""

        with self._refresh_lock:
            started = time.monotonic()
            LOGGER.info("Refreshing book index", extra={"context": {"content_dir": str(self.content_dir)}})

            books: list[Book] = []
            for path in iter_book_files(self.content_dir):
                try:
                    book = load_book(self.content_dir, path)
                except OSError as exc:
                    LOGGER.warning("Skipping unreadable book %s: %s", path, exc)
                    continue
                if not self.skip_covers:
                    book = self._index_cover(book)
                if self.verbose:
                    LOGGER.debug("Indexed %s", path)
                books.append(book)

            books.sort(key=sort_key)
            self._books.replace(books)
            LOGGER.info(
                "Indexed %d books in %.2fs",
                len(books),
                time.monotonic() - started,
            )

    def _index_cover(self, book: Book) -> Book:
        source = find_cover_source(book.file_path)
        if source is None:
            return book
        target = self.scratch_dir / f"{book.id}{source.suffix.lower()}"
        try:
            if not target.exists() or target.stat().st_mtime < source.stat().st_mtime:
                shutil.copyfile(source, target)
        except OSError as exc:
            LOGGER.warning("Could not index cover for %s: %s", book.file_path, exc)
            return book
        return replace(book, cover_path=target)

    def serve(self) -> None:
        """Bind the listener and serve until the process exits."""

        transport = HttpTransportConfig.from_address(self.address)
        app = build_app(self)
        try:
            run_http(app, transport, access_log=self.verbose)
        except Exception as exc:
            raise ServeError(
                SERVE_FAILED,
                f"Could not serve on {self.address}: {exc}",
                details={"address": self.address},
            ) from exc
