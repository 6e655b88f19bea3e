"""Book records and the in-memory book list built from the content directory."""

from __future__ import annotations

import hashlib
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Iterator

SUPPORTED_FORMATS = {
    ".epub": "epub",
    ".pdf": "pdf",
}

COVER_EXTENSIONS = (".jpg", ".jpeg", ".png")
FOLDER_COVER_NAMES = ("cover.jpg", "cover.jpeg", "cover.png")

_AUTHOR_SEPARATOR = " - "


@dataclass(frozen=True, slots=True)
class Book:
    """A single indexed file."""

    id: str
    title: str
    author: str | None
    format: str
    file_path: Path
    file_size: int
    modified: float
    cover_path: Path | None = None

    @property
    def display_name(self) -> str:
        return display_text(self.file_path.name)

    @property
    def has_cover(self) -> bool:
        return self.cover_path is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "format": self.format,
            "file_name": self.display_name,
            "file_size": self.file_size,
            "modified": self.modified,
            "has_cover": self.has_cover,
        }


class BookList:
    """Thread-safe collection of books that is replaced wholesale on reindex."""

    def __init__(self, books: Iterable[Book] = ()) -> None:
        self._lock = threading.Lock()
        self._books: tuple[Book, ...] = tuple(books)
        self._by_id: dict[str, Book] = {book.id: book for book in self._books}

    def replace(self, books: Iterable[Book]) -> None:
        snapshot = tuple(books)
        index = {book.id: book for book in snapshot}
        with self._lock:
            self._books = snapshot
            self._by_id = index

    def get(self, book_id: str) -> Book | None:
        with self._lock:
            return self._by_id.get(book_id)

    def snapshot(self) -> tuple[Book, ...]:
        with self._lock:
            return self._books

    def __len__(self) -> int:
        with self._lock:
            return len(self._books)

    def __iter__(self) -> Iterator[Book]:
        return iter(self.snapshot())


def display_text(value: str) -> str:
    """Make a file system string safe to encode as UTF-8.

    Undecodable bytes in file names arrive as surrogate escapes; they are
    shown as U+FFFD instead.
    """

    return os.fsencode(value).decode("utf-8", errors="replace")


def book_id_for(relative_path: str) -> str:
    """Stable identifier derived from the path relative to the content directory."""

    digest = hashlib.sha1(os.fsencode(relative_path.replace(os.sep, "/")))
    return digest.hexdigest()[:16]


def parse_title(stem: str) -> tuple[str, str | None]:
    """Split an ``Author - Title`` file stem; anything else is just a title."""

    stem = display_text(stem)
    cleaned = stem.replace("_", " ").strip()
    if _AUTHOR_SEPARATOR in cleaned:
        author, title = cleaned.split(_AUTHOR_SEPARATOR, 1)
        author = author.strip()
        title = title.strip()
        if author and title:
            return title, author
    return cleaned or stem, None


def iter_book_files(content_dir: Path) -> Iterator[Path]:
    """Yield supported files under ``content_dir`` in a deterministic order.

    Hidden files and directories are skipped.
    """

    for root, dirs, files in os.walk(content_dir):
        dirs[:] = sorted(d for d in dirs if not d.startswith("."))
        for name in sorted(files):
            if name.startswith("."):
                continue
            if os.path.splitext(name)[1].lower() in SUPPORTED_FORMATS:
                yield Path(root) / name


def load_book(content_dir: Path, path: Path) -> Book:
    stat = path.stat()
    relative = os.path.relpath(path, content_dir)
    title, author = parse_title(path.stem)
    return Book(
        id=book_id_for(relative),
        title=title,
        author=author,
        format=SUPPORTED_FORMATS[path.suffix.lower()],
        file_path=path,
        file_size=stat.st_size,
        modified=stat.st_mtime,
    )


def find_cover_source(book_path: Path) -> Path | None:
    """Return a sidecar cover image for ``book_path`` if one exists.

    ``<stem>.jpg`` style files win over a shared ``cover.jpg`` in the folder.
    """

    for extension in COVER_EXTENSIONS:
        candidate = book_path.with_suffix(extension)
        if candidate.is_file():
            return candidate
    for name in FOLDER_COVER_NAMES:
        candidate = book_path.parent / name
        if candidate.is_file():
            return candidate
    return None


def sort_key(book: Book) -> tuple[str, str]:
    return ((book.author or "").casefold(), book.title.casefold())
