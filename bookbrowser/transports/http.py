"""HTTP transport: Starlette routes for the catalog, served by uvicorn."""

from __future__ import annotations

import asyncio
import socket
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterator

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import FileResponse, JSONResponse, Response
from starlette.routing import Route

from ..catalog import Book
from ..errors import INVALID_ADDRESS, NOT_FOUND, ServeError, error_payload
from ..logging import get_logger

if TYPE_CHECKING:
    from ..server import BookServer

logger = get_logger(__name__)

_MEDIA_TYPES = {
    "epub": "application/epub+zip",
    "pdf": "application/pdf",
}


@dataclass(slots=True)
class HttpTransportConfig:
    """Listener settings derived from a ``[host]:port`` bind address."""

    host: str
    port: int

    @classmethod
    def from_address(cls, address: str) -> "HttpTransportConfig":
        host, sep, port_text = address.rpartition(":")
        if not sep:
            raise ServeError(INVALID_ADDRESS, f"Invalid listening address {address!r}")
        if host.startswith("[") and host.endswith("]"):
            host = host[1:-1]
        try:
            port = int(port_text)
        except ValueError as exc:
            raise ServeError(INVALID_ADDRESS, f"Invalid port in listening address {address!r}") from exc
        if not 0 <= port <= 65535:
            raise ServeError(INVALID_ADDRESS, f"Port out of range in listening address {address!r}")
        return cls(host=host, port=port)


class _ForegroundServer(uvicorn.Server):
    """uvicorn server that leaves SIGINT/SIGTERM to the signal coordinator."""

    @contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield


def bind_socket(config: HttpTransportConfig) -> socket.socket:
    """Bind a listening socket; an empty host means all interfaces."""

    family = socket.AF_INET6 if ":" in config.host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((config.host, config.port))
    except OSError:
        sock.close()
        raise
    return sock


def run_http(app: Starlette, config: HttpTransportConfig, *, access_log: bool = False) -> None:
    """Serve ``app`` until the process exits. Bind failures raise ``OSError``."""

    context = {"host": config.host, "port": config.port}
    sock = bind_socket(config)

    async def _serve() -> None:
        uvicorn_config = uvicorn.Config(
            app,
            host=config.host,
            port=config.port,
            lifespan="off",
            log_config=None,
            access_log=access_log,
        )
        server_instance = _ForegroundServer(uvicorn_config)
        logger.info("transport.http.serve", extra={"context": context})
        await server_instance.serve(sockets=[sock])

    logger.info("transport.http.start", extra={"context": context})
    try:
        asyncio.run(_serve())
    except KeyboardInterrupt:
        logger.info("transport.http.interrupted", extra={"context": context})
        raise
    except Exception:
        logger.exception("transport.http.failed", extra={"context": context})
        raise
    else:
        logger.info("transport.http.stop", extra={"context": context})
    finally:
        sock.close()


def build_app(server: "BookServer") -> Starlette:
    """Create the Starlette application exposing the catalog."""

    async def index(_request: Request) -> Response:
        return JSONResponse(
            {
                "name": "BookBrowser",
                "version": server.version,
                "books": len(server.books),
            }
        )

    async def list_books(_request: Request) -> Response:
        return JSONResponse({"ok": True, "books": [book.to_dict() for book in server.books]})

    async def get_book(request: Request) -> Response:
        book = _lookup(server, request)
        if book is None:
            return _not_found(request)
        return JSONResponse({"ok": True, "book": book.to_dict()})

    async def download(request: Request) -> Response:
        book = _lookup(server, request)
        if book is None or not book.file_path.is_file():
            return _not_found(request)
        return FileResponse(
            book.file_path,
            media_type=_MEDIA_TYPES.get(book.format, "application/octet-stream"),
            filename=book.display_name,
        )

    async def cover(request: Request) -> Response:
        book = _lookup(server, request)
        if book is None or book.cover_path is None or not book.cover_path.is_file():
            return _not_found(request)
        return FileResponse(book.cover_path)

    routes = [
        Route("/", endpoint=index, methods=["GET"]),
        Route("/api/books", endpoint=list_books, methods=["GET"]),
        Route("/api/books/{book_id}", endpoint=get_book, methods=["GET"]),
        Route("/download/{book_id}", endpoint=download, methods=["GET"]),
        Route("/covers/{book_id}", endpoint=cover, methods=["GET"]),
    ]
    app = Starlette(routes=routes)
    app.state.book_server = server
    return app


def _lookup(server: "BookServer", request: Request) -> Book | None:
    return server.books.get(request.path_params["book_id"])


def _not_found(request: Request) -> Response:
    book_id = request.path_params.get("book_id")
    payload = error_payload(NOT_FOUND, f"Book {book_id} not found", details={"book_id": book_id})
    return JSONResponse({"ok": False, "error": payload}, status_code=404)
