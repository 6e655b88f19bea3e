from __future__ import annotations

import socket
from pathlib import Path
from typing import Any

import pytest

from bookbrowser.errors import INVALID_ADDRESS, SERVE_FAILED, ServeError
from bookbrowser.server import BookServer
from bookbrowser.transports.http import HttpTransportConfig, build_app, run_http


@pytest.mark.parametrize(
    ("address", "host", "port"),
    [
        (":8090", "", 8090),
        ("127.0.0.1:0", "127.0.0.1", 0),
        ("[::1]:9000", "::1", 9000),
        ("localhost:65535", "localhost", 65535),
    ],
)
def test_transport_config_from_address(address: str, host: str, port: int) -> None:
    config = HttpTransportConfig.from_address(address)

    assert config.host == host
    assert config.port == port


@pytest.mark.parametrize("address", ["localhost", "host:http", ":70000", ":"])
def test_transport_config_rejects_bad_addresses(address: str) -> None:
    with pytest.raises(ServeError) as excinfo:
        HttpTransportConfig.from_address(address)

    assert excinfo.value.code == INVALID_ADDRESS


def test_run_http_invokes_uvicorn(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    captured: dict[str, Any] = {}

    class DummyConfig:  # mimics uvicorn.Config signature
        def __init__(self, app, host, port, **kwargs):
            captured["app"] = app
            captured["host"] = host
            captured["port"] = port
            captured["kwargs"] = kwargs
            self.app = app

    class DummyServer:
        def __init__(self, config):
            captured["config"] = config

        async def serve(self, sockets=None) -> None:
            captured["sockets"] = sockets
            captured["bound"] = sockets[0].getsockname()

    monkeypatch.setattr("bookbrowser.transports.http.uvicorn.Config", DummyConfig)
    monkeypatch.setattr("bookbrowser.transports.http._ForegroundServer", DummyServer)

    server = BookServer("127.0.0.1:0", tmp_path, tmp_path, "test")
    app = build_app(server)

    run_http(app, HttpTransportConfig(host="127.0.0.1", port=0))

    assert captured["host"] == "127.0.0.1"
    assert captured["port"] == 0
    assert captured["kwargs"]["log_config"] is None
    assert captured["kwargs"]["lifespan"] == "off"
    assert captured["bound"][0] == "127.0.0.1"
    assert captured["app"].state.book_server is server
    assert captured["sockets"][0].fileno() == -1


def test_serve_reports_bind_failure(tmp_path: Path) -> None:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as blocker:
        blocker.bind(("127.0.0.1", 0))
        blocker.listen()
        port = blocker.getsockname()[1]

        server = BookServer(f"127.0.0.1:{port}", tmp_path, tmp_path, "test")
        with pytest.raises(ServeError) as excinfo:
            server.serve()

    assert excinfo.value.code == SERVE_FAILED


def test_serve_wraps_unexpected_runtime_failures(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    def _exploding_run_http(*_args: Any, **_kwargs: Any) -> None:
        raise RuntimeError("event loop died")

    monkeypatch.setattr("bookbrowser.server.run_http", _exploding_run_http)
    server = BookServer("127.0.0.1:0", tmp_path, tmp_path, "test")

    with pytest.raises(ServeError) as excinfo:
        server.serve()

    assert excinfo.value.code == SERVE_FAILED
    assert "event loop died" in excinfo.value.message
    assert isinstance(excinfo.value.__cause__, RuntimeError)
