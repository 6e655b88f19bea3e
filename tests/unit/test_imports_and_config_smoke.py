import tempfile
from pathlib import Path

import pytest

from bookbrowser import RuntimeConfig, load_config
from bookbrowser.config import DEFAULT_ADDRESS, parse_options
from bookbrowser.errors import INVALID_FLAG, ConfigError


@pytest.fixture(autouse=True)
def _isolated_tempdir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(tempfile, "tempdir", str(tmp_path / "system-tmp"))
    (tmp_path / "system-tmp").mkdir()
    monkeypatch.setattr("bookbrowser.config.get_outbound_ip", lambda: None)


def test_package_imports() -> None:
    """Importing the package should expose main APIs."""

    assert callable(load_config)
    assert RuntimeConfig is not None


def test_default_options() -> None:
    """Defaults apply when neither flags nor environment are given."""

    options = parse_options(argv=[], environ={})

    assert options.bookdir is None
    assert options.tempdir is None
    assert options.addr == DEFAULT_ADDRESS == ":8090"
    assert options.nocovers is False


def test_short_and_long_flags_are_equivalent(tmp_path: Path) -> None:
    long_form = parse_options(
        argv=["--bookdir", str(tmp_path), "--tempdir", "scratch", "--addr", "127.0.0.1:9000", "--nocovers"],
        environ={},
    )
    short_form = parse_options(
        argv=["-b", str(tmp_path), "-t", "scratch", "-a", "127.0.0.1:9000", "-n"],
        environ={},
    )

    assert long_form == short_form
    assert short_form.nocovers is True


def test_bookdir_defaults_to_working_directory(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)

    config, _ = load_config(argv=[], environ={})

    assert config.content_dir == tmp_path.resolve()


def test_env_overrides(tmp_path: Path) -> None:
    """Environment variables should override defaults."""

    environ = {
        "BOOKBROWSER_BOOKDIR": str(tmp_path),
        "BOOKBROWSER_ADDR": "127.0.0.1:8123",
        "BOOKBROWSER_NOCOVERS": "yes",
    }

    config, _ = load_config(argv=[], environ=environ)

    assert config.content_dir == tmp_path
    assert config.bind_address == "127.0.0.1:8123"
    assert config.skip_cover_indexing is True


def test_cli_overrides_take_precedence(tmp_path: Path) -> None:
    """CLI arguments should override environment values."""

    other = tmp_path / "other"
    other.mkdir()
    environ = {"BOOKBROWSER_BOOKDIR": str(tmp_path), "BOOKBROWSER_ADDR": ":1"}

    config, _ = load_config(argv=["-b", str(other), "-a", ":2"], environ=environ)

    assert config.content_dir == other
    assert config.bind_address == ":2"


def test_invalid_boolean_env_raises(tmp_path: Path) -> None:
    with pytest.raises(ConfigError) as excinfo:
        load_config(argv=["-b", str(tmp_path)], environ={"BOOKBROWSER_NOCOVERS": "definitely"})

    assert excinfo.value.code == INVALID_FLAG


def test_version_flag_exits_cleanly(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        parse_options(argv=["--version"], environ={})

    assert excinfo.value.code == 0
    assert "BookBrowser" in capsys.readouterr().out


@pytest.mark.parametrize("flag", ["-h", "--help"])
def test_help_flags_are_not_offered(capsys: pytest.CaptureFixture[str], flag: str) -> None:
    with pytest.raises(SystemExit) as excinfo:
        parse_options(argv=[flag], environ={})

    assert excinfo.value.code == 2
    assert f"unrecognized arguments: {flag}" in capsys.readouterr().err
