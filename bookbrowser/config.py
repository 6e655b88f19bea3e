"""Configuration loading utilities for the BookBrowser daemon."""

from __future__ import annotations

import argparse
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, MutableMapping, Sequence

from .errors import (
    CONTENT_DIR_MISSING,
    INVALID_ADDRESS,
    INVALID_FLAG,
    PATH_RESOLUTION_FAILED,
    SCRATCH_DIR_UNAVAILABLE,
    ConfigError,
)
from .logging import get_logger
from .util import get_outbound_ip
from .version import __version__

LOGGER = get_logger(__name__)

ENV_PREFIX = "BOOKBROWSER_"

BOOL_TRUE = {"1", "true", "t", "yes", "y", "on"}
BOOL_FALSE = {"0", "false", "f", "no", "n", "off"}

DEFAULT_ADDRESS = ":8090"
DEFAULT_TEMP_PREFIX = "bookbrowser"
FALLBACK_TEMP_SUBDIR = "_temp"

ENV_FIELD_MAP = {
    "bookdir": f"{ENV_PREFIX}BOOKDIR",
    "tempdir": f"{ENV_PREFIX}TEMPDIR",
    "addr": f"{ENV_PREFIX}ADDR",
    "nocovers": f"{ENV_PREFIX}NOCOVERS",
}

DEFAULT_VALUES: dict[str, Any] = {
    "bookdir": None,
    "tempdir": None,
    "addr": DEFAULT_ADDRESS,
    "nocovers": False,
}


@dataclass(frozen=True, slots=True)
class Options:
    """Raw, unvalidated inputs after CLI and environment layering."""

    bookdir: str | None
    tempdir: str | None
    addr: str
    nocovers: bool


@dataclass(frozen=True, slots=True)
class RuntimeConfig:
    """Validated configuration; never mutated after resolution."""

    content_dir: Path
    scratch_dir: Path
    bind_address: str
    skip_cover_indexing: bool


@dataclass(frozen=True, slots=True)
class ScratchDirProbe:
    """Filesystem facts about the scratch directory observed during resolution.

    ``existed`` is recorded before the resolver creates anything.
    ``generated_default`` is the path this process allocated when no scratch
    directory was requested, or ``None`` when the caller supplied one.
    """

    existed: bool
    generated_default: Path | None = None


def load_config(
    argv: Sequence[str] | None = None,
    environ: Mapping[str, str] | None = None,
) -> tuple[RuntimeConfig, ScratchDirProbe]:
    """Parse CLI arguments and environment variables, then resolve them."""

    return resolve_config(parse_options(argv, environ))


def parse_options(
    argv: Sequence[str] | None = None,
    environ: Mapping[str, str] | None = None,
) -> Options:
    """Merge defaults, environment variables and CLI flags, in that order."""

    parser = _build_arg_parser()
    parsed = parser.parse_args(argv)
    cli_values = {k: v for k, v in vars(parsed).items() if v is not None}

    env_values = _extract_env_values(os.environ if environ is None else environ)

    merged: dict[str, Any] = {}
    _merge_layer(merged, DEFAULT_VALUES)
    _merge_layer(merged, env_values)
    _merge_layer(merged, cli_values)

    return Options(
        bookdir=merged.get("bookdir") or None,
        tempdir=merged.get("tempdir") or None,
        addr=str(merged["addr"]),
        nocovers=_parse_bool(merged.get("nocovers"), default=False, field="nocovers"),
    )


def resolve_config(options: Options) -> tuple[RuntimeConfig, ScratchDirProbe]:
    """Validate options and prepare the scratch directory.

    The content directory and bind address are checked before the scratch
    directory is probed or created, so a rejected configuration leaves the
    filesystem untouched.
    """

    content_dir = _resolve_content_dir(options.bookdir)

    address = options.addr
    if ":" not in address:
        raise ConfigError(
            INVALID_ADDRESS,
            f"Invalid listening address {address!r}",
            details={"address": address},
        )

    generated_default: Path | None = None
    raw_scratch = options.tempdir
    if not raw_scratch:
        generated_default = allocate_default_scratch_dir()
        raw_scratch = str(generated_default)

    existed = os.path.exists(raw_scratch)
    if not existed:
        try:
            os.mkdir(raw_scratch)
        except OSError as exc:
            raise ConfigError(
                SCRATCH_DIR_UNAVAILABLE,
                f"Could not create temp directory {raw_scratch}: {exc}",
                details={"path": raw_scratch},
            ) from exc
    scratch_dir = _absolute(raw_scratch, label="temp directory")

    host, _, port = address.partition(":")
    if not host:
        ip = get_outbound_ip()
        if ip is not None:
            LOGGER.info("This server can be accessed at http://%s:%s", ip, port)

    config = RuntimeConfig(
        content_dir=content_dir,
        scratch_dir=scratch_dir,
        bind_address=address,
        skip_cover_indexing=options.nocovers,
    )
    return config, ScratchDirProbe(existed=existed, generated_default=generated_default)


def allocate_default_scratch_dir() -> Path:
    """Create a unique temp directory, or fall back to ``<cwd>/_temp``."""

    try:
        return Path(tempfile.mkdtemp(prefix=DEFAULT_TEMP_PREFIX))
    except OSError:
        return _absolute(FALLBACK_TEMP_SUBDIR, label="temp directory")


def _resolve_content_dir(value: str | None) -> Path:
    raw = value or _cwd()
    if not os.path.exists(raw):
        raise ConfigError(
            CONTENT_DIR_MISSING,
            f"book directory {raw} does not exist",
            details={"path": raw},
        )
    return _absolute(raw, label="book directory")


def _cwd() -> str:
    try:
        return os.getcwd()
    except OSError as exc:
        raise ConfigError(PATH_RESOLUTION_FAILED, f"Could not determine working directory: {exc}") from exc


def _absolute(value: str, *, label: str) -> Path:
    try:
        return Path(os.path.abspath(os.path.expanduser(value)))
    except OSError as exc:
        raise ConfigError(
            PATH_RESOLUTION_FAILED,
            f"Could not resolve {label} {value}: {exc}",
            details={"path": value},
        ) from exc


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bookbrowser",
        description="Web-based eBook server supporting ePub and PDF.",
        add_help=False,
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"BookBrowser {__version__}",
        help="Print the version and exit.",
    )
    parser.add_argument(
        "-b",
        "--bookdir",
        dest="bookdir",
        metavar="DIR",
        help="Load books from DIR. The directory must exist (default: current directory).",
    )
    parser.add_argument(
        "-t",
        "--tempdir",
        dest="tempdir",
        metavar="DIR",
        help=(
            "Use DIR as the location for storing temporary files such as cover thumbnails.\n"
            "The directory is created on start and deleted on exit, unless it already exists\n"
            "(default: a new unique temp directory)."
        ),
    )
    parser.add_argument(
        "-a",
        "--addr",
        dest="addr",
        metavar="ADDR",
        help=f"ADDR is the address to bind the server to, in the format IP:PORT. The IP is optional (default: {DEFAULT_ADDRESS}).",
    )
    parser.add_argument(
        "-n",
        "--nocovers",
        dest="nocovers",
        action="store_const",
        const=True,
        help="Do not index covers.",
    )
    return parser


def _extract_env_values(env: Mapping[str, str]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for field, env_name in ENV_FIELD_MAP.items():
        if env_name in env:
            values[field] = env[env_name]
    return values


def _merge_layer(base: MutableMapping[str, Any], overrides: Mapping[str, Any]) -> None:
    for key, value in overrides.items():
        if value is None:
            continue
        base[key] = value


def _parse_bool(value: Any, *, default: bool, field: str) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in BOOL_TRUE:
            return True
        if lowered in BOOL_FALSE:
            return False
    raise ConfigError(INVALID_FLAG, f"Invalid boolean value for {field}: {value!r}")
