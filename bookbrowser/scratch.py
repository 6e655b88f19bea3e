"""Ownership of the scratch directory used for derived artifacts such as covers."""

from __future__ import annotations

import os
import shutil
from dataclasses import dataclass
from pathlib import Path

from .config import RuntimeConfig, ScratchDirProbe
from .logging import get_logger

LOGGER = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ScratchDirOwnership:
    """Whether the scratch directory must outlive this process.

    Decided once during startup and read, never changed, by the shutdown path.
    """

    path: Path
    preexisting: bool

    @property
    def should_remove(self) -> bool:
        return not self.preexisting

    def release(self) -> None:
        """Remove the directory unless it existed before startup.

        Removal errors are ignored; cleanup never blocks process exit.
        """

        if self.preexisting:
            LOGGER.info("Not removing temp dir because dir already existed at start")
            return
        LOGGER.info("Cleaning up temp dir", extra={"context": {"path": str(self.path)}})
        shutil.rmtree(self.path, ignore_errors=True)


def decide_ownership(config: RuntimeConfig, probe: ScratchDirProbe) -> ScratchDirOwnership:
    """Return the deletion decision for ``config.scratch_dir``.

    A directory that was already present is kept, unless it is the default
    path this process allocated itself. That default is always reclaimed,
    even if it happened to exist already.
    """

    preexisting = probe.existed
    if preexisting and probe.generated_default is not None:
        if _same_path(config.scratch_dir, probe.generated_default):
            preexisting = False
    return ScratchDirOwnership(path=config.scratch_dir, preexisting=preexisting)


def _same_path(left: Path, right: Path) -> bool:
    return os.path.abspath(left) == os.path.abspath(right)
