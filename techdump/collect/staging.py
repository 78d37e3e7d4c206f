"""Scratch directories that hold one task's output until it is archived."""
from __future__ import annotations

import logging
import shutil
from pathlib import Path

from ..errors import StagingWriteError

logger = logging.getLogger("techdump.staging")


class StagingArea:
    """Sole owner of staging directory creation and removal."""

    def ensure(self, path: str | Path) -> Path:
        p = Path(path)
        try:
            p.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StagingWriteError(f"unable to create staging directory {p}: {e}") from e
        logger.debug("staging ready: %s", p)
        return p

    def cleanup(self, path: str | Path) -> None:
        p = Path(path)
        if p.is_dir() and not p.is_symlink():
            shutil.rmtree(p)
        elif p.exists() or p.is_symlink():
            p.unlink()
        else:
            return
        logger.debug("staging removed: %s", p)


class DryRunStagingArea(StagingArea):
    def __init__(self):
        self.actions: list[str] = []

    def ensure(self, path: str | Path) -> Path:
        self.actions.append(f"mkdir -p {path}")
        logger.debug("would create staging %s", path)
        return Path(path)

    def cleanup(self, path: str | Path) -> None:
        self.actions.append(f"rm -rf {path}")
        logger.debug("would remove staging %s", path)
