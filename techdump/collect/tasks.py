"""Capture tasks and their execution sequence."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Literal

from ..utils.logging_utils import run_context
from .namespaces import HOST, Namespace

if TYPE_CHECKING:
    from .archive import BaseArchiveSession
    from .executor import CaptureOutcome, Executor
    from .staging import StagingArea

logger = logging.getLogger("techdump.tasks")


@dataclass(frozen=True)
class CaptureTask:
    kind: Literal["command", "file"]
    source: str
    destination: str
    compress: bool = False
    namespace: Namespace = field(default=HOST)

    @classmethod
    def command(cls, cmd: str, name: str, compress: bool = False) -> "CaptureTask":
        return cls("command", cmd, f"dump/{name}", compress)

    @classmethod
    def file(cls, path: str, category: str, compress: bool = True) -> "CaptureTask":
        return cls("file", path, f"{category}/{PurePosixPath(path).name}", compress)

    @property
    def archive_path(self) -> str:
        """Destination under the archive root: <destination>[.<ns>][.gz]"""
        out = self.destination + self.namespace.suffix
        if self.compress:
            out += ".gz"
        return out

    @property
    def label(self) -> str:
        return self.archive_path


def run_task(
    task: CaptureTask,
    executor: Executor,
    staging: StagingArea,
    session: BaseArchiveSession,
    staging_dir: Path,
) -> CaptureOutcome:
    """Stage, capture, append and clean up one task.

    Either every step completes or an error has already propagated;
    the staging directory is gone when this returns in both cases.
    """
    with run_context(task=task.label):
        staged = staging_dir / PurePosixPath(task.archive_path).name
        try:
            staging.ensure(staging_dir)
            outcome = executor.run(task, staged)
            session.append(staged, task.archive_path)
        finally:
            staging.cleanup(staging_dir)
        return outcome
