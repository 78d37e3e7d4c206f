from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from .archive import ArchiveSession, BaseArchiveSession, DryRunArchiveSession
from .executor import DryRunExecutor, Executor, NamespaceLauncher, ShellExecutor, netns_launcher
from .staging import DryRunStagingArea, StagingArea


@dataclass
class Backend:
    executor: Executor
    staging: StagingArea
    session_factory: Callable[[Path, str], BaseArchiveSession]
    dry_run: bool = False


def build_backend(
    dry_run: bool = False,
    timeout_s: int = 0,
    namespace_prefix: str = "asic",
    launcher: NamespaceLauncher | None = None,
) -> Backend:
    """Pick real or preview implementations once, at startup."""
    launcher = launcher or netns_launcher(namespace_prefix)
    if dry_run:
        return Backend(DryRunExecutor(launcher), DryRunStagingArea(), DryRunArchiveSession, dry_run=True)
    return Backend(ShellExecutor(timeout_s, launcher), StagingArea(), ArchiveSession)
