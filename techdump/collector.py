"""
techdump: Dump Collector
Assembles one diagnostic archive from a sequence of captures.

Layout under the archive root <prefix>_<host>_<timestamp>/:
  dump/<name>[.<asic>][.gz]   command output
  proc/<name>                 kernel-interface snapshot
  <category>/<name>[.gz]      copied files (log, core, kdump, etc)
  <root>/...                  folded directory trees
"""
from __future__ import annotations

import logging
import socket
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import Iterable

from .collect.backend import Backend
from .collect.exclusions import ExclusionFilter
from .collect.executor import CaptureOutcome
from .collect.namespaces import all_namespaces, fan_out
from .collect.selection import select_files
from .collect.tasks import CaptureTask, run_task
from .errors import ProcSnapshotError
from .plan import CollectionPlan
from .utils.logging_utils import structured_log

logger = logging.getLogger("techdump.collector")

_ALREADY_COMPRESSED = (".gz", ".xz", ".bz2", ".zst", ".zip")


class DumpCollector:
    def __init__(
        self,
        backend: Backend,
        dump_dir: str | Path,
        num_asics: int = 1,
        prefix: str = "techdump",
        hostname: str | None = None,
        now: datetime | None = None,
        timestamp_format: str = "%Y%m%d_%H%M%S",
        since: datetime | None = None,
        exclusions: ExclusionFilter | None = None,
    ):
        self.backend = backend
        self.num_asics = max(1, int(num_asics))
        self.since = since
        self.exclusions = exclusions or ExclusionFilter()
        host = hostname or socket.gethostname()
        stamp = (now or datetime.now()).strftime(timestamp_format)
        self.base_name = f"{prefix}_{host}_{stamp}"
        self.dump_dir = Path(dump_dir)
        self.root_dir = self.dump_dir / self.base_name
        self.archive_path = self.dump_dir / f"{self.base_name}.tar"
        self.session = backend.session_factory(self.archive_path, self.base_name)
        # (archive-relative path, compressed) in capture order
        self.decisions: list[tuple[str, bool]] = []
        self.outcomes: list[CaptureOutcome] = []
        self._seq = 0

    # ── lifecycle ────────────────────────────────────────────────────────────
    def start(self) -> None:
        self.backend.staging.ensure(self.root_dir)
        self.session.seed(self.root_dir)
        structured_log(
            logger, logging.INFO, "collection_started",
            archive=str(self.archive_path), num_asics=self.num_asics, dry_run=self.backend.dry_run,
        )

    def finish(self, compress: bool = True) -> Path:
        self.session.seal()
        path = self.session.compress() if compress else self.session.path
        self.backend.staging.cleanup(self.root_dir)
        structured_log(logger, logging.INFO, "collection_finished", archive=str(path), entries=len(self.session.entries))
        return path

    def discard_staging(self) -> None:
        self.backend.staging.cleanup(self.root_dir)

    def _next_staging_dir(self) -> Path:
        self._seq += 1
        return self.root_dir / ".staging" / f"task-{self._seq:05d}"

    # ── captures ─────────────────────────────────────────────────────────────
    def capture(self, task: CaptureTask) -> CaptureOutcome:
        if self.session.holds(task.archive_path):
            structured_log(logger, logging.WARNING, "duplicate_capture_skipped", entry=task.archive_path, source=task.source)
            return CaptureOutcome(task, None, None, "already archived")
        self.decisions.append((task.archive_path, task.compress))
        outcome = run_task(task, self.backend.executor, self.backend.staging, self.session, self._next_staging_dir())
        self.outcomes.append(outcome)
        return outcome

    def save_cmd(self, cmd: str, name: str, compress: bool = False) -> CaptureOutcome:
        return self.capture(CaptureTask.command(cmd, name, compress))

    def save_cmd_per_ns(self, cmd: str, name: str, compress: bool = False) -> list[CaptureOutcome]:
        """One capture per ASIC namespace (a single host capture on single-ASIC platforms)."""
        return [self.capture(t) for t in fan_out(CaptureTask.command(cmd, name, compress), self.num_asics)]

    def save_cmd_all_ns(self, cmd: str, name: str, compress: bool = False) -> list[CaptureOutcome]:
        """Host capture plus one capture per ASIC namespace."""
        return [self.capture(t) for t in all_namespaces(CaptureTask.command(cmd, name, compress), self.num_asics)]

    def save_file(self, path: str | Path, category: str, compress: bool = True) -> CaptureOutcome:
        return self.capture(CaptureTask.file(str(path), category, compress))

    def save_files(
        self,
        directory: str | Path,
        category: str,
        compress: bool = True,
        since: datetime | None = None,
    ) -> list[CaptureOutcome]:
        """Copy every file directly under directory that changed since the cut-off.

        Files that are already compressed are copied as-is.
        """
        cutoff = since if since is not None else self.since
        out = []
        for p in select_files(directory, cutoff, self.exclusions, archive_dir=category):
            gz = compress and not p.name.endswith(_ALREADY_COMPRESSED)
            out.append(self.save_file(p, category, gz))
        return out

    def save_proc(self, paths: Iterable[str | Path]) -> list[str]:
        """Snapshot kernel-interface files into proc/; any failure aborts the run."""
        staging = self.backend.staging
        staging_dir = self._next_staging_dir()
        names = []
        staging.ensure(staging_dir)
        try:
            for source in paths:
                name = PurePosixPath(str(source)).name
                relative = f"proc/{name}"
                if self.session.holds(relative):
                    structured_log(logger, logging.WARNING, "duplicate_capture_skipped", entry=relative, source=str(source))
                    continue
                self.decisions.append((relative, False))
                staged = staging_dir / name
                try:
                    self.backend.executor.snapshot(Path(source), staged)
                except OSError as e:
                    structured_log(logger, logging.ERROR, "proc_snapshot_failed", path=str(source), error=str(e))
                    raise ProcSnapshotError(f"unable to snapshot {source}: {e}") from e
                names.append(self.session.append(staged, relative))
                staging.cleanup(staged)
        finally:
            staging.cleanup(staging_dir)
        return names

    def fold_directory(
        self,
        directory: str | Path,
        root: str,
        exclude: Iterable[str] = (),
        since: datetime | None = None,
    ) -> list[str]:
        names = self.session.fold(directory, root, self.exclusions.extended(exclude), since)
        prefix = f"{self.base_name}/"
        self.decisions.extend((n[len(prefix):], False) for n in names)
        return names

    # ── plans ────────────────────────────────────────────────────────────────
    def run(self, plan: CollectionPlan, proc_files: Iterable[str] = (), compress: bool = True) -> Path:
        """Execute a whole plan: proc, commands, files, directories, folds, then finish."""
        self.exclusions = self.exclusions.extended(plan.exclude)
        self.start()
        try:
            self.save_proc(plan.proc if plan.proc is not None else list(proc_files))
            for c in plan.commands:
                if c.all_namespaces:
                    self.save_cmd_all_ns(c.cmd, c.name, c.compress)
                else:
                    self.save_cmd(c.cmd, c.name, c.compress)
            for f in plan.files:
                self.save_file(f.path, f.category, f.compress)
            for d in plan.directories:
                self.save_files(d.path, d.category, d.compress)
            for fold in plan.folds:
                self.fold_directory(fold.path, fold.root, fold.exclude)
            return self.finish(compress)
        finally:
            self.discard_staging()
