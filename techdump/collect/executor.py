"""
techdump: Executors
Run a diagnostic command or copy a file into a staged destination.

ShellExecutor does the work; DryRunExecutor only records what would happen.
Neither decides archive paths: those come from the CaptureTask, so a dry run
previews exactly the paths a real run produces.
"""
from __future__ import annotations

import gzip
import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Callable

from ..errors import StagingWriteError
from ..utils.logging_utils import structured_log
from .namespaces import Namespace
from .tasks import CaptureTask

logger = logging.getLogger("techdump.executor")

NamespaceLauncher = Callable[[Namespace], list[str]]


def netns_launcher(prefix: str = "asic") -> NamespaceLauncher:
    """argv prefix that enters an ASIC network namespace; empty for the host."""
    def _launch(ns: Namespace) -> list[str]:
        if ns.is_host:
            return []
        return ["ip", "netns", "exec", ns.name(prefix)]
    return _launch


@dataclass
class CaptureOutcome:
    task: CaptureTask
    path: Path | None
    returncode: int | None = None
    note: str | None = None

    @property
    def ok(self) -> bool:
        return self.note is None and self.returncode in (None, 0)


class Executor:
    def run(self, task: CaptureTask, destination: Path) -> CaptureOutcome:
        if task.kind == "command":
            return self.run_command(task, destination)
        if task.kind == "file":
            return self.copy_file(task, destination)
        raise ValueError(f"unknown capture kind: {task.kind}")

    def run_command(self, task: CaptureTask, destination: Path) -> CaptureOutcome:
        raise NotImplementedError

    def copy_file(self, task: CaptureTask, destination: Path) -> CaptureOutcome:
        raise NotImplementedError

    def snapshot(self, source: Path, destination: Path) -> None:
        """Strict byte copy of a kernel-interface file; errors propagate."""
        raise NotImplementedError


def _open_output(path: Path, compress: bool) -> IO[bytes]:
    if compress:
        return gzip.open(path, "wb")
    return path.open("wb")


def _write_staged(path: Path, compress: bool, fill: Callable[[IO[bytes]], object], what: str) -> None:
    """Write one staged output; any I/O failure here ends the run."""
    try:
        with _open_output(path, compress) as fh:
            fill(fh)
    except OSError as e:
        structured_log(logger, logging.ERROR, "staging_write_failed", path=str(path), source=what, error=str(e))
        raise StagingWriteError(f"unable to stage {what} at {path}: {e}") from e


class ShellExecutor(Executor):
    def __init__(self, timeout_s: int = 0, launcher: NamespaceLauncher | None = None):
        self.timeout_s = max(0, int(timeout_s or 0))
        self.launcher = launcher or netns_launcher()

    def run_command(self, task: CaptureTask, destination: Path) -> CaptureOutcome:
        argv = [*self.launcher(task.namespace), "sh", "-c", task.source]
        returncode: int | None = None
        note: str | None = None
        try:
            res = subprocess.run(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                timeout=self.timeout_s or None,
                check=False,
            )
            output = res.stdout or b""
            returncode = res.returncode
        except subprocess.TimeoutExpired as e:
            note = f"command timed out after {self.timeout_s}s"
            output = (e.output or b"") + f"\n{task.source}: {note}\n".encode("utf-8")
        except OSError as e:
            note = f"failed to launch: {e}"
            output = f"{task.source}: {note}\n".encode("utf-8")

        _write_staged(destination, task.compress, lambda fh: fh.write(output), task.source)

        if note or returncode:
            structured_log(
                logger, logging.WARNING, "command_failed",
                cmd=task.source, namespace=task.namespace.index, returncode=returncode, note=note,
            )
        else:
            logger.debug("captured %s -> %s", task.source, destination)
        return CaptureOutcome(task, destination, returncode, note)

    def copy_file(self, task: CaptureTask, destination: Path) -> CaptureOutcome:
        src = Path(task.source)
        note: str | None = None
        try:
            fin = src.open("rb")
        except FileNotFoundError:
            note = "file not found"
        except OSError as e:
            note = f"could not be read: {e}"
        else:
            with fin:
                _write_staged(destination, task.compress, lambda fh: shutil.copyfileobj(fin, fh), task.source)
            logger.debug("copied %s -> %s", src, destination)
            return CaptureOutcome(task, destination, None, None)

        placeholder = f"{task.source}: {note}\n".encode("utf-8")
        _write_staged(destination, task.compress, lambda fh: fh.write(placeholder), task.source)
        structured_log(logger, logging.WARNING, "file_missing", path=task.source, note=note)
        return CaptureOutcome(task, destination, None, note)

    def snapshot(self, source: Path, destination: Path) -> None:
        # procfs reports st_size 0, so read it instead of using sendfile-based copies
        destination.write_bytes(Path(source).read_bytes())
        logger.debug("snapshot %s -> %s", source, destination)


class DryRunExecutor(Executor):
    def __init__(self, launcher: NamespaceLauncher | None = None):
        self.launcher = launcher or netns_launcher()
        self.actions: list[str] = []

    def _record(self, action: str) -> None:
        self.actions.append(action)
        logger.info("dry-run: %s", action)

    def run_command(self, task: CaptureTask, destination: Path) -> CaptureOutcome:
        argv = [*self.launcher(task.namespace), "sh", "-c", task.source]
        pipe = " | gzip -c" if task.compress else ""
        self._record(f"{' '.join(argv[:-1])} {task.source!r}{pipe} > {destination}")
        return CaptureOutcome(task, destination, 0, None)

    def copy_file(self, task: CaptureTask, destination: Path) -> CaptureOutcome:
        verb = "gzip -c" if task.compress else "cat"
        self._record(f"{verb} {task.source} > {destination}")
        return CaptureOutcome(task, destination, None, None)

    def snapshot(self, source: Path, destination: Path) -> None:
        self._record(f"cp {source} {destination}")
