"""
techdump: Run guards
Side effects outside the archive that must be undone on every exit path:
normal completion, a fatal abort, or a termination signal.
"""
from __future__ import annotations

import logging
import os
import signal
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from ..errors import TerminationRequested
from ..utils.logging_utils import structured_log

logger = logging.getLogger("techdump.guards")

TERMINATION_SIGNALS = (signal.SIGINT, signal.SIGTERM, signal.SIGHUP)


@contextmanager
def signal_guard(signals: tuple[signal.Signals, ...] = TERMINATION_SIGNALS) -> Iterator[None]:
    """Turn termination signals into TerminationRequested so finally blocks run."""

    def _handler(signum, _frame):
        raise TerminationRequested(f"received signal {signal.Signals(signum).name}")

    previous = {}
    for sig in signals:
        previous[sig] = signal.signal(sig, _handler)
    try:
        yield
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


def _atomic_write_text(path: Path, text: str) -> None:
    tmp = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
    try:
        with tmp.open("w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    finally:
        tmp.unlink(missing_ok=True)


class PausedCronJob:
    """Comment out a cron.d job for the duration of the run.

    Used to keep log rotation from moving files while they are collected.
    The original file content is written back on exit, whatever the reason.
    """

    def __init__(self, path: str | Path, dry_run: bool = False):
        self.path = Path(path)
        self.dry_run = dry_run
        self._original: str | None = None

    def __enter__(self) -> "PausedCronJob":
        if not self.path.is_file():
            logger.debug("no cron job at %s, nothing to pause", self.path)
            return self
        if self.dry_run:
            logger.info("dry-run: would pause %s", self.path)
            return self
        original = self.path.read_text(encoding="utf-8")
        paused = "".join(
            line if not line.strip() or line.startswith("#") else f"#{line}"
            for line in original.splitlines(keepends=True)
        )
        _atomic_write_text(self.path, paused)
        self._original = original
        structured_log(logger, logging.INFO, "cron_job_paused", path=str(self.path))
        return self

    def __exit__(self, *exc) -> None:
        if self._original is None:
            return
        _atomic_write_text(self.path, self._original)
        self._original = None
        structured_log(logger, logging.INFO, "cron_job_restored", path=str(self.path))
