"""
techdump: Archive Session
The only code that mutates the output archive.

State machine: CREATED → SEEDED → APPENDING → SEALED → [COMPRESSED].
Any failure to write the archive marks the session broken and raises
ArchiveAppendError; a broken session refuses every later mutation.
"""
from __future__ import annotations

import gzip
import logging
import os
import shutil
import stat
import tarfile
from datetime import datetime
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Any, Callable

from ..errors import ArchiveAppendError, ArchiveStateError
from ..utils.logging_utils import structured_log
from .exclusions import ExclusionFilter
from .selection import mtime_since

logger = logging.getLogger("techdump.archive")


class SessionState(str, Enum):
    CREATED = "created"
    SEEDED = "seeded"
    APPENDING = "appending"
    SEALED = "sealed"
    COMPRESSED = "compressed"


_WRITABLE = (SessionState.SEEDED, SessionState.APPENDING)


def _dir_key(path: Path) -> tuple[int, int]:
    st = path.stat()
    return st.st_dev, st.st_ino


def fold_members(
    directory: str | Path,
    archive_root: str,
    exclusions: ExclusionFilter,
    since: datetime | None = None,
) -> list[tuple[Path, str]]:
    """(source, archive-relative name) pairs for a directory fold, in walk order.

    Symlinks are followed like ``tar -h``, except a directory link back to one
    of its own ancestors, which is left out. Excluded directories prune their
    subtree. The since filter applies to files only so that the tree
    structure survives.
    """
    base = Path(directory).absolute()
    root = PurePosixPath(archive_root)
    if not base.is_dir():
        return []
    members: list[tuple[Path, str]] = [(base, str(root))]
    # dirpath -> (st_dev, st_ino) of the directories from base down to it
    ancestry: dict[str, frozenset[tuple[int, int]]] = {str(base): frozenset([_dir_key(base)])}
    for dirpath, dirnames, filenames in os.walk(base, followlinks=True):
        current = Path(dirpath)
        rel_dir = PurePosixPath(current.relative_to(base).as_posix())
        above = ancestry.pop(dirpath)
        kept = []
        for d in sorted(dirnames):
            rel = rel_dir / d
            src = current / d
            if exclusions.is_excluded(rel, src, root / rel):
                logger.debug("excluded directory %s", src)
                continue
            try:
                key = _dir_key(src)
            except FileNotFoundError:
                continue
            if key in above:
                logger.debug("directory loop skipped: %s", src)
                continue
            ancestry[str(src)] = above | {key}
            kept.append(d)
            members.append((src, str(root / rel)))
        dirnames[:] = kept
        for f in sorted(filenames):
            rel = rel_dir / f
            src = current / f
            if exclusions.is_excluded(rel, src, root / rel):
                logger.debug("excluded file %s", src)
                continue
            try:
                st = src.stat()
            except FileNotFoundError:
                # dangling symlink or rotated away mid-walk
                continue
            if not stat.S_ISREG(st.st_mode) or not mtime_since(st.st_mtime, since):
                continue
            members.append((src, str(root / rel)))
    return members


class BaseArchiveSession:
    def __init__(self, path: str | Path, root_name: str):
        self.path = Path(path)
        self.root_name = root_name
        self.state = SessionState.CREATED
        self.broken = False
        self.entries: list[str] = []
        self._names: set[str] = set()
        self._compress_attempted = False

    @property
    def sealed(self) -> bool:
        return self.state in (SessionState.SEALED, SessionState.COMPRESSED)

    @property
    def compressed(self) -> bool:
        return self.state is SessionState.COMPRESSED

    @property
    def deliverable(self) -> Path:
        if self.compressed:
            return self._compressed_path()
        return self.path

    def arcname(self, relative: str) -> str:
        return str(PurePosixPath(self.root_name) / relative)

    def holds(self, relative: str) -> bool:
        """True if the archive already has an entry at this archive-relative path."""
        return self.arcname(relative) in self._names

    def _remember(self, names: list[str]) -> None:
        self.entries.extend(names)
        self._names.update(names)

    # ── state guards ─────────────────────────────────────────────────────────
    def _require_writable(self, op: str) -> None:
        if self.broken:
            raise ArchiveAppendError(f"{op} refused: archive {self.path} failed earlier")
        if self.state not in _WRITABLE:
            raise ArchiveStateError(f"{op} not allowed in state {self.state.value}")

    def _guarded(self, what: str, fn: Callable[..., Any], *args: Any) -> Any:
        try:
            return fn(*args)
        except (OSError, tarfile.TarError) as e:
            self.broken = True
            structured_log(logger, logging.ERROR, "archive_write_failed", archive=str(self.path), entry=what, error=str(e))
            raise ArchiveAppendError(f"unable to add {what} to {self.path}: {e}") from e

    # ── operations ───────────────────────────────────────────────────────────
    def seed(self, root_dir: str | Path) -> None:
        if self.state is not SessionState.CREATED:
            raise ArchiveStateError(f"seed not allowed in state {self.state.value}")
        self._guarded(self.root_name, self._seed, Path(root_dir))
        self._remember([self.root_name])
        self.state = SessionState.SEEDED
        logger.debug("archive seeded: %s", self.path)

    def append(self, staged: str | Path, relative: str) -> str:
        self._require_writable("append")
        name = self.arcname(relative)
        if name in self._names:
            raise ArchiveStateError(f"{name} is already in {self.path}")
        self._guarded(name, self._append, Path(staged), name)
        self._remember([name])
        self.state = SessionState.APPENDING
        logger.debug("appended %s", name)
        return name

    def fold(
        self,
        directory: str | Path,
        archive_root: str,
        exclusions: ExclusionFilter,
        since: datetime | None = None,
    ) -> list[str]:
        """Append a whole directory tree in one operation.

        Excluded paths and names the archive already holds are skipped.
        """
        self._require_writable("fold")
        members = []
        for src, rel in fold_members(directory, archive_root, exclusions, since):
            name = self.arcname(rel)
            if name in self._names:
                logger.debug("already archived, not folding again: %s", name)
                continue
            members.append((src, name))
        if not members:
            logger.debug("nothing to fold from %s", directory)
            return []
        self._guarded(self.arcname(archive_root), self._fold, members)
        names = [name for _, name in members]
        self._remember(names)
        self.state = SessionState.APPENDING
        structured_log(logger, logging.DEBUG, "folded", source=str(directory), root=archive_root, entries=len(names))
        return names

    def seal(self) -> None:
        if self.state not in _WRITABLE:
            raise ArchiveStateError(f"seal not allowed in state {self.state.value}")
        self.state = SessionState.SEALED
        logger.debug("archive sealed: %s (%d entries)", self.path, len(self.entries))

    def compress(self) -> Path:
        """gzip the sealed archive; on failure the plain tar stays the deliverable."""
        if self.state is not SessionState.SEALED or self._compress_attempted:
            raise ArchiveStateError(f"compress not allowed in state {self.state.value}")
        self._compress_attempted = True
        try:
            self._compress()
        except OSError as e:
            structured_log(logger, logging.WARNING, "compress_failed", archive=str(self.path), error=str(e))
            return self.path
        self.state = SessionState.COMPRESSED
        return self.deliverable

    def _compressed_path(self) -> Path:
        return self.path.with_name(self.path.name + ".gz")

    # ── storage primitives ───────────────────────────────────────────────────
    def _seed(self, root_dir: Path) -> None:
        raise NotImplementedError

    def _append(self, staged: Path, name: str) -> None:
        raise NotImplementedError

    def _fold(self, members: list[tuple[Path, str]]) -> None:
        raise NotImplementedError

    def _compress(self) -> None:
        raise NotImplementedError


class ArchiveSession(BaseArchiveSession):
    """tar file on disk, grown with append-mode opens."""

    def _seed(self, root_dir: Path) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with tarfile.open(self.path, "w") as tf:
            tf.add(root_dir, arcname=self.root_name, recursive=False)

    def _append(self, staged: Path, name: str) -> None:
        with tarfile.open(self.path, "a", dereference=True) as tf:
            tf.add(staged, arcname=name)

    def _fold(self, members: list[tuple[Path, str]]) -> None:
        with tarfile.open(self.path, "a", dereference=True) as tf:
            for src, name in members:
                tf.add(src, arcname=name, recursive=False)

    def _compress(self) -> None:
        gz = self._compressed_path()
        try:
            with self.path.open("rb") as fin, gzip.open(gz, "wb") as fout:
                shutil.copyfileobj(fin, fout)
        except OSError:
            gz.unlink(missing_ok=True)
            raise
        self.path.unlink()


class DryRunArchiveSession(BaseArchiveSession):
    """Same state machine and entry names, no archive I/O."""

    def __init__(self, path: str | Path, root_name: str):
        super().__init__(path, root_name)
        self.actions: list[str] = []

    def _record(self, action: str) -> None:
        self.actions.append(action)
        logger.info("dry-run: %s", action)

    def _seed(self, root_dir: Path) -> None:
        self._record(f"tar -cf {self.path} {self.root_name}")

    def _append(self, staged: Path, name: str) -> None:
        self._record(f"tar -rhf {self.path} {name}")

    def _fold(self, members: list[tuple[Path, str]]) -> None:
        self._record(f"tar -rhf {self.path} {members[0][1]} ({len(members)} entries)")

    def _compress(self) -> None:
        self._record(f"gzip {self.path}")
