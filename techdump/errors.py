"""Exit codes and the exception taxonomy of a collection run."""
from __future__ import annotations

EXT_SUCCESS = 0
EXT_GENERAL = 1
EXT_LOCKFAIL = 2
EXT_RECVSIG = 3
EXT_TAR_FAILED = 5
EXT_PROCFS_SAVE_FAILED = 6
EXT_INVALID_ARGUMENT = 10


class CollectionError(Exception):
    pass


class CollectionAborted(CollectionError):
    """A condition that terminates the whole run with a distinct exit code."""

    exit_code = EXT_GENERAL

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ArchiveAppendError(CollectionAborted):
    exit_code = EXT_TAR_FAILED


class StagingWriteError(CollectionAborted):
    """Captured output could not be written to the staging area (disk full, read-only fs)."""


class ProcSnapshotError(CollectionAborted):
    exit_code = EXT_PROCFS_SAVE_FAILED


class RunLockBusy(CollectionAborted):
    exit_code = EXT_LOCKFAIL


class TerminationRequested(CollectionAborted):
    exit_code = EXT_RECVSIG


class InvalidArgument(CollectionError):
    exit_code = EXT_INVALID_ARGUMENT


class ArchiveStateError(CollectionError):
    """An archive operation was attempted from a state that does not allow it."""
