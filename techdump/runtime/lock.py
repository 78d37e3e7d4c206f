from __future__ import annotations

import json
import os
import socket
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..errors import RunLockBusy

try:
    import fcntl
except Exception:  # pragma: no cover
    fcntl = None


@dataclass
class LockHandle:
    owner: str
    token: int
    path: str


class RunLock:
    """Exclusive lock held for the whole collection run.

    Only one run may write an archive at a time; a second run fails fast
    with RunLockBusy instead of waiting.
    """

    def __init__(self, lock_path: str | Path | None = None):
        p = Path(lock_path or (Path(tempfile.gettempdir()) / "techdump.lock"))
        self.path = p
        self.meta = Path(str(p) + ".json")
        self.owner = f"{socket.gethostname()}:{os.getpid()}"
        self._fd: Optional[int] = None

    def acquire(self) -> LockHandle:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_RDWR | os.O_CREAT, 0o600)
        try:
            if fcntl is not None:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError:
            os.close(fd)
            raise RunLockBusy(f"another collection holds {self.path}{self._holder()}") from None
        token = int(time.time() * 1000)
        self.meta.write_text(json.dumps({"owner": self.owner, "token": token, "ts": time.time()}), encoding="utf-8")
        self._fd = fd
        return LockHandle(owner=self.owner, token=token, path=str(self.path))

    def _holder(self) -> str:
        try:
            data = json.loads(self.meta.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return ""
        return f" (owner {data.get('owner')})"

    def release(self) -> None:
        if self._fd is None:
            return
        try:
            self.meta.unlink(missing_ok=True)
            if fcntl is not None:
                fcntl.flock(self._fd, fcntl.LOCK_UN)
        finally:
            os.close(self._fd)
            self._fd = None

    def __enter__(self) -> LockHandle:
        return self.acquire()

    def __exit__(self, *exc) -> None:
        self.release()
