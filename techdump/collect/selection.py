"""The "collect since DATE" filter and candidate selection for bulk captures."""
from __future__ import annotations

import logging
import re
import stat
from datetime import datetime, timedelta
from pathlib import Path

from ..errors import InvalidArgument
from .exclusions import ExclusionFilter

logger = logging.getLogger("techdump.selection")

_RELATIVE = re.compile(r"^(\d+)\s*(minute|hour|day|week)s?\s+ago$")
_UNITS = {"minute": "minutes", "hour": "hours", "day": "days", "week": "weeks"}


def parse_since(value: str, now: datetime | None = None) -> datetime:
    """Parse a --since value into a naive local datetime.

    Accepts ISO dates and timestamps, "now", "today", "yesterday" and
    "<N> minutes|hours|days|weeks ago".
    """
    now = now or datetime.now()
    text = (value or "").strip().lower()
    if not text:
        raise InvalidArgument("empty --since value")
    if text == "now":
        return now
    if text == "today":
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if text == "yesterday":
        return now.replace(hour=0, minute=0, second=0, microsecond=0) - timedelta(days=1)
    m = _RELATIVE.match(text)
    if m:
        return now - timedelta(**{_UNITS[m.group(2)]: int(m.group(1))})
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        raise InvalidArgument(f"invalid --since date: {value!r}") from None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def mtime_since(mtime: float, since: datetime | None) -> bool:
    return since is None or datetime.fromtimestamp(mtime) >= since


def select_files(
    directory: str | Path,
    since: datetime | None = None,
    exclusions: ExclusionFilter | None = None,
    archive_dir: str | None = None,
) -> list[Path]:
    """Regular files directly under directory, oldest first, after filtering.

    Each file is stat'ed once; files rotated away while the directory is
    being read are skipped.
    """
    base = Path(directory)
    if not base.is_dir():
        return []
    found: list[tuple[float, str, Path]] = []
    for p in base.iterdir():
        try:
            st = p.stat()
        except FileNotFoundError:
            logger.debug("vanished before selection: %s", p)
            continue
        if not stat.S_ISREG(st.st_mode):
            continue
        if exclusions is not None:
            aliases = [p] if archive_dir is None else [p, f"{archive_dir}/{p.name}"]
            if exclusions.is_excluded(p.name, *aliases):
                continue
        if not mtime_since(st.st_mtime, since):
            continue
        found.append((st.st_mtime, p.name, p))
    return [p for _, _, p in sorted(found)]
