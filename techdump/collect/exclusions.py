"""Glob rules that keep sensitive files out of bulk directory folds."""
from __future__ import annotations

from fnmatch import fnmatchcase
from pathlib import PurePath, PurePosixPath
from typing import Iterable

# Always applied, whatever the caller configures.
DEFAULT_EXCLUSIONS: tuple[str, ...] = (
    # password / credential stores
    "shadow*",
    "gshadow*",
    "opasswd",
    "*get_creds*",
    "*credentials*",
    # ssh host keys
    "ssh_host_*",
    # snmp community strings
    "*snmpd.conf*",
    "snmp.yml",
    # private keys and certificates
    "*.key",
    "*.pem",
    # vendor license / secret trees
    "mlnx",
    "mft",
    "licenses",
)


class ExclusionFilter:
    """Default rules plus caller rules.

    A rule may name an entry by its path relative to the directory being
    collected, by its absolute source path, or by its path inside the archive.
    """

    def __init__(self, extra: Iterable[str] = ()):
        rules = list(DEFAULT_EXCLUSIONS)
        for pattern in extra:
            pattern = _normalize(pattern)
            if pattern and pattern not in rules:
                rules.append(pattern)
        self.rules: tuple[str, ...] = tuple(rules)

    def extended(self, extra: Iterable[str]) -> "ExclusionFilter":
        return ExclusionFilter([*self.rules, *extra])

    def is_excluded(self, path: str | PurePath, *aliases: str | PurePath) -> bool:
        """True if the path, any trailing part of it, or any single component matches a rule.

        Matching a component excludes everything below it, the way an excluded
        directory prunes its subtree. Aliases are other names of the same
        entry (source path, archive name) and only match a rule as a whole.
        """
        p = PurePosixPath(str(path))
        parts = [part for part in p.parts if part != "/"]
        candidates = {str(p), *parts}
        for i in range(len(parts)):
            candidates.add("/".join(parts[i:]))
        candidates.update(str(PurePosixPath(str(a))) for a in aliases)
        return any(fnmatchcase(c, rule) for c in candidates for rule in self.rules)


def _normalize(pattern: str | PurePath) -> str:
    text = str(pattern).strip()
    if len(text) > 1:
        text = text.rstrip("/") or "/"
    return text
