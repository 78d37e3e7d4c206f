from __future__ import annotations

import tarfile
from datetime import datetime
from pathlib import Path
from typing import Callable

import pytest

from techdump.collect.backend import build_backend
from techdump.collector import DumpCollector
from techdump.config import settings

FIXED_NOW = datetime(2026, 3, 10, 12, 0, 0)


@pytest.fixture(autouse=True)
def restore_settings():
    tracked = {
        'log_level': settings.log_level,
        'dump_dir': settings.dump_dir,
        'archive_prefix': settings.archive_prefix,
        'compress_archive': settings.compress_archive,
        'plan_path': settings.plan_path,
        'cmd_timeout_s': settings.cmd_timeout_s,
        'extra_exclusions': list(settings.extra_exclusions),
        'proc_files': list(settings.proc_files),
        'num_asics': settings.num_asics,
        'lock_path': settings.lock_path,
        'logrotate_cron_path': settings.logrotate_cron_path,
    }
    yield settings
    for key, value in tracked.items():
        setattr(settings, key, value)


@pytest.fixture
def local_launcher():
    # run "namespaced" commands directly on the test host
    return lambda ns: []


@pytest.fixture
def make_collector(tmp_path, local_launcher) -> Callable[..., DumpCollector]:
    def _make(num_asics: int = 1, dry_run: bool = False, dump_dir: Path | None = None, **kwargs) -> DumpCollector:
        backend = build_backend(dry_run=dry_run, launcher=local_launcher)
        return DumpCollector(
            backend,
            dump_dir or (tmp_path / 'dump'),
            num_asics=num_asics,
            hostname='switch1',
            now=FIXED_NOW,
            **kwargs,
        )
    return _make


@pytest.fixture
def archive_contents() -> Callable[[Path], dict[str, bytes | None]]:
    def _read(path: Path) -> dict[str, bytes | None]:
        out: dict[str, bytes | None] = {}
        with tarfile.open(path, 'r:*') as tf:
            for m in tf.getmembers():
                fh = tf.extractfile(m) if m.isfile() else None
                out[m.name] = fh.read() if fh else None
        return out
    return _read


@pytest.fixture
def fake_proc(tmp_path) -> list[str]:
    base = tmp_path / 'proc'
    base.mkdir()
    (base / 'uptime').write_text('12345.67 23456.78\n', encoding='utf-8')
    (base / 'version').write_text('Linux version 6.1.0\n', encoding='utf-8')
    return [str(base / 'uptime'), str(base / 'version')]
