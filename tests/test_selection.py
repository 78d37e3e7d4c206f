from __future__ import annotations

import os
import time
from datetime import datetime, timedelta

import pytest

from techdump.collect.exclusions import ExclusionFilter
from techdump.collect.selection import parse_since, select_files
from techdump.errors import EXT_INVALID_ARGUMENT, InvalidArgument

NOW = datetime(2026, 3, 10, 12, 30, 0)


@pytest.mark.parametrize('value,expected', [
    ('2026-03-01', datetime(2026, 3, 1)),
    ('2026-03-01 08:15:00', datetime(2026, 3, 1, 8, 15)),
    ('2026-03-01T08:15', datetime(2026, 3, 1, 8, 15)),
    ('now', NOW),
    ('today', datetime(2026, 3, 10)),
    ('yesterday', datetime(2026, 3, 9)),
    ('2 days ago', NOW - timedelta(days=2)),
    ('90 minutes ago', NOW - timedelta(minutes=90)),
    ('1 week ago', NOW - timedelta(weeks=1)),
])
def test_parse_since_accepts(value, expected):
    assert parse_since(value, now=NOW) == expected


@pytest.mark.parametrize('value', ['', 'last tuesday', '2026-13-45', 'ago'])
def test_parse_since_rejects(value):
    with pytest.raises(InvalidArgument) as exc:
        parse_since(value, now=NOW)
    assert exc.value.exit_code == EXT_INVALID_ARGUMENT


def test_select_files_filters_by_mtime_and_exclusions(tmp_path):
    (tmp_path / 'sub').mkdir()
    old = tmp_path / 'syslog.1.gz'
    old.write_text('old', encoding='utf-8')
    past = time.time() - 5 * 86400
    os.utime(old, (past, past))
    (tmp_path / 'syslog').write_text('new', encoding='utf-8')
    (tmp_path / 'server.key').write_text('secret', encoding='utf-8')

    everything = select_files(tmp_path, None, ExclusionFilter())
    assert [p.name for p in everything] == ['syslog.1.gz', 'syslog']

    recent = select_files(tmp_path, datetime.now() - timedelta(days=1), ExclusionFilter())
    assert [p.name for p in recent] == ['syslog']


def test_select_files_missing_directory(tmp_path):
    assert select_files(tmp_path / 'absent') == []


def test_select_files_honours_path_rules(tmp_path):
    (tmp_path / 'syslog').write_text('x', encoding='utf-8')
    (tmp_path / 'auth.log').write_text('x', encoding='utf-8')
    (tmp_path / 'secure').write_text('x', encoding='utf-8')
    rules = ExclusionFilter([str(tmp_path / 'auth.log'), 'log/secure'])
    picked = select_files(tmp_path, None, rules, archive_dir='log')
    assert [p.name for p in picked] == ['syslog']


def test_select_files_skips_files_rotated_away(tmp_path, monkeypatch):
    kept = tmp_path / 'syslog'
    kept.write_text('x', encoding='utf-8')
    gone = tmp_path / 'syslog.1'
    monkeypatch.setattr(type(tmp_path), 'iterdir', lambda self: iter([kept, gone]))
    assert select_files(tmp_path) == [kept]
