from __future__ import annotations

import errno
import gzip
from dataclasses import replace

import pytest

from techdump.collect import executor as executor_mod
from techdump.collect.executor import DryRunExecutor, ShellExecutor, netns_launcher
from techdump.collect.namespaces import HOST, Namespace
from techdump.collect.tasks import CaptureTask
from techdump.errors import EXT_GENERAL, StagingWriteError


def test_command_output_includes_stderr(tmp_path, local_launcher):
    task = CaptureTask.command('echo out; echo err 1>&2', 'both')
    dest = tmp_path / 'both'
    outcome = ShellExecutor(launcher=local_launcher).run(task, dest)
    assert outcome.ok
    assert outcome.returncode == 0
    text = dest.read_text(encoding='utf-8')
    assert 'out\n' in text and 'err\n' in text


def test_command_output_gzip(tmp_path, local_launcher):
    task = CaptureTask.command('echo hi', 'greet', compress=True)
    dest = tmp_path / 'greet.gz'
    ShellExecutor(launcher=local_launcher).run(task, dest)
    assert gzip.decompress(dest.read_bytes()) == b'hi\n'


def test_nonzero_exit_is_recorded_not_raised(tmp_path, local_launcher):
    task = CaptureTask.command('echo broken 1>&2; exit 3', 'broken')
    dest = tmp_path / 'broken'
    outcome = ShellExecutor(launcher=local_launcher).run(task, dest)
    assert outcome.returncode == 3
    assert not outcome.ok
    assert dest.read_text(encoding='utf-8') == 'broken\n'


def test_launch_failure_is_archived_as_evidence(tmp_path):
    executor = ShellExecutor(launcher=lambda ns: ['/nonexistent/techdump-launcher'])
    task = CaptureTask.command('echo hi', 'greet')
    dest = tmp_path / 'greet'
    outcome = executor.run(task, dest)
    assert outcome.note and 'failed to launch' in outcome.note
    assert 'failed to launch' in dest.read_text(encoding='utf-8')


def test_timeout_kills_command_and_keeps_note(tmp_path, local_launcher):
    task = CaptureTask.command('sleep 5', 'slow')
    dest = tmp_path / 'slow'
    outcome = ShellExecutor(timeout_s=1, launcher=local_launcher).run(task, dest)
    assert 'timed out after 1s' in outcome.note
    assert 'timed out' in dest.read_text(encoding='utf-8')


def test_missing_file_writes_placeholder(tmp_path):
    missing = tmp_path / 'nope.log'
    task = CaptureTask.file(str(missing), 'log', compress=False)
    dest = tmp_path / 'nope.log.out'
    outcome = ShellExecutor().run(task, dest)
    assert outcome.note == 'file not found'
    assert dest.read_text(encoding='utf-8') == f'{missing}: file not found\n'


def test_file_copy_compressed(tmp_path):
    src = tmp_path / 'syslog'
    src.write_bytes(b'line1\nline2\n')
    task = CaptureTask.file(str(src), 'log')
    dest = tmp_path / 'syslog.gz'
    outcome = ShellExecutor().run(task, dest)
    assert outcome.ok
    assert gzip.decompress(dest.read_bytes()) == b'line1\nline2\n'


def test_netns_launcher_argv():
    launch = netns_launcher('asic')
    assert launch(HOST) == []
    assert launch(Namespace(2)) == ['ip', 'netns', 'exec', 'asic2']


def test_dry_run_records_without_io(tmp_path):
    executor = DryRunExecutor()
    task = CaptureTask.command('show version', 'version', compress=True)
    dest = tmp_path / 'version.1.gz'
    executor.run(replace(task, namespace=Namespace(1)), dest)
    executor.run(CaptureTask.file('/etc/hostname', 'etc'), tmp_path / 'hostname.gz')
    assert not dest.exists()
    assert len(executor.actions) == 2
    assert executor.actions[0].startswith('ip netns exec asic1 sh -c')
    assert '| gzip -c' in executor.actions[0]
    assert executor.actions[1] == f"gzip -c /etc/hostname > {tmp_path / 'hostname.gz'}"


def test_copy_write_failure_raises_staging_error(tmp_path, monkeypatch):
    src = tmp_path / 'syslog'
    src.write_bytes(b'line\n')

    def _full(path, compress):
        raise OSError(errno.ENOSPC, 'No space left on device')

    monkeypatch.setattr(executor_mod, '_open_output', _full)
    with pytest.raises(StagingWriteError) as exc:
        ShellExecutor().run(CaptureTask.file(str(src), 'log'), tmp_path / 'syslog.gz')
    assert exc.value.exit_code == EXT_GENERAL
    assert str(src) in str(exc.value)


def test_unreadable_source_is_a_placeholder_not_an_abort(tmp_path):
    task = CaptureTask.file(str(tmp_path), 'log', compress=False)
    dest = tmp_path / 'dir.out'
    outcome = ShellExecutor().run(task, dest)
    assert outcome.note.startswith('could not be read')
    assert dest.read_text(encoding='utf-8').startswith(f'{tmp_path}: could not be read')
