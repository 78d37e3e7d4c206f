from __future__ import annotations

from pathlib import PurePosixPath

import pytest

from techdump.errors import InvalidArgument
from techdump.plan import DEFAULT_PLAN_PATH, load_plan


def test_default_plan_loads():
    plan = load_plan()
    assert DEFAULT_PLAN_PATH.exists()
    assert plan.proc is None
    assert any(c.all_namespaces for c in plan.commands)
    assert {d.category for d in plan.directories} == {'log', 'core', 'kdump'}
    assert plan.folds[0].root == 'etc'


def test_plan_from_yaml(tmp_path):
    p = tmp_path / 'plan.yaml'
    p.write_text(
        'proc: []\n'
        'commands:\n'
        '  - {cmd: "echo hi", name: greet, all_namespaces: true}\n'
        'exclude: ["*.bak"]\n',
        encoding='utf-8',
    )
    plan = load_plan(p)
    assert plan.proc == []
    assert plan.commands[0].name == 'greet'
    assert plan.commands[0].compress is False
    assert plan.exclude == ['*.bak']
    assert plan.files == [] and plan.folds == []


def test_empty_plan_file_is_an_empty_plan(tmp_path):
    p = tmp_path / 'empty.yaml'
    p.write_text('', encoding='utf-8')
    assert load_plan(p).commands == []


@pytest.mark.parametrize('body', [
    'commands: [unterminated\n',
    'commands: "echo hi"\n',
    'commands:\n  - {cmd: "echo hi"}\n',
])
def test_bad_plans_are_invalid_arguments(tmp_path, body):
    p = tmp_path / 'bad.yaml'
    p.write_text(body, encoding='utf-8')
    with pytest.raises(InvalidArgument):
        load_plan(p)


def test_missing_plan_is_invalid_argument(tmp_path):
    with pytest.raises(InvalidArgument):
        load_plan(tmp_path / 'nope.yaml')


def test_default_plan_files_lie_outside_folded_trees():
    plan = load_plan()
    folded = [PurePosixPath(f.path) for f in plan.folds]
    for spec in plan.files:
        path = PurePosixPath(spec.path)
        assert not any(root in path.parents for root in folded), spec.path
