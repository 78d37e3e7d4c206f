"""Collection plans: which commands, files and directories go into a dump."""
from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError

from .errors import InvalidArgument

DEFAULT_PLAN_PATH = Path(__file__).with_name("default_plan.yaml")


class CommandSpec(BaseModel):
    cmd: str
    name: str
    compress: bool = False
    all_namespaces: bool = False


class FileSpec(BaseModel):
    path: str
    category: str = "etc"
    compress: bool = True


class DirectorySpec(BaseModel):
    """Every file directly under path, filtered by --since, as <category>/<name>[.gz]."""
    path: str
    category: str
    compress: bool = True


class FoldSpec(BaseModel):
    path: str
    root: str
    exclude: list[str] = Field(default_factory=list)


class CollectionPlan(BaseModel):
    proc: list[str] | None = None
    commands: list[CommandSpec] = Field(default_factory=list)
    files: list[FileSpec] = Field(default_factory=list)
    directories: list[DirectorySpec] = Field(default_factory=list)
    folds: list[FoldSpec] = Field(default_factory=list)
    exclude: list[str] = Field(default_factory=list)


def load_plan(path: str | Path | None = None) -> CollectionPlan:
    p = Path(path) if path else DEFAULT_PLAN_PATH
    try:
        data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except OSError as e:
        raise InvalidArgument(f"cannot read plan {p}: {e}") from e
    except yaml.YAMLError as e:
        raise InvalidArgument(f"plan {p} is not valid YAML: {e}") from e
    try:
        return CollectionPlan.model_validate(data)
    except ValidationError as e:
        raise InvalidArgument(f"plan {p} is invalid: {e}") from e
