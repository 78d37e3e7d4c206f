from .archive import ArchiveSession, BaseArchiveSession, DryRunArchiveSession, SessionState
from .backend import Backend, build_backend
from .exclusions import DEFAULT_EXCLUSIONS, ExclusionFilter
from .executor import CaptureOutcome, DryRunExecutor, Executor, ShellExecutor, netns_launcher
from .namespaces import HOST, Namespace, all_namespaces, fan_out, resolve_num_asics
from .staging import DryRunStagingArea, StagingArea
from .tasks import CaptureTask, run_task

__all__ = [
    "ArchiveSession",
    "BaseArchiveSession",
    "DryRunArchiveSession",
    "SessionState",
    "Backend",
    "build_backend",
    "DEFAULT_EXCLUSIONS",
    "ExclusionFilter",
    "CaptureOutcome",
    "DryRunExecutor",
    "Executor",
    "ShellExecutor",
    "netns_launcher",
    "HOST",
    "Namespace",
    "all_namespaces",
    "fan_out",
    "resolve_num_asics",
    "DryRunStagingArea",
    "StagingArea",
    "CaptureTask",
    "run_task",
]
