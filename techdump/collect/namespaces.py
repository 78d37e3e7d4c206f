"""Hardware-partition namespaces and capture fan-out on multi-ASIC platforms."""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .tasks import CaptureTask

logger = logging.getLogger("techdump.namespaces")


@dataclass(frozen=True)
class Namespace:
    index: int | None = None

    @property
    def is_host(self) -> bool:
        return self.index is None

    @property
    def suffix(self) -> str:
        return "" if self.index is None else f".{self.index}"

    def name(self, prefix: str = "asic") -> str:
        return "host" if self.index is None else f"{prefix}{self.index}"


HOST = Namespace()


def _read_kv(path: Path) -> dict[str, str]:
    out: dict[str, str] = {}
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        k, v = line.split("=", 1)
        out[k.strip()] = v.strip().strip('"')
    return out


def resolve_num_asics(
    override: int | None = None,
    machine_conf: str | Path = "/host/machine.conf",
    platform_dir: str | Path = "/usr/share/sonic/device",
) -> int:
    """Number of ASIC namespaces on this platform.

    The override wins; otherwise the platform named in machine.conf is looked
    up under platform_dir and its asic.conf NUM_ASIC is used. Anything missing
    or malformed means a single-ASIC platform.
    """
    if override is not None:
        return max(1, int(override))
    try:
        machine = _read_kv(Path(machine_conf))
        platform = machine.get("onie_platform") or machine.get("aboot_platform")
        if not platform:
            return 1
        asic_conf = _read_kv(Path(platform_dir) / platform / "asic.conf")
        return max(1, int(asic_conf.get("NUM_ASIC", "1")))
    except (OSError, ValueError) as e:
        logger.debug("platform inventory unavailable, assuming one asic: %s", e)
        return 1


def fan_out(task: CaptureTask, num_asics: int) -> list[CaptureTask]:
    if num_asics <= 1:
        return [task]
    return [replace(task, namespace=Namespace(i)) for i in range(num_asics)]


def all_namespaces(task: CaptureTask, num_asics: int) -> list[CaptureTask]:
    """Host capture followed by one capture per ASIC namespace."""
    host = replace(task, namespace=HOST)
    if num_asics <= 1:
        return [host]
    return [host, *fan_out(task, num_asics)]
