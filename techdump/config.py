"""
techdump: Configuration
Diagnostic dump collector for network operating systems.
Every field can be overridden with a TECHDUMP_* environment variable or .env entry.
"""
from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # ── App ──────────────────────────────────────────────────────────────────
    app_name: str = "techdump"
    app_version: str = "1.0.0"
    log_level: str = "INFO"

    # ── Archive layout ───────────────────────────────────────────────────────
    dump_dir: str = "/var/dump"
    archive_prefix: str = "techdump"     # <prefix>_<host>_<timestamp>
    timestamp_format: str = "%Y%m%d_%H%M%S"
    compress_archive: bool = True        # gzip the sealed tar

    # ── Collection ───────────────────────────────────────────────────────────
    plan_path: str = ""                  # empty = packaged default plan
    cmd_timeout_s: int = 0               # 0 = wait for the command indefinitely
    extra_exclusions: list[str] = []
    proc_files: list[str] = [
        "/proc/cmdline",
        "/proc/cpuinfo",
        "/proc/interrupts",
        "/proc/meminfo",
        "/proc/modules",
        "/proc/mounts",
        "/proc/uptime",
        "/proc/version",
        "/proc/vmstat",
    ]

    # ── Multi-ASIC platform inventory ────────────────────────────────────────
    num_asics: int | None = None         # override; otherwise read asic.conf
    machine_conf_path: str = "/host/machine.conf"
    platform_dir: str = "/usr/share/sonic/device"
    namespace_prefix: str = "asic"       # asic0, asic1, ...

    # ── Housekeeping ─────────────────────────────────────────────────────────
    lock_path: str = "/tmp/techdump.lock"
    logrotate_cron_path: str = "/etc/cron.d/logrotate"

    model_config = SettingsConfigDict(env_prefix="TECHDUMP_", env_file=".env", extra="ignore")


settings = Settings()
