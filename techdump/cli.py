from __future__ import annotations

import argparse
import logging
import sys
from contextlib import nullcontext

from .collect.backend import build_backend
from .collect.exclusions import ExclusionFilter
from .collect.namespaces import resolve_num_asics
from .collect.selection import parse_since
from .collector import DumpCollector
from .config import settings
from .errors import EXT_SUCCESS, CollectionAborted, InvalidArgument
from .plan import load_plan
from .runtime.guards import PausedCronJob, signal_guard
from .runtime.lock import RunLock
from .utils.logging_utils import configure_logging, run_context, structured_log

logger = logging.getLogger("techdump")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Collect a diagnostic dump archive")
    p.add_argument("-v", "--verbose", action="store_true", help="echo every staging and archive operation")
    p.add_argument("-n", "--dry-run", action="store_true", help="print the actions without collecting anything")
    p.add_argument("-z", "--no-compress", action="store_true", help="leave the final archive as a plain tar")
    p.add_argument("-s", "--since", default=None, help="only collect logs and cores modified since DATE")
    p.add_argument("--plan", default=None, help="YAML collection plan (default: packaged plan)")
    p.add_argument("--dump-dir", default=None, help=f"output directory (default: {settings.dump_dir})")
    p.add_argument("--timeout", type=int, default=None, help="per-command timeout in seconds, 0 waits forever")
    p.add_argument("--num-asics", type=int, default=None, help="override the platform ASIC count")
    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging("DEBUG" if args.verbose else settings.log_level)

    try:
        since = parse_since(args.since) if args.since else None
        plan = load_plan(args.plan or settings.plan_path or None)
    except InvalidArgument as e:
        logger.error("%s", e)
        print(f"techdump: {e}", file=sys.stderr)
        return e.exit_code

    backend = build_backend(
        dry_run=args.dry_run,
        timeout_s=args.timeout if args.timeout is not None else settings.cmd_timeout_s,
        namespace_prefix=settings.namespace_prefix,
    )
    num_asics = resolve_num_asics(
        args.num_asics if args.num_asics is not None else settings.num_asics,
        settings.machine_conf_path,
        settings.platform_dir,
    )
    collector = DumpCollector(
        backend,
        args.dump_dir or settings.dump_dir,
        num_asics=num_asics,
        prefix=settings.archive_prefix,
        timestamp_format=settings.timestamp_format,
        since=since,
        exclusions=ExclusionFilter(settings.extra_exclusions),
    )
    compress = settings.compress_archive and not args.no_compress

    with run_context(run_id=collector.base_name):
        try:
            with RunLock(settings.lock_path) if not args.dry_run else nullcontext():
                with signal_guard(), PausedCronJob(settings.logrotate_cron_path, dry_run=args.dry_run):
                    path = collector.run(plan, proc_files=settings.proc_files, compress=compress)
        except CollectionAborted as e:
            structured_log(logger, logging.ERROR, "collection_aborted", exit_code=e.exit_code, error=str(e))
            print(f"techdump: {e}", file=sys.stderr)
            return e.exit_code

    print(path)
    return EXT_SUCCESS


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
