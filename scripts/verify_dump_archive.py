#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import tarfile
from pathlib import Path


def summarize(archive: Path) -> dict:
    with tarfile.open(archive, 'r:*') as tf:
        members = tf.getmembers()

    names = [m.name for m in members]
    roots = sorted({n.split('/', 1)[0] for n in names})
    root = roots[0] if len(roots) == 1 else None
    root_entry = any(m.name == root and m.isdir() for m in members) if root else False

    def under(category: str) -> list[str]:
        prefix = f'{root}/{category}/'
        return [n for n in names if n.startswith(prefix)]

    dump_files = under('dump')
    return {
        'archive': str(archive),
        'ok': bool(root_entry and dump_files),
        'root': root,
        'dump_files': len(dump_files),
        'proc_files': len(under('proc')),
        'log_files': len(under('log')),
        'has_etc': bool(under('etc')),
        'duplicates': sorted({n for n in names if names.count(n) > 1}),
        'entry_count': len(names),
    }


def main() -> int:
    parser = argparse.ArgumentParser(description='Validate a techdump archive')
    parser.add_argument('archive', help='Path to <prefix>_<host>_<timestamp>.tar[.gz]')
    parser.add_argument('--json', action='store_true', help='Emit JSON summary')
    args = parser.parse_args()

    archive = Path(args.archive)
    if not archive.exists():
        raise SystemExit(f'archive not found: {archive}')

    payload = summarize(archive)
    if args.json:
        print(json.dumps(payload, ensure_ascii=False))
    else:
        for k, v in payload.items():
            print(f'{k}={json.dumps(v, ensure_ascii=False) if isinstance(v, (list, dict, bool)) else v}')
    if not payload['ok']:
        raise SystemExit(2)
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
