#!/usr/bin/env python3
"""
Rewrite legacy tick lines (4, 6, 7 or 8+ fields) in canonical five-field form.

A timestamped backup (<file>.backup_<ms>) is written before a file is changed
and removed again when nothing needed repair.

Usage:
    python scripts/repair_tick_files.py
    python scripts/repair_tick_files.py --signal 123456
"""
from pathlib import Path
import os
import sys

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
os.chdir(ROOT)

from ticklog.config import settings
from ticklog.logging import setup_logging
from ticklog.utils import tick_file_path
from ticklog.tickdata.writer import repair_directory, repair_file


def main():
    import argparse
    p = argparse.ArgumentParser(description="Convert legacy tick lines to the canonical format.")
    p.add_argument("--signal", action="append", default=[], help="Only this signal id (repeatable)")
    args = p.parse_args()
    setup_logging()

    if args.signal:
        results = {s: repair_file(s, tick_file_path(s)) for s in args.signal}
    else:
        results = repair_directory(settings.tick_dir, settings.tick_file_suffix)

    for signal_id, result in results.items():
        if not result.ok:
            print(f"  {signal_id}: FAILED ({result.error})")
        elif result.repaired:
            print(f"  {signal_id}: repaired {result.repaired} lines (backup {result.backup_path.name})")
        else:
            print(f"  {signal_id}: already canonical")

    failed = sum(1 for r in results.values() if not r.ok)
    print(f"\n{len(results) - failed}/{len(results)} files ok")
    if failed:
        sys.exit(1)


if __name__ == "__main__":
    main()
