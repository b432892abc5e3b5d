#!/usr/bin/env python3
"""
Drop tick records older than a cutoff from every tick file.

Each rewritten file keeps its previous content in <file>.backup.
Run this from the same process/cron slot as the tick writer, never alongside it.

Usage:
    python scripts/compact_tick_files.py                     # dry run (print only)
    python scripts/compact_tick_files.py --execute           # rewrite files
    python scripts/compact_tick_files.py --days 90 --signal 123456 --execute
"""
from datetime import timedelta
from pathlib import Path
import os
import sys

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
os.chdir(ROOT)

from ticklog.config import settings
from ticklog.logging import setup_logging
from ticklog.utils import now_local, signal_id_from_path, tick_file_path
from ticklog.tickdata.loader import load_full
from ticklog.tickdata.writer import compact


def main():
    import argparse
    p = argparse.ArgumentParser(description="Drop tick records older than N days.")
    p.add_argument("--days", type=int, default=settings.compact_max_age_days, help="Maximum record age in days")
    p.add_argument("--signal", action="append", default=[], help="Only this signal id (repeatable)")
    p.add_argument("--execute", action="store_true", help="Actually rewrite files (default is dry run)")
    args = p.parse_args()
    dry_run = not args.execute
    setup_logging()

    now = now_local()
    max_age = timedelta(days=args.days)
    if args.signal:
        paths = [tick_file_path(s) for s in args.signal]
    else:
        paths = sorted(Path(settings.tick_dir).glob(f"*{settings.tick_file_suffix}"))

    if dry_run:
        print("DRY RUN (use --execute to rewrite)\n")

    total_dropped = 0
    failed = 0
    for path in paths:
        signal_id = signal_id_from_path(path)
        if dry_run:
            series = load_full(path, signal_id)
            if series is None:
                print(f"  {signal_id}: no tick data")
                continue
            n = sum(1 for t in series.ticks if now - t.timestamp > max_age)
            print(f"  {signal_id}: would drop {n} of {series.tick_count}")
            total_dropped += n
            continue
        result = compact(signal_id, path, max_age, now=now)
        if not result.ok:
            failed += 1
            print(f"  {signal_id}: FAILED ({result.error})")
            continue
        print(f"  {signal_id}: dropped {result.dropped}, kept {result.kept}")
        total_dropped += result.dropped

    print(f"\nTotal {'droppable' if dry_run else 'dropped'}: {total_dropped} records in {len(paths)} files")
    if failed:
        print(f"Failed: {failed}")
        sys.exit(1)


if __name__ == "__main__":
    main()
