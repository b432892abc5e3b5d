#!/usr/bin/env python3
"""
Print file statistics, value ranges and week/month profit for tick files.

Usage:
    python scripts/tick_file_report.py                  # every tick file
    python scripts/tick_file_report.py --signal 123456 --diagnostic
"""
from pathlib import Path
import os
import sys

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
os.chdir(ROOT)

from ticklog.config import settings
from ticklog.utils import now_local, signal_id_from_path, tick_file_path
from ticklog.tickdata.loader import load_full
from ticklog.tickdata.writer import file_statistics
from ticklog.tickdata.periods import calculate_profits, detailed_diagnostic
from ticklog.tickdata.frames import format_summary, summarize_series


def main():
    import argparse
    p = argparse.ArgumentParser(description="Report on tick files.")
    p.add_argument("--signal", action="append", default=[], help="Only this signal id (repeatable)")
    p.add_argument("--diagnostic", action="store_true", help="Include the period profit diagnostic")
    args = p.parse_args()

    now = now_local()
    if args.signal:
        paths = [tick_file_path(s) for s in args.signal]
    else:
        paths = sorted(Path(settings.tick_dir).glob(f"*{settings.tick_file_suffix}"))
    if not paths:
        print(f"No tick files in {settings.tick_dir}")
        return

    for path in paths:
        signal_id = signal_id_from_path(path)
        print(file_statistics(signal_id, path))
        series = load_full(path, signal_id)
        print(format_summary(summarize_series(series)), end="")
        result = calculate_profits(series, now)
        print(f"Week: {result.formatted_weekly}  Month: {result.formatted_monthly}")
        if args.diagnostic:
            print(detailed_diagnostic(path, signal_id, now), end="")
        print()


if __name__ == "__main__":
    main()
