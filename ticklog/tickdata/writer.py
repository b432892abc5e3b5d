"""Append-only tick file writer.

One file per signal. New files start with a three line ``#`` header; after
that the file only grows, one canonical line per accepted snapshot, until an
explicit compaction rewrites it. Callers serialize writes per signal file.
"""
from __future__ import annotations

import os
import shutil
import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Iterable

import structlog

from ..logging import signal_context
from ..utils import signal_id_from_path
from .codec import MalformedRecordError, decode_record, encode_record, is_canonical, is_data_line
from .loader import iter_records, read_last_record, read_series
from .models import AppendOutcome, CompactionResult, RepairResult, Snapshot, TickFileStatistics
from .validation import validate_snapshot

log = structlog.get_logger()

HEADER_FORMAT_LINE = "# Signal Tick Data - Format: Date,Time,Equity,FloatingProfit,Profit"
HEADER_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
DUPLICATE_WINDOW = timedelta(minutes=1)
BACKUP_SUFFIX = ".backup"


def _now(clock: Callable[[], datetime] | None) -> datetime:
    return (clock or datetime.now)()


def build_header(entity_id: str, created_at: datetime) -> str:
    return (
        f"{HEADER_FORMAT_LINE}\n"
        f"# Signal ID: {entity_id}\n"
        f"# Created: {created_at.strftime(HEADER_TIMESTAMP_FORMAT)}\n"
    )


def should_skip_duplicate(
    snapshot: Snapshot,
    last: Snapshot | None,
    min_interval: timedelta = DUPLICATE_WINDOW,
) -> bool:
    """Unchanged values observed again within ``min_interval`` are dropped.

    A real change is always written, and so is an unchanged value once the
    interval has passed.
    """
    if last is None:
        return False
    if snapshot.values_changed(last):
        return False
    return snapshot.timestamp - last.timestamp < min_interval


def _append_line(path: Path, entity_id: str, line: str, clock) -> None:
    if not path.exists():
        path.write_text(build_header(entity_id, _now(clock)), encoding="utf-8")
        log.info("tick_file_created", path=str(path))
    with path.open("a+b") as fh:
        # a hand-edited file may lack its final newline
        if fh.tell() > 0:
            fh.seek(-1, os.SEEK_END)
            if fh.read(1) != b"\n":
                fh.write(b"\n")
        fh.write(f"{line}\n".encode("utf-8"))
        fh.flush()


def append_snapshot(
    entity_id: str,
    snapshot: Snapshot,
    path: str | Path,
    *,
    min_interval: timedelta = DUPLICATE_WINDOW,
    clock: Callable[[], datetime] | None = None,
) -> AppendOutcome:
    path = Path(path)
    with signal_context(entity_id):
        ok, reasons = validate_snapshot(snapshot)
        if not ok:
            log.warning("tick_append_invalid", reasons=reasons)
            return AppendOutcome.INVALID
        try:
            if not path.parent.exists():
                path.parent.mkdir(parents=True, exist_ok=True)
                log.info("tick_dir_created", path=str(path.parent))
            last = read_last_record(path, entity_id)
            if should_skip_duplicate(snapshot, last, min_interval):
                log.debug("tick_append_skipped", timestamp=snapshot.timestamp.isoformat())
                return AppendOutcome.SKIPPED
            _append_line(path, entity_id, encode_record(snapshot), clock)
        except OSError:
            log.error("tick_append_failed", path=str(path), exc_info=True)
            return AppendOutcome.FAILED
        log.info("tick_appended", summary=snapshot.summary())
        return AppendOutcome.APPLIED


def append_batch(
    items: Iterable[tuple[str, Snapshot]],
    path_for: Callable[[str], Path],
    *,
    min_interval: timedelta = DUPLICATE_WINDOW,
    clock: Callable[[], datetime] | None = None,
) -> int:
    """Append many (signal_id, snapshot) pairs; returns the successful count."""
    total = 0
    succeeded = 0
    for entity_id, snapshot in items:
        total += 1
        outcome = append_snapshot(entity_id, snapshot, path_for(entity_id), min_interval=min_interval, clock=clock)
        if outcome.ok:
            succeeded += 1
    log.info("tick_batch_done", succeeded=succeeded, total=total)
    return succeeded


def _replace_contents(path: Path, text: str) -> None:
    """Write ``text`` to a ``.tmp`` sibling and move it over ``path``."""
    tmp_path = path.with_name(path.name + ".tmp")
    try:
        with tmp_path.open("w", encoding="utf-8", newline="\n") as fh:
            fh.write(text)
        os.replace(tmp_path, path)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise


def _rewrite(path: Path, entity_id: str, ticks: list[Snapshot], created_at: datetime) -> None:
    lines = [encode_record(tick) + "\n" for tick in ticks]
    _replace_contents(path, build_header(entity_id, created_at) + "".join(lines))


def compact(
    entity_id: str,
    path: str | Path,
    max_age: timedelta,
    *,
    now: datetime | None = None,
    clock: Callable[[], datetime] | None = None,
) -> CompactionResult:
    """Drop ticks older than ``max_age`` (relative to ``now``) and rewrite the file.

    The previous content is copied to ``<file>.backup`` before the rewrite.
    """
    path = Path(path)
    now = now or _now(clock)
    with signal_context(entity_id):
        if not path.is_file():
            return CompactionResult(entity_id=entity_id)
        try:
            series = read_series(path, entity_id)
        except OSError as exc:
            log.error("tick_compact_read_failed", path=str(path), exc_info=True)
            return CompactionResult(entity_id=entity_id, ok=False, error=str(exc))
        if series is None or not series.ticks:
            return CompactionResult(entity_id=entity_id)
        kept = [t for t in series.ticks if now - t.timestamp <= max_age]
        dropped = series.tick_count - len(kept)
        if dropped == 0:
            return CompactionResult(entity_id=entity_id, kept=len(kept))
        backup_path = path.with_name(path.name + BACKUP_SUFFIX)
        try:
            shutil.copyfile(path, backup_path)
            _rewrite(path, entity_id, kept, _now(clock))
        except OSError as exc:
            log.error("tick_compact_failed", path=str(path), exc_info=True)
            return CompactionResult(entity_id=entity_id, kept=series.tick_count, ok=False, error=str(exc))
        log.info("tick_file_compacted", dropped=dropped, kept=len(kept), backup=str(backup_path))
        return CompactionResult(entity_id=entity_id, dropped=dropped, kept=len(kept), backup_path=backup_path)


def repair_file(
    entity_id: str,
    path: str | Path,
    *,
    clock: Callable[[], datetime] | None = None,
) -> RepairResult:
    """Rewrite decodable legacy lines in canonical five-field form.

    Comments, blank lines and lines that do not decode are kept verbatim.
    """
    path = Path(path)
    with signal_context(entity_id):
        if not path.is_file():
            log.warning("tick_repair_missing", path=str(path))
            return RepairResult(entity_id=entity_id, ok=False, error="file not found")
        backup_path = path.with_name(f"{path.name}{BACKUP_SUFFIX}_{int(time.time() * 1000)}")
        try:
            shutil.copyfile(path, backup_path)
            lines = path.read_text(encoding="utf-8", errors="replace").splitlines()
            out = []
            repaired = 0
            for raw in lines:
                line = raw.strip()
                if not is_data_line(line) or is_canonical(line):
                    out.append(raw)
                    continue
                try:
                    fixed = encode_record(decode_record(line))
                except MalformedRecordError:
                    log.warning("tick_repair_unknown_format", line=raw)
                    out.append(raw)
                    continue
                out.append(fixed)
                repaired += 1
            if not repaired:
                backup_path.unlink()
                log.info("tick_repair_not_needed", path=str(path))
                return RepairResult(entity_id=entity_id)
            _replace_contents(path, "\n".join(out) + "\n")
        except OSError as exc:
            log.error("tick_repair_failed", path=str(path), exc_info=True)
            return RepairResult(entity_id=entity_id, ok=False, error=str(exc))
        log.info("tick_file_repaired", repaired=repaired, backup=str(backup_path))
        return RepairResult(entity_id=entity_id, repaired=repaired, backup_path=backup_path)


def repair_directory(tick_dir: str | Path, suffix: str = ".txt") -> dict[str, RepairResult]:
    tick_dir = Path(tick_dir)
    results: dict[str, RepairResult] = {}
    if not tick_dir.is_dir():
        log.warning("tick_dir_missing", path=str(tick_dir))
        return results
    for path in sorted(tick_dir.glob(f"*{suffix}")):
        entity_id = signal_id_from_path(path, suffix)
        results[entity_id] = repair_file(entity_id, path)
    succeeded = sum(1 for r in results.values() if r.ok)
    log.info("tick_repair_all_done", succeeded=succeeded, total=len(results))
    return results


def file_statistics(entity_id: str, path: str | Path) -> TickFileStatistics:
    path = Path(path)
    stats = TickFileStatistics(entity_id=entity_id, file_path=path, file_exists=path.is_file())
    if not stats.file_exists:
        return stats
    try:
        st = path.stat()
        stats.file_size = st.st_size
        stats.last_modified = datetime.fromtimestamp(st.st_mtime)
        count = 0
        for _, snap in iter_records(path):
            if count == 0:
                stats.first_entry = snap
            stats.last_entry = snap
            count += 1
        stats.entry_count = count
    except OSError as exc:
        log.error("tick_stats_failed", signal_id=entity_id, path=str(path), exc_info=True)
        stats.error = str(exc)
    return stats
