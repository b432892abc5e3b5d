"""Read tick files into Series.

Every data line is decoded on its own; a bad line is counted and skipped,
never fatal for the load. A missing or unreadable file yields ``None``.
"""
from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path
from typing import Iterator

import structlog

from .codec import MalformedRecordError, decode_record, is_data_line
from .models import Series, Snapshot

log = structlog.get_logger()

CREATED_MARKER = "Created:"
CREATED_FORMAT = "%Y-%m-%d %H:%M:%S"
_BLOCK_SIZE = 8192


def parse_created(comment_line: str) -> datetime | None:
    """``# Created: 2025-05-24 15:13:36`` -> datetime, None when unparseable."""
    text = comment_line[comment_line.index(CREATED_MARKER) + len(CREATED_MARKER):].strip()
    try:
        return datetime.strptime(text, CREATED_FORMAT)
    except ValueError:
        log.warning("tick_created_unparseable", line=comment_line)
        return None


def _parse_lines(lines, path: Path, entity_id: str) -> Series | None:
    created_at = None
    series = None
    skipped = 0
    for line_number, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line:
            continue
        if line.startswith("#"):
            # only the header block sets the creation time
            if CREATED_MARKER in line and series is None:
                created_at = parse_created(line)
            continue
        if series is None:
            series = Series(entity_id=entity_id, source_path=path, created_at=created_at)
        try:
            series.ticks.append(decode_record(line))
        except MalformedRecordError as exc:
            skipped += 1
            log.debug("tick_line_malformed", signal_id=entity_id, line_number=line_number, error=str(exc))
    if skipped:
        log.warning("tick_lines_skipped", signal_id=entity_id, path=str(path), skipped=skipped)
    return series


def read_series(path: Path, entity_id: str) -> Series | None:
    """Parse an existing tick file. OSError propagates; None when it has no data lines."""
    with path.open("r", encoding="utf-8", errors="replace") as fh:
        return _parse_lines(fh, path, entity_id)


def load_full(path: str | Path, entity_id: str) -> Series | None:
    path = Path(path)
    if not path.is_file():
        log.warning("tick_file_missing", signal_id=entity_id, path=str(path))
        return None
    try:
        series = read_series(path, entity_id)
    except OSError:
        log.error("tick_file_unreadable", signal_id=entity_id, path=str(path), exc_info=True)
        return None
    if series is None:
        log.warning("tick_file_without_records", signal_id=entity_id, path=str(path))
        return None
    log.debug("tick_file_loaded", signal_id=entity_id, ticks=series.tick_count)
    return series


def load_tail(path: str | Path, entity_id: str, max_count: int) -> Series | None:
    """Last ``max_count`` ticks in append order."""
    full = load_full(path, entity_id)
    if full is None or full.tick_count <= max_count:
        return full
    tail = full.derive(full.ticks[-max_count:] if max_count > 0 else [])
    log.debug("tick_tail_loaded", signal_id=entity_id, kept=tail.tick_count, total=full.tick_count)
    return tail


def load_window(path: str | Path, entity_id: str, start: datetime, end: datetime) -> Series | None:
    """Ticks with ``start <= timestamp <= end``."""
    full = load_full(path, entity_id)
    if full is None:
        return None
    window = full.derive([t for t in full.ticks if start <= t.timestamp <= end])
    log.debug(
        "tick_window_loaded",
        signal_id=entity_id,
        start=start.isoformat(),
        end=end.isoformat(),
        kept=window.tick_count,
        total=full.tick_count,
    )
    return window


def _reverse_lines(path: Path) -> Iterator[str]:
    with path.open("rb") as fh:
        fh.seek(0, os.SEEK_END)
        pos = fh.tell()
        remainder = b""
        while pos > 0:
            step = min(_BLOCK_SIZE, pos)
            pos -= step
            fh.seek(pos)
            chunk = fh.read(step) + remainder
            pieces = chunk.split(b"\n")
            remainder = pieces[0]
            for piece in reversed(pieces[1:]):
                yield piece.decode("utf-8", errors="replace")
        yield remainder.decode("utf-8", errors="replace")


def read_last_record(path: str | Path, entity_id: str) -> Snapshot | None:
    """Newest decodable record, scanning backwards from the end of the file.

    A missing file gives None; other OSErrors propagate to the caller.
    """
    path = Path(path)
    try:
        for raw in _reverse_lines(path):
            line = raw.strip()
            if not is_data_line(line):
                continue
            try:
                return decode_record(line)
            except MalformedRecordError as exc:
                log.debug("tick_last_line_malformed", signal_id=entity_id, error=str(exc))
    except FileNotFoundError:
        return None
    return None


def iter_records(path: str | Path) -> Iterator[tuple[int, Snapshot]]:
    """(line_number, snapshot) for every decodable data line."""
    path = Path(path)
    with path.open("r", encoding="utf-8", errors="replace") as fh:
        for line_number, raw in enumerate(fh, start=1):
            line = raw.strip()
            if not is_data_line(line):
                continue
            try:
                yield line_number, decode_record(line)
            except MalformedRecordError as exc:
                log.debug("tick_line_malformed", path=str(path), line_number=line_number, error=str(exc))
