from collections import defaultdict
from datetime import timedelta
from pathlib import Path
import threading
from fastapi import APIRouter, HTTPException, Response, status
from .schemas import (
    AppendResponse,
    CompactRequest,
    CompactResponse,
    ProfitResponse,
    SnapshotIn,
    SnapshotOut,
    TailResponse,
)
from ..config import settings
from ..utils import now_local, tick_file_path, to_local_naive
from ..tickdata.models import AppendOutcome, Snapshot
from ..tickdata.loader import load_full, load_tail, read_last_record
from ..tickdata.writer import append_snapshot, compact, file_statistics
from ..tickdata.periods import calculate_profits
from ..tickdata.frames import summarize_series

router = APIRouter()

# one writer per signal file: appends and compaction for a signal are serialized here.
# Locks are never pruned, which assumes a fixed set of signal ids.
_write_locks: defaultdict[str, threading.Lock] = defaultdict(threading.Lock)
_locks_guard = threading.Lock()

def _write_lock(signal_id: str) -> threading.Lock:
    with _locks_guard:
        return _write_locks[signal_id]

def _path(signal_id: str) -> Path:
    try:
        return tick_file_path(signal_id)
    except ValueError as e:
        raise HTTPException(400, str(e))

def _snapshot_out(snap: Snapshot) -> SnapshotOut:
    return SnapshotOut(
        timestamp=snap.timestamp,
        equity=snap.equity,
        floating_profit=snap.floating_profit,
        profit=snap.profit,
        total_value=snap.total_value,
    )

@router.get(
    '/health',
    summary="Health check",
    description="Returns tick directory status.",
    tags=["Health"],
)
def health():
    tick_dir = Path(settings.tick_dir)
    files = len(list(tick_dir.glob(f"*{settings.tick_file_suffix}"))) if tick_dir.is_dir() else 0
    return {'ok': True, 'tick_dir': str(tick_dir), 'tick_dir_exists': tick_dir.is_dir(), 'tick_files': files}

@router.get(
    '/signals/{signal_id}/latest',
    response_model=SnapshotOut,
    summary="Latest snapshot",
    tags=["Signals"],
)
def latest(signal_id: str):
    path = _path(signal_id)
    try:
        snap = read_last_record(path, signal_id)
    except OSError as e:
        raise HTTPException(500, f'tick_file_error: {e}')
    if snap is None:
        raise HTTPException(404, 'no tick data')
    return _snapshot_out(snap)

@router.get(
    '/signals/{signal_id}/profit',
    response_model=ProfitResponse,
    summary="Week and month profit",
    description="Percent equity change since last Sunday 00:00 and since the 1st of the month.",
    tags=["Signals"],
)
def profit(signal_id: str):
    path = _path(signal_id)
    now = now_local()
    series = load_full(path, signal_id)
    result = calculate_profits(series, now)
    return ProfitResponse(
        signal_id=signal_id,
        as_of=now,
        weekly_percent=round(result.weekly_percent, 4) if result.has_weekly_data else None,
        monthly_percent=round(result.monthly_percent, 4) if result.has_monthly_data else None,
        weekly=result.formatted_weekly,
        monthly=result.formatted_monthly,
        diagnostic=result.diagnostic,
    )

@router.get(
    '/signals/{signal_id}/ticks',
    response_model=TailResponse,
    summary="Most recent ticks",
    tags=["Signals"],
)
def ticks(signal_id: str, limit: int | None = None):
    path = _path(signal_id)
    limit = settings.tail_default_count if limit is None else limit
    if limit < 1:
        raise HTTPException(400, 'limit must be >= 1')
    series = load_tail(path, signal_id, limit)
    if series is None:
        raise HTTPException(404, 'no tick data')
    return TailResponse(
        signal_id=signal_id,
        created_at=series.created_at,
        tick_count=series.tick_count,
        ticks=[_snapshot_out(t) for t in series.ticks],
    )

@router.get('/signals/{signal_id}/summary', summary="Value ranges", tags=["Signals"])
def summary(signal_id: str):
    series = load_full(_path(signal_id), signal_id)
    if series is None:
        raise HTTPException(404, 'no tick data')
    return summarize_series(series)

@router.get('/signals/{signal_id}/stats', summary="Tick file statistics", tags=["Signals"])
def stats(signal_id: str):
    result = file_statistics(signal_id, _path(signal_id))
    if result.error:
        raise HTTPException(500, f'tick_file_error: {result.error}')
    return result.model_dump(mode="json")

@router.post(
    '/signals/{signal_id}/ticks',
    response_model=AppendResponse,
    summary="Append a snapshot",
    description="Applied snapshots return 201, suppressed duplicates 200.",
    tags=["Signals"],
)
def append(signal_id: str, body: SnapshotIn, response: Response):
    path = _path(signal_id)
    snap = Snapshot(
        timestamp=to_local_naive(body.timestamp),
        equity=body.equity,
        floating_profit=body.floating_profit,
        profit=body.profit,
    )
    with _write_lock(signal_id):
        outcome = append_snapshot(
            signal_id,
            snap,
            path,
            min_interval=timedelta(seconds=settings.duplicate_window_seconds),
        )
    if outcome is AppendOutcome.INVALID:
        raise HTTPException(422, 'invalid snapshot')
    if outcome is AppendOutcome.FAILED:
        raise HTTPException(500, 'tick write failed')
    response.status_code = status.HTTP_201_CREATED if outcome is AppendOutcome.APPLIED else status.HTTP_200_OK
    return AppendResponse(signal_id=signal_id, outcome=outcome.value)

@router.post(
    '/signals/{signal_id}/compact',
    response_model=CompactResponse,
    summary="Drop old ticks",
    description="Rewrites the tick file without ticks older than max_age_days; the old file is kept as .backup.",
    tags=["Admin"],
)
def compact_signal(signal_id: str, body: CompactRequest | None = None):
    path = _path(signal_id)
    days = body.max_age_days if body and body.max_age_days is not None else settings.compact_max_age_days
    with _write_lock(signal_id):
        result = compact(signal_id, path, timedelta(days=days), now=now_local())
    if not result.ok:
        raise HTTPException(500, f'compaction_failed: {result.error}')
    return CompactResponse(
        signal_id=signal_id,
        dropped=result.dropped,
        kept=result.kept,
        backup_path=str(result.backup_path) if result.backup_path else None,
    )
