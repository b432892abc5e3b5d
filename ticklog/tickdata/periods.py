"""Week-to-date and month-to-date profit from a signal's equity ticks.

Weeks start on Sunday 00:00, months on the 1st at 00:00, both taken from the
``now`` the caller passes in. The reference equity for a boundary is searched
with three strategies:

  1. first tick at or after the boundary, when the series also has ticks
     before it (the boundary falls inside the recorded span)
  2. last tick before the boundary, when no tick reaches it
  3. first tick of the series, when every tick is at or after the boundary
     (recording started inside the period)
"""
from __future__ import annotations

import math
from datetime import datetime, time
from pathlib import Path
from typing import Sequence

import structlog
from dateutil.relativedelta import SU, relativedelta

from .loader import load_full
from .models import (
    EquitySearchOutcome,
    PeriodReference,
    ProfitResult,
    SearchStrategy,
    Series,
    Snapshot,
)

log = structlog.get_logger()

MIN_TICKS = 2


def week_start(now: datetime) -> datetime:
    """Most recent Sunday 00:00:00; today when today is Sunday."""
    sunday = now.date() + relativedelta(weekday=SU(-1))
    return datetime.combine(sunday, time.min)


def month_start(now: datetime) -> datetime:
    return datetime.combine(now.date().replace(day=1), time.min)


def period_reference(now: datetime) -> PeriodReference:
    return PeriodReference(now=now, week_start=week_start(now), month_start=month_start(now))


def _outcome(tick: Snapshot, boundary: datetime, strategy: SearchStrategy) -> EquitySearchOutcome:
    return EquitySearchOutcome(
        boundary=boundary,
        equity=tick.equity,
        timestamp=tick.timestamp,
        strategy=strategy,
        diagnostic=(
            f"strategy {strategy.number} ({strategy.value} {boundary:%Y-%m-%d}): "
            f"equity={tick.equity:.2f} at {tick.timestamp:%Y-%m-%d %H:%M:%S}"
        ),
    )


def find_reference_equity(ticks: Sequence[Snapshot], boundary: datetime) -> EquitySearchOutcome:
    if not ticks:
        return EquitySearchOutcome(boundary=boundary, diagnostic="no ticks (no data)")

    first_at_or_after = None
    for tick in ticks:
        if tick.timestamp >= boundary:
            first_at_or_after = tick
            break

    last_before = None
    for tick in ticks:
        if tick.timestamp < boundary:
            last_before = tick
        else:
            break

    # out-of-order appends can put an older tick after the first one at/after the boundary
    has_before = last_before is not None or any(t.timestamp < boundary for t in ticks)

    if first_at_or_after is not None and has_before:
        return _outcome(first_at_or_after, boundary, SearchStrategy.AT_OR_AFTER)
    if first_at_or_after is None and last_before is not None:
        return _outcome(last_before, boundary, SearchStrategy.LAST_BEFORE)
    log.debug("period_reference_fallback", boundary=boundary.isoformat(), first=ticks[0].timestamp.isoformat())
    return _outcome(ticks[0], boundary, SearchStrategy.FIRST_AVAILABLE)


def profit_percent(current_equity: float, reference_equity: float) -> float | None:
    """Percent change against the reference; None when it cannot be expressed."""
    if reference_equity == 0:
        return None
    value = (current_equity - reference_equity) / reference_equity * 100.0
    return value if math.isfinite(value) else None


def _period(current_equity: float, outcome: EquitySearchOutcome) -> tuple[float, bool, str]:
    if not outcome.has_data:
        return 0.0, False, outcome.diagnostic
    pct = profit_percent(current_equity, outcome.equity)
    if pct is None:
        return 0.0, False, f"{outcome.diagnostic} -> reference equity is zero (no data)"
    return pct, True, outcome.diagnostic


def calculate_profits(series: Series | None, now: datetime) -> ProfitResult:
    if series is None or not series.ticks:
        return ProfitResult.no_data("no tick data")
    if series.tick_count < MIN_TICKS:
        return ProfitResult.no_data(
            f"signal {series.entity_id}: {series.tick_count} tick(s), need at least {MIN_TICKS}"
        )

    current_equity = series.latest_tick.equity
    ref = period_reference(now)
    week = find_reference_equity(series.ticks, ref.week_start)
    month = find_reference_equity(series.ticks, ref.month_start)

    weekly, has_weekly, week_diag = _period(current_equity, week)
    monthly, has_monthly, month_diag = _period(current_equity, month)

    diagnostic = (
        f"signal {series.entity_id}, current equity {current_equity:.2f}, "
        f"week: {week_diag}, month: {month_diag}"
    )
    log.debug(
        "period_profit_calculated",
        signal_id=series.entity_id,
        now=now.isoformat(),
        week_start=ref.week_start.isoformat(),
        month_start=ref.month_start.isoformat(),
        weekly=weekly if has_weekly else None,
        monthly=monthly if has_monthly else None,
    )
    return ProfitResult(
        weekly_percent=weekly,
        monthly_percent=monthly,
        has_weekly_data=has_weekly,
        has_monthly_data=has_monthly,
        diagnostic=diagnostic,
    )


def calculate_profits_for_file(path: str | Path, entity_id: str, now: datetime) -> ProfitResult:
    series = load_full(path, entity_id)
    if series is None:
        return ProfitResult.no_data(f"no tick data: {path}")
    return calculate_profits(series, now)


def detailed_diagnostic(path: str | Path, entity_id: str, now: datetime) -> str:
    ref = period_reference(now)
    lines = [
        "=== period profit diagnostic ===",
        f"Signal ID: {entity_id}",
        f"Tick file: {path}",
        f"Reference time: {now:%Y-%m-%d %H:%M:%S}",
        f"Week start: {ref.week_start:%Y-%m-%d %H:%M:%S}",
        f"Month start: {ref.month_start:%Y-%m-%d %H:%M:%S}",
    ]
    series = load_full(path, entity_id)
    if series is None:
        lines.append("No tick data available")
    else:
        lines.append(f"Tick count: {series.tick_count}")
        if series.ticks:
            lines.append(f"First tick: {series.first_tick.timestamp:%Y-%m-%d %H:%M:%S}")
            lines.append(f"Last tick: {series.latest_tick.timestamp:%Y-%m-%d %H:%M:%S}")
            lines.append(f"Current equity: {series.latest_tick.equity:.2f}")
    result = calculate_profits(series, now)
    lines.append(f"Result: weekly={result.formatted_weekly}, monthly={result.formatted_monthly}")
    lines.append(f"Diagnostic: {result.diagnostic}")
    return "\n".join(lines) + "\n"
