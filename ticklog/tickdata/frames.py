from __future__ import annotations

import pandas as pd

from .models import Series

COLUMNS = ["equity", "floating_profit", "profit", "total_value"]


def series_to_frame(series: Series | None) -> pd.DataFrame:
    """Ticks as a DataFrame indexed by timestamp, in append order (not sorted)."""
    if series is None or not series.ticks:
        return pd.DataFrame(columns=COLUMNS, index=pd.DatetimeIndex([], name="timestamp"), dtype=float)
    frame = pd.DataFrame(
        {
            "equity": [t.equity for t in series.ticks],
            "floating_profit": [t.floating_profit for t in series.ticks],
            "profit": [t.profit for t in series.ticks],
        },
        index=pd.DatetimeIndex([t.timestamp for t in series.ticks], name="timestamp"),
    )
    frame["total_value"] = frame["equity"] + frame["floating_profit"]
    return frame


def _range(col: pd.Series) -> dict:
    return {"min": round(float(col.min()), 2), "max": round(float(col.max()), 2)}


def summarize_series(series: Series | None) -> dict:
    if series is None or not series.ticks:
        return {"tick_count": 0}
    frame = series_to_frame(series)
    out = {
        "signal_id": series.entity_id,
        "path": str(series.source_path),
        "created_at": series.created_at.isoformat() if series.created_at else None,
        "tick_count": series.tick_count,
        "first_timestamp": series.first_tick.timestamp.isoformat(),
        "last_timestamp": series.latest_tick.timestamp.isoformat(),
        "equity": _range(frame["equity"]),
        "floating_profit": _range(frame["floating_profit"]),
        "total_value": _range(frame["total_value"]),
    }
    # legacy four-field files carry no profit column at all
    if (frame["profit"] != 0).any():
        out["profit"] = _range(frame["profit"])
    return out


def format_summary(summary: dict) -> str:
    if not summary.get("tick_count"):
        return "No tick data available\n"
    lines = [
        "=== tick data summary ===",
        f"Signal ID: {summary['signal_id']}",
        f"File: {summary['path']}",
        f"Created: {summary['created_at'] or 'unknown'}",
        f"Ticks: {summary['tick_count']}",
        f"Span: {summary['first_timestamp']} to {summary['last_timestamp']}",
    ]
    for key, label in (("equity", "Equity"), ("floating_profit", "Floating profit"), ("profit", "Profit"), ("total_value", "Total value")):
        if key in summary:
            lines.append(f"{label}: {summary[key]['min']:.2f} - {summary[key]['max']:.2f}")
    return "\n".join(lines) + "\n"
