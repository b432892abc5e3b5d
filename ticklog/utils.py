import math
import re
from datetime import datetime
from pathlib import Path
from dateutil import tz

from .config import settings

_WHITESPACE = re.compile(r"\s+")
_SIGNAL_ID = re.compile(r"^[A-Za-z0-9_.-]+$")

def parse_number(text: str | None) -> float:
    """Lenient float parse: whitespace removed, decimal comma accepted."""
    if text is None:
        raise ValueError("empty number")
    cleaned = _WHITESPACE.sub("", text).replace(",", ".")
    if not cleaned:
        raise ValueError("empty number")
    if "_" in cleaned:
        raise ValueError(f"digit grouping not allowed: {text!r}")
    return float(cleaned)

def is_finite_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)

def format_percent(value: float | None) -> str:
    if value is None:
        return "N/A"
    sign = "+" if value >= 0 else ""
    return f"{sign}{value:.2f}%"

def now_local(local_tz: str | None = None) -> datetime:
    """Wall-clock time in the configured zone, naive like the tick timestamps."""
    tzinfo = tz.gettz(local_tz or settings.local_tz)
    return datetime.now(tzinfo).replace(tzinfo=None, microsecond=0)

def validate_signal_id(signal_id: str) -> str:
    signal_id = (signal_id or "").strip()
    if not signal_id or not _SIGNAL_ID.match(signal_id) or signal_id in (".", ".."):
        raise ValueError(f"invalid signal id {signal_id!r}")
    return signal_id

def tick_file_path(signal_id: str, tick_dir: str | Path | None = None, suffix: str | None = None) -> Path:
    signal_id = validate_signal_id(signal_id)
    base = Path(tick_dir if tick_dir is not None else settings.tick_dir)
    return base / f"{signal_id}{suffix if suffix is not None else settings.tick_file_suffix}"

def signal_id_from_path(path: str | Path, suffix: str | None = None) -> str:
    name = Path(path).name
    suffix = suffix if suffix is not None else settings.tick_file_suffix
    if suffix and name.endswith(suffix):
        return name[: -len(suffix)]
    return Path(name).stem

def to_local_naive(dt: datetime, local_tz: str | None = None) -> datetime:
    """Aware datetimes are converted to the configured zone; naive ones are taken as local."""
    if dt.tzinfo is not None:
        dt = dt.astimezone(tz.gettz(local_tz or settings.local_tz))
    return dt.replace(tzinfo=None, microsecond=0)
