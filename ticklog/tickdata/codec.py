"""Tick line codec.

Canonical line: ``dd.MM.yyyy,HH:mm:ss,equity,floating_profit,profit`` with two
decimals. Older writers produced several other shapes; decoding dispatches on
the comma-separated field count:

  4   date,time,equity,floating                      profit = 0
  5   date,time,equity,floating,profit               canonical
  6   date,time,eq_int,eq_frac,fl_int,fl_frac        profit = 0 (decimal comma leaked)
  7   ... as 6, profit = field 6 as-is
  8+  ... as 6, profit = field 6 "." field 7
"""
from __future__ import annotations

import math
from datetime import datetime
from typing import Callable

from ..utils import parse_number
from .models import Snapshot

FILE_TIMESTAMP_FORMAT = "%d.%m.%Y %H:%M:%S"
FILE_DATE_FORMAT = "%d.%m.%Y"
FILE_TIME_FORMAT = "%H:%M:%S"
CANONICAL_FIELD_COUNT = 5


class MalformedRecordError(ValueError):
    """A single tick line could not be decoded."""


def _joined(whole: str, frac: str) -> float:
    return parse_number(f"{whole.strip()}.{frac.strip()}")


def _plain(parts: list[str]) -> tuple[float, float, float]:
    return parse_number(parts[2]), parse_number(parts[3]), 0.0


def _canonical(parts: list[str]) -> tuple[float, float, float]:
    return parse_number(parts[2]), parse_number(parts[3]), parse_number(parts[4])


def _split_decimals(parts: list[str]) -> tuple[float, float, float]:
    return _joined(parts[2], parts[3]), _joined(parts[4], parts[5]), 0.0


def _split_decimals_whole_profit(parts: list[str]) -> tuple[float, float, float]:
    equity, floating, _ = _split_decimals(parts)
    return equity, floating, parse_number(parts[6])


def _split_decimals_split_profit(parts: list[str]) -> tuple[float, float, float]:
    equity, floating, _ = _split_decimals(parts)
    return equity, floating, _joined(parts[6], parts[7])


# field count -> rule; counts above the largest key use the largest key's rule
DECODE_RULES: dict[int, Callable[[list[str]], tuple[float, float, float]]] = {
    4: _plain,
    5: _canonical,
    6: _split_decimals,
    7: _split_decimals_whole_profit,
    8: _split_decimals_split_profit,
}
_MAX_RULE = max(DECODE_RULES)


def _rule_for(field_count: int):
    if field_count > _MAX_RULE:
        return DECODE_RULES[_MAX_RULE]
    return DECODE_RULES.get(field_count)


def parse_timestamp(date_text: str, time_text: str) -> datetime:
    return datetime.strptime(f"{date_text.strip()} {time_text.strip()}", FILE_TIMESTAMP_FORMAT)


def decode_record(line: str) -> Snapshot:
    """Decode one trimmed, non-comment tick line.

    Raises MalformedRecordError for unknown shapes, bad timestamps and
    empty or non-numeric values.
    """
    parts = line.split(",")
    rule = _rule_for(len(parts))
    if rule is None:
        raise MalformedRecordError(
            f"expected 4, 5, 6 or 7+ fields, found {len(parts)}: {line!r}"
        )
    try:
        timestamp = parse_timestamp(parts[0], parts[1])
        equity, floating, profit = rule(parts)
    except ValueError as exc:
        raise MalformedRecordError(f"{exc}: {line!r}") from exc
    if not all(math.isfinite(v) for v in (equity, floating, profit)):
        raise MalformedRecordError(f"non-finite value: {line!r}")
    return Snapshot(timestamp=timestamp, equity=equity, floating_profit=floating, profit=profit)


def encode_record(snap: Snapshot) -> str:
    return (
        f"{snap.timestamp.strftime(FILE_DATE_FORMAT)},{snap.timestamp.strftime(FILE_TIME_FORMAT)},"
        f"{snap.equity:.2f},{snap.floating_profit:.2f},{snap.profit:.2f}"
    )


def is_canonical(line: str) -> bool:
    return len(line.split(",")) == CANONICAL_FIELD_COUNT


def is_data_line(line: str) -> bool:
    """Trimmed line that is neither blank nor a ``#`` comment."""
    return bool(line) and not line.startswith("#")
