"""Value objects shared by the tick codec, loader, writer and profit engine."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from ..utils import format_percent


class Snapshot(BaseModel):
    """One observed account state for a signal."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    equity: float
    floating_profit: float
    profit: float = 0.0

    @property
    def total_value(self) -> float:
        return self.equity + self.floating_profit

    def values_changed(self, other: Snapshot | None) -> bool:
        # exact comparison, no tolerance band
        if other is None:
            return True
        return (
            self.equity != other.equity
            or self.floating_profit != other.floating_profit
            or self.profit != other.profit
        )

    def summary(self) -> str:
        return (
            f"{self.timestamp:%Y-%m-%d %H:%M:%S} equity={self.equity:.2f} "
            f"floating={self.floating_profit:+.2f} profit={self.profit:.2f} total={self.total_value:.2f}"
        )


class Series(BaseModel):
    """Ticks of one signal in on-disk (append) order."""

    entity_id: str
    source_path: Path
    created_at: datetime | None = None
    ticks: list[Snapshot] = Field(default_factory=list)

    @property
    def tick_count(self) -> int:
        return len(self.ticks)

    @property
    def first_tick(self) -> Snapshot | None:
        return self.ticks[0] if self.ticks else None

    @property
    def latest_tick(self) -> Snapshot | None:
        return self.ticks[-1] if self.ticks else None

    def derive(self, ticks: list[Snapshot]) -> Series:
        """Same signal, path and header, different tick selection."""
        return Series(
            entity_id=self.entity_id,
            source_path=self.source_path,
            created_at=self.created_at,
            ticks=list(ticks),
        )


class PeriodReference(BaseModel):
    model_config = ConfigDict(frozen=True)

    now: datetime
    week_start: datetime
    month_start: datetime


class SearchStrategy(str, Enum):
    AT_OR_AFTER = "at-or-after boundary"
    LAST_BEFORE = "last-before boundary"
    FIRST_AVAILABLE = "fallback: first available"

    @property
    def number(self) -> int:
        return list(SearchStrategy).index(self) + 1


class EquitySearchOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    boundary: datetime
    equity: float | None = None
    timestamp: datetime | None = None
    strategy: SearchStrategy | None = None
    diagnostic: str = ""

    @property
    def has_data(self) -> bool:
        return self.equity is not None


class ProfitResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    weekly_percent: float = 0.0
    monthly_percent: float = 0.0
    has_weekly_data: bool = False
    has_monthly_data: bool = False
    diagnostic: str = ""

    @classmethod
    def no_data(cls, reason: str) -> ProfitResult:
        return cls(diagnostic=reason)

    @property
    def formatted_weekly(self) -> str:
        return format_percent(self.weekly_percent if self.has_weekly_data else None)

    @property
    def formatted_monthly(self) -> str:
        return format_percent(self.monthly_percent if self.has_monthly_data else None)


class AppendOutcome(str, Enum):
    APPLIED = "applied"
    SKIPPED = "skipped"
    INVALID = "invalid"
    FAILED = "failed"

    @property
    def ok(self) -> bool:
        return self in (AppendOutcome.APPLIED, AppendOutcome.SKIPPED)


class CompactionResult(BaseModel):
    entity_id: str
    dropped: int = 0
    kept: int = 0
    backup_path: Path | None = None
    ok: bool = True
    error: str | None = None


class RepairResult(BaseModel):
    entity_id: str
    repaired: int = 0
    backup_path: Path | None = None
    ok: bool = True
    error: str | None = None


class TickFileStatistics(BaseModel):
    entity_id: str
    file_path: Path
    file_exists: bool = False
    file_size: int = 0
    last_modified: datetime | None = None
    entry_count: int = 0
    first_entry: Snapshot | None = None
    last_entry: Snapshot | None = None
    error: str | None = None

    def __str__(self) -> str:
        if not self.file_exists:
            return f"no tick file for signal {self.entity_id}"
        modified = f"{self.last_modified:%Y-%m-%d %H:%M:%S}" if self.last_modified else "unknown"
        return f"signal {self.entity_id}: {self.entry_count} entries, {self.file_size} bytes, modified {modified}"
