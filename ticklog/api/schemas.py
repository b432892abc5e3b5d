from datetime import datetime
from pydantic import BaseModel, Field
from typing import Optional, Literal

class SnapshotIn(BaseModel):
    timestamp: datetime
    equity: float
    floating_profit: float
    profit: float = 0.0

class SnapshotOut(BaseModel):
    timestamp: datetime
    equity: float
    floating_profit: float
    profit: float
    total_value: float

class AppendResponse(BaseModel):
    signal_id: str
    outcome: Literal['applied','skipped']

class ProfitResponse(BaseModel):
    signal_id: str
    as_of: datetime
    weekly_percent: Optional[float] = None
    monthly_percent: Optional[float] = None
    weekly: str
    monthly: str
    diagnostic: str

class TailResponse(BaseModel):
    signal_id: str
    created_at: Optional[datetime] = None
    tick_count: int
    ticks: list[SnapshotOut]

class CompactRequest(BaseModel):
    max_age_days: Optional[int] = Field(default=None, ge=0)

class CompactResponse(BaseModel):
    signal_id: str
    dropped: int
    kept: int
    backup_path: Optional[str] = None
