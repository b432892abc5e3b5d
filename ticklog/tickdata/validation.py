from typing import Tuple, List

from ..utils import is_finite_number
from .models import Snapshot

NUMERIC_FIELDS = [
    "equity",
    "floating_profit",
    "profit",
]

def validate_snapshot(snap: Snapshot | None) -> Tuple[bool, List[str]]:
    reasons = []
    if snap is None:
        return False, ["missing snapshot"]
    if snap.timestamp is None:
        reasons.append("missing timestamp")
    elif snap.timestamp.year < 1000 or snap.timestamp.year > 9999:
        reasons.append(f"timestamp {snap.timestamp!r} outside dd.MM.yyyy range")
    for field in NUMERIC_FIELDS:
        val = getattr(snap, field, None)
        if not is_finite_number(val):
            reasons.append(f"{field} is not finite: {val!r}")
    return (len(reasons) == 0), reasons
