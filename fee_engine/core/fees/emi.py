"""EMI split generation and validation. A split always sums to exactly 100 percent."""

from decimal import Decimal
from typing import List, NamedTuple, Optional, Sequence

from fee_engine.core.exceptions import ValidationError

from .money import _to_decimal

DAYS_IN_YEAR = 365
MAX_INSTALLMENTS = 36


class SplitEntry(NamedTuple):
    percent: Decimal
    due_days_from_start: int

    def as_config(self) -> dict:
        return {"percent": str(self.percent), "due_days_from_start": self.due_days_from_start}


def generate_split(installment_count: int, interval_days: Optional[int] = None) -> List[SplitEntry]:
    """
    Every entry gets floor(100 / count) percent; the last one also takes the remainder.
    Due offsets are i * interval_days, interval defaulting to floor(365 / count).
    """
    if installment_count < 1:
        raise ValidationError("Installment count must be at least 1")
    if installment_count > MAX_INSTALLMENTS:
        raise ValidationError(f"Installment count cannot exceed {MAX_INSTALLMENTS}")
    if interval_days is None:
        interval_days = DAYS_IN_YEAR // installment_count
    if interval_days < 0:
        raise ValidationError("Interval days cannot be negative")

    base = 100 // installment_count
    remainder = 100 - base * installment_count
    split = []
    for i in range(installment_count):
        percent = base + remainder if i == installment_count - 1 else base
        split.append(SplitEntry(Decimal(percent), i * interval_days))
    return split


def parse_split(config: Sequence) -> List[SplitEntry]:
    """Read a stored or submitted split_config (dicts or SplitEntry) into SplitEntry tuples."""
    out = []
    for entry in config or []:
        if isinstance(entry, SplitEntry):
            out.append(entry)
            continue
        if isinstance(entry, dict):
            percent = entry.get("percent")
            days = entry.get("due_days_from_start", entry.get("dueDaysFromStart"))
        else:
            percent = getattr(entry, "percent", None)
            days = getattr(entry, "due_days_from_start", None)
        if percent is None or days is None:
            raise ValidationError("Each split entry needs percent and due_days_from_start")
        out.append(SplitEntry(_to_decimal(percent), int(days)))
    return out


def validate_split(split: Sequence[SplitEntry], installment_count: int) -> List[SplitEntry]:
    split = parse_split(split)
    if len(split) != installment_count:
        raise ValidationError(
            f"Split has {len(split)} entries but installment count is {installment_count}"
        )
    previous_days = 0
    for entry in split:
        if entry.percent <= 0:
            raise ValidationError("Every installment percent must be greater than 0")
        if entry.due_days_from_start < 0:
            raise ValidationError("Due days from start cannot be negative")
        if entry.due_days_from_start < previous_days:
            raise ValidationError("Due days from start must be non-decreasing")
        previous_days = entry.due_days_from_start
    total = sum((e.percent for e in split), Decimal("0"))
    if total != Decimal("100"):
        raise ValidationError(f"Split percentages must sum to 100, got {total}")
    return split
