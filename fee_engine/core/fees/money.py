"""
Fixed-point money in integer minor units (paise).

Amounts enter and leave the engine as Decimal rupees (Numeric(12, 2) columns, pydantic Decimal
fields) and are converted here so that every sum, percentage and reconciliation is exact.
"""

from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal, InvalidOperation
from functools import total_ordering
from typing import Iterable, Union

from fee_engine.core.exceptions import ValidationError

MINOR_UNITS = 100
_CENT = Decimal("0.01")

AmountLike = Union["Money", Decimal, int, str]


def _to_decimal(val) -> Decimal:
    if val is None:
        return Decimal("0")
    if isinstance(val, Decimal):
        return val
    if isinstance(val, float):
        raise TypeError("Money does not accept floats; pass Decimal or str")
    try:
        return Decimal(str(val))
    except InvalidOperation:
        raise ValidationError(f"Invalid amount: {val!r}")


@total_ordering
class Money:
    __slots__ = ("minor",)

    def __init__(self, minor: int = 0) -> None:
        if not isinstance(minor, int):
            raise TypeError("Money is built from integer minor units; use Money.of() for rupee amounts")
        object.__setattr__(self, "minor", minor)

    def __setattr__(self, name, value):
        raise AttributeError("Money is immutable")

    @classmethod
    def of(cls, amount: AmountLike) -> "Money":
        """Build from a rupee amount. More than two decimal places is a ValidationError, never rounded."""
        if isinstance(amount, Money):
            return amount
        dec = _to_decimal(amount)
        if not dec.is_finite():
            raise ValidationError(f"Invalid amount: {amount!r}")
        if dec != dec.quantize(_CENT):
            raise ValidationError(f"Amount {dec} has more than two decimal places")
        return cls(int(dec * MINOR_UNITS))

    @classmethod
    def zero(cls) -> "Money":
        return cls(0)

    @classmethod
    def total(cls, amounts: Iterable["Money"]) -> "Money":
        return cls(sum(m.minor for m in amounts))

    def to_decimal(self) -> Decimal:
        return (Decimal(self.minor) / MINOR_UNITS).quantize(_CENT)

    def percent(self, percent: AmountLike, rounding: str = ROUND_HALF_UP) -> "Money":
        """self * percent / 100, rounded to a whole minor unit."""
        share = Decimal(self.minor) * _to_decimal(percent) / Decimal(100)
        return Money(int(share.quantize(Decimal(1), rounding=rounding)))

    def share(self, weight: int, total_weight: int) -> "Money":
        """Floor of self * weight / total_weight. Used for proportional spreads reconciled into a last element."""
        if total_weight <= 0:
            raise ValueError("total_weight must be positive")
        return Money(int((Decimal(self.minor) * weight / total_weight).quantize(Decimal(1), rounding=ROUND_DOWN)))

    def clamp(self, low: "Money", high: "Money") -> "Money":
        return max(low, min(self, high))

    def floor_zero(self) -> "Money":
        return self if self.minor > 0 else Money(0)

    def is_zero(self) -> bool:
        return self.minor == 0

    def is_positive(self) -> bool:
        return self.minor > 0

    def __add__(self, other: "Money") -> "Money":
        return Money(self.minor + _coerce(other).minor)

    def __sub__(self, other: "Money") -> "Money":
        return Money(self.minor - _coerce(other).minor)

    def __neg__(self) -> "Money":
        return Money(-self.minor)

    def __eq__(self, other) -> bool:
        if isinstance(other, Money):
            return self.minor == other.minor
        return NotImplemented

    def __lt__(self, other: "Money") -> bool:
        return self.minor < _coerce(other).minor

    def __hash__(self) -> int:
        return hash(self.minor)

    def __bool__(self) -> bool:
        return self.minor != 0

    def __repr__(self) -> str:
        return f"Money({self.to_decimal()})"

    def __str__(self) -> str:
        return str(self.to_decimal())


def _coerce(val) -> Money:
    if isinstance(val, Money):
        return val
    raise TypeError(f"Expected Money, got {type(val).__name__}")
