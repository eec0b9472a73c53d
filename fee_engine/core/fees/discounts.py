"""Scholarship and custom-discount arithmetic against a gross fee amount."""

from decimal import Decimal
from typing import Iterable, NamedTuple, Optional

from fee_engine.core.enums import DiscountType
from fee_engine.core.exceptions import ValidationError

from .money import AmountLike, Money, _to_decimal

HUNDRED = Decimal("100")
PERCENT_PRECISION = Decimal("0.01")


class DiscountRule(NamedTuple):
    """A scholarship or custom discount reduced to what the arithmetic needs."""

    discount_type: DiscountType
    value: Decimal
    max_amount: Optional[Decimal] = None


def validate_discount_value(discount_type, value: AmountLike, max_amount: Optional[AmountLike] = None) -> Decimal:
    """
    Reject values outside the type's domain instead of clamping them.
    percentage: 0 < value <= 100. fixed_amount: value > 0. Both are stored as Numeric(12, 2),
    so more than two decimal places is rejected rather than rounded by the column.
    """
    discount_type = DiscountType(discount_type)
    dec = _to_decimal(value)
    if dec <= 0:
        raise ValidationError("Discount value must be greater than 0")
    if discount_type == DiscountType.PERCENTAGE:
        if dec > HUNDRED:
            raise ValidationError("Percentage discount cannot exceed 100")
        if dec != dec.quantize(PERCENT_PRECISION):
            raise ValidationError(f"Percentage {dec} has more than two decimal places")
    else:
        Money.of(dec)
    if max_amount is not None:
        if discount_type != DiscountType.PERCENTAGE:
            raise ValidationError("max_amount applies only to percentage discounts")
        if Money.of(max_amount).minor <= 0:
            raise ValidationError("max_amount must be greater than 0")
    return dec


def compute_discount(gross: Money, rule: DiscountRule) -> Money:
    """
    percentage: round(gross * value / 100) clamped to [0, gross], then capped by max_amount if set.
    fixed_amount: min(value, gross).
    """
    gross = gross.floor_zero()
    discount_type = DiscountType(rule.discount_type)
    if discount_type == DiscountType.PERCENTAGE:
        amount = gross.percent(rule.value).clamp(Money.zero(), gross)
        if rule.max_amount is not None:
            amount = min(amount, Money.of(rule.max_amount))
        return amount
    return min(Money.of(rule.value), gross).floor_zero()


def combine_discounts(gross: Money, amounts: Iterable[Money]) -> Money:
    """Sum of all discounts, clamped so that the net can never go negative."""
    gross = gross.floor_zero()
    return Money.total(amounts).clamp(Money.zero(), gross)
