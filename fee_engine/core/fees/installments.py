"""Installment planning, status derivation, redistribution and payment checks."""

from datetime import date, timedelta
from typing import List, NamedTuple, Sequence

from fee_engine.core.enums import InstallmentStatus
from fee_engine.core.exceptions import ConflictError, ValidationError

from .emi import SplitEntry, parse_split
from .money import Money


class PlannedInstallment(NamedTuple):
    installment_number: int
    amount: Money
    due_date: date


class OpenInstallment(NamedTuple):
    """An installment that is not yet fully paid, as seen by redistribute()."""

    key: object
    amount: Money
    paid_amount: Money


def plan_installments(net_amount: Money, start_date: date, split: Sequence[SplitEntry]) -> List[PlannedInstallment]:
    """
    amount[i] = round(net * percent[i] / 100) for all but the last;
    the last takes net - sum(others) so the schedule always sums to net exactly.
    """
    split = parse_split(split)
    if not split:
        raise ValidationError("Split must contain at least one installment")
    if net_amount.minor < 0:
        raise ValidationError("Net amount cannot be negative")

    planned = []
    allocated = Money.zero()
    last = len(split) - 1
    for i, entry in enumerate(split):
        if i == last:
            amount = net_amount - allocated
        else:
            amount = net_amount.percent(entry.percent)
            allocated = allocated + amount
        planned.append(
            PlannedInstallment(
                installment_number=i + 1,
                amount=amount,
                due_date=start_date + timedelta(days=entry.due_days_from_start),
            )
        )
    if planned[-1].amount.minor < 0:
        raise ValidationError("Split percentages allocate more than the net amount")
    return planned


def derive_status(amount: Money, paid_amount: Money, due_date: date, today: date) -> InstallmentStatus:
    """
    paid >= amount            -> paid
    paid == 0, before due     -> upcoming
    paid == 0, on/after due   -> overdue
    0 < paid < amount, before -> partial
    0 < paid < amount, after  -> overdue
    """
    if paid_amount >= amount:
        return InstallmentStatus.paid
    past_due = today >= due_date
    if paid_amount.is_zero():
        return InstallmentStatus.overdue if past_due else InstallmentStatus.upcoming
    return InstallmentStatus.overdue if past_due else InstallmentStatus.partial


def outstanding(amount: Money, paid_amount: Money) -> Money:
    return (amount - paid_amount).floor_zero()


def redistribute(remaining: Money, open_installments: Sequence[OpenInstallment]) -> List[Money]:
    """
    Spread `remaining` (net minus the amounts of fully paid installments) over the open installments.

    Each keeps at least what has been paid on it; the surplus is shared in proportion to the current
    outstanding balances, floored, with the last installment taking the rounding remainder.
    Returns new amounts in the order given.
    """
    if not open_installments:
        if not remaining.is_zero():
            raise ConflictError(
                "All installments are settled; the revised net amount cannot be scheduled"
            )
        return []

    collected = Money.total(i.paid_amount for i in open_installments)
    if remaining < collected:
        raise ConflictError(
            f"Revised net amount leaves {remaining} for open installments, "
            f"less than the {collected} already collected on them"
        )

    surplus = remaining - collected
    weights = [outstanding(i.amount, i.paid_amount).minor for i in open_installments]
    total_weight = sum(weights)
    if total_weight <= 0:
        weights = [1] * len(open_installments)
        total_weight = len(open_installments)

    new_amounts = []
    shared = Money.zero()
    last = len(open_installments) - 1
    for idx, inst in enumerate(open_installments):
        if idx == last:
            extra = surplus - shared
        else:
            extra = surplus.share(weights[idx], total_weight)
            shared = shared + extra
        new_amounts.append(inst.paid_amount + extra)
    return new_amounts


def check_payment(amount: Money, installment_amount: Money, paid_amount: Money) -> None:
    """Reject non-positive amounts, payments on settled installments and overpayments."""
    if amount.minor <= 0:
        raise ValidationError("Payment amount must be greater than 0")
    balance = outstanding(installment_amount, paid_amount)
    if balance.is_zero():
        raise ConflictError("Installment is already fully paid")
    if amount > balance:
        raise ValidationError(
            f"Payment of {amount} exceeds the outstanding balance of {balance}"
        )
