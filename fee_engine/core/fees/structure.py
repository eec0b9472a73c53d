"""Fee structure assembly: line items, waivers and gross/net totals."""

from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence
from uuid import UUID

from fee_engine.core.exceptions import ValidationError

from .discounts import combine_discounts
from .money import AmountLike, Money


class LineItem(NamedTuple):
    fee_component_id: UUID
    original_amount: Money
    adjusted_amount: Money
    waived: bool = False
    waiver_reason: Optional[str] = None


class Waiver(NamedTuple):
    fee_component_id: UUID
    reason: str


class StructureTotals(NamedTuple):
    gross_amount: Money
    waived_amount: Money
    scholarship_amount: Money
    custom_discount_amount: Money
    net_amount: Money


def _line_item(fee_component_id: UUID, amount: Money, waived: bool, reason: Optional[str]) -> LineItem:
    if waived:
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("A waived line item requires a waiver reason")
        return LineItem(fee_component_id, amount, Money.zero(), True, reason)
    return LineItem(fee_component_id, amount, amount, False, None)


def _reject_duplicates(component_ids: Iterable[UUID]) -> None:
    seen = set()
    for cid in component_ids:
        if cid in seen:
            raise ValidationError("A fee component can appear only once in a structure")
        seen.add(cid)


def build_from_batch(
    batch_items: Sequence[tuple],
    waivers: Optional[Sequence[Waiver]] = None,
) -> List[LineItem]:
    """
    batch_items: (fee_component_id, amount) pairs from a batch template.
    Each amount becomes original_amount; a waiver for the component zeroes adjusted_amount.
    """
    waiver_map: Dict[UUID, str] = {}
    for w in waivers or []:
        waiver_map[w.fee_component_id] = w.reason
    known = {cid for cid, _ in batch_items}
    if any(cid not in known for cid in waiver_map):
        raise ValidationError("Waiver refers to a fee component that is not in the batch structure")

    items = []
    for cid, amount in batch_items:
        waived = cid in waiver_map
        items.append(_line_item(cid, Money.of(amount), waived, waiver_map.get(cid)))
    return items


def build_custom(raw_items: Sequence[tuple]) -> List[LineItem]:
    """
    raw_items: (fee_component_id, amount, waived, waiver_reason) tuples.
    Needs at least one item; every amount must be greater than 0.
    """
    if not raw_items:
        raise ValidationError("A fee structure needs at least one line item")
    _reject_duplicates(item[0] for item in raw_items)
    items = []
    for cid, amount, waived, reason in raw_items:
        money = Money.of(amount)
        if money.minor <= 0:
            raise ValidationError("Line item amounts must be greater than 0")
        items.append(_line_item(cid, money, bool(waived), reason))
    return items


def batch_total(amounts: Iterable[AmountLike]) -> Money:
    amounts = [Money.of(a) for a in amounts]
    for amount in amounts:
        if amount.minor <= 0:
            raise ValidationError("Line item amounts must be greater than 0")
    return Money.total(amounts)


def compute_totals(
    items: Sequence[LineItem],
    scholarship_amount: Money = Money.zero(),
    custom_discount_amount: Money = Money.zero(),
) -> StructureTotals:
    """
    gross = sum(original); waived items stay in gross for audit visibility but are excluded from net.
    net = max(0, gross - waived - clamp(scholarship + custom, gross)).
    """
    gross = Money.total(i.original_amount for i in items)
    waived = Money.total(i.original_amount for i in items if i.waived)
    discounts = combine_discounts(gross, [scholarship_amount, custom_discount_amount])
    # Effective amounts: scholarship first, custom discount takes what is left under gross
    scholarship = scholarship_amount.clamp(Money.zero(), gross)
    custom = discounts - scholarship
    net = (gross - waived - discounts).floor_zero()
    return StructureTotals(
        gross_amount=gross,
        waived_amount=waived,
        scholarship_amount=scholarship,
        custom_discount_amount=custom,
        net_amount=net,
    )
