"""Pure fee arithmetic: no database, no I/O."""

from .discounts import DiscountRule, combine_discounts, compute_discount, validate_discount_value
from .emi import SplitEntry, generate_split, parse_split, validate_split
from .installments import (
    OpenInstallment,
    PlannedInstallment,
    check_payment,
    derive_status,
    outstanding,
    plan_installments,
    redistribute,
)
from .money import Money
from .structure import LineItem, StructureTotals, Waiver, batch_total, build_custom, build_from_batch, compute_totals

__all__ = [
    "DiscountRule",
    "LineItem",
    "Money",
    "OpenInstallment",
    "PlannedInstallment",
    "SplitEntry",
    "StructureTotals",
    "Waiver",
    "batch_total",
    "build_custom",
    "build_from_batch",
    "check_payment",
    "combine_discounts",
    "compute_discount",
    "compute_totals",
    "derive_status",
    "generate_split",
    "outstanding",
    "parse_split",
    "plan_installments",
    "redistribute",
    "validate_discount_value",
    "validate_split",
]
