"""Helpers shared by the fee services: conversions, tenant-scoped lookups, audit rows, installment refresh."""

from decimal import Decimal
from typing import Optional, Sequence, Type, TypeVar
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fee_engine.core.exceptions import NotFoundError
from fee_engine.core.fees import Money, derive_status, outstanding
from fee_engine.core.models import FeeAuditLog, FeeInstallment, StudentFeeStructure
from fee_engine.core.time_utils import today as utc_today

T = TypeVar("T")


def to_uuid(val):
    if val is None:
        return None
    return val if isinstance(val, UUID) else UUID(str(val))


def to_decimal(val) -> Decimal:
    if val is None:
        return Decimal("0")
    if isinstance(val, Money):
        return val.to_decimal()
    return val if isinstance(val, Decimal) else Decimal(str(val))


def money(val) -> Money:
    """Column value (Decimal, or float from SQLite) to Money."""
    if val is None:
        return Money.zero()
    if isinstance(val, float):
        val = Decimal(str(round(val, 2)))
    return Money.of(to_decimal(val).quantize(Decimal("0.01")))


async def get_owned(
    db: AsyncSession,
    model: Type[T],
    tenant_id: UUID,
    entity_id: UUID,
    label: str,
    for_update: bool = False,
) -> T:
    """Load a row of `model` by id inside the tenant, else NotFoundError. Cross-tenant rows look missing."""
    stmt = select(model).where(model.id == entity_id, model.tenant_id == tenant_id)
    if for_update:
        stmt = stmt.with_for_update()
    obj = (await db.execute(stmt)).scalar_one_or_none()
    if obj is None:
        raise NotFoundError(f"{label} not found")
    return obj


async def log_fee_audit(
    db: AsyncSession,
    tenant_id: UUID,
    reference_table: str,
    reference_id: UUID,
    action_type: str,
    old_value: Optional[dict],
    new_value: Optional[dict],
    changed_by: Optional[UUID],
) -> None:
    log = FeeAuditLog(
        tenant_id=tenant_id,
        reference_table=reference_table,
        reference_id=reference_id,
        action_type=action_type,
        old_value=old_value,
        new_value=new_value,
        changed_by=changed_by,
    )
    db.add(log)


def refresh_status(inst: FeeInstallment, today=None) -> bool:
    """Recompute the cached status of one installment. Returns True when it changed."""
    status = derive_status(
        money(inst.amount),
        money(inst.paid_amount),
        inst.due_date,
        today or utc_today(),
    ).value
    if inst.status != status:
        inst.status = status
        return True
    return False


async def load_installments(
    db: AsyncSession,
    structure_id: UUID,
    for_update: bool = False,
) -> Sequence[FeeInstallment]:
    stmt = (
        select(FeeInstallment)
        .where(FeeInstallment.student_fee_structure_id == structure_id)
        .order_by(FeeInstallment.installment_number)
    )
    if for_update:
        stmt = stmt.with_for_update()
    return (await db.execute(stmt)).scalars().all()


async def recompute_pending(db: AsyncSession, structure: StudentFeeStructure) -> Money:
    """pending = sum(amount - paid) over the structure's installments; net when none were generated."""
    installments = await load_installments(db, structure.id)
    if installments:
        pending = Money.total(outstanding(money(i.amount), money(i.paid_amount)) for i in installments)
    else:
        pending = money(structure.net_amount)
    structure.pending_amount = pending.to_decimal()
    return pending


async def count_rows(db: AsyncSession, stmt) -> int:
    return (await db.execute(select(func.count()).select_from(stmt.order_by(None).subquery()))).scalar() or 0
