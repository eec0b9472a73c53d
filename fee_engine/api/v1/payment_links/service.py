"""Payment link service: create, list, cancel, public lookup. Expiry is derived from expires_at."""

import logging
from datetime import timedelta
from typing import Dict, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fee_engine.core.codes import generate_short_code
from fee_engine.core.config import settings
from fee_engine.core.enums import PaymentLinkStatus
from fee_engine.core.exceptions import NotFoundError, StateError
from fee_engine.core.fees import Money, outstanding
from fee_engine.core.models import FeeInstallment, PaymentLink, Student, StudentFeeStructure
from fee_engine.core.schemas import PaginatedResponse, build_meta
from fee_engine.core.services import count_rows, get_owned, log_fee_audit, money, to_uuid
from fee_engine.core.time_utils import as_utc, utcnow

from .schemas import PaymentLinkCreate, PaymentLinkResponse, PublicPaymentLinkResponse

logger = logging.getLogger(__name__)

SHORT_CODE_ATTEMPTS = 5


def _to_response(link: PaymentLink, student_id: Optional[UUID] = None) -> PaymentLinkResponse:
    return PaymentLinkResponse(
        id=to_uuid(link.id),
        installment_id=to_uuid(link.installment_id),
        student_id=to_uuid(student_id),
        short_code=link.short_code,
        amount=money(link.amount).to_decimal(),
        description=link.description,
        status=link.status,
        payment_url=link.payment_url,
        expires_at=link.expires_at,
        paid_at=link.paid_at,
        cancelled_at=link.cancelled_at,
        created_at=link.created_at,
    )


def refresh_expiry(link: PaymentLink, now=None) -> bool:
    """An active link past expires_at is expired. Returns True when the status changed."""
    now = now or utcnow()
    if link.status == PaymentLinkStatus.active.value and now > as_utc(link.expires_at):
        link.status = PaymentLinkStatus.expired.value
        return True
    return False


async def _student_id_for(db: AsyncSession, installment_id: UUID) -> Optional[UUID]:
    return (
        await db.execute(
            select(StudentFeeStructure.student_id)
            .join(FeeInstallment, FeeInstallment.student_fee_structure_id == StudentFeeStructure.id)
            .where(FeeInstallment.id == installment_id)
        )
    ).scalar_one_or_none()


async def _unused_short_code(db: AsyncSession) -> str:
    for _ in range(SHORT_CODE_ATTEMPTS):
        code = generate_short_code()
        taken = (
            await db.execute(select(PaymentLink.id).where(PaymentLink.short_code == code))
        ).scalar_one_or_none()
        if not taken:
            return code
    raise StateError("Could not allocate a payment link code; try again")


async def create_payment_link(
    db: AsyncSession,
    tenant_id: UUID,
    payload: PaymentLinkCreate,
    created_by: Optional[UUID] = None,
) -> PaymentLinkResponse:
    """The link's amount is the installment's outstanding balance at creation time."""
    inst = await get_owned(db, FeeInstallment, tenant_id, payload.installment_id, "Installment")
    balance = outstanding(money(inst.amount), money(inst.paid_amount))
    if balance.is_zero():
        raise StateError("Installment is already fully paid")

    days = payload.expires_in_days or settings.payment_link_expiry_days
    code = await _unused_short_code(db)
    base_url = settings.public_app_url.rstrip("/")
    try:
        link = PaymentLink(
            tenant_id=tenant_id,
            installment_id=inst.id,
            short_code=code,
            amount=balance.to_decimal(),
            description=(payload.description or "").strip()
            or f"Installment {inst.installment_number} due {inst.due_date.isoformat()}",
            status=PaymentLinkStatus.active.value,
            payment_url=f"{base_url}/pay/{code}",
            expires_at=utcnow() + timedelta(days=days),
            created_by=created_by,
        )
        db.add(link)
        await db.commit()
        await db.refresh(link)
    except IntegrityError:
        await db.rollback()
        raise StateError("Could not allocate a payment link code; try again")
    logger.info(f"Payment link {link.short_code} created for installment {inst.id} ({balance})")
    return _to_response(link, await _student_id_for(db, inst.id))


async def list_payment_links(
    db: AsyncSession,
    tenant_id: UUID,
    status: Optional[PaymentLinkStatus] = None,
    student_id: Optional[UUID] = None,
    page: int = 1,
    limit: int = 20,
) -> PaginatedResponse[PaymentLinkResponse]:
    now = utcnow()
    # Persist expiry for this tenant's stale links before filtering on status
    await db.execute(
        update(PaymentLink)
        .where(
            PaymentLink.tenant_id == tenant_id,
            PaymentLink.status == PaymentLinkStatus.active.value,
            PaymentLink.expires_at < now,
        )
        .values(status=PaymentLinkStatus.expired.value),
        execution_options={"synchronize_session": "fetch"},
    )
    await db.commit()

    stmt = (
        select(PaymentLink, StudentFeeStructure.student_id)
        .join(FeeInstallment, FeeInstallment.id == PaymentLink.installment_id)
        .join(StudentFeeStructure, StudentFeeStructure.id == FeeInstallment.student_fee_structure_id)
        .where(PaymentLink.tenant_id == tenant_id)
    )
    if status is not None:
        stmt = stmt.where(PaymentLink.status == PaymentLinkStatus(status).value)
    if student_id is not None:
        stmt = stmt.where(StudentFeeStructure.student_id == student_id)
    total = await count_rows(db, stmt)
    stmt = stmt.order_by(PaymentLink.created_at.desc()).offset((page - 1) * limit).limit(limit)
    rows = (await db.execute(stmt)).all()
    return PaginatedResponse[PaymentLinkResponse](
        data=[_to_response(link, sid) for link, sid in rows],
        meta=build_meta(page, limit, total),
    )


async def get_payment_link(db: AsyncSession, tenant_id: UUID, link_id: UUID) -> PaymentLinkResponse:
    link = await get_owned(db, PaymentLink, tenant_id, link_id, "Payment link")
    if refresh_expiry(link):
        await db.commit()
    return _to_response(link, await _student_id_for(db, link.installment_id))


async def cancel_payment_link(
    db: AsyncSession,
    tenant_id: UUID,
    link_id: UUID,
    changed_by: Optional[UUID] = None,
) -> PaymentLinkResponse:
    link = await get_owned(db, PaymentLink, tenant_id, link_id, "Payment link", for_update=True)
    if link.status == PaymentLinkStatus.paid.value:
        raise StateError("A paid payment link cannot be cancelled")
    if link.status == PaymentLinkStatus.cancelled.value:
        raise StateError("Payment link is already cancelled")
    old_status = link.status
    link.status = PaymentLinkStatus.cancelled.value
    link.cancelled_at = utcnow()
    await log_fee_audit(
        db, tenant_id, "payment_links", link.id,
        "CANCEL", {"status": old_status}, {"status": link.status}, changed_by,
    )
    await db.commit()
    logger.info(f"Payment link {link.short_code} cancelled")
    return _to_response(link, await _student_id_for(db, link.installment_id))


async def cancel_mismatched_links(
    db: AsyncSession,
    tenant_id: UUID,
    balances: Dict[UUID, Money],
    changed_by: Optional[UUID] = None,
) -> int:
    """
    Cancel active links whose amount no longer equals their installment's outstanding balance.

    balances maps installment id to its new balance. Runs inside the caller's transaction.
    """
    if not balances:
        return 0
    links = (
        await db.execute(
            select(PaymentLink)
            .where(
                PaymentLink.tenant_id == tenant_id,
                PaymentLink.installment_id.in_(list(balances)),
                PaymentLink.status == PaymentLinkStatus.active.value,
            )
            .with_for_update()
        )
    ).scalars().all()
    now = utcnow()
    cancelled = 0
    for link in links:
        if refresh_expiry(link, now) or money(link.amount) == balances[link.installment_id]:
            continue
        link.status = PaymentLinkStatus.cancelled.value
        link.cancelled_at = now
        await log_fee_audit(
            db, tenant_id, "payment_links", link.id,
            "CANCEL",
            {"status": PaymentLinkStatus.active.value, "amount": str(money(link.amount))},
            {"status": link.status, "installment_balance": str(balances[link.installment_id])},
            changed_by,
        )
        cancelled += 1
        logger.info(
            f"Payment link {link.short_code} cancelled: installment {link.installment_id} "
            f"balance is now {balances[link.installment_id]}"
        )
    return cancelled


async def mark_links_paid(db: AsyncSession, installment_id: UUID) -> int:
    """Settle the installment's active links. Runs inside the payment transaction."""
    result = await db.execute(
        update(PaymentLink)
        .where(
            PaymentLink.installment_id == installment_id,
            PaymentLink.status == PaymentLinkStatus.active.value,
        )
        .values(status=PaymentLinkStatus.paid.value, paid_at=utcnow()),
        execution_options={"synchronize_session": "fetch"},
    )
    return result.rowcount or 0


async def get_public_payment_link(db: AsyncSession, short_code: str) -> PublicPaymentLinkResponse:
    """Unauthenticated lookup by code; the code itself is the capability."""
    row = (
        await db.execute(
            select(PaymentLink, FeeInstallment, Student)
            .join(FeeInstallment, FeeInstallment.id == PaymentLink.installment_id)
            .join(StudentFeeStructure, StudentFeeStructure.id == FeeInstallment.student_fee_structure_id)
            .join(Student, Student.id == StudentFeeStructure.student_id)
            .where(PaymentLink.short_code == short_code.strip().upper())
        )
    ).first()
    if row is None:
        raise NotFoundError("Payment link not found")
    link, inst, student = row
    if refresh_expiry(link):
        await db.commit()
    return PublicPaymentLinkResponse(
        short_code=link.short_code,
        amount=money(link.amount).to_decimal(),
        currency=settings.currency_code,
        description=link.description,
        status=link.status,
        expires_at=link.expires_at,
        student_name=student.full_name,
        installment_number=inst.installment_number,
        due_date=inst.due_date,
    )
