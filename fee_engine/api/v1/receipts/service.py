"""
Receipt service.

A receipt is written in the same transaction as its payment and never changes afterwards;
the snapshot keeps the figures that were true at payment time so reprints match the original.
PDF rendering is delegated to an external service over HTTP.
"""

import logging
from typing import Optional, Tuple
from uuid import UUID

import httpx
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fee_engine.core.codes import format_receipt_number
from fee_engine.core.config import settings
from fee_engine.core.exceptions import UnavailableError
from fee_engine.core.fees import outstanding
from fee_engine.core.models import (
    AcademicSession,
    FeeInstallment,
    InstallmentPayment,
    Receipt,
    Student,
    StudentFeeStructure,
)
from fee_engine.core.schemas import PaginatedResponse, build_meta
from fee_engine.core.services import count_rows, get_owned, money, to_uuid
from fee_engine.core.time_utils import utcnow

from .schemas import ReceiptResponse

logger = logging.getLogger(__name__)


def to_response(r: Receipt) -> ReceiptResponse:
    return ReceiptResponse(
        id=to_uuid(r.id),
        receipt_number=r.receipt_number,
        payment_id=to_uuid(r.payment_id),
        student_id=to_uuid(r.student_id),
        session_id=to_uuid(r.session_id),
        amount=money(r.amount).to_decimal(),
        payment_mode=r.payment_mode,
        generated_at=r.generated_at,
        snapshot=r.snapshot or {},
    )


async def _next_receipt_number(db: AsyncSession, tenant_id: UUID, year: int) -> str:
    prefix = f"{settings.receipt_number_prefix.strip().upper()}-{year}-"
    issued = (
        await db.execute(
            select(func.count(Receipt.id)).where(
                Receipt.tenant_id == tenant_id,
                Receipt.receipt_number.like(f"{prefix}%"),
            )
        )
    ).scalar() or 0
    return format_receipt_number(settings.receipt_number_prefix, year, issued + 1)


async def create_receipt(
    db: AsyncSession,
    tenant_id: UUID,
    payment: InstallmentPayment,
    installment: FeeInstallment,
    structure: StudentFeeStructure,
) -> Receipt:
    """Called inside the payment transaction after the installment's paid_amount is updated. Does not commit."""
    student = await db.get(Student, structure.student_id)
    session = await db.get(AcademicSession, structure.session_id)
    generated_at = utcnow()
    number = await _next_receipt_number(db, tenant_id, generated_at.year)

    snapshot = {
        "receipt_number": number,
        "currency": settings.currency_code,
        "student": {
            "id": str(structure.student_id),
            "name": student.full_name if student else None,
        },
        "session": {
            "id": str(structure.session_id),
            "name": session.name if session else None,
        },
        "installment": {
            "id": str(installment.id),
            "installment_number": installment.installment_number,
            "amount": str(money(installment.amount)),
            "paid_amount": str(money(installment.paid_amount)),
            "balance": str(outstanding(money(installment.amount), money(installment.paid_amount))),
            "due_date": installment.due_date.isoformat(),
            "status": installment.status,
        },
        "fee_structure": {
            "id": str(structure.id),
            "gross_amount": str(money(structure.gross_amount)),
            "net_amount": str(money(structure.net_amount)),
            "pending_amount": str(money(structure.pending_amount)),
        },
        "payment": {
            "id": str(payment.id),
            "amount": str(money(payment.amount)),
            "payment_mode": payment.payment_mode,
            "transaction_ref": payment.transaction_ref,
            "received_at": generated_at.isoformat(),
        },
    }
    receipt = Receipt(
        tenant_id=tenant_id,
        payment_id=payment.id,
        student_id=structure.student_id,
        session_id=structure.session_id,
        receipt_number=number,
        amount=payment.amount,
        payment_mode=payment.payment_mode,
        snapshot=snapshot,
        generated_at=generated_at,
    )
    db.add(receipt)
    await db.flush()
    return receipt


async def list_receipts(
    db: AsyncSession,
    tenant_id: UUID,
    student_id: Optional[UUID] = None,
    session_id: Optional[UUID] = None,
    page: int = 1,
    limit: int = 20,
) -> PaginatedResponse[ReceiptResponse]:
    stmt = select(Receipt).where(Receipt.tenant_id == tenant_id)
    if student_id is not None:
        stmt = stmt.where(Receipt.student_id == student_id)
    if session_id is not None:
        stmt = stmt.where(Receipt.session_id == session_id)
    total = await count_rows(db, stmt)
    stmt = stmt.order_by(Receipt.generated_at.desc()).offset((page - 1) * limit).limit(limit)
    rows = (await db.execute(stmt)).scalars().all()
    return PaginatedResponse[ReceiptResponse](
        data=[to_response(r) for r in rows],
        meta=build_meta(page, limit, total),
    )


async def get_receipt(db: AsyncSession, tenant_id: UUID, receipt_id: UUID) -> ReceiptResponse:
    return to_response(await get_owned(db, Receipt, tenant_id, receipt_id, "Receipt"))


async def render_receipt_pdf(db: AsyncSession, tenant_id: UUID, receipt_id: UUID) -> Tuple[str, bytes]:
    """Returns (receipt_number, pdf bytes)."""
    receipt = await get_owned(db, Receipt, tenant_id, receipt_id, "Receipt")
    if not settings.receipt_renderer_url:
        raise UnavailableError("Receipt PDF rendering is not configured")

    payload = {"template": "fee_receipt", "data": receipt.snapshot}
    try:
        async with httpx.AsyncClient(timeout=settings.receipt_renderer_timeout_seconds) as client:
            resp = await client.post(settings.receipt_renderer_url, json=payload)
            resp.raise_for_status()
    except httpx.HTTPError as e:
        logger.warning(f"Receipt renderer failed for {receipt.receipt_number}: {e}")
        raise UnavailableError("Receipt PDF rendering failed; try again later")
    return receipt.receipt_number, resp.content
