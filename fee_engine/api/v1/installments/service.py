"""Installments service: schedule generation, status refresh, pending lists and payment recording."""

import logging
from datetime import date
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import and_, delete, exists, false, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fee_engine.api.v1.payment_links.service import mark_links_paid
from fee_engine.api.v1.receipts import service as receipt_service
from fee_engine.core.enums import InstallmentStatus, PaymentMode
from fee_engine.core.exceptions import ConflictError, ServiceError, ValidationError
from fee_engine.core.fees import Money, check_payment, outstanding, plan_installments, validate_split
from fee_engine.core.models import (
    AcademicSession,
    EMIPlanTemplate,
    FeeInstallment,
    InstallmentPayment,
    PaymentLink,
    Student,
    StudentFeeStructure,
)
from fee_engine.core.schemas import PaginatedResponse, build_meta
from fee_engine.core.services import (
    count_rows,
    get_owned,
    load_installments,
    log_fee_audit,
    money,
    recompute_pending,
    refresh_status,
    to_uuid,
)
from fee_engine.core.time_utils import today as utc_today

from .schemas import (
    DeleteInstallmentsResponse,
    GenerateInstallmentsRequest,
    GenerateInstallmentsResponse,
    InstallmentResponse,
    PaymentCreate,
    PaymentRecordResponse,
    PaymentResponse,
    PendingInstallment,
    SessionInstallments,
    StudentInstallmentsResponse,
)

logger = logging.getLogger(__name__)


def _installment_fields(inst: FeeInstallment) -> dict:
    amount = money(inst.amount)
    paid = money(inst.paid_amount)
    return dict(
        id=to_uuid(inst.id),
        student_fee_structure_id=to_uuid(inst.student_fee_structure_id),
        installment_number=inst.installment_number,
        amount=amount.to_decimal(),
        paid_amount=paid.to_decimal(),
        balance=outstanding(amount, paid).to_decimal(),
        due_date=inst.due_date,
        status=inst.status,
    )


def _to_response(inst: FeeInstallment) -> InstallmentResponse:
    return InstallmentResponse(**_installment_fields(inst))


def _payment_to_response(p: InstallmentPayment) -> PaymentResponse:
    return PaymentResponse(
        id=to_uuid(p.id),
        installment_id=to_uuid(p.installment_id),
        amount=money(p.amount).to_decimal(),
        payment_mode=p.payment_mode,
        transaction_ref=p.transaction_ref,
        remarks=p.remarks,
        received_at=p.received_at,
        received_by=to_uuid(p.received_by),
    )


async def _has_payments(db: AsyncSession, installment_ids: Sequence[UUID]) -> bool:
    if not installment_ids:
        return False
    return bool(
        (
            await db.execute(
                select(exists().where(InstallmentPayment.installment_id.in_(installment_ids)))
            )
        ).scalar()
    )


async def _drop_schedule(db: AsyncSession, installments: Sequence[FeeInstallment]) -> None:
    ids = [i.id for i in installments]
    await db.execute(
        delete(PaymentLink).where(PaymentLink.installment_id.in_(ids)),
        execution_options={"synchronize_session": False},
    )
    for inst in installments:
        await db.delete(inst)
    await db.flush()


async def _resolve_template(db: AsyncSession, tenant_id: UUID, template_id: Optional[UUID]) -> EMIPlanTemplate:
    if template_id is not None:
        template = await get_owned(db, EMIPlanTemplate, tenant_id, template_id, "EMI template")
        if not template.is_active:
            raise ValidationError("EMI template is inactive")
        return template
    template = (
        await db.execute(
            select(EMIPlanTemplate).where(
                EMIPlanTemplate.tenant_id == tenant_id,
                EMIPlanTemplate.is_default.is_(True),
                EMIPlanTemplate.is_active.is_(True),
            )
        )
    ).scalars().first()
    if template is None:
        raise ValidationError("No emi_template_id given and the tenant has no default EMI template")
    return template


# --- Generation ---
async def generate_installments(
    db: AsyncSession,
    tenant_id: UUID,
    payload: GenerateInstallmentsRequest,
    changed_by: Optional[UUID] = None,
) -> GenerateInstallmentsResponse:
    """
    Split the structure's net amount by the template. The last installment absorbs rounding so
    the schedule sums to net exactly. Refused once any payment exists on the schedule.
    """
    structure = await get_owned(
        db,
        StudentFeeStructure,
        tenant_id,
        payload.student_fee_structure_id,
        "Student fee structure",
        for_update=True,
    )
    template = await _resolve_template(db, tenant_id, payload.emi_template_id)
    net = money(structure.net_amount)
    if net.is_zero():
        raise ValidationError("Net amount is 0; there is nothing to schedule")
    split = validate_split(template.split_config, template.installment_count)

    try:
        existing = await load_installments(db, structure.id, for_update=True)
        if existing:
            if await _has_payments(db, [i.id for i in existing]):
                raise ConflictError("Installments have recorded payments and cannot be regenerated")
            if not payload.overwrite:
                raise ConflictError("Installments already exist; pass overwrite=true to replace them")
            await _drop_schedule(db, existing)

        today = utc_today()
        created = []
        for planned in plan_installments(net, payload.start_date, split):
            inst = FeeInstallment(
                tenant_id=tenant_id,
                student_fee_structure_id=structure.id,
                installment_number=planned.installment_number,
                amount=planned.amount.to_decimal(),
                due_date=planned.due_date,
                paid_amount=Money.zero().to_decimal(),
                status=InstallmentStatus.upcoming.value,
            )
            refresh_status(inst, today)
            db.add(inst)
            created.append(inst)
        await db.flush()
        await recompute_pending(db, structure)
        await log_fee_audit(
            db, tenant_id, "student_fee_structures", structure.id,
            "UPDATE",
            {"installment_count": len(existing)},
            {
                "installment_count": len(created),
                "emi_template_id": str(template.id),
                "start_date": payload.start_date.isoformat(),
                "amounts": [str(money(i.amount)) for i in created],
            },
            changed_by,
        )
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Installments were changed concurrently; retry")
    except ServiceError:
        await db.rollback()
        raise
    logger.info(
        f"Generated {len(created)} installments for fee structure {structure.id} (net {net})"
    )
    return GenerateInstallmentsResponse(
        student_fee_structure_id=structure.id,
        emi_template_id=template.id,
        net_amount=net.to_decimal(),
        installments=[_to_response(i) for i in created],
    )


async def delete_installments(
    db: AsyncSession,
    tenant_id: UUID,
    fee_structure_id: UUID,
    changed_by: Optional[UUID] = None,
) -> DeleteInstallmentsResponse:
    structure = await get_owned(
        db, StudentFeeStructure, tenant_id, fee_structure_id, "Student fee structure", for_update=True
    )
    existing = await load_installments(db, structure.id, for_update=True)
    if await _has_payments(db, [i.id for i in existing]):
        raise ConflictError("Installments have recorded payments and cannot be deleted")
    if existing:
        await _drop_schedule(db, existing)
        await recompute_pending(db, structure)
        await log_fee_audit(
            db, tenant_id, "student_fee_structures", structure.id,
            "DELETE", {"installment_count": len(existing)}, {"installment_count": 0}, changed_by,
        )
        await db.commit()
    return DeleteInstallmentsResponse(student_fee_structure_id=structure.id, deleted=len(existing))


# --- Reads ---
def _status_clause(status: InstallmentStatus, today: date):
    """SQL form of the installment status rules, for filtering before statuses are refreshed."""
    paid, amount, due = FeeInstallment.paid_amount, FeeInstallment.amount, FeeInstallment.due_date
    status = InstallmentStatus(status)
    if status == InstallmentStatus.paid:
        return paid >= amount
    if status == InstallmentStatus.overdue:
        return and_(paid < amount, due <= today)
    if status == InstallmentStatus.upcoming:
        return and_(paid == 0, paid < amount, due > today)
    if status == InstallmentStatus.partial:
        return and_(paid > 0, paid < amount, due > today)
    return false()


async def list_pending_installments(
    db: AsyncSession,
    tenant_id: UUID,
    status: Optional[InstallmentStatus] = None,
    batch_id: Optional[UUID] = None,
    page: int = 1,
    limit: int = 20,
) -> PaginatedResponse[PendingInstallment]:
    """Installments with a balance left, oldest due first."""
    today = utc_today()
    stmt = (
        select(FeeInstallment, StudentFeeStructure, Student)
        .join(StudentFeeStructure, StudentFeeStructure.id == FeeInstallment.student_fee_structure_id)
        .join(Student, Student.id == StudentFeeStructure.student_id)
        .where(
            FeeInstallment.tenant_id == tenant_id,
            FeeInstallment.paid_amount < FeeInstallment.amount,
        )
    )
    if status is not None:
        stmt = stmt.where(_status_clause(status, today))
    if batch_id is not None:
        stmt = stmt.where(Student.batch_id == batch_id)
    total = await count_rows(db, stmt)
    stmt = (
        stmt.order_by(FeeInstallment.due_date, Student.first_name, FeeInstallment.installment_number)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    rows = (await db.execute(stmt)).all()

    data = []
    changed = False
    for inst, structure, student in rows:
        changed = refresh_status(inst, today) or changed
        data.append(
            PendingInstallment(
                **_installment_fields(inst),
                student_id=student.id,
                student_name=student.full_name,
                batch_id=student.batch_id,
                session_id=structure.session_id,
            )
        )
    if changed:
        await db.commit()
    return PaginatedResponse[PendingInstallment](data=data, meta=build_meta(page, limit, total))


async def get_student_installments(
    db: AsyncSession,
    tenant_id: UUID,
    student_id: UUID,
    session_id: Optional[UUID] = None,
) -> StudentInstallmentsResponse:
    await get_owned(db, Student, tenant_id, student_id, "Student")
    stmt = (
        select(StudentFeeStructure, AcademicSession)
        .join(AcademicSession, AcademicSession.id == StudentFeeStructure.session_id)
        .where(
            StudentFeeStructure.tenant_id == tenant_id,
            StudentFeeStructure.student_id == student_id,
        )
    )
    if session_id is not None:
        stmt = stmt.where(StudentFeeStructure.session_id == session_id)
    rows = (await db.execute(stmt.order_by(AcademicSession.start_date.desc()))).all()

    today = utc_today()
    changed = False
    sessions: List[SessionInstallments] = []
    for structure, session in rows:
        installments = await load_installments(db, structure.id)
        for inst in installments:
            changed = refresh_status(inst, today) or changed
        sessions.append(
            SessionInstallments(
                session_id=session.id,
                session_name=session.name,
                student_fee_structure_id=structure.id,
                net_amount=money(structure.net_amount).to_decimal(),
                pending_amount=money(structure.pending_amount).to_decimal(),
                installments=[_to_response(i) for i in installments],
            )
        )
    if changed:
        await db.commit()
    return StudentInstallmentsResponse(student_id=student_id, sessions=sessions)


# --- Payments ---
async def record_payment(
    db: AsyncSession,
    tenant_id: UUID,
    installment_id: UUID,
    payload: PaymentCreate,
    received_by: Optional[UUID] = None,
) -> PaymentRecordResponse:
    """
    Append a payment, move the installment's paid_amount and status, issue the receipt and settle
    payment links, all in one transaction. The installment row is locked so concurrent payments
    serialize and the second sees the first's paid_amount.
    """
    try:
        inst = await get_owned(db, FeeInstallment, tenant_id, installment_id, "Installment", for_update=True)
        amount = Money.of(payload.amount)
        check_payment(amount, money(inst.amount), money(inst.paid_amount))
        structure = await get_owned(
            db, StudentFeeStructure, tenant_id, inst.student_fee_structure_id, "Student fee structure"
        )

        old_paid = money(inst.paid_amount)
        old_status = inst.status
        payment = InstallmentPayment(
            tenant_id=tenant_id,
            installment_id=inst.id,
            amount=amount.to_decimal(),
            payment_mode=PaymentMode(payload.payment_mode).value,
            transaction_ref=(payload.transaction_ref or "").strip() or None,
            remarks=(payload.remarks or "").strip() or None,
            received_by=received_by,
        )
        db.add(payment)
        inst.paid_amount = (old_paid + amount).to_decimal()
        refresh_status(inst)
        await db.flush()

        if money(inst.paid_amount) >= money(inst.amount):
            await mark_links_paid(db, inst.id)
        await recompute_pending(db, structure)
        receipt = await receipt_service.create_receipt(db, tenant_id, payment, inst, structure)
        await log_fee_audit(
            db, tenant_id, "fee_installments", inst.id,
            "PAYMENT",
            {"paid_amount": str(old_paid), "status": old_status},
            {
                "paid_amount": str(money(inst.paid_amount)),
                "status": inst.status,
                "payment_id": str(payment.id),
                "receipt_number": receipt.receipt_number,
            },
            received_by,
        )
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.warning(f"Payment on installment {installment_id} hit a constraint; rolled back")
        raise ConflictError("Payment could not be recorded because of a concurrent change; retry")
    except ServiceError:
        await db.rollback()
        raise
    logger.info(
        f"Payment {payment.id} of {amount} recorded on installment {inst.id} "
        f"({inst.status}); receipt {receipt.receipt_number}"
    )
    return PaymentRecordResponse(
        payment=_payment_to_response(payment),
        installment=_to_response(inst),
        receipt=receipt_service.to_response(receipt),
    )
