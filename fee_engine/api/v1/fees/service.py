"""Fees service: batch fee templates, student fee structures, custom discounts, summaries. Financial logic with audit."""

import logging
from typing import Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fee_engine.api.v1.payment_links.service import cancel_mismatched_links
from fee_engine.core.enums import DiscountType, FeeStructureSource, StudentStatus
from fee_engine.core.exceptions import ConflictError, NotFoundError, ServiceError, StateError, ValidationError
from fee_engine.core.fees import (
    DiscountRule,
    LineItem,
    Money,
    OpenInstallment,
    StructureTotals,
    Waiver,
    batch_total,
    build_custom,
    build_from_batch,
    compute_discount,
    compute_totals,
    outstanding,
    redistribute,
    validate_discount_value,
)
from fee_engine.core.models import (
    AcademicSession,
    Batch,
    BatchFeeLineItem,
    BatchFeeStructure,
    FeeComponent,
    Student,
    StudentFeeLineItem,
    StudentFeeStructure,
    StudentScholarship,
)
from fee_engine.core.services import (
    get_owned,
    load_installments,
    log_fee_audit,
    money,
    recompute_pending,
    refresh_status,
    to_decimal,
    to_uuid,
)

from .schemas import (
    ApplyBatchFeeStructureResponse,
    ApplyError,
    BatchFeeStructureCreate,
    BatchFeeStructureResponse,
    BatchFeeStructureUpdate,
    CustomDiscountDisplay,
    CustomDiscountInput,
    FeeLineItem,
    FeeLineItemInput,
    FeeStructureSummary,
    NextDue,
    OrphanedStructure,
    StudentFeeLineItemResponse,
    StudentFeeStructureCreate,
    StudentFeeStructureResponse,
    StudentFeeSummaryResponse,
    SummarySession,
    SummaryStudent,
)

logger = logging.getLogger(__name__)


# --- Shared lookups ---
async def _component_details(
    db: AsyncSession,
    tenant_id: UUID,
    component_ids: Sequence[UUID],
) -> Dict[UUID, FeeComponent]:
    if not component_ids:
        return {}
    result = await db.execute(
        select(FeeComponent).where(
            FeeComponent.tenant_id == tenant_id,
            FeeComponent.id.in_(set(component_ids)),
        )
    )
    return {fc.id: fc for fc in result.scalars().all()}


async def _require_active_components(
    db: AsyncSession,
    tenant_id: UUID,
    component_ids: Sequence[UUID],
) -> Dict[UUID, FeeComponent]:
    components = await _component_details(db, tenant_id, component_ids)
    for cid in component_ids:
        fc = components.get(cid)
        if fc is None:
            raise NotFoundError(f"Fee component {cid} not found")
        if not fc.is_active:
            raise ValidationError(f"Fee component '{fc.name}' is inactive")
    return components


def _reject_duplicate_components(items: Sequence[FeeLineItemInput]) -> None:
    ids = [i.fee_component_id for i in items]
    if len(ids) != len(set(ids)):
        raise ValidationError("A fee component can appear only once in a structure")


# --- Batch Fee Structure ---
def _bfs_to_response(
    bfs: BatchFeeStructure,
    components: Dict[UUID, FeeComponent],
    batch_name: Optional[str] = None,
    session_name: Optional[str] = None,
) -> BatchFeeStructureResponse:
    items = []
    for li in bfs.line_items:
        fc = components.get(li.fee_component_id)
        items.append(
            FeeLineItem(
                id=to_uuid(li.id),
                fee_component_id=to_uuid(li.fee_component_id),
                fee_component_name=fc.name if fc else None,
                fee_component_type=fc.component_type if fc else None,
                amount=money(li.amount).to_decimal(),
            )
        )
    return BatchFeeStructureResponse(
        id=to_uuid(bfs.id),
        tenant_id=to_uuid(bfs.tenant_id),
        batch_id=to_uuid(bfs.batch_id),
        batch_name=batch_name,
        session_id=to_uuid(bfs.session_id),
        session_name=session_name,
        name=bfs.name,
        total_amount=money(bfs.total_amount).to_decimal(),
        is_active=bfs.is_active,
        created_at=bfs.created_at,
        updated_at=bfs.updated_at,
        line_items=items,
    )


async def _bfs_response(db: AsyncSession, tenant_id: UUID, bfs: BatchFeeStructure) -> BatchFeeStructureResponse:
    components = await _component_details(db, tenant_id, [li.fee_component_id for li in bfs.line_items])
    batch = await db.get(Batch, bfs.batch_id)
    session = await db.get(AcademicSession, bfs.session_id)
    return _bfs_to_response(
        bfs,
        components,
        batch_name=batch.name if batch else None,
        session_name=session.name if session else None,
    )


async def _set_batch_line_items(
    db: AsyncSession,
    bfs: BatchFeeStructure,
    items: Sequence[FeeLineItemInput],
) -> Money:
    total = batch_total(i.amount for i in items)
    if bfs.line_items:
        # old rows must be gone before the (structure, component) unique key is reused
        bfs.line_items.clear()
        await db.flush()
    for position, item in enumerate(items):
        bfs.line_items.append(
            BatchFeeLineItem(
                fee_component_id=item.fee_component_id,
                amount=Money.of(item.amount).to_decimal(),
                position=position,
            )
        )
    bfs.total_amount = total.to_decimal()
    return total


async def create_batch_fee_structure(
    db: AsyncSession,
    tenant_id: UUID,
    payload: BatchFeeStructureCreate,
    changed_by: Optional[UUID] = None,
) -> BatchFeeStructureResponse:
    await get_owned(db, Batch, tenant_id, payload.batch_id, "Batch")
    await get_owned(db, AcademicSession, tenant_id, payload.session_id, "Session")
    _reject_duplicate_components(payload.line_items)
    await _require_active_components(db, tenant_id, [i.fee_component_id for i in payload.line_items])

    existing = (
        await db.execute(
            select(BatchFeeStructure.id).where(
                BatchFeeStructure.batch_id == payload.batch_id,
                BatchFeeStructure.session_id == payload.session_id,
            )
        )
    ).scalar_one_or_none()
    if existing:
        raise ConflictError("A fee structure already exists for this batch and session")

    try:
        bfs = BatchFeeStructure(
            tenant_id=tenant_id,
            batch_id=payload.batch_id,
            session_id=payload.session_id,
            name=payload.name.strip(),
            total_amount=0,
            is_active=True,
            line_items=[],
        )
        total = await _set_batch_line_items(db, bfs, payload.line_items)
        db.add(bfs)
        await db.flush()
        await log_fee_audit(
            db, tenant_id, "batch_fee_structures", bfs.id,
            "CREATE", None,
            {"batch_id": str(payload.batch_id), "session_id": str(payload.session_id), "total_amount": str(total)},
            changed_by,
        )
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("A fee structure already exists for this batch and session")
    return await _bfs_response(db, tenant_id, bfs)


async def list_batch_fee_structures(
    db: AsyncSession,
    tenant_id: UUID,
    session_id: Optional[UUID] = None,
    active_only: bool = False,
) -> List[BatchFeeStructureResponse]:
    stmt = (
        select(BatchFeeStructure, Batch.name, AcademicSession.name)
        .join(Batch, Batch.id == BatchFeeStructure.batch_id)
        .join(AcademicSession, AcademicSession.id == BatchFeeStructure.session_id)
        .where(BatchFeeStructure.tenant_id == tenant_id)
    )
    if session_id is not None:
        stmt = stmt.where(BatchFeeStructure.session_id == session_id)
    if active_only:
        stmt = stmt.where(BatchFeeStructure.is_active.is_(True))
    stmt = stmt.order_by(Batch.name, AcademicSession.name)
    rows = (await db.execute(stmt)).all()
    component_ids = [li.fee_component_id for bfs, _, _ in rows for li in bfs.line_items]
    components = await _component_details(db, tenant_id, component_ids)
    return [
        _bfs_to_response(bfs, components, batch_name=batch_name, session_name=session_name)
        for bfs, batch_name, session_name in rows
    ]


async def get_batch_fee_structure_by_batch(
    db: AsyncSession,
    tenant_id: UUID,
    batch_id: UUID,
    session_id: UUID,
) -> BatchFeeStructureResponse:
    bfs = (
        await db.execute(
            select(BatchFeeStructure).where(
                BatchFeeStructure.tenant_id == tenant_id,
                BatchFeeStructure.batch_id == batch_id,
                BatchFeeStructure.session_id == session_id,
            )
        )
    ).scalar_one_or_none()
    if not bfs:
        raise NotFoundError("Batch fee structure not found")
    return await _bfs_response(db, tenant_id, bfs)


async def update_batch_fee_structure(
    db: AsyncSession,
    tenant_id: UUID,
    structure_id: UUID,
    payload: BatchFeeStructureUpdate,
    changed_by: Optional[UUID] = None,
) -> BatchFeeStructureResponse:
    """Edits the template only; student structures already copied from it keep their amounts."""
    bfs = await get_owned(db, BatchFeeStructure, tenant_id, structure_id, "Batch fee structure")
    old = {"name": bfs.name, "total_amount": str(money(bfs.total_amount)), "is_active": bfs.is_active}
    if payload.name is not None:
        bfs.name = payload.name.strip()
    if payload.line_items is not None:
        _reject_duplicate_components(payload.line_items)
        await _require_active_components(db, tenant_id, [i.fee_component_id for i in payload.line_items])
        await _set_batch_line_items(db, bfs, payload.line_items)
    if payload.is_active is not None:
        bfs.is_active = payload.is_active
    await log_fee_audit(
        db, tenant_id, "batch_fee_structures", bfs.id,
        "UPDATE", old,
        {"name": bfs.name, "total_amount": str(money(bfs.total_amount)), "is_active": bfs.is_active},
        changed_by,
    )
    await db.commit()
    return await _bfs_response(db, tenant_id, bfs)


async def delete_batch_fee_structure(
    db: AsyncSession,
    tenant_id: UUID,
    structure_id: UUID,
    changed_by: Optional[UUID] = None,
) -> None:
    """Student structures copied from the template survive; they just lose the back-reference."""
    bfs = await get_owned(db, BatchFeeStructure, tenant_id, structure_id, "Batch fee structure")
    await db.execute(
        update(StudentFeeStructure)
        .where(StudentFeeStructure.batch_fee_structure_id == bfs.id)
        .values(batch_fee_structure_id=None)
    )
    await log_fee_audit(
        db, tenant_id, "batch_fee_structures", bfs.id,
        "DELETE",
        {"batch_id": str(bfs.batch_id), "session_id": str(bfs.session_id), "total_amount": str(money(bfs.total_amount))},
        None,
        changed_by,
    )
    await db.delete(bfs)
    await db.commit()


# --- Student Fee Structure: recompute ---
def _line_items_of(structure: StudentFeeStructure) -> List[LineItem]:
    return [
        LineItem(
            fee_component_id=li.fee_component_id,
            original_amount=money(li.original_amount),
            adjusted_amount=money(li.adjusted_amount),
            waived=bool(li.waived),
            waiver_reason=li.waiver_reason,
        )
        for li in structure.line_items
    ]


def _structure_snapshot(structure: StudentFeeStructure) -> dict:
    return {
        "gross_amount": str(money(structure.gross_amount)),
        "waived_amount": str(money(structure.waived_amount)),
        "scholarship_amount": str(money(structure.scholarship_amount)),
        "custom_discount_amount": str(money(structure.custom_discount_amount)),
        "net_amount": str(money(structure.net_amount)),
        "pending_amount": str(money(structure.pending_amount)),
    }


async def _scholarship_total(db: AsyncSession, tenant_id: UUID, student_id: UUID, session_id: UUID) -> Money:
    total = (
        await db.execute(
            select(func.coalesce(func.sum(StudentScholarship.discount_amount), 0)).where(
                StudentScholarship.tenant_id == tenant_id,
                StudentScholarship.student_id == student_id,
                StudentScholarship.session_id == session_id,
            )
        )
    ).scalar()
    return money(total)


async def _propagate_to_installments(
    db: AsyncSession,
    tenant_id: UUID,
    structure: StudentFeeStructure,
    net: Money,
    changed_by: Optional[UUID],
) -> None:
    """Re-spread a changed net amount over the installments that are not fully paid yet.

    Active payment links on a resized installment are cancelled.
    """
    installments = await load_installments(db, structure.id, for_update=True)
    if not installments:
        return
    settled = [i for i in installments if money(i.paid_amount) >= money(i.amount)]
    open_ = [i for i in installments if money(i.paid_amount) < money(i.amount)]
    remaining = net - Money.total(money(i.amount) for i in settled)
    new_amounts = redistribute(
        remaining,
        [OpenInstallment(i.id, money(i.amount), money(i.paid_amount)) for i in open_],
    )
    resized = {}
    for inst, amount in zip(open_, new_amounts):
        if amount != money(inst.amount):
            resized[inst.id] = outstanding(amount, money(inst.paid_amount))
        inst.amount = amount.to_decimal()
        refresh_status(inst)
    await cancel_mismatched_links(db, tenant_id, resized, changed_by)


async def recompute_structure(
    db: AsyncSession,
    tenant_id: UUID,
    structure: StudentFeeStructure,
    changed_by: Optional[UUID],
    reason: str,
) -> StructureTotals:
    """
    Re-run gross/net/pending for a structure after a line item, scholarship or custom discount change,
    and carry the new net into not-yet-paid installments. Runs inside the caller's transaction.
    """
    old = _structure_snapshot(structure)
    items = _line_items_of(structure)
    gross = Money.total(i.original_amount for i in items)
    scholarship = await _scholarship_total(db, tenant_id, structure.student_id, structure.session_id)

    custom = Money.zero()
    if structure.custom_discount_type:
        custom = compute_discount(
            gross,
            DiscountRule(DiscountType(structure.custom_discount_type), to_decimal(structure.custom_discount_value)),
        )

    totals = compute_totals(items, scholarship, custom)
    structure.gross_amount = totals.gross_amount.to_decimal()
    structure.waived_amount = totals.waived_amount.to_decimal()
    structure.scholarship_amount = totals.scholarship_amount.to_decimal()
    structure.custom_discount_amount = (
        totals.custom_discount_amount.to_decimal() if structure.custom_discount_type else None
    )
    structure.net_amount = totals.net_amount.to_decimal()

    await db.flush()
    await _propagate_to_installments(db, tenant_id, structure, totals.net_amount, changed_by)
    await recompute_pending(db, structure)

    new = _structure_snapshot(structure)
    if old != new:
        await log_fee_audit(
            db, tenant_id, "student_fee_structures", structure.id,
            "RECOMPUTE", old, {**new, "reason": reason}, changed_by,
        )
    return totals


# --- Student Fee Structure: responses ---
def _custom_discount_display(structure: StudentFeeStructure) -> Optional[CustomDiscountDisplay]:
    if not structure.custom_discount_type or structure.custom_discount_value is None:
        return None
    return CustomDiscountDisplay(
        type=structure.custom_discount_type,
        value=to_decimal(structure.custom_discount_value),
        amount=money(structure.custom_discount_amount).to_decimal(),
        remarks=structure.custom_discount_remarks,
    )


def _sfs_to_response(
    structure: StudentFeeStructure,
    components: Dict[UUID, FeeComponent],
) -> StudentFeeStructureResponse:
    items = []
    for li in structure.line_items:
        fc = components.get(li.fee_component_id)
        items.append(
            StudentFeeLineItemResponse(
                id=to_uuid(li.id),
                fee_component_id=to_uuid(li.fee_component_id),
                fee_component_name=fc.name if fc else None,
                fee_component_type=fc.component_type if fc else None,
                original_amount=money(li.original_amount).to_decimal(),
                adjusted_amount=money(li.adjusted_amount).to_decimal(),
                waived=bool(li.waived),
                waiver_reason=li.waiver_reason,
            )
        )
    return StudentFeeStructureResponse(
        id=to_uuid(structure.id),
        tenant_id=to_uuid(structure.tenant_id),
        student_id=to_uuid(structure.student_id),
        session_id=to_uuid(structure.session_id),
        source=structure.source,
        batch_fee_structure_id=to_uuid(structure.batch_fee_structure_id),
        gross_amount=money(structure.gross_amount).to_decimal(),
        waived_amount=money(structure.waived_amount).to_decimal(),
        scholarship_amount=money(structure.scholarship_amount).to_decimal(),
        custom_discount=_custom_discount_display(structure),
        net_amount=money(structure.net_amount).to_decimal(),
        pending_amount=money(structure.pending_amount).to_decimal(),
        remarks=structure.remarks,
        created_at=structure.created_at,
        updated_at=structure.updated_at,
        line_items=items,
    )


async def structure_response(
    db: AsyncSession,
    tenant_id: UUID,
    structure: StudentFeeStructure,
) -> StudentFeeStructureResponse:
    components = await _component_details(db, tenant_id, [li.fee_component_id for li in structure.line_items])
    return _sfs_to_response(structure, components)


# --- Student Fee Structure: build ---
async def _apply_line_items(db: AsyncSession, structure: StudentFeeStructure, items: Sequence[LineItem]) -> None:
    if structure.line_items:
        structure.line_items.clear()
        await db.flush()
    for position, item in enumerate(items):
        structure.line_items.append(
            StudentFeeLineItem(
                fee_component_id=item.fee_component_id,
                original_amount=item.original_amount.to_decimal(),
                adjusted_amount=item.adjusted_amount.to_decimal(),
                waived=item.waived,
                waiver_reason=item.waiver_reason,
                position=position,
            )
        )


async def _new_structure(
    db: AsyncSession,
    tenant_id: UUID,
    student_id: UUID,
    session_id: UUID,
    items: Sequence[LineItem],
    source: FeeStructureSource,
    batch_fee_structure_id: Optional[UUID],
    remarks: Optional[str],
    changed_by: Optional[UUID],
) -> StudentFeeStructure:
    structure = StudentFeeStructure(
        tenant_id=tenant_id,
        student_id=student_id,
        session_id=session_id,
        source=source.value,
        batch_fee_structure_id=batch_fee_structure_id,
        gross_amount=0,
        waived_amount=0,
        scholarship_amount=0,
        net_amount=0,
        pending_amount=0,
        remarks=(remarks or "").strip() or None,
        line_items=[],
    )
    await _apply_line_items(db, structure, items)
    db.add(structure)
    await db.flush()
    await recompute_structure(db, tenant_id, structure, changed_by, reason="create")
    await log_fee_audit(
        db, tenant_id, "student_fee_structures", structure.id,
        "CREATE", None,
        {
            "student_id": str(student_id),
            "session_id": str(session_id),
            "source": source.value,
            **_structure_snapshot(structure),
        },
        changed_by,
    )
    return structure


async def _batch_items(db: AsyncSession, tenant_id: UUID, bfs_id: UUID) -> Tuple[BatchFeeStructure, List[tuple]]:
    bfs = await get_owned(db, BatchFeeStructure, tenant_id, bfs_id, "Batch fee structure")
    if not bfs.is_active:
        raise StateError("Batch fee structure is inactive")
    return bfs, [(li.fee_component_id, money(li.amount)) for li in bfs.line_items]


async def create_student_fee_structure(
    db: AsyncSession,
    tenant_id: UUID,
    payload: StudentFeeStructureCreate,
    changed_by: Optional[UUID] = None,
) -> StudentFeeStructureResponse:
    await get_owned(db, Student, tenant_id, payload.student_id, "Student")
    await get_owned(db, AcademicSession, tenant_id, payload.session_id, "Session")

    if payload.batch_fee_structure_id is not None:
        bfs, batch_items = await _batch_items(db, tenant_id, payload.batch_fee_structure_id)
        if bfs.session_id != payload.session_id:
            raise ValidationError("Batch fee structure belongs to a different session")
        items = build_from_batch(
            batch_items,
            [Waiver(w.fee_component_id, w.waiver_reason) for w in payload.waivers],
        )
        source = FeeStructureSource.BATCH_DEFAULT
    else:
        await _require_active_components(db, tenant_id, [i.fee_component_id for i in payload.line_items])
        items = build_custom(
            [(i.fee_component_id, i.amount, i.waived, i.waiver_reason) for i in payload.line_items]
        )
        source = FeeStructureSource.CUSTOM

    existing = (
        await db.execute(
            select(StudentFeeStructure.id).where(
                StudentFeeStructure.student_id == payload.student_id,
                StudentFeeStructure.session_id == payload.session_id,
            )
        )
    ).scalar_one_or_none()
    if existing:
        raise ConflictError("Student already has a fee structure for this session")

    try:
        structure = await _new_structure(
            db,
            tenant_id,
            payload.student_id,
            payload.session_id,
            items,
            source,
            payload.batch_fee_structure_id,
            payload.remarks,
            changed_by,
        )
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Student already has a fee structure for this session")
    except ServiceError:
        await db.rollback()
        raise
    logger.info(
        f"Fee structure {structure.id} created for student {payload.student_id} "
        f"(net {money(structure.net_amount)})"
    )
    return await structure_response(db, tenant_id, structure)


async def get_student_fee_structure(
    db: AsyncSession,
    tenant_id: UUID,
    student_id: UUID,
    session_id: UUID,
) -> StudentFeeStructureResponse:
    structure = (
        await db.execute(
            select(StudentFeeStructure).where(
                StudentFeeStructure.tenant_id == tenant_id,
                StudentFeeStructure.student_id == student_id,
                StudentFeeStructure.session_id == session_id,
            )
        )
    ).scalar_one_or_none()
    if not structure:
        raise NotFoundError("Student fee structure not found")
    return await structure_response(db, tenant_id, structure)


async def get_student_fee_structure_by_id(
    db: AsyncSession,
    tenant_id: UUID,
    structure_id: UUID,
) -> StudentFeeStructureResponse:
    structure = await get_owned(db, StudentFeeStructure, tenant_id, structure_id, "Student fee structure")
    return await structure_response(db, tenant_id, structure)


# --- Batch apply ---
async def _replace_from_batch(
    db: AsyncSession,
    tenant_id: UUID,
    structure_id: UUID,
    bfs_id: UUID,
    batch_items: List[tuple],
    changed_by: Optional[UUID],
) -> Optional[OrphanedStructure]:
    structure = await get_owned(
        db, StudentFeeStructure, tenant_id, structure_id, "Student fee structure", for_update=True
    )
    installments = await load_installments(db, structure.id)
    paid = Money.total(money(i.paid_amount) for i in installments)

    await _apply_line_items(db, structure, build_from_batch(batch_items))
    structure.source = FeeStructureSource.BATCH_DEFAULT.value
    structure.batch_fee_structure_id = bfs_id
    await db.flush()
    await recompute_structure(db, tenant_id, structure, changed_by, reason="batch_overwrite")

    if not installments:
        return None
    orphan = OrphanedStructure(
        student_id=structure.student_id,
        student_fee_structure_id=structure.id,
        installment_count=len(installments),
        paid_amount=paid.to_decimal(),
    )
    await log_fee_audit(
        db, tenant_id, "student_fee_structures", structure.id,
        "ORPHANED",
        {"installment_ids": [str(i.id) for i in installments], "paid_amount": str(paid)},
        {"batch_fee_structure_id": str(bfs_id), "net_amount": str(money(structure.net_amount))},
        changed_by,
    )
    return orphan


async def apply_batch_fee_structure(
    db: AsyncSession,
    tenant_id: UUID,
    structure_id: UUID,
    overwrite_existing: bool,
    changed_by: Optional[UUID] = None,
) -> ApplyBatchFeeStructureResponse:
    """
    Copy a batch template onto every ACTIVE student of the batch.
    Each student runs in its own savepoint: one failure does not undo the others.
    """
    bfs, batch_items = await _batch_items(db, tenant_id, structure_id)
    bfs_id, batch_id, session_id = bfs.id, bfs.batch_id, bfs.session_id

    student_ids = (
        await db.execute(
            select(Student.id)
            .where(
                Student.tenant_id == tenant_id,
                Student.batch_id == batch_id,
                Student.status == StudentStatus.ACTIVE.value,
            )
            .order_by(Student.first_name, Student.last_name)
        )
    ).scalars().all()
    existing = dict(
        (
            await db.execute(
                select(StudentFeeStructure.student_id, StudentFeeStructure.id).where(
                    StudentFeeStructure.tenant_id == tenant_id,
                    StudentFeeStructure.session_id == session_id,
                    StudentFeeStructure.student_id.in_(student_ids),
                )
            )
        ).all()
    ) if student_ids else {}

    result = ApplyBatchFeeStructureResponse(applied=0, skipped=0)
    for student_id in student_ids:
        current = existing.get(student_id)
        if current is not None and not overwrite_existing:
            result.skipped += 1
            continue
        try:
            async with db.begin_nested():
                if current is None:
                    await _new_structure(
                        db, tenant_id, student_id, session_id,
                        build_from_batch(batch_items),
                        FeeStructureSource.BATCH_DEFAULT, bfs_id, None, changed_by,
                    )
                else:
                    orphan = await _replace_from_batch(
                        db, tenant_id, current, bfs_id, batch_items, changed_by
                    )
                    if orphan is not None:
                        result.orphaned.append(orphan)
            result.applied += 1
        except (ServiceError, IntegrityError) as e:
            message = e.message if isinstance(e, ServiceError) else "Fee structure conflict"
            logger.warning(f"Batch fee structure {bfs_id}: student {student_id} not applied: {message}")
            result.errors.append(ApplyError(student_id=student_id, message=message))

    await log_fee_audit(
        db, tenant_id, "batch_fee_structures", bfs_id,
        "APPLY", None,
        {
            "overwrite_existing": overwrite_existing,
            "applied": result.applied,
            "skipped": result.skipped,
            "errors": len(result.errors),
            "orphaned_structure_ids": [str(o.student_fee_structure_id) for o in result.orphaned],
        },
        changed_by,
    )
    await db.commit()
    logger.info(
        f"Batch fee structure {bfs_id} applied: {result.applied} applied, "
        f"{result.skipped} skipped, {len(result.errors)} failed, {len(result.orphaned)} orphaned"
    )
    return result


# --- Custom discount ---
async def set_custom_discount(
    db: AsyncSession,
    tenant_id: UUID,
    structure_id: UUID,
    payload: CustomDiscountInput,
    changed_by: Optional[UUID] = None,
) -> StudentFeeStructureResponse:
    value = validate_discount_value(payload.type, payload.value)
    structure = await get_owned(
        db, StudentFeeStructure, tenant_id, structure_id, "Student fee structure", for_update=True
    )
    structure.custom_discount_type = DiscountType(payload.type).value
    structure.custom_discount_value = value
    structure.custom_discount_remarks = (payload.remarks or "").strip() or None
    try:
        await recompute_structure(db, tenant_id, structure, changed_by, reason="custom_discount")
        await db.commit()
    except ServiceError:
        await db.rollback()
        raise
    return await structure_response(db, tenant_id, structure)


async def remove_custom_discount(
    db: AsyncSession,
    tenant_id: UUID,
    structure_id: UUID,
    changed_by: Optional[UUID] = None,
) -> StudentFeeStructureResponse:
    structure = await get_owned(
        db, StudentFeeStructure, tenant_id, structure_id, "Student fee structure", for_update=True
    )
    structure.custom_discount_type = None
    structure.custom_discount_value = None
    structure.custom_discount_amount = None
    structure.custom_discount_remarks = None
    try:
        await recompute_structure(db, tenant_id, structure, changed_by, reason="custom_discount_removed")
        await db.commit()
    except ServiceError:
        await db.rollback()
        raise
    return await structure_response(db, tenant_id, structure)


# --- Summary ---
async def get_student_fee_summary(
    db: AsyncSession,
    tenant_id: UUID,
    student_id: UUID,
    session_id: Optional[UUID] = None,
) -> StudentFeeSummaryResponse:
    student = await get_owned(db, Student, tenant_id, student_id, "Student")
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
    stmt = stmt.order_by(AcademicSession.start_date.desc())
    rows = (await db.execute(stmt)).all()

    summaries = []
    for structure, session in rows:
        installments = await load_installments(db, structure.id)
        changed = False
        for inst in installments:
            changed = refresh_status(inst) or changed
        total_paid = Money.total(money(i.paid_amount) for i in installments)
        open_ = [i for i in installments if money(i.paid_amount) < money(i.amount)]
        next_due = None
        if open_:
            first = min(open_, key=lambda i: (i.due_date, i.installment_number))
            next_due = NextDue(
                installment_number=first.installment_number,
                amount=outstanding(money(first.amount), money(first.paid_amount)).to_decimal(),
                due_date=first.due_date,
            )
        pending = await recompute_pending(db, structure)
        summaries.append(
            FeeStructureSummary(
                id=structure.id,
                session=SummarySession(id=session.id, name=session.name, is_current=session.is_current),
                gross_amount=money(structure.gross_amount).to_decimal(),
                scholarship_amount=money(structure.scholarship_amount).to_decimal(),
                custom_discount=_custom_discount_display(structure),
                net_amount=money(structure.net_amount).to_decimal(),
                total_paid=total_paid.to_decimal(),
                pending_amount=pending.to_decimal(),
                total_installments=len(installments),
                paid_installments=len(installments) - len(open_),
                next_due=next_due,
            )
        )
    if db.dirty:
        await db.commit()
    return StudentFeeSummaryResponse(
        student=SummaryStudent(id=student.id, full_name=student.full_name),
        fee_structures=summaries,
    )
