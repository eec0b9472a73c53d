"""Scholarship service: catalog CRUD, assignment snapshots and the structure recompute they trigger."""

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fee_engine.api.v1.fees.service import recompute_structure
from fee_engine.core.enums import DiscountType, ScholarshipBasis
from fee_engine.core.exceptions import ConflictError, ServiceError, ValidationError
from fee_engine.core.fees import DiscountRule, compute_discount, validate_discount_value
from fee_engine.core.models import AcademicSession, Scholarship, Student, StudentFeeStructure, StudentScholarship
from fee_engine.core.services import get_owned, log_fee_audit, money, to_decimal, to_uuid

from .schemas import (
    ScholarshipAssign,
    ScholarshipCreate,
    ScholarshipResponse,
    ScholarshipUpdate,
    StudentScholarshipResponse,
)

logger = logging.getLogger(__name__)


def _to_response(s: Scholarship) -> ScholarshipResponse:
    return ScholarshipResponse(
        id=to_uuid(s.id),
        tenant_id=to_uuid(s.tenant_id),
        name=s.name,
        type=s.scholarship_type,
        basis=s.basis,
        value=to_decimal(s.value),
        max_amount=to_decimal(s.max_amount) if s.max_amount is not None else None,
        description=s.description,
        is_active=s.is_active,
        created_at=s.created_at,
        updated_at=s.updated_at,
    )


def _assignment_to_response(a: StudentScholarship, s: Optional[Scholarship]) -> StudentScholarshipResponse:
    return StudentScholarshipResponse(
        id=to_uuid(a.id),
        student_id=to_uuid(a.student_id),
        scholarship_id=to_uuid(a.scholarship_id),
        scholarship_name=s.name if s else None,
        scholarship_type=s.scholarship_type if s else None,
        session_id=to_uuid(a.session_id),
        discount_amount=money(a.discount_amount).to_decimal(),
        remarks=a.remarks,
        approved_by=to_uuid(a.approved_by),
        approved_at=a.approved_at,
    )


def _rule(s: Scholarship) -> DiscountRule:
    return DiscountRule(
        DiscountType(s.scholarship_type),
        to_decimal(s.value),
        to_decimal(s.max_amount) if s.max_amount is not None else None,
    )


# --- Catalog ---
async def create_scholarship(
    db: AsyncSession,
    tenant_id: UUID,
    payload: ScholarshipCreate,
) -> ScholarshipResponse:
    value = validate_discount_value(payload.type, payload.value, payload.max_amount)
    try:
        s = Scholarship(
            tenant_id=tenant_id,
            name=payload.name.strip(),
            scholarship_type=DiscountType(payload.type).value,
            basis=ScholarshipBasis(payload.basis).value,
            value=value,
            max_amount=payload.max_amount,
            description=(payload.description or "").strip() or None,
            is_active=True,
        )
        db.add(s)
        await db.commit()
        await db.refresh(s)
        return _to_response(s)
    except IntegrityError:
        await db.rollback()
        raise ConflictError("A scholarship with this name already exists")


async def list_scholarships(
    db: AsyncSession,
    tenant_id: UUID,
    active_only: bool = True,
) -> List[ScholarshipResponse]:
    stmt = select(Scholarship).where(Scholarship.tenant_id == tenant_id)
    if active_only:
        stmt = stmt.where(Scholarship.is_active.is_(True))
    result = await db.execute(stmt.order_by(Scholarship.name))
    return [_to_response(s) for s in result.scalars().all()]


async def get_scholarship(db: AsyncSession, tenant_id: UUID, scholarship_id: UUID) -> ScholarshipResponse:
    return _to_response(await get_owned(db, Scholarship, tenant_id, scholarship_id, "Scholarship"))


async def update_scholarship(
    db: AsyncSession,
    tenant_id: UUID,
    scholarship_id: UUID,
    payload: ScholarshipUpdate,
) -> ScholarshipResponse:
    s = await get_owned(db, Scholarship, tenant_id, scholarship_id, "Scholarship")
    value = payload.value if payload.value is not None else to_decimal(s.value)
    max_amount = payload.max_amount if payload.max_amount is not None else s.max_amount
    validate_discount_value(s.scholarship_type, value, max_amount)
    if payload.name is not None:
        s.name = payload.name.strip()
    s.value = value
    s.max_amount = max_amount
    if payload.description is not None:
        s.description = payload.description.strip() or None
    if payload.is_active is not None:
        s.is_active = payload.is_active
    try:
        await db.commit()
        await db.refresh(s)
        return _to_response(s)
    except IntegrityError:
        await db.rollback()
        raise ConflictError("A scholarship with this name already exists")


async def deactivate_scholarship(db: AsyncSession, tenant_id: UUID, scholarship_id: UUID) -> ScholarshipResponse:
    """Existing assignments keep their snapshot; the scholarship just stops being assignable."""
    s = await get_owned(db, Scholarship, tenant_id, scholarship_id, "Scholarship")
    s.is_active = False
    await db.commit()
    await db.refresh(s)
    return _to_response(s)


# --- Assignments ---
async def _structure_for(
    db: AsyncSession,
    tenant_id: UUID,
    student_id: UUID,
    session_id: UUID,
) -> Optional[StudentFeeStructure]:
    return (
        await db.execute(
            select(StudentFeeStructure)
            .where(
                StudentFeeStructure.tenant_id == tenant_id,
                StudentFeeStructure.student_id == student_id,
                StudentFeeStructure.session_id == session_id,
            )
            .with_for_update()
        )
    ).scalar_one_or_none()


async def assign_scholarship(
    db: AsyncSession,
    tenant_id: UUID,
    payload: ScholarshipAssign,
    approved_by: Optional[UUID] = None,
) -> StudentScholarshipResponse:
    """
    Snapshot discount_amount = compute_discount(gross, scholarship) and recompute the student's structure.
    The structure must exist first: the snapshot is taken against its gross.
    """
    await get_owned(db, Student, tenant_id, payload.student_id, "Student")
    await get_owned(db, AcademicSession, tenant_id, payload.session_id, "Session")
    s = await get_owned(db, Scholarship, tenant_id, payload.scholarship_id, "Scholarship")
    if not s.is_active:
        raise ValidationError("Scholarship is inactive")

    structure = await _structure_for(db, tenant_id, payload.student_id, payload.session_id)
    if structure is None:
        raise ValidationError("Student has no fee structure for this session; create it before assigning scholarships")

    duplicate = (
        await db.execute(
            select(StudentScholarship.id).where(
                StudentScholarship.student_id == payload.student_id,
                StudentScholarship.scholarship_id == payload.scholarship_id,
                StudentScholarship.session_id == payload.session_id,
            )
        )
    ).scalar_one_or_none()
    if duplicate:
        raise ConflictError("Scholarship is already assigned to this student for this session")

    gross = money(structure.gross_amount)
    amount = compute_discount(gross, _rule(s))
    try:
        assignment = StudentScholarship(
            tenant_id=tenant_id,
            student_id=payload.student_id,
            scholarship_id=s.id,
            session_id=payload.session_id,
            discount_amount=amount.to_decimal(),
            remarks=(payload.remarks or "").strip() or None,
            approved_by=approved_by,
        )
        db.add(assignment)
        await db.flush()
        await log_fee_audit(
            db, tenant_id, "student_scholarships", assignment.id,
            "CREATE", None,
            {"scholarship_id": str(s.id), "structure_id": str(structure.id), "discount_amount": str(amount)},
            approved_by,
        )
        await recompute_structure(db, tenant_id, structure, approved_by, reason="scholarship_assigned")
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Scholarship is already assigned to this student for this session")
    except ServiceError:
        await db.rollback()
        raise
    logger.info(
        f"Scholarship {s.id} assigned to student {payload.student_id}: {amount} off gross {gross}"
    )
    return _assignment_to_response(assignment, s)


async def list_student_scholarships(
    db: AsyncSession,
    tenant_id: UUID,
    student_id: UUID,
    session_id: Optional[UUID] = None,
) -> List[StudentScholarshipResponse]:
    await get_owned(db, Student, tenant_id, student_id, "Student")
    stmt = (
        select(StudentScholarship, Scholarship)
        .join(Scholarship, Scholarship.id == StudentScholarship.scholarship_id)
        .where(
            StudentScholarship.tenant_id == tenant_id,
            StudentScholarship.student_id == student_id,
        )
    )
    if session_id is not None:
        stmt = stmt.where(StudentScholarship.session_id == session_id)
    rows = (await db.execute(stmt.order_by(StudentScholarship.approved_at))).all()
    return [_assignment_to_response(a, s) for a, s in rows]


async def remove_student_scholarship(
    db: AsyncSession,
    tenant_id: UUID,
    assignment_id: UUID,
    changed_by: Optional[UUID] = None,
) -> None:
    assignment = await get_owned(db, StudentScholarship, tenant_id, assignment_id, "Scholarship assignment")
    structure = await _structure_for(db, tenant_id, assignment.student_id, assignment.session_id)
    await log_fee_audit(
        db, tenant_id, "student_scholarships", assignment.id,
        "DELETE",
        {"scholarship_id": str(assignment.scholarship_id), "discount_amount": str(money(assignment.discount_amount))},
        None,
        changed_by,
    )
    await db.delete(assignment)
    await db.flush()
    try:
        if structure is not None:
            await recompute_structure(db, tenant_id, structure, changed_by, reason="scholarship_removed")
        await db.commit()
    except ServiceError:
        await db.rollback()
        raise
    logger.info(f"Scholarship assignment {assignment_id} removed")
