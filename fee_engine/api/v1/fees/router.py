"""Fees router: batch fee structures, apply, student fee structures, custom discount, summary."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from fee_engine.auth.dependencies import get_current_user
from fee_engine.auth.rbac import check_permission
from fee_engine.auth.schemas import CurrentUser
from fee_engine.core.exceptions import ServiceError
from fee_engine.db.session import get_db

from .schemas import (
    ApplyBatchFeeStructureRequest,
    ApplyBatchFeeStructureResponse,
    BatchFeeStructureCreate,
    BatchFeeStructureResponse,
    BatchFeeStructureUpdate,
    CustomDiscountInput,
    StudentFeeStructureCreate,
    StudentFeeStructureResponse,
    StudentFeeSummaryResponse,
)
from . import service

router = APIRouter(prefix="/api/v1/fees", tags=["fees"])


# --- Batch Fee Structure ---
@router.post(
    "/batch-structure",
    response_model=BatchFeeStructureResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("fees", "create"))],
)
async def create_batch_fee_structure(
    payload: BatchFeeStructureCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> BatchFeeStructureResponse:
    try:
        return await service.create_batch_fee_structure(
            db, current_user.tenant_id, payload, changed_by=current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/batch-structure",
    response_model=List[BatchFeeStructureResponse],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def list_batch_fee_structures(
    session_id: Optional[UUID] = Query(None),
    active_only: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[BatchFeeStructureResponse]:
    return await service.list_batch_fee_structures(
        db, current_user.tenant_id, session_id=session_id, active_only=active_only
    )


@router.get(
    "/batch-structure/{batch_id}",
    response_model=BatchFeeStructureResponse,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_batch_fee_structure(
    batch_id: UUID,
    session_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> BatchFeeStructureResponse:
    try:
        return await service.get_batch_fee_structure_by_batch(
            db, current_user.tenant_id, batch_id, session_id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.patch(
    "/batch-structure/{structure_id}",
    response_model=BatchFeeStructureResponse,
    dependencies=[Depends(check_permission("fees", "update"))],
)
async def update_batch_fee_structure(
    structure_id: UUID,
    payload: BatchFeeStructureUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> BatchFeeStructureResponse:
    try:
        return await service.update_batch_fee_structure(
            db, current_user.tenant_id, structure_id, payload, changed_by=current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/batch-structure/{structure_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(check_permission("fees", "delete"))],
)
async def delete_batch_fee_structure(
    structure_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> None:
    try:
        await service.delete_batch_fee_structure(
            db, current_user.tenant_id, structure_id, changed_by=current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/batch-structure/{structure_id}/apply",
    response_model=ApplyBatchFeeStructureResponse,
    dependencies=[Depends(check_permission("fees", "create"))],
)
async def apply_batch_fee_structure(
    structure_id: UUID,
    payload: Optional[ApplyBatchFeeStructureRequest] = None,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ApplyBatchFeeStructureResponse:
    payload = payload or ApplyBatchFeeStructureRequest()
    try:
        return await service.apply_batch_fee_structure(
            db,
            current_user.tenant_id,
            structure_id,
            overwrite_existing=payload.overwrite_existing,
            changed_by=current_user.id,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# --- Student Fee Structure ---
@router.post(
    "/student-structure",
    response_model=StudentFeeStructureResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("fees", "create"))],
)
async def create_student_fee_structure(
    payload: StudentFeeStructureCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> StudentFeeStructureResponse:
    try:
        return await service.create_student_fee_structure(
            db, current_user.tenant_id, payload, changed_by=current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/student-structure/summary/{student_id}",
    response_model=StudentFeeSummaryResponse,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_student_fee_summary(
    student_id: UUID,
    session_id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> StudentFeeSummaryResponse:
    try:
        return await service.get_student_fee_summary(
            db, current_user.tenant_id, student_id, session_id=session_id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/student-structure/id/{structure_id}",
    response_model=StudentFeeStructureResponse,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_student_fee_structure_by_id(
    structure_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> StudentFeeStructureResponse:
    try:
        return await service.get_student_fee_structure_by_id(db, current_user.tenant_id, structure_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/student-structure/{student_id}",
    response_model=StudentFeeStructureResponse,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_student_fee_structure(
    student_id: UUID,
    session_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> StudentFeeStructureResponse:
    try:
        return await service.get_student_fee_structure(
            db, current_user.tenant_id, student_id, session_id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put(
    "/student-structure/{structure_id}/custom-discount",
    response_model=StudentFeeStructureResponse,
    dependencies=[Depends(check_permission("fees", "update"))],
)
async def set_custom_discount(
    structure_id: UUID,
    payload: CustomDiscountInput,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> StudentFeeStructureResponse:
    try:
        return await service.set_custom_discount(
            db, current_user.tenant_id, structure_id, payload, changed_by=current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/student-structure/{structure_id}/custom-discount",
    response_model=StudentFeeStructureResponse,
    dependencies=[Depends(check_permission("fees", "update"))],
)
async def remove_custom_discount(
    structure_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> StudentFeeStructureResponse:
    try:
        return await service.remove_custom_discount(
            db, current_user.tenant_id, structure_id, changed_by=current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
