"""Installments router: generate, pending, per-student schedule, payments, delete."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from fee_engine.auth.dependencies import get_current_user
from fee_engine.auth.rbac import check_permission
from fee_engine.auth.schemas import CurrentUser
from fee_engine.core.enums import InstallmentStatus
from fee_engine.core.exceptions import ServiceError
from fee_engine.core.schemas import PaginatedResponse
from fee_engine.db.session import get_db

from .schemas import (
    DeleteInstallmentsResponse,
    GenerateInstallmentsRequest,
    GenerateInstallmentsResponse,
    PaymentCreate,
    PaymentRecordResponse,
    PendingInstallment,
    StudentInstallmentsResponse,
)
from . import service

router = APIRouter(prefix="/api/v1/fees/installments", tags=["installments"])


@router.post(
    "/generate",
    response_model=GenerateInstallmentsResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("fees", "create"))],
)
async def generate_installments(
    payload: GenerateInstallmentsRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> GenerateInstallmentsResponse:
    try:
        return await service.generate_installments(
            db, current_user.tenant_id, payload, changed_by=current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/pending",
    response_model=PaginatedResponse[PendingInstallment],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def list_pending_installments(
    status: Optional[InstallmentStatus] = Query(None),
    batch_id: Optional[UUID] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> PaginatedResponse[PendingInstallment]:
    return await service.list_pending_installments(
        db,
        current_user.tenant_id,
        status=status,
        batch_id=batch_id,
        page=page,
        limit=limit,
    )


@router.delete(
    "",
    response_model=DeleteInstallmentsResponse,
    dependencies=[Depends(check_permission("fees", "delete"))],
)
async def delete_installments(
    fee_structure_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> DeleteInstallmentsResponse:
    try:
        return await service.delete_installments(
            db, current_user.tenant_id, fee_structure_id, changed_by=current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/{student_id}",
    response_model=StudentInstallmentsResponse,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_student_installments(
    student_id: UUID,
    session_id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> StudentInstallmentsResponse:
    try:
        return await service.get_student_installments(
            db, current_user.tenant_id, student_id, session_id=session_id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{installment_id}/payment",
    response_model=PaymentRecordResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("fees", "update"))],
)
async def record_installment_payment(
    installment_id: UUID,
    payload: PaymentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> PaymentRecordResponse:
    try:
        return await service.record_payment(
            db, current_user.tenant_id, installment_id, payload, received_by=current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
