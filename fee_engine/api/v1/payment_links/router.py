"""Payment links router, plus the unauthenticated /pay/{short_code} lookup."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from fee_engine.auth.dependencies import get_current_user
from fee_engine.auth.rbac import check_permission
from fee_engine.auth.schemas import CurrentUser
from fee_engine.core.enums import PaymentLinkStatus
from fee_engine.core.exceptions import ServiceError
from fee_engine.core.schemas import PaginatedResponse
from fee_engine.db.session import get_db

from .schemas import PaymentLinkCreate, PaymentLinkResponse, PublicPaymentLinkResponse
from . import service

router = APIRouter(prefix="/api/v1/payment-links", tags=["payment-links"])
public_router = APIRouter(prefix="/api/v1/pay", tags=["payment-links"])


@router.post(
    "",
    response_model=PaymentLinkResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("fees", "create"))],
)
async def create_payment_link(
    payload: PaymentLinkCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> PaymentLinkResponse:
    try:
        return await service.create_payment_link(
            db, current_user.tenant_id, payload, created_by=current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=PaginatedResponse[PaymentLinkResponse],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def list_payment_links(
    status: Optional[PaymentLinkStatus] = Query(None),
    student_id: Optional[UUID] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> PaginatedResponse[PaymentLinkResponse]:
    return await service.list_payment_links(
        db,
        current_user.tenant_id,
        status=status,
        student_id=student_id,
        page=page,
        limit=limit,
    )


@router.get(
    "/{link_id}",
    response_model=PaymentLinkResponse,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_payment_link(
    link_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> PaymentLinkResponse:
    try:
        return await service.get_payment_link(db, current_user.tenant_id, link_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{link_id}",
    response_model=PaymentLinkResponse,
    dependencies=[Depends(check_permission("fees", "update"))],
)
async def cancel_payment_link(
    link_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> PaymentLinkResponse:
    try:
        return await service.cancel_payment_link(
            db, current_user.tenant_id, link_id, changed_by=current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@public_router.get("/{short_code}", response_model=PublicPaymentLinkResponse)
async def get_public_payment_link(
    short_code: str,
    db: AsyncSession = Depends(get_db),
) -> PublicPaymentLinkResponse:
    try:
        return await service.get_public_payment_link(db, short_code)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
