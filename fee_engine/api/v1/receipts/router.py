"""Receipts router."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from fee_engine.auth.dependencies import get_current_user
from fee_engine.auth.rbac import check_permission
from fee_engine.auth.schemas import CurrentUser
from fee_engine.core.exceptions import ServiceError
from fee_engine.core.schemas import PaginatedResponse
from fee_engine.db.session import get_db

from .schemas import ReceiptResponse
from . import service

router = APIRouter(prefix="/api/v1/fees/receipts", tags=["receipts"])


@router.get(
    "",
    response_model=PaginatedResponse[ReceiptResponse],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def list_receipts(
    student_id: Optional[UUID] = Query(None),
    session_id: Optional[UUID] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> PaginatedResponse[ReceiptResponse]:
    return await service.list_receipts(
        db,
        current_user.tenant_id,
        student_id=student_id,
        session_id=session_id,
        page=page,
        limit=limit,
    )


@router.get(
    "/{receipt_id}",
    response_model=ReceiptResponse,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_receipt(
    receipt_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ReceiptResponse:
    try:
        return await service.get_receipt(db, current_user.tenant_id, receipt_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/{receipt_id}/pdf",
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def download_receipt_pdf(
    receipt_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> Response:
    try:
        receipt_number, content = await service.render_receipt_pdf(db, current_user.tenant_id, receipt_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{receipt_number}.pdf"'},
    )
