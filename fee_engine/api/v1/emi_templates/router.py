"""EMI plan templates router."""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from fee_engine.auth.dependencies import get_current_user
from fee_engine.auth.rbac import check_permission
from fee_engine.auth.schemas import CurrentUser
from fee_engine.core.exceptions import ServiceError
from fee_engine.db.session import get_db

from .schemas import EMITemplateCreate, EMITemplateResponse, EMITemplateUpdate
from . import service

router = APIRouter(prefix="/api/v1/fees/emi-templates", tags=["emi-templates"])


@router.post(
    "",
    response_model=EMITemplateResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("fees", "create"))],
)
async def create_emi_template(
    payload: EMITemplateCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> EMITemplateResponse:
    try:
        return await service.create_emi_template(db, current_user.tenant_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=List[EMITemplateResponse],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def list_emi_templates(
    active_only: bool = Query(True),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[EMITemplateResponse]:
    return await service.list_emi_templates(db, current_user.tenant_id, active_only=active_only)


@router.get(
    "/{template_id}",
    response_model=EMITemplateResponse,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_emi_template(
    template_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> EMITemplateResponse:
    try:
        return await service.get_emi_template(db, current_user.tenant_id, template_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.patch(
    "/{template_id}",
    response_model=EMITemplateResponse,
    dependencies=[Depends(check_permission("fees", "update"))],
)
async def update_emi_template(
    template_id: UUID,
    payload: EMITemplateUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> EMITemplateResponse:
    try:
        return await service.update_emi_template(db, current_user.tenant_id, template_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
