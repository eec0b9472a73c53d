"""Fee component service layer."""

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import exists, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fee_engine.core.enums import FeeComponentType
from fee_engine.core.exceptions import ConflictError
from fee_engine.core.models import BatchFeeLineItem, FeeComponent, StudentFeeLineItem
from fee_engine.core.services import get_owned, to_uuid

from .schemas import FeeComponentCreate, FeeComponentDeleteResponse, FeeComponentResponse, FeeComponentUpdate

logger = logging.getLogger(__name__)

DUPLICATE_NAME = "A fee component with this name already exists"


def _clean(text: Optional[str]) -> Optional[str]:
    return (text or "").strip() or None


def _as_response(component: FeeComponent) -> FeeComponentResponse:
    return FeeComponentResponse(
        id=to_uuid(component.id),
        tenant_id=to_uuid(component.tenant_id),
        name=component.name,
        type=component.component_type,
        description=component.description,
        is_active=component.is_active,
        created_at=component.created_at,
        updated_at=component.updated_at,
    )


async def _save(db: AsyncSession, component: FeeComponent) -> FeeComponentResponse:
    # (tenant_id, name) is unique
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(DUPLICATE_NAME)
    await db.refresh(component)
    return _as_response(component)


async def create_fee_component(
    db: AsyncSession,
    tenant_id: UUID,
    payload: FeeComponentCreate,
) -> FeeComponentResponse:
    component = FeeComponent(
        tenant_id=tenant_id,
        name=payload.name.strip(),
        component_type=FeeComponentType(payload.type).value,
        description=_clean(payload.description),
        is_active=True,
    )
    db.add(component)
    saved = await _save(db, component)
    logger.info(f"Fee component {saved.name} ({saved.type.value}) created for tenant {tenant_id}")
    return saved


async def list_fee_components(
    db: AsyncSession,
    tenant_id: UUID,
    active_only: bool = True,
    component_type: Optional[FeeComponentType] = None,
) -> List[FeeComponentResponse]:
    conditions = [FeeComponent.tenant_id == tenant_id]
    if active_only:
        conditions.append(FeeComponent.is_active.is_(True))
    if component_type is not None:
        conditions.append(FeeComponent.component_type == FeeComponentType(component_type).value)
    rows = await db.scalars(select(FeeComponent).where(*conditions).order_by(FeeComponent.name))
    return [_as_response(c) for c in rows]


async def get_fee_component(
    db: AsyncSession,
    tenant_id: UUID,
    fee_component_id: UUID,
) -> FeeComponentResponse:
    return _as_response(await get_owned(db, FeeComponent, tenant_id, fee_component_id, "Fee component"))


async def update_fee_component(
    db: AsyncSession,
    tenant_id: UUID,
    fee_component_id: UUID,
    payload: FeeComponentUpdate,
) -> FeeComponentResponse:
    component = await get_owned(db, FeeComponent, tenant_id, fee_component_id, "Fee component")
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "name" in changes:
        component.name = changes["name"].strip()
    if "description" in changes:
        component.description = _clean(changes["description"])
    if "is_active" in changes:
        component.is_active = changes["is_active"]
    return await _save(db, component)


async def delete_fee_component(
    db: AsyncSession,
    tenant_id: UUID,
    fee_component_id: UUID,
) -> FeeComponentDeleteResponse:
    """Hard delete while unreferenced; once any structure uses it, only deactivate."""
    component = await get_owned(db, FeeComponent, tenant_id, fee_component_id, "Fee component")
    in_use = await db.scalar(
        select(
            or_(
                exists().where(BatchFeeLineItem.fee_component_id == component.id),
                exists().where(StudentFeeLineItem.fee_component_id == component.id),
            )
        )
    )
    if in_use:
        component.is_active = False
        await db.commit()
        logger.info(f"Fee component {component.id} is referenced by fee structures; deactivated instead of deleted")
        return FeeComponentDeleteResponse(id=component.id, deleted=False, deactivated=True)
    await db.delete(component)
    await db.commit()
    return FeeComponentDeleteResponse(id=fee_component_id, deleted=True, deactivated=False)
