"""EMI plan template service."""

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fee_engine.core.exceptions import ValidationError
from fee_engine.core.fees import generate_split, parse_split, validate_split
from fee_engine.core.models import EMIPlanTemplate
from fee_engine.core.services import get_owned, to_uuid

from .schemas import EMITemplateCreate, EMITemplateResponse, EMITemplateUpdate, SplitEntryResponse

logger = logging.getLogger(__name__)


def _to_response(t: EMIPlanTemplate) -> EMITemplateResponse:
    return EMITemplateResponse(
        id=to_uuid(t.id),
        tenant_id=to_uuid(t.tenant_id),
        name=t.name,
        installment_count=t.installment_count,
        split_config=[
            SplitEntryResponse(percent=e.percent, due_days_from_start=e.due_days_from_start)
            for e in parse_split(t.split_config)
        ],
        is_default=t.is_default,
        is_active=t.is_active,
        created_at=t.created_at,
        updated_at=t.updated_at,
    )


async def _clear_default(db: AsyncSession, tenant_id: UUID, keep_id: Optional[UUID] = None) -> None:
    stmt = (
        update(EMIPlanTemplate)
        .where(EMIPlanTemplate.tenant_id == tenant_id, EMIPlanTemplate.is_default.is_(True))
        .values(is_default=False)
    )
    if keep_id is not None:
        stmt = stmt.where(EMIPlanTemplate.id != keep_id)
    await db.execute(stmt, execution_options={"synchronize_session": "fetch"})


async def create_emi_template(
    db: AsyncSession,
    tenant_id: UUID,
    payload: EMITemplateCreate,
) -> EMITemplateResponse:
    if payload.split_config is None:
        split = generate_split(payload.installment_count, payload.interval_days)
    else:
        split = validate_split(payload.split_config, payload.installment_count)
    if payload.is_default:
        await _clear_default(db, tenant_id)
    t = EMIPlanTemplate(
        tenant_id=tenant_id,
        name=payload.name.strip(),
        installment_count=payload.installment_count,
        split_config=[e.as_config() for e in split],
        is_default=payload.is_default,
        is_active=True,
    )
    db.add(t)
    await db.commit()
    await db.refresh(t)
    return _to_response(t)


async def list_emi_templates(
    db: AsyncSession,
    tenant_id: UUID,
    active_only: bool = True,
) -> List[EMITemplateResponse]:
    stmt = select(EMIPlanTemplate).where(EMIPlanTemplate.tenant_id == tenant_id)
    if active_only:
        stmt = stmt.where(EMIPlanTemplate.is_active.is_(True))
    stmt = stmt.order_by(EMIPlanTemplate.is_default.desc(), EMIPlanTemplate.installment_count)
    result = await db.execute(stmt)
    return [_to_response(t) for t in result.scalars().all()]


async def get_emi_template(db: AsyncSession, tenant_id: UUID, template_id: UUID) -> EMITemplateResponse:
    return _to_response(await get_owned(db, EMIPlanTemplate, tenant_id, template_id, "EMI template"))


async def update_emi_template(
    db: AsyncSession,
    tenant_id: UUID,
    template_id: UUID,
    payload: EMITemplateUpdate,
) -> EMITemplateResponse:
    """
    Installments already generated from the template keep their amounts and dates.
    Deactivating the default template leaves the tenant without a default.
    """
    t = await get_owned(db, EMIPlanTemplate, tenant_id, template_id, "EMI template")
    is_active = t.is_active if payload.is_active is None else payload.is_active
    if payload.is_default and not is_active:
        raise ValidationError("An inactive template cannot be the default")
    count = payload.installment_count or t.installment_count
    if payload.split_config is not None:
        t.split_config = [e.as_config() for e in validate_split(payload.split_config, count)]
    elif count != t.installment_count:
        t.split_config = [e.as_config() for e in generate_split(count)]
    t.installment_count = count
    if payload.name is not None:
        t.name = payload.name.strip()
    t.is_active = is_active
    if payload.is_default:
        await _clear_default(db, tenant_id, keep_id=t.id)
        t.is_default = True
    elif payload.is_default is False or not is_active:
        if t.is_default:
            logger.info(f"EMI template {t.id} is no longer the default for tenant {tenant_id}")
        t.is_default = False
    await db.commit()
    await db.refresh(t)
    return _to_response(t)
