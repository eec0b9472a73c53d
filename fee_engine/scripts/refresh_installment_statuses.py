"""
Refresh cached installment statuses (upcoming/partial -> overdue once the due date passes) and
mark active payment links past expires_at as expired.

Idempotent; meant to be called daily by an external scheduler.
Usage: python -m fee_engine.scripts.refresh_installment_statuses [--tenant-id UUID] [--dry-run]
"""

import argparse
import asyncio
import sys
from datetime import date
from typing import Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fee_engine.core.enums import PaymentLinkStatus
from fee_engine.core.models import FeeInstallment, PaymentLink
from fee_engine.core.services import refresh_status
from fee_engine.core.time_utils import today as utc_today, utcnow
from fee_engine.db.session import AsyncSessionLocal

BATCH_SIZE = 500


async def refresh_installments(
    session: AsyncSession,
    today: date,
    tenant_id: Optional[UUID] = None,
    dry_run: bool = False,
) -> int:
    """Walk not-yet-paid installments in id order; returns how many statuses changed."""
    changed = 0
    last_id = None
    while True:
        stmt = (
            select(FeeInstallment)
            .where(FeeInstallment.paid_amount < FeeInstallment.amount)
            .order_by(FeeInstallment.id)
            .limit(BATCH_SIZE)
        )
        if tenant_id is not None:
            stmt = stmt.where(FeeInstallment.tenant_id == tenant_id)
        if last_id is not None:
            stmt = stmt.where(FeeInstallment.id > last_id)
        rows = (await session.execute(stmt)).scalars().all()
        if not rows:
            break
        for inst in rows:
            if refresh_status(inst, today):
                changed += 1
        last_id = rows[-1].id
        if dry_run:
            await session.rollback()
        else:
            await session.commit()
    return changed


async def expire_payment_links(
    session: AsyncSession,
    tenant_id: Optional[UUID] = None,
    dry_run: bool = False,
) -> int:
    stmt = (
        update(PaymentLink)
        .where(
            PaymentLink.status == PaymentLinkStatus.active.value,
            PaymentLink.expires_at < utcnow(),
        )
        .values(status=PaymentLinkStatus.expired.value)
    )
    if tenant_id is not None:
        stmt = stmt.where(PaymentLink.tenant_id == tenant_id)
    result = await session.execute(stmt, execution_options={"synchronize_session": False})
    if dry_run:
        await session.rollback()
    else:
        await session.commit()
    return result.rowcount or 0


async def refresh_all(tenant_id: Optional[UUID] = None, dry_run: bool = False) -> None:
    async with AsyncSessionLocal() as session:
        today = utc_today()
        installments = await refresh_installments(session, today, tenant_id=tenant_id, dry_run=dry_run)
        links = await expire_payment_links(session, tenant_id=tenant_id, dry_run=dry_run)
    prefix = "[dry run] " if dry_run else ""
    print(f"{prefix}{installments} installment status(es) changed as of {today.isoformat()}.")
    print(f"{prefix}{links} payment link(s) expired.")


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("--tenant-id", type=UUID, default=None, help="Only refresh this tenant")
    parser.add_argument("--dry-run", action="store_true", help="Report changes without committing")
    args = parser.parse_args(argv)
    try:
        asyncio.run(refresh_all(tenant_id=args.tenant_id, dry_run=args.dry_run))
    except Exception as e:
        print(f"Refresh failed: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
