import uuid

from sqlalchemy import Column, DateTime, String, Uuid

from fee_engine.core.time_utils import utcnow
from fee_engine.db.session import Base


class Tenant(Base):
    """
    Tenant (organization) in the multi-tenant platform.

    Every fee entity carries tenant_id and every query filters on it;
    rows of another tenant are treated as not found.
    """

    __tablename__ = "tenants"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False, default="ACTIVE")
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
