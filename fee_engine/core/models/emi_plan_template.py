import uuid

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Uuid

from fee_engine.core.time_utils import utcnow
from fee_engine.db.session import Base


class EMIPlanTemplate(Base):
    """
    Reusable installment pattern.
    split_config is a list of {"percent": str, "due_days_from_start": int}; percents sum to exactly 100.
    """

    __tablename__ = "emi_plan_templates"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    installment_count = Column(Integer, nullable=False)
    split_config = Column(JSON, nullable=False)
    is_default = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
