"""Fee component master (Tuition, Transport, Exam, ...). Tenant-scoped."""

import uuid

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, String, Text, UniqueConstraint, Uuid

from fee_engine.core.time_utils import utcnow
from fee_engine.db.session import Base


class FeeComponent(Base):
    """Tenant-scoped fee line-item definition. Soft delete via is_active once referenced by a structure."""

    __tablename__ = "fee_components"
    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_fee_component_tenant_name"),
        CheckConstraint(
            "component_type IN ('tuition','admission','transport','lab','library','sports','exam','uniform','misc')",
            name="chk_fee_component_type",
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    # Stored as string; constrained by chk_fee_component_type
    component_type = Column(String(30), nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
