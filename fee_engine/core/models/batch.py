import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, UniqueConstraint, Uuid

from fee_engine.core.time_utils import utcnow
from fee_engine.db.session import Base


class Batch(Base):
    """A class/batch of students. Batch fee structures are defined per batch per session."""

    __tablename__ = "batches"
    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_batch_tenant_name"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
