import uuid

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, String, UniqueConstraint, Uuid

from fee_engine.core.time_utils import utcnow
from fee_engine.db.session import Base


class AcademicSession(Base):
    """Academic session per tenant (e.g. "2025-26"). Fee structures and scholarships are session-scoped."""

    __tablename__ = "academic_sessions"
    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_academic_session_tenant_name"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(50), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    is_current = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
