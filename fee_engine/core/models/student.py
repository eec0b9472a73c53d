import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, Uuid

from fee_engine.core.enums import StudentStatus
from fee_engine.core.time_utils import utcnow
from fee_engine.db.session import Base


class Student(Base):
    """Student enrolled with a tenant. Only ACTIVE students receive batch fee structures."""

    __tablename__ = "students"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    batch_id = Column(Uuid(as_uuid=True), ForeignKey("batches.id", ondelete="SET NULL"), nullable=True, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False, default="")
    status = Column(String(20), nullable=False, default=StudentStatus.ACTIVE.value)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
