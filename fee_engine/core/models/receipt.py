import uuid

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Numeric, String, UniqueConstraint, Uuid

from fee_engine.core.time_utils import utcnow
from fee_engine.db.session import Base


class Receipt(Base):
    """Immutable, one per payment, written in the payment's transaction. snapshot freezes the printed figures."""

    __tablename__ = "receipts"
    __table_args__ = (
        UniqueConstraint("tenant_id", "receipt_number", name="uq_receipt_tenant_number"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    payment_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("installment_payments.id", ondelete="RESTRICT"),
        nullable=False,
        unique=True,
    )
    student_id = Column(Uuid(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    session_id = Column(Uuid(as_uuid=True), ForeignKey("academic_sessions.id", ondelete="RESTRICT"), nullable=False)
    receipt_number = Column(String(40), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_mode = Column(String(10), nullable=False)
    snapshot = Column(JSON, nullable=False)
    generated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
