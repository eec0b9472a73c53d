import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Numeric, String, Text, Uuid

from fee_engine.core.enums import PaymentLinkStatus
from fee_engine.core.time_utils import utcnow
from fee_engine.db.session import Base


class PaymentLink(Base):
    """Hosted-checkout link for an installment's outstanding balance. 'expired' is derived, persisted once seen."""

    __tablename__ = "payment_links"
    __table_args__ = (
        CheckConstraint(
            "status IN ('active','paid','expired','cancelled')",
            name="chk_payment_link_status",
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    installment_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("fee_installments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    short_code = Column(String(16), unique=True, nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=PaymentLinkStatus.active.value)
    payment_url = Column(String(500), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    created_by = Column(Uuid(as_uuid=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
