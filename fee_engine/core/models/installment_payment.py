"""Installment payment: append-only ledger of money received against an installment."""

import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Numeric, String, Text, Uuid

from fee_engine.core.time_utils import utcnow
from fee_engine.db.session import Base


class InstallmentPayment(Base):
    """Never updated or deleted once written; the installment's paid_amount is the running sum."""

    __tablename__ = "installment_payments"
    __table_args__ = (
        CheckConstraint("amount > 0", name="chk_installment_payment_amount_positive"),
        CheckConstraint("payment_mode IN ('cash','upi','bank')", name="chk_installment_payment_mode"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    installment_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("fee_installments.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    amount = Column(Numeric(12, 2), nullable=False)
    payment_mode = Column(String(10), nullable=False)
    transaction_ref = Column(String(100), nullable=True)
    remarks = Column(Text, nullable=True)
    received_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    received_by = Column(Uuid(as_uuid=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
