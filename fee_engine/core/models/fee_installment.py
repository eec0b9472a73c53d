import uuid

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, Numeric, String, UniqueConstraint, Uuid

from fee_engine.core.enums import InstallmentStatus
from fee_engine.core.time_utils import utcnow
from fee_engine.db.session import Base


class FeeInstallment(Base):
    """
    One scheduled portion of a structure's net amount.
    status is a cache of derive_status(); refreshed whenever paid_amount changes or on read.
    """

    __tablename__ = "fee_installments"
    __table_args__ = (
        UniqueConstraint(
            "student_fee_structure_id",
            "installment_number",
            name="uq_fee_installment_structure_number",
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    student_fee_structure_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("student_fee_structures.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    installment_number = Column(Integer, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    due_date = Column(Date, nullable=False)
    paid_amount = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(String(20), nullable=False, default=InstallmentStatus.upcoming.value)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
