"""Student fee structure: one per student per session, copied from a batch template or built ad hoc."""

import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from fee_engine.core.enums import FeeStructureSource
from fee_engine.core.time_utils import utcnow
from fee_engine.db.session import Base


class StudentFeeStructure(Base):
    """
    gross_amount = sum of line item original amounts (waived items included).
    net_amount = gross - waived - scholarship - custom discount, floored at 0.
    pending_amount = sum of (amount - paid) over installments, or net when none exist.
    """

    __tablename__ = "student_fee_structures"
    __table_args__ = (
        UniqueConstraint("student_id", "session_id", name="uq_student_fee_structure_student_session"),
        CheckConstraint(
            "source IN ('batch_default','custom')",
            name="chk_student_fee_structure_source",
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Uuid(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    session_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("academic_sessions.id", ondelete="RESTRICT"),
        nullable=False,
    )
    source = Column(String(20), nullable=False, default=FeeStructureSource.CUSTOM.value)
    batch_fee_structure_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("batch_fee_structures.id", ondelete="SET NULL"),
        nullable=True,
    )

    gross_amount = Column(Numeric(12, 2), nullable=False)
    waived_amount = Column(Numeric(12, 2), nullable=False, default=0)
    scholarship_amount = Column(Numeric(12, 2), nullable=False, default=0)

    custom_discount_type = Column(String(20), nullable=True)
    custom_discount_value = Column(Numeric(12, 2), nullable=True)
    custom_discount_amount = Column(Numeric(12, 2), nullable=True)
    custom_discount_remarks = Column(Text, nullable=True)

    net_amount = Column(Numeric(12, 2), nullable=False)
    pending_amount = Column(Numeric(12, 2), nullable=False)
    remarks = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    line_items = relationship(
        "StudentFeeLineItem",
        cascade="all, delete-orphan",
        order_by="StudentFeeLineItem.position",
        lazy="selectin",
    )


class StudentFeeLineItem(Base):
    """original_amount is frozen at creation; a waiver sets adjusted_amount to 0 and needs a reason."""

    __tablename__ = "student_fee_line_items"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_fee_structure_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("student_fee_structures.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    fee_component_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("fee_components.id", ondelete="RESTRICT"),
        nullable=False,
    )
    original_amount = Column(Numeric(12, 2), nullable=False)
    adjusted_amount = Column(Numeric(12, 2), nullable=False)
    waived = Column(Boolean, nullable=False, default=False)
    waiver_reason = Column(Text, nullable=True)
    position = Column(Integer, nullable=False, default=0)
