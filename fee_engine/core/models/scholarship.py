"""Scholarship catalog and per-student, per-session assignments."""

import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)

from fee_engine.core.time_utils import utcnow
from fee_engine.db.session import Base


class Scholarship(Base):
    """Reusable named discount. value is a percentage (0-100] or a currency amount (> 0)."""

    __tablename__ = "scholarships"
    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_scholarship_tenant_name"),
        CheckConstraint("value > 0", name="chk_scholarship_value_positive"),
        CheckConstraint(
            "scholarship_type IN ('percentage','fixed_amount')",
            name="chk_scholarship_type",
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    scholarship_type = Column(String(20), nullable=False)
    basis = Column(String(30), nullable=False)
    value = Column(Numeric(12, 2), nullable=False)
    # Cap on the computed amount for percentage scholarships
    max_amount = Column(Numeric(12, 2), nullable=True)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class StudentScholarship(Base):
    """
    Scholarship granted to a student for a session.
    discount_amount is a snapshot taken at assignment; later edits to the scholarship do not change it.
    """

    __tablename__ = "student_scholarships"
    __table_args__ = (
        UniqueConstraint(
            "student_id",
            "scholarship_id",
            "session_id",
            name="uq_student_scholarship_student_scholarship_session",
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Uuid(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    scholarship_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("scholarships.id", ondelete="RESTRICT"),
        nullable=False,
    )
    session_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("academic_sessions.id", ondelete="RESTRICT"),
        nullable=False,
    )
    discount_amount = Column(Numeric(12, 2), nullable=False)
    remarks = Column(Text, nullable=True)
    approved_by = Column(Uuid(as_uuid=True), nullable=True)
    approved_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
