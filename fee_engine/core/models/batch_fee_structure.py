"""Batch fee structure: fee template per batch per session."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from fee_engine.core.time_utils import utcnow
from fee_engine.db.session import Base


class BatchFeeStructure(Base):
    """Template only; payments are tracked on the student structures copied from it."""

    __tablename__ = "batch_fee_structures"
    __table_args__ = (
        UniqueConstraint("batch_id", "session_id", name="uq_batch_fee_structure_batch_session"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    batch_id = Column(Uuid(as_uuid=True), ForeignKey("batches.id", ondelete="CASCADE"), nullable=False)
    session_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("academic_sessions.id", ondelete="RESTRICT"),
        nullable=False,
    )
    name = Column(String(255), nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    line_items = relationship(
        "BatchFeeLineItem",
        cascade="all, delete-orphan",
        order_by="BatchFeeLineItem.position",
        lazy="selectin",
    )


class BatchFeeLineItem(Base):
    __tablename__ = "batch_fee_line_items"
    __table_args__ = (
        UniqueConstraint(
            "batch_fee_structure_id",
            "fee_component_id",
            name="uq_batch_fee_line_item_structure_component",
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    batch_fee_structure_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("batch_fee_structures.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    fee_component_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("fee_components.id", ondelete="RESTRICT"),
        nullable=False,
    )
    amount = Column(Numeric(12, 2), nullable=False)
    position = Column(Integer, nullable=False, default=0)
