"""Fee structure schemas: batch templates, student structures, custom discounts, summaries."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from fee_engine.core.enums import DiscountType, FeeComponentType, FeeStructureSource


# --- Batch Fee Structure ---
class FeeLineItemInput(BaseModel):
    fee_component_id: UUID
    amount: Decimal = Field(..., gt=0, decimal_places=2)


class FeeLineItem(BaseModel):
    """Line item of a batch structure with component details."""

    id: UUID
    fee_component_id: UUID
    fee_component_name: Optional[str] = None
    fee_component_type: Optional[FeeComponentType] = None
    amount: Decimal


class BatchFeeStructureCreate(BaseModel):
    batch_id: UUID
    session_id: UUID
    name: str = Field(..., min_length=1, max_length=255)
    line_items: List[FeeLineItemInput] = Field(..., min_length=1)


class BatchFeeStructureUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    line_items: Optional[List[FeeLineItemInput]] = Field(None, min_length=1)
    is_active: Optional[bool] = None


class BatchFeeStructureResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    batch_id: UUID
    batch_name: Optional[str] = None
    session_id: UUID
    session_name: Optional[str] = None
    name: str
    total_amount: Decimal
    is_active: bool
    created_at: datetime
    updated_at: datetime
    line_items: List[FeeLineItem]


class ApplyBatchFeeStructureRequest(BaseModel):
    overwrite_existing: bool = False


class ApplyError(BaseModel):
    student_id: UUID
    message: str


class OrphanedStructure(BaseModel):
    """A replaced structure whose existing installments and payments were computed from the old line items."""

    student_id: UUID
    student_fee_structure_id: UUID
    installment_count: int
    paid_amount: Decimal


class ApplyBatchFeeStructureResponse(BaseModel):
    applied: int
    skipped: int
    errors: List[ApplyError] = Field(default_factory=list)
    orphaned: List[OrphanedStructure] = Field(default_factory=list)


# --- Student Fee Structure ---
class StudentFeeLineItemInput(BaseModel):
    fee_component_id: UUID
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    waived: bool = False
    waiver_reason: Optional[str] = None


class WaiverInput(BaseModel):
    fee_component_id: UUID
    waiver_reason: str = Field(..., min_length=1)


class StudentFeeStructureCreate(BaseModel):
    """Either ad hoc line_items, or batch_fee_structure_id (optionally with waivers) to copy a template."""

    student_id: UUID
    session_id: UUID
    line_items: List[StudentFeeLineItemInput] = Field(default_factory=list)
    batch_fee_structure_id: Optional[UUID] = None
    waivers: List[WaiverInput] = Field(default_factory=list)
    remarks: Optional[str] = None

    @model_validator(mode="after")
    def validate_source(self) -> "StudentFeeStructureCreate":
        if self.batch_fee_structure_id is None:
            if not self.line_items:
                raise ValueError("line_items is required when batch_fee_structure_id is not given")
            if self.waivers:
                raise ValueError("waivers apply only when copying a batch fee structure")
        elif self.line_items:
            raise ValueError("line_items cannot be combined with batch_fee_structure_id")
        return self


class StudentFeeLineItemResponse(BaseModel):
    id: UUID
    fee_component_id: UUID
    fee_component_name: Optional[str] = None
    fee_component_type: Optional[FeeComponentType] = None
    original_amount: Decimal
    adjusted_amount: Decimal
    waived: bool
    waiver_reason: Optional[str] = None


class CustomDiscountInput(BaseModel):
    type: DiscountType
    value: Decimal = Field(..., gt=0)
    remarks: Optional[str] = None


class CustomDiscountDisplay(BaseModel):
    type: DiscountType
    value: Decimal
    amount: Decimal
    remarks: Optional[str] = None


class StudentFeeStructureResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    student_id: UUID
    session_id: UUID
    source: FeeStructureSource
    batch_fee_structure_id: Optional[UUID] = None
    gross_amount: Decimal
    waived_amount: Decimal
    scholarship_amount: Decimal
    custom_discount: Optional[CustomDiscountDisplay] = None
    net_amount: Decimal
    pending_amount: Decimal
    remarks: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    line_items: List[StudentFeeLineItemResponse]


# --- Summary ---
class SummaryStudent(BaseModel):
    id: UUID
    full_name: str


class SummarySession(BaseModel):
    id: UUID
    name: str
    is_current: bool


class NextDue(BaseModel):
    installment_number: int
    amount: Decimal
    due_date: date


class FeeStructureSummary(BaseModel):
    id: UUID
    session: SummarySession
    gross_amount: Decimal
    scholarship_amount: Decimal
    custom_discount: Optional[CustomDiscountDisplay] = None
    net_amount: Decimal
    total_paid: Decimal
    pending_amount: Decimal
    total_installments: int
    paid_installments: int
    next_due: Optional[NextDue] = None


class StudentFeeSummaryResponse(BaseModel):
    student: SummaryStudent
    fee_structures: List[FeeStructureSummary]
