"""Scholarship catalog and assignment schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from fee_engine.core.enums import DiscountType, ScholarshipBasis


class ScholarshipCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    type: DiscountType
    basis: ScholarshipBasis = ScholarshipBasis.CUSTOM
    value: Decimal = Field(..., gt=0)
    max_amount: Optional[Decimal] = Field(None, gt=0)
    description: Optional[str] = None


class ScholarshipUpdate(BaseModel):
    """Value changes apply to future assignments only."""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    value: Optional[Decimal] = Field(None, gt=0)
    max_amount: Optional[Decimal] = Field(None, gt=0)
    description: Optional[str] = None
    is_active: Optional[bool] = None


class ScholarshipResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    name: str
    type: DiscountType
    basis: ScholarshipBasis
    value: Decimal
    max_amount: Optional[Decimal] = None
    description: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class ScholarshipAssign(BaseModel):
    student_id: UUID
    scholarship_id: UUID
    session_id: UUID
    remarks: Optional[str] = None


class StudentScholarshipResponse(BaseModel):
    id: UUID
    student_id: UUID
    scholarship_id: UUID
    scholarship_name: Optional[str] = None
    scholarship_type: Optional[DiscountType] = None
    session_id: UUID
    discount_amount: Decimal
    remarks: Optional[str] = None
    approved_by: Optional[UUID] = None
    approved_at: datetime
