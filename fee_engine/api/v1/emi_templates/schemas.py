"""EMI plan template schemas."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class SplitEntryInput(BaseModel):
    percent: Decimal = Field(..., gt=0, le=100)
    due_days_from_start: int = Field(..., ge=0)


class EMITemplateCreate(BaseModel):
    """split_config is generated evenly (remainder on the last installment) when omitted."""

    name: str = Field(..., min_length=1, max_length=100)
    installment_count: int = Field(..., ge=1, le=36)
    split_config: Optional[List[SplitEntryInput]] = None
    interval_days: Optional[int] = Field(None, ge=0)
    is_default: bool = False


class EMITemplateUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    installment_count: Optional[int] = Field(None, ge=1, le=36)
    split_config: Optional[List[SplitEntryInput]] = None
    is_default: Optional[bool] = None
    is_active: Optional[bool] = None


class SplitEntryResponse(BaseModel):
    percent: Decimal
    due_days_from_start: int


class EMITemplateResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    name: str
    installment_count: int
    split_config: List[SplitEntryResponse]
    is_default: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime
