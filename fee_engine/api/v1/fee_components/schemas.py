"""Fee component schemas."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from fee_engine.core.enums import FeeComponentType


class FeeComponentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    type: FeeComponentType
    description: Optional[str] = None


class FeeComponentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    is_active: Optional[bool] = None


class FeeComponentResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    name: str
    type: FeeComponentType
    description: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class FeeComponentDeleteResponse(BaseModel):
    id: UUID
    deleted: bool
    deactivated: bool
