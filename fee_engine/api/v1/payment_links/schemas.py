"""Payment link schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from fee_engine.core.enums import PaymentLinkStatus


class PaymentLinkCreate(BaseModel):
    """student_fee_id is accepted as an alias of installment_id."""

    installment_id: Optional[UUID] = None
    student_fee_id: Optional[UUID] = None
    expires_in_days: Optional[int] = Field(None, ge=1, le=90)
    description: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def resolve_installment(self) -> "PaymentLinkCreate":
        if self.installment_id is None:
            self.installment_id = self.student_fee_id
        if self.installment_id is None:
            raise ValueError("installment_id is required")
        return self


class PaymentLinkResponse(BaseModel):
    id: UUID
    installment_id: UUID
    student_id: Optional[UUID] = None
    short_code: str
    amount: Decimal
    description: Optional[str] = None
    status: PaymentLinkStatus
    payment_url: str
    expires_at: datetime
    paid_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime


class PublicPaymentLinkResponse(BaseModel):
    """What the public checkout page may see: no tenant or internal ids beyond the code."""

    short_code: str
    amount: Decimal
    currency: str
    description: Optional[str] = None
    status: PaymentLinkStatus
    expires_at: datetime
    student_name: Optional[str] = None
    installment_number: Optional[int] = None
    due_date: Optional[date] = None
