"""Installment schedule and payment schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from fee_engine.api.v1.receipts.schemas import ReceiptResponse
from fee_engine.core.enums import InstallmentStatus, PaymentMode


class GenerateInstallmentsRequest(BaseModel):
    """emi_template_id falls back to the tenant's default template when omitted."""

    student_fee_structure_id: UUID
    emi_template_id: Optional[UUID] = None
    start_date: date
    overwrite: bool = False


class InstallmentResponse(BaseModel):
    id: UUID
    student_fee_structure_id: UUID
    installment_number: int
    amount: Decimal
    paid_amount: Decimal
    balance: Decimal
    due_date: date
    status: InstallmentStatus


class GenerateInstallmentsResponse(BaseModel):
    student_fee_structure_id: UUID
    emi_template_id: UUID
    net_amount: Decimal
    installments: List[InstallmentResponse]


class DeleteInstallmentsResponse(BaseModel):
    student_fee_structure_id: UUID
    deleted: int


class PendingInstallment(InstallmentResponse):
    student_id: UUID
    student_name: str
    batch_id: Optional[UUID] = None
    session_id: UUID


class SessionInstallments(BaseModel):
    session_id: UUID
    session_name: str
    student_fee_structure_id: UUID
    net_amount: Decimal
    pending_amount: Decimal
    installments: List[InstallmentResponse]


class StudentInstallmentsResponse(BaseModel):
    student_id: UUID
    sessions: List[SessionInstallments]


class PaymentCreate(BaseModel):
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    payment_mode: PaymentMode
    transaction_ref: Optional[str] = Field(None, max_length=100)
    remarks: Optional[str] = None


class PaymentResponse(BaseModel):
    id: UUID
    installment_id: UUID
    amount: Decimal
    payment_mode: PaymentMode
    transaction_ref: Optional[str] = None
    remarks: Optional[str] = None
    received_at: datetime
    received_by: Optional[UUID] = None


class PaymentRecordResponse(BaseModel):
    payment: PaymentResponse
    installment: InstallmentResponse
    receipt: ReceiptResponse
