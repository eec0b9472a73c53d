"""Receipt schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict
from uuid import UUID

from pydantic import BaseModel

from fee_engine.core.enums import PaymentMode


class ReceiptResponse(BaseModel):
    id: UUID
    receipt_number: str
    payment_id: UUID
    student_id: UUID
    session_id: UUID
    amount: Decimal
    payment_mode: PaymentMode
    generated_at: datetime
    snapshot: Dict[str, Any]
