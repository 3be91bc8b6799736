# models/payment.py

from datetime import date
from typing import Literal, Optional
from pydantic import BaseModel, Field, field_validator

from .enums import PaymentType, PaymentMethod, PaymentStatus


class PaymentCreate(BaseModel):
    """
    Recorded payment. apartment_id must lie inside the caller's
    active building scope.
    """
    apartment_id: str
    tenant_id: Optional[str] = None
    amount: float = Field(..., gt=0)
    currency: str = "USD"
    payment_type: PaymentType = PaymentType.other
    payment_method: PaymentMethod = PaymentMethod.bank_transfer
    status: PaymentStatus = PaymentStatus.completed
    due_date: date
    paid_date: Optional[date] = None
    description: Optional[str] = None
    reference_number: Optional[str] = None

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, v):
        return v.strip().upper()


class PaymentReview(BaseModel):
    """Admin decision on a tenant-submitted (pending) payment."""
    decision: Literal["approved", "rejected"]
    notes: Optional[str] = None
