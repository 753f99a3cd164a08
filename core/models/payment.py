"""Payment domain models."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field

from core.models.common import PageRequest


class PaymentMethod(str, Enum):
    """How the tenant paid."""

    CASH = "cash"
    CHECK = "check"
    BANK_TRANSFER = "bank_transfer"
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    DIGITAL_WALLET = "digital_wallet"
    MONEY_ORDER = "money_order"
    OTHER = "other"


class PaymentCreate(BaseModel):
    """Data required to record a payment against an invoice.

    Unlike invoice figures, a payment amount is never defaulted: a missing
    or non-positive amount is a rejected request, not a zero payment.
    """

    invoice_id: UUID
    amount: Decimal = Field(..., gt=0, allow_inf_nan=False)
    method: PaymentMethod = PaymentMethod.CASH
    reference_number: str | None = Field(None, max_length=100)
    payment_date: date | None = None
    notes: str | None = Field(None, max_length=1000)


class PaymentUpdate(BaseModel):
    """Data that can be updated on an unverified payment. All fields optional."""

    amount: Decimal | None = Field(None, gt=0, allow_inf_nan=False)
    method: PaymentMethod | None = None
    reference_number: str | None = Field(None, max_length=100)
    payment_date: date | None = None
    notes: str | None = Field(None, max_length=1000)


class PaymentSearch(PageRequest):
    """Payment listing, optionally for one invoice."""

    invoice_id: UUID | None = None
    page_size: int = Field(10, ge=1, le=100)


class Payment(BaseModel):
    """Full payment entity as stored."""

    id: UUID
    invoice_id: UUID
    amount: Decimal
    method: PaymentMethod
    reference_number: str | None
    payment_date: date
    recorded_date: datetime
    notes: str | None
    is_verified: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
