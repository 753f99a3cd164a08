"""Invoice domain models.

Amounts are Decimal. The invoice total always satisfies
total_amount = monthly_rent + additional_charges + sum(line_total_with_tax) - discount
and remaining_balance = total_amount - paid_amount.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from core.models.common import Amount, OptionalAmount, PageRequest
from core.models.line_item import InvoiceLineItem, LineItemInput
from utils.timezone import month_start, today_utc


class InvoiceStatus(str, Enum):
    """Invoice lifecycle status."""

    DRAFT = "draft"
    ISSUED = "issued"
    UNPAID = "unpaid"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class InvoiceCreate(BaseModel):
    """Data required to issue an invoice. Rent comes from the tenant's room."""

    tenant_id: UUID
    billing_period: date
    additional_charges: Amount = Decimal(0)
    additional_charges_description: str | None = Field(None, max_length=500)
    discount: Amount = Decimal(0)
    due_date: date | None = None
    notes: str | None = Field(None, max_length=2000)
    line_items: list[LineItemInput] = Field(default_factory=list)

    @field_validator("billing_period")
    @classmethod
    def normalize_billing_period(cls, value: date) -> date:
        """Billing periods are whole months, stored as the first day."""
        return month_start(value)


class InvoiceUpdate(BaseModel):
    """Data that can be updated on an unpaid invoice. All fields optional.

    When line_items is given it replaces the stored set entirely.
    """

    additional_charges: OptionalAmount = None
    additional_charges_description: str | None = Field(None, max_length=500)
    discount: OptionalAmount = None
    status: InvoiceStatus | None = None
    due_date: date | None = None
    notes: str | None = Field(None, max_length=2000)
    line_items: list[LineItemInput] | None = None


class InvoicePreview(BaseModel):
    """Unsaved invoice figures, priced for the editor."""

    monthly_rent: Amount = Decimal(0)
    additional_charges: Amount = Decimal(0)
    discount: Amount = Decimal(0)
    line_items: list[LineItemInput] = Field(default_factory=list)


class InvoiceQuote(BaseModel):
    """Priced result of an InvoicePreview."""

    line_items: list[LineItemInput]
    subtotal: Decimal
    line_discount: Decimal
    after_discount: Decimal
    tax: Decimal
    line_items_total: Decimal
    total_amount: Decimal


class InvoiceSearch(PageRequest):
    """Filters for invoice search."""

    search: str | None = None
    status: InvoiceStatus | None = None
    tenant_id: UUID | None = None
    room_id: UUID | None = None
    billing_month: date | None = None
    due_from: date | None = None
    due_to: date | None = None
    overdue_only: bool = False


class Invoice(BaseModel):
    """Full invoice entity as stored, with its line items when loaded."""

    id: UUID
    invoice_number: str
    tenant_id: UUID
    room_id: UUID
    monthly_rent: Decimal
    additional_charges: Decimal
    additional_charges_description: str | None
    discount: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    remaining_balance: Decimal
    status: InvoiceStatus
    billing_period: date
    issue_date: date
    due_date: date
    paid_date: date | None
    notes: str | None
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None
    tenant_name: str | None = None
    room_number: str | None = None
    line_items: list[InvoiceLineItem] = Field(default_factory=list)

    model_config = {"from_attributes": True}

    @property
    def is_paid(self) -> bool:
        """Whether invoice is fully paid."""
        return self.status == InvoiceStatus.PAID

    @property
    def is_overdue(self) -> bool:
        """Unpaid, not cancelled, and past its due date."""
        if self.status in (InvoiceStatus.PAID, InvoiceStatus.CANCELLED):
            return False
        return self.due_date < today_utc()

    @property
    def is_partially_paid(self) -> bool:
        return Decimal(0) < self.paid_amount < self.total_amount


class InvoiceStats(BaseModel):
    """Billing dashboard figures."""

    total_invoices: int
    paid_invoices: int
    overdue_invoices: int
    total_revenue: Decimal
    current_month_revenue: Decimal
    last_month_revenue: Decimal
    outstanding_amount: Decimal
