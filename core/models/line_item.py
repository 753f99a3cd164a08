"""Invoice line item domain models.

Amounts are Decimal end to end. The derived fields (tax_amount, line_total,
line_total_with_tax, and discount_amount when a percent is set) are filled
in by core.billing.price_line_item; whatever the client sent for them is
only a starting value.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from core.models.common import Amount, Percent


class LineItemInput(BaseModel):
    """One billable row as submitted from the invoice editor."""

    item_code: str | None = Field(None, max_length=50)
    item_name: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=500)
    unit_of_measure: str = Field("pcs", min_length=1, max_length=20)
    category: str | None = Field(None, max_length=100)
    notes: str | None = Field(None, max_length=500)

    quantity: Amount = Decimal(1)
    unit_price: Amount = Decimal(0)
    discount_percent: Percent = Decimal(0)
    discount_amount: Amount = Decimal(0)
    tax_percent: Percent = Decimal(0)

    tax_amount: Amount = Decimal(0)
    line_total: Amount = Decimal(0)
    line_total_with_tax: Amount = Decimal(0)
    line_number: int = Field(1, ge=1)


class InvoiceLineItem(BaseModel):
    """Line item as stored against an invoice."""

    id: UUID
    invoice_id: UUID
    line_number: int
    item_code: str | None
    item_name: str
    description: str | None
    unit_of_measure: str
    category: str | None
    notes: str | None
    quantity: Decimal
    unit_price: Decimal
    discount_percent: Decimal
    discount_amount: Decimal
    tax_percent: Decimal
    tax_amount: Decimal
    line_total: Decimal
    line_total_with_tax: Decimal
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
