"""Item catalog domain models.

Catalog items are the chargeable goods and services that pre-populate
invoice line items: code, name, unit, price and default tax rate.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from core.models.common import Amount, OptionalAmount, OptionalPercent, PageRequest, Percent


class ItemCreate(BaseModel):
    """Data required to add an item to the catalog."""

    item_code: str = Field(..., min_length=1, max_length=50)
    item_name: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=1000)
    unit_of_measure: str = Field("pcs", min_length=1, max_length=20)
    unit_price: Amount = Decimal(0)
    tax_percent: Percent = Decimal(0)
    category: str | None = Field(None, max_length=100)
    is_active: bool = True
    notes: str | None = Field(None, max_length=1000)


class ItemUpdate(BaseModel):
    """Data that can be updated on a catalog item. All fields optional."""

    item_code: str | None = Field(None, min_length=1, max_length=50)
    item_name: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, max_length=1000)
    unit_of_measure: str | None = Field(None, min_length=1, max_length=20)
    unit_price: OptionalAmount = None
    tax_percent: OptionalPercent = None
    category: str | None = Field(None, max_length=100)
    is_active: bool | None = None
    notes: str | None = Field(None, max_length=1000)


class ItemSearch(PageRequest):
    """Catalog search: term over code, name and description plus filters."""

    search: str | None = None
    category: str | None = None
    is_active: bool | None = None


class Item(BaseModel):
    """Full catalog item as stored."""

    id: UUID
    item_code: str
    item_name: str
    description: str | None
    unit_of_measure: str
    unit_price: Decimal
    tax_percent: Decimal
    category: str | None
    is_active: bool
    notes: str | None
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    model_config = {"from_attributes": True}
