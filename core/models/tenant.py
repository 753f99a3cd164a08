"""Tenant domain models."""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field, EmailStr, model_validator

from core.models.common import Amount, OptionalAmount, PageRequest
from utils.timezone import today_utc


class TenantCreate(BaseModel):
    """Data required to create a tenant. Rooms are assigned separately."""

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: str | None = Field(None, max_length=50)
    date_of_birth: date | None = None
    identification_number: str | None = Field(None, max_length=50)
    emergency_contact_name: str | None = Field(None, max_length=200)
    emergency_contact_phone: str | None = Field(None, max_length=50)
    contract_start_date: date | None = None
    contract_end_date: date | None = None
    security_deposit: Amount = Decimal(0)
    monthly_rent: Amount = Decimal(0)
    is_active: bool = True
    notes: str | None = Field(None, max_length=2000)

    @model_validator(mode="after")
    def contract_dates_in_order(self) -> "TenantCreate":
        """A contract cannot end before it starts."""
        if (
            self.contract_start_date is not None
            and self.contract_end_date is not None
            and self.contract_end_date < self.contract_start_date
        ):
            raise ValueError("contract_end_date must not be before contract_start_date")
        return self


class TenantUpdate(BaseModel):
    """Data that can be updated on a tenant. All fields optional."""

    first_name: str | None = Field(None, min_length=1, max_length=100)
    last_name: str | None = Field(None, min_length=1, max_length=100)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=50)
    date_of_birth: date | None = None
    identification_number: str | None = Field(None, max_length=50)
    emergency_contact_name: str | None = Field(None, max_length=200)
    emergency_contact_phone: str | None = Field(None, max_length=50)
    contract_start_date: date | None = None
    contract_end_date: date | None = None
    security_deposit: OptionalAmount = None
    monthly_rent: OptionalAmount = None
    is_active: bool | None = None
    notes: str | None = Field(None, max_length=2000)


class TenantAssignment(BaseModel):
    """Move a tenant into a room."""

    room_id: UUID
    contract_start_date: date | None = None
    contract_end_date: date | None = None
    monthly_rent: OptionalAmount = None


class TenantSearch(PageRequest):
    """Filters for tenant search."""

    search: str | None = None
    is_active: bool | None = None
    room_id: UUID | None = None
    has_room: bool | None = None


class Tenant(BaseModel):
    """Full tenant entity as stored."""

    id: UUID
    first_name: str
    last_name: str
    email: str
    phone: str | None
    date_of_birth: date | None
    identification_number: str | None
    emergency_contact_name: str | None
    emergency_contact_phone: str | None
    room_id: UUID | None
    contract_start_date: date | None
    contract_end_date: date | None
    security_deposit: Decimal
    monthly_rent: Decimal
    is_active: bool
    notes: str | None
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    model_config = {"from_attributes": True}

    @property
    def full_name(self) -> str:
        """Name for display and notices."""
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def has_active_contract(self) -> bool:
        """Active tenant whose contract window covers today."""
        if not self.is_active:
            return False
        if self.contract_start_date is None or self.contract_end_date is None:
            return False
        return self.contract_start_date <= today_utc() <= self.contract_end_date
