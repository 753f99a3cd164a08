"""Billing configuration."""

from pydantic import BaseModel, Field


class BillingConfig(BaseModel):
    """
    Billing configuration.

    Durations are in days. Services take an instance at construction; the
    defaults are the house rules used when none is passed.
    """

    # Invoices
    invoice_number_prefix: str = Field(
        default="INV",
        description="Prefix for generated invoice numbers (PREFIX-YYYYMM-NNNN)",
        min_length=1,
        max_length=10,
    )
    invoice_due_days: int = Field(
        default=15,
        description="Days after issue an invoice falls due when no due date is given",
        ge=0,
        le=120,
    )
    floor_negative_totals: bool = Field(
        default=False,
        description="Clamp invoice totals at zero when discounts exceed charges",
    )
    currency: str = Field(
        default="USD",
        description="ISO 4217 currency code shown on notices",
        min_length=3,
        max_length=3,
    )

    # Reminders
    reminder_window_days: int = Field(
        default=3,
        description="Remind tenants about unpaid invoices due within this many days",
        ge=0,
        le=30,
    )

    # Paging
    max_page_size: int = Field(
        default=100,
        description="Upper bound on requested page sizes",
        ge=1,
        le=500,
    )
