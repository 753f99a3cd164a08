"""Read-only report models for payments, revenue, receivables and tenants."""

from datetime import date
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel

from core.models.invoice import InvoiceStatus
from core.models.payment import PaymentMethod


# =============================================================================
# PAYMENTS
# =============================================================================


class MethodTotal(BaseModel):
    """Payments grouped by method."""

    method: PaymentMethod
    count: int
    amount: Decimal
    average_amount: Decimal = Decimal(0)
    share_percent: Decimal = Decimal(0)

    model_config = {"from_attributes": True}


class PaymentStats(BaseModel):
    """Payment ledger figures, optionally limited to a payment date range."""

    from_date: date | None = None
    to_date: date | None = None
    total_payments: int
    total_amount: Decimal
    verified_payments: int
    unverified_payments: int
    current_month_payments: int
    current_month_amount: Decimal
    last_month_payments: int
    last_month_amount: Decimal
    by_method: list[MethodTotal] = []


class MonthlyPayments(BaseModel):
    """One calendar month of payments."""

    month: int
    count: int
    amount: Decimal
    verified_count: int
    unverified_count: int

    model_config = {"from_attributes": True}


class PaymentYearSummary(BaseModel):
    """Payments per month for one year, months without payments omitted."""

    year: int
    months: list[MonthlyPayments]
    total_payments: int
    total_amount: Decimal
    total_verified: int
    total_unverified: int


class MethodDistribution(BaseModel):
    """Verified payments by method over a date range."""

    from_date: date
    to_date: date
    total_payments: int
    total_amount: Decimal
    average_payment: Decimal
    distribution: list[MethodTotal]


# =============================================================================
# REVENUE AND RECEIVABLES
# =============================================================================


class MonthlyRevenue(BaseModel):
    """Paid invoices and verified payments for one month of a year."""

    month: int
    month_name: str
    revenue: Decimal
    invoice_count: int
    payment_amount: Decimal
    payment_count: int


class RevenueYear(BaseModel):
    """Twelve-month revenue breakdown."""

    year: int
    total_revenue: Decimal
    average_monthly_revenue: Decimal
    total_invoices: int
    total_payments: int
    months: list[MonthlyRevenue]
    highest_month: MonthlyRevenue
    lowest_month: MonthlyRevenue


class OutstandingInvoice(BaseModel):
    """An open invoice with its distance from the due date."""

    invoice_id: UUID
    invoice_number: str
    tenant_name: str
    amount: Decimal
    due_date: date
    days: int
    status: InvoiceStatus

    model_config = {"from_attributes": True}


class AgeBuckets(BaseModel):
    """Overdue invoice counts by days past due."""

    days_0_30: int = 0
    days_31_60: int = 0
    days_61_90: int = 0
    over_90: int = 0


class OutstandingReport(BaseModel):
    """Receivables: overdue invoices, those due within 30 days, and ageing."""

    generated_on: date
    total_outstanding: Decimal
    total_overdue: Decimal
    total_upcoming: Decimal
    overdue: list[OutstandingInvoice]
    upcoming: list[OutstandingInvoice]
    ageing: AgeBuckets


class PeriodFinancials(BaseModel):
    """Invoiced, collected and outstanding amounts for one issue month."""

    period: str
    total_invoiced: Decimal
    paid_amount: Decimal
    outstanding_amount: Decimal
    invoice_count: int
    collection_rate: Decimal = Decimal(0)

    model_config = {"from_attributes": True}


class FinancialSummary(BaseModel):
    """Revenue, collections and deposits for invoices issued in a date range."""

    from_date: date
    to_date: date
    total_revenue: Decimal
    total_payments: Decimal
    total_outstanding: Decimal
    collection_rate: Decimal
    security_deposits: Decimal
    average_monthly_revenue: Decimal
    total_invoices: int
    months: list[PeriodFinancials]


# =============================================================================
# TENANTS
# =============================================================================


class TenantStatistics(BaseModel):
    """Tenant counts, contract expiries, age groups and rent figures."""

    total_tenants: int
    active_tenants: int
    inactive_tenants: int
    assigned_tenants: int
    unassigned_tenants: int
    expiring_in_30_days: int
    expiring_in_90_days: int
    new_last_30_days: int
    age_groups: dict[str, int]
    total_monthly_rent: Decimal
    average_monthly_rent: Decimal
    total_security_deposits: Decimal
    average_security_deposit: Decimal
    assignment_rate: Decimal
    activity_rate: Decimal
