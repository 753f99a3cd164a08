"""Core domain models."""

from core.models.common import Amount, Percent, OptionalAmount, OptionalPercent, Page, PageRequest
from core.models.room import Room, RoomCreate, RoomUpdate, RoomSearch, RoomType, RoomStatus, RoomOccupancy
from core.models.tenant import Tenant, TenantCreate, TenantUpdate, TenantAssignment, TenantSearch
from core.models.item import Item, ItemCreate, ItemUpdate, ItemSearch
from core.models.line_item import LineItemInput, InvoiceLineItem
from core.models.invoice import (
    Invoice, InvoiceCreate, InvoiceUpdate, InvoiceStatus, InvoiceSearch,
    InvoicePreview, InvoiceQuote, InvoiceStats,
)
from core.models.payment import Payment, PaymentCreate, PaymentUpdate, PaymentMethod, PaymentSearch
from core.models.report import (
    MethodTotal, PaymentStats, MonthlyPayments, PaymentYearSummary, MethodDistribution,
    MonthlyRevenue, RevenueYear, OutstandingInvoice, AgeBuckets, OutstandingReport,
    PeriodFinancials, FinancialSummary, TenantStatistics,
)

__all__ = [
    # Common
    "Amount", "Percent", "OptionalAmount", "OptionalPercent", "Page", "PageRequest",
    # Room
    "Room", "RoomCreate", "RoomUpdate", "RoomSearch", "RoomType", "RoomStatus", "RoomOccupancy",
    # Tenant
    "Tenant", "TenantCreate", "TenantUpdate", "TenantAssignment", "TenantSearch",
    # Item
    "Item", "ItemCreate", "ItemUpdate", "ItemSearch",
    # LineItem
    "LineItemInput", "InvoiceLineItem",
    # Invoice
    "Invoice", "InvoiceCreate", "InvoiceUpdate", "InvoiceStatus", "InvoiceSearch",
    "InvoicePreview", "InvoiceQuote", "InvoiceStats",
    # Payment
    "Payment", "PaymentCreate", "PaymentUpdate", "PaymentMethod", "PaymentSearch",
    # Reports
    "MethodTotal", "PaymentStats", "MonthlyPayments", "PaymentYearSummary", "MethodDistribution",
    "MonthlyRevenue", "RevenueYear", "OutstandingInvoice", "AgeBuckets", "OutstandingReport",
    "PeriodFinancials", "FinancialSummary", "TenantStatistics",
]
