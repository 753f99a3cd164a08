"""
Domain events for rental billing.

Immutable event objects that represent state changes in the billing domain.
A service publishes what happened, and handlers react without the publisher
knowing who's listening.

Event Categories:
- InvoiceEvent: Invoice lifecycle (issued, paid)
- PaymentEvent: Payment lifecycle (recorded)

Events carry the full domain object so handlers don't need to re-fetch state.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from utils.timezone import now_utc


@dataclass(frozen=True, kw_only=True)
class RentalEvent:
    """Base class for all rental domain events."""
    event_id: str = field(default_factory=lambda: str(uuid4()))
    occurred_at: datetime = field(default_factory=now_utc)


# =============================================================================
# INVOICE EVENTS
# =============================================================================


@dataclass(frozen=True)
class InvoiceEvent(RentalEvent):
    """Events related to invoice lifecycle."""
    pass


@dataclass(frozen=True)
class InvoiceIssued(InvoiceEvent):
    """A new invoice was issued to a tenant."""
    invoice: Any = None  # Invoice: using Any to avoid circular import

    @classmethod
    def create(cls, invoice: Any) -> "InvoiceIssued":
        return cls(invoice=invoice)


@dataclass(frozen=True)
class InvoicePaid(InvoiceEvent):
    """Invoice balance reached zero."""
    invoice: Any = None

    @classmethod
    def create(cls, invoice: Any) -> "InvoicePaid":
        return cls(invoice=invoice)


# =============================================================================
# PAYMENT EVENTS
# =============================================================================


@dataclass(frozen=True)
class PaymentEvent(RentalEvent):
    """Events related to payments against invoices."""
    pass


@dataclass(frozen=True)
class PaymentRecorded(PaymentEvent):
    """A payment was recorded against an invoice."""
    payment: Any = None
    invoice: Any = None

    @classmethod
    def create(cls, payment: Any, invoice: Any) -> "PaymentRecorded":
        return cls(payment=payment, invoice=invoice)
