"""
Handler for InvoicePaid events.

On invoice payment, emails a receipt to the tenant.
"""

import logging
from typing import Callable

from core.events import InvoicePaid

logger = logging.getLogger(__name__)


def handle_invoice_paid(tenant_service, email_client, currency: str = "USD") -> Callable:
    """
    Factory that returns an InvoicePaid handler.

    Args:
        tenant_service: TenantService instance
        email_client: EmailGatewayClient instance
        currency: Currency code printed on the receipt

    Returns:
        Handler callable that sends a payment receipt
    """

    def handler(event: InvoicePaid):
        invoice = event.invoice
        tenant = tenant_service.get_by_id(invoice.tenant_id)

        if tenant is None or not tenant.email:
            logger.warning(f"No tenant email for invoice {invoice.invoice_number}, receipt not sent")
            return

        email_client.send_payment_receipt(tenant.email, invoice, tenant.full_name, currency=currency)

    return handler
