"""
Email gateway client for tenant notices via HTTP gateway.

Uses HMAC-SHA256 signature for request authentication. Invoice reminders and
payment receipts are plain-text emails composed here so services only pass
domain objects.
"""

import hashlib
import hmac
import json
import logging
from typing import Any

import requests

logger = logging.getLogger(__name__)


class EmailGatewayError(Exception):
    """Raised when email gateway request fails."""


class EmailGatewayClient:
    """Send emails via HTTP gateway with HMAC signature verification."""

    def __init__(self, gateway_url: str, api_key: str, hmac_secret: str):
        """
        Initialize with gateway credentials.

        Args:
            gateway_url: Full URL to the email gateway endpoint
            api_key: API key for X-API-Key header
            hmac_secret: Secret for HMAC-SHA256 signature

        Raises:
            ValueError: If any credential is empty
        """
        if not gateway_url:
            raise ValueError("gateway_url is required")
        if not api_key:
            raise ValueError("api_key is required")
        if not hmac_secret:
            raise ValueError("hmac_secret is required")

        self.gateway_url = gateway_url
        self.api_key = api_key
        self.hmac_secret = hmac_secret

    def _sign_and_send(self, payload: dict) -> None:
        """
        Sign payload with HMAC and send to gateway.

        Args:
            payload: Dict to send as JSON

        Raises:
            EmailGatewayError: On any failure
        """
        payload_json = json.dumps(payload, separators=(",", ":"))

        signature = hmac.new(
            self.hmac_secret.encode("utf-8"),
            payload_json.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

        headers = {
            "Content-Type": "application/json",
            "X-API-Key": self.api_key,
            "X-Signature": signature,
        }

        try:
            response = requests.post(
                self.gateway_url,
                data=payload_json,
                headers=headers,
                timeout=10,
            )
        except (requests.exceptions.RequestException, ConnectionError) as e:
            logger.error(f"Email gateway connection failed: {e}")
            raise EmailGatewayError(f"Connection failed: {e}")

        try:
            response_data = response.json()
        except json.JSONDecodeError:
            logger.error(f"Email gateway returned invalid JSON: {response.text}")
            raise EmailGatewayError("Invalid response from gateway")

        if response.status_code != 200 or not response_data.get("success"):
            error_msg = response_data.get("message", "Unknown error")
            logger.error(f"Email gateway error: {error_msg}")
            raise EmailGatewayError(f"Gateway error: {error_msg}")

    def send_email(self, to: str, subject: str, body: str) -> None:
        """
        Send a plain-text email via gateway.

        Args:
            to: Recipient email address
            subject: Email subject line
            body: Plain text email body

        Raises:
            ValueError: If recipient is empty
            EmailGatewayError: On gateway failure
        """
        if not to:
            raise ValueError("Recipient address is required")

        payload = {
            "type": "custom",
            "email": to,
            "subject": subject,
            "body": body,
            "sender": "billing",
        }
        self._sign_and_send(payload)
        logger.info(f"Email sent to {to}: {subject}")

    def send_invoice_reminder(self, to: str, invoice: Any, tenant_name: str, currency: str = "USD") -> None:
        """
        Remind a tenant that an invoice is coming due (or already overdue).

        Args:
            to: Tenant email address
            invoice: Invoice being reminded about
            tenant_name: Name used in the greeting
            currency: Currency code printed after amounts

        Raises:
            EmailGatewayError: On gateway failure
        """
        subject = f"Payment reminder: invoice {invoice.invoice_number}"
        body = (
            f"Hello {tenant_name},\n\n"
            f"Invoice {invoice.invoice_number} for {invoice.billing_period:%B %Y} "
            f"has an outstanding balance of {invoice.remaining_balance:.2f} {currency}, "
            f"due on {invoice.due_date:%Y-%m-%d}.\n\n"
            "Please disregard this message if you have already paid."
        )
        self.send_email(to, subject, body)

    def send_payment_receipt(self, to: str, invoice: Any, tenant_name: str, currency: str = "USD") -> None:
        """
        Thank a tenant for settling an invoice in full.

        Args:
            to: Tenant email address
            invoice: The paid invoice
            tenant_name: Name used in the greeting
            currency: Currency code printed after amounts

        Raises:
            EmailGatewayError: On gateway failure
        """
        subject = f"Payment received: invoice {invoice.invoice_number}"
        body = (
            f"Hello {tenant_name},\n\n"
            f"Thank you! We received full payment of {invoice.total_amount:.2f} {currency} "
            f"for invoice {invoice.invoice_number}."
        )
        self.send_email(to, subject, body)
