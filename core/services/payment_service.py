"""
Payment ledger service.

Every payment moves an invoice's paid amount, remaining balance and status,
so each write locks the invoice row and changes both tables in one
transaction. Balance and status always come from core.billing.settle.
"""

import logging
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID, uuid4

from clients.postgres_client import PostgresClient, Transaction
from core.audit import AuditLogger, AuditAction, compute_changes
from core.billing import ZERO, percent_of, round_money, settle
from core.config import BillingConfig
from core.event_bus import EventBus
from core.events import InvoicePaid, PaymentRecorded
from core.models import (
    Invoice, InvoiceStatus, MethodDistribution, MethodTotal, MonthlyPayments, Page,
    Payment, PaymentCreate, PaymentSearch, PaymentStats, PaymentUpdate, PaymentYearSummary,
)
from core.services.paging import date_range, fetch_page, order_clause
from utils.timezone import month_start, now_utc, previous_month_start, today_utc

logger = logging.getLogger(__name__)

_UPDATABLE_COLUMNS = {"amount", "method", "reference_number", "payment_date", "notes"}

_SORT_COLUMNS = {
    "payment_date": "payment_date",
    "amount": "amount",
    "method": "method",
    "recorded_date": "recorded_date",
}


class PaymentService:
    """Service for payment operations."""

    def __init__(
        self,
        postgres: PostgresClient,
        audit: AuditLogger,
        event_bus: EventBus,
        config: BillingConfig | None = None
    ):
        self.postgres = postgres
        self.audit = audit
        self.event_bus = event_bus
        self.config = config or BillingConfig()

    def _lock_invoice(self, tx: Transaction, invoice_id: UUID) -> Invoice:
        row = tx.execute_single(
            "SELECT * FROM invoices WHERE id = %s AND deleted_at IS NULL FOR UPDATE",
            (invoice_id,)
        )
        if row is None:
            raise ValueError("Invoice not found")
        return Invoice.model_validate(row)

    def _apply(self, tx: Transaction, invoice: Invoice, paid_amount: Decimal) -> Invoice:
        """Write a new paid amount to a locked invoice and return it settled."""
        settlement = settle(invoice.total_amount, paid_amount)

        if settlement.status == InvoiceStatus.PAID:
            paid_date = invoice.paid_date or today_utc()
        else:
            paid_date = None

        row = tx.execute_returning(
            """
            UPDATE invoices
            SET paid_amount = %s, remaining_balance = %s, status = %s,
                paid_date = %s, updated_at = %s
            WHERE id = %s
            RETURNING *
            """,
            (
                paid_amount, settlement.remaining_balance, settlement.status.value,
                paid_date, now_utc(), invoice.id
            )
        )[0]

        return Invoice.model_validate(row)

    def record(self, data: PaymentCreate) -> Payment:
        """
        Record a payment against an invoice.

        Args:
            data: Invoice, amount, method and optional reference / date

        Returns:
            Created payment

        Raises:
            ValueError: If invoice not found or cancelled, or the amount is
                more than the invoice still owes
        """
        with self.postgres.transaction() as tx:
            invoice = self._lock_invoice(tx, data.invoice_id)
            if invoice.status == InvoiceStatus.CANCELLED:
                raise ValueError(f"Invoice {invoice.invoice_number} is cancelled")
            if data.amount > invoice.remaining_balance:
                raise ValueError("Payment amount cannot exceed remaining balance")

            now = now_utc()
            row = tx.execute_returning(
                """
                INSERT INTO payments (
                    id, invoice_id, amount, method, reference_number,
                    payment_date, recorded_date, notes, is_verified,
                    created_at, updated_at
                ) VALUES (
                    %s, %s, %s, %s, %s,
                    %s, %s, %s, %s,
                    %s, %s
                )
                RETURNING *
                """,
                (
                    uuid4(), data.invoice_id, data.amount, data.method.value, data.reference_number,
                    data.payment_date or today_utc(), now, data.notes, False,
                    now, now
                )
            )[0]
            payment = Payment.model_validate(row)

            updated = self._apply(tx, invoice, invoice.paid_amount + data.amount)

            self.audit.log_change(
                entity_type="payment",
                entity_id=payment.id,
                action=AuditAction.CREATE,
                changes={"created": data.model_dump(mode="json", exclude_none=True)},
                tx=tx
            )
            self.audit.log_change(
                entity_type="invoice",
                entity_id=invoice.id,
                action=AuditAction.UPDATE,
                changes=compute_changes(
                    invoice.model_dump(mode="json", exclude={"line_items"}),
                    updated.model_dump(mode="json", exclude={"line_items"})
                ),
                tx=tx
            )

        logger.info(
            f"Recorded payment {payment.amount} on invoice {invoice.invoice_number}, "
            f"status now {updated.status.value}"
        )

        self.event_bus.publish(PaymentRecorded.create(payment=payment, invoice=updated))
        if updated.status == InvoiceStatus.PAID and invoice.status != InvoiceStatus.PAID:
            self.event_bus.publish(InvoicePaid.create(invoice=updated))

        return payment

    def get_by_id(self, payment_id: UUID) -> Payment | None:
        """
        Get payment by ID.

        Args:
            payment_id: Payment UUID

        Returns:
            Payment if found, None otherwise.
        """
        row = self.postgres.execute_single(
            "SELECT * FROM payments WHERE id = %s",
            (payment_id,)
        )

        if row is None:
            return None

        return Payment.model_validate(row)

    def list_for_invoice(self, invoice_id: UUID) -> list[Payment]:
        """Payments on an invoice, most recent first."""
        rows = self.postgres.execute(
            """
            SELECT * FROM payments
            WHERE invoice_id = %s
            ORDER BY payment_date DESC, recorded_date DESC
            """,
            (invoice_id,)
        )

        return [Payment.model_validate(row) for row in rows]

    def list_all(self, criteria: PaymentSearch) -> Page[Payment]:
        """
        Page through the payment ledger.

        Args:
            criteria: Optional invoice filter, sort key and page

        Returns:
            One page of payments, newest payment date first by default
        """
        conditions = []
        params: list = []

        if criteria.invoice_id is not None:
            conditions.append("invoice_id = %s")
            params.append(criteria.invoice_id)

        if criteria.sort_by is None:
            order_by = "payment_date DESC, recorded_date DESC"
        else:
            order_by = order_clause(criteria, _SORT_COLUMNS, "payment_date")

        return fetch_page(
            self.postgres,
            "SELECT * FROM payments",
            conditions,
            params,
            order_by,
            criteria,
            Payment,
            self.config.max_page_size,
        )

    def update(self, payment_id: UUID, data: PaymentUpdate) -> Payment:
        """
        Correct an unverified payment.

        A changed amount moves the invoice balance by the difference.

        Args:
            payment_id: Payment UUID
            data: Fields to update

        Returns:
            Updated payment

        Raises:
            ValueError: If payment not found or verified, or the new amount
                is more than the invoice can take
        """
        with self.postgres.transaction() as tx:
            row = tx.execute_single(
                "SELECT * FROM payments WHERE id = %s FOR UPDATE",
                (payment_id,)
            )
            if row is None:
                raise ValueError(f"Payment {payment_id} not found")
            current = Payment.model_validate(row)

            if current.is_verified:
                raise ValueError("Cannot update a verified payment")

            updates = data.model_dump(exclude_none=True)
            if not updates:
                return current

            invoice = self._lock_invoice(tx, current.invoice_id)
            new_amount = updates.get("amount", current.amount)
            if new_amount > invoice.remaining_balance + current.amount:
                raise ValueError("Updated payment amount exceeds available balance")

            if "method" in updates:
                updates["method"] = updates["method"].value

            set_parts = []
            params = []
            for field, value in updates.items():
                if field not in _UPDATABLE_COLUMNS:
                    logger.warning(f"Attempted to update unknown field '{field}' on payment {payment_id}")
                    continue
                set_parts.append(f"{field} = %s")
                params.append(value)

            set_parts.append("updated_at = %s")
            params.append(now_utc())
            params.append(payment_id)

            row = tx.execute_returning(
                f"""
                UPDATE payments
                SET {', '.join(set_parts)}
                WHERE id = %s
                RETURNING *
                """,
                tuple(params)
            )[0]
            updated = Payment.model_validate(row)

            settled = None
            if new_amount != current.amount:
                settled = self._apply(tx, invoice, invoice.paid_amount - current.amount + new_amount)

            changes = compute_changes(
                current.model_dump(mode="json"),
                updated.model_dump(mode="json")
            )
            if changes:
                self.audit.log_change(
                    entity_type="payment",
                    entity_id=payment_id,
                    action=AuditAction.UPDATE,
                    changes=changes,
                    tx=tx
                )

        if settled is not None:
            logger.info(
                f"Corrected payment {payment_id} on invoice {invoice.invoice_number}, "
                f"status now {settled.status.value}"
            )
            if settled.status == InvoiceStatus.PAID and invoice.status != InvoiceStatus.PAID:
                self.event_bus.publish(InvoicePaid.create(invoice=settled))

        return updated

    def verify(self, payment_id: UUID, is_verified: bool = True) -> Payment:
        """
        Mark a payment as checked against the bank (or clear the mark).

        Verified payments can no longer be edited or deleted.

        Args:
            payment_id: Payment UUID
            is_verified: New verification flag

        Returns:
            Updated payment

        Raises:
            ValueError: If payment not found
        """
        current = self.get_by_id(payment_id)
        if current is None:
            raise ValueError(f"Payment {payment_id} not found")

        row = self.postgres.execute_returning(
            """
            UPDATE payments
            SET is_verified = %s, updated_at = %s
            WHERE id = %s
            RETURNING *
            """,
            (is_verified, now_utc(), payment_id)
        )[0]

        updated = Payment.model_validate(row)

        if current.is_verified != is_verified:
            self.audit.log_change(
                entity_type="payment",
                entity_id=payment_id,
                action=AuditAction.UPDATE,
                changes={"is_verified": {"old": current.is_verified, "new": is_verified}}
            )

        return updated

    def delete(self, payment_id: UUID) -> bool:
        """
        Remove an unverified payment and give its amount back to the invoice.

        Args:
            payment_id: Payment UUID

        Returns:
            True if deleted, False if not found

        Raises:
            ValueError: If the payment is verified
        """
        with self.postgres.transaction() as tx:
            row = tx.execute_single(
                "SELECT * FROM payments WHERE id = %s FOR UPDATE",
                (payment_id,)
            )
            if row is None:
                return False
            current = Payment.model_validate(row)

            if current.is_verified:
                raise ValueError("Cannot delete a verified payment")

            invoice = self._lock_invoice(tx, current.invoice_id)

            tx.execute("DELETE FROM payments WHERE id = %s", (payment_id,))
            self._apply(tx, invoice, max(invoice.paid_amount - current.amount, Decimal(0)))

            self.audit.log_change(
                entity_type="payment",
                entity_id=payment_id,
                action=AuditAction.DELETE,
                changes={"deleted": current.model_dump(mode="json")},
                tx=tx
            )

        logger.info(f"Deleted payment {payment_id} from invoice {invoice.invoice_number}")
        return True

    # -------------------------------------------------------------------------
    # Reports
    # -------------------------------------------------------------------------

    def _method_totals(self, conditions: list[str], params: list) -> list[MethodTotal]:
        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        rows = self.postgres.execute(
            f"""
            SELECT method, COUNT(*) AS count, SUM(amount) AS amount, AVG(amount) AS average_amount
            FROM payments
            {where}
            GROUP BY method
            ORDER BY SUM(amount) DESC
            """,
            tuple(params)
        )

        total = sum((row["amount"] for row in rows), ZERO)
        return [
            MethodTotal(
                method=row["method"],
                count=row["count"],
                amount=row["amount"],
                average_amount=round_money(row["average_amount"]),
                share_percent=percent_of(row["amount"], total),
            )
            for row in rows
        ]

    def stats(self, from_date: date | None = None, to_date: date | None = None) -> PaymentStats:
        """
        Payment ledger figures.

        Totals, verification counts and the method breakdown honour the
        optional payment date range. Current and last month figures always
        cover the whole ledger.

        Args:
            from_date: First payment date included
            to_date: Last payment date included

        Returns:
            PaymentStats for the range
        """
        conditions, params = date_range("payment_date", from_date, to_date)
        ranged = " AND ".join(conditions) or "TRUE"

        today = today_utc()
        this_month = month_start(today)
        last_month = previous_month_start(today)

        row = self.postgres.execute_single(
            f"""
            SELECT
                COUNT(*) FILTER (WHERE {ranged}) AS total_payments,
                COALESCE(SUM(amount) FILTER (WHERE {ranged}), 0) AS total_amount,
                COUNT(*) FILTER (WHERE {ranged} AND is_verified) AS verified_payments,
                COUNT(*) FILTER (WHERE {ranged} AND NOT is_verified) AS unverified_payments,
                COUNT(*) FILTER (WHERE payment_date >= %s) AS current_month_payments,
                COALESCE(SUM(amount) FILTER (WHERE payment_date >= %s), 0) AS current_month_amount,
                COUNT(*) FILTER (
                    WHERE payment_date >= %s AND payment_date < %s
                ) AS last_month_payments,
                COALESCE(SUM(amount) FILTER (
                    WHERE payment_date >= %s AND payment_date < %s
                ), 0) AS last_month_amount
            FROM payments
            """,
            tuple(
                params * 4
                + [this_month, this_month, last_month, this_month, last_month, this_month]
            )
        )

        return PaymentStats(
            from_date=from_date,
            to_date=to_date,
            by_method=self._method_totals(conditions, params),
            **row,
        )

    def monthly_summary(self, year: int) -> PaymentYearSummary:
        """
        Payments per calendar month of a year.

        Args:
            year: Calendar year

        Returns:
            Months that had payments, in order, with yearly totals
        """
        rows = self.postgres.execute(
            """
            SELECT
                EXTRACT(MONTH FROM payment_date)::int AS month,
                COUNT(*) AS count,
                SUM(amount) AS amount,
                COUNT(*) FILTER (WHERE is_verified) AS verified_count,
                COUNT(*) FILTER (WHERE NOT is_verified) AS unverified_count
            FROM payments
            WHERE payment_date >= %s AND payment_date < %s
            GROUP BY 1
            ORDER BY 1
            """,
            (date(year, 1, 1), date(year + 1, 1, 1))
        )
        months = [MonthlyPayments.model_validate(row) for row in rows]

        return PaymentYearSummary(
            year=year,
            months=months,
            total_payments=sum(m.count for m in months),
            total_amount=sum((m.amount for m in months), ZERO),
            total_verified=sum(m.verified_count for m in months),
            total_unverified=sum(m.unverified_count for m in months),
        )

    def method_distribution(
        self, from_date: date | None = None, to_date: date | None = None
    ) -> MethodDistribution:
        """
        Verified payments by method.

        Args:
            from_date: First payment date included (defaults to a year ago)
            to_date: Last payment date included (defaults to today)

        Returns:
            Count, amount, average and share of the total per method
        """
        to_date = to_date or today_utc()
        from_date = from_date or to_date - timedelta(days=365)

        conditions, params = date_range("payment_date", from_date, to_date)
        distribution = self._method_totals(conditions + ["is_verified"], params)

        total_payments = sum(m.count for m in distribution)
        total_amount = sum((m.amount for m in distribution), ZERO)

        logger.info(f"Payment method distribution {from_date} to {to_date}: {total_payments} payments")
        return MethodDistribution(
            from_date=from_date,
            to_date=to_date,
            total_payments=total_payments,
            total_amount=total_amount,
            average_payment=round_money(total_amount / total_payments) if total_payments else ZERO,
            distribution=distribution,
        )

