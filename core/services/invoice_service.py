"""
Invoice service for billing tenants.

Invoices bill a tenant for one month of rent in their room, plus untaxed
additional charges, plus priced line items, minus a flat discount. All of
the arithmetic is delegated to core.billing; this service handles
persistence, numbering, lifecycle rules and notices.

An invoice and its line items are always written in one transaction, with
the invoice row locked FOR UPDATE while it is rewritten, so concurrent
saves of the same invoice are serialized.
"""

import calendar
import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Sequence
from uuid import UUID, uuid4

from clients.email_client import EmailGatewayClient, EmailGatewayError
from clients.postgres_client import PostgresClient, Transaction
from core.audit import AuditLogger, AuditAction, compute_changes
from core.billing import (
    ZERO, compute_invoice_total, percent_of, prepare_line_items, round_money, settle, summarize_line_items,
)
from core.config import BillingConfig
from core.event_bus import EventBus
from core.events import InvoiceIssued, InvoicePaid
from core.models import (
    AgeBuckets, FinancialSummary, Invoice, InvoiceCreate, InvoiceLineItem, InvoicePreview, InvoiceQuote,
    InvoiceSearch, InvoiceStats, InvoiceStatus, InvoiceUpdate, LineItemInput, MonthlyRevenue,
    OutstandingInvoice, OutstandingReport, Page, PeriodFinancials, RevenueYear,
)
from core.services.paging import date_range, fetch_page, order_clause
from utils.timezone import month_start, now_utc, previous_month_start, today_utc

logger = logging.getLogger(__name__)

_INVOICE_SELECT = """
    SELECT i.*,
           trim(t.first_name || ' ' || t.last_name) AS tenant_name,
           r.room_number
    FROM invoices i
    LEFT JOIN tenants t ON t.id = i.tenant_id
    LEFT JOIN rooms r ON r.id = i.room_id
"""

_SORT_COLUMNS = {
    "invoice_number": "i.invoice_number",
    "total_amount": "i.total_amount",
    "due_date": "i.due_date",
    "status": "i.status",
    "issue_date": "i.issue_date",
}

# Statuses that still expect money
_OPEN = "i.status NOT IN ('paid', 'cancelled')"


class InvoiceService:
    """Service for invoice operations."""

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

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _total(self, monthly_rent, additional_charges, discount, lines) -> Decimal:
        return compute_invoice_total(
            monthly_rent,
            additional_charges,
            discount,
            lines,
            floor_at_zero=self.config.floor_negative_totals,
        )

    def _generate_invoice_number(self, tx: Transaction, issue_date: date) -> str:
        """
        Next invoice number for the issue month.

        Format: INV-YYYYMM-NNNN where NNNN restarts at 0001 each month. An
        advisory lock on the month prefix serializes concurrent issuers
        until the surrounding transaction ends.
        """
        prefix = f"{self.config.invoice_number_prefix}-{issue_date:%Y%m}-"

        tx.execute("SELECT pg_advisory_xact_lock(hashtext(%s))", (prefix,))

        result = tx.execute_single(
            """
            SELECT invoice_number FROM invoices
            WHERE invoice_number LIKE %s
            ORDER BY length(invoice_number) DESC, invoice_number DESC
            LIMIT 1
            """,
            (f"{prefix}%",)
        )

        if result is None:
            sequence = 1
        else:
            try:
                sequence = int(result["invoice_number"].split("-")[-1]) + 1
            except (ValueError, IndexError):
                sequence = 1

        return f"{prefix}{sequence:04d}"

    def _insert_line_items(
        self,
        tx: Transaction,
        invoice_id: UUID,
        lines: Sequence[LineItemInput]
    ) -> list[InvoiceLineItem]:
        now = now_utc()
        stored = []
        for line in lines:
            row = tx.execute_returning(
                """
                INSERT INTO invoice_line_items (
                    id, invoice_id, line_number,
                    item_code, item_name, description, unit_of_measure, category, notes,
                    quantity, unit_price, discount_percent, discount_amount,
                    tax_percent, tax_amount, line_total, line_total_with_tax,
                    created_at, updated_at
                ) VALUES (
                    %s, %s, %s,
                    %s, %s, %s, %s, %s, %s,
                    %s, %s, %s, %s,
                    %s, %s, %s, %s,
                    %s, %s
                )
                RETURNING *
                """,
                (
                    uuid4(), invoice_id, line.line_number,
                    line.item_code, line.item_name, line.description, line.unit_of_measure,
                    line.category, line.notes,
                    line.quantity, line.unit_price, line.discount_percent, line.discount_amount,
                    line.tax_percent, line.tax_amount, line.line_total, line.line_total_with_tax,
                    now, now
                )
            )[0]
            stored.append(InvoiceLineItem.model_validate(row))
        return stored

    def _load_line_items(self, source: PostgresClient | Transaction, invoice_id: UUID) -> list[InvoiceLineItem]:
        rows = source.execute(
            "SELECT * FROM invoice_line_items WHERE invoice_id = %s ORDER BY line_number ASC",
            (invoice_id,)
        )
        return [InvoiceLineItem.model_validate(row) for row in rows]

    def _issue(
        self,
        tx: Transaction,
        tenant_id: UUID,
        room_id: UUID,
        monthly_rent: Decimal,
        billing_period: date,
        additional_charges: Decimal = Decimal(0),
        discount: Decimal = Decimal(0),
        lines: Sequence[LineItemInput] = (),
        due_date: date | None = None,
        additional_charges_description: str | None = None,
        notes: str | None = None,
    ) -> Invoice:
        """Insert an issued invoice and its lines inside an open transaction."""
        invoice_id = uuid4()
        now = now_utc()
        issue_date = now.date()
        if due_date is None:
            due_date = issue_date + timedelta(days=self.config.invoice_due_days)

        total = self._total(monthly_rent, additional_charges, discount, lines)
        invoice_number = self._generate_invoice_number(tx, issue_date)

        row = tx.execute_returning(
            """
            INSERT INTO invoices (
                id, invoice_number, tenant_id, room_id,
                monthly_rent, additional_charges, additional_charges_description, discount,
                total_amount, paid_amount, remaining_balance, status,
                billing_period, issue_date, due_date, paid_date, notes,
                created_at, updated_at
            ) VALUES (
                %s, %s, %s, %s,
                %s, %s, %s, %s,
                %s, %s, %s, %s,
                %s, %s, %s, %s, %s,
                %s, %s
            )
            RETURNING *
            """,
            (
                invoice_id, invoice_number, tenant_id, room_id,
                monthly_rent, additional_charges, additional_charges_description, discount,
                total, Decimal(0), total, InvoiceStatus.ISSUED.value,
                billing_period, issue_date, due_date, None, notes,
                now, now
            )
        )[0]

        stored_lines = self._insert_line_items(tx, invoice_id, lines)
        invoice = Invoice.model_validate({**row, "line_items": stored_lines})

        self.audit.log_change(
            entity_type="invoice",
            entity_id=invoice.id,
            action=AuditAction.CREATE,
            changes={
                "created": {
                    "invoice_number": invoice.invoice_number,
                    "tenant_id": str(tenant_id),
                    "billing_period": billing_period.isoformat(),
                    "monthly_rent": str(monthly_rent),
                    "line_items": len(stored_lines),
                    "total_amount": str(total),
                }
            },
            tx=tx
        )

        return invoice

    # -------------------------------------------------------------------------
    # Create / preview
    # -------------------------------------------------------------------------

    def create(self, data: InvoiceCreate) -> Invoice:
        """
        Issue an invoice to a tenant.

        Monthly rent is taken from the tenant's room. Line items are priced
        and numbered 1..N in the order given.

        Args:
            data: Billing period, charges, discount and line items

        Returns:
            Created invoice in ISSUED status, with its line items

        Raises:
            ValueError: If tenant not found or not assigned to a room
        """
        tenant = self.postgres.execute_single(
            """
            SELECT t.id, t.room_id, r.monthly_rent AS room_rent
            FROM tenants t
            LEFT JOIN rooms r ON r.id = t.room_id AND r.deleted_at IS NULL
            WHERE t.id = %s AND t.deleted_at IS NULL
            """,
            (data.tenant_id,)
        )
        if tenant is None:
            raise ValueError(f"Tenant {data.tenant_id} not found")
        if tenant["room_id"] is None or tenant["room_rent"] is None:
            raise ValueError("Tenant must be assigned to a room")

        lines = prepare_line_items(data.line_items)

        with self.postgres.transaction() as tx:
            invoice = self._issue(
                tx,
                tenant_id=data.tenant_id,
                room_id=tenant["room_id"],
                monthly_rent=tenant["room_rent"],
                billing_period=data.billing_period,
                additional_charges=data.additional_charges,
                discount=data.discount,
                lines=lines,
                due_date=data.due_date,
                additional_charges_description=data.additional_charges_description,
                notes=data.notes,
            )

        logger.info(f"Created invoice {invoice.invoice_number} for tenant {data.tenant_id}")
        self.event_bus.publish(InvoiceIssued.create(invoice=invoice))

        return invoice

    def preview(self, data: InvoicePreview) -> InvoiceQuote:
        """
        Price an unsaved invoice for the editor. Nothing is written.

        Args:
            data: Rent, charges, discount and raw line items

        Returns:
            Priced, numbered line items with column totals and grand total
        """
        lines = prepare_line_items(data.line_items)
        summary = summarize_line_items(lines)

        return InvoiceQuote(
            line_items=lines,
            subtotal=summary.subtotal,
            line_discount=summary.discount,
            after_discount=summary.after_discount,
            tax=summary.tax,
            line_items_total=summary.total,
            total_amount=self._total(data.monthly_rent, data.additional_charges, data.discount, lines),
        )

    def generate_monthly(self, billing_period: date) -> int:
        """
        Issue rent invoices for every active tenant with a room.

        Tenants that already have an invoice for the month are skipped, so
        running this twice for the same month issues nothing the second time.

        Args:
            billing_period: Any day in the month being billed

        Returns:
            Number of invoices issued
        """
        period = month_start(billing_period)

        tenants = self.postgres.execute(
            """
            SELECT t.id AS tenant_id, t.room_id, r.monthly_rent
            FROM tenants t
            JOIN rooms r ON r.id = t.room_id AND r.deleted_at IS NULL
            WHERE t.is_active = true AND t.deleted_at IS NULL
              AND NOT EXISTS (
                  SELECT 1 FROM invoices i
                  WHERE i.tenant_id = t.id AND i.billing_period = %s AND i.deleted_at IS NULL
              )
            ORDER BY t.last_name ASC, t.first_name ASC
            """,
            (period,)
        )

        issued = []
        with self.postgres.transaction() as tx:
            for tenant in tenants:
                issued.append(self._issue(
                    tx,
                    tenant_id=tenant["tenant_id"],
                    room_id=tenant["room_id"],
                    monthly_rent=tenant["monthly_rent"],
                    billing_period=period,
                    notes=f"Monthly rent for {period:%B %Y}",
                ))

        logger.info(f"Generated {len(issued)} invoices for billing period {period:%B %Y}")
        for invoice in issued:
            self.event_bus.publish(InvoiceIssued.create(invoice=invoice))

        return len(issued)

    # -------------------------------------------------------------------------
    # Read
    # -------------------------------------------------------------------------

    def get_by_id(self, invoice_id: UUID) -> Invoice | None:
        """
        Get invoice by ID, with its line items.

        Args:
            invoice_id: Invoice UUID

        Returns:
            Invoice if found and not deleted, None otherwise.
        """
        row = self.postgres.execute_single(
            f"{_INVOICE_SELECT} WHERE i.id = %s AND i.deleted_at IS NULL",
            (invoice_id,)
        )

        if row is None:
            return None

        return Invoice.model_validate({**row, "line_items": self._load_line_items(self.postgres, invoice_id)})

    def search(self, criteria: InvoiceSearch) -> Page[Invoice]:
        """
        Search invoices with filters, sorting and paging.

        The term matches invoice number, tenant name and room number.
        Results do not include line items. Default ordering is newest
        issue date first.

        Args:
            criteria: Filters, sort key and page

        Returns:
            One page of matching invoices
        """
        conditions = ["i.deleted_at IS NULL"]
        params: list[Any] = []

        if criteria.search:
            pattern = f"%{criteria.search}%"
            conditions.append(
                "(i.invoice_number ILIKE %s OR t.first_name ILIKE %s "
                "OR t.last_name ILIKE %s OR r.room_number ILIKE %s)"
            )
            params.extend([pattern, pattern, pattern, pattern])
        if criteria.status is not None:
            conditions.append("i.status = %s")
            params.append(criteria.status.value)
        if criteria.tenant_id is not None:
            conditions.append("i.tenant_id = %s")
            params.append(criteria.tenant_id)
        if criteria.room_id is not None:
            conditions.append("i.room_id = %s")
            params.append(criteria.room_id)
        if criteria.billing_month is not None:
            conditions.append("i.billing_period = %s")
            params.append(month_start(criteria.billing_month))
        if criteria.due_from is not None:
            conditions.append("i.due_date >= %s")
            params.append(criteria.due_from)
        if criteria.due_to is not None:
            conditions.append("i.due_date <= %s")
            params.append(criteria.due_to)
        if criteria.overdue_only:
            conditions.append(f"{_OPEN} AND i.due_date < %s")
            params.append(today_utc())

        if criteria.sort_by is None:
            order_by = "i.issue_date DESC, i.invoice_number DESC"
        else:
            order_by = order_clause(criteria, _SORT_COLUMNS, "issue_date")

        return fetch_page(
            self.postgres,
            _INVOICE_SELECT,
            conditions,
            params,
            order_by,
            criteria,
            Invoice,
            self.config.max_page_size,
        )

    def list_for_tenant(self, tenant_id: UUID) -> list[Invoice]:
        """
        List a tenant's invoices, most recent billing period first.

        Args:
            tenant_id: Tenant UUID

        Returns:
            Invoices without line items
        """
        rows = self.postgres.execute(
            f"""
            {_INVOICE_SELECT}
            WHERE i.tenant_id = %s AND i.deleted_at IS NULL
            ORDER BY i.billing_period DESC, i.invoice_number DESC
            """,
            (tenant_id,)
        )

        return [Invoice.model_validate(row) for row in rows]

    def list_overdue(self) -> list[Invoice]:
        """
        Unpaid, uncancelled invoices past their due date, oldest due first.

        Returns:
            Overdue invoices without line items
        """
        rows = self.postgres.execute(
            f"""
            {_INVOICE_SELECT}
            WHERE {_OPEN} AND i.due_date < %s AND i.deleted_at IS NULL
            ORDER BY i.due_date ASC
            """,
            (today_utc(),)
        )

        return [Invoice.model_validate(row) for row in rows]

    def stats(self) -> InvoiceStats:
        """
        Billing dashboard figures.

        Revenue counts paid invoices by paid date: this month is from the
        first of the current month, last month is the whole previous month.

        Returns:
            Invoice counts, revenue and outstanding balance
        """
        today = today_utc()
        this_month = month_start(today)
        last_month = previous_month_start(today)

        row = self.postgres.execute_single(
            f"""
            SELECT
                COUNT(*) AS total_invoices,
                COUNT(*) FILTER (WHERE i.status = 'paid') AS paid_invoices,
                COUNT(*) FILTER (WHERE {_OPEN} AND i.due_date < %s) AS overdue_invoices,
                COALESCE(SUM(i.total_amount) FILTER (WHERE i.status = 'paid'), 0) AS total_revenue,
                COALESCE(SUM(i.total_amount) FILTER (
                    WHERE i.status = 'paid' AND i.paid_date >= %s
                ), 0) AS current_month_revenue,
                COALESCE(SUM(i.total_amount) FILTER (
                    WHERE i.status = 'paid' AND i.paid_date >= %s AND i.paid_date < %s
                ), 0) AS last_month_revenue,
                COALESCE(SUM(i.remaining_balance) FILTER (WHERE {_OPEN}), 0) AS outstanding_amount
            FROM invoices i
            WHERE i.deleted_at IS NULL
            """,
            (today, this_month, last_month, this_month)
        )

        return InvoiceStats.model_validate(row)

    def monthly_revenue(self, year: int) -> RevenueYear:
        """
        Revenue for each month of a year.

        Revenue is paid invoices by issue month; payments are verified
        payments by payment month. All twelve months are listed, empty ones
        as zeros.

        Args:
            year: Calendar year

        Returns:
            Monthly breakdown with totals and the best and worst months
        """
        start, end = date(year, 1, 1), date(year + 1, 1, 1)

        revenue_rows = self.postgres.execute(
            """
            SELECT EXTRACT(MONTH FROM issue_date)::int AS month,
                   SUM(total_amount) AS revenue,
                   COUNT(*) AS invoice_count
            FROM invoices
            WHERE status = 'paid' AND issue_date >= %s AND issue_date < %s AND deleted_at IS NULL
            GROUP BY 1
            """,
            (start, end)
        )
        payment_rows = self.postgres.execute(
            """
            SELECT EXTRACT(MONTH FROM payment_date)::int AS month,
                   SUM(amount) AS payment_amount,
                   COUNT(*) AS payment_count
            FROM payments
            WHERE is_verified AND payment_date >= %s AND payment_date < %s
            GROUP BY 1
            """,
            (start, end)
        )

        revenue = {row["month"]: row for row in revenue_rows}
        payments = {row["month"]: row for row in payment_rows}

        months = [
            MonthlyRevenue(
                month=month,
                month_name=calendar.month_name[month],
                revenue=revenue.get(month, {}).get("revenue", ZERO),
                invoice_count=revenue.get(month, {}).get("invoice_count", 0),
                payment_amount=payments.get(month, {}).get("payment_amount", ZERO),
                payment_count=payments.get(month, {}).get("payment_count", 0),
            )
            for month in range(1, 13)
        ]
        total_revenue = sum((m.revenue for m in months), ZERO)

        return RevenueYear(
            year=year,
            total_revenue=total_revenue,
            average_monthly_revenue=round_money(total_revenue / 12),
            total_invoices=sum(m.invoice_count for m in months),
            total_payments=sum(m.payment_count for m in months),
            months=months,
            highest_month=max(months, key=lambda m: m.revenue),
            lowest_month=min(months, key=lambda m: m.revenue),
        )

    def outstanding_report(self) -> OutstandingReport:
        """
        Receivables as of today.

        Overdue invoices are open invoices past their due date; upcoming
        ones fall due within the next 30 days. Amounts are remaining
        balances.

        Returns:
            Overdue and upcoming invoices, their totals, and overdue ageing
        """
        today = today_utc()

        rows = self.postgres.execute(
            f"""
            {_INVOICE_SELECT}
            WHERE {_OPEN} AND i.due_date <= %s AND i.deleted_at IS NULL
            ORDER BY i.due_date ASC
            """,
            (today + timedelta(days=30),)
        )
        total_outstanding = self.postgres.execute_scalar(
            f"SELECT COALESCE(SUM(i.remaining_balance), 0) FROM invoices i WHERE {_OPEN} AND i.deleted_at IS NULL"
        )

        overdue, upcoming = [], []
        ageing = AgeBuckets()
        for row in rows:
            invoice = Invoice.model_validate(row)
            days = (today - invoice.due_date).days
            entry = OutstandingInvoice(
                invoice_id=invoice.id,
                invoice_number=invoice.invoice_number,
                tenant_name=invoice.tenant_name or "",
                amount=invoice.remaining_balance,
                due_date=invoice.due_date,
                days=abs(days),
                status=invoice.status,
            )
            if days <= 0:
                upcoming.append(entry)
                continue

            overdue.append(entry)
            if days <= 30:
                ageing.days_0_30 += 1
            elif days <= 60:
                ageing.days_31_60 += 1
            elif days <= 90:
                ageing.days_61_90 += 1
            else:
                ageing.over_90 += 1

        logger.info(f"Outstanding report: {len(overdue)} overdue, {len(upcoming)} upcoming")
        return OutstandingReport(
            generated_on=today,
            total_outstanding=total_outstanding or ZERO,
            total_overdue=sum((e.amount for e in overdue), ZERO),
            total_upcoming=sum((e.amount for e in upcoming), ZERO),
            overdue=overdue,
            upcoming=upcoming,
            ageing=ageing,
        )

    def financial_summary(self, from_date: date, to_date: date) -> FinancialSummary:
        """
        Revenue and collections for invoices issued in a date range.

        Cancelled invoices are left out. Revenue is the total of paid
        invoices; outstanding is the remaining balance of open ones.
        Payments and security deposits are counted by their own dates.

        Args:
            from_date: First issue date included
            to_date: Last issue date included

        Returns:
            Range totals, collection rate and a per-month breakdown

        Raises:
            ValueError: If from_date is after to_date
        """
        conditions, params = date_range("issue_date", from_date, to_date)

        rows = self.postgres.execute(
            f"""
            SELECT
                to_char(issue_date, 'YYYY-MM') AS period,
                SUM(total_amount) AS total_invoiced,
                COALESCE(SUM(total_amount) FILTER (WHERE status = 'paid'), 0) AS paid_amount,
                COALESCE(SUM(remaining_balance) FILTER (WHERE status <> 'paid'), 0) AS outstanding_amount,
                COUNT(*) AS invoice_count
            FROM invoices
            WHERE {' AND '.join(conditions)} AND status <> 'cancelled' AND deleted_at IS NULL
            GROUP BY 1
            ORDER BY 1
            """,
            tuple(params)
        )
        months = [
            PeriodFinancials(
                collection_rate=percent_of(row["paid_amount"], row["total_invoiced"]),
                **row,
            )
            for row in rows
        ]

        extras = self.postgres.execute_single(
            """
            SELECT
                (SELECT COALESCE(SUM(amount), 0) FROM payments
                 WHERE is_verified AND payment_date >= %s AND payment_date <= %s) AS total_payments,
                (SELECT COALESCE(SUM(security_deposit), 0) FROM tenants
                 WHERE is_active AND deleted_at IS NULL
                   AND contract_start_date >= %s AND contract_start_date <= %s) AS security_deposits
            """,
            (from_date, to_date, from_date, to_date)
        ) or {}

        total_revenue = sum((m.paid_amount for m in months), ZERO)
        total_outstanding = sum((m.outstanding_amount for m in months), ZERO)

        return FinancialSummary(
            from_date=from_date,
            to_date=to_date,
            total_revenue=total_revenue,
            total_payments=extras.get("total_payments") or ZERO,
            total_outstanding=total_outstanding,
            collection_rate=percent_of(total_revenue, total_revenue + total_outstanding),
            security_deposits=extras.get("security_deposits") or ZERO,
            average_monthly_revenue=round_money(total_revenue / len(months)) if months else ZERO,
            total_invoices=sum(m.invoice_count for m in months),
            months=months,
        )

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def _lock(self, tx: Transaction, invoice_id: UUID) -> Invoice:
        row = tx.execute_single(
            "SELECT * FROM invoices WHERE id = %s AND deleted_at IS NULL FOR UPDATE",
            (invoice_id,)
        )
        if row is None:
            raise ValueError(f"Invoice {invoice_id} not found")
        return Invoice.model_validate(row)

    def update(self, invoice_id: UUID, data: InvoiceUpdate) -> Invoice:
        """
        Update an unpaid invoice and recompute its totals.

        When line_items is given the stored lines are replaced by the new
        set, priced and renumbered. Rent is never changed here.

        Args:
            invoice_id: Invoice UUID
            data: Fields to update

        Returns:
            Updated invoice with its line items

        Raises:
            ValueError: If invoice not found or already paid, or the status
                change would cancel money already taken or mark a balance paid
        """
        with self.postgres.transaction() as tx:
            current = self._lock(tx, invoice_id)
            if current.status == InvoiceStatus.PAID:
                raise ValueError("Cannot update a paid invoice")

            current_lines = self._load_line_items(tx, invoice_id)

            if data.line_items is not None:
                tx.execute("DELETE FROM invoice_line_items WHERE invoice_id = %s", (invoice_id,))
                lines = self._insert_line_items(tx, invoice_id, prepare_line_items(data.line_items))
            else:
                lines = current_lines

            additional_charges = (
                data.additional_charges if data.additional_charges is not None
                else current.additional_charges
            )
            discount = data.discount if data.discount is not None else current.discount

            total = self._total(current.monthly_rent, additional_charges, discount, lines)
            settlement = settle(total, current.paid_amount)

            if data.status == InvoiceStatus.CANCELLED and current.paid_amount > 0:
                raise ValueError("Cannot cancel an invoice with payments")
            if data.status == InvoiceStatus.PAID and settlement.remaining_balance > 0:
                raise ValueError(
                    f"Invoice {current.invoice_number} still owes {settlement.remaining_balance}; "
                    "record a payment or mark it paid"
                )

            if data.status is not None:
                status = data.status
            elif current.paid_amount > 0:
                status = settlement.status
            else:
                status = current.status

            row = tx.execute_returning(
                """
                UPDATE invoices
                SET additional_charges = %s,
                    additional_charges_description = COALESCE(%s, additional_charges_description),
                    discount = %s,
                    due_date = COALESCE(%s, due_date),
                    notes = COALESCE(%s, notes),
                    status = %s,
                    total_amount = %s,
                    remaining_balance = %s,
                    updated_at = %s
                WHERE id = %s
                RETURNING *
                """,
                (
                    additional_charges, data.additional_charges_description, discount,
                    data.due_date, data.notes, status.value,
                    total, settlement.remaining_balance, now_utc(),
                    invoice_id
                )
            )[0]

            updated = Invoice.model_validate({**row, "line_items": lines})

            changes = compute_changes(
                current.model_dump(mode="json", exclude={"line_items"}),
                updated.model_dump(mode="json", exclude={"line_items"})
            )
            if data.line_items is not None:
                changes["line_items"] = {"old": len(current_lines), "new": len(lines)}
            if changes:
                self.audit.log_change(
                    entity_type="invoice",
                    entity_id=invoice_id,
                    action=AuditAction.UPDATE,
                    changes=changes,
                    tx=tx
                )

        logger.info(f"Updated invoice {updated.invoice_number}")
        return updated

    def delete(self, invoice_id: UUID) -> bool:
        """
        Soft delete an invoice.

        Args:
            invoice_id: Invoice UUID

        Returns:
            True if deleted, False if not found

        Raises:
            ValueError: If payments have been recorded against it
        """
        current = self.get_by_id(invoice_id)
        if current is None:
            return False

        payments = self.postgres.execute_scalar(
            "SELECT COUNT(*) FROM payments WHERE invoice_id = %s",
            (invoice_id,)
        )
        if payments:
            raise ValueError("Cannot delete invoice with existing payments")

        now = now_utc()
        self.postgres.execute_returning(
            """
            UPDATE invoices
            SET deleted_at = %s, updated_at = %s
            WHERE id = %s
            RETURNING id
            """,
            (now, now, invoice_id)
        )

        self.audit.log_change(
            entity_type="invoice",
            entity_id=invoice_id,
            action=AuditAction.DELETE,
            changes={"deleted": current.model_dump(mode="json")}
        )

        return True

    def mark_paid(self, invoice_id: UUID, paid_date: date | None = None) -> Invoice:
        """
        Settle an invoice in full outside the payment ledger.

        Args:
            invoice_id: Invoice UUID
            paid_date: Date the money arrived (defaults to today)

        Returns:
            Updated invoice with PAID status and zero balance

        Raises:
            ValueError: If invoice not found or cancelled
        """
        with self.postgres.transaction() as tx:
            current = self._lock(tx, invoice_id)
            if current.status == InvoiceStatus.CANCELLED:
                raise ValueError(f"Invoice {current.invoice_number} is cancelled")

            paid_on = paid_date or today_utc()
            row = tx.execute_returning(
                """
                UPDATE invoices
                SET status = %s, paid_amount = total_amount, remaining_balance = 0,
                    paid_date = %s, updated_at = %s
                WHERE id = %s
                RETURNING *
                """,
                (InvoiceStatus.PAID.value, paid_on, now_utc(), invoice_id)
            )[0]
            updated = Invoice.model_validate(row)

            self.audit.log_change(
                entity_type="invoice",
                entity_id=invoice_id,
                action=AuditAction.UPDATE,
                changes={
                    "status": {"old": current.status.value, "new": InvoiceStatus.PAID.value},
                    "paid_amount": {"old": str(current.paid_amount), "new": str(updated.paid_amount)},
                    "paid_date": {"old": None, "new": paid_on.isoformat()},
                },
                tx=tx
            )

        logger.info(f"Marked invoice {updated.invoice_number} as paid")
        if current.status != InvoiceStatus.PAID:
            self.event_bus.publish(InvoicePaid.create(invoice=updated))

        return updated

    def cancel(self, invoice_id: UUID) -> Invoice:
        """
        Cancel an invoice that has taken no money.

        Args:
            invoice_id: Invoice UUID

        Returns:
            Cancelled invoice

        Raises:
            ValueError: If invoice not found, paid, or has payments
        """
        with self.postgres.transaction() as tx:
            current = self._lock(tx, invoice_id)
            if current.status == InvoiceStatus.PAID:
                raise ValueError("Cannot cancel a paid invoice")
            if current.paid_amount > 0:
                raise ValueError("Cannot cancel an invoice with payments")

            row = tx.execute_returning(
                """
                UPDATE invoices
                SET status = %s, updated_at = %s
                WHERE id = %s
                RETURNING *
                """,
                (InvoiceStatus.CANCELLED.value, now_utc(), invoice_id)
            )[0]
            updated = Invoice.model_validate(row)

            self.audit.log_change(
                entity_type="invoice",
                entity_id=invoice_id,
                action=AuditAction.UPDATE,
                changes={"status": {"old": current.status.value, "new": InvoiceStatus.CANCELLED.value}},
                tx=tx
            )

        return updated

    # -------------------------------------------------------------------------
    # Notices
    # -------------------------------------------------------------------------

    def send_reminders(self, email_client: EmailGatewayClient) -> int:
        """
        Email tenants whose invoices are overdue or fall due soon.

        Covers open invoices due within reminder_window_days (overdue ones
        included). A failed send is logged and skipped; it does not stop
        the run.

        Args:
            email_client: Gateway used to deliver the reminders

        Returns:
            Number of reminders delivered
        """
        cutoff = today_utc() + timedelta(days=self.config.reminder_window_days)

        rows = self.postgres.execute(
            f"""
            SELECT i.*,
                   trim(t.first_name || ' ' || t.last_name) AS tenant_name,
                   t.email AS tenant_email,
                   r.room_number
            FROM invoices i
            JOIN tenants t ON t.id = i.tenant_id
            LEFT JOIN rooms r ON r.id = i.room_id
            WHERE {_OPEN} AND i.status <> 'draft'
              AND i.due_date <= %s AND i.deleted_at IS NULL
            ORDER BY i.due_date ASC
            """,
            (cutoff,)
        )

        sent = 0
        for row in rows:
            invoice = Invoice.model_validate(row)
            email = row.get("tenant_email")
            if not email:
                logger.warning(f"No email on file for invoice {invoice.invoice_number}, reminder skipped")
                continue

            try:
                email_client.send_invoice_reminder(
                    email, invoice, invoice.tenant_name or "", currency=self.config.currency
                )
            except EmailGatewayError as e:
                logger.warning(f"Reminder for invoice {invoice.invoice_number} failed: {e}")
                continue

            sent += 1

        logger.info(f"Sent {sent} of {len(rows)} invoice reminders")
        return sent
