"""Tests for InvoiceService.

Database access goes through MagicMock doubles (see tests/conftest.py).
Statement order inside a transaction is part of the contract being tested:
lock/number first, then the invoice row, then its lines.
"""

from datetime import date, timedelta
from decimal import Decimal
from unittest.mock import Mock
from uuid import uuid4

import pytest

from clients.email_client import EmailGatewayClient, EmailGatewayError
from core.audit import AuditAction
from core.config import BillingConfig
from core.events import InvoiceIssued, InvoicePaid
from core.models import (
    InvoiceCreate, InvoicePreview, InvoiceSearch, InvoiceStatus, InvoiceUpdate, LineItemInput,
)
from core.services.invoice_service import InvoiceService
from utils.timezone import today_utc

# Positions in the INSERT INTO invoices parameter tuple
NUMBER, TOTAL, PAID, REMAINING, STATUS, PERIOD, DUE, NOTES = 1, 8, 9, 10, 11, 12, 14, 16
# Positions in the UPDATE invoices parameter tuple of update()
U_CHARGES, U_DISCOUNT, U_STATUS, U_TOTAL, U_REMAINING = 0, 2, 5, 6, 7


@pytest.fixture
def invoice_service(postgres, audit, event_bus):
    return InvoiceService(postgres, audit, event_bus)


@pytest.fixture
def sample_line():
    """2 x 100, 10% off, 5% tax -> 189 with tax."""
    return LineItemInput(item_name="Electricity", quantity=2, unit_price=100, discount_percent=10, tax_percent=5)


@pytest.fixture
def billed_tenant():
    return {"id": uuid4(), "room_id": uuid4(), "room_rent": Decimal("800")}


class TestCreate:

    def test_total_from_rent_charges_and_lines(
        self, invoice_service, postgres, tx, event_bus, billed_tenant, sample_line, invoice_row, line_item_row
    ):
        postgres.execute_single.return_value = billed_tenant
        tx.execute_single.return_value = None
        row = invoice_row(total_amount=Decimal("1039"), remaining_balance=Decimal("1039"))
        tx.execute_returning.side_effect = [[row], [line_item_row(row["id"])]]

        invoice = invoice_service.create(InvoiceCreate(
            tenant_id=billed_tenant["id"],
            billing_period=date(2024, 3, 9),
            additional_charges="50",
            line_items=[sample_line],
        ))

        params = tx.execute_returning.call_args_list[0].args[1]
        assert params[TOTAL] == Decimal("1039")
        assert params[PAID] == 0
        assert params[REMAINING] == Decimal("1039")
        assert params[STATUS] == "issued"
        assert params[PERIOD] == date(2024, 3, 1)
        assert params[4] == Decimal("800")  # rent from the room

        line_params = tx.execute_returning.call_args_list[1].args[1]
        assert line_params[2] == 1  # line_number
        assert line_params[-4] == Decimal("180")  # line_total
        assert line_params[-3] == Decimal("189")  # line_total_with_tax

        assert len(invoice.line_items) == 1
        published = event_bus.publish.call_args.args[0]
        assert isinstance(published, InvoiceIssued)
        assert published.invoice.id == invoice.id

    def test_lines_renumbered_in_order(self, invoice_service, postgres, tx, billed_tenant, invoice_row, line_item_row):
        postgres.execute_single.return_value = billed_tenant
        tx.execute_single.return_value = None
        row = invoice_row()
        tx.execute_returning.side_effect = [
            [row], [line_item_row(row["id"], line_number=1)], [line_item_row(row["id"], line_number=2)],
        ]

        invoice_service.create(InvoiceCreate(
            tenant_id=billed_tenant["id"],
            billing_period=date(2024, 3, 1),
            line_items=[
                LineItemInput(item_name="A", line_number=1),
                LineItemInput(item_name="B", line_number=3),
            ],
        ))

        numbers = [(c.args[1][4], c.args[1][2]) for c in tx.execute_returning.call_args_list[1:]]
        assert numbers == [("A", 1), ("B", 2)]

    def test_due_date_defaults_from_config(self, postgres, audit, event_bus, tx, billed_tenant, invoice_row):
        service = InvoiceService(postgres, audit, event_bus, BillingConfig(invoice_due_days=7))
        postgres.execute_single.return_value = billed_tenant
        tx.execute_single.return_value = None
        tx.execute_returning.return_value = [invoice_row()]

        service.create(InvoiceCreate(tenant_id=billed_tenant["id"], billing_period=date(2024, 3, 1)))

        params = tx.execute_returning.call_args.args[1]
        assert params[DUE] == today_utc() + timedelta(days=7)

    def test_negative_total_kept_by_default(self, invoice_service, postgres, tx, billed_tenant, invoice_row):
        postgres.execute_single.return_value = billed_tenant
        tx.execute_single.return_value = None
        tx.execute_returning.return_value = [invoice_row()]

        invoice_service.create(InvoiceCreate(
            tenant_id=billed_tenant["id"], billing_period=date(2024, 3, 1), discount="1000",
        ))

        assert tx.execute_returning.call_args.args[1][TOTAL] == Decimal("-200")

    def test_negative_total_floored_when_configured(self, postgres, audit, event_bus, tx, billed_tenant, invoice_row):
        service = InvoiceService(postgres, audit, event_bus, BillingConfig(floor_negative_totals=True))
        postgres.execute_single.return_value = billed_tenant
        tx.execute_single.return_value = None
        tx.execute_returning.return_value = [invoice_row()]

        service.create(InvoiceCreate(
            tenant_id=billed_tenant["id"], billing_period=date(2024, 3, 1), discount="1000",
        ))

        assert tx.execute_returning.call_args.args[1][TOTAL] == 0

    def test_invoice_number_continues_month_sequence(self, invoice_service, postgres, tx, billed_tenant, invoice_row):
        prefix = f"INV-{today_utc():%Y%m}-"
        postgres.execute_single.return_value = billed_tenant
        tx.execute_single.return_value = {"invoice_number": f"{prefix}0007"}
        tx.execute_returning.return_value = [invoice_row()]

        invoice_service.create(InvoiceCreate(tenant_id=billed_tenant["id"], billing_period=date(2024, 3, 1)))

        assert tx.execute_returning.call_args.args[1][NUMBER] == f"{prefix}0008"
        lock_sql, lock_params = tx.execute.call_args_list[0].args
        assert "pg_advisory_xact_lock" in lock_sql
        assert lock_params == (prefix,)

    def test_invoice_number_grows_past_four_digits(self, invoice_service, postgres, tx, billed_tenant, invoice_row):
        """Longer numbers sort first so 10000 follows 9999 instead of repeating it."""
        prefix = f"INV-{today_utc():%Y%m}-"
        postgres.execute_single.return_value = billed_tenant
        tx.execute_single.return_value = {"invoice_number": f"{prefix}10000"}
        tx.execute_returning.return_value = [invoice_row()]

        invoice_service.create(InvoiceCreate(tenant_id=billed_tenant["id"], billing_period=date(2024, 3, 1)))

        assert tx.execute_returning.call_args.args[1][NUMBER] == f"{prefix}10001"
        number_sql = tx.execute_single.call_args_list[0].args[0]
        assert "ORDER BY length(invoice_number) DESC, invoice_number DESC" in number_sql

    def test_audit_written_in_transaction(self, invoice_service, postgres, tx, audit, billed_tenant, invoice_row):
        postgres.execute_single.return_value = billed_tenant
        tx.execute_single.return_value = None
        tx.execute_returning.return_value = [invoice_row()]

        invoice_service.create(InvoiceCreate(tenant_id=billed_tenant["id"], billing_period=date(2024, 3, 1)))

        assert audit.log_change.call_args.kwargs["tx"] is tx
        assert audit.log_change.call_args.kwargs["action"] == AuditAction.CREATE

    def test_tenant_not_found(self, invoice_service, postgres, tx):
        postgres.execute_single.return_value = None

        with pytest.raises(ValueError, match="not found"):
            invoice_service.create(InvoiceCreate(tenant_id=uuid4(), billing_period=date(2024, 3, 1)))

        tx.execute_returning.assert_not_called()

    def test_tenant_without_room(self, invoice_service, postgres, event_bus):
        postgres.execute_single.return_value = {"id": uuid4(), "room_id": None, "room_rent": None}

        with pytest.raises(ValueError, match="assigned to a room"):
            invoice_service.create(InvoiceCreate(tenant_id=uuid4(), billing_period=date(2024, 3, 1)))

        event_bus.publish.assert_not_called()


class TestPreview:

    def test_quote(self, invoice_service, postgres, sample_line):
        quote = invoice_service.preview(InvoicePreview(
            monthly_rent="800", additional_charges="50", line_items=[sample_line],
        ))

        assert quote.total_amount == Decimal("1039")
        assert quote.subtotal == Decimal("200")
        assert quote.line_discount == Decimal("20")
        assert quote.tax == Decimal("9")
        assert quote.line_items_total == Decimal("189")
        assert quote.line_items[0].line_total_with_tax == Decimal("189")
        postgres.transaction.assert_not_called()

    def test_empty_preview(self, invoice_service):
        quote = invoice_service.preview(InvoicePreview())

        assert quote.total_amount == 0
        assert quote.line_items == []


class TestGenerateMonthly:

    def test_one_invoice_per_billable_tenant(self, invoice_service, postgres, tx, event_bus, invoice_row):
        postgres.execute.return_value = [
            {"tenant_id": uuid4(), "room_id": uuid4(), "monthly_rent": Decimal("800")},
            {"tenant_id": uuid4(), "room_id": uuid4(), "monthly_rent": Decimal("650")},
        ]
        tx.execute_single.return_value = None
        tx.execute_returning.side_effect = [[invoice_row()], [invoice_row()]]

        count = invoice_service.generate_monthly(date(2024, 3, 17))

        assert count == 2
        assert postgres.execute.call_args.args[1] == (date(2024, 3, 1),)
        first, second = (c.args[1] for c in tx.execute_returning.call_args_list)
        assert first[TOTAL] == Decimal("800")
        assert second[TOTAL] == Decimal("650")
        assert first[NOTES] == "Monthly rent for March 2024"
        assert first[PERIOD] == date(2024, 3, 1)
        assert event_bus.publish.call_count == 2

    def test_nothing_to_bill(self, invoice_service, postgres, tx, event_bus):
        postgres.execute.return_value = []

        assert invoice_service.generate_monthly(date(2024, 3, 1)) == 0
        tx.execute_returning.assert_not_called()
        event_bus.publish.assert_not_called()


class TestRead:

    def test_get_by_id_loads_lines(self, invoice_service, postgres, invoice_row, line_item_row):
        row = invoice_row(tenant_name="Ana Silva", room_number="101")
        postgres.execute_single.return_value = row
        postgres.execute.return_value = [line_item_row(row["id"])]

        invoice = invoice_service.get_by_id(row["id"])

        assert invoice.tenant_name == "Ana Silva"
        assert invoice.room_number == "101"
        assert invoice.line_items[0].line_total_with_tax == Decimal("189")

    def test_get_by_id_missing(self, invoice_service, postgres):
        postgres.execute_single.return_value = None

        assert invoice_service.get_by_id(uuid4()) is None
        postgres.execute.assert_not_called()

    def test_search_filters(self, invoice_service, postgres, invoice_row):
        postgres.execute_scalar.return_value = 1
        postgres.execute.return_value = [invoice_row()]

        page = invoice_service.search(InvoiceSearch(
            status=InvoiceStatus.ISSUED, billing_month=date(2024, 3, 20), overdue_only=True,
        ))

        assert page.total == 1
        sql, params = postgres.execute.call_args.args
        assert "ORDER BY i.issue_date DESC" in sql
        assert params[:3] == ("issued", date(2024, 3, 1), today_utc())

    def test_search_sort_whitelisted(self, invoice_service, postgres):
        postgres.execute_scalar.return_value = 0
        postgres.execute.return_value = []

        invoice_service.search(InvoiceSearch(sort_by="total_amount", sort_desc=True))

        assert "ORDER BY i.total_amount DESC" in postgres.execute.call_args.args[0]

    def test_list_overdue(self, invoice_service, postgres, invoice_row):
        postgres.execute.return_value = [invoice_row(due_date=today_utc() - timedelta(days=3))]

        invoices = invoice_service.list_overdue()

        assert invoices[0].is_overdue
        assert postgres.execute.call_args.args[1] == (today_utc(),)

    def test_list_for_tenant(self, invoice_service, postgres, invoice_row):
        tenant_id = uuid4()
        postgres.execute.return_value = [invoice_row(tenant_id=tenant_id)]

        invoices = invoice_service.list_for_tenant(tenant_id)

        assert invoices[0].tenant_id == tenant_id

    def test_stats(self, invoice_service, postgres):
        postgres.execute_single.return_value = {
            "total_invoices": 10,
            "paid_invoices": 6,
            "overdue_invoices": 2,
            "total_revenue": Decimal("4800"),
            "current_month_revenue": Decimal("1600"),
            "last_month_revenue": Decimal("2400"),
            "outstanding_amount": Decimal("1900"),
        }

        stats = invoice_service.stats()

        assert stats.paid_invoices == 6
        assert stats.outstanding_amount == Decimal("1900")
        today = today_utc()
        params = postgres.execute_single.call_args.args[1]
        assert params[0] == today
        assert params[1] == today.replace(day=1)


class TestUpdate:

    def test_replaces_lines_and_recomputes(self, invoice_service, tx, audit, invoice_row, line_item_row, sample_line):
        current = invoice_row()
        tx.execute_single.return_value = current
        tx.execute.return_value = []
        tx.execute_returning.side_effect = [
            [line_item_row(current["id"])],
            [{**current, "total_amount": Decimal("989"), "remaining_balance": Decimal("989")}],
        ]

        invoice = invoice_service.update(current["id"], InvoiceUpdate(discount="0", line_items=[sample_line]))

        delete_sql = tx.execute.call_args_list[1].args[0]
        assert "DELETE FROM invoice_line_items" in delete_sql
        params = tx.execute_returning.call_args.args[1]
        assert params[U_TOTAL] == Decimal("989")
        assert params[U_REMAINING] == Decimal("989")
        assert params[U_STATUS] == "issued"
        assert len(invoice.line_items) == 1
        assert audit.log_change.call_args.kwargs["changes"]["line_items"] == {"old": 0, "new": 1}

    def test_keeps_lines_when_not_given(self, invoice_service, tx, invoice_row, line_item_row):
        current = invoice_row()
        tx.execute_single.return_value = current
        tx.execute.return_value = [line_item_row(current["id"])]
        tx.execute_returning.return_value = [current]

        invoice_service.update(current["id"], InvoiceUpdate(additional_charges="25"))

        params = tx.execute_returning.call_args.args[1]
        assert params[U_CHARGES] == Decimal("25")
        assert params[U_TOTAL] == Decimal("1014")  # 800 + 25 + 189
        assert tx.execute.call_count == 1  # only the line load

    def test_partial_payment_status_follows_balance(self, invoice_service, tx, invoice_row):
        current = invoice_row(paid_amount=Decimal("300"), remaining_balance=Decimal("500"), status="partially_paid")
        tx.execute_single.return_value = current
        tx.execute.return_value = []
        tx.execute_returning.return_value = [current]

        invoice_service.update(current["id"], InvoiceUpdate(discount="100"))

        params = tx.execute_returning.call_args.args[1]
        assert params[U_DISCOUNT] == Decimal("100")
        assert params[U_TOTAL] == Decimal("700")
        assert params[U_REMAINING] == Decimal("400")
        assert params[U_STATUS] == "partially_paid"

    def test_cancel_with_payments_refused(self, invoice_service, tx, invoice_row):
        current = invoice_row(paid_amount=Decimal("300"), remaining_balance=Decimal("500"), status="partially_paid")
        tx.execute_single.return_value = current
        tx.execute.return_value = []

        with pytest.raises(ValueError, match="with payments"):
            invoice_service.update(current["id"], InvoiceUpdate(status=InvoiceStatus.CANCELLED))

        tx.execute_returning.assert_not_called()

    def test_paid_status_with_balance_refused(self, invoice_service, tx, invoice_row):
        current = invoice_row(paid_amount=Decimal("300"), remaining_balance=Decimal("500"), status="partially_paid")
        tx.execute_single.return_value = current
        tx.execute.return_value = []

        with pytest.raises(ValueError, match="still owes"):
            invoice_service.update(current["id"], InvoiceUpdate(status=InvoiceStatus.PAID))

        tx.execute_returning.assert_not_called()

    def test_cancel_without_payments_allowed(self, invoice_service, tx, invoice_row):
        current = invoice_row()
        tx.execute_single.return_value = current
        tx.execute.return_value = []
        tx.execute_returning.return_value = [{**current, "status": "cancelled"}]

        invoice_service.update(current["id"], InvoiceUpdate(status=InvoiceStatus.CANCELLED))

        assert tx.execute_returning.call_args.args[1][U_STATUS] == "cancelled"

    def test_paid_invoice_refused(self, invoice_service, tx, invoice_row):
        tx.execute_single.return_value = invoice_row(status="paid")

        with pytest.raises(ValueError, match="Cannot update a paid invoice"):
            invoice_service.update(uuid4(), InvoiceUpdate(notes="late fee waived"))

        tx.execute_returning.assert_not_called()

    def test_missing(self, invoice_service, tx):
        tx.execute_single.return_value = None

        with pytest.raises(ValueError, match="not found"):
            invoice_service.update(uuid4(), InvoiceUpdate())


class TestDelete:

    def test_refused_with_payments(self, invoice_service, postgres, invoice_row):
        postgres.execute_single.return_value = invoice_row()
        postgres.execute.return_value = []
        postgres.execute_scalar.return_value = 1

        with pytest.raises(ValueError, match="existing payments"):
            invoice_service.delete(uuid4())

    def test_soft_deletes(self, invoice_service, postgres, audit, invoice_row):
        postgres.execute_single.return_value = invoice_row()
        postgres.execute.return_value = []
        postgres.execute_scalar.return_value = 0

        assert invoice_service.delete(uuid4()) is True
        assert audit.log_change.call_args.kwargs["action"] == AuditAction.DELETE

    def test_missing_returns_false(self, invoice_service, postgres):
        postgres.execute_single.return_value = None

        assert invoice_service.delete(uuid4()) is False


class TestMarkPaid:

    def test_settles_and_publishes(self, invoice_service, tx, event_bus, invoice_row):
        current = invoice_row()
        tx.execute_single.return_value = current
        tx.execute_returning.return_value = [{
            **current, "status": "paid", "paid_amount": Decimal("800"),
            "remaining_balance": Decimal("0"), "paid_date": date(2024, 3, 5),
        }]

        invoice = invoice_service.mark_paid(current["id"], date(2024, 3, 5))

        assert invoice.status == InvoiceStatus.PAID
        assert invoice.remaining_balance == 0
        assert tx.execute_returning.call_args.args[1][:2] == ("paid", date(2024, 3, 5))
        assert isinstance(event_bus.publish.call_args.args[0], InvoicePaid)

    def test_already_paid_not_republished(self, invoice_service, tx, event_bus, invoice_row):
        current = invoice_row(status="paid", paid_amount=Decimal("800"), remaining_balance=Decimal("0"))
        tx.execute_single.return_value = current
        tx.execute_returning.return_value = [current]

        invoice_service.mark_paid(current["id"])

        event_bus.publish.assert_not_called()

    def test_cancelled_refused(self, invoice_service, tx, invoice_row):
        tx.execute_single.return_value = invoice_row(status="cancelled")

        with pytest.raises(ValueError, match="cancelled"):
            invoice_service.mark_paid(uuid4())


class TestCancel:

    def test_cancels_open_invoice(self, invoice_service, tx, invoice_row):
        current = invoice_row()
        tx.execute_single.return_value = current
        tx.execute_returning.return_value = [{**current, "status": "cancelled"}]

        assert invoice_service.cancel(current["id"]).status == InvoiceStatus.CANCELLED

    def test_paid_refused(self, invoice_service, tx, invoice_row):
        tx.execute_single.return_value = invoice_row(status="paid")

        with pytest.raises(ValueError, match="Cannot cancel a paid invoice"):
            invoice_service.cancel(uuid4())

    def test_with_payments_refused(self, invoice_service, tx, invoice_row):
        tx.execute_single.return_value = invoice_row(status="partially_paid", paid_amount=Decimal("100"))

        with pytest.raises(ValueError, match="with payments"):
            invoice_service.cancel(uuid4())


class TestSendReminders:

    @pytest.fixture
    def email_client(self):
        return Mock(spec=EmailGatewayClient)

    def test_sends_and_counts(self, invoice_service, postgres, email_client, invoice_row):
        postgres.execute.return_value = [
            invoice_row(tenant_email="a@example.com", tenant_name="Ana Silva"),
            invoice_row(tenant_email="b@example.com", tenant_name="Bo Chen"),
        ]

        assert invoice_service.send_reminders(email_client) == 2
        to, invoice, name = email_client.send_invoice_reminder.call_args_list[0].args
        assert to == "a@example.com"
        assert name == "Ana Silva"
        assert email_client.send_invoice_reminder.call_args.kwargs["currency"] == "USD"

    def test_window_from_config(self, postgres, audit, event_bus, email_client):
        service = InvoiceService(postgres, audit, event_bus, BillingConfig(reminder_window_days=5))
        postgres.execute.return_value = []

        service.send_reminders(email_client)

        assert postgres.execute.call_args.args[1] == (today_utc() + timedelta(days=5),)

    def test_gateway_failure_skipped(self, invoice_service, postgres, email_client, invoice_row):
        postgres.execute.return_value = [
            invoice_row(tenant_email="a@example.com", tenant_name="Ana Silva"),
            invoice_row(tenant_email="b@example.com", tenant_name="Bo Chen"),
        ]
        email_client.send_invoice_reminder.side_effect = [EmailGatewayError("down"), None]

        assert invoice_service.send_reminders(email_client) == 1
        assert email_client.send_invoice_reminder.call_count == 2

    def test_missing_email_skipped(self, invoice_service, postgres, email_client, invoice_row):
        postgres.execute.return_value = [invoice_row(tenant_email=None, tenant_name="Ana Silva")]

        assert invoice_service.send_reminders(email_client) == 0
        email_client.send_invoice_reminder.assert_not_called()


class TestReports:

    def test_monthly_revenue_fills_every_month(self, invoice_service, postgres):
        postgres.execute.side_effect = [
            [
                {"month": 2, "revenue": Decimal("1600"), "invoice_count": 2},
                {"month": 5, "revenue": Decimal("800"), "invoice_count": 1},
            ],
            [{"month": 2, "payment_amount": Decimal("1200"), "payment_count": 3}],
        ]

        report = invoice_service.monthly_revenue(2024)

        assert [m.month for m in report.months] == list(range(1, 13))
        assert report.months[1].month_name == "February"
        assert report.months[1].payment_count == 3
        assert report.months[0].revenue == 0
        assert report.total_revenue == Decimal("2400")
        assert report.average_monthly_revenue == Decimal("200.00")
        assert report.total_invoices == 3
        assert report.highest_month.month == 2
        assert report.lowest_month.month == 1
        revenue_sql, revenue_params = postgres.execute.call_args_list[0].args
        assert "status = 'paid'" in revenue_sql
        assert revenue_params == (date(2024, 1, 1), date(2025, 1, 1))

    def test_outstanding_splits_overdue_and_upcoming(self, invoice_service, postgres, invoice_row):
        today = today_utc()
        postgres.execute.return_value = [
            invoice_row(due_date=today - timedelta(days=95), remaining_balance=Decimal("800"), tenant_name="Ana Silva"),
            invoice_row(due_date=today - timedelta(days=45), remaining_balance=Decimal("500"), status="partially_paid"),
            invoice_row(due_date=today - timedelta(days=3), remaining_balance=Decimal("800")),
            invoice_row(due_date=today, remaining_balance=Decimal("800")),
            invoice_row(due_date=today + timedelta(days=10), remaining_balance=Decimal("650")),
        ]
        postgres.execute_scalar.return_value = Decimal("5000")

        report = invoice_service.outstanding_report()

        assert [e.days for e in report.overdue] == [95, 45, 3]
        assert [e.days for e in report.upcoming] == [0, 10]
        assert report.overdue[0].tenant_name == "Ana Silva"
        assert report.total_overdue == Decimal("2100")
        assert report.total_upcoming == Decimal("1450")
        assert report.total_outstanding == Decimal("5000")
        assert report.ageing.days_0_30 == 1
        assert report.ageing.days_31_60 == 1
        assert report.ageing.days_61_90 == 0
        assert report.ageing.over_90 == 1
        assert postgres.execute.call_args.args[1] == (today + timedelta(days=30),)

    def test_outstanding_empty(self, invoice_service, postgres):
        postgres.execute.return_value = []
        postgres.execute_scalar.return_value = None

        report = invoice_service.outstanding_report()

        assert report.total_outstanding == 0
        assert report.overdue == []
        assert report.ageing.over_90 == 0

    def test_financial_summary(self, invoice_service, postgres):
        postgres.execute.return_value = [
            {
                "period": "2024-01", "total_invoiced": Decimal("1600"), "paid_amount": Decimal("800"),
                "outstanding_amount": Decimal("800"), "invoice_count": 2,
            },
            {
                "period": "2024-02", "total_invoiced": Decimal("800"), "paid_amount": Decimal("800"),
                "outstanding_amount": Decimal("0"), "invoice_count": 1,
            },
        ]
        postgres.execute_single.return_value = {
            "total_payments": Decimal("1900"), "security_deposits": Decimal("1600"),
        }

        summary = invoice_service.financial_summary(date(2024, 1, 1), date(2024, 2, 29))

        assert summary.total_revenue == Decimal("1600")
        assert summary.total_outstanding == Decimal("800")
        assert summary.collection_rate == Decimal("66.67")
        assert summary.total_payments == Decimal("1900")
        assert summary.security_deposits == Decimal("1600")
        assert summary.average_monthly_revenue == Decimal("800.00")
        assert summary.total_invoices == 3
        assert [m.collection_rate for m in summary.months] == [Decimal("50.00"), Decimal("100.00")]
        sql, params = postgres.execute.call_args.args
        assert "status <> 'cancelled'" in sql
        assert params == (date(2024, 1, 1), date(2024, 2, 29))

    def test_financial_summary_without_invoices(self, invoice_service, postgres):
        postgres.execute.return_value = []
        postgres.execute_single.return_value = {"total_payments": Decimal("0"), "security_deposits": Decimal("0")}

        summary = invoice_service.financial_summary(date(2024, 1, 1), date(2024, 1, 31))

        assert summary.collection_rate == 0
        assert summary.average_monthly_revenue == 0
        assert summary.months == []

    def test_financial_summary_inverted_range_refused(self, invoice_service, postgres):
        with pytest.raises(ValueError, match="from_date"):
            invoice_service.financial_summary(date(2024, 2, 1), date(2024, 1, 1))

        postgres.execute.assert_not_called()
