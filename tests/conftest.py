"""Shared test fixtures for the rental backend test suite."""

from datetime import timedelta
from decimal import Decimal
from pathlib import Path
from unittest.mock import MagicMock, Mock
from uuid import uuid4

import pytest
from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might use env vars
# override=True ensures .env takes precedence over shell env vars
load_dotenv(Path(__file__).parent.parent / ".env", override=True)

# Reset vault client singleton to pick up env vars
import clients.vault_client as vault_module
vault_module._vault_client_instance = None
vault_module._secret_cache.clear()

from clients.postgres_client import PostgresClient, Transaction
from core.audit import AuditLogger
from core.event_bus import EventBus
from utils.timezone import now_utc, today_utc


# =============================================================================
# DATABASE DOUBLES
# =============================================================================


@pytest.fixture
def tx():
    """Transaction double handed out by postgres.transaction()."""
    return MagicMock(spec=Transaction)


@pytest.fixture
def postgres(tx):
    """PostgresClient double. `with postgres.transaction() as t` yields `tx`."""
    client = MagicMock(spec=PostgresClient)
    client.transaction.return_value.__enter__.return_value = tx
    client.transaction.return_value.__exit__.return_value = False
    return client


@pytest.fixture
def audit():
    return Mock(spec=AuditLogger)


@pytest.fixture
def event_bus():
    return Mock(spec=EventBus)


# =============================================================================
# ROW FACTORIES: dicts shaped like RealDictCursor rows
# =============================================================================


@pytest.fixture
def room_row():
    def make(**overrides):
        now = now_utc()
        row = {
            "id": uuid4(),
            "room_number": "101",
            "type": "single",
            "monthly_rent": Decimal("800"),
            "status": "vacant",
            "floor": 1,
            "area": Decimal("18.5"),
            "description": "Corner room",
            "has_air_conditioning": True,
            "has_private_bathroom": False,
            "is_furnished": True,
            "created_at": now,
            "updated_at": now,
            "deleted_at": None,
        }
        row.update(overrides)
        return row
    return make


@pytest.fixture
def tenant_row():
    def make(**overrides):
        now = now_utc()
        row = {
            "id": uuid4(),
            "first_name": "Ana",
            "last_name": "Silva",
            "email": "ana@example.com",
            "phone": "555-0100",
            "date_of_birth": None,
            "identification_number": None,
            "emergency_contact_name": None,
            "emergency_contact_phone": None,
            "room_id": None,
            "contract_start_date": None,
            "contract_end_date": None,
            "security_deposit": Decimal("0"),
            "monthly_rent": Decimal("0"),
            "is_active": True,
            "notes": None,
            "created_at": now,
            "updated_at": now,
            "deleted_at": None,
        }
        row.update(overrides)
        return row
    return make


@pytest.fixture
def item_row():
    def make(**overrides):
        now = now_utc()
        row = {
            "id": uuid4(),
            "item_code": "CLEAN",
            "item_name": "Room cleaning",
            "description": "Weekly cleaning",
            "unit_of_measure": "visit",
            "unit_price": Decimal("25"),
            "tax_percent": Decimal("10"),
            "category": "Services",
            "is_active": True,
            "notes": None,
            "created_at": now,
            "updated_at": now,
            "deleted_at": None,
        }
        row.update(overrides)
        return row
    return make


@pytest.fixture
def invoice_row():
    def make(**overrides):
        now = now_utc()
        today = today_utc()
        row = {
            "id": uuid4(),
            "invoice_number": f"INV-{today:%Y%m}-0001",
            "tenant_id": uuid4(),
            "room_id": uuid4(),
            "monthly_rent": Decimal("800"),
            "additional_charges": Decimal("0"),
            "additional_charges_description": None,
            "discount": Decimal("0"),
            "total_amount": Decimal("800"),
            "paid_amount": Decimal("0"),
            "remaining_balance": Decimal("800"),
            "status": "issued",
            "billing_period": today.replace(day=1),
            "issue_date": today,
            "due_date": today + timedelta(days=15),
            "paid_date": None,
            "notes": None,
            "created_at": now,
            "updated_at": now,
            "deleted_at": None,
        }
        row.update(overrides)
        return row
    return make


@pytest.fixture
def line_item_row():
    def make(invoice_id, **overrides):
        now = now_utc()
        row = {
            "id": uuid4(),
            "invoice_id": invoice_id,
            "line_number": 1,
            "item_code": None,
            "item_name": "Electricity",
            "description": None,
            "unit_of_measure": "pcs",
            "category": None,
            "notes": None,
            "quantity": Decimal("2"),
            "unit_price": Decimal("100"),
            "discount_percent": Decimal("10"),
            "discount_amount": Decimal("20"),
            "tax_percent": Decimal("5"),
            "tax_amount": Decimal("9"),
            "line_total": Decimal("180"),
            "line_total_with_tax": Decimal("189"),
            "created_at": now,
            "updated_at": now,
        }
        row.update(overrides)
        return row
    return make


@pytest.fixture
def payment_row():
    def make(**overrides):
        now = now_utc()
        row = {
            "id": uuid4(),
            "invoice_id": uuid4(),
            "amount": Decimal("300"),
            "method": "cash",
            "reference_number": None,
            "payment_date": today_utc(),
            "recorded_date": now,
            "notes": None,
            "is_verified": False,
            "created_at": now,
            "updated_at": now,
        }
        row.update(overrides)
        return row
    return make
