"""API test fixtures: TestClient over the full app with service doubles."""

from unittest.mock import Mock

import pytest
from starlette.testclient import TestClient

from api.app import create_app
from clients.email_client import EmailGatewayClient
from core.audit import AuditLogger
from core.services.invoice_service import InvoiceService
from core.services.item_service import ItemService
from core.services.payment_service import PaymentService
from core.services.room_service import RoomService
from core.services.tenant_service import TenantService


# =============================================================================
# SERVICE FIXTURES
# =============================================================================


@pytest.fixture
def room_service():
    return Mock(spec=RoomService)


@pytest.fixture
def tenant_service():
    return Mock(spec=TenantService)


@pytest.fixture
def item_service():
    return Mock(spec=ItemService)


@pytest.fixture
def invoice_service():
    return Mock(spec=InvoiceService)


@pytest.fixture
def payment_service():
    return Mock(spec=PaymentService)


@pytest.fixture
def email_client():
    return Mock(spec=EmailGatewayClient)


@pytest.fixture
def audit_logger():
    return Mock(spec=AuditLogger)


# =============================================================================
# SERVICES DICT
# =============================================================================


@pytest.fixture
def services(room_service, tenant_service, item_service, invoice_service, payment_service, email_client, audit_logger):
    return {
        "room": room_service,
        "tenant": tenant_service,
        "item": item_service,
        "invoice": invoice_service,
        "payment": payment_service,
        "email": email_client,
        "audit": audit_logger,
    }


# =============================================================================
# APP & CLIENT FIXTURES
# =============================================================================


@pytest.fixture
def app(services):
    """FastAPI app with request IDs, error handlers, and data/actions routes."""
    return create_app(services)


@pytest.fixture
def client(app):
    return TestClient(app, raise_server_exceptions=False)
