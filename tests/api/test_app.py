"""Tests for application assembly."""

from unittest.mock import MagicMock, Mock

from starlette.testclient import TestClient

from api.app import build_services, create_app
from clients.email_client import EmailGatewayClient
from clients.postgres_client import PostgresClient
from core.config import BillingConfig
from core.services.invoice_service import InvoiceService
from core.services.payment_service import PaymentService


class TestHealth:

    def test_health_ok(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"] == {"status": "ok"}
        assert body["meta"]["request_id"] == response.headers["X-Request-ID"]


class TestBuildServices:

    def test_wires_every_domain(self):
        services = build_services(MagicMock(spec=PostgresClient))

        assert set(services) >= {"room", "tenant", "item", "invoice", "payment", "event_bus", "audit"}
        assert isinstance(services["invoice"], InvoiceService)
        assert isinstance(services["payment"], PaymentService)
        assert services["email"] is None

    def test_services_share_event_bus(self):
        services = build_services(MagicMock(spec=PostgresClient))

        assert services["invoice"].event_bus is services["event_bus"]
        assert services["payment"].event_bus is services["event_bus"]

    def test_config_passed_through(self):
        config = BillingConfig(invoice_number_prefix="RENT")

        services = build_services(MagicMock(spec=PostgresClient), config=config)

        assert services["invoice"].config is config

    def test_receipts_subscribed_with_email(self):
        services = build_services(MagicMock(spec=PostgresClient), Mock(spec=EmailGatewayClient))

        assert services["event_bus"].subscriber_count("InvoicePaid") == 1

    def test_no_receipts_without_email(self):
        services = build_services(MagicMock(spec=PostgresClient))

        assert services["event_bus"].subscriber_count("InvoicePaid") == 0

    def test_app_mounts_routes(self):
        app = create_app(build_services(MagicMock(spec=PostgresClient)))
        paths = {route.path for route in app.routes}

        assert {"/api/data", "/api/actions", "/health"} <= paths

    def test_app_serves_requests(self):
        client = TestClient(create_app(build_services(MagicMock(spec=PostgresClient))))

        assert client.get("/health").status_code == 200
