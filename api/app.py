"""
Application assembly.

build_services wires the services, audit logger and event bus around one
database client; create_app mounts the routers, middleware and error
handlers on top of them. create_app_from_vault is the production entry
point, served by any ASGI server in factory mode.
"""

import logging

from fastapi import FastAPI, Request

from api.actions import create_actions_router
from api.base import success_response
from api.data import create_data_router
from api.errors import register_error_handlers
from api.middleware import RequestIDMiddleware
from clients.email_client import EmailGatewayClient
from clients.postgres_client import PostgresClient
from clients.vault_client import get_database_url, get_email_config
from core.audit import AuditLogger
from core.config import BillingConfig
from core.event_bus import EventBus
from core.handlers.invoice_paid_handler import handle_invoice_paid
from core.services.invoice_service import InvoiceService
from core.services.item_service import ItemService
from core.services.payment_service import PaymentService
from core.services.room_service import RoomService
from core.services.tenant_service import TenantService

logger = logging.getLogger(__name__)


def build_services(
    postgres: PostgresClient,
    email_client: EmailGatewayClient | None = None,
    config: BillingConfig | None = None,
) -> dict:
    """
    Construct every service around a shared database client.

    Args:
        postgres: Database client
        email_client: Gateway for reminders and receipts; receipts are not
            sent when omitted
        config: Billing settings (defaults apply when omitted)

    Returns:
        Services dict keyed by API domain name
    """
    config = config or BillingConfig()
    audit = AuditLogger(postgres)
    event_bus = EventBus()

    services = {
        "room": RoomService(postgres, audit, config),
        "tenant": TenantService(postgres, audit, config),
        "item": ItemService(postgres, audit, config),
        "invoice": InvoiceService(postgres, audit, event_bus, config),
        "payment": PaymentService(postgres, audit, event_bus, config),
        "email": email_client,
        "audit": audit,
        "event_bus": event_bus,
    }

    if email_client is not None:
        event_bus.subscribe("InvoicePaid", handle_invoice_paid(services["tenant"], email_client, config.currency))

    return services


def create_app(services: dict) -> FastAPI:
    """FastAPI app with request IDs, error handlers, and data/actions routes."""
    app = FastAPI(title="Rental Management API")
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)

    app.include_router(create_data_router(services), prefix="/api")
    app.include_router(create_actions_router(services), prefix="/api")

    @app.get("/health")
    async def health(request: Request):
        return success_response({"status": "ok"}, request.state.request_id).model_dump(mode="json")

    return app


def create_app_from_vault() -> FastAPI:
    """Build the production app from secrets held in Vault."""
    postgres = PostgresClient(get_database_url())
    email_client = EmailGatewayClient(**get_email_config())
    logger.info("Services wired from Vault configuration")
    return create_app(build_services(postgres, email_client))
