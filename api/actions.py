"""POST /api/actions: unified mutation endpoint."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Request
from pydantic import BaseModel

from api.base import success_response
from core.models import (
    RoomCreate, RoomUpdate, RoomStatus,
    TenantCreate, TenantUpdate, TenantAssignment,
    ItemCreate, ItemUpdate,
    InvoiceCreate, InvoiceUpdate, InvoicePreview,
    PaymentCreate, PaymentUpdate,
)
from core.models.common import coerce_amount


class ActionRequest(BaseModel):
    domain: str
    action: str
    data: dict


def create_actions_router(services: dict) -> APIRouter:
    router = APIRouter()

    handlers = {
        "room": RoomHandler(services["room"]),
        "tenant": TenantHandler(services["tenant"]),
        "item": ItemHandler(services["item"]),
        "invoice": InvoiceHandler(services["invoice"], services.get("email")),
        "payment": PaymentHandler(services["payment"]),
    }

    @router.post("/actions")
    async def perform_action(request: Request, body: ActionRequest):
        handler = handlers.get(body.domain)
        if handler is None:
            raise ValueError(
                f"Unknown domain '{body.domain}'. "
                f"Valid domains: {', '.join(sorted(handlers.keys()))}"
            )

        if body.action not in handler.ALLOWED_ACTIONS:
            raise ValueError(
                f"Action '{body.action}' not allowed on '{body.domain}'. "
                f"Allowed: {', '.join(sorted(handler.ALLOWED_ACTIONS))}"
            )

        method = getattr(handler, f"_handle_{body.action}")
        result = method(body.data)
        return success_response(result, request.state.request_id).model_dump(mode="json")

    return router


def _require_id(data: dict, key: str = "id") -> UUID:
    if key not in data:
        raise ValueError(f"'{key}' is required")
    return UUID(str(data.pop(key)))


# =============================================================================
# HANDLER CLASSES
# =============================================================================


class RoomHandler:
    ALLOWED_ACTIONS = {"create", "update", "delete", "change_status"}

    def __init__(self, service):
        self.service = service

    def _handle_create(self, data: dict):
        room = self.service.create(RoomCreate(**data))
        return room.model_dump(mode="json")

    def _handle_update(self, data: dict):
        room_id = _require_id(data)
        room = self.service.update(room_id, RoomUpdate(**data))
        return room.model_dump(mode="json")

    def _handle_delete(self, data: dict):
        room_id = _require_id(data)
        deleted = self.service.delete(room_id)
        if not deleted:
            raise ValueError(f"Room {room_id} not found")
        return {"deleted": True}

    def _handle_change_status(self, data: dict):
        room_id = _require_id(data)
        room = self.service.change_status(room_id, RoomStatus(data.get("status")))
        return room.model_dump(mode="json")


class TenantHandler:
    ALLOWED_ACTIONS = {"create", "update", "delete", "assign_room", "check_out"}

    def __init__(self, service):
        self.service = service

    def _handle_create(self, data: dict):
        tenant = self.service.create(TenantCreate(**data))
        return tenant.model_dump(mode="json")

    def _handle_update(self, data: dict):
        tenant_id = _require_id(data)
        tenant = self.service.update(tenant_id, TenantUpdate(**data))
        return tenant.model_dump(mode="json")

    def _handle_delete(self, data: dict):
        tenant_id = _require_id(data)
        deleted = self.service.delete(tenant_id)
        if not deleted:
            raise ValueError(f"Tenant {tenant_id} not found")
        return {"deleted": True}

    def _handle_assign_room(self, data: dict):
        tenant_id = _require_id(data)
        tenant = self.service.assign_to_room(tenant_id, TenantAssignment(**data))
        return tenant.model_dump(mode="json")

    def _handle_check_out(self, data: dict):
        tenant = self.service.check_out(_require_id(data))
        return tenant.model_dump(mode="json")


class ItemHandler:
    ALLOWED_ACTIONS = {"create", "update", "delete", "to_line_item"}

    def __init__(self, service):
        self.service = service

    def _handle_create(self, data: dict):
        item = self.service.create(ItemCreate(**data))
        return item.model_dump(mode="json")

    def _handle_update(self, data: dict):
        item_id = _require_id(data)
        item = self.service.update(item_id, ItemUpdate(**data))
        return item.model_dump(mode="json")

    def _handle_delete(self, data: dict):
        item_id = _require_id(data)
        deleted = self.service.delete(item_id)
        if not deleted:
            raise ValueError(f"Item {item_id} not found")
        return {"deleted": True}

    def _handle_to_line_item(self, data: dict):
        item_id = _require_id(data)
        item = self.service.get_by_id(item_id)
        if item is None:
            raise ValueError(f"Item {item_id} not found")
        quantity = coerce_amount(data.get("quantity", 1))
        return self.service.to_line_item(item, quantity).model_dump(mode="json")


class InvoiceHandler:
    ALLOWED_ACTIONS = {
        "create", "update", "delete", "preview",
        "mark_paid", "cancel", "generate_monthly", "send_reminders",
    }

    def __init__(self, service, email_client=None):
        self.service = service
        self.email_client = email_client

    def _handle_create(self, data: dict):
        invoice = self.service.create(InvoiceCreate(**data))
        return invoice.model_dump(mode="json")

    def _handle_update(self, data: dict):
        invoice_id = _require_id(data)
        invoice = self.service.update(invoice_id, InvoiceUpdate(**data))
        return invoice.model_dump(mode="json")

    def _handle_delete(self, data: dict):
        invoice_id = _require_id(data)
        deleted = self.service.delete(invoice_id)
        if not deleted:
            raise ValueError(f"Invoice {invoice_id} not found")
        return {"deleted": True}

    def _handle_preview(self, data: dict):
        quote = self.service.preview(InvoicePreview(**data))
        return quote.model_dump(mode="json")

    def _handle_mark_paid(self, data: dict):
        invoice_id = _require_id(data)
        paid_date = date.fromisoformat(data["paid_date"]) if data.get("paid_date") else None
        invoice = self.service.mark_paid(invoice_id, paid_date)
        return invoice.model_dump(mode="json")

    def _handle_cancel(self, data: dict):
        invoice = self.service.cancel(_require_id(data))
        return invoice.model_dump(mode="json")

    def _handle_generate_monthly(self, data: dict):
        if not data.get("billing_period"):
            raise ValueError("'billing_period' is required")
        count = self.service.generate_monthly(date.fromisoformat(data["billing_period"]))
        return {"generated": count}

    def _handle_send_reminders(self, data: dict):
        if self.email_client is None:
            raise ValueError("Email delivery is not configured")
        return {"sent": self.service.send_reminders(self.email_client)}


class PaymentHandler:
    ALLOWED_ACTIONS = {"record", "update", "delete", "verify"}

    def __init__(self, service):
        self.service = service

    def _handle_record(self, data: dict):
        payment = self.service.record(PaymentCreate(**data))
        return payment.model_dump(mode="json")

    def _handle_update(self, data: dict):
        payment_id = _require_id(data)
        payment = self.service.update(payment_id, PaymentUpdate(**data))
        return payment.model_dump(mode="json")

    def _handle_delete(self, data: dict):
        payment_id = _require_id(data)
        deleted = self.service.delete(payment_id)
        if not deleted:
            raise ValueError(f"Payment {payment_id} not found")
        return {"deleted": True}

    def _handle_verify(self, data: dict):
        payment_id = _require_id(data)
        payment = self.service.verify(payment_id, bool(data.get("is_verified", True)))
        return payment.model_dump(mode="json")
