"""GET /api/data: unified read endpoint, plus convenience and report routes."""

from datetime import date, timedelta
from uuid import UUID

from fastapi import APIRouter, Query, Request
from pydantic import BaseModel

from api.base import success_response
from core.models import InvoiceSearch, ItemSearch, PaymentSearch, RoomSearch, TenantSearch
from utils.timezone import today_utc


VALID_TYPES = {"rooms", "tenants", "items", "invoices", "payments"}

# Query parameters consumed by the router itself, never passed as filters
_RESERVED_PARAMS = {"type", "id", "code", "include"}

# Audit log entity_type for each data type
_ENTITY_TYPES = {
    "rooms": "room",
    "tenants": "tenant",
    "items": "item",
    "invoices": "invoice",
    "payments": "payment",
}


def _criteria(model: type[BaseModel], request: Request):
    """Build a search model from the query string, ignoring unknown keys."""
    params = {
        key: value
        for key, value in request.query_params.items()
        if key not in _RESERVED_PARAMS and key in model.model_fields
    }
    return model(**params)


def _includes(request: Request) -> set[str]:
    return {part.strip() for part in request.query_params.get("include", "").split(",") if part.strip()}


def _respond(data, request: Request):
    return success_response(data, request.state.request_id).model_dump(mode="json")


def _many(items, request: Request):
    return _respond([i.model_dump(mode="json") for i in items], request)


def _page(page, request: Request):
    return _respond(page.model_dump(mode="json"), request)


def create_data_router(services: dict) -> APIRouter:
    router = APIRouter()

    room_svc = services["room"]
    tenant_svc = services["tenant"]
    item_svc = services["item"]
    invoice_svc = services["invoice"]
    payment_svc = services["payment"]
    audit = services.get("audit")

    def _detail(entity, type: str, label: str, key: str, request: Request):
        """Single entity plus any related records named in ?include=."""
        if entity is None:
            raise ValueError(f"{label} {key} not found")

        data = entity.model_dump(mode="json")
        includes = _includes(request)

        if "payments" in includes and type == "invoices":
            data["payments"] = [p.model_dump(mode="json") for p in payment_svc.list_for_invoice(entity.id)]
        if "invoices" in includes and type == "tenants":
            data["invoices"] = [i.model_dump(mode="json") for i in invoice_svc.list_for_tenant(entity.id)]
        if "history" in includes and audit is not None:
            data["history"] = audit.get_entity_history(_ENTITY_TYPES[type], entity.id)

        return _respond(data, request)

    # -------------------------------------------------------------------------
    # Convenience routes (must be registered before the generic /data route)
    # -------------------------------------------------------------------------

    @router.get("/data/rooms/available")
    async def rooms_available(request: Request):
        return _many(room_svc.list_available(), request)

    @router.get("/data/invoices/overdue")
    async def invoices_overdue(request: Request):
        return _many(invoice_svc.list_overdue(), request)

    @router.get("/data/items/active")
    async def items_active(request: Request):
        return _many(item_svc.list_active(), request)

    @router.get("/data/items/categories")
    async def item_categories(request: Request):
        return _respond(item_svc.list_categories(), request)

    @router.get("/data/reports/dashboard")
    async def dashboard(request: Request):
        data = {
            "rooms": room_svc.occupancy_stats().model_dump(mode="json"),
            "invoices": invoice_svc.stats().model_dump(mode="json"),
        }
        return _respond(data, request)

    @router.get("/data/reports/payments")
    async def payment_stats(
        request: Request,
        from_date: date | None = Query(None),
        to_date: date | None = Query(None),
    ):
        return _respond(payment_svc.stats(from_date, to_date).model_dump(mode="json"), request)

    @router.get("/data/reports/payments/monthly")
    async def payment_monthly(request: Request, year: int | None = Query(None, ge=1, le=9998)):
        summary = payment_svc.monthly_summary(year or today_utc().year)
        return _respond(summary.model_dump(mode="json"), request)

    @router.get("/data/reports/payment-methods")
    async def payment_methods(
        request: Request,
        from_date: date | None = Query(None),
        to_date: date | None = Query(None),
    ):
        report = payment_svc.method_distribution(from_date, to_date)
        return _respond(report.model_dump(mode="json"), request)

    @router.get("/data/reports/revenue")
    async def revenue(
        request: Request,
        from_date: date | None = Query(None),
        to_date: date | None = Query(None),
    ):
        to_date = to_date or today_utc()
        from_date = from_date or to_date - timedelta(days=365)
        report = invoice_svc.financial_summary(from_date, to_date)
        return _respond(report.model_dump(mode="json"), request)

    @router.get("/data/reports/revenue/monthly")
    async def revenue_monthly(request: Request, year: int | None = Query(None, ge=1, le=9998)):
        report = invoice_svc.monthly_revenue(year or today_utc().year)
        return _respond(report.model_dump(mode="json"), request)

    @router.get("/data/reports/financial")
    async def financial(request: Request, from_date: date = Query(...), to_date: date = Query(...)):
        return _respond(invoice_svc.financial_summary(from_date, to_date).model_dump(mode="json"), request)

    @router.get("/data/reports/outstanding")
    async def outstanding(request: Request):
        return _respond(invoice_svc.outstanding_report().model_dump(mode="json"), request)

    @router.get("/data/reports/tenants")
    async def tenant_statistics(request: Request):
        return _respond(tenant_svc.statistics().model_dump(mode="json"), request)

    # -------------------------------------------------------------------------
    # Generic data endpoint
    # -------------------------------------------------------------------------

    @router.get("/data")
    async def get_data(
        request: Request,
        type: str | None = Query(None),
        id: str | None = Query(None),
        code: str | None = Query(None),
    ):
        if type is None:
            raise ValueError("'type' query parameter is required")

        if type not in VALID_TYPES:
            raise ValueError(f"Unknown type '{type}'. Valid types: {', '.join(sorted(VALID_TYPES))}")

        if type == "rooms":
            if id:
                return _detail(room_svc.get_by_id(UUID(id)), type, "Room", id, request)
            return _page(room_svc.search(_criteria(RoomSearch, request)), request)

        if type == "tenants":
            if id:
                return _detail(tenant_svc.get_by_id(UUID(id)), type, "Tenant", id, request)
            return _page(tenant_svc.search(_criteria(TenantSearch, request)), request)

        if type == "items":
            if id:
                return _detail(item_svc.get_by_id(UUID(id)), type, "Item", id, request)
            if code:
                return _detail(item_svc.get_by_code(code), type, "Item", code, request)
            return _page(item_svc.search_items(_criteria(ItemSearch, request)), request)

        if type == "invoices":
            if id:
                return _detail(invoice_svc.get_by_id(UUID(id)), type, "Invoice", id, request)
            return _page(invoice_svc.search(_criteria(InvoiceSearch, request)), request)

        if id:
            return _detail(payment_svc.get_by_id(UUID(id)), type, "Payment", id, request)
        return _page(payment_svc.list_all(_criteria(PaymentSearch, request)), request)

    return router
