"""Global exception handlers for FastAPI."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from clients.email_client import EmailGatewayError

logger = logging.getLogger(__name__)


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def _json(request: Request, status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=error_response(code, message, _request_id(request)).model_dump(mode="json"),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the app."""

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        message = str(exc)
        lowered = message.lower()
        if "not found" in lowered:
            return _json(request, 404, ErrorCodes.NOT_FOUND, message)
        if "already exists" in lowered:
            return _json(request, 409, ErrorCodes.ALREADY_EXISTS, message)
        return _json(request, 400, ErrorCodes.INVALID_REQUEST, message)

    # Payloads are decoded into models inside the handlers, so model errors
    # surface as pydantic ValidationError rather than RequestValidationError.
    @app.exception_handler(ValidationError)
    async def model_validation_error_handler(request: Request, exc: ValidationError):
        return _json(request, 422, ErrorCodes.VALIDATION_ERROR, str(exc.errors(include_url=False)))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _json(request, 422, ErrorCodes.VALIDATION_ERROR, str(exc.errors()))

    @app.exception_handler(EmailGatewayError)
    async def email_gateway_error_handler(request: Request, exc: EmailGatewayError):
        logger.warning(f"Email gateway unavailable: {exc}")
        return _json(request, 503, ErrorCodes.SERVICE_UNAVAILABLE, "Email gateway unavailable")

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        return _json(request, 500, ErrorCodes.INTERNAL_ERROR, "An internal error occurred")
