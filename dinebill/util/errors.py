"""Domain errors and their HTTP rendering.

Services raise :class:`DomainError` subclasses carrying a stable machine
readable ``code``; the handlers registered by :func:`install_error_handlers`
turn them into ``{"ok": false, "error": {"code", "message"}}`` bodies.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("dinebill.errors")


class DomainError(Exception):
    status_code = 400
    code = "BAD_REQUEST"
    message = "Bad request"

    def __init__(self, message: str | None = None, *, code: str | None = None, details=None):
        self.message = message or self.message
        if code:
            self.code = code
        self.details = details
        super().__init__(self.message)


class NotFound(DomainError):
    status_code = 404
    code = "NOT_FOUND"
    message = "Not found"


class Conflict(DomainError):
    status_code = 409
    code = "CONFLICT"
    message = "Conflict"


class Unauthenticated(DomainError):
    status_code = 401
    code = "UNAUTHENTICATED"
    message = "Not authenticated"


class Forbidden(DomainError):
    status_code = 403
    code = "FORBIDDEN"
    message = "Role not allowed"


class TenantNotFound(NotFound):
    code = "TENANT_NOT_FOUND"
    message = "Restaurant not found"


class OrderNotFound(NotFound):
    code = "ORDER_NOT_FOUND"
    message = "Order not found"


class OrderLocked(NotFound):
    # same answer for missing and locked orders
    code = "ORDER_NOT_FOUND_OR_LOCKED"
    message = "Order not found or no longer editable"


class NoOpenOrders(NotFound):
    code = "NO_OPEN_ORDERS_FOR_TABLE"
    message = "No open orders for this table"


class SettlementConflict(Conflict):
    code = "SETTLEMENT_CONFLICT"
    message = "Table orders changed while billing; retry"


class InvalidTransition(Conflict):
    code = "INVALID_STATUS_TRANSITION"
    message = "Status change not allowed"


class TableNotFound(NotFound):
    code = "TABLE_NOT_FOUND"
    message = "Table not found"


class TableTokenInvalid(NotFound):
    code = "TABLE_TOKEN_INVALID"
    message = "Unknown or disabled table"


class MenuItemInvalid(DomainError):
    code = "MENU_ITEM_INVALID"
    message = "Menu item not available"


class InvoiceNotFound(NotFound):
    code = "INVOICE_NOT_FOUND"
    message = "Invoice not found"


class PhoneRequired(DomainError):
    code = "PHONE_REQUIRED"
    message = "A phone number is needed for this channel"


class EmailRequired(DomainError):
    code = "EMAIL_REQUIRED"
    message = "An email address is needed for this channel"


def _body(code, message, details=None) -> dict:
    error = {"code": code, "message": message}
    if details is not None:
        error["details"] = details
    return {"ok": False, "error": error}


async def domain_error_handler(request: Request, exc: DomainError):
    if exc.status_code >= 500:
        logger.error("%s %s -> %s", request.method, request.url.path, exc.code)
    else:
        logger.info("%s %s -> %s", request.method, request.url.path, exc.code)
    return JSONResponse(status_code=exc.status_code, content=_body(exc.code, exc.message, exc.details))


async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content=_body("VALIDATION_ERROR", "Invalid request body", jsonable_encoder(exc.errors())),
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=_body(exc.status_code, str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
