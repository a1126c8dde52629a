"""Exception → HTTP mapping for the Storefront API.

Protean's own handlers are installed first; the storefront errors are
then registered on top, and FastAPI picks the most specific class.
Every body has the shape ``{"error": {field: [messages]}}``.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.exceptions import InvalidOperationError, ObjectNotFoundError, ValidationError
from protean.integrations.fastapi import register_exception_handlers

from storefront.exceptions import ConflictError, GatewayError, InsufficientStockError

logger = structlog.get_logger(__name__)


def _messages(exc):
    return getattr(exc, "messages", None) or {"_error": [str(exc)]}


async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": _messages(exc)})


async def _not_found(request: Request, exc: ObjectNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": _messages(exc)})


async def _insufficient_stock(request: Request, exc: InsufficientStockError) -> JSONResponse:
    return JSONResponse(
        status_code=409,
        content={
            "error": _messages(exc),
            "product_id": exc.product_id,
            "requested": exc.requested,
            "available": exc.available,
        },
    )


async def _conflict(request: Request, exc: InvalidOperationError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"error": _messages(exc)})


async def _gateway_error(request: Request, exc: GatewayError) -> JSONResponse:
    logger.warning("Payment processor error", path=request.url.path, reason=exc.gateway_message)
    return JSONResponse(
        status_code=502,
        content={
            "error": _messages(exc),
            "order_id": exc.order_id,
            "order_number": exc.order_number,
        },
    )


def register_error_handlers(app: FastAPI) -> None:
    register_exception_handlers(app)
    app.add_exception_handler(ValidationError, _validation_error)
    app.add_exception_handler(ObjectNotFoundError, _not_found)
    app.add_exception_handler(InsufficientStockError, _insufficient_stock)
    app.add_exception_handler(ConflictError, _conflict)
    app.add_exception_handler(InvalidOperationError, _conflict)
    app.add_exception_handler(GatewayError, _gateway_error)
