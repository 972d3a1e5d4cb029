"""Exception handlers rendering every failure as ``{success: false, message, ...}``."""

from __future__ import annotations

import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from evogate.domain.errors import GatewayError, RateLimitError, UpstreamError
from evogate.observability.logging import get_logger, is_production
from evogate.observability.redaction import safe_log_context

logger = get_logger(__name__)


def _log_context(request: Request, **fields) -> dict:
    return safe_log_context(method=request.method, path=request.url.path, **fields)


async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    fields = {"status": exc.status_code, "error_type": type(exc).__name__}
    if isinstance(exc, UpstreamError):
        fields.update(operation=exc.operation, upstream_status=exc.upstream_status)
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(exc.message, extra={"extra_fields": _log_context(request, **fields)})

    headers = None
    if isinstance(exc, RateLimitError):
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(status_code=exc.status_code, content=exc.to_body(), headers=headers)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"), "message": err.get("msg")}
        for err in exc.errors()
    ]
    logger.warning(
        "request validation failed",
        extra={"extra_fields": _log_context(request, error_count=len(errors))},
    )
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": "Validation error", "errors": errors},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404:
        body = {"success": False, "message": "Endpoint not found", "path": request.url.path}
    else:
        body = {"success": False, "message": str(exc.detail)}
    return JSONResponse(status_code=exc.status_code, content=body, headers=getattr(exc, "headers", None))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "unhandled error",
        exc_info=exc,
        extra={"extra_fields": _log_context(request, error_type=type(exc).__name__)},
    )
    body: dict = {"success": False, "message": "Internal server error"}
    if not is_production():
        body["stack"] = "".join(traceback.format_exception(exc))
    return JSONResponse(status_code=500, content=body)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(GatewayError, gateway_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
