"""
Uniform error responses for the gateway.

Every failure is rendered as ``{"error": ..., "details": ...}`` JSON. Commit
assembly failures add the ``step`` at which they occurred.
"""

import logging
from typing import Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from ..errors import GatewayError
from .request_id_middleware import get_request_id_from_request
from .status_codes import HTTPStatus, validate_api_key

logger = logging.getLogger(__name__)

PUBLIC_PATHS = {"/health"}


class ErrorBody(BaseModel):
    """Error response schema shared by all endpoints."""

    error: str = Field(..., description="Human-readable summary", examples=["Unauthorized"])
    details: Optional[str] = Field(
        None,
        description="Specific explanation of this occurrence",
        examples=["422 Update is not a fast forward"],
    )
    step: Optional[str] = Field(
        None, description="Commit step that failed", examples=["update_ref"]
    )
    errors: Optional[dict[str, list[str]]] = Field(
        None, description="Field-level validation errors"
    )


def _log_context(request: Request) -> dict:
    return {
        "request_id": get_request_id_from_request(request),
        "path": request.url.path,
        "method": request.method,
    }


async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    """Render a GatewayError with its status and body."""
    level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(
        level,
        f"{type(exc).__name__}: {exc}",
        extra={"json_data": {**_log_context(request), "status": exc.status_code}},
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """
    Handle routing errors (unknown routes, wrong methods).

    Callers without a valid key get the authentication error instead, so
    that only authenticated callers can tell which routes exist.
    """
    if request.url.path not in PUBLIC_PATHS:
        try:
            validate_api_key(
                request.headers.get("X-API-Key"), request.app.state.settings.api_key
            )
        except GatewayError as auth_error:
            return await gateway_error_handler(request, auth_error)

    if exc.status_code == HTTPStatus.NOT_FOUND:
        message = "Endpoint not found"
    else:
        message = str(exc.detail) if exc.detail else "An error occurred"
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": message},
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Map request body validation failures to 400 with field-level messages."""
    errors: dict[str, list[str]] = {}
    for error in exc.errors():
        loc = [str(part) for part in error["loc"] if part != "body"]
        field = ".".join(loc) or "body"
        errors.setdefault(field, []).append(error["msg"])

    first_field = next(iter(errors), "body")
    body = ErrorBody(
        error=f"Invalid or missing field: {first_field}",
        details="; ".join(f"{f}: {', '.join(m)}" for f, m in errors.items()),
        errors=errors,
    )
    logger.warning(
        "Request validation failed",
        extra={"json_data": {**_log_context(request), "errors": errors}},
    )
    return JSONResponse(
        status_code=HTTPStatus.BAD_REQUEST, content=body.model_dump(exclude_none=True)
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions without leaking internals."""
    logger.error(
        f"Unhandled exception: {exc}",
        exc_info=True,
        extra={"json_data": _log_context(request)},
    )
    return JSONResponse(
        status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error"},
    )


class UnhandledErrorMiddleware(BaseHTTPMiddleware):
    """
    Turn unexpected exceptions into the 500 body inside the middleware stack.

    Starlette runs the ``Exception`` handler outside all user middleware;
    catching here lets the request-ID and security header middleware still
    decorate the response.
    """

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            return await general_exception_handler(request, exc)


def setup_error_handlers(app) -> None:
    """Register the gateway's exception handlers on a FastAPI app."""
    app.add_exception_handler(GatewayError, gateway_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
