"""
Request correlation for the gateway.

Every request gets an ID, taken from a sane ``X-Request-ID`` header or freshly
generated, which is visible to log records emitted while the request is
handled and returned to the caller on the response.
"""

import uuid
from contextvars import ContextVar

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LENGTH = 128

request_id_context: ContextVar[str | None] = ContextVar("request_id", default=None)


def _accept_request_id(value: str | None) -> str:
    if value and len(value) <= MAX_REQUEST_ID_LENGTH and value.isprintable():
        return value
    return str(uuid.uuid4())


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = _accept_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id

        token = request_id_context.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_context.reset(token)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


def get_current_request_id() -> str | None:
    return request_id_context.get()


def get_request_id_from_request(request: Request) -> str | None:
    """Request ID assigned by the middleware, if it ran for this request."""
    return getattr(request.state, "request_id", None)
