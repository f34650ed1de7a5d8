"""
Status codes the gateway answers with, and the shared-secret check guarding
every ``/api`` route.
"""

import hmac
from enum import IntEnum
from typing import Optional

from ..errors import AuthError, ServiceNotConfiguredError


class HTTPStatus(IntEnum):
    """Response statuses produced by the gateway itself."""

    # Caller mistakes
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    NOT_FOUND = 404
    CONFLICT = 409  # branch moved during a commit
    TOO_MANY_REQUESTS = 429

    # GitHub or gateway trouble
    INTERNAL_SERVER_ERROR = 500
    SERVICE_UNAVAILABLE = 503


def validate_api_key(
    api_key: Optional[str] = None, expected_key: Optional[str] = None
) -> str:
    """
    Compare the caller's ``X-API-Key`` with the configured key.

    A gateway without a configured key refuses everyone rather than letting
    everyone through.

    Raises:
        ServiceNotConfiguredError: no key is configured
        AuthError: the key is absent or wrong
    """
    if not expected_key:
        raise ServiceNotConfiguredError("Authentication service not configured")

    presented = (api_key or "").encode()
    if not presented or not hmac.compare_digest(presented, expected_key.encode()):
        raise AuthError()

    return api_key
