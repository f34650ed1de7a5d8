"""
Error taxonomy for the GitHub gateway.

Every error maps to an HTTP status and a uniform ``{error, details}`` body.
Commit assembly failures additionally carry the step they occurred at.
"""

from typing import Optional


class GatewayError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Optional[str] = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message if not details else f"{self.message}: {details}")

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(GatewayError):
    """Missing or malformed request fields."""

    status_code = 400
    default_message = "Invalid request"


class AuthError(GatewayError):
    """Bad or missing shared secret. Never carries details."""

    status_code = 401
    default_message = "Unauthorized"

    def __init__(self, message: Optional[str] = None, details: Optional[str] = None):
        super().__init__(message)


class NotFoundError(GatewayError):
    status_code = 404
    default_message = "Endpoint not found"


class ServiceNotConfiguredError(GatewayError):
    """A required secret or credential is missing from the configuration."""

    status_code = 503
    default_message = "Service not configured"


class HostError(GatewayError):
    """Failure talking to the Repository Host (GitHub)."""

    status_code = 500
    default_message = "GitHub request failed"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[str] = None,
        step: Optional[str] = None,
    ):
        self.step = step
        super().__init__(message, details)

    def to_dict(self) -> dict:
        body = super().to_dict()
        if self.step:
            body["step"] = self.step
        return body


class GitHubAPIError(HostError):
    """GitHub answered with a non-success status."""

    def __init__(
        self,
        status: int,
        message: str,
        step: Optional[str] = None,
        rate_limit_reset: Optional[int] = None,
    ):
        self.status = status
        self.upstream_message = message
        self.rate_limit_reset = rate_limit_reset
        super().__init__("GitHub API error", f"{status} {message}", step=step)


class HostUnavailable(HostError):
    """Timeout or transport failure reaching GitHub."""

    status_code = 503
    default_message = "GitHub unavailable"


# Commit assembler taxonomy


class CommitError(HostError):
    default_message = "Failed to create commit"


class RefNotFound(CommitError):
    status_code = 404
    default_message = "Branch not found"


class BlobCreationFailed(CommitError):
    default_message = "Failed to create blob"


class TreeCreationFailed(CommitError):
    default_message = "Failed to create tree"


class CommitCreationFailed(CommitError):
    default_message = "Failed to create commit object"


class RefUpdateConflict(CommitError):
    """The branch moved while the commit was being assembled."""

    status_code = 409
    default_message = "Branch was updated concurrently"
