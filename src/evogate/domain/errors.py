"""Gateway error taxonomy.

Every error knows its HTTP status and renders to the uniform
``{success: false, message, ...}`` body used by all endpoints.
"""

from __future__ import annotations

from typing import Any


class GatewayError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, **details: Any) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": False, "message": self.message}
        body.update(self.details)
        return body


class ValidationError(GatewayError):
    """Malformed or incomplete input."""

    status_code = 400
    default_message = "Bad request"


class AuthorizationError(GatewayError):
    """Missing, invalid or expired credential (401), or cross-tenant access (403)."""

    status_code = 401
    default_message = "Unauthorized"

    @classmethod
    def forbidden(cls, message: str = "Forbidden") -> AuthorizationError:
        err = cls(message)
        err.status_code = 403
        return err


class NotFoundError(GatewayError):
    status_code = 404
    default_message = "Resource not found"


class RateLimitError(GatewayError):
    """Admission rejected by the rate governor."""

    status_code = 429
    default_message = "Too many requests, try again later"

    def __init__(self, retry_after: int, message: str | None = None) -> None:
        super().__init__(message, retryAfter=retry_after)
        self.retry_after = retry_after


# Provider statuses passed through to the caller unchanged
_PROPAGATED_UPSTREAM_STATUSES = frozenset({400, 401, 403, 404, 409, 422})


class UpstreamError(GatewayError):
    """Provider call failed.

    Carries the provider's status (None when no response arrived) and
    message. Client-side provider errors are propagated as-is; provider
    5xx and transport failures surface as 502, timeouts as 504.
    """

    default_message = "Provider request failed"

    def __init__(
        self,
        message: str | None = None,
        *,
        upstream_status: int | None = None,
        operation: str = "",
        timeout: bool = False,
    ) -> None:
        super().__init__(message, upstreamStatus=upstream_status)
        self.upstream_status = upstream_status
        self.operation = operation
        if upstream_status in _PROPAGATED_UPSTREAM_STATUSES:
            self.status_code = upstream_status
        elif timeout:
            self.status_code = 504
        else:
            self.status_code = 502


class InternalError(GatewayError):
    """Unexpected failure."""

    status_code = 500
