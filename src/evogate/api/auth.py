"""Bearer JWT authentication for API tenants.

Provides:
- issue_token(): signs a tenant token (local tooling, tests)
- verify_token(): validates a token and returns its claims
- get_current_client(): FastAPI dependency for the authenticated tenant
- require_client_access(): cross-tenant guard
"""

from __future__ import annotations

import os
import time
from dataclasses import dataclass
from typing import Any

import jwt
from fastapi import Depends, Request

from evogate.domain.errors import AuthorizationError, InternalError
from evogate.observability.context import bind_client_id
from evogate.observability.logging import get_logger
from evogate.observability.redaction import safe_log_context

logger = get_logger(__name__)

_ALGORITHM = "HS256"
_DEFAULT_EXPIRES_IN = 24 * 60 * 60


@dataclass
class CurrentClient:
    """Authenticated tenant context."""

    client_id: str
    client_name: str
    user_id: str | None = None
    role: str | None = None


def _get_secret() -> str:
    secret = os.environ.get("JWT_SECRET", "")
    if not secret:
        raise InternalError("Authentication not configured")
    return secret


def issue_token(
    client_id: str,
    client_name: str,
    *,
    user_id: str | None = None,
    role: str | None = None,
    expires_in: int | None = None,
) -> str:
    """Sign a tenant token.

    Args:
        client_id: Tenant identifier carried as ``clientId``.
        client_name: Display name carried as ``clientName``.
        user_id: Optional end-user id.
        role: Optional role name.
        expires_in: Lifetime in seconds. Defaults to JWT_EXPIRES_IN or 24h.

    Returns:
        Encoded JWT string.
    """
    if expires_in is None:
        expires_in = int(os.environ.get("JWT_EXPIRES_IN", _DEFAULT_EXPIRES_IN))
    now = int(time.time())
    payload: dict[str, Any] = {
        "clientId": client_id,
        "clientName": client_name,
        "iat": now,
        "exp": now + expires_in,
    }
    if user_id:
        payload["userId"] = user_id
    if role:
        payload["userRole"] = role
    return jwt.encode(payload, _get_secret(), algorithm=_ALGORITHM)


def verify_token(token: str) -> dict[str, Any]:
    """Verify a tenant token and return its claims.

    Raises:
        AuthorizationError: 401 if the token is invalid, expired or lacks clientId.
        InternalError: 500 if JWT_SECRET is not set.
    """
    try:
        claims = jwt.decode(
            token,
            _get_secret(),
            algorithms=[_ALGORITHM],
            options={"require": ["exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise AuthorizationError("Token expired")
    except jwt.InvalidTokenError:
        raise AuthorizationError("Invalid token")

    if not claims.get("clientId"):
        raise AuthorizationError("Invalid token")
    return claims


def _extract_bearer_token(request: Request) -> str:
    """Extract the token from the Authorization header.

    A bare token without the "Bearer" scheme is accepted as well.

    Raises:
        AuthorizationError: 401 if the header is missing or empty.
    """
    auth_header = request.headers.get("Authorization", "").strip()
    if not auth_header:
        raise AuthorizationError("Missing authorization header")

    parts = auth_header.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    if len(parts) == 1 and parts[0].lower() != "bearer":
        return parts[0]
    raise AuthorizationError("Invalid authorization header")


async def get_current_client(request: Request) -> CurrentClient:
    """FastAPI dependency: get the authenticated tenant.

    Also binds the tenant to the logging context.
    """
    claims = verify_token(_extract_bearer_token(request))
    client = CurrentClient(
        client_id=str(claims["clientId"]),
        client_name=str(claims.get("clientName") or ""),
        user_id=claims.get("userId"),
        role=claims.get("userRole"),
    )
    bind_client_id(client.client_id)
    return client


def require_client_access(current: CurrentClient, client_id: str | None) -> None:
    """Refuse access to another tenant's resources.

    Raises:
        AuthorizationError: 403 if ``client_id`` names a different tenant.
    """
    if client_id and client_id != current.client_id:
        logger.warning(
            "cross-tenant access denied",
            extra={"extra_fields": safe_log_context(target_client_id=client_id)},
        )
        raise AuthorizationError.forbidden("Access denied for this client")


# Dependency alias for cleaner imports
CurrentClientDep = Depends(get_current_client)
