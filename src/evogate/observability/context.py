"""Request-scoped context (correlation ID, caller tenant) for log records."""

import uuid
from contextvars import ContextVar, Token

# Accessible across async calls and threadpool hops (contextvars are copied)
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")
client_id_var: ContextVar[str] = ContextVar("client_id", default="")

CORRELATION_ID_HEADER = "X-Correlation-ID"


def generate_correlation_id() -> str:
    """Generate a new correlation ID."""
    return str(uuid.uuid4())


def get_correlation_id() -> str:
    return correlation_id_var.get()


def set_correlation_id(cid: str) -> Token[str]:
    return correlation_id_var.set(cid)


def reset_correlation_id(token: Token[str]) -> None:
    correlation_id_var.reset(token)


def get_client_id() -> str:
    """Tenant of the authenticated caller, empty for anonymous requests."""
    return client_id_var.get()


def bind_client_id(client_id: str) -> Token[str]:
    """Attach the verified tenant to the current request context."""
    return client_id_var.set(client_id)
