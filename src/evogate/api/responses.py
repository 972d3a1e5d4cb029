"""Success envelope shared by the proxy endpoints."""

from __future__ import annotations

from typing import Any


def ok(data: Any, message: str | None = None) -> dict[str, Any]:
    """Wrap a provider result as ``{success: true, message?, data}``."""
    body: dict[str, Any] = {"success": True}
    if message:
        body["message"] = message
    body["data"] = data
    return body
