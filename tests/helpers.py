"""Shared test helper functions for gateway tests.

This module contains helper functions that can be imported by both conftest.py
and individual test files. These are NOT fixtures - they are regular functions.
"""

from __future__ import annotations

TEST_JWT_SECRET = "test-jwt-secret-with-enough-length-32b"


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def auth_headers(client_id: str = "tenant-a", client_name: str = "Tenant A") -> dict[str, str]:
    """Bearer header for a freshly issued tenant token."""
    from evogate.api.auth import issue_token

    return {"Authorization": f"Bearer {issue_token(client_id, client_name)}"}


def make_upsert_envelope(
    message: dict | None = None,
    *,
    instance: str = "demo",
    message_id: str = "ABC123",
    remote_jid: str = "5551234@s.whatsapp.net",
    from_me: bool = False,
) -> dict:
    """Build a messages.upsert webhook body."""
    return {
        "event": "messages.upsert",
        "instance": instance,
        "data": {
            "key": {"remoteJid": remote_jid, "fromMe": from_me, "id": message_id},
            "message": message if message is not None else {"conversation": "hello"},
            "messageTimestamp": 1700000000,
        },
    }
