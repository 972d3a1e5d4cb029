"""Sink event contract - the shape every sink backend receives."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from evogate.whatsapp.models import MessageKey, NormalizedMessage


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SinkEvent:
    """One normalized provider event handed to a sink.

    Attributes:
        event_type: Provider event name (e.g. "messages.upsert").
        instance: Logical session the event belongs to.
        key: Message correlation key, None for non-message events.
        message: Normalized content, set for messages.upsert only.
        payload: Kind-specific normalized fields.
        received_at: When the gateway accepted the envelope.
    """

    event_type: str
    instance: str
    payload: dict[str, Any] = field(default_factory=dict)
    key: MessageKey | None = None
    message: NormalizedMessage | None = None
    received_at: datetime = field(default_factory=_utc_now)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for serialization."""
        return {
            "eventType": self.event_type,
            "instance": self.instance,
            "key": self.key.to_dict() if self.key else None,
            "message": self.message.to_dict() if self.message else None,
            "payload": self.payload,
            "receivedAt": self.received_at.isoformat(),
        }
