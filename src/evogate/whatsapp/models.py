"""WhatsApp webhook models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class MessageKind(str, Enum):
    """Closed set of normalized message content kinds."""

    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    DOCUMENT = "document"
    LOCATION = "location"
    CONTACT = "contact"
    CONTACTS = "contacts"
    REACTION = "reaction"
    PROTOCOL = "protocol"
    UNKNOWN = "unknown"


class EventType(str, Enum):
    """Webhook events accepted from the provider."""

    MESSAGES_UPSERT = "messages.upsert"
    MESSAGES_UPDATE = "messages.update"
    CONNECTION_UPDATE = "connection.update"
    QR_UPDATE = "qr.update"
    GROUPS_UPSERT = "groups.upsert"
    GROUPS_UPDATE = "groups.update"
    PRESENCE_UPDATE = "presence.update"
    CONTACTS_UPSERT = "contacts.upsert"
    CONTACTS_UPDATE = "contacts.update"


EVENT_WHITELIST: frozenset[str] = frozenset(e.value for e in EventType)


@dataclass(frozen=True)
class MessageKey:
    """Identifies a provider message within an instance.

    Correlates a messages.upsert with later messages.update events.
    """

    remote_jid: str
    from_me: bool
    id: str

    @classmethod
    def from_payload(cls, key: Any) -> MessageKey:
        key = key if isinstance(key, dict) else {}
        return cls(
            remote_jid=str(key.get("remoteJid") or ""),
            from_me=key.get("fromMe") is True,
            id=str(key.get("id") or ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"remoteJid": self.remote_jid, "fromMe": self.from_me, "id": self.id}


@dataclass(frozen=True)
class NormalizedMessage:
    """Canonical content of one provider message.

    ``payload`` holds the kind-specific fields; for UNKNOWN it carries the
    raw provider message (or None when the message was empty).
    """

    kind: MessageKind
    payload: dict[str, Any] | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "payload": self.payload}


@dataclass(frozen=True)
class WebhookEnvelope:
    """Outer JSON object describing one provider event.

    ``event`` is validated against EVENT_WHITELIST before construction.
    """

    event: str
    instance: str
    data: dict[str, Any]
    timestamp: float | None = None

    @property
    def event_type(self) -> EventType:
        return EventType(self.event)
