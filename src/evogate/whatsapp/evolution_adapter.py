"""Evolution API adapter - validate webhook envelopes and normalize message content."""

from __future__ import annotations

from typing import Any, Callable, Mapping

from .models import EVENT_WHITELIST, MessageKind, NormalizedMessage, WebhookEnvelope


class InvalidPayloadError(Exception):
    """Raised when an Evolution envelope has invalid shape."""

    pass


def parse_envelope(payload: Any, *, strict_events: bool = True) -> WebhookEnvelope:
    """Validate an Evolution webhook body and build its envelope.

    Args:
        payload: Decoded JSON body.
        strict_events: Reject events outside the whitelist. When False,
            unknown events pass through and are acknowledged as no-ops.

    Returns:
        WebhookEnvelope with ``data`` coerced to a dict.

    Raises:
        InvalidPayloadError: If event or instance is missing, or the event
            is not whitelisted while ``strict_events`` is set.
    """
    if not isinstance(payload, dict):
        raise InvalidPayloadError("payload must be a JSON object")

    event = payload.get("event")
    instance = payload.get("instance")
    if not event or not isinstance(event, str):
        raise InvalidPayloadError("missing or invalid event")
    if not instance or not isinstance(instance, str):
        raise InvalidPayloadError("missing or invalid instance")
    if strict_events and event not in EVENT_WHITELIST:
        raise InvalidPayloadError(f"event not allowed: {event}")

    data = payload.get("data")
    timestamp = payload.get("timestamp")
    return WebhookEnvelope(
        event=event,
        instance=instance,
        data=data if isinstance(data, dict) else {},
        timestamp=timestamp if isinstance(timestamp, (int, float)) else None,
    )


def _section(message: Mapping[str, Any], name: str) -> dict[str, Any]:
    value = message.get(name)
    return value if isinstance(value, dict) else {}


def _text(message: Mapping[str, Any], type_name: str) -> dict[str, Any]:
    # extendedTextMessage nests the text; a bare conversation is the string itself
    text = _section(message, type_name).get("text")
    if not text:
        conversation = message.get("conversation")
        text = conversation if isinstance(conversation, str) else ""
    return {"content": text}


def _image(message: Mapping[str, Any], type_name: str) -> dict[str, Any]:
    m = _section(message, type_name)
    return {"url": m.get("url"), "mimetype": m.get("mimetype"), "caption": m.get("caption")}


def _video(message: Mapping[str, Any], type_name: str) -> dict[str, Any]:
    m = _section(message, type_name)
    return {"url": m.get("url"), "mimetype": m.get("mimetype"), "caption": m.get("caption")}


def _audio(message: Mapping[str, Any], type_name: str) -> dict[str, Any]:
    m = _section(message, type_name)
    return {"url": m.get("url"), "mimetype": m.get("mimetype"), "ptt": m.get("ptt")}


def _document(message: Mapping[str, Any], type_name: str) -> dict[str, Any]:
    m = _section(message, type_name)
    return {
        "url": m.get("url"),
        "mimetype": m.get("mimetype"),
        "fileName": m.get("fileName"),
        "caption": m.get("caption"),
    }


def _location(message: Mapping[str, Any], type_name: str) -> dict[str, Any]:
    m = _section(message, type_name)
    return {
        "latitude": m.get("degreesLatitude"),
        "longitude": m.get("degreesLongitude"),
        "name": m.get("name"),
        "address": m.get("address"),
    }


def _contacts(message: Mapping[str, Any], type_name: str) -> dict[str, Any]:
    return {"contacts": _section(message, type_name).get("contacts")}


def _reaction(message: Mapping[str, Any], type_name: str) -> dict[str, Any]:
    m = _section(message, type_name)
    return {"key": m.get("key"), "text": m.get("text")}


def _protocol(message: Mapping[str, Any], type_name: str) -> dict[str, Any]:
    m = _section(message, type_name)
    return {"key": m.get("key"), "protocolType": m.get("type")}


_Extractor = Callable[[Mapping[str, Any], str], dict[str, Any]]

# Provider content type name -> (kind, extractor)
MESSAGE_TYPES: dict[str, tuple[MessageKind, _Extractor]] = {
    "conversation": (MessageKind.TEXT, _text),
    "extendedTextMessage": (MessageKind.TEXT, _text),
    "imageMessage": (MessageKind.IMAGE, _image),
    "videoMessage": (MessageKind.VIDEO, _video),
    "audioMessage": (MessageKind.AUDIO, _audio),
    "documentMessage": (MessageKind.DOCUMENT, _document),
    "locationMessage": (MessageKind.LOCATION, _location),
    "contactMessage": (MessageKind.CONTACT, _contacts),
    "contactsArrayMessage": (MessageKind.CONTACTS, _contacts),
    "reactionMessage": (MessageKind.REACTION, _reaction),
    "protocolMessage": (MessageKind.PROTOCOL, _protocol),
}


def message_type(message: Any) -> str:
    """Provider content type name of a raw message, "unknown" if absent.

    Provider messages are single-keyed; the first key names the content.
    """
    if not isinstance(message, dict) or not message:
        return "unknown"
    return str(next(iter(message)))


def normalize_message(message: Any) -> NormalizedMessage:
    """Classify a raw provider message and extract its canonical fields.

    Total: returns exactly one NormalizedMessage for any input, never raises.
    Empty or absent messages yield UNKNOWN with a None payload; unrecognized
    content types yield UNKNOWN carrying the raw message verbatim.
    """
    if not isinstance(message, dict) or not message:
        return NormalizedMessage(kind=MessageKind.UNKNOWN, payload=None)

    type_name = message_type(message)
    entry = MESSAGE_TYPES.get(type_name)
    if entry is None:
        return NormalizedMessage(kind=MessageKind.UNKNOWN, payload={"raw": message})

    # Extractors only read through _section(), so malformed sections yield None fields
    kind, extract = entry
    return NormalizedMessage(kind=kind, payload=extract(message, type_name))
