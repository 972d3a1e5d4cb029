"""Tests for envelope validation and message normalization."""

import pytest

from evogate.whatsapp.evolution_adapter import (
    InvalidPayloadError,
    message_type,
    normalize_message,
    parse_envelope,
)
from evogate.whatsapp.models import EVENT_WHITELIST, MessageKind


class TestParseEnvelope:
    def test_valid_envelope(self):
        envelope = parse_envelope(
            {"event": "connection.update", "instance": "i1", "data": {"state": "open"}}
        )

        assert envelope.event == "connection.update"
        assert envelope.instance == "i1"
        assert envelope.data == {"state": "open"}

    def test_missing_event_rejected(self):
        with pytest.raises(InvalidPayloadError):
            parse_envelope({"instance": "i1"})

    def test_missing_instance_rejected(self):
        with pytest.raises(InvalidPayloadError):
            parse_envelope({"event": "messages.upsert", "data": {}})

    def test_non_string_event_rejected(self):
        with pytest.raises(InvalidPayloadError):
            parse_envelope({"event": 42, "instance": "i1"})

    def test_non_object_rejected(self):
        with pytest.raises(InvalidPayloadError):
            parse_envelope(["messages.upsert"])

    def test_non_whitelisted_event_rejected_when_strict(self):
        with pytest.raises(InvalidPayloadError, match="not allowed"):
            parse_envelope({"event": "bogus.event", "instance": "i1", "data": {}})

    def test_non_whitelisted_event_passes_when_lenient(self):
        envelope = parse_envelope(
            {"event": "bogus.event", "instance": "i1", "data": {}}, strict_events=False
        )

        assert envelope.event == "bogus.event"

    def test_missing_data_becomes_empty_dict(self):
        envelope = parse_envelope({"event": "presence.update", "instance": "i1", "data": "x"})

        assert envelope.data == {}

    def test_whitelist_contents(self):
        assert EVENT_WHITELIST == {
            "messages.upsert",
            "messages.update",
            "connection.update",
            "qr.update",
            "groups.upsert",
            "groups.update",
            "presence.update",
            "contacts.upsert",
            "contacts.update",
        }


class TestNormalizeMessage:
    def test_conversation_is_text(self):
        result = normalize_message({"conversation": "hello"})

        assert result.kind == MessageKind.TEXT
        assert result.payload == {"content": "hello"}

    def test_extended_text(self):
        result = normalize_message({"extendedTextMessage": {"text": "see link"}})

        assert result.kind == MessageKind.TEXT
        assert result.payload == {"content": "see link"}

    def test_image(self):
        result = normalize_message(
            {"imageMessage": {"url": "https://cdn/x.jpg", "mimetype": "image/jpeg", "caption": "pic"}}
        )

        assert result.kind == MessageKind.IMAGE
        assert result.payload == {
            "url": "https://cdn/x.jpg",
            "mimetype": "image/jpeg",
            "caption": "pic",
        }

    def test_document_keeps_file_name(self):
        result = normalize_message(
            {"documentMessage": {"url": "u", "mimetype": "application/pdf", "fileName": "a.pdf"}}
        )

        assert result.kind == MessageKind.DOCUMENT
        assert result.payload["fileName"] == "a.pdf"

    def test_location_coordinates(self):
        result = normalize_message(
            {"locationMessage": {"degreesLatitude": -23.5, "degreesLongitude": -46.6, "name": "SP"}}
        )

        assert result.kind == MessageKind.LOCATION
        assert result.payload["latitude"] == -23.5
        assert result.payload["longitude"] == -46.6

    @pytest.mark.parametrize(
        "type_name,kind",
        [
            ("videoMessage", MessageKind.VIDEO),
            ("audioMessage", MessageKind.AUDIO),
            ("contactMessage", MessageKind.CONTACT),
            ("contactsArrayMessage", MessageKind.CONTACTS),
            ("reactionMessage", MessageKind.REACTION),
            ("protocolMessage", MessageKind.PROTOCOL),
        ],
    )
    def test_kind_per_type(self, type_name, kind):
        assert normalize_message({type_name: {}}).kind == kind

    def test_unknown_type_keeps_raw_payload(self):
        raw = {"pollCreationMessage": {"name": "lunch?"}}

        result = normalize_message(raw)

        assert result.kind == MessageKind.UNKNOWN
        assert result.payload == {"raw": raw}

    @pytest.mark.parametrize("value", [{}, None, "text", 7, []])
    def test_total_on_degenerate_input(self, value):
        result = normalize_message(value)

        assert result.kind == MessageKind.UNKNOWN
        assert result.payload is None

    def test_malformed_section_does_not_raise(self):
        result = normalize_message({"imageMessage": "not-a-dict"})

        assert result.kind == MessageKind.IMAGE
        assert result.payload == {"url": None, "mimetype": None, "caption": None}

    def test_message_type_names_first_key(self):
        assert message_type({"audioMessage": {}}) == "audioMessage"
        assert message_type(None) == "unknown"
