"""Tests for log redaction helpers."""

from evogate.observability.redaction import (
    hash_identifier,
    redact_string,
    redact_value,
    safe_log_context,
)


class TestRedaction:
    def test_redact_jid(self):
        result = redact_string("from 5511999998888@s.whatsapp.net")
        assert "5511999998888" not in result
        assert "[REDACTED]" in result

    def test_redact_group_jid(self):
        assert "120363" not in redact_string("120363025246125486@g.us")

    def test_redact_phone_number(self):
        result = redact_string("Call me at +55 11 99999-8888")
        assert "99999" not in result
        assert "[REDACTED]" in result

    def test_redact_email(self):
        result = redact_string("Email: user@example.com")
        assert "user@example.com" not in result

    def test_plain_text_untouched(self):
        assert redact_string("messages.upsert") == "messages.upsert"

    def test_redact_value_dict_only_keys(self):
        result = redact_value({"conversation": "secret text", "pushName": "Ana"})
        assert "secret text" not in result
        assert "Ana" not in result
        assert "conversation" in result

    def test_redact_value_list_only_len(self):
        result = redact_value(["a", "b", "c"])
        assert result == "list(len=3)"

    def test_scalars_keep_type(self):
        assert redact_value(42) == 42
        assert redact_value(True) is True
        assert redact_value(None) is None

    def test_safe_log_context(self):
        ctx = safe_log_context(phone="+5511999998888", count=42)
        assert "[REDACTED]" in ctx["phone"]
        assert ctx["count"] == 42


class TestHashIdentifier:
    def test_stable_and_short(self):
        first = hash_identifier("5551234@s.whatsapp.net")
        assert first == hash_identifier("5551234@s.whatsapp.net")
        assert len(first) == 12
        assert "5551234" not in first

    def test_distinct_inputs_differ(self):
        assert hash_identifier("a") != hash_identifier("b")
