"""Tests for JSON logging and request context."""

import json
import logging
import sys

import pytest

from evogate.observability.context import (
    bind_client_id,
    client_id_var,
    get_client_id,
    get_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)
from evogate.observability.logging import JsonFormatter, get_logger


def _record(msg="hello", exc_info=None, **extra):
    record = logging.LogRecord("evogate.test", logging.ERROR, __file__, 1, msg, None, exc_info)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def _exc_info():
    try:
        raise ValueError("bad")
    except ValueError:
        return sys.exc_info()


@pytest.fixture
def correlation():
    token = set_correlation_id("corr-1")
    yield "corr-1"
    reset_correlation_id(token)


class TestJsonFormatter:
    def test_base_fields(self):
        out = json.loads(JsonFormatter().format(_record()))

        assert out["level"] == "ERROR"
        assert out["logger"] == "evogate.test"
        assert out["message"] == "hello"
        assert "timestamp" in out

    def test_includes_correlation_id(self, correlation):
        out = json.loads(JsonFormatter().format(_record()))

        assert out["correlationId"] == "corr-1"

    def test_includes_client_id(self):
        token = bind_client_id("tenant-a")
        try:
            out = json.loads(JsonFormatter().format(_record()))
        finally:
            client_id_var.reset(token)

        assert out["clientId"] == "tenant-a"

    def test_extra_fields_merged(self):
        out = json.loads(JsonFormatter().format(_record(extra_fields={"instance": "demo"})))

        assert out["instance"] == "demo"

    def test_stack_trace_outside_production(self):
        out = json.loads(JsonFormatter().format(_record(exc_info=_exc_info())))

        assert "ValueError: bad" in out["exception"]

    def test_no_stack_trace_in_production(self, monkeypatch):
        monkeypatch.setenv("APP_ENV", "production")

        out = json.loads(JsonFormatter().format(_record(exc_info=_exc_info())))

        assert "exception" not in out
        assert out["errorType"] == "ValueError"


class TestContext:
    def test_defaults_empty(self):
        assert get_correlation_id() == ""
        assert get_client_id() == ""

    def test_reset_restores_previous(self):
        token = set_correlation_id("x")
        reset_correlation_id(token)

        assert get_correlation_id() == ""


def test_get_logger_single_handler():
    logger = get_logger("evogate.test.single")
    get_logger("evogate.test.single")

    assert len(logger.handlers) == 1
    assert logger.propagate is False
