"""App factory tests: wiring, correlation IDs, fallback error shapes."""

from fastapi.testclient import TestClient

from evogate.api import errors
from evogate.api.factory import create_app
from evogate.domain.rate_governor import RateGovernor
from evogate.observability.context import get_correlation_id
from evogate.sinks.client import InMemorySink, LoggingSink
from evogate.whatsapp.dispatcher import WebhookDispatcher


def test_injected_collaborators_on_state(app, governor, sink, evolution, registry):
    assert app.state.governor is governor
    assert app.state.evolution_client is evolution
    assert app.state.instance_registry is registry
    assert isinstance(app.state.dispatcher, WebhookDispatcher)
    assert app.state.dispatcher.sink is sink


def test_defaults_built_from_env(monkeypatch):
    monkeypatch.setenv("SINK_BACKEND", "log")
    monkeypatch.setenv("RATE_LIMIT_MESSAGE_POINTS", "7")

    app = create_app()

    assert isinstance(app.state.dispatcher.sink, LoggingSink)
    assert isinstance(app.state.governor, RateGovernor)
    assert app.state.governor.stats()["message"]["points"] == 7


def test_default_sink_is_in_memory(monkeypatch):
    monkeypatch.delenv("SINK_BACKEND", raising=False)

    assert isinstance(create_app().state.dispatcher.sink, InMemorySink)


def test_correlation_id_generated_when_absent(client):
    response = client.get("/health")

    assert len(response.headers["X-Correlation-ID"]) == 36


def test_correlation_id_propagated(client):
    response = client.get("/health", headers={"X-Correlation-ID": "abc-123"})

    assert response.headers["X-Correlation-ID"] == "abc-123"


def test_unknown_route_is_404_json(client):
    response = client.get("/nope")

    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Endpoint not found", "path": "/nope"}


def test_wrong_method_is_405_json(client):
    response = client.get("/webhook")

    assert response.status_code == 405
    assert response.json()["success"] is False


def test_docs_disabled(client):
    assert client.get("/docs").status_code == 404


def test_unhandled_error_keeps_correlation_id(app, monkeypatch):
    seen = []
    monkeypatch.setattr(
        errors.logger, "error", lambda *args, **kwargs: seen.append(get_correlation_id())
    )

    @app.get("/explode")
    def explode():
        raise RuntimeError("boom")

    response = TestClient(app).get("/explode", headers={"X-Correlation-ID": "cid-500"})

    assert response.status_code == 500
    assert response.headers["X-Correlation-ID"] == "cid-500"
    assert response.json()["message"] == "Internal server error"
    assert "RuntimeError" in response.json()["stack"]
    assert seen == ["cid-500"]
