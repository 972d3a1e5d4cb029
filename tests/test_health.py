"""Health endpoint tests."""

from evogate.domain.errors import UpstreamError


def test_health_returns_ok_status(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_ping(client):
    assert client.get("/health/ping").json()["message"] == "pong"


def test_detailed_reports_provider_and_budgets(client, evolution):
    response = client.get("/health/detailed")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["services"]["evolutionApi"] == {"url": "http://evolution.test", "status": "ok"}
    assert body["rateLimits"]["message"]["points"] == 50
    evolution.health_check.assert_called_once_with()


def test_detailed_degraded_when_provider_unreachable(client, evolution):
    evolution.health_check.side_effect = UpstreamError(
        "Evolution API timeout in health", operation="health", timeout=True
    )

    response = client.get("/health/detailed")

    assert response.status_code == 503
    body = response.json()
    assert body["success"] is False
    assert body["status"] == "degraded"
    assert body["services"]["evolutionApi"]["status"] == "unreachable"
