"""Shared pytest fixtures for gateway tests."""
import sys
sys.dont_write_bytecode = True

from unittest.mock import MagicMock  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from helpers import TEST_JWT_SECRET, FakeClock  # noqa: E402


@pytest.fixture(autouse=True)
def _jwt_secret(monkeypatch):
    """Every test signs and verifies tokens with the same secret."""
    monkeypatch.setenv("JWT_SECRET", TEST_JWT_SECRET)
    monkeypatch.delenv("EVOLUTION_WEBHOOK_SECRET", raising=False)
    monkeypatch.delenv("APP_ENV", raising=False)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def governor(clock):
    from evogate.domain.rate_governor import RateGovernor

    return RateGovernor(clock=clock)


@pytest.fixture
def sink():
    from evogate.sinks.client import InMemorySink

    return InMemorySink()


@pytest.fixture
def evolution():
    """Provider client double; every call returns an empty success body."""
    from evogate.whatsapp.evolution_client import EvolutionClient

    mock = MagicMock(spec=EvolutionClient)
    mock.base_url = "http://evolution.test"
    for name, attr in vars(EvolutionClient).items():
        if callable(attr) and not name.startswith("_"):
            getattr(mock, name).return_value = {}
    return mock


@pytest.fixture
def registry():
    from evogate.infra.instance_registry import InstanceRegistry

    return InstanceRegistry()


@pytest.fixture
def app(governor, sink, evolution, registry):
    from evogate.api.factory import create_app

    return create_app(
        governor=governor, sink=sink, evolution_client=evolution, registry=registry
    )


@pytest.fixture
def client(app):
    return TestClient(app)
