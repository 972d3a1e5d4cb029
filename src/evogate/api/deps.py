"""Accessors for the collaborators held on ``app.state`` (overridable in tests)."""

from __future__ import annotations

from fastapi import Depends, Request

from evogate.domain.rate_governor import RateGovernor
from evogate.infra.instance_registry import InstanceRegistry
from evogate.whatsapp.dispatcher import WebhookDispatcher
from evogate.whatsapp.evolution_client import EvolutionClient

from .auth import CurrentClient, get_current_client, require_client_access


def get_governor(request: Request) -> RateGovernor:
    return request.app.state.governor


def get_dispatcher(request: Request) -> WebhookDispatcher:
    return request.app.state.dispatcher


def get_evolution_client(request: Request) -> EvolutionClient:
    return request.app.state.evolution_client


def get_instance_registry(request: Request) -> InstanceRegistry:
    return request.app.state.instance_registry


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def instance_access(
    instance: str,
    client: CurrentClient = Depends(get_current_client),
    registry: InstanceRegistry = Depends(get_instance_registry),
) -> str:
    """Path-parameter guard: the instance must be unowned or owned by the caller.

    Raises:
        AuthorizationError: 403 on cross-tenant access.
    """
    require_client_access(client, registry.owner_of(instance))
    return instance
