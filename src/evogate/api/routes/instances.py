"""Instance (session) management endpoints - proxied to the Evolution API."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from evogate.api.auth import CurrentClient, CurrentClientDep, require_client_access
from evogate.api.deps import get_evolution_client, get_instance_registry, instance_access
from evogate.api.rate_limit import general_rate_limit
from evogate.api.responses import ok
from evogate.domain.errors import AuthorizationError
from evogate.infra.instance_registry import InstanceRegistry
from evogate.observability.logging import get_logger
from evogate.observability.redaction import safe_log_context
from evogate.whatsapp.evolution_client import DEFAULT_PAGE_SIZE, EvolutionClient

router = APIRouter(
    prefix="/api/instances",
    tags=["instances"],
    dependencies=[CurrentClientDep, Depends(general_rate_limit)],
)

logger = get_logger(__name__)


class CreateInstanceRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    instance: str = Field(min_length=1)
    client_id: str = Field(alias="clientId", min_length=1)
    webhook_url: str | None = Field(default=None, alias="webhookUrl")
    webhook_by_events: bool | None = Field(default=None, alias="webhookByEvents")
    events: list[str] | None = None


class InstanceConfigRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    webhook_url: str | None = Field(default=None, alias="webhookUrl")
    webhook_by_events: bool | None = Field(default=None, alias="webhookByEvents")
    events: list[str] | None = None
    qrcode: bool | None = None
    number: str | None = None
    token: str | None = None


def _log_done(action: str, instance: str) -> None:
    logger.info(action, extra={"extra_fields": safe_log_context(instance=instance)})


@router.get("")
def list_instances(
    client: CurrentClient = CurrentClientDep,
    registry: InstanceRegistry = Depends(get_instance_registry),
) -> dict:
    """Instances created through the gateway by the calling tenant."""
    records = registry.list_for(client.client_id)
    return ok([{"instance": r.instance, "createdAt": r.created_at.isoformat()} for r in records])


@router.post("/create", status_code=201)
def create_instance(
    body: CreateInstanceRequest,
    client: CurrentClient = CurrentClientDep,
    evolution: EvolutionClient = Depends(get_evolution_client),
    registry: InstanceRegistry = Depends(get_instance_registry),
) -> dict:
    require_client_access(client, body.client_id)
    owner = registry.owner_of(body.instance)
    if owner and owner != client.client_id:
        raise AuthorizationError.forbidden("Instance belongs to another client")

    config = {
        "webhook": body.webhook_url,
        "webhookByEvents": body.webhook_by_events,
        "events": body.events,
    }
    result = evolution.create_instance(
        body.instance, {k: v for k, v in config.items() if v is not None}
    )
    registry.register(body.instance, client.client_id)
    _log_done("instance created", body.instance)
    return ok(result, "Instance created")


@router.post("/connect/{instance}")
def connect_instance(
    instance: str = Depends(instance_access),
    evolution: EvolutionClient = Depends(get_evolution_client),
) -> dict:
    result = evolution.connect_instance(instance)
    _log_done("instance connected", instance)
    return ok(result, "Instance connected")


@router.post("/disconnect/{instance}")
def disconnect_instance(
    instance: str = Depends(instance_access),
    evolution: EvolutionClient = Depends(get_evolution_client),
) -> dict:
    result = evolution.disconnect_instance(instance)
    _log_done("instance disconnected", instance)
    return ok(result, "Instance disconnected")


@router.delete("/delete/{instance}")
def delete_instance(
    instance: str = Depends(instance_access),
    evolution: EvolutionClient = Depends(get_evolution_client),
    registry: InstanceRegistry = Depends(get_instance_registry),
) -> dict:
    result = evolution.delete_instance(instance)
    registry.forget(instance)
    _log_done("instance deleted", instance)
    return ok(result, "Instance deleted")


@router.get("/info/{instance}")
def instance_info(
    instance: str = Depends(instance_access),
    evolution: EvolutionClient = Depends(get_evolution_client),
) -> dict:
    return ok(evolution.instance_info(instance))


@router.get("/status/{instance}")
def instance_status(
    instance: str = Depends(instance_access),
    evolution: EvolutionClient = Depends(get_evolution_client),
) -> dict:
    return ok(evolution.instance_status(instance))


@router.get("/qr/{instance}")
def instance_qrcode(
    instance: str = Depends(instance_access),
    evolution: EvolutionClient = Depends(get_evolution_client),
) -> dict:
    return ok(evolution.instance_qrcode(instance))


@router.put("/config/{instance}")
def update_instance_config(
    body: InstanceConfigRequest,
    instance: str = Depends(instance_access),
    evolution: EvolutionClient = Depends(get_evolution_client),
) -> dict:
    config = body.model_dump(by_alias=True, exclude_none=True)
    result = evolution.set_instance_config(instance, config)
    _log_done("instance config updated", instance)
    return ok(result, "Configuration updated")


@router.get("/config/{instance}")
def get_instance_config(
    instance: str = Depends(instance_access),
    evolution: EvolutionClient = Depends(get_evolution_client),
) -> dict:
    return ok(evolution.get_instance_config(instance))


@router.get("/chats/{instance}")
def instance_chats(
    instance: str = Depends(instance_access),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=500),
    cursor: str | None = None,
    evolution: EvolutionClient = Depends(get_evolution_client),
) -> dict:
    return ok(evolution.find_chats(instance, limit=limit, cursor=cursor))


@router.get("/contacts/{instance}")
def instance_contacts(
    instance: str = Depends(instance_access),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=500),
    cursor: str | None = None,
    evolution: EvolutionClient = Depends(get_evolution_client),
) -> dict:
    return ok(evolution.find_contacts(instance, limit=limit, cursor=cursor))
