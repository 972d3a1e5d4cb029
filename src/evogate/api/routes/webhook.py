"""Webhook routes - Evolution API event ingestion and webhook configuration.

Ingestion contract:
- 400 if the body is not JSON or the envelope is invalid (no handler runs)
- 401 if EVOLUTION_WEBHOOK_SECRET is set and the request does not carry it
- 500 with ``received: true`` if the event's handler failed
- 200 ``{success, message, eventType, responseTimeMs}`` otherwise,
  including own-message echoes, which are acknowledged without delivery
"""

from __future__ import annotations

import hmac
import os
import time

from fastapi import APIRouter, Depends, Header, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from evogate.api.auth import CurrentClient, CurrentClientDep, require_client_access
from evogate.api.deps import (
    get_dispatcher,
    get_evolution_client,
    get_instance_registry,
    instance_access,
)
from evogate.api.rate_limit import general_rate_limit, webhook_rate_limit
from evogate.api.responses import ok
from evogate.domain.errors import AuthorizationError, ValidationError
from evogate.infra.instance_registry import InstanceRegistry
from evogate.observability.logging import get_logger
from evogate.observability.redaction import safe_log_context
from evogate.whatsapp.dispatcher import WebhookDispatcher, WebhookHandlingError
from evogate.whatsapp.evolution_adapter import InvalidPayloadError
from evogate.whatsapp.evolution_client import EvolutionClient

router = APIRouter(tags=["webhooks"])

logger = get_logger(__name__)


class ConfigureWebhookRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    instance: str = Field(min_length=1)
    webhook_url: str = Field(alias="webhookUrl", min_length=1)
    events: list[str] | None = None


def _check_secret(provided: str | None) -> None:
    expected = os.environ.get("EVOLUTION_WEBHOOK_SECRET", "")
    if not expected:
        return
    if not provided or not hmac.compare_digest(provided, expected):
        logger.warning("evolution webhook secret mismatch")
        raise AuthorizationError("Invalid webhook secret")


@router.post("/webhook", dependencies=[Depends(webhook_rate_limit)])
async def evolution_webhook(
    request: Request,
    dispatcher: WebhookDispatcher = Depends(get_dispatcher),
    apikey: str | None = Header(None),
    x_webhook_secret: str | None = Header(None, alias="X-Webhook-Secret"),
) -> JSONResponse:
    """Receive one Evolution API event and acknowledge it.

    The dispatcher is synchronous (sinks may do blocking I/O), so it runs
    in the threadpool.
    """
    started = time.perf_counter()
    _check_secret(x_webhook_secret or apikey)

    try:
        payload = await request.json()
    except ValueError:
        raise ValidationError("Invalid JSON body")

    try:
        result = await run_in_threadpool(dispatcher.receive, payload)
    except InvalidPayloadError as e:
        logger.warning(
            "invalid evolution payload",
            extra={"extra_fields": safe_log_context(reason=str(e))},
        )
        raise ValidationError(f"Invalid webhook: {e}")
    except WebhookHandlingError as e:
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "message": "Webhook handling failed",
                "eventType": e.event_type,
                "received": True,
                "responseTimeMs": int((time.perf_counter() - started) * 1000),
            },
        )

    return JSONResponse(
        status_code=200,
        content={
            "success": True,
            "message": "Webhook processed",
            "eventType": result.event_type,
            "responseTimeMs": int((time.perf_counter() - started) * 1000),
        },
    )


@router.post(
    "/api/webhook/configure",
    dependencies=[CurrentClientDep, Depends(general_rate_limit)],
)
def configure_webhook(
    body: ConfigureWebhookRequest,
    client: CurrentClient = CurrentClientDep,
    evolution: EvolutionClient = Depends(get_evolution_client),
    registry: InstanceRegistry = Depends(get_instance_registry),
) -> dict:
    """Point an instance's provider webhook at ``webhookUrl``."""
    require_client_access(client, registry.owner_of(body.instance))

    result = evolution.set_webhook(body.instance, body.webhook_url, body.events)
    logger.info(
        "webhook configured",
        extra={
            "extra_fields": safe_log_context(
                instance=body.instance, events=body.events or "default"
            )
        },
    )
    return ok(result, "Webhook configured")


@router.get(
    "/api/webhook/config/{instance}",
    dependencies=[CurrentClientDep, Depends(general_rate_limit)],
)
def get_webhook_config(
    instance: str = Depends(instance_access),
    evolution: EvolutionClient = Depends(get_evolution_client),
) -> dict:
    return ok(evolution.find_webhook(instance))
