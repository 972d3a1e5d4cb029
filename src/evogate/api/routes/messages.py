"""Outbound message endpoints - proxied to the Evolution API.

Sends are rate-limited per tenant + IP (message class); reads use the
general class. Recipients are never logged in clear.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from evogate.api.auth import CurrentClient, CurrentClientDep, require_client_access
from evogate.api.deps import get_evolution_client, get_instance_registry, instance_access
from evogate.api.rate_limit import general_rate_limit, message_rate_limit
from evogate.api.responses import ok
from evogate.infra.instance_registry import InstanceRegistry
from evogate.observability.logging import get_logger
from evogate.observability.redaction import hash_identifier, safe_log_context
from evogate.whatsapp.evolution_client import DEFAULT_PAGE_SIZE, EvolutionClient

router = APIRouter(prefix="/api/messages", tags=["messages"], dependencies=[CurrentClientDep])

logger = get_logger(__name__)

_send_limit = [Depends(message_rate_limit)]
_read_limit = [Depends(general_rate_limit)]


class SendRequest(BaseModel):
    """Fields common to every send."""

    model_config = ConfigDict(populate_by_name=True)

    instance: str = Field(min_length=1)
    to: str = Field(min_length=1)
    client_id: str | None = Field(default=None, alias="clientId")


class SendTextRequest(SendRequest):
    message: str = Field(min_length=1)


class SendImageRequest(SendRequest):
    image_url: str = Field(alias="imageUrl", min_length=1)
    caption: str | None = None


class SendDocumentRequest(SendRequest):
    document_url: str = Field(alias="documentUrl", min_length=1)
    file_name: str = Field(alias="fileName", min_length=1)
    caption: str | None = None


class SendAudioRequest(SendRequest):
    audio_url: str = Field(alias="audioUrl", min_length=1)


class SendVideoRequest(SendRequest):
    video_url: str = Field(alias="videoUrl", min_length=1)
    caption: str | None = None


class SendLocationRequest(SendRequest):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    name: str | None = None
    address: str | None = None


class SendContactRequest(SendRequest):
    contact_number: str = Field(alias="contactNumber", min_length=1)
    contact_name: str = Field(alias="contactName", min_length=1)


class SendButtonsRequest(SendRequest):
    title: str = Field(min_length=1)
    body: str = Field(min_length=1)
    buttons: list[str] = Field(min_length=1)


def _authorize(body: SendRequest, client: CurrentClient, registry: InstanceRegistry) -> None:
    require_client_access(client, body.client_id)
    require_client_access(client, registry.owner_of(body.instance))


def _sent(kind: str, body: SendRequest, result) -> dict:
    message_id = None
    if isinstance(result, dict):
        key = result.get("key")
        message_id = key.get("id") if isinstance(key, dict) else result.get("messageId")
    logger.info(
        "message sent",
        extra={
            "extra_fields": safe_log_context(
                instance=body.instance,
                kind=kind,
                to_hash=hash_identifier(body.to),
                message_id=message_id,
            )
        },
    )
    return ok(result, "Message sent")


@router.post("/send/text", dependencies=_send_limit)
def send_text(
    body: SendTextRequest,
    client: CurrentClient = CurrentClientDep,
    evolution: EvolutionClient = Depends(get_evolution_client),
    registry: InstanceRegistry = Depends(get_instance_registry),
) -> dict:
    _authorize(body, client, registry)
    result = evolution.send_text(body.instance, to=body.to, text=body.message)
    return _sent("text", body, result)


@router.post("/send/image", dependencies=_send_limit)
def send_image(
    body: SendImageRequest,
    client: CurrentClient = CurrentClientDep,
    evolution: EvolutionClient = Depends(get_evolution_client),
    registry: InstanceRegistry = Depends(get_instance_registry),
) -> dict:
    _authorize(body, client, registry)
    result = evolution.send_image(
        body.instance, to=body.to, image_url=body.image_url, caption=body.caption
    )
    return _sent("image", body, result)


@router.post("/send/document", dependencies=_send_limit)
def send_document(
    body: SendDocumentRequest,
    client: CurrentClient = CurrentClientDep,
    evolution: EvolutionClient = Depends(get_evolution_client),
    registry: InstanceRegistry = Depends(get_instance_registry),
) -> dict:
    _authorize(body, client, registry)
    result = evolution.send_document(
        body.instance,
        to=body.to,
        document_url=body.document_url,
        file_name=body.file_name,
        caption=body.caption,
    )
    return _sent("document", body, result)


@router.post("/send/audio", dependencies=_send_limit)
def send_audio(
    body: SendAudioRequest,
    client: CurrentClient = CurrentClientDep,
    evolution: EvolutionClient = Depends(get_evolution_client),
    registry: InstanceRegistry = Depends(get_instance_registry),
) -> dict:
    _authorize(body, client, registry)
    result = evolution.send_audio(body.instance, to=body.to, audio_url=body.audio_url)
    return _sent("audio", body, result)


@router.post("/send/video", dependencies=_send_limit)
def send_video(
    body: SendVideoRequest,
    client: CurrentClient = CurrentClientDep,
    evolution: EvolutionClient = Depends(get_evolution_client),
    registry: InstanceRegistry = Depends(get_instance_registry),
) -> dict:
    _authorize(body, client, registry)
    result = evolution.send_video(
        body.instance, to=body.to, video_url=body.video_url, caption=body.caption
    )
    return _sent("video", body, result)


@router.post("/send/location", dependencies=_send_limit)
def send_location(
    body: SendLocationRequest,
    client: CurrentClient = CurrentClientDep,
    evolution: EvolutionClient = Depends(get_evolution_client),
    registry: InstanceRegistry = Depends(get_instance_registry),
) -> dict:
    _authorize(body, client, registry)
    result = evolution.send_location(
        body.instance,
        to=body.to,
        latitude=body.latitude,
        longitude=body.longitude,
        name=body.name,
        address=body.address,
    )
    return _sent("location", body, result)


@router.post("/send/contact", dependencies=_send_limit)
def send_contact(
    body: SendContactRequest,
    client: CurrentClient = CurrentClientDep,
    evolution: EvolutionClient = Depends(get_evolution_client),
    registry: InstanceRegistry = Depends(get_instance_registry),
) -> dict:
    _authorize(body, client, registry)
    result = evolution.send_contact(
        body.instance,
        to=body.to,
        contact_number=body.contact_number,
        contact_name=body.contact_name,
    )
    return _sent("contact", body, result)


@router.post("/send/buttons", dependencies=_send_limit)
def send_buttons(
    body: SendButtonsRequest,
    client: CurrentClient = CurrentClientDep,
    evolution: EvolutionClient = Depends(get_evolution_client),
    registry: InstanceRegistry = Depends(get_instance_registry),
) -> dict:
    _authorize(body, client, registry)
    result = evolution.send_buttons(
        body.instance, to=body.to, title=body.title, body=body.body, buttons=body.buttons
    )
    return _sent("buttons", body, result)


@router.get("/history/{instance}/{phone}", dependencies=_read_limit)
def message_history(
    phone: str,
    instance: str = Depends(instance_access),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=500),
    cursor: str | None = None,
    evolution: EvolutionClient = Depends(get_evolution_client),
) -> dict:
    return ok(evolution.find_messages(instance, number=phone, limit=limit, cursor=cursor))


@router.get("/status/{instance}/{message_id}", dependencies=_read_limit)
def message_status(
    message_id: str,
    instance: str = Depends(instance_access),
    evolution: EvolutionClient = Depends(get_evolution_client),
) -> dict:
    """Delivery status of one message as last reported by the provider."""
    return ok(evolution.find_message(instance, message_id))
