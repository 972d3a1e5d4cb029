"""Thin wrapper around the Evolution API.

Purpose:
- One method per provider endpoint; no retries (callers decide).
- Every call bounded by a timeout.
- Provider errors unwrapped into UpstreamError carrying the original
  status and message; transport failures carry no status.
- Never log message bodies or recipients (only hashes and ids).
"""

from __future__ import annotations

import os
from typing import Any

import requests

from evogate.domain.errors import UpstreamError
from evogate.observability.context import get_correlation_id
from evogate.observability.logging import get_logger
from evogate.observability.redaction import hash_identifier, safe_log_context

logger = get_logger(__name__)

DEFAULT_BASE_URL = "http://localhost:8080"
DEFAULT_TIMEOUT = 30.0
DEFAULT_PAGE_SIZE = 50
DEFAULT_WEBHOOK_EVENTS = ("messages.upsert", "messages.update", "connection.update")


def _error_message(response: requests.Response) -> str:
    """Pull the provider's message out of an error body, falling back to the reason."""
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason or "unknown error"
    if isinstance(body, dict):
        for field in ("message", "error"):
            value = body.get(field)
            if isinstance(value, list):
                value = "; ".join(str(v) for v in value)
            if value:
                return str(value)
        response_body = body.get("response")
        if isinstance(response_body, dict) and response_body.get("message"):
            return str(response_body["message"])
    return response.reason or "unknown error"


class EvolutionClient:
    """Evolution API operations for instances, messages, chats and webhooks.

    Usage:
        client = EvolutionClient()  # reads EVOLUTION_API_URL / EVOLUTION_API_KEY
        client.send_text("demo", to="5551234", text="hi")
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self._base_url = (base_url or os.environ.get("EVOLUTION_API_URL") or DEFAULT_BASE_URL).rstrip("/")
        self._api_key = api_key if api_key is not None else os.environ.get("EVOLUTION_API_KEY", "")
        self._timeout = (
            timeout if timeout is not None else float(os.environ.get("EVOLUTION_TIMEOUT", DEFAULT_TIMEOUT))
        )
        self._session = session or requests.Session()

    @property
    def base_url(self) -> str:
        return self._base_url

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["apikey"] = self._api_key
        correlation_id = get_correlation_id()
        if correlation_id:
            headers["X-Correlation-Id"] = correlation_id
        return headers

    def _request(
        self,
        method: str,
        path: str,
        operation: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Execute one provider call and return its decoded JSON body.

        Raises:
            UpstreamError: On HTTP error status, timeout or transport failure.
        """
        url = f"{self._base_url}{path}"
        log_ctx = safe_log_context(operation=operation, method=method, path=path)
        logger.debug("evolution request", extra={"extra_fields": log_ctx})

        if params is not None:
            params = {k: v for k, v in params.items() if v is not None}

        try:
            response = self._session.request(
                method,
                url,
                json=json,
                params=params,
                headers=self._headers(),
                timeout=self._timeout,
            )
        except requests.Timeout as e:
            logger.error(
                "evolution request timed out",
                extra={"extra_fields": safe_log_context(**log_ctx, timeout=self._timeout)},
            )
            raise UpstreamError(
                f"Evolution API timeout in {operation}", operation=operation, timeout=True
            ) from e
        except requests.RequestException as e:
            logger.error(
                "evolution request failed",
                extra={"extra_fields": safe_log_context(**log_ctx, error_type=type(e).__name__)},
            )
            raise UpstreamError(
                f"Evolution API unreachable in {operation}: {e}", operation=operation
            ) from e

        if response.status_code >= 400:
            message = _error_message(response)
            logger.error(
                "evolution api error",
                extra={
                    "extra_fields": safe_log_context(
                        **log_ctx, upstream_status=response.status_code, error=message
                    )
                },
            )
            raise UpstreamError(
                f"Evolution API error: {message}",
                upstream_status=response.status_code,
                operation=operation,
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return {"raw": response.text}

    # Instances

    def create_instance(self, instance: str, config: dict[str, Any] | None = None) -> Any:
        body = {"instanceName": instance, **(config or {})}
        return self._request("POST", "/instance/create", "instance.create", json=body)

    def connect_instance(self, instance: str) -> Any:
        return self._request("POST", f"/instance/connect/{instance}", "instance.connect")

    def disconnect_instance(self, instance: str) -> Any:
        return self._request("POST", f"/instance/disconnect/{instance}", "instance.disconnect")

    def delete_instance(self, instance: str) -> Any:
        return self._request("DELETE", f"/instance/delete/{instance}", "instance.delete")

    def instance_info(self, instance: str) -> Any:
        return self._request("GET", f"/instance/info/{instance}", "instance.info")

    def instance_status(self, instance: str) -> Any:
        return self._request("GET", f"/instance/status/{instance}", "instance.status")

    def instance_qrcode(self, instance: str) -> Any:
        return self._request("GET", f"/instance/qrcode/{instance}", "instance.qrcode")

    def set_instance_config(self, instance: str, config: dict[str, Any]) -> Any:
        return self._request("PUT", f"/instance/config/{instance}", "instance.setConfig", json=config)

    def get_instance_config(self, instance: str) -> Any:
        return self._request("GET", f"/instance/config/{instance}", "instance.getConfig")

    # Messages

    def _send(self, kind: str, instance: str, to: str, body: dict[str, Any]) -> Any:
        logger.info(
            "sending outbound message",
            extra={
                "extra_fields": safe_log_context(
                    instance=instance, kind=kind, to_hash=hash_identifier(to)
                )
            },
        )
        payload = {"number": to, **{k: v for k, v in body.items() if v is not None}}
        return self._request("POST", f"/message/{kind}/{instance}", f"message.{kind}", json=payload)

    def send_text(self, instance: str, *, to: str, text: str) -> Any:
        return self._send("sendText", instance, to, {"text": text})

    def send_image(self, instance: str, *, to: str, image_url: str, caption: str | None = None) -> Any:
        return self._send("sendImage", instance, to, {"image": image_url, "caption": caption})

    def send_document(
        self,
        instance: str,
        *,
        to: str,
        document_url: str,
        file_name: str,
        caption: str | None = None,
    ) -> Any:
        return self._send(
            "sendDocument",
            instance,
            to,
            {"document": document_url, "fileName": file_name, "caption": caption},
        )

    def send_audio(self, instance: str, *, to: str, audio_url: str) -> Any:
        return self._send("sendAudio", instance, to, {"audio": audio_url})

    def send_video(self, instance: str, *, to: str, video_url: str, caption: str | None = None) -> Any:
        return self._send("sendVideo", instance, to, {"video": video_url, "caption": caption})

    def send_location(
        self,
        instance: str,
        *,
        to: str,
        latitude: float,
        longitude: float,
        name: str | None = None,
        address: str | None = None,
    ) -> Any:
        return self._send(
            "sendLocation",
            instance,
            to,
            {"latitude": latitude, "longitude": longitude, "name": name, "address": address},
        )

    def send_contact(self, instance: str, *, to: str, contact_number: str, contact_name: str) -> Any:
        return self._send(
            "sendContact",
            instance,
            to,
            {"contact": {"number": contact_number, "name": contact_name}},
        )

    def send_buttons(self, instance: str, *, to: str, title: str, body: str, buttons: list[str]) -> Any:
        return self._send(
            "sendButtons", instance, to, {"title": title, "body": body, "buttons": buttons}
        )

    def find_messages(
        self, instance: str, *, number: str, limit: int = DEFAULT_PAGE_SIZE, cursor: str | None = None
    ) -> Any:
        return self._request(
            "GET",
            f"/message/findAll/{instance}",
            "message.findAll",
            params={"number": number, "limit": limit, "cursor": cursor},
        )

    def find_message(self, instance: str, message_id: str) -> Any:
        return self._request("GET", f"/message/findOne/{instance}/{message_id}", "message.findOne")

    # Chats and contacts

    def find_chats(self, instance: str, *, limit: int = DEFAULT_PAGE_SIZE, cursor: str | None = None) -> Any:
        return self._request(
            "GET", f"/chat/findAll/{instance}", "chat.findAll", params={"limit": limit, "cursor": cursor}
        )

    def find_contacts(self, instance: str, *, limit: int = DEFAULT_PAGE_SIZE, cursor: str | None = None) -> Any:
        return self._request(
            "GET",
            f"/contact/findAll/{instance}",
            "contact.findAll",
            params={"limit": limit, "cursor": cursor},
        )

    # Webhooks

    def set_webhook(self, instance: str, url: str, events: list[str] | None = None) -> Any:
        body = {"url": url, "events": list(events or DEFAULT_WEBHOOK_EVENTS)}
        return self._request("POST", f"/webhook/set/{instance}", "webhook.set", json=body)

    def find_webhook(self, instance: str) -> Any:
        return self._request("GET", f"/webhook/find/{instance}", "webhook.find")

    def health_check(self) -> Any:
        return self._request("GET", "/health", "health")
