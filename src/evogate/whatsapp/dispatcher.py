"""Webhook dispatcher - routes validated Evolution envelopes to per-event handlers.

Every handler is independent. A failure inside one is logged with the
instance, event and underlying error, and surfaced as a single
WebhookHandlingError for the request; the dispatcher itself holds no
state that a failed request could corrupt.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable

from evogate.observability.logging import get_logger
from evogate.observability.redaction import hash_identifier, safe_log_context
from evogate.sinks.client import EventSink
from evogate.sinks.contracts import SinkEvent

from .evolution_adapter import message_type, normalize_message, parse_envelope
from .models import EventType, MessageKey, WebhookEnvelope

logger = get_logger(__name__)

# Events forwarded as kind-tagged updates without interpretation
_PASSTHROUGH_EVENTS = (
    EventType.PRESENCE_UPDATE,
    EventType.GROUPS_UPSERT,
    EventType.GROUPS_UPDATE,
    EventType.CONTACTS_UPSERT,
    EventType.CONTACTS_UPDATE,
)


@dataclass(frozen=True)
class DispatchResult:
    """Outcome of one acknowledged envelope."""

    event_type: str
    instance: str
    delivered: bool
    response_time_ms: int


class WebhookHandlingError(Exception):
    """A handler failed. The event still counts as received."""

    def __init__(self, envelope: WebhookEnvelope, cause: Exception) -> None:
        super().__init__(f"failed to handle {envelope.event} for {envelope.instance}: {cause}")
        self.event_type = envelope.event
        self.instance = envelope.instance
        self.cause = cause


class WebhookDispatcher:
    """Validate, classify and hand provider events to a sink.

    Usage:
        dispatcher = WebhookDispatcher(InMemorySink())
        result = dispatcher.receive(body)   # raises InvalidPayloadError on bad shape
    """

    def __init__(
        self,
        sink: EventSink,
        *,
        strict_events: bool = True,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._sink = sink
        self._strict_events = strict_events
        self._clock = clock
        self._handlers: dict[EventType, Callable[[WebhookEnvelope], bool]] = {
            EventType.MESSAGES_UPSERT: self._handle_message_upsert,
            EventType.MESSAGES_UPDATE: self._handle_message_update,
            EventType.CONNECTION_UPDATE: self._handle_connection_update,
            EventType.QR_UPDATE: self._handle_qr_update,
        }
        for event_type in _PASSTHROUGH_EVENTS:
            self._handlers[event_type] = self._handle_passthrough

    @property
    def sink(self) -> EventSink:
        return self._sink

    def receive(self, payload: Any) -> DispatchResult:
        """Validate a raw webhook body, then dispatch it.

        Raises:
            InvalidPayloadError: Before any handler runs, if the envelope is invalid.
            WebhookHandlingError: If the handler for the event failed.
        """
        started = self._clock()
        envelope = parse_envelope(payload, strict_events=self._strict_events)
        return self.dispatch(envelope, started=started)

    def dispatch(self, envelope: WebhookEnvelope, *, started: float | None = None) -> DispatchResult:
        """Run the handler for ``envelope.event``.

        Events without a handler are logged and acknowledged as no-ops.
        """
        if started is None:
            started = self._clock()

        log_ctx = safe_log_context(event=envelope.event, instance=envelope.instance)
        logger.info("webhook received", extra={"extra_fields": log_ctx})

        handler = self._handler_for(envelope.event)
        delivered = False
        if handler is None:
            logger.info("webhook event not handled", extra={"extra_fields": log_ctx})
        else:
            try:
                delivered = handler(envelope)
            except Exception as e:
                logger.exception(
                    "webhook handler failed",
                    extra={
                        "extra_fields": safe_log_context(
                            **log_ctx, error_type=type(e).__name__, error=str(e)
                        )
                    },
                )
                raise WebhookHandlingError(envelope, e) from e

        elapsed_ms = int((self._clock() - started) * 1000)
        logger.info(
            "webhook processed",
            extra={
                "extra_fields": safe_log_context(
                    **log_ctx, delivered=delivered, response_time_ms=elapsed_ms
                )
            },
        )
        return DispatchResult(
            event_type=envelope.event,
            instance=envelope.instance,
            delivered=delivered,
            response_time_ms=elapsed_ms,
        )

    def _handler_for(self, event: str) -> Callable[[WebhookEnvelope], bool] | None:
        try:
            return self._handlers.get(EventType(event))
        except ValueError:
            return None

    def _handle_message_upsert(self, envelope: WebhookEnvelope) -> bool:
        data = envelope.data
        key = MessageKey.from_payload(data.get("key"))

        # Echo of a message this instance sent itself
        if key.from_me:
            logger.debug(
                "own message echo ignored",
                extra={"extra_fields": safe_log_context(instance=envelope.instance, message_id=key.id)},
            )
            return False

        raw_message = data.get("message")
        normalized = normalize_message(raw_message)

        logger.info(
            "incoming message",
            extra={
                "extra_fields": safe_log_context(
                    instance=envelope.instance,
                    message_id=key.id,
                    from_hash=hash_identifier(key.remote_jid) if key.remote_jid else None,
                    message_type=message_type(raw_message),
                    kind=normalized.kind.value,
                )
            },
        )

        self._sink.deliver(
            SinkEvent(
                event_type=envelope.event,
                instance=envelope.instance,
                key=key,
                message=normalized,
                payload={
                    "pushName": data.get("pushName"),
                    "messageTimestamp": data.get("messageTimestamp"),
                },
            )
        )
        return True

    def _handle_message_update(self, envelope: WebhookEnvelope) -> bool:
        data = envelope.data
        key = MessageKey.from_payload(data.get("key"))
        if not key.id:
            logger.warning(
                "message update without key id ignored",
                extra={"extra_fields": safe_log_context(instance=envelope.instance)},
            )
            return False

        update = data.get("update")
        status = update.get("status") if isinstance(update, dict) else data.get("status")

        logger.info(
            "message status update",
            extra={
                "extra_fields": safe_log_context(
                    instance=envelope.instance, message_id=key.id, status=status
                )
            },
        )

        # Delivered even without a prior upsert for the same key
        self._sink.deliver(
            SinkEvent(
                event_type=envelope.event,
                instance=envelope.instance,
                key=key,
                payload={"status": status},
            )
        )
        return True

    def _handle_connection_update(self, envelope: WebhookEnvelope) -> bool:
        data = envelope.data
        state = data.get("state") or data.get("status")

        logger.info(
            "connection state update",
            extra={"extra_fields": safe_log_context(instance=envelope.instance, state=state)},
        )

        self._sink.deliver(
            SinkEvent(
                event_type=envelope.event,
                instance=envelope.instance,
                payload={
                    "state": state,
                    "statusReason": data.get("statusReason"),
                    "lastDisconnect": data.get("lastDisconnect"),
                },
            )
        )
        return True

    def _handle_qr_update(self, envelope: WebhookEnvelope) -> bool:
        data = envelope.data
        qrcode = data.get("qrcode")

        logger.info(
            "pairing qr update",
            extra={
                "extra_fields": safe_log_context(
                    instance=envelope.instance, qr_present=bool(qrcode)
                )
            },
        )

        # Supersedes any pending artifact for the instance on the sink side
        self._sink.deliver(
            SinkEvent(
                event_type=envelope.event,
                instance=envelope.instance,
                payload={"qrcode": qrcode, "pairingCode": data.get("pairingCode")},
            )
        )
        return True

    def _handle_passthrough(self, envelope: WebhookEnvelope) -> bool:
        self._sink.deliver(
            SinkEvent(
                event_type=envelope.event,
                instance=envelope.instance,
                payload={"kind": envelope.event, "data": envelope.data},
            )
        )
        return True
