"""Event sinks - where normalized webhook events are stored and forwarded.

Backends selectable via SINK_BACKEND env var:
- inline (default): keeps events in process memory (dev/tests)
- http: POSTs each event as JSON to SINK_URL
- log: writes each event to the structured log only
"""

from __future__ import annotations

import os
import threading
from collections import deque
from typing import Protocol

import requests

from evogate.observability.context import get_correlation_id
from evogate.observability.logging import get_logger
from evogate.observability.redaction import safe_log_context

from .contracts import SinkEvent

logger = get_logger(__name__)

# Connection state reported by the provider once pairing completes
_OPEN_STATE = "open"

_DEFAULT_MAX_EVENTS = 1000


class SinkDeliveryError(Exception):
    """Raised when a sink cannot accept an event."""

    pass


class EventSink(Protocol):
    """Protocol for sink backends."""

    def deliver(self, event: SinkEvent) -> None:
        """Persist and/or forward one event. Raises on failure."""
        ...


class InMemorySink:
    """Sink that keeps events in memory.

    Tracks, per instance, the last reported connection state and the
    pending pairing QR. A new qr.update supersedes the previous artifact;
    reaching the "open" state clears it.

    Only the newest ``max_events`` events are kept (SINK_MAX_EVENTS).
    """

    def __init__(self, max_events: int | None = None) -> None:
        if max_events is None:
            max_events = int(os.environ.get("SINK_MAX_EVENTS", _DEFAULT_MAX_EVENTS))
        if max_events < 1:
            raise ValueError("max_events must be positive")
        self._events: deque[SinkEvent] = deque(maxlen=max_events)
        self._connection_state: dict[str, str] = {}
        self._pending_qr: dict[str, SinkEvent] = {}
        self._lock = threading.Lock()

    def deliver(self, event: SinkEvent) -> None:
        with self._lock:
            self._events.append(event)
            if event.event_type == "qr.update":
                self._pending_qr[event.instance] = event
            elif event.event_type == "connection.update":
                state = event.payload.get("state")
                if state:
                    self._connection_state[event.instance] = str(state)
                if state == _OPEN_STATE:
                    self._pending_qr.pop(event.instance, None)

    @property
    def events(self) -> list[SinkEvent]:
        with self._lock:
            return list(self._events)

    def events_for(self, instance: str) -> list[SinkEvent]:
        with self._lock:
            return [e for e in self._events if e.instance == instance]

    def connection_state(self, instance: str) -> str | None:
        with self._lock:
            return self._connection_state.get(instance)

    def pending_qr(self, instance: str) -> SinkEvent | None:
        with self._lock:
            return self._pending_qr.get(instance)

    def clear(self) -> None:
        """Forget everything (useful for testing)."""
        with self._lock:
            self._events.clear()
            self._connection_state.clear()
            self._pending_qr.clear()


class HttpForwardSink:
    """Sink that forwards each event to a downstream HTTP endpoint."""

    def __init__(
        self,
        url: str | None = None,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self._url = url or os.environ.get("SINK_URL", "")
        if not self._url:
            raise RuntimeError("Missing sink config: SINK_URL")
        self._timeout = timeout if timeout is not None else float(os.environ.get("SINK_TIMEOUT", "10"))
        self._session = session or requests.Session()

    def deliver(self, event: SinkEvent) -> None:
        headers = {
            "Content-Type": "application/json",
            "X-Correlation-Id": get_correlation_id(),
            "X-Event-Type": event.event_type,
        }
        try:
            response = self._session.post(
                self._url,
                json=event.to_dict(),
                headers=headers,
                timeout=self._timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(
                "sink forward failed",
                extra={
                    "extra_fields": safe_log_context(
                        event_type=event.event_type,
                        instance=event.instance,
                        error_type=type(e).__name__,
                    )
                },
            )
            raise SinkDeliveryError(f"forward to sink failed: {e}") from e


class LoggingSink:
    """Sink that only records the event in the structured log."""

    def deliver(self, event: SinkEvent) -> None:
        logger.info(
            "event delivered",
            extra={
                "extra_fields": safe_log_context(
                    event_type=event.event_type,
                    instance=event.instance,
                    message_id=event.key.id if event.key else None,
                    kind=event.message.kind.value if event.message else None,
                )
            },
        )


def create_sink(backend: str | None = None) -> EventSink:
    """Build the sink selected by ``backend`` or SINK_BACKEND.

    Raises:
        ValueError: If the backend name is unknown.
    """
    backend = backend or os.environ.get("SINK_BACKEND", "inline")
    if backend == "inline":
        return InMemorySink()
    if backend == "http":
        return HttpForwardSink()
    if backend == "log":
        return LoggingSink()
    raise ValueError(f"Unknown SINK_BACKEND: {backend}")
