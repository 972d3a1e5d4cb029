"""FastAPI application factory.

Collaborators (rate governor, event sink, Evolution API client, instance
registry) are built from the environment unless injected, and held on
``app.state`` so routes reach them through dependencies.
"""

import os
import time

from fastapi import FastAPI, Request, Response

from evogate.domain.rate_governor import RateGovernor
from evogate.infra.instance_registry import InstanceRegistry
from evogate.observability.context import (
    CORRELATION_ID_HEADER,
    generate_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)
from evogate.observability.logging import get_logger
from evogate.observability.redaction import safe_log_context
from evogate.sinks.client import EventSink, create_sink
from evogate.whatsapp.dispatcher import WebhookDispatcher
from evogate.whatsapp.evolution_client import EvolutionClient

from .errors import register_exception_handlers, unhandled_exception_handler
from .routers import public
from .routes import instances, messages, webhook

logger = get_logger(__name__)


def create_app(
    governor: RateGovernor | None = None,
    sink: EventSink | None = None,
    evolution_client: EvolutionClient | None = None,
    registry: InstanceRegistry | None = None,
    strict_events: bool | None = None,
) -> FastAPI:
    """Create the gateway application.

    Args:
        governor: Rate governor. Defaults to budgets from RATE_LIMIT_* env vars.
        sink: Event sink. Defaults to the SINK_BACKEND selection.
        evolution_client: Provider client. Defaults to EVOLUTION_API_* env vars.
        registry: Instance ownership registry. Defaults to an empty one.
        strict_events: Reject non-whitelisted webhook events with 400.
            Defaults to True unless WEBHOOK_STRICT_EVENTS is "false".

    Returns:
        Configured FastAPI application.
    """
    if strict_events is None:
        strict_events = os.environ.get("WEBHOOK_STRICT_EVENTS", "true").lower() != "false"

    app = FastAPI(
        title="Evolution Gateway",
        docs_url=None,
        redoc_url=None,
    )

    app.state.governor = governor if governor is not None else RateGovernor.from_env()
    app.state.dispatcher = WebhookDispatcher(
        sink if sink is not None else create_sink(), strict_events=strict_events
    )
    app.state.evolution_client = (
        evolution_client if evolution_client is not None else EvolutionClient()
    )
    app.state.instance_registry = registry if registry is not None else InstanceRegistry()

    # Correlation ID middleware
    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next) -> Response:
        cid = request.headers.get(CORRELATION_ID_HEADER) or generate_correlation_id()
        token = set_correlation_id(cid)
        started = time.perf_counter()
        try:
            try:
                response = await call_next(request)
            except Exception as exc:
                # Rendered here so the 500 keeps the correlation context
                response = await unhandled_exception_handler(request, exc)
            response.headers[CORRELATION_ID_HEADER] = cid
            logger.info(
                "request completed",
                extra={
                    "extra_fields": safe_log_context(
                        method=request.method,
                        path=request.url.path,
                        status=response.status_code,
                        duration_ms=int((time.perf_counter() - started) * 1000),
                    )
                },
            )
            return response
        finally:
            reset_correlation_id(token)

    register_exception_handlers(app)

    app.include_router(public.router)
    app.include_router(webhook.router)
    app.include_router(instances.router)
    app.include_router(messages.router)

    return app
