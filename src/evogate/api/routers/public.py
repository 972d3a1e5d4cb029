"""Public health routes (no authentication, general rate limit)."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from evogate.api.deps import get_evolution_client, get_governor
from evogate.api.rate_limit import general_rate_limit
from evogate.domain.errors import UpstreamError
from evogate.domain.rate_governor import RateGovernor
from evogate.observability.logging import get_logger
from evogate.observability.redaction import safe_log_context
from evogate.whatsapp.evolution_client import EvolutionClient

router = APIRouter(prefix="/health", tags=["health"], dependencies=[Depends(general_rate_limit)])

logger = get_logger(__name__)

_started_at = datetime.now(timezone.utc)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("")
def health() -> dict:
    """Health check endpoint."""
    return {"success": True, "status": "ok", "timestamp": _now()}


@router.get("/ping")
def ping() -> dict:
    return {"success": True, "message": "pong", "timestamp": _now()}


@router.get("/detailed")
def health_detailed(
    evolution: EvolutionClient = Depends(get_evolution_client),
    governor: RateGovernor = Depends(get_governor),
) -> JSONResponse:
    """Health including provider reachability.

    Returns 503 when the Evolution API cannot be reached or errors.
    """
    provider: dict = {"url": evolution.base_url}
    try:
        evolution.health_check()
        provider["status"] = "ok"
    except UpstreamError as e:
        logger.warning(
            "evolution api health check failed",
            extra={
                "extra_fields": safe_log_context(
                    upstream_status=e.upstream_status, status_code=e.status_code
                )
            },
        )
        provider["status"] = "unreachable"
        provider["error"] = e.message

    healthy = provider["status"] == "ok"
    uptime = (datetime.now(timezone.utc) - _started_at).total_seconds()
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "success": healthy,
            "status": "ok" if healthy else "degraded",
            "timestamp": _now(),
            "uptimeSeconds": int(uptime),
            "services": {"evolutionApi": provider},
            "rateLimits": governor.stats(),
        },
    )
