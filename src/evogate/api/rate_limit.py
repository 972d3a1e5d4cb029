"""Rate-limit dependencies, one per traffic class.

general and webhook key on the caller IP; message sends key on
tenant + IP so one tenant cannot exhaust another's budget.
"""

from __future__ import annotations

from fastapi import Depends, Request

from evogate.domain.errors import RateLimitError
from evogate.domain.rate_governor import BudgetClass, RateGovernor
from evogate.observability.logging import get_logger
from evogate.observability.redaction import safe_log_context

from .auth import CurrentClient, get_current_client
from .deps import client_ip, get_governor

logger = get_logger(__name__)

_MESSAGES = {
    BudgetClass.GENERAL: "Too many requests, try again later",
    BudgetClass.WEBHOOK: "Too many webhooks, try again later",
    BudgetClass.MESSAGE: "Message send limit exceeded, try again later",
}


def _admit(governor: RateGovernor, key: str, budget_class: BudgetClass, request: Request) -> None:
    decision = governor.consume(key, budget_class)
    if decision.allowed:
        return
    logger.warning(
        "request rejected by rate limit",
        extra={
            "extra_fields": safe_log_context(
                budget_class=budget_class.value,
                path=request.url.path,
                retry_after=decision.retry_after_seconds,
            )
        },
    )
    raise RateLimitError(decision.retry_after_seconds, _MESSAGES[budget_class])


def general_rate_limit(request: Request, governor: RateGovernor = Depends(get_governor)) -> None:
    _admit(governor, client_ip(request), BudgetClass.GENERAL, request)


def webhook_rate_limit(request: Request, governor: RateGovernor = Depends(get_governor)) -> None:
    _admit(governor, client_ip(request), BudgetClass.WEBHOOK, request)


def message_rate_limit(
    request: Request,
    client: CurrentClient = Depends(get_current_client),
    governor: RateGovernor = Depends(get_governor),
) -> None:
    _admit(governor, f"{client.client_id}:{client_ip(request)}", BudgetClass.MESSAGE, request)
