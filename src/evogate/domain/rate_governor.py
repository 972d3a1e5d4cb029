"""Fixed-window rate governor with per-key block penalty.

Each traffic class owns a RateBudget (points per window, block duration).
A key that tries to spend past its budget is blocked for block_seconds,
regardless of when its window would otherwise reset. Window expiry is
evaluated lazily on the next consume() for the key; nothing ticks.
"""

from __future__ import annotations

import math
import os
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from evogate.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_KEYS = 10_000


class BudgetClass(str, Enum):
    """Traffic classes, each governed independently."""

    GENERAL = "general"
    WEBHOOK = "webhook"
    MESSAGE = "message"


@dataclass(frozen=True)
class RateBudget:
    """Points per window plus the penalty applied once a key overdraws."""

    points: int
    window_seconds: int
    block_seconds: int = 0

    def __post_init__(self) -> None:
        if self.points <= 0:
            raise ValueError(f"points must be > 0, got {self.points}")
        if self.window_seconds <= 0:
            raise ValueError(f"window_seconds must be > 0, got {self.window_seconds}")
        if self.block_seconds < 0:
            raise ValueError(f"block_seconds must be >= 0, got {self.block_seconds}")


DEFAULT_BUDGETS: dict[BudgetClass, RateBudget] = {
    BudgetClass.GENERAL: RateBudget(points=100, window_seconds=60, block_seconds=15 * 60),
    BudgetClass.WEBHOOK: RateBudget(points=1000, window_seconds=60, block_seconds=5 * 60),
    BudgetClass.MESSAGE: RateBudget(points=50, window_seconds=60, block_seconds=10 * 60),
}


@dataclass
class ConsumptionRecord:
    """Mutable per-key counter. Lives only in process memory."""

    remaining_points: int
    window_reset_at: float
    blocked_until: float | None = None


@dataclass(frozen=True)
class Admitted:
    remaining_points: int

    allowed = True


@dataclass(frozen=True)
class Rejected:
    retry_after_seconds: int

    allowed = False


Decision = Admitted | Rejected


def _retry_after(seconds: float) -> int:
    """Whole seconds, rounded up, never below 1."""
    return max(1, math.ceil(seconds))


def budgets_from_env() -> dict[BudgetClass, RateBudget]:
    """Load budgets, letting RATE_LIMIT_<CLASS>_{POINTS,WINDOW,BLOCK} override defaults.

    Raises:
        ValueError: If an override is not an integer or is out of range.
    """
    budgets = {}
    for budget_class, default in DEFAULT_BUDGETS.items():
        prefix = f"RATE_LIMIT_{budget_class.name}_"
        budgets[budget_class] = RateBudget(
            points=int(os.environ.get(prefix + "POINTS", default.points)),
            window_seconds=int(os.environ.get(prefix + "WINDOW", default.window_seconds)),
            block_seconds=int(os.environ.get(prefix + "BLOCK", default.block_seconds)),
        )
    return budgets


class RateGovernor:
    """Admit or reject requests per (traffic class, key) in O(1).

    Records are held in an LRU bounded by ``max_keys``; idle records
    (window elapsed, not blocked) are also swept lazily.

    Usage:
        governor = RateGovernor()
        decision = governor.consume("10.0.0.1", BudgetClass.GENERAL)
        if not decision.allowed:
            ...  # decision.retry_after_seconds
    """

    def __init__(
        self,
        budgets: dict[BudgetClass, RateBudget] | None = None,
        *,
        max_keys: int = DEFAULT_MAX_KEYS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_keys <= 0:
            raise ValueError(f"max_keys must be > 0, got {max_keys}")
        self._budgets = dict(budgets if budgets is not None else DEFAULT_BUDGETS)
        for budget in self._budgets.values():
            if not isinstance(budget, RateBudget):
                raise ValueError(f"invalid budget: {budget!r}")
        self._max_keys = max_keys
        self._clock = clock
        self._records: OrderedDict[tuple[BudgetClass, str], ConsumptionRecord] = OrderedDict()
        self._lock = threading.Lock()
        self._sweep_interval = min(b.window_seconds for b in self._budgets.values())
        self._next_sweep_at = clock() + self._sweep_interval

    @classmethod
    def from_env(cls) -> RateGovernor:
        max_keys = int(os.environ.get("RATE_LIMIT_MAX_KEYS", DEFAULT_MAX_KEYS))
        return cls(budgets_from_env(), max_keys=max_keys)

    def budget(self, budget_class: BudgetClass) -> RateBudget:
        try:
            return self._budgets[budget_class]
        except KeyError:
            raise ValueError(f"no budget configured for {budget_class!r}") from None

    def consume(self, key: str, budget_class: BudgetClass) -> Decision:
        """Spend one point for ``key`` in ``budget_class``.

        Rejection is a normal outcome, never an exception.
        """
        budget = self.budget(budget_class)
        record_key = (budget_class, key)

        with self._lock:
            now = self._clock()
            if now >= self._next_sweep_at:
                self._sweep_locked(now)

            record = self._records.get(record_key)
            if record is None:
                record = ConsumptionRecord(
                    remaining_points=budget.points,
                    window_reset_at=now + budget.window_seconds,
                )
                self._records[record_key] = record
                self._evict_locked()
            else:
                self._records.move_to_end(record_key)

            if record.blocked_until is not None:
                if now < record.blocked_until:
                    return Rejected(_retry_after(record.blocked_until - now))
                # Block served: start over with a fresh window
                record.blocked_until = None
                record.remaining_points = budget.points
                record.window_reset_at = now + budget.window_seconds

            if now >= record.window_reset_at:
                record.remaining_points = budget.points
                record.window_reset_at = now + budget.window_seconds

            if record.remaining_points <= 0:
                if budget.block_seconds > 0:
                    record.blocked_until = now + budget.block_seconds
                    retry_after = _retry_after(budget.block_seconds)
                else:
                    retry_after = _retry_after(record.window_reset_at - now)
                logger.warning(
                    "rate limit exceeded",
                    extra={
                        "extra_fields": {
                            "budget_class": budget_class.value,
                            "retry_after": retry_after,
                        }
                    },
                )
                return Rejected(retry_after)

            record.remaining_points -= 1
            return Admitted(record.remaining_points)

    def sweep(self) -> int:
        """Drop idle records. Returns how many were removed."""
        with self._lock:
            return self._sweep_locked(self._clock())

    def _sweep_locked(self, now: float) -> int:
        idle = [
            k
            for k, rec in self._records.items()
            if now >= rec.window_reset_at
            and (rec.blocked_until is None or now >= rec.blocked_until)
        ]
        for k in idle:
            del self._records[k]
        self._next_sweep_at = now + self._sweep_interval
        return len(idle)

    def _evict_locked(self) -> None:
        while len(self._records) > self._max_keys:
            self._records.popitem(last=False)

    def __len__(self) -> int:
        return len(self._records)

    def stats(self) -> dict[str, dict[str, int]]:
        """Configured budgets per class, for diagnostics."""
        with self._lock:
            tracked = [c for c, _ in self._records]
        return {
            budget_class.value: {
                "points": budget.points,
                "windowSeconds": budget.window_seconds,
                "blockSeconds": budget.block_seconds,
                "trackedKeys": tracked.count(budget_class),
            }
            for budget_class, budget in self._budgets.items()
        }
