"""Single-flight cache for computed budget views.

Each view key has at most one fetch in flight. Concurrent requests for the
same key join that fetch instead of starting their own. A forced refresh
always starts a new fetch and supersedes the one in flight: whatever the older
fetch produces is discarded, and everyone waiting on it receives the result of
the most recently initiated fetch.

The cache also tracks the view state for each key (loading, error, empty,
ready). Starting a fetch drops the previous result, so a stale summary is
never served next to a fresh failure.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Final

from budget_lens.core import telemetry
from budget_lens.models.enums import ViewState
from budget_lens.schemas import BudgetSnapshot, BudgetViewResult
from budget_lens.services import budget_view
from budget_lens.services.billing_client import BudgetFetchError

logger = logging.getLogger(__name__)

DEFAULT_VIEW_KEY: Final[str] = "budget-summary"

SnapshotLoader = Callable[[], Awaitable[BudgetSnapshot]]


@dataclass(slots=True)
class _Slot:
    generation: int = 0
    task: asyncio.Task[BudgetViewResult] | None = None
    result: BudgetViewResult | None = None
    resolved_at: float = 0.0


def resolve_view(
    snapshot: BudgetSnapshot,
    *,
    alert_threshold: float,
    default_period: str,
    generation: int = 0,
) -> BudgetViewResult:
    if snapshot.is_empty:
        return BudgetViewResult(state=ViewState.EMPTY, generation=generation)
    view = budget_view.compute_budget_view(
        snapshot.team_budgets,
        snapshot.key_budgets,
        alert_threshold=alert_threshold,
        default_period=default_period,
    )
    return BudgetViewResult(state=ViewState.READY, view=view, generation=generation)


class BudgetViewCache:
    def __init__(
        self,
        loader: SnapshotLoader,
        *,
        alert_threshold: float = budget_view.DEFAULT_ALERT_THRESHOLD,
        default_period: str = budget_view.DEFAULT_PERIOD,
        max_age_seconds: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._loader = loader
        self._alert_threshold = alert_threshold
        self._default_period = default_period
        self._max_age_seconds = max_age_seconds
        self._clock = clock
        self._slots: dict[str, _Slot] = {}
        self._superseded: set[asyncio.Task[BudgetViewResult]] = set()

    def peek(self, key: str = DEFAULT_VIEW_KEY) -> BudgetViewResult:
        """Current state for ``key`` without triggering a fetch."""
        slot = self._slots.get(key)
        if slot is None or slot.result is None:
            generation = slot.generation if slot else 0
            return BudgetViewResult(state=ViewState.LOADING, generation=generation)
        return slot.result

    def in_flight(self, key: str = DEFAULT_VIEW_KEY) -> bool:
        slot = self._slots.get(key)
        return slot is not None and slot.task is not None

    async def get(self, key: str = DEFAULT_VIEW_KEY, *, refresh: bool = False) -> BudgetViewResult:
        slot = self._slots.setdefault(key, _Slot())

        if not refresh:
            if slot.task is not None:
                logger.debug("Joining in-flight budget fetch for %s (generation %d)", key, slot.generation)
                return await self._await_latest(slot)
            if slot.result is not None and not self._is_stale(slot):
                return slot.result

        self._start(key, slot)
        return await self._await_latest(slot)

    def _is_stale(self, slot: _Slot) -> bool:
        return self._clock() - slot.resolved_at >= self._max_age_seconds

    def _start(self, key: str, slot: _Slot) -> None:
        slot.generation += 1
        slot.result = None
        if slot.task is not None:
            logger.info("Superseding budget fetch for %s with generation %d", key, slot.generation)
            # The slot drops its reference; keep the task alive until it finishes.
            self._superseded.add(slot.task)
            slot.task.add_done_callback(self._forget_superseded)
        slot.task = asyncio.create_task(self._run(key, slot, slot.generation))

    def _forget_superseded(self, task: asyncio.Task[BudgetViewResult]) -> None:
        self._superseded.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.debug("Superseded budget fetch ended with %r", task.exception())

    async def _await_latest(self, slot: _Slot) -> BudgetViewResult:
        while True:
            task = slot.task
            if task is None:
                if slot.result is None:  # pragma: no cover - a finished fetch always records a result
                    raise RuntimeError("budget fetch finished without a result")
                return slot.result
            generation = slot.generation
            result = await asyncio.shield(task)
            if slot.generation == generation:
                return result

    async def _run(self, key: str, slot: _Slot, generation: int) -> BudgetViewResult:
        try:
            snapshot = await self._loader()
            result = resolve_view(
                snapshot,
                alert_threshold=self._alert_threshold,
                default_period=self._default_period,
                generation=generation,
            )
        except BudgetFetchError as exc:
            logger.warning("Budget fetch for %s failed: %s", key, exc)
            telemetry.capture_exception(exc, {"view_key": key, "status_code": exc.status_code})
            result = BudgetViewResult(state=ViewState.ERROR, error=str(exc), generation=generation)
        except Exception:
            logger.exception("Budget view computation for %s failed", key)
            self._settle(
                slot,
                generation,
                BudgetViewResult(state=ViewState.ERROR, error="Budget view computation failed", generation=generation),
            )
            raise

        self._settle(slot, generation, result)
        return result

    def _settle(self, slot: _Slot, generation: int, result: BudgetViewResult) -> None:
        if slot.generation != generation:
            logger.debug("Discarding superseded budget fetch generation %d", generation)
            return
        slot.result = result
        slot.resolved_at = self._clock()
        slot.task = None
