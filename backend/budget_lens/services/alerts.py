from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Sequence

import redis

from budget_lens.core import telemetry
from budget_lens.core.config import settings
from budget_lens.models.enums import AlertSeverity, EntityKind
from budget_lens.schemas import BudgetEntity, BudgetView
from budget_lens.services.billing_client import BillingClient, BudgetFetchError
from budget_lens.services.view_cache import resolve_view
from budget_lens.utils.money import format_currency

logger = logging.getLogger(__name__)

_DEBOUNCE_PREFIX = "budgets:alert:"


class AlertType:
    OVER_BUDGET = "over_budget"
    NEAR_BUDGET = "near_budget"


@dataclass(slots=True, frozen=True)
class AlertCandidate:
    alert_type: str
    severity: AlertSeverity
    kind: EntityKind
    entity_id: str
    message: str
    metadata: dict[str, str]

    @property
    def debounce_key(self) -> str:
        return f"{_DEBOUNCE_PREFIX}{self.alert_type}:{self.kind.value}:{self.entity_id}"


def _label(entity: BudgetEntity) -> str:
    noun = "Team" if entity.kind == EntityKind.TEAM else "API key"
    return f"{noun} {entity.name}"


def _candidate_for(entity: BudgetEntity, alert_threshold: float) -> AlertCandidate | None:
    spend = format_currency(entity.current_spend)
    cap = format_currency(entity.max_budget)
    metadata = {
        "current_spend": str(entity.current_spend),
        "max_budget": str(entity.max_budget),
        "usage_percent": f"{entity.usage_percent:.1f}",
        "period": entity.period,
    }

    if entity.is_exceeded:
        return AlertCandidate(
            alert_type=AlertType.OVER_BUDGET,
            severity=AlertSeverity.CRITICAL,
            kind=entity.kind,
            entity_id=entity.id,
            message=f"{_label(entity)} has spent {spend} against its {entity.period} budget of {cap}.",
            metadata=metadata,
        )

    if entity.should_alert:
        return AlertCandidate(
            alert_type=AlertType.NEAR_BUDGET,
            severity=AlertSeverity.WARNING,
            kind=entity.kind,
            entity_id=entity.id,
            message=(
                f"{_label(entity)} is at {entity.usage_percent:.1f}% of its {entity.period} budget "
                f"({spend} of {cap}), above the {alert_threshold:g}% alert threshold."
            ),
            metadata={**metadata, "alert_threshold": f"{alert_threshold:g}"},
        )

    return None


def build_alert_candidates(view: BudgetView) -> list[AlertCandidate]:
    """One candidate per entity needing attention, most urgent first."""
    candidates = (_candidate_for(entity, view.alert_threshold) for entity in view.ranked_entities)
    return [candidate for candidate in candidates if candidate is not None]


def _acquire_debounce(client: redis.Redis | None, candidate: AlertCandidate) -> bool:
    if client is None:
        return True
    ttl = settings.alerts_debounce_minutes * 60
    try:
        acquired = client.set(
            candidate.debounce_key,
            datetime.now(timezone.utc).isoformat(),
            nx=True,
            ex=ttl,
        )
    except redis.RedisError as exc:
        logger.warning("Unable to debounce alert %s: %s", candidate.debounce_key, exc)
        return True
    return bool(acquired)


def emit_alerts(
    candidates: Iterable[AlertCandidate],
    client: redis.Redis | None = None,
) -> list[AlertCandidate]:
    emitted: list[AlertCandidate] = []
    for candidate in candidates:
        if not _acquire_debounce(client, candidate):
            logger.debug("Alert %s already sent within debounce window", candidate.debounce_key)
            continue
        level = logging.WARNING if candidate.severity == AlertSeverity.CRITICAL else logging.INFO
        logger.log(level, "[%s] %s", candidate.severity.value.upper(), candidate.message)
        emitted.append(candidate)
    return emitted


async def _fetch_view() -> BudgetView | None:
    async with BillingClient.from_settings() as billing:
        snapshot = await billing.fetch_snapshot()
    result = resolve_view(
        snapshot,
        alert_threshold=settings.budget_alert_threshold,
        default_period=settings.budget_default_period,
    )
    return result.view


def evaluate_budget_alerts(client: redis.Redis | None = None) -> Sequence[AlertCandidate]:
    try:
        view = asyncio.run(_fetch_view())
    except BudgetFetchError as exc:
        logger.warning("Skipping budget alert sweep: %s", exc)
        telemetry.capture_exception(exc, {"status_code": exc.status_code})
        return []

    if view is None:
        logger.info("No budgets configured; nothing to evaluate")
        return []

    candidates = build_alert_candidates(view)
    emitted = emit_alerts(candidates, client)
    logger.info(
        "Budget alert sweep: %d exceeded, %d alerting, %d emitted",
        view.summary.exceeded_count,
        view.summary.alerting_count,
        len(emitted),
    )
    return emitted
