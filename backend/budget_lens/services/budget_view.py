from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Final, Iterable

from budget_lens.models.enums import EntityKind, UsageStatus
from budget_lens.schemas import (
    DEFAULT_PERIOD,
    BudgetDistributions,
    BudgetEntity,
    BudgetSummary,
    BudgetView,
    DistributionEntry,
    PeriodUsage,
)
from budget_lens.utils.money import ZERO, to_amount

logger = logging.getLogger(__name__)

DEFAULT_ALERT_THRESHOLD: Final[float] = 80.0
ACTIVE_USAGE_PERCENT: Final[Decimal] = Decimal("50")
HUNDRED: Final[Decimal] = Decimal("100")

# Alternative field names used by the billing service, in lookup order.
_SPEND_FIELDS: Final = ("current_spend", "spend")
_PERIOD_FIELDS: Final = ("period", "budget_duration")
_RESET_FIELDS: Final = ("reset_at", "budget_reset_at")


def _first_present(record: Mapping[str, Any], fields: Iterable[str]) -> Any:
    for field in fields:
        value = record.get(field)
        if value is not None:
            return value
    return None


def _parse_timestamp(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None


def _parse_count(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        count = int(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return count if count >= 0 else None


def _parse_flag(value: Any, default: bool | None) -> bool | None:
    if isinstance(value, bool):
        return value
    return default


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _normalize_record(
    record: Any,
    kind: EntityKind,
    position: int,
    default_period: str,
) -> BudgetEntity:
    if not isinstance(record, Mapping):
        record = {}

    entity_id = _text(record.get("id")) or f"{kind.value}-{position}"
    period = _text(_first_present(record, _PERIOD_FIELDS))
    return BudgetEntity(
        id=entity_id,
        kind=kind,
        name=_text(record.get("name")) or entity_id,
        max_budget=to_amount(record.get("max_budget")),
        current_spend=to_amount(_first_present(record, _SPEND_FIELDS)),
        period=period or default_period,
        reset_at=_parse_timestamp(_first_present(record, _RESET_FIELDS)),
        is_active=bool(_parse_flag(record.get("is_active"), True)),
        usage_count=_parse_count(record.get("usage_count")),
        backend_should_alert=_parse_flag(record.get("should_alert"), None),
    )


def normalize_entities(
    team_budgets: Sequence[Any] | None,
    key_budgets: Sequence[Any] | None,
    default_period: str = DEFAULT_PERIOD,
) -> list[BudgetEntity]:
    """Map team and key budget records onto one ordered list of entities.

    Teams come first, then keys, each in source order. Nothing is dropped and
    nothing raises: missing or malformed fields fall back to defaults.
    """
    entities: list[BudgetEntity] = []
    for kind, records in ((EntityKind.TEAM, team_budgets), (EntityKind.KEY, key_budgets)):
        for position, record in enumerate(records or ()):
            entities.append(_normalize_record(record, kind, position, default_period))
    return entities


def _usage_status(percent: Decimal, is_exceeded: bool, should_alert: bool) -> UsageStatus:
    if is_exceeded:
        return UsageStatus.EXCEEDED
    if should_alert:
        return UsageStatus.NEAR_LIMIT
    if percent >= ACTIVE_USAGE_PERCENT:
        return UsageStatus.ACTIVE
    return UsageStatus.HEALTHY


def evaluate(entity: BudgetEntity, alert_threshold: float = DEFAULT_ALERT_THRESHOLD) -> BudgetEntity:
    """Return a copy of ``entity`` with its utilization fields filled in."""
    max_budget = entity.max_budget
    spend = entity.current_spend
    percent = spend / max_budget * HUNDRED if max_budget > 0 else ZERO

    is_exceeded = max_budget > 0 and spend >= max_budget
    should_alert = is_exceeded or percent > Decimal(str(alert_threshold))

    if entity.backend_should_alert is not None and entity.backend_should_alert != should_alert:
        logger.debug(
            "Billing service alert flag for %s %s (%s) disagrees with threshold evaluation (%s)",
            entity.kind.value,
            entity.id,
            entity.backend_should_alert,
            should_alert,
        )

    return entity.model_copy(
        update={
            "usage_percent": float(percent),
            "is_exceeded": is_exceeded,
            "should_alert": should_alert,
            "status": _usage_status(percent, is_exceeded, should_alert),
        }
    )


def evaluate_all(
    entities: Iterable[BudgetEntity],
    alert_threshold: float = DEFAULT_ALERT_THRESHOLD,
) -> list[BudgetEntity]:
    return [evaluate(entity, alert_threshold) for entity in entities]


def summarize(entities: Sequence[BudgetEntity]) -> BudgetSummary:
    budget_by_kind = {kind: ZERO for kind in EntityKind}
    spent_by_kind = {kind: ZERO for kind in EntityKind}
    exceeded = 0
    alerting = 0

    for entity in entities:
        budget_by_kind[entity.kind] += entity.max_budget
        spent_by_kind[entity.kind] += entity.current_spend
        if entity.is_exceeded:
            exceeded += 1
        elif entity.should_alert:
            alerting += 1

    total_budget = sum(budget_by_kind.values(), start=ZERO)
    total_spent = sum(spent_by_kind.values(), start=ZERO)
    return BudgetSummary(
        total_budget=total_budget,
        total_spent=total_spent,
        total_remaining=total_budget - total_spent,
        total_entities=len(entities),
        team_budget=budget_by_kind[EntityKind.TEAM],
        team_spent=spent_by_kind[EntityKind.TEAM],
        key_budget=budget_by_kind[EntityKind.KEY],
        key_spent=spent_by_kind[EntityKind.KEY],
        exceeded_count=exceeded,
        alerting_count=alerting,
    )


def _distribution(entities: Sequence[BudgetEntity], field: str) -> list[DistributionEntry]:
    totals: dict[EntityKind, Decimal] = {}
    for entity in entities:
        totals[entity.kind] = totals.get(entity.kind, ZERO) + getattr(entity, field)
    return [DistributionEntry(label=kind, value=value) for kind, value in totals.items() if value != 0]


def build_distributions(entities: Sequence[BudgetEntity]) -> BudgetDistributions:
    return BudgetDistributions(
        budget=_distribution(entities, "max_budget"),
        spending=_distribution(entities, "current_spend"),
    )


def rank_entities(entities: Iterable[BudgetEntity]) -> list[BudgetEntity]:
    # Ties keep their input order; sorted() is stable under reverse=True too.
    return sorted(entities, key=lambda entity: entity.usage_percent, reverse=True)


def usage_by_period(entities: Sequence[BudgetEntity]) -> list[PeriodUsage]:
    buckets: dict[str, dict[str, Any]] = {}
    for entity in entities:
        bucket = buckets.setdefault(entity.period, {"count": 0, "budget": ZERO, "spent": ZERO})
        bucket["count"] += 1
        bucket["budget"] += entity.max_budget
        bucket["spent"] += entity.current_spend
    return [PeriodUsage(period=period, **values) for period, values in buckets.items()]


def compute_budget_view(
    team_budgets: Sequence[Any] | None,
    key_budgets: Sequence[Any] | None,
    alert_threshold: float = DEFAULT_ALERT_THRESHOLD,
    default_period: str = DEFAULT_PERIOD,
) -> BudgetView:
    entities = evaluate_all(normalize_entities(team_budgets, key_budgets, default_period), alert_threshold)
    summary = summarize(entities)
    logger.debug(
        "Computed budget view over %d entities: %d exceeded, %d alerting",
        summary.total_entities,
        summary.exceeded_count,
        summary.alerting_count,
    )
    return BudgetView(
        summary=summary,
        ranked_entities=rank_entities(entities),
        distributions=build_distributions(entities),
        usage_by_period=usage_by_period(entities),
        alert_threshold=alert_threshold,
        computed_at=datetime.now(timezone.utc),
    )
