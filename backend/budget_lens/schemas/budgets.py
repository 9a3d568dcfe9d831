from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Final

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from budget_lens.models.enums import EntityKind, UsageStatus, ViewState

DEFAULT_PERIOD: Final[str] = "monthly"


class BudgetEntity(BaseModel):
    """One team or API key under budget tracking.

    The derived fields (``usage_percent``, ``is_exceeded``, ``should_alert``,
    ``status``) stay at their defaults until the entity has been evaluated.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    kind: EntityKind
    name: str
    max_budget: Decimal = Field(default=Decimal("0"), ge=0)
    current_spend: Decimal = Field(default=Decimal("0"), ge=0)
    period: str = Field(default=DEFAULT_PERIOD, description="Billing cycle label, display only.")
    reset_at: datetime | None = None
    is_active: bool = True
    usage_count: int | None = None
    backend_should_alert: bool | None = Field(
        default=None,
        description="Alert flag reported by the billing service. Advisory only.",
    )

    usage_percent: float = 0.0
    is_exceeded: bool = False
    should_alert: bool = False
    status: UsageStatus = UsageStatus.HEALTHY

    @computed_field  # type: ignore[prop-decorator]
    @property
    def remaining(self) -> Decimal:
        return self.max_budget - self.current_spend


class BudgetSummary(BaseModel):
    total_budget: Decimal
    total_spent: Decimal
    total_remaining: Decimal
    total_entities: int
    team_budget: Decimal
    team_spent: Decimal
    key_budget: Decimal
    key_spent: Decimal
    exceeded_count: int
    alerting_count: int

    @computed_field  # type: ignore[prop-decorator]
    @property
    def attention_count(self) -> int:
        return self.exceeded_count + self.alerting_count


class DistributionEntry(BaseModel):
    label: EntityKind
    value: Decimal


class BudgetDistributions(BaseModel):
    budget: list[DistributionEntry] = Field(default_factory=list)
    spending: list[DistributionEntry] = Field(default_factory=list)


class PeriodUsage(BaseModel):
    period: str
    count: int
    budget: Decimal
    spent: Decimal


class BudgetView(BaseModel):
    summary: BudgetSummary
    ranked_entities: list[BudgetEntity]
    distributions: BudgetDistributions
    usage_by_period: list[PeriodUsage] = Field(default_factory=list)
    alert_threshold: float
    computed_at: datetime


class BudgetSnapshot(BaseModel):
    """Raw records as returned by the billing service, in its native shape."""

    team_budgets: list[Any] = Field(default_factory=list)
    key_budgets: list[Any] = Field(default_factory=list)

    @field_validator("team_budgets", "key_budgets", mode="before")
    @classmethod
    def coerce_missing_records(cls, value: Any) -> Any:
        # Records are normalized one by one later; only the outer sequence is checked here.
        if isinstance(value, (list, tuple)):
            return list(value)
        return []

    @property
    def is_empty(self) -> bool:
        return not self.team_budgets and not self.key_budgets


class BudgetViewResult(BaseModel):
    state: ViewState
    view: BudgetView | None = None
    error: str | None = None
    generation: int = 0


class ComputeBudgetViewRequest(BudgetSnapshot):
    alert_threshold: float | None = Field(
        default=None,
        ge=0,
        le=1000,
        description="Overrides the configured alert threshold for this computation.",
    )
