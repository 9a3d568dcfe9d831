from .budgets import (
    DEFAULT_PERIOD,
    BudgetDistributions,
    BudgetEntity,
    BudgetSnapshot,
    BudgetSummary,
    BudgetView,
    BudgetViewResult,
    ComputeBudgetViewRequest,
    DistributionEntry,
    PeriodUsage,
)

__all__ = [
    "DEFAULT_PERIOD",
    "BudgetDistributions",
    "BudgetEntity",
    "BudgetSnapshot",
    "BudgetSummary",
    "BudgetView",
    "BudgetViewResult",
    "ComputeBudgetViewRequest",
    "DistributionEntry",
    "PeriodUsage",
]
