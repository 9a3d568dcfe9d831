from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status

from budget_lens.api.deps import get_view_cache
from budget_lens.core import telemetry
from budget_lens.core.config import settings
from budget_lens.models.enums import ViewState
from budget_lens.schemas import BudgetViewResult, ComputeBudgetViewRequest
from budget_lens.services.view_cache import DEFAULT_VIEW_KEY, BudgetViewCache, resolve_view

router = APIRouter(prefix="/budgets", tags=["budgets"])


@router.get("/view", response_model=BudgetViewResult)
async def read_budget_view(
    response: Response,
    refresh: bool = Query(default=False, description="Start a new fetch even if a fresh view is cached."),
    cache: BudgetViewCache = Depends(get_view_cache),
) -> BudgetViewResult:
    telemetry.bind_view_context(DEFAULT_VIEW_KEY, refresh)
    result = await cache.get(DEFAULT_VIEW_KEY, refresh=refresh)
    if result.state == ViewState.ERROR:
        response.status_code = status.HTTP_502_BAD_GATEWAY
    return result


@router.get("/view/state", response_model=BudgetViewResult)
def peek_budget_view(cache: BudgetViewCache = Depends(get_view_cache)) -> BudgetViewResult:
    return cache.peek(DEFAULT_VIEW_KEY)


@router.post("/view", response_model=BudgetViewResult)
def compute_budget_view(payload: ComputeBudgetViewRequest) -> BudgetViewResult:
    threshold = payload.alert_threshold
    if threshold is None:
        threshold = settings.budget_alert_threshold
    return resolve_view(
        payload,
        alert_threshold=threshold,
        default_period=settings.budget_default_period,
    )
