from __future__ import annotations

from fastapi import Request

from budget_lens.services.billing_client import BillingClient
from budget_lens.services.view_cache import BudgetViewCache


def get_view_cache(request: Request) -> BudgetViewCache:
    return request.app.state.view_cache


def get_billing_client(request: Request) -> BillingClient:
    return request.app.state.billing_client
