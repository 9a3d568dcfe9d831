from __future__ import annotations

from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from budget_lens.main import app
from budget_lens.services.view_cache import BudgetViewCache


@pytest.fixture
def team_records() -> list[dict]:
    return [
        {"id": "team-core", "name": "Core Platform", "max_budget": 100, "current_spend": 50, "budget_duration": "monthly"},
        {"id": "team-research", "name": "Research", "max_budget": 200, "spend": 210, "budget_duration": "weekly"},
    ]


@pytest.fixture
def key_records() -> list[dict]:
    return [
        {"id": "key-batch", "name": "batch-jobs", "max_budget": 100, "current_spend": 85, "usage_count": 1200},
        {"id": "key-unlimited", "name": "internal", "max_budget": None, "current_spend": 50},
    ]


@pytest.fixture
def client() -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def install_cache(client):
    def _install(loader, **kwargs) -> BudgetViewCache:
        cache = BudgetViewCache(loader, **kwargs)
        client.app.state.view_cache = cache
        return cache

    return _install
