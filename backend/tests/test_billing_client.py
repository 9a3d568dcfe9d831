from __future__ import annotations

import httpx
import pytest

from budget_lens.core.config import Settings
from budget_lens.services.billing_client import (
    BUDGET_SUMMARY_PATH,
    BillingClient,
    BudgetFetchError,
    parse_snapshot,
)

pytestmark = pytest.mark.asyncio


def _billing(handler) -> BillingClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://billing.test")
    return BillingClient(http)


async def test_fetch_snapshot_returns_both_record_lists():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == BUDGET_SUMMARY_PATH
        return httpx.Response(
            200,
            json={
                "summary": {"total_budget": 300},
                "team_budgets": [{"id": "t1", "max_budget": 100}],
                "key_budgets": [{"id": "k1", "max_budget": 200}, "oops"],
            },
        )

    async with _billing(handler) as billing:
        snapshot = await billing.fetch_snapshot()

    assert snapshot.team_budgets == [{"id": "t1", "max_budget": 100}]
    assert snapshot.key_budgets == [{"id": "k1", "max_budget": 200}, {}]


@pytest.mark.parametrize("body", [b"", b"null", b"{}", b'{"team_budgets": null}'])
async def test_missing_payload_is_an_empty_snapshot(body):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=body, headers={"Content-Type": "application/json"})

    async with _billing(handler) as billing:
        snapshot = await billing.fetch_snapshot()

    assert snapshot.is_empty


async def test_error_status_raises_fetch_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": "Failed to fetch team budget data"})

    async with _billing(handler) as billing:
        with pytest.raises(BudgetFetchError) as excinfo:
            await billing.fetch_snapshot()

    assert excinfo.value.status_code == 500


async def test_transport_error_raises_fetch_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with _billing(handler) as billing:
        with pytest.raises(BudgetFetchError) as excinfo:
            await billing.fetch_snapshot()

    assert excinfo.value.status_code is None
    assert isinstance(excinfo.value.__cause__, httpx.ConnectError)


async def test_non_json_body_raises_fetch_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>maintenance</html>")

    async with _billing(handler) as billing:
        with pytest.raises(BudgetFetchError):
            await billing.fetch_snapshot()


async def test_ping_reports_server_errors():
    statuses = iter([204, 503])

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(next(statuses))

    async with _billing(handler) as billing:
        assert await billing.ping() is True
        assert await billing.ping() is False


async def test_from_settings_sends_bearer_token():
    config = Settings(BILLING_API_URL="http://billing.internal:9000", BILLING_API_TOKEN="s3cret")
    billing = BillingClient.from_settings(config)
    try:
        assert billing._http.headers["Authorization"] == "Bearer s3cret"
        assert str(billing._http.base_url).startswith("http://billing.internal:9000")
    finally:
        await billing.aclose()


async def test_parse_snapshot_ignores_non_list_fields():
    snapshot = parse_snapshot({"team_budgets": {"id": "t1"}, "key_budgets": [{"id": "k1"}]})
    assert snapshot.team_budgets == []
    assert snapshot.key_budgets == [{"id": "k1"}]
