from __future__ import annotations

import logging
from typing import Any, Final

import httpx

from budget_lens.core.config import Settings, settings
from budget_lens.schemas import BudgetSnapshot

logger = logging.getLogger(__name__)

BUDGET_SUMMARY_PATH: Final[str] = "/api/admin/analytics/budget"


class BudgetFetchError(Exception):
    """Raised when the billing service cannot supply a budget snapshot."""

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        detail = f"{message} ({status_code})" if status_code is not None else message
        super().__init__(detail)


def _records(payload: dict[str, Any], field: str) -> list[dict[str, Any]]:
    records = payload.get(field)
    if not isinstance(records, list):
        return []
    return [record if isinstance(record, dict) else {} for record in records]


def parse_snapshot(payload: Any) -> BudgetSnapshot:
    """Build a snapshot from the billing service's JSON body.

    A missing body, or one without either list, is an empty snapshot rather
    than an error.
    """
    if not isinstance(payload, dict):
        return BudgetSnapshot()
    return BudgetSnapshot(
        team_budgets=_records(payload, "team_budgets"),
        key_budgets=_records(payload, "key_budgets"),
    )


class BillingClient:
    """Read-only client for the billing service's budget summary endpoint."""

    def __init__(self, http: httpx.AsyncClient):
        self._http = http

    @classmethod
    def from_settings(cls, config: Settings = settings) -> "BillingClient":
        headers = {"Accept": "application/json"}
        if config.billing_api_token:
            headers["Authorization"] = f"Bearer {config.billing_api_token.get_secret_value()}"
        http = httpx.AsyncClient(
            base_url=str(config.billing_api_url).rstrip("/"),
            headers=headers,
            timeout=config.billing_api_timeout_seconds,
        )
        return cls(http)

    async def __aenter__(self) -> "BillingClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def fetch_snapshot(self) -> BudgetSnapshot:
        try:
            response = await self._http.get(BUDGET_SUMMARY_PATH)
        except httpx.HTTPError as exc:
            logger.warning("Budget summary request failed: %s", exc)
            raise BudgetFetchError(f"Billing service unreachable: {exc}") from exc

        if response.is_error:
            raise BudgetFetchError("Billing service rejected budget summary request", response.status_code)

        if not response.content.strip():
            return BudgetSnapshot()

        try:
            payload = response.json()
        except ValueError as exc:
            raise BudgetFetchError("Billing service returned a non-JSON body", response.status_code) from exc

        snapshot = parse_snapshot(payload)
        logger.debug(
            "Fetched budget snapshot with %d team and %d key records",
            len(snapshot.team_budgets),
            len(snapshot.key_budgets),
        )
        return snapshot

    async def ping(self) -> bool:
        try:
            response = await self._http.get(BUDGET_SUMMARY_PATH)
        except httpx.HTTPError:
            return False
        return not response.is_server_error
