from __future__ import annotations

import redis
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from budget_lens.api.deps import get_billing_client
from budget_lens.core.config import settings
from budget_lens.services.billing_client import BillingClient

router = APIRouter(tags=["health"])


def _check_worker() -> dict[str, str]:
    try:
        client = redis.Redis.from_url(
            str(settings.worker_broker_url),
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        client.ping()
        return {"status": "ok"}
    except redis.RedisError as exc:
        return {"status": "error", "detail": str(exc)}


async def _check_billing(billing: BillingClient) -> dict[str, str]:
    if await billing.ping():
        return {"status": "ok"}
    return {"status": "error", "detail": "Billing service unreachable"}


@router.get("/health", summary="Liveness probe")
def read_health() -> dict[str, str]:
    return {"status": "ok", "service": settings.project_name}


@router.get("/healthz", summary="Readiness probe")
async def read_healthz(billing: BillingClient = Depends(get_billing_client)) -> JSONResponse:
    components = {
        "billing": await _check_billing(billing),
        "worker": await run_in_threadpool(_check_worker),
    }
    overall_ok = all(component.get("status") == "ok" for component in components.values())
    status_code = status.HTTP_200_OK if overall_ok else status.HTTP_503_SERVICE_UNAVAILABLE

    payload = {
        "service": settings.project_name,
        "version": settings.version,
        "status": "ok" if overall_ok else "error",
        "components": components,
    }

    return JSONResponse(status_code=status_code, content=payload)
