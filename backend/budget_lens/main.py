from __future__ import annotations

import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import Response

from budget_lens.api.routes import router as api_router
from budget_lens.core import telemetry
from budget_lens.core.config import settings
from budget_lens.services.billing_client import BillingClient
from budget_lens.services.view_cache import BudgetViewCache


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    billing = BillingClient.from_settings(settings)
    app.state.billing_client = billing
    app.state.view_cache = BudgetViewCache(
        billing.fetch_snapshot,
        alert_threshold=settings.budget_alert_threshold,
        default_period=settings.budget_default_period,
        max_age_seconds=settings.budget_view_max_age_seconds,
    )
    try:
        yield
    finally:
        await billing.aclose()


def create_app() -> FastAPI:
    telemetry.setup_logging()
    telemetry.setup_sentry()

    app = FastAPI(
        title=settings.project_name,
        version=settings.version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_and_trace_requests(request: Request, call_next):  # type: ignore[override]
        start = time.perf_counter()
        telemetry.bind_request_context(request)
        response: Response = await call_next(request)
        duration = (time.perf_counter() - start) * 1000
        telemetry.log_request(request, response.status_code, duration)
        return response

    app.include_router(api_router)

    return app


app = create_app()
