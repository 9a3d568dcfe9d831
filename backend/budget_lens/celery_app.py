from __future__ import annotations

from celery import Celery
from celery.schedules import crontab

from budget_lens.core import telemetry
from budget_lens.core.config import settings

telemetry.setup_logging()
telemetry.setup_sentry()

celery_app = Celery(
    "budget_lens",
    broker=str(settings.worker_broker_url),
    backend=str(settings.worker_result_backend),
    include=["budget_lens.workers.alerts"],
)

celery_app.conf.update(
    timezone="UTC",
    enable_utc=True,
    task_default_queue="default",
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    worker_send_task_events=True,
)

celery_app.conf.beat_schedule = {
    "alerts-evaluate-budgets": {
        "task": "alerts.evaluate_budgets",
        "schedule": crontab(minute=f"*/{settings.alerts_sweep_minutes}"),
        "options": {"queue": "alerts"},
    },
}

__all__ = ("celery_app",)
