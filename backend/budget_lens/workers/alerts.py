from __future__ import annotations

import redis
from celery.utils.log import get_task_logger

from budget_lens.celery_app import celery_app
from budget_lens.core.config import settings
from budget_lens.services import alerts as alert_service

logger = get_task_logger(__name__)


def _debounce_client() -> redis.Redis:
    return redis.Redis.from_url(str(settings.worker_broker_url), decode_responses=True)


@celery_app.task(name="alerts.evaluate_budgets")
def evaluate_budget_alerts_task() -> int:
    logger.info("Starting budget alert sweep")
    emitted = alert_service.evaluate_budget_alerts(_debounce_client())
    logger.info("Budget alert sweep finished with %d alerts", len(emitted))
    return len(emitted)
