from __future__ import annotations

from fastapi import APIRouter

from . import budgets, health

router = APIRouter()
router.include_router(health.router)
router.include_router(budgets.router)

__all__ = ["router", "budgets", "health"]
