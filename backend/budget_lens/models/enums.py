from __future__ import annotations

from enum import StrEnum


class EntityKind(StrEnum):
    TEAM = "team"
    KEY = "key"


class UsageStatus(StrEnum):
    HEALTHY = "healthy"
    ACTIVE = "active"
    NEAR_LIMIT = "near_limit"
    EXCEEDED = "exceeded"


class ViewState(StrEnum):
    LOADING = "loading"
    ERROR = "error"
    EMPTY = "empty"
    READY = "ready"


class AlertSeverity(StrEnum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"
