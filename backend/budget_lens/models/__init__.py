from .enums import (
    AlertSeverity,
    EntityKind,
    UsageStatus,
    ViewState,
)

__all__ = [
    "AlertSeverity",
    "EntityKind",
    "UsageStatus",
    "ViewState",
]
