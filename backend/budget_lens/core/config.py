from __future__ import annotations

from functools import lru_cache

from pydantic import AnyHttpUrl, Field, RedisDsn, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from budget_lens.schemas import DEFAULT_PERIOD


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: str = Field(default="local", alias="ENVIRONMENT")
    project_name: str = Field(default="Budget Lens", alias="PROJECT_NAME")
    version: str = Field(default="0.1.0")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    sentry_dsn: SecretStr | None = Field(default=None, alias="SENTRY_DSN")
    cors_origins: list[str] = Field(default=["http://localhost:3000"], alias="CORS_ORIGINS")

    billing_api_url: AnyHttpUrl = Field(
        default="http://localhost:8080",
        alias="BILLING_API_URL",
        description="Base URL of the billing service that owns team and key budget records.",
    )
    billing_api_token: SecretStr | None = Field(default=None, alias="BILLING_API_TOKEN")
    billing_api_timeout_seconds: float = Field(
        default=10.0,
        alias="BILLING_API_TIMEOUT_SECONDS",
        gt=0,
        le=120,
    )

    budget_alert_threshold: float = Field(
        default=80.0,
        alias="BUDGET_ALERT_THRESHOLD",
        ge=0,
        le=1000,
        description="Usage percentage above which an entity is flagged for attention.",
    )
    budget_default_period: str = Field(default=DEFAULT_PERIOD, alias="BUDGET_DEFAULT_PERIOD")
    budget_view_max_age_seconds: int = Field(
        default=30,
        alias="BUDGET_VIEW_MAX_AGE_SECONDS",
        ge=0,
        le=3600,
    )

    worker_broker_url: RedisDsn = Field(
        default="redis://localhost:6379/0",
        alias="WORKER_BROKER_URL",
    )
    worker_result_backend: RedisDsn = Field(
        default="redis://localhost:6379/1",
        alias="WORKER_RESULT_BACKEND",
    )
    alerts_sweep_minutes: int = Field(
        default=15,
        alias="ALERTS_SWEEP_MINUTES",
        ge=1,
        le=59,
    )
    alerts_debounce_minutes: int = Field(
        default=60,
        alias="ALERTS_DEBOUNCE_MINUTES",
        ge=5,
        le=360,
    )

    @field_validator("budget_default_period")
    @classmethod
    def validate_default_period(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            msg = "BUDGET_DEFAULT_PERIOD must not be blank."
            raise ValueError(msg)
        return normalized


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]


settings = get_settings()
