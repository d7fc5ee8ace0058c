from __future__ import annotations

import json
from datetime import time
from functools import lru_cache
from typing import List

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, DotEnvSettingsSource, EnvSettingsSource, SettingsConfigDict


class _FallbackEnvSettingsSource(EnvSettingsSource):
    """Allow ALLOW_ORIGINS to be comma-separated instead of strict JSON."""

    def decode_complex_value(self, field_name, field, value):  # type: ignore[override]
        try:
            return super().decode_complex_value(field_name, field, value)
        except json.JSONDecodeError:
            if field_name == "allow_origins":
                return value
            raise


class _FallbackDotEnvSettingsSource(DotEnvSettingsSource):
    """Allow ALLOW_ORIGINS to be comma-separated instead of strict JSON."""

    def decode_complex_value(self, field_name, field, value):  # type: ignore[override]
        try:
            return super().decode_complex_value(field_name, field, value)
        except json.JSONDecodeError:
            if field_name == "allow_origins":
                return value
            raise


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    project_name: str = "Attendance Sync API"
    project_version: str = "1.0.0"
    environment: str = Field(
        default="development",
        description="Deployment environment name",
        validation_alias=AliasChoices("ENV", "ENVIRONMENT"),
    )
    log_level: str = Field(default="INFO", description="Logging level")

    # Database
    database_url: str = Field(
        default="postgresql+psycopg2://postgres@localhost:5432/attendance",
        description="SQLAlchemy database URL",
    )
    db_pool_size: int = Field(default=5, description="Base DB connection pool size")
    db_max_overflow: int = Field(default=10, description="Additional DB connections beyond pool size")
    db_pool_timeout: int = Field(default=30, description="Seconds to wait for a DB connection")
    db_pool_recycle: int = Field(default=1800, description="Recycle DB connections after N seconds")

    # Admin tokens
    jwt_secret: str = Field(default="change_me", description="JWT signing secret")
    algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    admin_token_expire_minutes: int = Field(default=480, description="Admin token expiry in minutes")

    # CORS
    allow_origins: List[str] = Field(
        default_factory=lambda: [
            "http://localhost",
            "http://localhost:5173",
        ]
    )

    # Session reconciliation
    max_session_hours: int = Field(
        default=16,
        description="Longest interval an open session may stay open and still be closed by an OUT",
    )
    sync_max_attempts: int = Field(
        default=3,
        description="Attempts for a sync batch before a session-number conflict is surfaced",
    )
    max_clock_skew_minutes: int = Field(
        default=10,
        description="How far in the future a device timestamp may be before the batch is rejected",
    )

    # Per-user shift defaults
    default_on_duty_time: time = Field(default=time(7, 30), description="On-duty time given to new users")
    default_off_duty_time: time = Field(default=time(17, 0), description="Off-duty time given to new users")
    late_fallback_on_duty_time: time = Field(
        default=time(9, 0),
        description="On-duty time used for lateness when a user has no time settings row",
    )
    late_fallback_off_duty_time: time = Field(
        default=time(18, 0),
        description="Off-duty time used for early-leave when a user has no time settings row",
    )
    time_settings_sync_enabled: bool = Field(default=True, description="Run the time settings reconciler")
    time_settings_sync_interval_seconds: int = Field(
        default=3600,
        description="Seconds between time settings reconciliation passes",
    )

    @field_validator("allow_origins", mode="before")
    @classmethod
    def parse_allow_origins(cls, value: str | List[str]) -> List[str]:
        if isinstance(value, list):
            return value
        if isinstance(value, str) and value.strip():
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return [
            "http://localhost",
            "http://localhost:5173",
        ]

    @field_validator("sync_max_attempts", "max_session_hours")
    @classmethod
    def at_least_one(cls, value: int) -> int:
        return max(1, value)

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in ("production", "prod")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            _FallbackEnvSettingsSource(settings_cls),
            _FallbackDotEnvSettingsSource(settings_cls),
            file_secret_settings,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
