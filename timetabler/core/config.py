from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineConfig(BaseModel):
    """Tunable rules for one scheduling run."""
    model_config = ConfigDict(extra="forbid")

    max_consecutive_periods: int = Field(
        default=2, ge=1, le=6,
        description="Maximum back-to-back periods for one teacher+class pair on a day",
    )
    count_existing_hours: bool = Field(
        default=True,
        description="Charge entries kept from earlier runs against the weekly cap",
    )


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TIMETABLER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_url: str = "sqlite:///timetabler.db"
    environment: str = "development"
    log_level: Optional[str] = None
    max_consecutive_periods: int = Field(default=2, ge=1, le=6)
    count_existing_hours: bool = True

    @field_validator("environment")
    @classmethod
    def _normalize_environment(cls, v: str) -> str:
        v = (v or "development").strip().lower()
        if v not in {"development", "production", "test"}:
            raise ValueError("TIMETABLER_ENVIRONMENT must be 'development', 'production' or 'test'")
        return v

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip().upper()
        return v or None

    def engine_config(self) -> EngineConfig:
        return EngineConfig(
            max_consecutive_periods=self.max_consecutive_periods,
            count_existing_hours=self.count_existing_hours,
        )


settings = Settings()
