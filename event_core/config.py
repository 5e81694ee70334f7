"""Engine settings read from ``EVENT_CORE_*`` environment variables."""
from __future__ import annotations

from datetime import timedelta
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CoreSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="EVENT_CORE_", extra="ignore")

    # Subtracted from "now" before automatic start/complete checks to absorb cron jitter.
    processing_buffer_minutes: int = Field(2, ge=0, le=60)
    # Organizers may go live this long before the scheduled start.
    organizer_early_start_minutes: int = Field(30, ge=0, le=24 * 60)
    no_show_grace_minutes: int = Field(15, ge=0, le=24 * 60)
    # Half-width of the 24h and 1h reminder windows.
    reminder_tolerance_minutes: int = Field(5, ge=1, le=60)
    # Half-width of the "starting now" reminder window.
    starting_reminder_tolerance_minutes: int = Field(2, ge=1, le=60)
    sweep_interval_minutes: int = Field(1, ge=1, le=60)
    enforce_min_participants: bool = False

    database_url: str = "sqlite:///event_core.db"
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"log_level must be a logging level name, got {v}")
        return level

    @property
    def processing_buffer(self) -> timedelta:
        return timedelta(minutes=self.processing_buffer_minutes)

    @property
    def organizer_early_start(self) -> timedelta:
        return timedelta(minutes=self.organizer_early_start_minutes)


@lru_cache
def get_settings() -> CoreSettings:
    return CoreSettings()
