"""Configuration management for SleepTracker."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SleepTrackerSettings(BaseSettings):
    """Runtime configuration sourced from environment variables and optional .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    chroma_persist_path: Path = Field(
        default=Path("./storage/chroma"), validation_alias="CHROMA_PERSIST_PATH"
    )
    collection_name: str = Field(default="sleep_nights", validation_alias="SLEEPTRACKER_COLLECTION")
    log_level: str = Field(default="INFO", validation_alias="SLEEPTRACKER_LOG_LEVEL")
    display_timezone: str | None = Field(default=None, validation_alias="SLEEPTRACKER_TIMEZONE")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "SLEEPTRACKER_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("collection_name")
    @classmethod
    def _validate_collection_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("SLEEPTRACKER_COLLECTION must not be empty")
        return normalized

    @field_validator("display_timezone", mode="before")
    @classmethod
    def _validate_display_timezone(cls, value):
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        try:
            ZoneInfo(str(value).strip())
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"SLEEPTRACKER_TIMEZONE is not a known time zone: {value}") from exc
        return str(value).strip()

    def display_zone(self) -> ZoneInfo | None:
        """Return the zone used to render timestamps, or None for local time."""

        if self.display_timezone is None:
            return None
        return ZoneInfo(self.display_timezone)


@lru_cache(maxsize=1)
def get_settings() -> SleepTrackerSettings:
    """Return cached settings instance."""

    settings = SleepTrackerSettings()
    settings.chroma_persist_path = settings.chroma_persist_path.expanduser().resolve()
    return settings


__all__ = ["SleepTrackerSettings", "get_settings"]
