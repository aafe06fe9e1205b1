from __future__ import annotations

from datetime import timedelta
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="SLOTENGINE_", env_file=".env", env_file_encoding="utf-8", extra="ignore")

    log_level: str = "INFO"
    default_timezone: str = "UTC"
    # Off by default: recurring windows are matched against UTC calendar days.
    apply_provider_timezone: bool = False
    pending_ttl_hours: float = 24
    max_window_days: int = 92
    ics_timeout_seconds: float = 10.0

    @property
    def pending_ttl(self) -> timedelta:
        return timedelta(hours=self.pending_ttl_hours)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
