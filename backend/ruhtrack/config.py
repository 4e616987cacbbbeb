from __future__ import annotations

import os
from pathlib import Path
from zoneinfo import ZoneInfo

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)
    """Application runtime configuration."""

    app_name: str = "Ruh Time Tracker"
    host: str = os.getenv("TT_HOST", "127.0.0.1")
    port: int = int(os.getenv("TT_PORT", "8080"))

    data_path: Path = Path(os.getenv("TT_DATA_PATH", "./data.json"))
    export_dir: Path = Path(os.getenv("TT_EXPORT_DIR", "./exports"))

    timezone: str = os.getenv("TT_TIMEZONE", "UTC")
    autosave_interval_seconds: float = Field(
        default=float(os.getenv("TT_AUTOSAVE_INTERVAL", "10")), gt=0
    )

    log_level: str = os.getenv("TT_LOG_LEVEL", "INFO")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        return value.strip().upper() or "INFO"

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


settings = Settings()
