"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_key: str
    supabase_user_id: str | None = None
    weeks_table: str = "weeks"
    cache_db_path: str = ".cache/elevation_loom.sqlite3"
    cache_ttl_seconds: int = 300
    cache_max_entries: int | None = None
    conflict_tolerance_ms: int = 1000
    remote_timeout_seconds: float = 10.0
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
