from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Database
    db_path: str = "/data/healthsync.db"

    # Backend connection
    backend_url: str = "http://localhost:8000"
    backend_timeout: float = 30.0

    # Sync behaviour
    tz: str = "Europe/London"
    sync_window_days: int = 30
    upload_delay_seconds: float = 0.1
    sync_interval_hours: float = 6.0
    sync_check_minutes: int = 15

    # Local health store
    health_data_available: bool = True
    health_permission_granted: bool = True
    observe_changes: bool = True

    debug: bool = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
