from fastapi import APIRouter
from pydantic import BaseModel

from healthsync.core.config import get_settings

router = APIRouter(prefix="/api", tags=["config"])


class HealthResponse(BaseModel):
    status: str
    version: str


class ConfigResponse(BaseModel):
    db_path: str
    backend_url: str
    tz: str
    sync_window_days: int
    upload_delay_seconds: float
    sync_interval_hours: float
    sync_check_minutes: int
    health_data_available: bool
    observe_changes: bool
    debug: bool


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="ok", version="0.1.0")


@router.get("/config", response_model=ConfigResponse)
async def get_config() -> ConfigResponse:
    """Get current configuration."""
    settings = get_settings()
    return ConfigResponse(
        db_path=settings.db_path,
        backend_url=settings.backend_url,
        tz=settings.tz,
        sync_window_days=settings.sync_window_days,
        upload_delay_seconds=settings.upload_delay_seconds,
        sync_interval_hours=settings.sync_interval_hours,
        sync_check_minutes=settings.sync_check_minutes,
        health_data_available=settings.health_data_available,
        observe_changes=settings.observe_changes,
        debug=settings.debug,
    )
