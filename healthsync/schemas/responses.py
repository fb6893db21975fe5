"""Pydantic request/response models for API endpoints."""

from datetime import datetime, date
from pydantic import BaseModel, Field

from healthsync.schemas.backend import HealthProfile, User
from healthsync.services.activity_types import ActivityType


class SyncStartedResponse(BaseModel):
    message: str
    window_start: str
    window_end: str


class SyncStateResponse(BaseModel):
    """Live engine state."""
    in_progress: bool
    progress_fraction: float
    phase: str
    current_day: date | None
    last_sync_timestamp: datetime | None
    should_sync: bool
    is_authorized: bool
    availability_status: str | None


class SyncLogResponse(BaseModel):
    sync_type: str
    window_start: date
    window_end: date
    started_at: datetime
    completed_at: datetime | None
    status: str
    details: dict | None
    error_message: str | None

    class Config:
        from_attributes = True


class SyncStatusResponse(BaseModel):
    state: SyncStateResponse
    last_cycle: SyncLogResponse | None


class AuthorizeResponse(BaseModel):
    authorized: bool
    availability_status: str | None


class TodaySummaryResponse(BaseModel):
    steps: int
    calories: float
    exercise_minutes: float
    distance_km: float
    as_of: datetime | None


class ChartPointResponse(BaseModel):
    date: date
    value: float


class SampleIn(BaseModel):
    """One quantity sample pushed into the local health store."""
    metric_type: ActivityType
    value: float = Field(ge=0)
    unit: str | None = None
    start: datetime
    end: datetime | None = None
    source: str | None = None


class SampleIngestRequest(BaseModel):
    samples: list[SampleIn]


class SampleIngestResponse(BaseModel):
    stored: int


class HealthProfileUpdate(HealthProfile):
    """Health questionnaire submitted through the API; ratings must be 1-5."""
    general_health: int | None = Field(default=None, ge=1, le=5)
    mental_health: int | None = Field(default=None, ge=1, le=5)
    physical_health: int | None = Field(default=None, ge=1, le=5)

    def to_profile(self) -> HealthProfile:
        return HealthProfile.model_validate(self.model_dump())


class LoginRequest(BaseModel):
    email: str
    password: str


class SignupRequest(BaseModel):
    name: str
    email: str
    password: str


class UpdateProfileRequest(BaseModel):
    name: str


class AuthStatusResponse(BaseModel):
    is_authenticated: bool
    user: User | None


class PredictionRequest(BaseModel):
    """Profile to score; falls back to the stored profile, activity to today's exercise minutes."""
    health_profile: HealthProfileUpdate | None = None
    physical_activity: float | None = None
