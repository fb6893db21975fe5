"""Pydantic models for the remote backend's auth, profile and prediction payloads."""

from enum import Enum
from pydantic import BaseModel, ConfigDict, Field


class CholesterolLevel(str, Enum):
    HIGH = "High"
    LOW = "Low"
    NORMAL = "Normal"
    NA = "N/A"


class StressLevel(str, Enum):
    LOW = "Low"
    MODERATE = "Moderate"
    HIGH = "High"


class HealthProfile(BaseModel):
    """
    Self-reported health questionnaire. Height in cm, weight in kg.

    Ratings are 1-5 but are not range-checked here so that backend payloads
    always decode; HealthProfileUpdate checks them on input.
    """

    gender: str | None = None
    age: int | None = None
    height: float | None = None
    weight: float | None = None
    family_history_diabetes: bool | None = None
    high_bp: bool | None = None
    cholesterol_level: CholesterolLevel | None = None
    smoking: bool | None = None
    heart_disease: bool | None = None
    diet_healthy: bool | None = None
    eat_fruit_per_day: bool | None = None
    eat_vegetable_per_day: bool | None = None
    alcohol: bool | None = None
    general_health: int | None = None
    mental_health: int | None = None
    physical_health: int | None = None
    difficulty_walking: bool | None = None
    stress_level: StressLevel | None = None
    sleep_hours: float | None = None
    education: int | None = None
    income: int | None = None

    @property
    def is_complete(self) -> bool:
        """Every questionnaire field answered (education and income are optional)."""
        optional = {"education", "income"}
        return all(
            getattr(self, name) is not None
            for name in type(self).model_fields
            if name not in optional
        )


class User(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str | None = Field(default=None, alias="_id")
    name: str
    email: str
    health_profile: HealthProfile | None = Field(default=None, alias="healthProfile")


class AuthResponse(BaseModel):
    token: str
    user: User


class DiabetesPredictionResponse(BaseModel):
    prediction: str
    probability: float
    risk_level: str
    risk_score: int
    risk_factors: list[str] = []
    recommendations: list[str] = []
    timestamp: str
