"""Diabetes-risk prediction: BRFSS-style feature vector built from a health profile."""

import logging
from typing import Any, Optional

from healthsync.schemas.backend import CholesterolLevel, DiabetesPredictionResponse, HealthProfile
from healthsync.services.backend import BackendClient

logger = logging.getLogger(__name__)

DEFAULT_HEIGHT_CM = 170.0
DEFAULT_WEIGHT_KG = 70.0
DEFAULT_AGE = 30
DEFAULT_RATING = 3
DEFAULT_EDUCATION = 4
DEFAULT_INCOME = 4
MAX_AGE_CATEGORY = 13


def compute_bmi(height_cm: Optional[float], weight_kg: Optional[float]) -> float:
    """weight / height^2 with height in metres."""
    height_m = (height_cm if height_cm is not None else DEFAULT_HEIGHT_CM) / 100
    weight = weight_kg if weight_kg is not None else DEFAULT_WEIGHT_KG
    return weight / (height_m * height_m)


def age_category(age: Optional[int]) -> int:
    """Five-year age band, clamped to 1..13."""
    years = age if age is not None else DEFAULT_AGE
    return min(MAX_AGE_CATEGORY, max(1, years // 5))


def rating_to_days(rating: Optional[int]) -> int:
    """Map a 1-5 rating onto 0-30 'bad days in the last month'."""
    value = rating if rating is not None else DEFAULT_RATING
    return int((value - 1) * 7.5)


def _flag(value: Optional[bool]) -> int:
    return 1 if value else 0


def build_features(profile: HealthProfile, physical_activity: Optional[float] = None) -> dict[str, Any]:
    """
    Build the prediction request body.

    Args:
        profile: The user's health questionnaire; missing answers take defaults.
        physical_activity: Recent exercise minutes; any positive value counts as active.
    """
    return {
        "high_bp": _flag(profile.high_bp),
        "high_chol": 1 if profile.cholesterol_level == CholesterolLevel.HIGH else 0,
        "chol_check": 0 if profile.cholesterol_level == CholesterolLevel.NA else 1,
        "bmi": compute_bmi(profile.height, profile.weight),
        "smoker": _flag(profile.smoking),
        "stroke": 0,
        "heart_disease": _flag(profile.heart_disease),
        "physical_activity": 1 if (physical_activity or 0) > 0 else 0,
        "fruits": _flag(profile.eat_fruit_per_day),
        "veggies": _flag(profile.eat_vegetable_per_day),
        "heavy_alcohol": _flag(profile.alcohol),
        "health_insurance": 1,
        "no_doctor_cost": 0,
        "general_health": profile.general_health if profile.general_health is not None else DEFAULT_RATING,
        "mental_health": rating_to_days(profile.mental_health),
        "physical_health": rating_to_days(profile.physical_health),
        "difficulty_walking": _flag(profile.difficulty_walking),
        "gender": 1 if (profile.gender or "").lower() == "male" else 0,
        "age": age_category(profile.age),
        "education": profile.education if profile.education is not None else DEFAULT_EDUCATION,
        "income": profile.income if profile.income is not None else DEFAULT_INCOME,
    }


class PredictionService:
    """Posts a health profile's features to the backend's risk model."""

    def __init__(self, client: BackendClient):
        self.client = client

    async def predict(
        self,
        profile: HealthProfile,
        physical_activity: Optional[float] = None,
    ) -> DiabetesPredictionResponse:
        features = build_features(profile, physical_activity)
        logger.info(f"Requesting diabetes risk prediction (bmi={features['bmi']:.2f}, age={features['age']})")
        return await self.client.predict_diabetes(features)
