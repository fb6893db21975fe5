"""Diabetes-risk prediction endpoint."""

import logging
from fastapi import APIRouter, Depends, HTTPException

from healthsync.core.runtime import get_auth_service, get_engine, get_prediction_service
from healthsync.schemas.backend import DiabetesPredictionResponse
from healthsync.schemas.responses import PredictionRequest
from healthsync.services.auth import AuthService
from healthsync.services.backend import BackendError
from healthsync.services.prediction import PredictionService
from healthsync.services.sync import ActivitySyncEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["prediction"])


@router.post("/predict-diabetes", response_model=DiabetesPredictionResponse)
async def predict_diabetes(
    body: PredictionRequest,
    prediction: PredictionService = Depends(get_prediction_service),
    auth: AuthService = Depends(get_auth_service),
    engine: ActivitySyncEngine = Depends(get_engine),
):
    """
    Score a health profile.

    Uses the request's profile if given, otherwise the stored user's. Physical
    activity defaults to today's exercise minutes.
    """
    profile = body.health_profile
    if profile is None:
        user = auth.session.user
        profile = user.health_profile if user else None
    if profile is None:
        raise HTTPException(status_code=422, detail="No health profile provided or saved")

    activity = body.physical_activity
    if activity is None:
        activity = engine.today.exercise_minutes

    try:
        return await prediction.predict(profile, activity)
    except BackendError as e:
        logger.error(f"Prediction failed: {e}")
        raise HTTPException(status_code=502, detail=f"Failed to get prediction: {e.message}")
