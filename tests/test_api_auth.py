"""Tests for auth, profile, sample-ingest and prediction endpoints."""

from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

from fastapi import FastAPI
from fastapi.testclient import TestClient

from healthsync.api import auth as auth_api
from healthsync.api import prediction as prediction_api
from healthsync.api import samples as samples_api
from healthsync.core.runtime import (
    get_auth_service,
    get_engine,
    get_health_store,
    get_prediction_service,
)
from healthsync.schemas.backend import (
    AuthResponse,
    DiabetesPredictionResponse,
    HealthProfile,
    User,
)
from healthsync.services.backend import AuthError, BackendError, NotAuthenticatedError
from healthsync.services.health_store import HealthDataUnavailableError, UnitConversionError
from healthsync.services.sync import TodaySummary

USER = User(id="u-1", name="Ada", email="ada@example.com")

PREDICTION = DiabetesPredictionResponse(
    prediction="No Diabetes",
    probability=0.2,
    risk_level="low",
    risk_score=20,
    timestamp="2025-01-30T12:00:00",
)


def _make_auth_service(user=USER):
    auth = MagicMock()
    auth.session.is_authenticated = user is not None
    auth.session.user = user
    for name in ("login", "signup", "logout", "get_profile", "update_profile", "save_health_profile"):
        setattr(auth, name, AsyncMock())
    return auth


def _make_test_app(auth=None, store=None, prediction=None, engine=None):
    app = FastAPI()
    app.include_router(auth_api.router)
    app.include_router(samples_api.router)
    app.include_router(prediction_api.router)
    app.dependency_overrides[get_auth_service] = lambda: auth or _make_auth_service()
    app.dependency_overrides[get_health_store] = lambda: store
    app.dependency_overrides[get_prediction_service] = lambda: prediction
    app.dependency_overrides[get_engine] = lambda: engine
    return app


class TestAuthEndpoints:

    def test_login_returns_token_and_user(self):
        auth = _make_auth_service(user=None)
        auth.login.return_value = AuthResponse(token="tok", user=USER)
        with TestClient(_make_test_app(auth=auth)) as client:
            resp = client.post("/api/auth/login", json={"email": "ada@example.com", "password": "pw"})

        assert resp.status_code == 200
        assert resp.json()["token"] == "tok"
        assert resp.json()["user"]["_id"] == "u-1"

    def test_login_failure_is_401_with_message(self):
        auth = _make_auth_service(user=None)
        auth.login.side_effect = AuthError("Invalid credentials", 401)
        with TestClient(_make_test_app(auth=auth)) as client:
            resp = client.post("/api/auth/login", json={"email": "ada@example.com", "password": "x"})

        assert resp.status_code == 401
        assert resp.json()["detail"] == "Invalid credentials"

    def test_signup_transport_failure_is_502(self):
        auth = _make_auth_service(user=None)
        auth.signup.side_effect = BackendError("POST /auth/signup failed: timeout")
        with TestClient(_make_test_app(auth=auth)) as client:
            resp = client.post(
                "/api/auth/signup",
                json={"name": "Ada", "email": "ada@example.com", "password": "pw"},
            )

        assert resp.status_code == 502

    def test_status(self):
        with TestClient(_make_test_app()) as client:
            resp = client.get("/api/auth/status")

        assert resp.json()["is_authenticated"] is True
        assert resp.json()["user"]["email"] == "ada@example.com"

    def test_logout(self):
        auth = _make_auth_service()
        with TestClient(_make_test_app(auth=auth)) as client:
            resp = client.post("/api/auth/logout")

        assert resp.status_code == 200
        auth.logout.assert_awaited_once()


class TestProfileEndpoints:

    def test_expired_session_is_401(self):
        auth = _make_auth_service()
        auth.get_profile.side_effect = NotAuthenticatedError("Session expired")
        with TestClient(_make_test_app(auth=auth)) as client:
            resp = client.get("/api/profile")

        assert resp.status_code == 401
        assert resp.json()["detail"] == "Session expired"

    def test_update_name(self):
        auth = _make_auth_service()
        auth.update_profile.return_value = USER.model_copy(update={"name": "Grace"})
        with TestClient(_make_test_app(auth=auth)) as client:
            resp = client.put("/api/profile", json={"name": "Grace"})

        assert resp.json()["name"] == "Grace"
        auth.update_profile.assert_awaited_once_with("Grace")

    def test_save_health_profile_validates_ratings(self):
        with TestClient(_make_test_app()) as client:
            resp = client.put("/api/profile/health", json={"general_health": 9})

        assert resp.status_code == 422

    def test_save_health_profile(self):
        auth = _make_auth_service()
        auth.save_health_profile.return_value = USER.model_copy(
            update={"health_profile": HealthProfile(age=42)}
        )
        with TestClient(_make_test_app(auth=auth)) as client:
            resp = client.put("/api/profile/health", json={"age": 42})

        assert resp.status_code == 200
        assert resp.json()["healthProfile"]["age"] == 42
        (profile,), _ = auth.save_health_profile.call_args
        assert type(profile) is HealthProfile
        assert profile.age == 42


class TestSampleIngest:

    def test_defaults_unit_to_store_unit(self):
        store = MagicMock()
        store.add_samples = AsyncMock(return_value=1)
        with TestClient(_make_test_app(store=store)) as client:
            resp = client.post("/api/samples", json={"samples": [
                {"metric_type": "distance", "value": 1.5, "start": "2025-01-30T08:00:00Z"},
            ]})

        assert resp.status_code == 200
        assert resp.json() == {"stored": 1}
        (samples,), _ = store.add_samples.call_args
        assert samples[0].unit == "km"

    def test_bad_unit_is_422(self):
        store = MagicMock()
        store.add_samples = AsyncMock(side_effect=UnitConversionError("Cannot convert km to count"))
        with TestClient(_make_test_app(store=store)) as client:
            resp = client.post("/api/samples", json={"samples": [
                {"metric_type": "step_count", "value": 10, "unit": "km", "start": "2025-01-30T08:00:00Z"},
            ]})

        assert resp.status_code == 422

    def test_negative_value_rejected(self):
        with TestClient(_make_test_app(store=MagicMock())) as client:
            resp = client.post("/api/samples", json={"samples": [
                {"metric_type": "step_count", "value": -1, "start": "2025-01-30T08:00:00Z"},
            ]})

        assert resp.status_code == 422

    def test_unavailable_store_is_503(self):
        store = MagicMock()
        store.add_samples = AsyncMock(side_effect=HealthDataUnavailableError("unavailable"))
        with TestClient(_make_test_app(store=store)) as client:
            resp = client.post("/api/samples", json={"samples": [
                {"metric_type": "step_count", "value": 10, "start": "2025-01-30T08:00:00Z"},
            ]})

        assert resp.status_code == 503


class TestPrediction:

    def _engine(self, exercise_minutes=0.0):
        engine = MagicMock()
        engine.today = TodaySummary(exercise_minutes=exercise_minutes, as_of=datetime(2025, 1, 30, 12))
        return engine

    def test_uses_saved_profile_and_today_activity(self):
        auth = _make_auth_service(USER.model_copy(update={"health_profile": HealthProfile(age=42)}))
        prediction = MagicMock()
        prediction.predict = AsyncMock(return_value=PREDICTION)
        app = _make_test_app(auth=auth, prediction=prediction, engine=self._engine(30))

        with TestClient(app) as client:
            resp = client.post("/api/predict-diabetes", json={})

        assert resp.status_code == 200
        assert resp.json()["risk_level"] == "low"
        profile, activity = prediction.predict.call_args.args
        assert profile.age == 42
        assert activity == 30

    def test_body_profile_wins(self):
        prediction = MagicMock()
        prediction.predict = AsyncMock(return_value=PREDICTION)
        app = _make_test_app(prediction=prediction, engine=self._engine())

        with TestClient(app) as client:
            client.post(
                "/api/predict-diabetes",
                json={"health_profile": {"age": 60}, "physical_activity": 5},
            )

        profile, activity = prediction.predict.call_args.args
        assert profile.age == 60
        assert activity == 5

    def test_missing_profile_is_422(self):
        app = _make_test_app(prediction=MagicMock(), engine=self._engine())
        with TestClient(app) as client:
            resp = client.post("/api/predict-diabetes", json={})

        assert resp.status_code == 422

    def test_backend_failure_is_502(self):
        prediction = MagicMock()
        prediction.predict = AsyncMock(side_effect=BackendError("predict-diabetes returned HTTP 503", 503))
        app = _make_test_app(prediction=prediction, engine=self._engine())

        with TestClient(app) as client:
            resp = client.post("/api/predict-diabetes", json={"health_profile": {"age": 40}})

        assert resp.status_code == 502
