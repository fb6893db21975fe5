"""Async client for the remote health backend (activities, auth, profile, prediction)."""

import logging
from typing import TYPE_CHECKING, Any, Optional

import httpx
from pydantic import BaseModel, ValidationError

from healthsync.schemas.backend import AuthResponse, DiabetesPredictionResponse, User
from healthsync.services.activity_types import ActivitySample

if TYPE_CHECKING:
    from healthsync.services.auth import AuthSession

logger = logging.getLogger(__name__)


class BackendError(Exception):
    """Transport failure, non-2xx response or undecodable body from the backend."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class AuthError(BackendError):
    """Authentication failure with a user-visible message."""
    pass


class NotAuthenticatedError(AuthError):
    """No auth token is present for a request that needs one."""

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message, status_code=401)


class InvalidResponseError(AuthError):
    """Auth endpoint answered with something that is not an auth payload."""

    def __init__(self, message: str = "Invalid server response", status_code: Optional[int] = None):
        super().__init__(message, status_code=status_code)


def _server_error_message(response: httpx.Response, default: str) -> str:
    """Pull the backend's {"error": ...} message, falling back to a default."""
    try:
        body = response.json()
    except ValueError:
        return default
    if isinstance(body, dict) and isinstance(body.get("error"), str):
        return body["error"]
    return default


class BackendClient:
    """Async HTTP client for the backend. Bearer tokens come from the shared AuthSession."""

    def __init__(
        self,
        base_url: str,
        session: "AuthSession",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.session = session
        self.timeout = timeout
        self.transport = transport
        self.client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client."""
        if self.client is None:
            self.client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self.transport,
            )
        return self.client

    async def close(self):
        """Close the HTTP client."""
        if self.client:
            await self.client.aclose()
            self.client = None

    def _headers(self, require_token: bool) -> dict[str, str]:
        token = self.session.token
        if token is None:
            if require_token:
                raise NotAuthenticatedError()
            return {}
        return {"Authorization": f"Bearer {token}"}

    async def _request(
        self,
        method: str,
        path: str,
        require_token: bool = False,
        **kwargs: Any,
    ) -> httpx.Response:
        headers = self._headers(require_token)
        client = await self._get_client()
        try:
            return await client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise BackendError(f"{method} {path} failed: {e}")

    @staticmethod
    def _decode(response: httpx.Response, model: type[BaseModel], context: str) -> Any:
        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise BackendError(f"{context}: could not decode response: {e}", response.status_code)

    # Activities

    async def fetch_missing_dates(self, user_id: str, days: int = 30) -> set[str]:
        """Ask the backend which of the trailing `days` calendar days have no data for the user."""
        response = await self._request(
            "GET",
            "/api/activities/missing-dates",
            params={"user_id": user_id, "days": days},
        )
        if not response.is_success:
            raise BackendError(
                f"missing-dates returned HTTP {response.status_code}: {response.text[:200]}",
                response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise BackendError(f"missing-dates: invalid JSON: {e}", response.status_code)

        missing = body.get("missing_dates") if isinstance(body, dict) else None
        if not isinstance(missing, list) or not all(isinstance(d, str) for d in missing):
            raise BackendError("missing-dates: response has no missing_dates list", response.status_code)
        return set(missing)

    async def update_activity(self, sample: ActivitySample, user_id: str) -> None:
        """Upsert one (user, activity type, day) value."""
        response = await self._request(
            "POST",
            "/api/activities/update",
            json=sample.to_payload(user_id),
        )
        if not response.is_success:
            raise BackendError(
                f"activities/update returned HTTP {response.status_code}: {response.text[:200]}",
                response.status_code,
            )
        logger.debug(f"Synced {sample.metric_type.value} for {sample.date}: {response.status_code}")

    # Auth and profile

    async def _auth_call(self, path: str, body: dict[str, str], default_error: str) -> AuthResponse:
        response = await self._request("POST", path, json=body)
        if response.status_code != 200:
            raise AuthError(_server_error_message(response, default_error), response.status_code)
        try:
            return AuthResponse.model_validate(response.json())
        except (ValueError, ValidationError):
            raise InvalidResponseError(status_code=response.status_code)

    async def signup(self, name: str, email: str, password: str) -> AuthResponse:
        return await self._auth_call(
            "/auth/signup",
            {"name": name, "email": email, "password": password},
            "Unknown error",
        )

    async def login(self, email: str, password: str) -> AuthResponse:
        return await self._auth_call(
            "/auth/login",
            {"email": email, "password": password},
            "Invalid credentials",
        )

    async def _profile_call(self, method: str, error: str, **kwargs: Any) -> User:
        response = await self._request(method, "/user/profile", require_token=True, **kwargs)
        if response.status_code == 401:
            await self.session.invalidate()
            raise NotAuthenticatedError("Session expired")
        if response.status_code != 200:
            raise AuthError(error, response.status_code)
        return self._decode(response, User, "profile")

    async def get_profile(self) -> User:
        return await self._profile_call("GET", "Failed to fetch profile")

    async def update_profile(self, name: str) -> User:
        return await self._profile_call("PUT", "Failed to update profile", json={"name": name})

    # Prediction

    async def predict_diabetes(self, features: dict[str, Any]) -> DiabetesPredictionResponse:
        response = await self._request("POST", "/api/predict-diabetes", json=features)
        if response.status_code != 200:
            raise BackendError(
                f"predict-diabetes returned HTTP {response.status_code}",
                response.status_code,
            )
        return self._decode(response, DiabetesPredictionResponse, "predict-diabetes")
