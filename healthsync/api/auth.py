"""Auth and profile endpoints - proxy the backend through the shared session."""

import logging
from fastapi import APIRouter, Depends, HTTPException

from healthsync.core.runtime import get_auth_service
from healthsync.schemas.backend import AuthResponse, User
from healthsync.schemas.responses import (
    AuthStatusResponse,
    HealthProfileUpdate,
    LoginRequest,
    SignupRequest,
    UpdateProfileRequest,
)
from healthsync.services.auth import AuthService
from healthsync.services.backend import AuthError, BackendError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["auth"])


def _to_http(e: BackendError) -> HTTPException:
    """Auth failures are shown to the user as-is; anything else is a gateway error."""
    if isinstance(e, AuthError):
        return HTTPException(status_code=401, detail=e.message)
    return HTTPException(status_code=502, detail=e.message)


@router.post("/auth/login", response_model=AuthResponse)
async def login(body: LoginRequest, auth: AuthService = Depends(get_auth_service)):
    try:
        return await auth.login(body.email, body.password)
    except BackendError as e:
        raise _to_http(e)


@router.post("/auth/signup", response_model=AuthResponse)
async def signup(body: SignupRequest, auth: AuthService = Depends(get_auth_service)):
    try:
        return await auth.signup(body.name, body.email, body.password)
    except BackendError as e:
        raise _to_http(e)


@router.post("/auth/logout")
async def logout(auth: AuthService = Depends(get_auth_service)):
    await auth.logout()
    return {"message": "Logged out"}


@router.get("/auth/status", response_model=AuthStatusResponse)
async def auth_status(auth: AuthService = Depends(get_auth_service)):
    return AuthStatusResponse(
        is_authenticated=auth.session.is_authenticated,
        user=auth.session.user,
    )


@router.get("/profile", response_model=User)
async def get_profile(auth: AuthService = Depends(get_auth_service)):
    """Fetch the profile from the backend and refresh the local copy."""
    try:
        return await auth.get_profile()
    except BackendError as e:
        raise _to_http(e)


@router.put("/profile", response_model=User)
async def update_profile(body: UpdateProfileRequest, auth: AuthService = Depends(get_auth_service)):
    try:
        return await auth.update_profile(body.name)
    except BackendError as e:
        raise _to_http(e)


@router.put("/profile/health", response_model=User)
async def save_health_profile(body: HealthProfileUpdate, auth: AuthService = Depends(get_auth_service)):
    """Save the health questionnaire on the locally stored user."""
    try:
        return await auth.save_health_profile(body.to_profile())
    except AuthError as e:
        raise HTTPException(status_code=401, detail=e.message)
