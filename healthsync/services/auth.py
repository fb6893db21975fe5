"""Authenticated session ownership and the login/signup/profile flows built on it."""

import logging
from typing import Optional

from healthsync.schemas.backend import AuthResponse, HealthProfile, User
from healthsync.services.backend import BackendClient, NotAuthenticatedError
from healthsync.services.storage import LocalStorage

logger = logging.getLogger(__name__)


class AuthSession:
    """
    Single owner of the auth token and current user.

    Components that make authenticated requests hold a reference to the same
    session instead of reading the token from storage themselves. Local storage
    is only used to survive restarts.
    """

    def __init__(self, storage: LocalStorage):
        self.storage = storage
        self.token: Optional[str] = None
        self.user: Optional[User] = None

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None

    @property
    def user_id(self) -> Optional[str]:
        return self.user.id if self.user else None

    def require_user_id(self) -> str:
        """User id for user-scoped backend calls."""
        if self.token is None or self.user is None or not self.user.id:
            raise NotAuthenticatedError()
        return self.user.id

    async def restore(self) -> None:
        """Load a previously persisted session."""
        self.token = await self.storage.load_auth_token()
        self.user = await self.storage.load_user()
        if self.token:
            logger.info(f"Restored session for {self.user.email if self.user else 'unknown user'}")

    async def establish(self, auth: AuthResponse) -> None:
        self.token = auth.token
        self.user = auth.user
        await self.storage.save_auth_token(auth.token)
        await self.storage.save_user(auth.user)
        await self.storage.set_authenticated(True)

    async def update_user(self, user: User) -> None:
        # Server profile payloads may omit the locally-held health profile
        if user.health_profile is None and self.user is not None:
            user = user.model_copy(update={"health_profile": self.user.health_profile})
        self.user = user
        await self.storage.save_user(user)

    async def invalidate(self) -> None:
        """Drop the token and user, in memory and on disk."""
        self.token = None
        self.user = None
        await self.storage.delete_auth_token()
        await self.storage.delete_user()
        await self.storage.set_authenticated(False)


class AuthService:
    """Login, signup and profile operations against the backend."""

    def __init__(self, client: BackendClient, session: AuthSession):
        self.client = client
        self.session = session

    async def signup(self, name: str, email: str, password: str) -> AuthResponse:
        auth = await self.client.signup(name, email, password)
        await self.session.establish(auth)
        logger.info(f"Signed up {email}")
        return auth

    async def login(self, email: str, password: str) -> AuthResponse:
        auth = await self.client.login(email, password)
        await self.session.establish(auth)
        logger.info(f"Logged in {email}")
        return auth

    async def logout(self) -> None:
        await self.session.invalidate()
        logger.info("Logged out")

    async def get_profile(self) -> User:
        user = await self.client.get_profile()
        await self.session.update_user(user)
        return self.session.user

    async def update_profile(self, name: str) -> User:
        user = await self.client.update_profile(name)
        await self.session.update_user(user)
        return self.session.user

    async def save_health_profile(self, profile: HealthProfile) -> User:
        """Store the health questionnaire on the local user record."""
        if self.session.user is None:
            raise NotAuthenticatedError()
        user = self.session.user.model_copy(update={"health_profile": profile})
        self.session.user = user
        await self.session.storage.save_user(user)
        return user
