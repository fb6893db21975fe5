"""Key-value local storage for the current user, auth token and last sync instant."""

import logging
from datetime import datetime
from typing import Any, Optional

from pydantic import ValidationError
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from healthsync.models.database import Preference
from healthsync.schemas.backend import User

logger = logging.getLogger(__name__)

CURRENT_USER_KEY = "currentUser"
AUTH_TOKEN_KEY = "authToken"
IS_AUTHENTICATED_KEY = "isAuthenticated"
LAST_SYNC_DATE_KEY = "lastHealthSyncDate"

ALL_KEYS = (CURRENT_USER_KEY, AUTH_TOKEN_KEY, IS_AUTHENTICATED_KEY, LAST_SYNC_DATE_KEY)


class LocalStorage:
    """Preferences table wrapper. Each call runs in its own short session."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get(self, key: str) -> Any:
        async with self.session_factory() as session:
            result = await session.execute(select(Preference).where(Preference.key == key))
            pref = result.scalar_one_or_none()
            return pref.value if pref else None

    async def set(self, key: str, value: Any) -> None:
        async with self.session_factory() as session:
            result = await session.execute(select(Preference).where(Preference.key == key))
            pref = result.scalar_one_or_none()
            if pref:
                pref.value = value
                pref.updated_at = datetime.utcnow()
            else:
                session.add(Preference(key=key, value=value))
            await session.commit()

    async def remove(self, key: str) -> None:
        async with self.session_factory() as session:
            await session.execute(delete(Preference).where(Preference.key == key))
            await session.commit()

    # User

    async def save_user(self, user: User) -> None:
        await self.set(CURRENT_USER_KEY, user.model_dump(mode="json", by_alias=True))
        logger.info("User saved to local storage")

    async def load_user(self) -> Optional[User]:
        data = await self.get(CURRENT_USER_KEY)
        if data is None:
            logger.debug("No user data found in local storage")
            return None
        try:
            return User.model_validate(data)
        except ValidationError as e:
            logger.error(f"Failed to load user: {e}")
            return None

    async def delete_user(self) -> None:
        await self.remove(CURRENT_USER_KEY)

    # Authentication

    async def save_auth_token(self, token: str) -> None:
        await self.set(AUTH_TOKEN_KEY, token)

    async def load_auth_token(self) -> Optional[str]:
        return await self.get(AUTH_TOKEN_KEY)

    async def delete_auth_token(self) -> None:
        await self.remove(AUTH_TOKEN_KEY)

    async def set_authenticated(self, is_authenticated: bool) -> None:
        await self.set(IS_AUTHENTICATED_KEY, is_authenticated)

    async def is_authenticated(self) -> bool:
        return bool(await self.get(IS_AUTHENTICATED_KEY))

    # Health sync date

    async def save_last_sync_date(self, when: datetime) -> None:
        await self.set(LAST_SYNC_DATE_KEY, when.isoformat())

    async def load_last_sync_date(self) -> Optional[datetime]:
        value = await self.get(LAST_SYNC_DATE_KEY)
        if not value:
            return None
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            logger.error(f"Ignoring unreadable last sync date: {value!r}")
            return None

    async def clear_all(self) -> None:
        async with self.session_factory() as session:
            await session.execute(delete(Preference).where(Preference.key.in_(ALL_KEYS)))
            await session.commit()
        logger.info("All local data cleared")
