"""Process-wide service graph: one session, one client, one engine."""

from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from healthsync.core.config import Settings
from healthsync.services.auth import AuthService, AuthSession
from healthsync.services.backend import BackendClient
from healthsync.services.health_store import LocalHealthStore
from healthsync.services.prediction import PredictionService
from healthsync.services.storage import LocalStorage
from healthsync.services.sync import ActivitySyncEngine


@dataclass
class Runtime:
    storage: LocalStorage
    session: AuthSession
    client: BackendClient
    store: LocalHealthStore
    engine: ActivitySyncEngine
    auth: AuthService
    prediction: PredictionService


_runtime: Runtime | None = None


def build_runtime(settings: Settings, session_factory: async_sessionmaker[AsyncSession]) -> Runtime:
    """Wire services together. The same AuthSession is shared by every component."""
    storage = LocalStorage(session_factory)
    session = AuthSession(storage)
    client = BackendClient(settings.backend_url, session, timeout=settings.backend_timeout)
    store = LocalHealthStore(
        session_factory,
        settings.tz,
        available=settings.health_data_available,
        grant_permission=settings.health_permission_granted,
    )
    engine = ActivitySyncEngine(
        store,
        client,
        session,
        storage,
        session_factory,
        settings.tz,
        window_days=settings.sync_window_days,
        upload_delay=settings.upload_delay_seconds,
        sync_interval=timedelta(hours=settings.sync_interval_hours),
    )
    return Runtime(
        storage=storage,
        session=session,
        client=client,
        store=store,
        engine=engine,
        auth=AuthService(client, session),
        prediction=PredictionService(client),
    )


async def start_runtime(runtime: Runtime) -> None:
    """Restore persisted state and request health permissions."""
    global _runtime
    await runtime.session.restore()
    await runtime.engine.restore()
    await runtime.engine.authorize()
    _runtime = runtime


async def stop_runtime() -> None:
    global _runtime
    if _runtime is not None:
        await _runtime.client.close()
        _runtime = None


def get_runtime() -> Runtime:
    if _runtime is None:
        raise RuntimeError("Runtime not started")
    return _runtime


# FastAPI dependencies

def get_engine() -> ActivitySyncEngine:
    return get_runtime().engine


def get_auth_service() -> AuthService:
    return get_runtime().auth


def get_health_store() -> LocalHealthStore:
    return get_runtime().store


def get_prediction_service() -> PredictionService:
    return get_runtime().prediction
