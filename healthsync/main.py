import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI

from healthsync.core.config import get_settings
from healthsync.core.database import async_session_maker, init_db
from healthsync.core.runtime import build_runtime, start_runtime, stop_runtime
from healthsync.api import auth, config, prediction, samples, sync
from healthsync.services.scheduler import start_scheduler, stop_scheduler

logging.basicConfig(
    level=logging.DEBUG if get_settings().debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown events."""
    # Startup
    await init_db()
    runtime = build_runtime(get_settings(), async_session_maker)
    await start_runtime(runtime)
    start_scheduler(runtime.engine)
    yield
    # Shutdown
    stop_scheduler()
    await stop_runtime()


# Create FastAPI application
app = FastAPI(
    title="Health Activity Sync",
    description="Syncs daily activity metrics from the local health store to the health backend",
    version="0.1.0",
    lifespan=lifespan,
)

# Include routers
app.include_router(config.router)
app.include_router(sync.router)
app.include_router(samples.router)
app.include_router(auth.router)
app.include_router(prediction.router)
