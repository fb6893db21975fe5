"""Sync API endpoints."""

import logging
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc

from healthsync.core.database import get_db
from healthsync.core.runtime import get_engine
from healthsync.models.sync_log import SyncLog
from healthsync.schemas.responses import (
    AuthorizeResponse,
    ChartPointResponse,
    SyncLogResponse,
    SyncStartedResponse,
    SyncStateResponse,
    SyncStatusResponse,
    TodaySummaryResponse,
)
from healthsync.services.sync import ActivitySyncEngine, SyncInProgressError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["sync"])

PERMISSION_HINT = "Health data access is required. Enable it in Settings to sync your activity."


def _check_can_start(engine: ActivitySyncEngine) -> None:
    """Map engine preconditions onto HTTP errors before scheduling work."""
    if engine.state.in_progress:
        raise HTTPException(status_code=409, detail="A sync is already running. Check /api/sync/status for progress.")
    if not engine.session.is_authenticated:
        raise HTTPException(status_code=401, detail="Not authenticated")
    if not engine.is_authorized:
        raise HTTPException(status_code=403, detail=engine.availability_status or PERMISSION_HINT)


async def _run_sync_in_background(engine: ActivitySyncEngine):
    """Background task to run a full sync cycle."""
    try:
        await engine.run_sync()
    except SyncInProgressError:
        logger.info("Sync already running, background request dropped")
    except Exception as e:
        logger.error(f"Background sync failed: {e}")


async def _run_today_in_background(engine: ActivitySyncEngine):
    """Background task to re-sync today only."""
    try:
        await engine.sync_today()
    except Exception as e:
        logger.error(f"Background today-only sync failed: {e}")


def _state_response(engine: ActivitySyncEngine) -> SyncStateResponse:
    state = engine.state
    return SyncStateResponse(
        in_progress=state.in_progress,
        progress_fraction=state.progress_fraction,
        phase=state.phase.value,
        current_day=state.current_day,
        last_sync_timestamp=state.last_sync_timestamp,
        should_sync=engine.should_sync(),
        is_authorized=engine.is_authorized,
        availability_status=engine.availability_status,
    )


@router.post("/sync/run", response_model=SyncStartedResponse, status_code=202)
async def sync_run(
    background_tasks: BackgroundTasks,
    engine: ActivitySyncEngine = Depends(get_engine),
):
    """Trigger a full sync of the trailing window."""
    _check_can_start(engine)

    window = engine.window()
    background_tasks.add_task(_run_sync_in_background, engine)

    return SyncStartedResponse(
        message="Sync started",
        window_start=window[-1].isoformat(),
        window_end=window[0].isoformat(),
    )


@router.post("/sync/today", response_model=SyncStartedResponse, status_code=202)
async def sync_today(
    background_tasks: BackgroundTasks,
    engine: ActivitySyncEngine = Depends(get_engine),
):
    """Re-sync today's values only."""
    _check_can_start(engine)

    today = engine.window()[0].isoformat()
    background_tasks.add_task(_run_today_in_background, engine)

    return SyncStartedResponse(message="Today-only sync started", window_start=today, window_end=today)


@router.post("/sync/authorize", response_model=AuthorizeResponse)
async def sync_authorize(
    background_tasks: BackgroundTasks,
    engine: ActivitySyncEngine = Depends(get_engine),
):
    """Request health-data read permission and, once granted, start an initial sync."""
    authorized = await engine.authorize()
    if authorized and engine.session.is_authenticated and not engine.state.in_progress:
        logger.info("Health access granted, starting initial sync")
        background_tasks.add_task(_run_sync_in_background, engine)
    return AuthorizeResponse(authorized=authorized, availability_status=engine.availability_status)


@router.get("/sync/status", response_model=SyncStatusResponse)
async def sync_status(
    engine: ActivitySyncEngine = Depends(get_engine),
    db: AsyncSession = Depends(get_db),
):
    """Current engine state and the last finished cycle."""
    result = await db.execute(
        select(SyncLog)
        .order_by(desc(SyncLog.completed_at))
        .limit(1)
    )
    last_log = result.scalar_one_or_none()

    return SyncStatusResponse(
        state=_state_response(engine),
        last_cycle=SyncLogResponse.model_validate(last_log) if last_log else None,
    )


@router.get("/activities/today", response_model=TodaySummaryResponse)
async def activities_today(
    refresh: bool = False,
    engine: ActivitySyncEngine = Depends(get_engine),
):
    """Today's step, energy, exercise and distance totals."""
    if refresh:
        if not engine.is_authorized:
            raise HTTPException(status_code=403, detail=engine.availability_status or PERMISSION_HINT)
        await engine.refresh_today()

    today = engine.today
    return TodaySummaryResponse(
        steps=today.steps,
        calories=today.calories,
        exercise_minutes=today.exercise_minutes,
        distance_km=today.distance_km,
        as_of=today.as_of,
    )


@router.get("/activities/monthly", response_model=list[ChartPointResponse])
async def activities_monthly(
    refresh: bool = False,
    engine: ActivitySyncEngine = Depends(get_engine),
):
    """Daily step totals for the chart."""
    if refresh:
        if not engine.is_authorized:
            raise HTTPException(status_code=403, detail=engine.availability_status or PERMISSION_HINT)
        await engine.refresh_monthly_chart()

    return [ChartPointResponse(date=p.date, value=p.value) for p in engine.monthly_data]
