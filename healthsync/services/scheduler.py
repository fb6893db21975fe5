"""APScheduler setup for periodic sync checks, plus the health-store change observer."""

import asyncio
import logging
from datetime import datetime, timezone
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from healthsync.core.config import get_settings
from healthsync.services.activity_types import OBSERVED_TYPES
from healthsync.services.backend import NotAuthenticatedError
from healthsync.services.health_store import HealthDataUnavailableError, HealthPermissionDeniedError
from healthsync.services.sync import ActivitySyncEngine, SyncInProgressError

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler: AsyncIOScheduler | None = None
observer_task: asyncio.Task | None = None


async def run_scheduled_sync(engine: ActivitySyncEngine):
    """Run a full sync if the last one is stale."""
    if not engine.should_sync():
        logger.debug("Last sync is recent, skipping scheduled sync")
        return

    logger.info("Starting scheduled sync job")
    try:
        report = await engine.run_sync()
        logger.info(f"Scheduled sync completed: {report.status}")
    except SyncInProgressError:
        logger.info("Sync already running, scheduled job skipped")
    except (NotAuthenticatedError, HealthPermissionDeniedError) as e:
        logger.warning(f"Scheduled sync not possible: {e}")
    except Exception as e:
        logger.error(f"Scheduled sync failed: {e}")


async def observe_health_changes(engine: ActivitySyncEngine):
    """Re-sync today whenever the health store reports new samples for an observed metric."""
    async for metric_type in engine.source.observe_changes(OBSERVED_TYPES):
        logger.info(f"Health data changed ({metric_type.value}), syncing today")
        try:
            await engine.sync_today()
        except (NotAuthenticatedError, HealthPermissionDeniedError, HealthDataUnavailableError) as e:
            logger.warning(f"Today-only sync not possible: {e}")
        except Exception as e:
            logger.error(f"Today-only sync failed: {e}")


def start_scheduler(engine: ActivitySyncEngine):
    """Start the APScheduler and, if enabled, the change observer."""
    global scheduler, observer_task

    if scheduler is not None:
        logger.warning("Scheduler already started")
        return

    settings = get_settings()
    scheduler = AsyncIOScheduler()

    scheduler.add_job(
        run_scheduled_sync,
        IntervalTrigger(minutes=settings.sync_check_minutes),
        args=[engine],
        id="activity_sync",
        name="Activity sync when stale",
        replace_existing=True,
        # First staleness check runs at startup
        next_run_time=datetime.now(timezone.utc),
    )

    scheduler.start()
    logger.info(f"Scheduler started - sync check every {settings.sync_check_minutes} minutes")

    if settings.observe_changes:
        observer_task = asyncio.create_task(observe_health_changes(engine))


def stop_scheduler():
    """Stop the APScheduler and the change observer."""
    global scheduler, observer_task

    if scheduler is not None:
        scheduler.shutdown()
        scheduler = None
        logger.info("Scheduler stopped")

    if observer_task is not None:
        observer_task.cancel()
        observer_task = None
