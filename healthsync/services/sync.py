"""Activity sync engine - reconciles a rolling window of daily metrics with the backend."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any, Callable, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from healthsync.models.sync_log import SyncLog
from healthsync.services.activity_types import (
    ActivitySample,
    ActivityType,
    READ_TYPES,
    TRACKED_TYPES,
)
from healthsync.services.auth import AuthSession
from healthsync.services.backend import BackendClient
from healthsync.services.health_store import HealthDataSource, HealthPermissionDeniedError
from healthsync.services.storage import LocalStorage

logger = logging.getLogger(__name__)


class SyncInProgressError(Exception):
    """Raised when a sync is requested while another cycle is still running."""
    pass


class SyncPhase(str, Enum):
    IDLE = "idle"
    RECONCILING = "reconciling"
    UPLOADING = "uploading"
    FINALIZING = "finalizing"


@dataclass
class SyncState:
    """
    Engine-owned progress state, read by the API layer.

    progress_fraction is processed / days-to-process, where days-to-process is
    the missing days inside the window. It reaches 1.0 after the last day.
    """

    last_sync_timestamp: Optional[datetime] = None
    in_progress: bool = False
    progress_fraction: float = 0.0
    phase: SyncPhase = SyncPhase.IDLE
    current_day: Optional[date] = None


@dataclass
class TodaySummary:
    steps: int = 0
    calories: float = 0.0
    exercise_minutes: float = 0.0
    distance_km: float = 0.0
    as_of: Optional[datetime] = None


@dataclass
class ChartPoint:
    date: date
    value: float


@dataclass
class SyncReport:
    """Outcome of one sync cycle."""

    sync_type: str
    window_start: date
    window_end: date
    days_processed: list[date] = field(default_factory=list)
    uploads: int = 0
    failures: int = 0
    skipped_zero: int = 0
    reconciliation_fallback: bool = False
    errors: list[str] = field(default_factory=list)

    @property
    def status(self) -> str:
        return "partial" if self.failures else "success"

    def to_details(self) -> dict[str, Any]:
        return {
            "days_processed": [d.isoformat() for d in self.days_processed],
            "uploads": self.uploads,
            "failures": self.failures,
            "skipped_zero": self.skipped_zero,
            "reconciliation_fallback": self.reconciliation_fallback,
            "errors": self.errors[:20],
        }


class ActivitySyncEngine:
    """
    Orchestrates the fetch -> upload loop between the health store and the backend.

    One cycle reconciles missing dates, walks the window most-recent-first
    uploading every non-zero daily aggregate, then refreshes today's summary
    and the step chart. Cycles never overlap: a second run_sync() while one
    is in flight raises SyncInProgressError.
    """

    def __init__(
        self,
        source: HealthDataSource,
        client: BackendClient,
        session: AuthSession,
        storage: LocalStorage,
        session_factory: async_sessionmaker[AsyncSession],
        timezone: str,
        window_days: int = 30,
        upload_delay: float = 0.1,
        sync_interval: timedelta = timedelta(hours=6),
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.source = source
        self.client = client
        self.session = session
        self.storage = storage
        self.session_factory = session_factory
        self.tz = ZoneInfo(timezone)
        self.window_days = window_days
        self.upload_delay = upload_delay
        self.sync_interval = sync_interval
        self._now = now or (lambda: datetime.now(self.tz))

        self.state = SyncState()
        self.today = TodaySummary()
        self.monthly_data: list[ChartPoint] = []
        self.is_authorized = False
        self.availability_status: Optional[str] = None

    async def restore(self) -> None:
        """Load the persisted last-sync instant."""
        self.state.last_sync_timestamp = await self.storage.load_last_sync_date()
        if self.state.last_sync_timestamp:
            logger.info(f"Last health sync at {self.state.last_sync_timestamp.isoformat()}")

    async def authorize(self) -> bool:
        """Request read permission for every metric the engine reads."""
        self.availability_status = self.source.availability_status
        granted = await self.source.request_permission(READ_TYPES)
        self.is_authorized = granted
        if not granted and self.availability_status is None:
            logger.warning("Health data access denied - enable it in Settings to sync activity")
        return granted

    def should_sync(self, now: Optional[datetime] = None) -> bool:
        """True if never synced, or the last sync is at least sync_interval old."""
        last = self.state.last_sync_timestamp
        if last is None:
            return True
        now = now or self._now()
        return now - last >= self.sync_interval

    def window(self) -> list[date]:
        """Calendar days of the sync window, most recent first."""
        today = self._now().date()
        return [today - timedelta(days=i) for i in range(self.window_days)]

    def _day_bounds(self, day: date) -> tuple[datetime, datetime]:
        start = datetime.combine(day, time.min, tzinfo=self.tz)
        return start, start + timedelta(days=1)

    def _check_ready(self) -> str:
        user_id = self.session.require_user_id()
        if not self.is_authorized:
            raise HealthPermissionDeniedError(
                self.availability_status or "Health data read permission has not been granted"
            )
        return user_id

    async def _reconcile(self, user_id: str, window: list[date], report: SyncReport) -> set[str]:
        """Days the backend has no data for. Any failure or an empty answer means every day."""
        all_days = {d.isoformat() for d in window}
        try:
            missing = await self.client.fetch_missing_dates(user_id, self.window_days)
        except Exception as e:
            logger.warning(f"Missing-date lookup failed, syncing all {len(window)} days: {e}")
            report.reconciliation_fallback = True
            return all_days

        if not missing:
            logger.info(f"No missing dates reported, syncing all {len(window)} days")
            report.reconciliation_fallback = True
            return all_days

        return missing & all_days

    async def _sync_day(self, day: date, user_id: str, report: SyncReport) -> None:
        """Query each tracked metric for the day and upload the non-zero ones."""
        start, end = self._day_bounds(day)

        for metric_type in TRACKED_TYPES:
            try:
                value = await self.source.query_aggregate_sum(
                    metric_type, metric_type.store_unit, start, end
                )
            except Exception as e:
                logger.error(f"Failed to read {metric_type.value} for {day}: {e}")
                report.failures += 1
                report.errors.append(f"{day} {metric_type.value} read: {e}")
                continue

            # Zero is indistinguishable from "not measured"; neither is uploaded
            if value <= 0:
                report.skipped_zero += 1
                continue

            sample = ActivitySample(metric_type=metric_type, value=value, unit=metric_type.unit, date=day)
            try:
                await self.client.update_activity(sample, user_id)
                report.uploads += 1
            except Exception as e:
                logger.error(f"Failed to upload {metric_type.value} for {day}: {e}")
                report.failures += 1
                report.errors.append(f"{day} {metric_type.value} upload: {e}")

    async def run_sync(self) -> SyncReport:
        """
        Run one full sync cycle over the window.

        Raises:
            SyncInProgressError: a cycle is already running.
            NotAuthenticatedError: no signed-in user.
            HealthPermissionDeniedError: read permission was not granted.
        """
        if self.state.in_progress:
            raise SyncInProgressError("A sync cycle is already running")
        user_id = self._check_ready()

        self.state.in_progress = True
        self.state.progress_fraction = 0.0
        self.state.phase = SyncPhase.RECONCILING
        started_at = datetime.utcnow()

        window = self.window()
        report = SyncReport(sync_type="full", window_start=window[-1], window_end=window[0])
        logger.info(f"Starting sync for {report.window_start} .. {report.window_end}")

        try:
            missing = await self._reconcile(user_id, window, report)
            days = [d for d in window if d.isoformat() in missing]

            self.state.phase = SyncPhase.UPLOADING
            total = len(days)
            for processed, day in enumerate(days, start=1):
                self.state.current_day = day
                await self._sync_day(day, user_id, report)
                report.days_processed.append(day)
                self.state.progress_fraction = processed / total
                logger.info(f"Synced {day}: {processed}/{total}")
                await asyncio.sleep(self.upload_delay)

            self.state.phase = SyncPhase.FINALIZING
            self.state.current_day = None
            await self.refresh_today()
            await self.refresh_monthly_chart()

            finished = self._now()
            self.state.last_sync_timestamp = finished
            self.state.progress_fraction = 1.0
            await self.storage.save_last_sync_date(finished)
        except Exception as e:
            logger.error(f"Sync cycle failed: {e}")
            try:
                await self._log_cycle(report, started_at, error=str(e))
            except Exception as log_error:
                logger.error(f"Failed to record failed sync cycle: {log_error}")
            raise
        finally:
            self.state.in_progress = False
            self.state.phase = SyncPhase.IDLE
            self.state.current_day = None

        logger.info(
            f"Sync complete: {len(report.days_processed)} days, {report.uploads} uploads, "
            f"{report.failures} failures"
        )
        await self._log_cycle(report, started_at)
        return report

    async def sync_today(self) -> Optional[SyncReport]:
        """Refresh and re-upload today only. Skipped while a full cycle is running."""
        if self.state.in_progress:
            logger.info("Full sync in progress, skipping today-only sync")
            return None
        user_id = self._check_ready()

        started_at = datetime.utcnow()
        today = self._now().date()
        report = SyncReport(sync_type="today", window_start=today, window_end=today)

        await self.refresh_today()
        await self._sync_day(today, user_id, report)
        report.days_processed.append(today)

        logger.info(f"Today-only sync complete: {report.uploads} uploads, {report.failures} failures")
        await self._log_cycle(report, started_at)
        return report

    async def refresh_today(self) -> TodaySummary:
        """Today's totals from local midnight until now."""
        now = self._now()
        start = datetime.combine(now.date(), time.min, tzinfo=self.tz)

        async def total(metric_type: ActivityType, unit: str) -> float:
            return await self.source.query_aggregate_sum(metric_type, unit, start, now)

        self.today = TodaySummary(
            steps=int(await total(ActivityType.STEPS, "count")),
            calories=await total(ActivityType.ACTIVE_ENERGY, "kcal"),
            exercise_minutes=await total(ActivityType.EXERCISE, "min"),
            distance_km=await total(ActivityType.DISTANCE, "km"),
            as_of=now,
        )
        return self.today

    async def refresh_monthly_chart(self) -> list[ChartPoint]:
        """Daily step totals over the window, oldest first."""
        now = self._now()
        window_start = datetime.combine(
            now.date() - timedelta(days=self.window_days - 1), time.min, tzinfo=self.tz
        )
        series = await self.source.query_daily_series(ActivityType.STEPS, "count", window_start, now)
        self.monthly_data = [ChartPoint(date=day, value=value) for day, value in series]
        return self.monthly_data

    async def _log_cycle(self, report: SyncReport, started_at: datetime, error: Optional[str] = None) -> None:
        async with self.session_factory() as session:
            session.add(SyncLog(
                sync_type=report.sync_type,
                window_start=report.window_start,
                window_end=report.window_end,
                started_at=started_at,
                completed_at=datetime.utcnow(),
                status="failed" if error else report.status,
                details=report.to_details(),
                error_message=error,
            ))
            await session.commit()
