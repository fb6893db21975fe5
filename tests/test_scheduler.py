"""Tests for the scheduled sync job and the health-change observer."""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from healthsync.core.config import Settings
from healthsync.services import scheduler as scheduler_module
from healthsync.services.activity_types import OBSERVED_TYPES, ActivityType
from healthsync.services.backend import NotAuthenticatedError
from healthsync.services.scheduler import observe_health_changes, run_scheduled_sync
from healthsync.services.sync import SyncInProgressError


def _make_engine(stale=True):
    engine = MagicMock()
    engine.should_sync.return_value = stale
    engine.run_sync = AsyncMock()
    engine.sync_today = AsyncMock()
    return engine


class TestScheduledSync:

    @pytest.mark.asyncio
    async def test_skips_when_recent(self):
        engine = _make_engine(stale=False)
        await run_scheduled_sync(engine)
        engine.run_sync.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_runs_when_stale(self):
        engine = _make_engine()
        await run_scheduled_sync(engine)
        engine.run_sync.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_in_progress_is_not_an_error(self):
        engine = _make_engine()
        engine.run_sync.side_effect = SyncInProgressError()
        await run_scheduled_sync(engine)  # should not raise

    @pytest.mark.asyncio
    async def test_failures_do_not_escape_the_job(self):
        engine = _make_engine()
        engine.run_sync.side_effect = NotAuthenticatedError()
        await run_scheduled_sync(engine)

        engine.run_sync.side_effect = RuntimeError("boom")
        await run_scheduled_sync(engine)


class TestObserver:

    @pytest.mark.asyncio
    async def test_syncs_today_per_change(self):
        watched = []

        async def changes(metric_types):
            watched.extend(metric_types)
            yield ActivityType.STEPS
            yield ActivityType.ACTIVE_ENERGY

        engine = _make_engine()
        engine.source.observe_changes = changes
        engine.sync_today.side_effect = [RuntimeError("backend down"), None]

        await asyncio.wait_for(observe_health_changes(engine), timeout=1)

        assert watched == OBSERVED_TYPES
        assert engine.sync_today.await_count == 2


class TestStartScheduler:

    @pytest.mark.asyncio
    async def test_first_check_runs_at_startup(self, monkeypatch):
        monkeypatch.setattr(
            scheduler_module,
            "get_settings",
            lambda: Settings(_env_file=None, observe_changes=False, sync_check_minutes=15),
        )
        engine = _make_engine(stale=False)

        scheduler_module.start_scheduler(engine)
        try:
            job = scheduler_module.scheduler.get_job("activity_sync")
            assert job.next_run_time - datetime.now(timezone.utc) < timedelta(seconds=60)
        finally:
            scheduler_module.stop_scheduler()

        assert scheduler_module.scheduler is None
