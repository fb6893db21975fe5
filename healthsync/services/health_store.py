"""Local health-data store - quantity samples with aggregate queries and change notifications."""

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import AsyncIterator, Iterable, Optional, Protocol
from zoneinfo import ZoneInfo

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from healthsync.models.database import HealthSampleRecord
from healthsync.services.activity_types import ActivityType

logger = logging.getLogger(__name__)

UNAVAILABLE_STATUS = "Health data is not available on this device"


class HealthDataUnavailableError(Exception):
    """Raised when the health store is absent on this device."""
    pass


class HealthPermissionDeniedError(Exception):
    """Raised when health-data read permission has not been granted."""
    pass


class UnitConversionError(ValueError):
    """Raised when converting between incompatible units."""
    pass


# unit -> (family, factor to the family's base unit)
_UNITS: dict[str, tuple[str, float]] = {
    "count": ("count", 1.0),
    "count/min": ("rate", 1.0),
    "kcal": ("energy", 1.0),
    "kJ": ("energy", 1 / 4.184),
    "cal": ("energy", 0.001),
    "min": ("time", 1.0),
    "h": ("time", 60.0),
    "s": ("time", 1 / 60),
    "km": ("length", 1.0),
    "m": ("length", 0.001),
    "mi": ("length", 1.609344),
}


def convert_unit(value: float, from_unit: str, to_unit: str) -> float:
    """Convert a quantity between two units of the same family."""
    if from_unit == to_unit:
        return value
    try:
        from_family, from_factor = _UNITS[from_unit]
        to_family, to_factor = _UNITS[to_unit]
    except KeyError as e:
        raise UnitConversionError(f"Unknown unit: {e.args[0]}")
    if from_family != to_family:
        raise UnitConversionError(f"Cannot convert {from_unit} to {to_unit}")
    return value * from_factor / to_factor


def _to_utc_naive(dt: datetime) -> datetime:
    """Stored timestamps are naive UTC; naive inputs are taken as UTC already."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


@dataclass(frozen=True)
class QuantitySample:
    """A raw sample written into the store."""

    metric_type: ActivityType
    value: float
    unit: str
    start: datetime
    end: Optional[datetime] = None
    source: Optional[str] = None


class HealthDataSource(Protocol):
    """What the sync engine needs from a health-data store."""

    @property
    def availability_status(self) -> Optional[str]: ...

    async def request_permission(self, metric_types: Iterable[ActivityType]) -> bool: ...

    async def query_aggregate_sum(
        self, metric_type: ActivityType, unit: str, start: datetime, end: datetime
    ) -> float: ...

    async def query_daily_series(
        self, metric_type: ActivityType, unit: str, window_start: datetime, window_end: datetime
    ) -> list[tuple[date, float]]: ...

    def observe_changes(self, metric_types: Iterable[ActivityType]) -> AsyncIterator[ActivityType]: ...


class LocalHealthStore:
    """SQLite-backed health store implementing HealthDataSource."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        tz: str,
        available: bool = True,
        grant_permission: bool = True,
    ):
        self.session_factory = session_factory
        self.tz = ZoneInfo(tz)
        self.available = available
        self.grant_permission = grant_permission
        self._authorized: set[ActivityType] = set()
        self._subscribers: list[tuple[frozenset[ActivityType], asyncio.Queue]] = []

    @property
    def availability_status(self) -> Optional[str]:
        """None when the store is usable, otherwise a user-facing status string."""
        return None if self.available else UNAVAILABLE_STATUS

    def is_authorized(self, metric_type: ActivityType) -> bool:
        return metric_type in self._authorized

    async def request_permission(self, metric_types: Iterable[ActivityType]) -> bool:
        """Ask for read access to the given metric types."""
        if not self.available:
            logger.warning(UNAVAILABLE_STATUS)
            return False

        if not self.grant_permission:
            logger.warning("Health data read permission denied")
            return False

        self._authorized.update(metric_types)
        return True

    def _check_readable(self, metric_type: ActivityType) -> None:
        if not self.available:
            raise HealthDataUnavailableError(UNAVAILABLE_STATUS)
        if metric_type not in self._authorized:
            raise HealthPermissionDeniedError(f"No read permission for {metric_type.value}")

    async def add_samples(self, samples: Iterable[QuantitySample]) -> int:
        """Store samples and notify observers of the metric types that changed."""
        if not self.available:
            raise HealthDataUnavailableError(UNAVAILABLE_STATUS)

        changed: set[ActivityType] = set()
        count = 0
        async with self.session_factory() as session:
            for sample in samples:
                value = convert_unit(sample.value, sample.unit, sample.metric_type.store_unit)
                start = _to_utc_naive(sample.start)
                end = _to_utc_naive(sample.end) if sample.end else start
                session.add(HealthSampleRecord(
                    metric_type=sample.metric_type.value,
                    value=value,
                    start=start,
                    end=end,
                    source=sample.source,
                ))
                changed.add(sample.metric_type)
                count += 1
            await session.commit()

        logger.info(f"Stored {count} health samples ({', '.join(sorted(t.value for t in changed))})")
        self._notify(changed)
        return count

    def _notify(self, changed: set[ActivityType]) -> None:
        for watched, queue in self._subscribers:
            for metric_type in changed:
                if metric_type in watched:
                    queue.put_nowait(metric_type)

    async def observe_changes(self, metric_types: Iterable[ActivityType]) -> AsyncIterator[ActivityType]:
        """Yield a metric type each time samples of a watched type are added."""
        entry = (frozenset(metric_types), asyncio.Queue())
        self._subscribers.append(entry)
        try:
            while True:
                yield await entry[1].get()
        finally:
            self._subscribers.remove(entry)

    async def query_aggregate_sum(
        self, metric_type: ActivityType, unit: str, start: datetime, end: datetime
    ) -> float:
        """
        Aggregate samples whose start falls in [start, end).

        Cumulative metrics are summed, discrete metrics averaged. Returns 0.0
        when no samples match.
        """
        self._check_readable(metric_type)
        aggregate = func.sum if metric_type.is_cumulative else func.avg

        async with self.session_factory() as session:
            result = await session.execute(
                select(aggregate(HealthSampleRecord.value)).where(
                    HealthSampleRecord.metric_type == metric_type.value,
                    HealthSampleRecord.start >= _to_utc_naive(start),
                    HealthSampleRecord.start < _to_utc_naive(end),
                )
            )
            total = result.scalar_one_or_none()

        if total is None:
            return 0.0
        return convert_unit(float(total), metric_type.store_unit, unit)

    async def query_daily_series(
        self, metric_type: ActivityType, unit: str, window_start: datetime, window_end: datetime
    ) -> list[tuple[date, float]]:
        """Per-day aggregates over the window, bucketed in the store's timezone. Empty days are omitted."""
        self._check_readable(metric_type)

        async with self.session_factory() as session:
            result = await session.execute(
                select(HealthSampleRecord.start, HealthSampleRecord.value).where(
                    HealthSampleRecord.metric_type == metric_type.value,
                    HealthSampleRecord.start >= _to_utc_naive(window_start),
                    HealthSampleRecord.start < _to_utc_naive(window_end),
                )
            )
            rows = result.all()

        buckets: dict[date, list[float]] = defaultdict(list)
        for start, value in rows:
            day = start.replace(tzinfo=timezone.utc).astimezone(self.tz).date()
            buckets[day].append(value)

        series = []
        for day in sorted(buckets):
            values = buckets[day]
            total = sum(values) if metric_type.is_cumulative else sum(values) / len(values)
            series.append((day, convert_unit(total, metric_type.store_unit, unit)))
        return series
