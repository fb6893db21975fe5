"""Activity metric types tracked by the health store and the backend."""

from dataclasses import dataclass
from datetime import date
from enum import Enum


class ActivityType(str, Enum):
    """A category of health measurement. Values are the backend's activity_type keys."""

    STEPS = "step_count"
    WALKING = "walking_running"
    RUNNING = "running"
    CYCLING = "cycling"
    CLIMBING = "stair_climbing"
    EXERCISE = "exercise_time"
    ACTIVE_ENERGY = "active_energy"
    DISTANCE = "distance"
    HEART_RATE = "heart_rate"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def unit(self) -> str:
        """Unit label sent to the backend."""
        return _BACKEND_UNITS[self]

    @property
    def store_unit(self) -> str:
        """Canonical unit the health store keeps values in."""
        return _STORE_UNITS[self]

    @property
    def is_cumulative(self) -> bool:
        """Cumulative metrics aggregate by sum, discrete ones (heart rate) by average."""
        return self is not ActivityType.HEART_RATE


_DISPLAY_NAMES = {
    ActivityType.STEPS: "Steps",
    ActivityType.WALKING: "Walking/Running",
    ActivityType.RUNNING: "Running",
    ActivityType.CYCLING: "Cycling",
    ActivityType.CLIMBING: "Stair Climbing",
    ActivityType.EXERCISE: "Exercise",
    ActivityType.ACTIVE_ENERGY: "Active Energy",
    ActivityType.DISTANCE: "Distance",
    ActivityType.HEART_RATE: "Heart Rate",
}

_BACKEND_UNITS = {
    ActivityType.STEPS: "steps",
    ActivityType.WALKING: "min",
    ActivityType.RUNNING: "min",
    ActivityType.CYCLING: "min",
    ActivityType.CLIMBING: "flights",
    ActivityType.EXERCISE: "min",
    ActivityType.ACTIVE_ENERGY: "kcal",
    ActivityType.DISTANCE: "km",
    ActivityType.HEART_RATE: "bpm",
}

_STORE_UNITS = {
    ActivityType.STEPS: "count",
    ActivityType.CLIMBING: "count",
    ActivityType.ACTIVE_ENERGY: "kcal",
    ActivityType.EXERCISE: "min",
    ActivityType.WALKING: "min",
    ActivityType.RUNNING: "min",
    ActivityType.CYCLING: "min",
    ActivityType.DISTANCE: "km",
    ActivityType.HEART_RATE: "count/min",
}

# Upload order within a day is fixed
TRACKED_TYPES: list[ActivityType] = [
    ActivityType.STEPS,
    ActivityType.ACTIVE_ENERGY,
    ActivityType.EXERCISE,
    ActivityType.DISTANCE,
    ActivityType.CLIMBING,
]

READ_TYPES: frozenset[ActivityType] = frozenset({
    ActivityType.STEPS,
    ActivityType.ACTIVE_ENERGY,
    ActivityType.EXERCISE,
    ActivityType.DISTANCE,
    ActivityType.CYCLING,
    ActivityType.CLIMBING,
    ActivityType.HEART_RATE,
})

OBSERVED_TYPES: list[ActivityType] = [
    ActivityType.STEPS,
    ActivityType.ACTIVE_ENERGY,
    ActivityType.EXERCISE,
]


@dataclass(frozen=True)
class ActivitySample:
    """One metric value for one calendar day, as read from the health store."""

    metric_type: ActivityType
    value: float
    unit: str
    date: date

    def to_payload(self, user_id: str) -> dict:
        """Body for POST /api/activities/update."""
        return {
            "user_id": user_id,
            "activity_type": self.metric_type.value,
            "value": self.value,
            "unit": self.unit,
            "date": self.date.isoformat(),
        }
