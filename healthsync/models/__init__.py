# Database models
from healthsync.models.database import (
    HealthSampleRecord,
    Preference,
)
from healthsync.models.sync_log import SyncLog

__all__ = [
    "HealthSampleRecord",
    "Preference",
    "SyncLog",
]
