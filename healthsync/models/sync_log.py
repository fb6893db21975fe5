"""Sync log model for tracking sync cycles."""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Date, DateTime, Text, JSON

from healthsync.core.database import Base


class SyncLog(Base):
    """Log of finished sync cycles."""

    __tablename__ = "sync_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    sync_type = Column(String, nullable=False)  # "full", "today"
    window_start = Column(Date, nullable=False)
    window_end = Column(Date, nullable=False)
    started_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    completed_at = Column(DateTime, nullable=True)
    status = Column(String, nullable=False)  # "success", "failed", "partial"
    details = Column(JSON, nullable=True)
    error_message = Column(Text, nullable=True)
