from datetime import datetime
from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Float,
    JSON,
    Index,
)
from healthsync.core.database import Base


class HealthSampleRecord(Base):
    """A single quantity sample in the local health store, value in the metric's canonical unit."""

    __tablename__ = "health_samples"

    id = Column(Integer, primary_key=True, autoincrement=True)
    metric_type = Column(String, nullable=False)
    value = Column(Float, nullable=False)
    start = Column(DateTime, nullable=False)
    end = Column(DateTime, nullable=False)
    source = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (Index("ix_health_samples_metric_start", "metric_type", "start"),)


class Preference(Base):
    """Key-value local preferences (current user, auth token, last sync instant)."""

    __tablename__ = "preferences"

    id = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(String, nullable=False, unique=True)
    value = Column(JSON, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
