"""Database models for PoolWatch."""

from poolwatch.models.database import Base, async_session, engine, init_db
from poolwatch.models.schedule import ScheduledRace, ScheduledRunner

__all__ = [
    "Base",
    "async_session",
    "engine",
    "init_db",
    "ScheduledRace",
    "ScheduledRunner",
]
