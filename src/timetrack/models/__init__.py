"""Pydantic models for timetrack."""

from timetrack.models.projects import (
    ActivityLog,
    ActivityLogEntry,
    ProjectIndex,
    ProjectIndexEntry,
    ProjectTotals,
)
from timetrack.models.sessions import ActiveProjectSession
from timetrack.models.snapshot import (
    SNAPSHOT_VERSION,
    ActiveSession,
    DayRecord,
    ProjectSnapshot,
    SessionEntry,
)

__all__ = [
    "ActiveProjectSession",
    "ActiveSession",
    "ActivityLog",
    "ActivityLogEntry",
    "DayRecord",
    "ProjectIndex",
    "ProjectIndexEntry",
    "ProjectSnapshot",
    "ProjectTotals",
    "SNAPSHOT_VERSION",
    "SessionEntry",
]
