"""Project index and activity log documents."""

from __future__ import annotations

from pydantic import Field

from timetrack.models.snapshot import CamelModel

INDEX_VERSION = 1
ACTIVITY_LOG_VERSION = 1


class ProjectIndexEntry(CamelModel):
    """Registry row mapping a stable id to a project path."""

    id: str
    path: str
    name: str
    last_used: str | None = None


class ProjectIndex(CamelModel):
    version: int = INDEX_VERSION
    projects: list[ProjectIndexEntry] = Field(default_factory=list)


class ActivityLogEntry(CamelModel):
    """A day on which a project saw tracked time."""

    date: str
    project_id: str


class ActivityLog(CamelModel):
    version: int = ACTIVITY_LOG_VERSION
    entries: list[ActivityLogEntry] = Field(default_factory=list)


class ProjectTotals(CamelModel):
    """Tracked time for one project over a date range."""

    project_id: str
    project_name: str = ""
    project_path: str = ""
    total_seconds: int = 0
    tasks: dict[str, int] = Field(default_factory=dict)
    days: dict[str, int] = Field(default_factory=dict)
