"""Project service: registry management and per-range totals."""

from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING

from result import Err, Ok, Result

from timetrack.data.project_index import normalize_path
from timetrack.errors import (
    AlreadyRunningError,
    EntryValidationError,
    StorageError,
    TimeTrackError,
)
from timetrack.models.projects import ProjectIndexEntry, ProjectTotals
from timetrack.services._snapshot_ops import snapshot_has_records

if TYPE_CHECKING:
    from timetrack.data.activity_log import ActivityLogStore
    from timetrack.data.project_index import ProjectIndexStore
    from timetrack.data.snapshot_store import SnapshotStore

logger = logging.getLogger(__name__)


class ProjectService:
    """Service for project queries and registry edits."""

    def __init__(
        self,
        index: ProjectIndexStore,
        snapshots: SnapshotStore,
        activity_log: ActivityLogStore,
    ) -> None:
        self._index = index
        self._snapshots = snapshots
        self._activity_log = activity_log

    async def list_projects(self) -> Result[list[ProjectIndexEntry], TimeTrackError]:
        """List all projects, most recently used first."""
        projects = self._index.list_projects()
        projects.sort(key=lambda p: p.last_used or "", reverse=True)
        return Ok(projects)

    async def get_project(self, project_id: str) -> Result[ProjectIndexEntry, TimeTrackError]:
        entry = self._index.find_by_id(project_id)
        if entry is None:
            return Err(EntryValidationError(f"Project {project_id} not found"))
        return Ok(entry)

    async def rename_project(
        self, project_id: str, name: str
    ) -> Result[ProjectIndexEntry, TimeTrackError]:
        name = name.strip()
        if not name:
            return Err(EntryValidationError("Project name cannot be empty"))
        try:
            entry = self._index.rename(project_id, name)
        except StorageError as exc:
            return Err(exc)
        if entry is None:
            return Err(EntryValidationError(f"Project {project_id} not found"))
        return Ok(entry)

    async def relocate_project(
        self, project_id: str, new_path: str
    ) -> Result[ProjectIndexEntry, TimeTrackError]:
        """Point an existing project at a folder that moved; its id and history stay."""
        existing = self._index.find_by_path(new_path)
        if existing is not None and existing.id != project_id:
            return Err(
                EntryValidationError(
                    f"{normalize_path(new_path)} is already tracked as {existing.name}"
                )
            )
        try:
            entry = self._index.relocate(project_id, new_path)
        except StorageError as exc:
            return Err(exc)
        if entry is None:
            return Err(EntryValidationError(f"Project {project_id} not found"))
        logger.info("Relocated project %s to %s", project_id, entry.path)
        return Ok(entry)

    async def delete_project(self, project_id: str) -> Result[ProjectIndexEntry, TimeTrackError]:
        """Remove a project's snapshot, registry entry and activity history."""
        entry = self._index.find_by_id(project_id)
        if entry is None:
            return Err(EntryValidationError(f"Project {project_id} not found"))
        snapshot = self._snapshots.refresh(entry.path)
        if snapshot.current is not None:
            return Err(
                AlreadyRunningError(entry.path, snapshot.current.task, snapshot.current.start)
            )
        try:
            self._snapshots.delete(entry.path)
            self._index.remove(project_id)
            self._activity_log.forget_project(project_id)
        except (OSError, StorageError) as exc:
            return Err(StorageError(f"Failed to delete project {entry.name}: {exc}"))
        logger.info("Deleted project %s (%s)", entry.name, project_id)
        return Ok(entry)

    async def summarize(
        self, start: str, end: str
    ) -> Result[list[ProjectTotals], TimeTrackError]:
        """Tracked time per project for the inclusive ``YYYY-MM-DD`` range."""
        try:
            if date.fromisoformat(start) > date.fromisoformat(end):
                return Err(EntryValidationError(f"Range start {start} is after end {end}"))
        except ValueError as exc:
            return Err(EntryValidationError(f"Dates must be YYYY-MM-DD: {exc}"))

        totals: list[ProjectTotals] = []
        for project_id in sorted(self._activity_log.projects_touched_between(start, end)):
            entry = self._index.find_by_id(project_id)
            if entry is None:
                logger.warning("Activity log references unknown project %s", project_id)
                continue
            snapshot = self._snapshots.read(entry.path)
            project_totals = ProjectTotals(
                project_id=entry.id, project_name=entry.name, project_path=entry.path
            )
            for day, record in sorted(snapshot.days.items()):
                if not start <= day <= end:
                    continue
                project_totals.total_seconds += record.total_seconds
                project_totals.days[day] = record.total_seconds
                for task, seconds in record.tasks.items():
                    project_totals.tasks[task] = project_totals.tasks.get(task, 0) + seconds
            totals.append(project_totals)

        totals.sort(key=lambda t: t.total_seconds, reverse=True)
        return Ok(totals)

    async def has_records(self, project_id: str) -> Result[bool, TimeTrackError]:
        """Whether the project has a running timer or any tracked time."""
        entry = self._index.find_by_id(project_id)
        if entry is None:
            return Err(EntryValidationError(f"Project {project_id} not found"))
        return Ok(snapshot_has_records(self._snapshots.read(entry.path)))
