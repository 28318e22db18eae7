"""Log of the days each project had tracked time."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from timetrack.data.files import load_model_with_backup, write_json_atomic
from timetrack.models.projects import ActivityLog, ActivityLogEntry

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

logger = logging.getLogger(__name__)


class ActivityLogStore:
    """Deduplicated ``(date, projectId)`` pairs in ``activity-log.json``."""

    def __init__(self, path: Path) -> None:
        self._path = path

    def load(self) -> ActivityLog:
        return load_model_with_backup(self._path, ActivityLog) or ActivityLog()

    def record(self, project_id: str, day: str) -> bool:
        """Add ``(day, project_id)``; returns False when it was already logged."""
        return self.record_many(project_id, [day]) > 0

    def record_many(self, project_id: str, days: Iterable[str]) -> int:
        log = self.load()
        seen = {(e.date, e.project_id) for e in log.entries}
        added = 0
        for day in days:
            if (day, project_id) in seen:
                continue
            log.entries.append(ActivityLogEntry(date=day, project_id=project_id))
            seen.add((day, project_id))
            added += 1
        if added:
            write_json_atomic(self._path, log.to_document())
        return added

    def projects_touched_between(self, start: str, end: str) -> set[str]:
        """Ids with a logged day in ``[start, end]``; dates compare as ``YYYY-MM-DD`` strings."""
        return {e.project_id for e in self.load().entries if start <= e.date <= end}

    def days_for(self, project_id: str) -> list[str]:
        return sorted({e.date for e in self.load().entries if e.project_id == project_id})

    def forget_project(self, project_id: str) -> int:
        log = self.load()
        kept = [e for e in log.entries if e.project_id != project_id]
        removed = len(log.entries) - len(kept)
        if removed:
            log.entries = kept
            write_json_atomic(self._path, log.to_document())
            logger.info("Removed %d activity entries for project %s", removed, project_id)
        return removed
