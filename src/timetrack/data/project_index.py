"""Global registry of tracked projects."""

from __future__ import annotations

import hashlib
import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING

from timetrack.clock import to_iso, utc_now
from timetrack.data.files import load_model_with_backup, write_json_atomic
from timetrack.models.projects import ProjectIndex, ProjectIndexEntry

if TYPE_CHECKING:
    from datetime import datetime

    from timetrack.clock import Clock

logger = logging.getLogger(__name__)

_ID_LENGTH = 12


def normalize_path(path: str | Path) -> str:
    """Canonical string form of a project path used for identity."""
    resolved = Path(path).expanduser().resolve(strict=False)
    return os.path.normcase(str(resolved))


def project_id_for_path(path: str | Path) -> str:
    """Deterministic 12-character id for a project path."""
    digest = hashlib.sha1(normalize_path(path).encode("utf-8"), usedforsecurity=False)
    return digest.hexdigest()[:_ID_LENGTH]


def project_name_from_path(path: str | Path) -> str:
    name = Path(normalize_path(path)).name
    return name or str(path)


class ProjectIndexStore:
    """Read-modify-write access to ``projects-index.json``.

    Every mutation re-reads the file first and merges its change into what is
    on disk; the index is never version-compared.
    """

    def __init__(self, path: Path, clock: Clock = utc_now) -> None:
        self._path = path
        self._clock = clock

    def load(self) -> ProjectIndex:
        return load_model_with_backup(self._path, ProjectIndex) or ProjectIndex()

    def list_projects(self) -> list[ProjectIndexEntry]:
        return list(self.load().projects)

    def find_by_id(self, project_id: str) -> ProjectIndexEntry | None:
        return next((p for p in self.load().projects if p.id == project_id), None)

    def find_by_path(self, project_path: str | Path) -> ProjectIndexEntry | None:
        return _find_path(self.load(), normalize_path(project_path))

    def resolve_id(self, project_path: str | Path) -> str:
        """Id of an indexed path, or the deterministic id for an unknown one."""
        entry = self.find_by_path(project_path)
        return entry.id if entry is not None else project_id_for_path(project_path)

    def upsert(self, project_path: str | Path, name: str | None = None) -> ProjectIndexEntry:
        """Return the entry for ``project_path``, creating it when absent."""
        normalized = normalize_path(project_path)
        index = self.load()
        entry = _find_path(index, normalized)
        if entry is None:
            entry = ProjectIndexEntry(
                id=project_id_for_path(normalized),
                path=normalized,
                name=name or project_name_from_path(normalized),
                last_used=to_iso(self._clock()),
            )
            index.projects.append(entry)
            logger.info("Registered project %s (%s)", entry.name, entry.id)
        elif name and entry.name != name:
            entry.name = name
        else:
            return entry
        self._save(index)
        return entry

    def touch_usage(self, project_id: str, when: datetime) -> ProjectIndexEntry | None:
        return self._update(project_id, last_used=to_iso(when))

    def rename(self, project_id: str, name: str) -> ProjectIndexEntry | None:
        return self._update(project_id, name=name)

    def relocate(self, project_id: str, new_path: str | Path) -> ProjectIndexEntry | None:
        return self._update(project_id, path=normalize_path(new_path))

    def remove(self, project_id: str) -> bool:
        index = self.load()
        remaining = [p for p in index.projects if p.id != project_id]
        if len(remaining) == len(index.projects):
            return False
        index.projects = remaining
        self._save(index)
        return True

    def _update(self, project_id: str, **changes: str) -> ProjectIndexEntry | None:
        index = self.load()
        for i, entry in enumerate(index.projects):
            if entry.id == project_id:
                index.projects[i] = entry.model_copy(update=changes)
                self._save(index)
                return index.projects[i]
        return None

    def _save(self, index: ProjectIndex) -> None:
        write_json_atomic(self._path, index.to_document())


def _find_path(index: ProjectIndex, normalized: str) -> ProjectIndexEntry | None:
    return next((p for p in index.projects if p.path == normalized), None)
