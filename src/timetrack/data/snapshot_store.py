"""Per-project snapshot files with optimistic concurrency."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from timetrack.clock import epoch_ms, utc_now
from timetrack.data.files import backup_path, load_model_with_backup, write_json_atomic
from timetrack.data.project_index import project_id_for_path
from timetrack.errors import ConflictError
from timetrack.models.snapshot import ProjectSnapshot

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from timetrack.clock import Clock

logger = logging.getLogger(__name__)


class SnapshotStore:
    """Reads and writes ``<project-id>.json`` under the projects directory.

    ``lastModified`` is the optimistic-lock token: a write whose snapshot
    carries one that no longer matches the file on disk raises
    ``ConflictError``. Snapshots that were never persisted carry none and
    always write.

    ``read`` may serve a cached copy; ``refresh`` always goes to disk. Both
    return copies the caller is free to mutate.
    """

    def __init__(
        self,
        projects_dir: Path,
        id_resolver: Callable[[str], str] = project_id_for_path,
        clock: Clock = utc_now,
    ) -> None:
        self._projects_dir = projects_dir
        self._id_resolver = id_resolver
        self._clock = clock
        self._cache: dict[Path, ProjectSnapshot] = {}

    def path_for(self, project_path: str) -> Path:
        return self._projects_dir / f"{self._id_resolver(str(project_path))}.json"

    def read(self, project_path: str) -> ProjectSnapshot:
        cached = self._cache.get(self.path_for(project_path))
        if cached is not None:
            return cached.model_copy(deep=True)
        return self.refresh(project_path)

    def refresh(self, project_path: str) -> ProjectSnapshot:
        target = self.path_for(project_path)
        snapshot = self._load(target)
        self._cache[target] = snapshot
        return snapshot.model_copy(deep=True)

    def write(self, project_path: str, snapshot: ProjectSnapshot) -> ProjectSnapshot:
        """Persist ``snapshot`` and stamp a new ``lastModified`` on it.

        Raises:
            ConflictError: the file changed since ``snapshot`` was read.
            StorageError: the file could not be written into place.
        """
        target = self.path_for(project_path)
        on_disk = self._load(target).last_modified
        expected = snapshot.last_modified
        if expected is not None and on_disk is not None and expected != on_disk:
            logger.warning(
                "Write conflict on %s: expected %s, found %s", target, expected, on_disk
            )
            raise ConflictError(str(project_path), expected, on_disk)

        stamp = max(epoch_ms(self._clock()), (on_disk or 0) + 1, (expected or 0) + 1)
        stored = snapshot.model_copy(deep=True, update={"last_modified": stamp})
        write_json_atomic(target, stored.to_document())
        self._cache[target] = stored
        snapshot.last_modified = stamp
        return stored.model_copy(deep=True)

    def delete(self, project_path: str) -> bool:
        target = self.path_for(project_path)
        self._cache.pop(target, None)
        removed = False
        for candidate in (target, backup_path(target)):
            try:
                candidate.unlink()
                removed = True
            except FileNotFoundError:
                continue
        return removed

    def _load(self, target: Path) -> ProjectSnapshot:
        return load_model_with_backup(target, ProjectSnapshot) or ProjectSnapshot()
