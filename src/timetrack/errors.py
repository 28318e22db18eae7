"""Exception taxonomy for timetrack.

The data layer raises these. Services catch them at their boundary and hand
them back inside ``result.Err`` so callers decide what the user sees.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from timetrack.models.snapshot import SessionEntry


class TimeTrackError(Exception):
    """Base class for every timetrack failure."""


class ConflictError(TimeTrackError):
    """The snapshot on disk changed since it was read."""

    def __init__(self, path: str, expected: int | None, actual: int | None) -> None:
        super().__init__(
            f"Snapshot for {path} changed on disk (expected lastModified={expected}, found {actual})"
        )
        self.path = path
        self.expected = expected
        self.actual = actual


class AlreadyRunningError(TimeTrackError):
    """A timer is already running for the project."""

    def __init__(self, project_path: str, task: str, start: str) -> None:
        super().__init__(f"A timer for '{task}' has been running on {project_path} since {start}")
        self.project_path = project_path
        self.task = task
        self.start = start


class EntryValidationError(TimeTrackError):
    """A manually supplied end time is malformed or out of range."""


class PendingEntryError(TimeTrackError):
    """A start is blocked by an unterminated entry that needs an end time."""

    def __init__(self, entry: SessionEntry) -> None:
        super().__init__(
            f"Entry '{entry.task}' started at {entry.start} was never stopped; supply its end time"
        )
        self.entry = entry


class PersistenceVerificationError(TimeTrackError):
    """A write reported success but reading it back does not show the change."""


class NoActiveSessionError(TimeTrackError):
    """The operation needs a running session in this process."""


class StorageError(TimeTrackError):
    """A file could not be written into place."""


class CorruptDataError(TimeTrackError):
    """A persisted document could not be parsed."""
