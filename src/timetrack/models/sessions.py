"""Runtime session views."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from timetrack.clock import parse_iso, whole_seconds


class ActiveProjectSession(BaseModel):
    """In-memory projection of a snapshot's ``current`` for display polling.

    Never authoritative: it is rebuilt from a fresh read on stop, switch or
    conflict.
    """

    project_id: str
    project_path: str
    project_name: str = ""
    task: str
    start: str
    entry_day: str

    @property
    def started_at(self) -> datetime:
        return parse_iso(self.start)

    def elapsed_seconds(self, now: datetime) -> int:
        return whole_seconds(self.started_at, now)
