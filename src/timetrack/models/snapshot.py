"""Per-project snapshot documents."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

SNAPSHOT_VERSION = 2


class CamelModel(BaseModel):
    """Base for persisted documents; fields are camelCase on disk."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> dict[str, object]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class SessionEntry(CamelModel):
    """One stretch of work on a task. No ``end`` means pending."""

    task: str
    start: str
    end: str | None = None
    seconds: int = 0

    @property
    def is_pending(self) -> bool:
        return self.end is None


class DayRecord(CamelModel):
    """Finalised totals and entries for one local calendar day."""

    total_seconds: int = 0
    tasks: dict[str, int] = Field(default_factory=dict)
    entries: list[SessionEntry] = Field(default_factory=list)

    def add_seconds(self, task: str, seconds: int) -> None:
        self.total_seconds += seconds
        self.tasks[task] = self.tasks.get(task, 0) + seconds


class ActiveSession(CamelModel):
    """The running timer of a project."""

    task: str
    start: str
    entry_day: str


class ProjectSnapshot(CamelModel):
    """Full persisted time-tracking state for one project."""

    days: dict[str, DayRecord] = Field(default_factory=dict)
    last_task: str | None = None
    current: ActiveSession | None = None
    last_modified: int | None = None
    version: int = SNAPSHOT_VERSION

    def day(self, day: str) -> DayRecord:
        """Return the bucket for ``day``, creating it when missing."""
        record = self.days.get(day)
        if record is None:
            record = DayRecord()
            self.days[day] = record
        return record
