"""Configuration for timetrack."""

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class Config:
    """Application configuration."""

    data_dir: Path = field(default_factory=lambda: Path.home() / ".timetrack")
    idle_threshold_seconds: int = 300
    activity_persist_interval_seconds: int = 30
    max_write_retries: int = 5

    @property
    def projects_dir(self) -> Path:
        return self.data_dir / "projects"

    @property
    def index_path(self) -> Path:
        return self.data_dir / "projects-index.json"

    @property
    def activity_log_path(self) -> Path:
        return self.data_dir / "activity-log.json"

    @property
    def state_db_path(self) -> Path:
        return self.data_dir / "state.db"
