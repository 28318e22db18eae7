"""Service container with DI wiring."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from timetrack.clock import utc_now
from timetrack.data.activity_log import ActivityLogStore
from timetrack.data.project_index import ProjectIndexStore
from timetrack.data.snapshot_store import SnapshotStore
from timetrack.data.state_store import StateStore
from timetrack.services.activity import ActivityMonitor
from timetrack.services.project_service import ProjectService
from timetrack.services.recovery import RecoveryCoordinator
from timetrack.services.tracker import SessionTracker

if TYPE_CHECKING:
    from timetrack.clock import Clock
    from timetrack.config import Config
    from timetrack.services.tracker import Notifier


@dataclass
class ServiceContainer:
    """Holds all services for one process. Built once at startup, closed at exit."""

    state: StateStore
    index: ProjectIndexStore
    snapshots: SnapshotStore
    activity_log: ActivityLogStore
    monitor: ActivityMonitor
    tracker: SessionTracker
    recovery: RecoveryCoordinator
    project_service: ProjectService
    clock: Clock

    @classmethod
    async def create(
        cls,
        config: Config,
        clock: Clock = utc_now,
        notify: Notifier | None = None,
    ) -> ServiceContainer:
        """Async factory that wires all dependencies."""
        state = StateStore(config.state_db_path)
        await state.connect()

        index = ProjectIndexStore(config.index_path, clock=clock)
        snapshots = SnapshotStore(config.projects_dir, id_resolver=index.resolve_id, clock=clock)
        activity_log = ActivityLogStore(config.activity_log_path)
        monitor = ActivityMonitor(state, config, clock=clock)
        tracker = SessionTracker(
            snapshots, index, activity_log, monitor, config, clock=clock, notify=notify
        )

        return cls(
            state=state,
            index=index,
            snapshots=snapshots,
            activity_log=activity_log,
            monitor=monitor,
            tracker=tracker,
            recovery=RecoveryCoordinator(tracker, monitor, clock=clock),
            project_service=ProjectService(index, snapshots, activity_log),
            clock=clock,
        )

    async def close(self) -> None:
        """Shut down all services."""
        await self.state.close()
