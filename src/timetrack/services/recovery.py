"""Crash, sleep and idle recovery for sessions left running."""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import TYPE_CHECKING

from result import Err, Ok, Result

from timetrack.clock import truncate_ms, utc_now

if TYPE_CHECKING:
    from datetime import datetime

    from timetrack.clock import Clock
    from timetrack.errors import TimeTrackError
    from timetrack.models.snapshot import SessionEntry
    from timetrack.services.activity import ActivityMonitor
    from timetrack.services.tracker import SessionTracker

logger = logging.getLogger(__name__)


class RecoveryOutcome(StrEnum):
    NO_SESSION = "no_session"
    RECOVERED = "recovered"
    OBSERVING = "observing"
    OWNED = "owned"


class RecoveryCoordinator:
    """Decides what to do with a running session this process did not start."""

    def __init__(
        self,
        tracker: SessionTracker,
        monitor: ActivityMonitor,
        clock: Clock = utc_now,
    ) -> None:
        self._tracker = tracker
        self._monitor = monitor
        self._clock = clock

    async def recover(
        self, project_path: str, now: datetime | None = None
    ) -> Result[RecoveryOutcome, TimeTrackError]:
        """Reconcile a session found in ``project_path``'s snapshot at startup.

        When the shared last-activity timestamp is older than the idle
        threshold the session is stopped at that timestamp, clamped between
        its start and ``now``. Otherwise another process is presumed alive
        and the session is only observed.
        """
        now = truncate_ms(now or self._clock())
        session = await self._tracker.observe(project_path)
        if session is None:
            return Ok(RecoveryOutcome.NO_SESSION)
        if self._monitor.owns(session.project_id):
            return Ok(RecoveryOutcome.OWNED)

        last = await self._monitor.last_activity()
        if last is None or not self._monitor.is_stale(last, now):
            logger.info(
                "Observing session '%s' on %s owned by another process",
                session.task,
                session.project_path,
            )
            return Ok(RecoveryOutcome.OBSERVING)

        stop_at = min(max(last, session.started_at), now)
        logger.info(
            "Recovering abandoned session '%s' on %s; stopping at %s",
            session.task,
            session.project_path,
            stop_at.isoformat(),
        )
        stopped = await self._tracker.stop(stop_at, session=session)
        if isinstance(stopped, Err):
            return Err(stopped.err_value)
        return Ok(RecoveryOutcome.RECOVERED)

    async def check_idle(
        self, now: datetime | None = None
    ) -> Result[list[SessionEntry], TimeTrackError]:
        """Stop the owned session at its last sign of life once it has gone idle."""
        session = self._tracker.active_session
        if session is None or not self._monitor.owns(session.project_id):
            return Ok([])
        now = truncate_ms(now or self._clock())
        last_input = self._monitor.last_input
        if last_input is None or not self._monitor.is_idle(now):
            return Ok([])
        stop_at = min(max(last_input, session.started_at), now)
        logger.info("Session on %s idle since %s; stopping", session.project_path, stop_at)
        return await self._tracker.stop(stop_at)
