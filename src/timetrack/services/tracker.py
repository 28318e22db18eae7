"""Session tracker: the start/stop/switch state machine over project snapshots."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING

from result import Err, Ok, Result

from timetrack.clock import truncate_ms, utc_now
from timetrack.data.project_index import normalize_path
from timetrack.errors import (
    AlreadyRunningError,
    ConflictError,
    EntryValidationError,
    NoActiveSessionError,
    PendingEntryError,
    PersistenceVerificationError,
    StorageError,
    TimeTrackError,
)
from timetrack.models.sessions import ActiveProjectSession
from timetrack.services._snapshot_ops import (
    apply_resolution,
    apply_start,
    apply_stop,
    find_entry,
    find_pending,
    resolve_end_time,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable
    from datetime import datetime, time

    from timetrack.clock import Clock
    from timetrack.config import Config
    from timetrack.data.activity_log import ActivityLogStore
    from timetrack.data.project_index import ProjectIndexStore
    from timetrack.data.snapshot_store import SnapshotStore
    from timetrack.models.projects import ProjectIndexEntry
    from timetrack.models.snapshot import ProjectSnapshot, SessionEntry
    from timetrack.services.activity import ActivityMonitor

logger = logging.getLogger(__name__)

type PendingResolver = Callable[[SessionEntry], Awaitable[str | time | datetime | None]]
type Notifier = Callable[[str], None]


class SessionTracker:
    """Owns the notion of "a timer is running" for this process.

    Every mutation re-reads the snapshot from disk, re-checks its
    precondition and writes with the snapshot's ``lastModified`` as the
    optimistic-lock token. A conflicting write is never replayed: the loop
    goes back to a fresh read and decides again, up to
    ``Config.max_write_retries`` times.
    """

    def __init__(
        self,
        snapshots: SnapshotStore,
        index: ProjectIndexStore,
        activity_log: ActivityLogStore,
        monitor: ActivityMonitor,
        config: Config,
        clock: Clock = utc_now,
        notify: Notifier | None = None,
    ) -> None:
        self._snapshots = snapshots
        self._index = index
        self._activity_log = activity_log
        self._monitor = monitor
        self._config = config
        self._clock = clock
        self._notify_fn = notify
        self._active: ActiveProjectSession | None = None

    @property
    def active_session(self) -> ActiveProjectSession | None:
        return self._active

    async def observe(self, project_path: str) -> ActiveProjectSession | None:
        """Rebuild the session view for ``project_path`` from disk.

        Does not claim ownership. A session this process owns is never
        replaced by a view of another project.
        """
        path = normalize_path(project_path)
        snapshot = self._snapshots.refresh(path)
        if snapshot.current is None:
            self._clear_active(path)
            return None

        entry = self._index.find_by_path(path)
        session = ActiveProjectSession(
            project_id=entry.id if entry is not None else self._index.resolve_id(path),
            project_path=path,
            project_name=entry.name if entry is not None else "",
            task=snapshot.current.task,
            start=snapshot.current.start,
            entry_day=snapshot.current.entry_day,
        )
        owned = self._active is not None and self._monitor.owns(self._active.project_id)
        if not owned or self._active is None or self._active.project_path == path:
            self._active = session
        return session

    async def start(
        self,
        project_path: str,
        task: str,
        *,
        start_time: datetime | None = None,
        silent: bool = False,
        resolver: PendingResolver | None = None,
        name: str | None = None,
    ) -> Result[ActiveProjectSession, TimeTrackError]:
        """Start a timer for ``task`` on ``project_path``.

        Fails with ``AlreadyRunningError`` when the freshly read snapshot
        already has a running timer. Unterminated entries left by a crash are
        resolved first through ``resolver``; without one the start fails with
        ``PendingEntryError``.
        """
        task = task.strip()
        if not task:
            return Err(EntryValidationError("Task name cannot be empty"))
        owned = self._active
        if (
            owned is not None
            and self._monitor.owns(owned.project_id)
            and owned.project_path != normalize_path(project_path)
        ):
            return Err(AlreadyRunningError(owned.project_path, owned.task, owned.start))
        at = truncate_ms(start_time or self._clock())

        try:
            project = self._index.upsert(project_path, name)
        except StorageError as exc:
            return Err(exc)

        answers: dict[str, datetime] = {}
        resolved_days: set[str] = set()
        conflict: ConflictError | None = None
        for attempt in range(1, self._config.max_write_retries + 1):
            snapshot = self._snapshots.refresh(project.path)
            if snapshot.current is not None:
                return Err(
                    AlreadyRunningError(
                        project.path, snapshot.current.task, snapshot.current.start
                    )
                )
            try:
                resolved_days |= await self._resolve_blocking_entries(
                    project.path, snapshot, resolver, answers
                )
                current = apply_start(snapshot, task, at)
                self._snapshots.write(project.path, snapshot)
            except ConflictError as exc:
                conflict = exc
                logger.warning(
                    "Start of '%s' on %s hit a write conflict (attempt %d); re-reading",
                    task,
                    project.path,
                    attempt,
                )
                continue
            except TimeTrackError as exc:
                return Err(exc)
            break
        else:
            logger.error("Giving up starting '%s' on %s after %d conflicts", task, project.path, attempt)
            return Err(conflict or ConflictError(project.path, None, None))

        verified = self._snapshots.refresh(project.path)
        landed = verified.current
        if (
            landed is None
            or landed.start != current.start
            or landed.task != task
            or find_entry(verified, current.start, [current.entry_day]) is None
        ):
            logger.error("Start of '%s' on %s did not persist", task, project.path)
            return Err(
                PersistenceVerificationError(
                    f"Timer for '{task}' was written but is not on disk for {project.path}"
                )
            )

        session = ActiveProjectSession(
            project_id=project.id,
            project_path=project.path,
            project_name=project.name,
            task=task,
            start=current.start,
            entry_day=current.entry_day,
        )
        self._active = session
        self._monitor.claim_ownership(project.id)
        await self._monitor.record_activity(project_id=project.id, force=True)
        self._record_side_tables(project, at, {current.entry_day, *resolved_days})

        logger.info("Started timer for %s / %s", project.path, task)
        self._notify(f"Started '{task}' on {project.name}", silent)
        return Ok(session)

    async def stop(
        self,
        at: datetime | None = None,
        *,
        silent: bool = False,
        session: ActiveProjectSession | None = None,
    ) -> Result[list[SessionEntry], TimeTrackError]:
        """Stop ``session`` (default: this process's session) at ``at``.

        Returns the finalised entries, or an empty list when there was no
        session or another process already stopped it.
        """
        session = session or self._active
        if session is None:
            return Ok([])
        stop_at = truncate_ms(at or self._clock())

        conflict: ConflictError | None = None
        for attempt in range(1, self._config.max_write_retries + 1):
            snapshot = self._snapshots.refresh(session.project_path)
            current = snapshot.current
            if current is None or current.start != session.start:
                logger.info(
                    "Session '%s' on %s was already resolved elsewhere",
                    session.task,
                    session.project_path,
                )
                self._clear_active(session.project_path)
                return Ok([])

            finalized = apply_stop(snapshot, current, stop_at)
            try:
                self._snapshots.write(session.project_path, snapshot)
            except ConflictError as exc:
                conflict = exc
                logger.warning(
                    "Stop on %s hit a write conflict (attempt %d); re-reading",
                    session.project_path,
                    attempt,
                )
                continue
            except StorageError as exc:
                return Err(exc)
            break
        else:
            logger.error("Giving up stopping %s after %d conflicts", session.project_path, attempt)
            return Err(conflict or ConflictError(session.project_path, None, None))

        self._clear_active(session.project_path)
        entries = [entry for _, entry in finalized]
        total = sum(entry.seconds for entry in entries)
        await self._monitor.record_activity(project_id=session.project_id, force=True)
        project = self._index.find_by_id(session.project_id)
        if project is not None:
            self._record_side_tables(project, stop_at, {day for day, _ in finalized})

        logger.info(
            "Stopped timer for %s / %s after %ds", session.project_path, session.task, total
        )
        self._notify(f"Stopped '{session.task}' after {timedelta(seconds=total)}", silent)
        return Ok(entries)

    async def switch_task(
        self, task: str, at: datetime | None = None
    ) -> Result[ActiveProjectSession, TimeTrackError]:
        """Stop the running session and start ``task`` at the same instant.

        A failed start after a successful stop leaves the project idle and is
        returned as the error; the stop is not rolled back.
        """
        session = self._active
        if session is None:
            return Err(NoActiveSessionError("No timer is running in this process"))
        at = truncate_ms(at or self._clock())

        stopped = await self.stop(at, silent=True)
        if isinstance(stopped, Err):
            return Err(stopped.err_value)

        started = await self.start(
            session.project_path,
            task,
            start_time=at,
            silent=True,
            name=session.project_name or None,
        )
        if isinstance(started, Err):
            logger.error(
                "Switch on %s stopped '%s' but could not start '%s': %s",
                session.project_path,
                session.task,
                task,
                started.err_value,
            )
            self._notify(
                f"Stopped '{session.task}' but could not start '{task}': "
                f"{started.err_value}. Start it again manually.",
                False,
            )
            return started

        self._notify(f"Switched from '{session.task}' to '{task}'", False)
        return started

    def list_pending(self, project_path: str) -> list[SessionEntry]:
        """Unterminated entries that do not belong to the running timer."""
        snapshot = self._snapshots.refresh(normalize_path(project_path))
        return [entry for _, entry in find_pending(snapshot)]

    async def resolve_pending(
        self,
        project_path: str,
        entry_start: str,
        end: str | time | datetime,
    ) -> Result[SessionEntry, TimeTrackError]:
        """Close the pending entry that started at ``entry_start``."""
        path = normalize_path(project_path)
        conflict: ConflictError | None = None
        for attempt in range(1, self._config.max_write_retries + 1):
            snapshot = self._snapshots.refresh(path)
            located = next(
                ((day, e) for day, e in find_pending(snapshot) if e.start == entry_start), None
            )
            if located is None:
                return Err(EntryValidationError(f"No pending entry started at {entry_start}"))
            day, entry = located
            try:
                end_at = resolve_end_time(entry, end)
                apply_resolution(snapshot, day, entry, end_at)
                self._snapshots.write(path, snapshot)
            except ConflictError as exc:
                conflict = exc
                logger.warning(
                    "Resolving entry %s on %s hit a write conflict (attempt %d)",
                    entry_start,
                    path,
                    attempt,
                )
                continue
            except TimeTrackError as exc:
                return Err(exc)
            break
        else:
            return Err(conflict or ConflictError(path, None, None))

        project = self._index.find_by_path(path)
        if project is not None:
            self._record_side_tables(project, end_at, {day})
        logger.info("Resolved pending entry %s on %s (%ds)", entry_start, path, entry.seconds)
        return Ok(entry)

    async def tick(self, now: datetime | None = None) -> int | None:
        """Elapsed seconds of the owned session, persisting throttled activity.

        A tick within the idle threshold of the previous one counts as
        activity. After a longer gap (the machine slept) nothing is recorded
        until ``RecoveryCoordinator.check_idle`` stops the session. Returns
        None when this process does not own a running session.
        """
        session = self._active
        if session is None or not self._monitor.owns(session.project_id):
            return None
        now = now or self._clock()
        if not self._monitor.is_idle(now):
            self._monitor.touch(now)
            await self._monitor.record_activity(now, session.project_id)
        return session.elapsed_seconds(now)

    async def _resolve_blocking_entries(
        self,
        project_path: str,
        snapshot: ProjectSnapshot,
        resolver: PendingResolver | None,
        answers: dict[str, datetime],
    ) -> set[str]:
        """Close every pending entry in ``snapshot`` and persist the result.

        End times already answered in an earlier attempt are reused, but are
        always applied to the entries of the snapshot passed in.
        """
        pending = find_pending(snapshot)
        if not pending:
            return set()
        for day, entry in pending:
            if entry.start not in answers:
                if resolver is None:
                    raise PendingEntryError(entry)
                answer = await resolver(entry)
                if answer is None:
                    raise PendingEntryError(entry)
                answers[entry.start] = resolve_end_time(entry, answer)
            apply_resolution(snapshot, day, entry, answers[entry.start])
        self._snapshots.write(project_path, snapshot)
        logger.info("Resolved %d pending entries on %s", len(pending), project_path)
        return {day for day, _ in pending}

    def _record_side_tables(
        self, project: ProjectIndexEntry, when: datetime, days: Iterable[str]
    ) -> None:
        try:
            self._index.touch_usage(project.id, when)
            self._activity_log.record_many(project.id, sorted(days))
        except StorageError as exc:
            logger.warning("Failed to update project index or activity log: %s", exc)

    def _clear_active(self, project_path: str) -> None:
        active = self._active
        if active is None or active.project_path != project_path:
            return
        if self._monitor.owns(active.project_id):
            self._monitor.release_ownership()
        self._active = None

    def _notify(self, message: str, silent: bool) -> None:
        if silent or self._notify_fn is None:
            return
        self._notify_fn(message)
