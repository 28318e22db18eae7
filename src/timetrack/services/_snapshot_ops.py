"""Pure mutations of a ProjectSnapshot used by the session tracker."""

from __future__ import annotations

import logging
from datetime import datetime, time

from timetrack.clock import (
    local_day,
    parse_clock_time,
    parse_iso,
    split_at_midnights,
    to_iso,
    truncate_ms,
    whole_seconds,
)
from timetrack.errors import EntryValidationError
from timetrack.models.snapshot import ActiveSession, ProjectSnapshot, SessionEntry

logger = logging.getLogger(__name__)

type LocatedEntry = tuple[str, SessionEntry]


def find_pending(snapshot: ProjectSnapshot, *, include_current: bool = False) -> list[LocatedEntry]:
    """Entries without an ``end``; the live ``current`` entry is skipped unless asked for."""
    live = snapshot.current.start if snapshot.current is not None else None
    pending: list[LocatedEntry] = []
    for day in sorted(snapshot.days):
        for entry in snapshot.days[day].entries:
            if not entry.is_pending:
                continue
            if entry.start == live and not include_current:
                continue
            pending.append((day, entry))
    return pending


def find_entry(
    snapshot: ProjectSnapshot, start: str, preferred_days: list[str]
) -> LocatedEntry | None:
    """Locate the pending entry starting at ``start``, checking ``preferred_days`` first."""
    searched: list[str] = []
    for day in [*preferred_days, *sorted(snapshot.days)]:
        if day in searched or day not in snapshot.days:
            continue
        searched.append(day)
        for entry in snapshot.days[day].entries:
            if entry.start == start and entry.is_pending:
                return day, entry
    return None


def apply_start(snapshot: ProjectSnapshot, task: str, at: datetime) -> ActiveSession:
    start = to_iso(at)
    day = local_day(at)
    snapshot.day(day).entries.append(SessionEntry(task=task, start=start))
    snapshot.current = ActiveSession(task=task, start=start, entry_day=day)
    snapshot.last_task = task
    return snapshot.current


def apply_stop(
    snapshot: ProjectSnapshot, current: ActiveSession, stop_at: datetime
) -> list[LocatedEntry]:
    """Finalise ``current`` at ``stop_at`` and clear it.

    A stop earlier than the start is clamped to the start. A span crossing
    local midnight is split so each day gets its own finalised entry.
    """
    started = parse_iso(current.start)
    effective = max(truncate_ms(stop_at), started)

    located = find_entry(snapshot, current.start, [current.entry_day, local_day(effective)])
    if located is None:
        logger.warning(
            "No pending entry for session started %s; creating one in %s",
            current.start,
            current.entry_day,
        )
        located = (current.entry_day, SessionEntry(task=current.task, start=current.start))
        snapshot.day(current.entry_day).entries.append(located[1])
    day, entry = located

    finalized: list[LocatedEntry] = []
    for i, (segment_day, segment_start, segment_end) in enumerate(
        split_at_midnights(started, effective)
    ):
        seconds = whole_seconds(segment_start, segment_end)
        if i == 0:
            entry.end = to_iso(segment_end)
            entry.seconds = seconds
            snapshot.day(day).add_seconds(entry.task, seconds)
            finalized.append((day, entry))
            continue
        carried = SessionEntry(
            task=entry.task,
            start=to_iso(segment_start),
            end=to_iso(segment_end),
            seconds=seconds,
        )
        record = snapshot.day(segment_day)
        record.entries.append(carried)
        record.add_seconds(carried.task, seconds)
        finalized.append((segment_day, carried))

    snapshot.current = None
    snapshot.last_task = current.task
    return finalized


def resolve_end_time(entry: SessionEntry, end: str | time | datetime) -> datetime:
    """Turn a user-supplied end time into a timestamp for ``entry``.

    Clock times are taken on the local date the entry started. The result
    must fall on that date and not precede the start.

    Raises:
        EntryValidationError: the value is malformed or out of range.
    """
    started = parse_iso(entry.start)
    start_date = started.astimezone().date()
    if isinstance(end, str):
        try:
            end = parse_clock_time(end)
        except ValueError as exc:
            raise EntryValidationError(str(exc)) from exc
    if isinstance(end, datetime):
        resolved = truncate_ms(end)
    else:
        resolved = datetime.combine(start_date, end).astimezone()

    if resolved.astimezone().date() != start_date:
        raise EntryValidationError(
            f"End time must be on {start_date.isoformat()}, the day the entry started"
        )
    if resolved < started:
        raise EntryValidationError(
            f"End time {resolved.astimezone():%H:%M:%S} is before the start "
            f"{started.astimezone():%H:%M:%S}"
        )
    return resolved


def apply_resolution(snapshot: ProjectSnapshot, day: str, entry: SessionEntry, end: datetime) -> None:
    entry.end = to_iso(end)
    entry.seconds = whole_seconds(parse_iso(entry.start), end)
    snapshot.day(day).add_seconds(entry.task, entry.seconds)


def snapshot_has_records(snapshot: ProjectSnapshot | None) -> bool:
    """True when ``snapshot`` holds a running timer or any recorded time."""
    if snapshot is None:
        return False
    if snapshot.current is not None:
        return True
    return any(
        day.total_seconds > 0 or day.tasks or day.entries for day in snapshot.days.values()
    )
