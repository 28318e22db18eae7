"""Timestamp helpers.

Persisted timestamps are ISO-8601 UTC strings with millisecond precision and a
``Z`` suffix. Day buckets use the local calendar date.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterator
from datetime import UTC, date, datetime, time, timedelta

type Clock = Callable[[], datetime]

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def utc_now() -> datetime:
    return datetime.now(UTC)


def truncate_ms(moment: datetime) -> datetime:
    """Drop sub-millisecond precision and make the value timezone-aware."""
    if moment.tzinfo is None:
        moment = moment.astimezone()
    return moment.replace(microsecond=(moment.microsecond // 1000) * 1000)


def to_iso(moment: datetime) -> str:
    return truncate_ms(moment).astimezone(UTC).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


def parse_iso(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed


def epoch_ms(moment: datetime) -> int:
    return (truncate_ms(moment) - _EPOCH) // timedelta(milliseconds=1)


def from_epoch_ms(value: int) -> datetime:
    return _EPOCH + timedelta(milliseconds=value)


def local_day(moment: datetime) -> str:
    """Return the ``YYYY-MM-DD`` local date of ``moment``."""
    if moment.tzinfo is None:
        moment = moment.astimezone()
    return moment.astimezone().date().isoformat()


def whole_seconds(start: datetime, end: datetime) -> int:
    """Elapsed seconds rounded half-up, never negative."""
    delta_ms = epoch_ms(end) - epoch_ms(start)
    return max(0, math.floor(delta_ms / 1000 + 0.5))


def next_local_midnight(moment: datetime) -> datetime:
    local = moment.astimezone()
    following: date = local.date() + timedelta(days=1)
    return datetime.combine(following, time.min).astimezone()


def split_at_midnights(start: datetime, end: datetime) -> Iterator[tuple[str, datetime, datetime]]:
    """Yield ``(day, segment_start, segment_end)`` for each local day the span touches."""
    cursor = start
    while local_day(cursor) != local_day(end):
        boundary = next_local_midnight(cursor)
        yield local_day(cursor), cursor, boundary
        cursor = boundary
    yield local_day(cursor), cursor, end


def parse_clock_time(value: str) -> time:
    """Parse ``HH:MM`` or ``HH:MM:SS``; raises ``ValueError`` on bad input."""
    parts = value.strip().split(":")
    if len(parts) not in (2, 3) or not all(p.isdigit() for p in parts):
        raise ValueError(f"Expected HH:MM or HH:MM:SS, got {value!r}")
    hour, minute = int(parts[0]), int(parts[1])
    second = int(parts[2]) if len(parts) == 3 else 0
    return time(hour, minute, second)
