"""Shared last-activity bookkeeping and per-process session ownership."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from timetrack.clock import epoch_ms, from_epoch_ms, utc_now
from timetrack.data.state_store import LAST_ACTIVITY_KEY, LAST_PROJECT_KEY

if TYPE_CHECKING:
    from datetime import datetime

    from timetrack.clock import Clock
    from timetrack.config import Config
    from timetrack.data.protocols import KeyValueStoreProtocol

logger = logging.getLogger(__name__)


class ActivityMonitor:
    """Tracks which process owns the running session and when work last happened.

    The last-activity timestamp and last project id live in the shared state
    store so other processes can judge whether a session was abandoned.
    Writes are throttled to one per ``activity_persist_interval_seconds``
    unless forced. The idle clock measures the gap since the owner last
    showed signs of life. Ownership is in memory only and dies with the
    process.
    """

    def __init__(
        self,
        state: KeyValueStoreProtocol,
        config: Config,
        clock: Clock = utc_now,
    ) -> None:
        self._state = state
        self._config = config
        self._clock = clock
        self._owned_project_id: str | None = None
        self._last_persisted_ms = 0
        self._last_input_ms: int | None = None

    def owns(self, project_id: str | None = None) -> bool:
        if self._owned_project_id is None:
            return False
        return project_id is None or project_id == self._owned_project_id

    def claim_ownership(self, project_id: str, now: datetime | None = None) -> None:
        self._owned_project_id = project_id
        self._last_input_ms = epoch_ms(now or self._clock())
        logger.debug("Claimed ownership of project %s", project_id)

    def release_ownership(self) -> None:
        if self._owned_project_id is not None:
            logger.debug("Released ownership of project %s", self._owned_project_id)
        self._owned_project_id = None
        self._last_input_ms = None

    def touch(self, now: datetime | None = None) -> None:
        """Note user input or a live tick; resets the idle clock."""
        self._last_input_ms = epoch_ms(now or self._clock())

    @property
    def last_input(self) -> datetime | None:
        return from_epoch_ms(self._last_input_ms) if self._last_input_ms is not None else None

    def is_idle(self, now: datetime | None = None) -> bool:
        if self._last_input_ms is None:
            return False
        idle_ms = epoch_ms(now or self._clock()) - self._last_input_ms
        return idle_ms > self._config.idle_threshold_seconds * 1000

    def is_stale(self, last_activity: datetime, now: datetime | None = None) -> bool:
        """True when ``last_activity`` is older than the idle threshold."""
        age_ms = epoch_ms(now or self._clock()) - epoch_ms(last_activity)
        return age_ms > self._config.idle_threshold_seconds * 1000

    async def record_activity(
        self,
        now: datetime | None = None,
        project_id: str | None = None,
        *,
        force: bool = False,
    ) -> bool:
        """Persist the last-activity timestamp; returns False when throttled."""
        stamp = epoch_ms(now or self._clock())
        interval_ms = self._config.activity_persist_interval_seconds * 1000
        if not force and stamp - self._last_persisted_ms < interval_ms:
            return False
        self._last_persisted_ms = stamp
        await self._state.set(LAST_ACTIVITY_KEY, stamp)
        if project_id is not None:
            await self._state.set(LAST_PROJECT_KEY, project_id)
        return True

    async def last_activity(self) -> datetime | None:
        value = await self._state.get(LAST_ACTIVITY_KEY)
        if isinstance(value, bool) or not isinstance(value, int | float) or value <= 0:
            return None
        return from_epoch_ms(int(value))

    async def last_project_id(self) -> str | None:
        value = await self._state.get(LAST_PROJECT_KEY)
        return value if isinstance(value, str) and value else None
