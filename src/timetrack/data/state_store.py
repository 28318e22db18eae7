"""Machine-wide key/value state shared by every timetrack process."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

import aiosqlite

if TYPE_CHECKING:
    from pathlib import Path
    from types import TracebackType

logger = logging.getLogger(__name__)

LAST_ACTIVITY_KEY = "timetrack.lastActivity"
LAST_PROJECT_KEY = "timetrack.lastProjectId"

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS state (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
)
"""


class StateStore:
    """Async SQLite key/value store using aiosqlite.

    Values are stored JSON-encoded. WAL journaling lets several processes read
    while one writes.
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
        self._conn: aiosqlite.Connection | None = None

    async def __aenter__(self) -> StateStore:
        await self.connect()
        return self

    async def connect(self) -> StateStore:
        """Connect to SQLite and ensure schema."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(str(self._db_path))
        await self._conn.execute("PRAGMA journal_mode=WAL")
        await self._conn.execute("PRAGMA synchronous=NORMAL")
        await self._conn.execute("PRAGMA busy_timeout=5000")
        await self._conn.execute(SCHEMA_SQL)
        await self._conn.commit()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the SQLite connection."""
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            msg = "State store not connected. Use 'async with StateStore(path) as store:'"
            raise RuntimeError(msg)
        return self._conn

    async def get(self, key: str, default: Any = None) -> Any:
        cursor = await self.conn.execute("SELECT value FROM state WHERE key = ?", (key,))
        row = await cursor.fetchone()
        if row is None:
            return default
        try:
            return json.loads(row[0])
        except json.JSONDecodeError:
            logger.warning("Discarding unreadable state value for %s", key)
            return default

    async def set(self, key: str, value: Any) -> None:
        await self.conn.execute(
            "INSERT OR REPLACE INTO state (key, value) VALUES (?, ?)",
            (key, json.dumps(value)),
        )
        await self.conn.commit()

    async def delete(self, key: str) -> None:
        await self.conn.execute("DELETE FROM state WHERE key = ?", (key,))
        await self.conn.commit()
