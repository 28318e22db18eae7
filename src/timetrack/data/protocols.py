"""Protocol definitions for data access."""

from __future__ import annotations

from typing import Any, Protocol


class KeyValueStoreProtocol(Protocol):
    """Async key/value persistence visible to every process."""

    async def get(self, key: str, default: Any = None) -> Any: ...

    async def set(self, key: str, value: Any) -> None: ...

    async def delete(self, key: str) -> None: ...
