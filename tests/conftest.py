"""Shared fixtures for timetrack tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from timetrack.config import Config
from timetrack.data.state_store import StateStore
from timetrack.services.container import ServiceContainer


def local(year: int, month: int, day: int, hour: int = 0, minute: int = 0, second: int = 0) -> datetime:
    """Timezone-aware local datetime."""
    return datetime(year, month, day, hour, minute, second).astimezone()


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now += timedelta(seconds=seconds)
        return self.now

    def set(self, now: datetime) -> datetime:
        self.now = now
        return now


@pytest.fixture
def config(tmp_path: Path) -> Config:
    """Config pointing at a temporary data directory."""
    return Config(data_dir=tmp_path / "data", idle_threshold_seconds=300)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(local(2025, 3, 10, 9, 0, 0))


@pytest.fixture
def other_clock() -> FakeClock:
    """Clock for a second process, so it can drift from the first."""
    return FakeClock(local(2025, 3, 10, 9, 0, 0))


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    path = tmp_path / "work" / "alpha"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def messages() -> list[str]:
    return []


@pytest.fixture
async def container(
    config: Config, clock: FakeClock, messages: list[str]
) -> AsyncGenerator[ServiceContainer]:
    """Services for one process."""
    services = await ServiceContainer.create(config, clock=clock, notify=messages.append)
    yield services  # type: ignore[misc]
    await services.close()


@pytest.fixture
async def other_container(
    config: Config, other_clock: FakeClock
) -> AsyncGenerator[ServiceContainer]:
    """Services for a second process sharing the same data directory."""
    services = await ServiceContainer.create(config, clock=other_clock)
    yield services  # type: ignore[misc]
    await services.close()


@pytest.fixture
async def state_store(tmp_path: Path) -> AsyncGenerator[StateStore]:
    store = StateStore(tmp_path / "state.db")
    await store.__aenter__()
    yield store  # type: ignore[misc]
    await store.__aexit__(None, None, None)
