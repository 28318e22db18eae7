"""CLI and entrypoint tests."""

from __future__ import annotations

import asyncio
import json
import runpy
from datetime import datetime
from pathlib import Path

import pytest
from typer.testing import CliRunner

from timetrack.cli import _do_watch, app
from timetrack.config import Config
from timetrack.data.project_index import project_id_for_path
from timetrack.services.container import ServiceContainer

from conftest import FakeClock, local


def _invoke(data_dir: Path, *args: str):  # type: ignore[no-untyped-def]
    return CliRunner().invoke(app, ["--data-dir", str(data_dir), *args])


def test_start_status_stop(tmp_path: Path, project_dir: Path) -> None:
    data_dir = tmp_path / "data"
    started = _invoke(data_dir, "start", str(project_dir), "review")
    assert started.exit_code == 0, started.output
    assert "Started 'review' on alpha" in started.output

    status = _invoke(data_dir, "status", str(project_dir))
    assert status.exit_code == 0
    assert "'review' running for" in status.output

    again = _invoke(data_dir, "start", str(project_dir), "other")
    assert again.exit_code == 1

    stopped = _invoke(data_dir, "stop", str(project_dir))
    assert stopped.exit_code == 0
    assert "Stopped 'review'" in stopped.output

    idle = _invoke(data_dir, "status", str(project_dir))
    assert "No timer is running." in idle.output


def test_switch(tmp_path: Path, project_dir: Path) -> None:
    data_dir = tmp_path / "data"
    _invoke(data_dir, "start", str(project_dir), "design")
    result = _invoke(data_dir, "switch", str(project_dir), "build")
    assert result.exit_code == 0, result.output
    assert "Switched from 'design' to 'build'" in result.output


def test_start_resolves_pending_with_end_option(tmp_path: Path, project_dir: Path) -> None:
    data_dir = tmp_path / "data"
    snapshot_file = data_dir / "projects" / f"{project_id_for_path(project_dir)}.json"
    snapshot_file.parent.mkdir(parents=True)
    start = datetime(2025, 3, 9, 14, 0, 0).astimezone()
    start_iso = start.astimezone().isoformat(timespec="milliseconds")
    snapshot_file.write_text(
        json.dumps(
            {
                "days": {
                    "2025-03-09": {
                        "totalSeconds": 0,
                        "tasks": {},
                        "entries": [{"task": "crashed", "start": start_iso, "seconds": 0}],
                    }
                },
                "version": 2,
            }
        ),
        encoding="utf-8",
    )

    listed = _invoke(data_dir, "pending", str(project_dir))
    assert "crashed" in listed.output

    result = _invoke(data_dir, "start", str(project_dir), "next", "--end", "15:30")
    assert result.exit_code == 0, result.output
    document = json.loads(snapshot_file.read_text())
    assert document["days"]["2025-03-09"]["totalSeconds"] == 90 * 60
    assert document["current"]["task"] == "next"


def test_projects_and_summary(tmp_path: Path, project_dir: Path) -> None:
    data_dir = tmp_path / "data"
    _invoke(data_dir, "start", str(project_dir), "review")
    _invoke(data_dir, "stop", str(project_dir))

    listed = _invoke(data_dir, "projects")
    assert listed.exit_code == 0
    assert project_id_for_path(project_dir) in listed.output

    today = datetime.now().astimezone().date().isoformat()
    summary = _invoke(data_dir, "summary", today, today)
    assert summary.exit_code == 0
    assert "alpha" in summary.output

    bad = _invoke(data_dir, "summary", today, "yesterday")
    assert bad.exit_code == 1


@pytest.mark.asyncio
async def test_start_recovers_abandoned_session(tmp_path: Path, project_dir: Path) -> None:
    data_dir = tmp_path / "data"
    crashed = await ServiceContainer.create(
        Config(data_dir=data_dir), clock=FakeClock(local(2025, 3, 10, 9, 0, 0))
    )
    try:
        await crashed.tracker.start(str(project_dir), "crashed-run")
    finally:
        await crashed.close()

    result = await asyncio.to_thread(_invoke, data_dir, "start", str(project_dir), "next")
    assert result.exit_code == 0, result.output
    assert "Stopped a timer abandoned by another process." in result.output

    snapshot_file = data_dir / "projects" / f"{project_id_for_path(project_dir)}.json"
    document = json.loads(snapshot_file.read_text())
    assert document["current"]["task"] == "next"
    abandoned = document["days"]["2025-03-10"]["entries"][0]
    assert abandoned["task"] == "crashed-run"
    assert abandoned["end"] == abandoned["start"]


def test_recover_without_session(tmp_path: Path, project_dir: Path) -> None:
    result = _invoke(tmp_path / "data", "recover", str(project_dir))
    assert result.exit_code == 0
    assert "Recovery: no_session" in result.output


@pytest.mark.asyncio
async def test_watch_ticks_owned_session(
    tmp_path: Path, project_dir: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    data_dir = tmp_path / "data"
    services = await ServiceContainer.create(Config(data_dir=data_dir))
    try:
        await services.tracker.start(str(project_dir), "review")
    finally:
        await services.close()

    await _do_watch(Config(data_dir=data_dir), str(project_dir), interval=0.01, max_ticks=2)
    assert "review: 0:00:0" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_watch_without_session(
    tmp_path: Path, project_dir: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    await _do_watch(Config(data_dir=tmp_path / "data"), str(project_dir), max_ticks=1)
    assert "No timer is running." in capsys.readouterr().out


def test_python_module_entrypoint_invokes_cli_app(monkeypatch: pytest.MonkeyPatch) -> None:
    called = {"count": 0}

    def fake_app() -> None:
        called["count"] += 1

    monkeypatch.setattr("timetrack.cli.app", fake_app)
    runpy.run_module("timetrack.__main__", run_name="__main__")
    assert called["count"] == 1
