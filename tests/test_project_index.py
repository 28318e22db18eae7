"""Tests for the project index and activity log."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from timetrack.data.activity_log import ActivityLogStore
from timetrack.data.project_index import (
    ProjectIndexStore,
    normalize_path,
    project_id_for_path,
    project_name_from_path,
)

from conftest import FakeClock, local


@pytest.fixture
def index(tmp_path: Path, clock: FakeClock) -> ProjectIndexStore:
    return ProjectIndexStore(tmp_path / "projects-index.json", clock=clock)


@pytest.fixture
def activity_log(tmp_path: Path) -> ActivityLogStore:
    return ActivityLogStore(tmp_path / "activity-log.json")


class TestProjectIds:
    def test_id_is_deterministic(self, project_dir: Path) -> None:
        assert project_id_for_path(project_dir) == project_id_for_path(str(project_dir))
        assert len(project_id_for_path(project_dir)) == 12

    def test_trailing_separator_and_relative_paths_normalize(
        self, project_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(project_dir.parent)
        assert normalize_path("alpha") == normalize_path(f"{project_dir}/")
        assert project_id_for_path("alpha") == project_id_for_path(project_dir)

    def test_name_is_last_segment(self, project_dir: Path) -> None:
        assert project_name_from_path(project_dir) == "alpha"


class TestProjectIndexStore:
    def test_upsert_creates_once(self, index: ProjectIndexStore, project_dir: Path) -> None:
        first = index.upsert(project_dir)
        second = index.upsert(str(project_dir))
        assert first == second
        assert first.id == project_id_for_path(project_dir)
        assert first.name == "alpha"
        assert len(index.list_projects()) == 1

    def test_upsert_updates_changed_name(
        self, index: ProjectIndexStore, project_dir: Path
    ) -> None:
        index.upsert(project_dir)
        renamed = index.upsert(project_dir, "Alpha Client")
        assert renamed.name == "Alpha Client"
        assert index.find_by_path(project_dir).name == "Alpha Client"  # type: ignore[union-attr]

    def test_file_format(self, index: ProjectIndexStore, project_dir: Path, tmp_path: Path) -> None:
        index.upsert(project_dir)
        document = json.loads((tmp_path / "projects-index.json").read_text())
        assert document["version"] == 1
        assert set(document["projects"][0]) == {"id", "path", "name", "lastUsed"}

    def test_touch_usage(
        self, index: ProjectIndexStore, project_dir: Path
    ) -> None:
        entry = index.upsert(project_dir)
        touched = index.touch_usage(entry.id, local(2025, 4, 1, 12, 0, 0))
        assert touched is not None
        assert index.find_by_id(entry.id).last_used == touched.last_used  # type: ignore[union-attr]
        assert index.touch_usage("missing", local(2025, 4, 1)) is None

    def test_relocate_keeps_id(
        self, index: ProjectIndexStore, project_dir: Path, tmp_path: Path
    ) -> None:
        entry = index.upsert(project_dir)
        moved = tmp_path / "elsewhere" / "alpha"
        relocated = index.relocate(entry.id, moved)
        assert relocated is not None
        assert relocated.id == entry.id
        assert index.resolve_id(moved) == entry.id
        assert index.find_by_path(project_dir) is None

    def test_resolve_unknown_path_uses_hash(
        self, index: ProjectIndexStore, tmp_path: Path
    ) -> None:
        assert index.resolve_id(tmp_path / "unknown") == project_id_for_path(tmp_path / "unknown")

    def test_remove(self, index: ProjectIndexStore, project_dir: Path) -> None:
        entry = index.upsert(project_dir)
        assert index.remove(entry.id) is True
        assert index.remove(entry.id) is False
        assert index.find_by_id(entry.id) is None

    def test_two_writers_merge(
        self, tmp_path: Path, clock: FakeClock, project_dir: Path
    ) -> None:
        first = ProjectIndexStore(tmp_path / "projects-index.json", clock=clock)
        second = ProjectIndexStore(tmp_path / "projects-index.json", clock=clock)
        first.upsert(project_dir)
        second.upsert(tmp_path / "work" / "beta")
        assert {p.name for p in first.list_projects()} == {"alpha", "beta"}


class TestActivityLog:
    def test_record_dedupes(self, activity_log: ActivityLogStore) -> None:
        assert activity_log.record("p1", "2025-01-05") is True
        assert activity_log.record("p1", "2025-01-05") is False
        assert len(activity_log.load().entries) == 1

    def test_projects_touched_between_is_inclusive(self, activity_log: ActivityLogStore) -> None:
        activity_log.record("late", "2025-02-01")
        activity_log.record("end", "2025-01-31")
        activity_log.record("early", "2024-12-31")
        activity_log.record("start", "2025-01-01")
        activity_log.record("mid", "2025-01-15")
        activity_log.record("mid", "2025-01-16")

        touched = activity_log.projects_touched_between("2025-01-01", "2025-01-31")
        assert touched == {"start", "mid", "end"}

    def test_insertion_order_does_not_matter(self, tmp_path: Path) -> None:
        pairs = [("a", "2025-01-03"), ("b", "2025-02-10"), ("c", "2025-01-20")]
        forward = ActivityLogStore(tmp_path / "forward.json")
        backward = ActivityLogStore(tmp_path / "backward.json")
        for project_id, day in pairs:
            forward.record(project_id, day)
        for project_id, day in reversed(pairs):
            backward.record(project_id, day)
        assert forward.projects_touched_between(
            "2025-01-01", "2025-01-31"
        ) == backward.projects_touched_between("2025-01-01", "2025-01-31")

    def test_file_format(self, activity_log: ActivityLogStore, tmp_path: Path) -> None:
        activity_log.record("p1", "2025-01-05")
        document = json.loads((tmp_path / "activity-log.json").read_text())
        assert document == {"version": 1, "entries": [{"date": "2025-01-05", "projectId": "p1"}]}

    def test_days_for_and_forget(self, activity_log: ActivityLogStore) -> None:
        activity_log.record_many("p1", ["2025-01-07", "2025-01-05"])
        activity_log.record("p2", "2025-01-06")
        assert activity_log.days_for("p1") == ["2025-01-05", "2025-01-07"]
        assert activity_log.forget_project("p1") == 2
        assert activity_log.projects_touched_between("2025-01-01", "2025-12-31") == {"p2"}
