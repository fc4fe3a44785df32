"""Tests for schedule snapshot files."""

from datetime import timedelta
from pathlib import Path

import pytest

from diyplan.exceptions import ParseError
from diyplan.scheduler import UnscheduledReason, compute_schedule
from diyplan.scheduler.snapshot import (
    SNAPSHOT_FILE_VERSION,
    is_stale,
    read_snapshot,
    write_snapshot,
)
from tests.conftest import MONDAY, at, make_task, make_worker


@pytest.fixture
def result(make_inputs):
    """Two placed tasks, one split over two days, and one that cannot fit."""
    tasks = [
        make_task("demo", 6),
        make_task("frame", 4, "demo"),
        make_task("lift", 2, tags=["workers:2"]),
    ]
    return compute_schedule(make_inputs(tasks, workers=[make_worker("alex")]))


def write_text(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "schedule.snapshot.yaml"
    path.write_text(content)
    return path


class TestWriteSnapshot:
    """Tests for writing and reading back a snapshot."""

    def test_round_trip(self, tmp_path: Path, result):
        path = tmp_path / "schedule.snapshot.yaml"
        write_snapshot(path, result, generated_at=MONDAY)

        snapshot = read_snapshot(path)
        assert snapshot.version == SNAPSHOT_FILE_VERSION
        assert snapshot.generated_at == MONDAY
        assert snapshot.target_completion_date == result.target_completion_date
        assert snapshot.latest_completion_date == result.latest_completion_date
        assert set(snapshot.tasks) == {"demo", "frame"}

        frame = snapshot.tasks["frame"]
        assert frame.start_time == at(6, 15)
        assert frame.end_time == at(7, 11)
        assert frame.workers == ["alex"]
        assert frame.chunks == [
            ("alex", at(6, 15), at(6, 17)),
            ("alex", at(7, 9), at(7, 11)),
        ]
        assert snapshot.unscheduled == {"lift": UnscheduledReason.NO_CAPACITY}

    def test_to_result(self, tmp_path: Path, result):
        path = tmp_path / "schedule.snapshot.yaml"
        write_snapshot(path, result, generated_at=MONDAY)

        restored = read_snapshot(path).to_result()
        assert [task.task_id for task in restored.scheduled_tasks] == ["demo", "frame"]
        assert restored.get("frame").hours == 4.0
        assert restored.get("frame").assignments == result.get("frame").assignments
        assert restored.unscheduled_tasks[0].reason == UnscheduledReason.NO_CAPACITY
        assert restored.target_completion_date == result.target_completion_date
        assert restored.hours_by_worker() == result.hours_by_worker()

    def test_file_is_readable_yaml(self, tmp_path: Path, result):
        path = tmp_path / "schedule.snapshot.yaml"
        write_snapshot(path, result, generated_at=MONDAY)

        content = path.read_text()
        assert content.startswith("version: 1\n")
        assert "alex@2025-01-06T09:00:00+00:00/2025-01-06T15:00:00+00:00" in content


class TestStaleness:
    def test_never_generated_is_stale(self):
        assert is_stale(None, MONDAY)

    def test_fresh_within_window(self):
        assert not is_stale(MONDAY, MONDAY + timedelta(hours=23))

    def test_stale_after_window(self):
        assert is_stale(MONDAY, MONDAY + timedelta(hours=25))

    def test_stale_exactly_at_window(self):
        assert is_stale(MONDAY, MONDAY + timedelta(hours=24))

    def test_custom_window(self, tmp_path: Path, result):
        path = tmp_path / "schedule.snapshot.yaml"
        write_snapshot(path, result, generated_at=MONDAY)
        snapshot = read_snapshot(path)

        assert snapshot.is_stale(MONDAY + timedelta(hours=2), freshness_hours=1)
        assert not snapshot.is_stale(MONDAY + timedelta(hours=2), freshness_hours=3)


class TestReadSnapshotErrors:
    """Tests for rejecting malformed snapshot files."""

    def test_not_a_mapping(self, tmp_path: Path):
        with pytest.raises(ParseError, match="expected dict"):
            read_snapshot(write_text(tmp_path, "- a\n- b\n"))

    def test_missing_version(self, tmp_path: Path):
        with pytest.raises(ParseError, match="missing 'version'"):
            read_snapshot(write_text(tmp_path, "generated_at: 2025-01-06T09:00:00\n"))

    def test_unsupported_version(self, tmp_path: Path):
        with pytest.raises(ParseError, match="Unsupported snapshot version 2"):
            read_snapshot(write_text(tmp_path, "version: 2\n"))

    def test_missing_generated_at(self, tmp_path: Path):
        with pytest.raises(ParseError, match="generated_at"):
            read_snapshot(write_text(tmp_path, "version: 1\n"))

    def test_missing_task_times(self, tmp_path: Path):
        content = "version: 1\ngenerated_at: '2025-01-06T09:00:00+00:00'\ntasks:\n  a: {}\n"
        with pytest.raises(ParseError, match="missing start_time"):
            read_snapshot(write_text(tmp_path, content))

    def test_bad_chunk(self, tmp_path: Path):
        content = (
            "version: 1\n"
            "generated_at: '2025-01-06T09:00:00+00:00'\n"
            "tasks:\n"
            "  a:\n"
            "    start_time: '2025-01-06T09:00:00+00:00'\n"
            "    end_time: '2025-01-06T10:00:00+00:00'\n"
            "    chunks: ['alex 9 to 10']\n"
        )
        with pytest.raises(ParseError, match="expected worker@start/end"):
            read_snapshot(write_text(tmp_path, content))

    def test_unknown_reason(self, tmp_path: Path):
        content = (
            "version: 1\n"
            "generated_at: '2025-01-06T09:00:00+00:00'\n"
            "unscheduled:\n"
            "  a: too_hard\n"
        )
        with pytest.raises(ParseError, match="Unknown unscheduled reason"):
            read_snapshot(write_text(tmp_path, content))
