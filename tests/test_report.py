"""Tests for text and CSV renderings of a schedule."""

import csv
from datetime import date, timedelta
from pathlib import Path

import pytest

from diyplan.report import (
    build_agendas,
    export_schedule_csv,
    format_agenda,
    format_duration,
    format_finish_date,
    format_schedule,
    format_sensitivity,
)
from diyplan.scheduler import SchedulingConfig, compute_schedule
from diyplan.scheduler.sensitivity import DecisionSensitivity, TaskSensitivity
from tests.conftest import at, make_task, make_worker

TODAY = date(2025, 1, 6)


@pytest.fixture
def tasks():
    return [
        make_task("demo", 4, title="Tear out vanity"),
        make_task("frame", 6, "demo", title="Frame niche"),
        make_task("lift", 2, tags=["workers:2"]),
    ]


@pytest.fixture
def result(make_inputs, tasks):
    return compute_schedule(make_inputs(tasks))


class TestFinishDate:
    @pytest.mark.parametrize(
        ("finish", "expected"),
        [
            (None, "Not scheduled"),
            (date(2025, 1, 5), "Overdue"),
            (date(2025, 1, 6), "Today"),
            (at(7, 15), "Tomorrow"),
            (date(2025, 1, 9), "In 3 days"),
            (date(2025, 1, 13), "In 1 week"),
            (date(2025, 1, 20), "In 2 weeks"),
            (date(2025, 2, 5), "Feb 5, 2025"),
        ],
    )
    def test_phrasing(self, finish, expected):
        assert format_finish_date(finish, TODAY) == expected


class TestDuration:
    @pytest.mark.parametrize(
        ("delta", "expected"),
        [
            (None, "-"),
            (timedelta(0), "+0m"),
            (timedelta(days=2, hours=3), "+2d 3h"),
            (-timedelta(minutes=45), "-45m"),
            (timedelta(hours=1, minutes=30), "+1h 30m"),
        ],
    )
    def test_format(self, delta, expected):
        assert format_duration(delta) == expected


class TestScheduleReport:
    def test_rows_and_titles(self, result, tasks):
        report = format_schedule(result, tasks, today=TODAY)
        lines = report.splitlines()

        assert lines[0] == "Schedule Results"
        demo_row = next(line for line in lines if line.startswith("demo "))
        assert "2025-01-06 09:00" in demo_row
        assert "2025-01-06 13:00" in demo_row
        assert demo_row.endswith(" *")
        assert "  Tear out vanity" in lines

    def test_problems_and_summary(self, result, tasks):
        report = format_schedule(result, tasks, today=TODAY)

        assert "Unscheduled:" in report
        assert "  lift [no_capacity]" in report
        assert "Projected completion: 2025-01-07 11:00 (Tomorrow)" in report
        assert "Critical tasks (*):   demo, frame" in report

    def test_late_tasks_are_marked(self, make_inputs):
        inputs = make_inputs(
            [make_task("a", 8), make_task("b", 8, "a")],
            target_completion_date=date(2025, 1, 6),
            drop_dead_date=date(2025, 1, 6),
        )
        report = format_schedule(compute_schedule(inputs, SchedulingConfig(horizon_overrun_days=7)))

        assert "Deadline violations:" in report
        assert "b: finishes 2025-01-07 17:00, +17h past drop-dead date" in report
        assert " LATE" in report


class TestAgenda:
    def test_groups_chunks_by_worker_and_day(self, result, tasks):
        agendas = build_agendas(result, tasks)
        items = agendas["alex"]

        assert [(item.task_id, item.start, item.end) for item in items] == [
            ("demo", at(6, 9), at(6, 13)),
            ("frame", at(6, 13), at(6, 17)),
            ("frame", at(7, 9), at(7, 11)),
        ]

        text = format_agenda(make_worker("alex"), items)
        assert text.splitlines()[0] == "Agenda for Alex (alex)"
        assert "Monday 2025-01-06" in text
        assert "  09:00-13:00  Tear out vanity (4.0h)" in text
        assert "Tuesday 2025-01-07" in text
        assert text.endswith("Total: 10.0h")

    def test_window_filter(self, result, tasks):
        agendas = build_agendas(result, tasks, start=at(7, 0), end=at(8, 0))
        assert [item.start for item in agendas["alex"]] == [at(7, 9)]

    def test_empty_agenda(self):
        text = format_agenda(make_worker("sam"), [])
        assert "Nothing scheduled" in text


class TestSensitivityReport:
    def test_tables(self):
        decisions = [
            DecisionSensitivity("schedule_tempo", "steady", -0.5, 1.25, ["extended"]),
        ]
        tasks = [
            TaskSensitivity("tile", "Set tile", 2.0, 8.0, 0.7),
            TaskSensitivity("cure", "Cure thinset", 24.0, 24.0, 0.9, is_fixed=True),
        ]
        text = format_sensitivity(decisions, tasks)

        assert "schedule_tempo   steady         -0.5 to +1.2 days" in text
        assert "leaves tasks unscheduled: extended" in text
        assert "confidence 70%" in text
        assert text.splitlines()[-1].endswith("(fixed)")


class TestCsvExport:
    def test_export(self, tmp_path: Path, result):
        path = tmp_path / "schedule.csv"
        export_schedule_csv(result, path)

        with path.open(newline="") as f:
            rows = list(csv.DictReader(f))

        assert [row["task_id"] for row in rows] == ["demo", "frame"]
        assert rows[0]["workers"] == "alex"
        assert rows[0]["start"] == "2025-01-06T09:00:00+00:00"
        assert rows[1]["hours"] == "6"
        assert rows[1]["violated"] == "no"
