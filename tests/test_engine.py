"""End-to-end tests for the scheduling engine."""

from datetime import date, datetime, time
from zoneinfo import ZoneInfo

import pytest

from diyplan.exceptions import (
    CircularDependencyError,
    DeadlineOrderError,
    InvalidTimeWindowError,
    ValidationError,
)
from diyplan.resources import (
    DEFAULT_WORKER_ID,
    DEFAULT_WORKER_NAME,
    AllowedWorkHours,
    DailyWindow,
    SiteConstraints,
)
from diyplan.scheduler import (
    ScheduleTempo,
    SchedulingConfig,
    SchedulingEngine,
    UnscheduledReason,
    compute_schedule,
)
from tests.conftest import UTC, at, make_task, make_worker, window


class TestScenarios:
    """Small, fully worked scheduling scenarios."""

    def test_chain_on_one_worker(self, make_inputs):
        result = compute_schedule(make_inputs([make_task("a", 4), make_task("b", 4, "a")]))

        a, b = result.get("a"), result.get("b")
        assert (a.start_time, a.end_time) == (at(6, 9), at(6, 13))
        assert (b.start_time, b.end_time) == (at(6, 13), at(6, 17))
        assert a.worker_ids == b.worker_ids == ["alex"]
        assert result.is_complete

    def test_successor_moves_to_next_day_when_it_does_not_fit(self, make_inputs):
        tasks = [make_task("a", 4), make_task("b", 6, "a", min_contiguous_hours=6)]
        result = compute_schedule(make_inputs(tasks))

        b = result.get("b")
        assert (b.start_time, b.end_time) == (at(7, 9), at(7, 15))

    def test_weekends_only_worker_inside_weekday_deadline(self, make_inputs):
        """Mon 6 through Fri 10 January has no weekend, so nothing fits."""
        inputs = make_inputs(
            [make_task("a", 4)],
            workers=[make_worker("alex", weekends_only=True)],
            target_completion_date=date(2025, 1, 10),
            drop_dead_date=date(2025, 1, 10),
        )
        result = compute_schedule(inputs)

        assert result.scheduled_tasks == []
        assert result.unscheduled_tasks[0].task_id == "a"
        assert result.unscheduled_tasks[0].reason == UnscheduledReason.NO_WINDOW_BIG_ENOUGH
        assert not any(v.past_drop_dead for v in result.deadline_violations)
        assert any("could not be scheduled" in warning for warning in result.warnings)

    def test_overrun_lets_weekends_only_worker_finish_late(self, make_inputs):
        inputs = make_inputs(
            [make_task("a", 4)],
            workers=[make_worker("alex", weekends_only=True)],
            target_completion_date=date(2025, 1, 10),
            drop_dead_date=date(2025, 1, 10),
        )
        result = compute_schedule(inputs, SchedulingConfig(horizon_overrun_days=7))

        assert (result.get("a").start_time, result.get("a").end_time) == (at(11, 9), at(11, 13))
        assert result.deadline_violations[0].past_drop_dead

    def test_drop_dead_stops_placement(self, make_inputs):
        inputs = make_inputs(
            [make_task("a", 8), make_task("b", 8, "a")],
            target_completion_date=date(2025, 1, 6),
            drop_dead_date=date(2025, 1, 6),
        )
        result = compute_schedule(inputs)

        assert result.get("a").end_time == at(6, 17)
        assert [t.task_id for t in result.unscheduled_tasks] == ["b"]
        assert not result.is_complete

    def test_drop_dead_before_chain_can_finish(self, make_inputs):
        inputs = make_inputs(
            [make_task("a", 8), make_task("b", 8, "a")],
            target_completion_date=date(2025, 1, 6),
            drop_dead_date=date(2025, 1, 6),
        )
        result = compute_schedule(inputs, SchedulingConfig(horizon_overrun_days=7))

        assert result.get("b").end_time == at(7, 17)
        flagged = {violation.task_id for violation in result.deadline_violations}
        assert flagged == {"a", "b"}
        assert result.get("a").deadline_violated
        past_drop_dead = {v.task_id for v in result.deadline_violations if v.past_drop_dead}
        assert past_drop_dead == {"b"}
        assert not result.is_complete

    def test_two_worker_task_with_one_worker(self, make_inputs):
        result = compute_schedule(make_inputs([make_task("lift", 4, tags=["workers:2"])]))

        assert result.unscheduled_tasks[0].reason == UnscheduledReason.NO_CAPACITY

    def test_two_worker_task_waits_for_overlap(self, make_inputs):
        sam = make_worker("sam", availability=[window(at(7, 13), at(7, 17))])
        inputs = make_inputs(
            [make_task("lift", 8, tags=["workers:2"])], workers=[make_worker("alex"), sam]
        )
        result = compute_schedule(inputs)

        lift = result.get("lift")
        assert lift.worker_ids == ["alex", "sam"]
        assert (lift.start_time, lift.end_time) == (at(7, 13), at(7, 17))
        assert result.hours_by_worker() == {"alex": 4.0, "sam": 4.0}


class TestInvariants:
    """Properties that hold for every schedule."""

    @staticmethod
    def _project():
        return [
            make_task("demo", 6),
            make_task("frame", 10, "demo", min_contiguous_hours=2),
            make_task("plumb", 5, "frame"),
            make_task("wire", 7, "frame"),
            make_task("drywall", 12, "plumb", "wire", tags=["workers:2"]),
            make_task("paint", estimate=(4, 6, 9)),
            make_task("done", 0, "drywall", "paint"),
        ]

    @staticmethod
    def _workers():
        return [
            make_worker("alex", max_total_hours=30),
            make_worker("sam", hours=(13, 20), max_total_hours=20),
            make_worker("riley", helper=True, weekends_only=True),
        ]

    def test_starts_after_dependencies(self, make_inputs):
        tasks = self._project()
        result = compute_schedule(make_inputs(tasks, workers=self._workers()))

        for task in tasks:
            placed = result.get(task.id)
            if placed is None:
                continue
            for dep in task.dependencies:
                assert placed.start_time >= result.get(dep).end_time

    def test_capacity_never_exceeded(self, make_inputs):
        workers = self._workers()
        result = compute_schedule(make_inputs(self._project(), workers=workers))

        totals = result.hours_by_worker()
        for worker in workers:
            assert totals.get(worker.id, 0.0) <= worker.max_total_hours

    def test_capacity_limit_leaves_task_unscheduled(self, make_inputs):
        worker = make_worker("alex", max_total_hours=10)
        tasks = [make_task("a", 4), make_task("b", 4), make_task("c", 4)]
        result = compute_schedule(make_inputs(tasks, workers=[worker]))

        assert [t.task_id for t in result.scheduled_tasks] == ["a", "b"]
        assert result.unscheduled_tasks[0].reason == UnscheduledReason.NO_CAPACITY
        assert result.hours_by_worker() == {"alex": 8.0}

    def test_no_overlapping_chunks(self, make_inputs):
        result = compute_schedule(make_inputs(self._project(), workers=self._workers()))

        by_worker: dict[str, list] = {}
        for placed in result.scheduled_tasks:
            for chunk in placed.assignments:
                by_worker.setdefault(chunk.worker_id, []).append(chunk)
        for chunks in by_worker.values():
            chunks.sort(key=lambda chunk: chunk.start)
            for earlier, later in zip(chunks, chunks[1:], strict=False):
                assert earlier.end <= later.start

    def test_identical_inputs_give_identical_results(self, make_inputs):
        engine = SchedulingEngine()
        first = engine.compute_schedule(make_inputs(self._project(), workers=self._workers()))
        second = engine.compute_schedule(make_inputs(self._project(), workers=self._workers()))
        assert first == second
        assert [t.task_id for t in first.scheduled_tasks] == [
            t.task_id for t in second.scheduled_tasks
        ]

    def test_tempo_never_moves_completion_earlier_when_slower(self, make_inputs):
        tasks = [make_task("a", estimate=(2, 6, 14)), make_task("b", 3, "a")]
        finishes = [
            compute_schedule(make_inputs(tasks, schedule_tempo=tempo)).target_completion_date
            for tempo in (ScheduleTempo.FAST_TRACK, ScheduleTempo.STEADY, ScheduleTempo.EXTENDED)
        ]
        assert finishes[0] <= finishes[1] <= finishes[2]

    def test_results_ordered_by_start(self, make_inputs):
        result = compute_schedule(make_inputs(self._project(), workers=self._workers()))
        starts = [placed.start_time for placed in result.scheduled_tasks]
        assert starts == sorted(starts)


class TestProjectDates:
    """Tests for project-level results."""

    def test_completion_dates_and_critical_path(self, make_inputs):
        tasks = [make_task("a", 4), make_task("b", 4, "a"), make_task("c", 1)]
        workers = [make_worker("alex"), make_worker("sam")]
        result = compute_schedule(make_inputs(tasks, workers=workers))

        assert result.target_completion_date == at(6, 17)
        assert result.latest_completion_date == datetime(2025, 2, 15, tzinfo=UTC)
        assert result.critical_task_ids == ["a", "b"]
        assert result.topological_order == ["a", "b", "c"]

    def test_late_projection_warns(self, make_inputs):
        inputs = make_inputs([make_task("a", 12)], target_completion_date=date(2025, 1, 6))
        result = compute_schedule(inputs)

        assert result.target_completion_date == at(7, 13)
        assert any("after the target" in warning for warning in result.warnings)

    def test_unknown_dependency_warns(self, make_inputs):
        result = compute_schedule(make_inputs([make_task("a", 2, "already-done")]))

        assert result.get("a").start_time == at(6, 9)
        assert result.warnings == ["Task 'a' depends on unknown task(s) already-done - ignored"]

    def test_empty_request(self, make_inputs):
        result = compute_schedule(make_inputs([]))

        assert result.scheduled_tasks == []
        assert result.target_completion_date is None
        assert result.is_complete


class TestDefaults:
    """Tests for request-level defaults."""

    def test_default_owner_works_weekdays(self, make_inputs):
        """Friday start: 8h on Friday, the weekend skipped, the rest on Monday."""
        inputs = make_inputs([make_task("a", 12)], workers=[], start_time=at(10, 9))
        result = compute_schedule(inputs)

        placed = result.get("a")
        assert placed.worker_ids == [DEFAULT_WORKER_ID]
        assert placed.start_time == at(10, 9)
        assert placed.end_time == at(13, 13)

    def test_default_owner_name(self):
        engine = SchedulingEngine()
        roster = engine.validator.default_roster(at(6, 9))
        assert [(worker.id, worker.name) for worker in roster] == [
            (DEFAULT_WORKER_ID, DEFAULT_WORKER_NAME)
        ]

    def test_now_used_without_start_time(self, make_inputs):
        inputs = make_inputs([make_task("a", 2)], start_time=None)
        result = compute_schedule(inputs, now=at(8, 10))
        assert result.get("a").start_time == at(8, 10)

    def test_site_hours_apply(self, make_inputs):
        hours = DailyWindow(start=time(10), end=time(12))
        site = SiteConstraints(allowed_work_hours=AllowedWorkHours(weekdays=hours, weekends=hours))
        result = compute_schedule(make_inputs([make_task("a", 3)], site_constraints=site))

        placed = result.get("a")
        assert (placed.start_time, placed.end_time) == (at(6, 10), at(7, 11))

    def test_planning_mode_granularity(self, make_inputs):
        config = SchedulingConfig(granularity_minutes={"standard": 60})
        result = compute_schedule(make_inputs([make_task("a", 1.2)]), config=config)
        assert result.get("a").hours == 2.0


class TestDaylightSaving:
    """New York springs forward at 02:00 on Sunday 2025-03-09."""

    def test_chunk_lengths_are_real_hours(self, make_inputs):
        new_york = ZoneInfo("America/New_York")
        night = DailyWindow(start=time(0), end=time(23))
        site = SiteConstraints(
            allowed_work_hours=AllowedWorkHours(weekdays=night, weekends=night),
            allow_night_work=True,
        )
        inputs = make_inputs(
            [make_task("a", 4)],
            workers=[make_worker("alex", hours=(0, 23))],
            timezone="America/New_York",
            site_constraints=site,
            start_time=datetime(2025, 3, 9, 0, 30),
            target_completion_date=date(2025, 3, 14),
            drop_dead_date=date(2025, 3, 21),
        )
        result = compute_schedule(inputs)

        placed = result.get("a")
        assert placed.start_time == datetime(2025, 3, 9, 0, 30, tzinfo=new_york)
        assert placed.end_time == datetime(2025, 3, 9, 5, 30, tzinfo=new_york)
        assert (placed.end_time.hour, placed.end_time.minute) == (5, 30)
        assert result.hours_by_worker() == {"alex": 4.0}


class TestValidation:
    """Fatal request errors."""

    def test_cycle_rejected(self, make_inputs):
        with pytest.raises(CircularDependencyError):
            compute_schedule(make_inputs([make_task("a", 1, "b"), make_task("b", 1, "a")]))

    def test_target_after_drop_dead(self, make_inputs):
        inputs = make_inputs(
            [make_task("a", 1)],
            target_completion_date=date(2025, 3, 1),
            drop_dead_date=date(2025, 2, 1),
        )
        with pytest.raises(DeadlineOrderError):
            compute_schedule(inputs)

    def test_unknown_timezone(self, make_inputs):
        with pytest.raises(ValidationError, match="Unknown timezone"):
            compute_schedule(make_inputs([make_task("a", 1)], timezone="Mars/Olympus"))

    def test_worker_window_ends_before_start(self, make_inputs):
        workers = [make_worker("alex", hours=(17, 9))]
        with pytest.raises(InvalidTimeWindowError):
            compute_schedule(make_inputs([make_task("a", 1)], workers=workers))

    def test_availability_window_ends_before_start(self, make_inputs):
        workers = [make_worker("alex", availability=[window(at(7, 17), at(7, 9))])]
        with pytest.raises(InvalidTimeWindowError):
            compute_schedule(make_inputs([make_task("a", 1)], workers=workers))

    def test_duplicate_worker(self, make_inputs):
        workers = [make_worker("alex"), make_worker("alex")]
        with pytest.raises(ValidationError, match="Duplicate worker"):
            compute_schedule(make_inputs([make_task("a", 1)], workers=workers))

    def test_negative_hours(self, make_inputs):
        with pytest.raises(ValidationError, match="negative"):
            compute_schedule(make_inputs([make_task("a", -1)]))
