"""Tests for the forward/backward pass over a placed schedule."""

from datetime import datetime, timedelta

from diyplan.scheduler.core import ScheduledTask, Task
from diyplan.scheduler.graph import DependencyGraph
from diyplan.scheduler.slack import SlackCalculator
from tests.conftest import at, make_task


def _placed(task_id: str, start: datetime, end: datetime) -> ScheduledTask:
    return ScheduledTask(
        task_id=task_id,
        worker_ids=["alex"],
        start_time=start,
        end_time=end,
        hours=(end - start) / timedelta(hours=1),
    )


def _compute(tasks: list[Task], scheduled: list[ScheduledTask], drop_dead: datetime):
    graph = DependencyGraph.build(tasks)
    by_id = {placed.task_id: placed for placed in scheduled}
    spans = {
        task.id: (
            by_id[task.id].end_time - by_id[task.id].start_time
            if task.id in by_id
            else timedelta(hours=task.estimated_hours or 0)
        )
        for task in tasks
    }
    return SlackCalculator(drop_dead).compute(graph, by_id, spans)


class TestSlackCalculator:
    """Tests for target/latest completion and critical tasks."""

    def test_chain_with_room_to_spare(self):
        tasks = [make_task("a", 4), make_task("b", 4, "a"), make_task("c", 1)]
        scheduled = [
            _placed("a", at(6, 9), at(6, 13)),
            _placed("b", at(6, 13), at(6, 17)),
            _placed("c", at(6, 9), at(6, 10)),
        ]
        result = _compute(tasks, scheduled, at(7, 0))

        assert result.target_completion == {"a": at(6, 13), "b": at(6, 17), "c": at(6, 10)}
        assert result.latest_completion["b"] == at(7, 0)
        # a must leave b's 4h span before the drop-dead date
        assert result.latest_completion["a"] == at(6, 20)
        assert result.latest_completion["c"] == at(7, 0)
        assert result.violations == []
        assert result.critical_task_ids == ["a", "b"]

    def test_violations_are_flagged(self):
        tasks = [make_task("a", 4), make_task("b", 4, "a")]
        scheduled = [_placed("a", at(6, 9), at(6, 13)), _placed("b", at(6, 13), at(6, 17))]
        result = _compute(tasks, scheduled, at(6, 15))

        violations = {violation.task_id: violation for violation in result.violations}
        assert set(violations) == {"a", "b"}
        assert violations["a"].latest_allowed == at(6, 11)
        assert violations["a"].overrun == timedelta(hours=2)
        assert not violations["a"].past_drop_dead
        assert violations["b"].past_drop_dead

    def test_unscheduled_tasks_still_constrain_predecessors(self):
        """b was never placed, but its span still comes out of a's allowance."""
        tasks = [make_task("a", 4), make_task("b", 4, "a")]
        scheduled = [_placed("a", at(6, 9), at(6, 13))]
        result = _compute(tasks, scheduled, at(6, 17))

        assert "b" not in result.target_completion
        assert result.latest_completion["a"] == at(6, 13)
        assert result.violations == []
        assert result.critical_task_ids == ["a"]

    def test_target_never_precedes_dependency_target(self):
        tasks = [make_task("a", 4), make_task("done", 0, "a")]
        scheduled = [
            _placed("a", at(6, 9), at(6, 13)),
            _placed("done", at(6, 12), at(6, 12)),
        ]
        result = _compute(tasks, scheduled, at(7, 0))

        assert result.target_completion["done"] == at(6, 13)

    def test_empty_schedule(self):
        result = _compute([], [], at(7, 0))
        assert result.critical_task_ids == []
        assert result.violations == []
