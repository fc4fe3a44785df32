"""Critical path and slack computation over a placed schedule."""

from datetime import datetime, timedelta

from diyplan.logger import get_logger

from .core import DeadlineViolation, ScheduledTask, SlackResult
from .graph import DependencyGraph

logger = get_logger()

# Slack values this close to the minimum still count as critical
CRITICAL_TOLERANCE = timedelta(minutes=1)


class SlackCalculator:
    """Forward/backward pass critical-path method in calendar time.

    The forward pass propagates actual scheduled finish times along the
    dependency chain. The backward pass walks the graph in reverse topological
    order from the drop-dead date: a task must finish by the drop-dead date and
    before the latest start of every successor.
    """

    def __init__(self, drop_dead_date: datetime):
        self.drop_dead_date = drop_dead_date

    def compute(
        self,
        graph: DependencyGraph,
        scheduled: dict[str, ScheduledTask],
        spans: dict[str, timedelta],
    ) -> SlackResult:
        """Compute target/latest completion, violations and critical tasks.

        Args:
            graph: Validated dependency graph
            scheduled: Placed tasks by ID (unscheduled tasks are absent)
            spans: Calendar span per task ID, used by the backward pass

        Returns:
            SlackResult for all tasks
        """
        target = self._forward_pass(graph, scheduled)
        latest = self._backward_pass(graph, spans)

        violations: list[DeadlineViolation] = []
        slack: dict[str, timedelta] = {}
        for task_id in graph.topological_order():
            if task_id not in target:
                continue
            slack[task_id] = latest[task_id] - target[task_id]
            if target[task_id] > latest[task_id]:
                violation = DeadlineViolation(
                    task_id=task_id,
                    finish=target[task_id],
                    latest_allowed=latest[task_id],
                    past_drop_dead=target[task_id] > self.drop_dead_date,
                )
                violations.append(violation)
                logger.placement(
                    f"  Task {task_id} finishes {violation.overrun} after its latest "
                    f"allowable completion"
                )

        critical: list[str] = []
        if slack:
            min_slack = min(slack.values())
            critical = [
                task_id
                for task_id in graph.topological_order()
                if task_id in slack and slack[task_id] - min_slack <= CRITICAL_TOLERANCE
            ]

        return SlackResult(
            target_completion=target,
            latest_completion=latest,
            violations=violations,
            critical_task_ids=critical,
        )

    def _forward_pass(
        self, graph: DependencyGraph, scheduled: dict[str, ScheduledTask]
    ) -> dict[str, datetime]:
        target: dict[str, datetime] = {}
        for task_id in graph.topological_order():
            task = scheduled.get(task_id)
            if task is None:
                continue
            finish = task.end_time
            for dep_id in graph.predecessors(task_id):
                if dep_id in target:
                    finish = max(finish, target[dep_id])
            target[task_id] = finish
        return target

    def _backward_pass(
        self, graph: DependencyGraph, spans: dict[str, timedelta]
    ) -> dict[str, datetime]:
        latest_finish: dict[str, datetime] = {}
        latest_start: dict[str, datetime] = {}
        for task_id in graph.reverse_topological_order():
            finish = self.drop_dead_date
            for succ_id in graph.successors(task_id):
                finish = min(finish, latest_start[succ_id])
            latest_finish[task_id] = finish
            latest_start[task_id] = finish - spans.get(task_id, timedelta(0))
        return latest_finish
