"""Scheduling engine: the single entry point for computing a schedule."""

from dataclasses import replace
from datetime import datetime, timedelta, tzinfo

from diyplan.logger import get_logger

from .assigner import TaskAssigner
from .availability import AvailabilityResolver, IntervalSet, to_utc
from .config import SchedulingConfig
from .core import (
    DeadlineViolation,
    ScheduledTask,
    SchedulingInputs,
    SchedulingResult,
    UnscheduledTask,
    WorkAssignment,
)
from .durations import resolve_task_hours
from .graph import DependencyGraph
from .slack import SlackCalculator
from .validator import NormalizedInputs, SchedulerInputValidator

logger = get_logger()


class SchedulingEngine:
    """Computes a time-phased schedule from a scheduling request.

    This engine coordinates:
    - SchedulerInputValidator (fatal input checks, date normalization)
    - Duration selection (tempo and planning-mode resolution)
    - DependencyGraph (cycle check, stable topological order)
    - AvailabilityResolver (free intervals per worker)
    - TaskAssigner (placement onto workers)
    - SlackCalculator (target/latest completion, deadline violations)

    The engine keeps no state between calls; every call builds its own
    working structures and discards them afterwards.
    """

    def __init__(self, config: SchedulingConfig | None = None):
        self.config = config or SchedulingConfig()
        self.validator = SchedulerInputValidator(self.config)

    def compute_schedule(
        self, inputs: SchedulingInputs, now: datetime | None = None
    ) -> SchedulingResult:
        """Compute a schedule.

        Args:
            inputs: The scheduling request
            now: Anchor to use when ``inputs.start_time`` is not set (defaults to the
                current time)

        Returns:
            SchedulingResult with placed tasks, diagnostics and project dates

        Raises:
            ValidationError: If the request is malformed or contains a dependency cycle
        """
        normalized = self.validator.validate(inputs, now)
        graph = DependencyGraph.build(inputs.tasks)
        tasks = {task.id: task for task in inputs.tasks}

        hours = {
            task.id: resolve_task_hours(task, inputs.schedule_tempo, inputs.mode, self.config)
            for task in inputs.tasks
        }
        logger.debug(f"Resolved durations ({inputs.schedule_tempo.value}): {hours}")

        resolver = AvailabilityResolver(
            site_constraints=inputs.site_constraints,
            blackout_dates=inputs.blackout_dates,
            tz=normalized.tz,
            anchor=normalized.anchor,
            config=self.config,
        )
        free_time: dict[str, IntervalSet] = {
            worker.id: resolver.resolve(worker, normalized.anchor, normalized.horizon_end)
            for worker in normalized.workers
        }

        assigner = TaskAssigner(
            normalized.workers,
            free_time,
            horizon_start=to_utc(normalized.anchor, normalized.tz),
            prefer_helpers=inputs.prefer_helpers,
            tz=normalized.tz,
        )
        assignment = assigner.assign(graph, tasks, hours)

        spans: dict[str, timedelta] = {}
        for task_id, task in tasks.items():
            placed = assignment.scheduled.get(task_id)
            if placed is not None:
                spans[task_id] = placed.end_time - placed.start_time
            else:
                spans[task_id] = timedelta(hours=hours[task_id] / task.workers_needed)

        drop_dead = to_utc(normalized.drop_dead_date, normalized.tz)
        slack = SlackCalculator(drop_dead).compute(graph, assignment.scheduled, spans)

        violated = {violation.task_id for violation in slack.violations}
        for task_id, placed in assignment.scheduled.items():
            placed.target_completion_date = slack.target_completion[task_id]
            placed.latest_completion_date = slack.latest_completion[task_id]
            placed.deadline_violated = task_id in violated
        violations = [
            replace(
                violation,
                finish=violation.finish.astimezone(normalized.tz),
                latest_allowed=violation.latest_allowed.astimezone(normalized.tz),
            )
            for violation in slack.violations
        ]

        position = {task_id: i for i, task_id in enumerate(graph.topological_order())}
        ordered: list[ScheduledTask] = sorted(
            assignment.scheduled.values(),
            key=lambda placed: (placed.start_time, position[placed.task_id]),
        )

        target_dates = [p.target_completion_date for p in ordered if p.target_completion_date]
        latest_dates = [p.latest_completion_date for p in ordered if p.latest_completion_date]
        project_target = max(target_dates) if target_dates else None
        project_latest = max(latest_dates) if latest_dates else None

        # Ordering and maxima above are on UTC instants; report in the request zone
        for placed in ordered:
            _to_zone(placed, normalized.tz)
        if project_target is not None:
            project_target = project_target.astimezone(normalized.tz)
        if project_latest is not None:
            project_latest = project_latest.astimezone(normalized.tz)

        warnings = self._collect_warnings(
            graph, assignment.unscheduled, violations, project_target, normalized
        )

        return SchedulingResult(
            scheduled_tasks=ordered,
            unscheduled_tasks=list(assignment.unscheduled),
            deadline_violations=violations,
            target_completion_date=project_target,
            latest_completion_date=project_latest,
            critical_task_ids=slack.critical_task_ids,
            topological_order=graph.topological_order(),
            warnings=warnings,
        )

    def _collect_warnings(  # noqa: PLR0913 - gathers every problem source in one place
        self,
        graph: DependencyGraph,
        unscheduled: list[UnscheduledTask],
        violations: list[DeadlineViolation],
        project_target: datetime | None,
        normalized: NormalizedInputs,
    ) -> list[str]:
        warnings: list[str] = []
        for task_id, missing in graph.unknown_dependencies.items():
            warnings.append(
                f"Task '{task_id}' depends on unknown task(s) {', '.join(missing)} - ignored"
            )
        for diagnostic in unscheduled:
            warnings.append(
                f"Task '{diagnostic.task_id}' could not be scheduled "
                f"({diagnostic.reason.value}): {diagnostic.detail}"
            )
        for violation in violations:
            where = "drop-dead date" if violation.past_drop_dead else "latest allowable completion"
            warnings.append(
                f"Task '{violation.task_id}' finishes {violation.overrun} after its {where} "
                f"({violation.finish:%Y-%m-%d %H:%M} vs {violation.latest_allowed:%Y-%m-%d %H:%M})"
            )
        if project_target is not None and project_target > normalized.target_completion_date:
            warnings.append(
                f"Projected completion {project_target:%Y-%m-%d %H:%M} is after the target "
                f"completion date {normalized.target_completion_date:%Y-%m-%d %H:%M}"
            )
        return warnings


def _to_zone(placed: ScheduledTask, tz: tzinfo) -> None:
    """Express a placed task's times in the request timezone."""
    placed.start_time = placed.start_time.astimezone(tz)
    placed.end_time = placed.end_time.astimezone(tz)
    placed.assignments = [
        WorkAssignment(chunk.worker_id, chunk.start.astimezone(tz), chunk.end.astimezone(tz))
        for chunk in placed.assignments
    ]
    if placed.target_completion_date is not None:
        placed.target_completion_date = placed.target_completion_date.astimezone(tz)
    if placed.latest_completion_date is not None:
        placed.latest_completion_date = placed.latest_completion_date.astimezone(tz)


def compute_schedule(
    inputs: SchedulingInputs,
    config: SchedulingConfig | None = None,
    now: datetime | None = None,
) -> SchedulingResult:
    """Compute a schedule with a fresh engine. See SchedulingEngine.compute_schedule."""
    return SchedulingEngine(config).compute_schedule(inputs, now)
