"""Core dataclasses for the scheduling engine."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from enum import Enum

from diyplan.resources import SiteConstraints, Worker

from .config import CompletionPriority, PlanningMode, ScheduleTempo

WORKERS_TAG = re.compile(r"^workers:(\d+)$")


def _default_str_list() -> list[str]:
    return []


def elapsed(start: datetime, end: datetime) -> timedelta:
    """Real time between two aware datetimes, across any UTC offset change."""
    return end.astimezone(timezone.utc) - start.astimezone(timezone.utc)


@dataclass(frozen=True)
class ThreePointEstimate:
    """Optimistic / most likely / pessimistic hours for a piece of work."""

    low: float | None = None
    medium: float | None = None
    high: float | None = None


@dataclass(frozen=True)
class TaskMetadata:
    """Structured task metadata used for multiplicity and batching."""

    space_id: str | None = None
    space_priority: int | None = None
    workers_needed: int = 1


@dataclass
class Task:
    """A unit of work to be scheduled."""

    id: str
    title: str = ""
    estimated_hours: float | None = None  # Already tempo-resolved hours, if known
    estimate: ThreePointEstimate | None = None  # Used when estimated_hours is None
    min_contiguous_hours: float = 0.0
    dependencies: list[str] = field(default_factory=_default_str_list)
    tags: list[str] = field(default_factory=_default_str_list)
    confidence: float | None = None  # Advisory only
    metadata: TaskMetadata | None = None
    scale_factor: float = 1.0  # Size/quantity multiplier applied to estimate hours

    @property
    def workers_needed(self) -> int:
        """Workers required simultaneously, from metadata, then tags, else 1."""
        if self.metadata is not None:
            return max(1, self.metadata.workers_needed)
        for tag in self.tags:
            match = WORKERS_TAG.match(tag)
            if match:
                return max(1, int(match.group(1)))
        return 1


@dataclass
class SchedulingInputs:
    """One-shot request bundle for the engine."""

    target_completion_date: datetime
    drop_dead_date: datetime
    tasks: list[Task]
    workers: list[Worker] = field(default_factory=list[Worker])
    timezone: str = "UTC"
    site_constraints: SiteConstraints = field(default_factory=SiteConstraints)
    blackout_dates: list[date] = field(default_factory=list[date])
    schedule_tempo: ScheduleTempo = ScheduleTempo.STEADY
    prefer_helpers: bool = False
    mode: PlanningMode = PlanningMode.STANDARD
    completion_priority: CompletionPriority = CompletionPriority.AGILE
    start_time: datetime | None = None  # Anchor; defaults to "now"
    horizon_end: datetime | None = None  # Defaults to drop-dead plus configured overrun


class UnscheduledReason(str, Enum):
    """Why a task could not be placed."""

    NO_CAPACITY = "no_capacity"
    NO_WINDOW_BIG_ENOUGH = "no_window_big_enough"
    DEPENDENCY_UNMET_BEFORE_DEADLINE = "dependency_unmet_before_deadline"


@dataclass(frozen=True)
class WorkAssignment:
    """One contiguous chunk of work by one worker."""

    worker_id: str
    start: datetime
    end: datetime

    @property
    def hours(self) -> float:
        return elapsed(self.start, self.end) / timedelta(hours=1)


@dataclass
class ScheduledTask:
    """A task that has been placed on the calendar."""

    task_id: str
    worker_ids: list[str]
    start_time: datetime
    end_time: datetime
    hours: float  # Person-hours placed
    assignments: list[WorkAssignment] = field(default_factory=list[WorkAssignment])
    target_completion_date: datetime | None = None  # Forward pass
    latest_completion_date: datetime | None = None  # Backward pass from drop-dead
    deadline_violated: bool = False

    @property
    def slack(self) -> timedelta | None:
        """Latest minus target completion; negative means late."""
        if self.target_completion_date is None or self.latest_completion_date is None:
            return None
        return elapsed(self.target_completion_date, self.latest_completion_date)

    @property
    def is_milestone(self) -> bool:
        return not self.assignments


@dataclass(frozen=True)
class UnscheduledTask:
    """Diagnostic for a task the assigner could not place."""

    task_id: str
    reason: UnscheduledReason
    detail: str


@dataclass(frozen=True)
class DeadlineViolation:
    """A task finishing after its latest allowable completion."""

    task_id: str
    finish: datetime
    latest_allowed: datetime
    past_drop_dead: bool

    @property
    def overrun(self) -> timedelta:
        return elapsed(self.latest_allowed, self.finish)


@dataclass
class AssignmentResult:
    """Output of the task-to-worker assigner."""

    scheduled: dict[str, ScheduledTask]
    unscheduled: list[UnscheduledTask]


@dataclass
class SlackResult:
    """Output of the critical path / slack calculator."""

    target_completion: dict[str, datetime]
    latest_completion: dict[str, datetime]
    violations: list[DeadlineViolation]
    critical_task_ids: list[str]


@dataclass
class SchedulingResult:
    """Complete result of a scheduling run."""

    scheduled_tasks: list[ScheduledTask]
    unscheduled_tasks: list[UnscheduledTask] = field(default_factory=list[UnscheduledTask])
    deadline_violations: list[DeadlineViolation] = field(default_factory=list[DeadlineViolation])
    target_completion_date: datetime | None = None
    latest_completion_date: datetime | None = None
    critical_task_ids: list[str] = field(default_factory=_default_str_list)
    topological_order: list[str] = field(default_factory=_default_str_list)
    warnings: list[str] = field(default_factory=_default_str_list)

    @property
    def is_complete(self) -> bool:
        """True if every task was placed and no deadline is violated."""
        return not self.unscheduled_tasks and not self.deadline_violations

    def get(self, task_id: str) -> ScheduledTask | None:
        """Look up a scheduled task by ID."""
        for task in self.scheduled_tasks:
            if task.task_id == task_id:
                return task
        return None

    def hours_by_worker(self) -> dict[str, float]:
        """Total assigned hours per worker across the schedule."""
        totals: dict[str, float] = {}
        for task in self.scheduled_tasks:
            for chunk in task.assignments:
                totals[chunk.worker_id] = totals.get(chunk.worker_id, 0.0) + chunk.hours
        return totals
