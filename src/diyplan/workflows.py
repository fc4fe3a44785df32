"""Workflow expansion: project template steps x spaces -> schedulable tasks.

A project template is a list of phases, each holding operations made of
ordered steps. Every remaining step is instantiated once per space (room or
area), and the completion priority decides how the copies depend on each
other:

- agile: single-piece flow, step N of a space waits for step N-1 of that space
- waterfall: batch flow, step N of space M waits for step N of space M-1
"""

from __future__ import annotations

from collections.abc import Iterable

from pydantic import BaseModel, Field

from diyplan.logger import get_logger
from diyplan.scheduler.config import CompletionPriority
from diyplan.scheduler.core import Task, TaskMetadata, ThreePointEstimate

logger = get_logger()

# Hours assumed for a step without a time estimate
DEFAULT_STEP_ESTIMATE = ThreePointEstimate(low=1.0, medium=2.0, high=3.0)
# Longest block a step ever insists on working without interruption
MAX_MIN_CONTIGUOUS_HOURS = 2.0
# Spaces without a priority sort after every prioritized space
UNPRIORITIZED = 999
DEFAULT_SPACE = "main"


class StepEstimate(BaseModel):
    low: float | None = Field(default=None, ge=0)
    medium: float | None = Field(default=None, ge=0)
    high: float | None = Field(default=None, ge=0)


class WorkflowStep(BaseModel):
    """One step of an operation, e.g. "Sand floor"."""

    id: str
    title: str
    estimate: StepEstimate | None = None
    scaling_unit: str | None = None  # e.g. "sqft"; looked up in the space sizing
    workers_needed: int = Field(default=1, ge=1)


class Operation(BaseModel):
    id: str
    steps: list[WorkflowStep] = Field(default_factory=list[WorkflowStep])


class Phase(BaseModel):
    id: str
    name: str = ""
    is_standard: bool = False  # Kickoff/planning/ordering/close phases are not scheduled
    operations: list[Operation] = Field(default_factory=list[Operation])


class Space(BaseModel):
    """A room or area the project template is applied to."""

    id: str
    name: str = ""
    priority: int | None = None
    sizing: dict[str, float] = Field(default_factory=dict[str, float])

    @property
    def display_name(self) -> str:
        return self.name or self.id


def _resolve_estimate(step: WorkflowStep) -> ThreePointEstimate:
    if step.estimate is None:
        return DEFAULT_STEP_ESTIMATE
    return ThreePointEstimate(
        low=step.estimate.low if step.estimate.low is not None else DEFAULT_STEP_ESTIMATE.low,
        medium=(
            step.estimate.medium
            if step.estimate.medium is not None
            else DEFAULT_STEP_ESTIMATE.medium
        ),
        high=step.estimate.high if step.estimate.high is not None else DEFAULT_STEP_ESTIMATE.high,
    )


def order_spaces(spaces: Iterable[Space]) -> list[Space]:
    """Spaces by priority, unprioritized last, ties kept in input order."""
    return sorted(
        spaces, key=lambda space: space.priority if space.priority is not None else UNPRIORITIZED
    )


def step_task_id(operation_id: str, step_index: int, space_id: str) -> str:
    return f"{operation_id}-step-{step_index}-space-{space_id}"


def expand_workflow(
    phases: Iterable[Phase],
    spaces: Iterable[Space],
    completion_priority: CompletionPriority = CompletionPriority.AGILE,
    completed_step_ids: Iterable[str] | None = None,
) -> list[Task]:
    """Expand template phases across spaces into engine tasks.

    Completed steps are skipped but keep their index, so a dependency on a
    completed step points outside the task set and is ignored by the engine.

    Args:
        phases: Template phases in order
        spaces: Spaces the template applies to (a single "main" space when empty)
        completion_priority: Dependency-construction policy
        completed_step_ids: Step IDs that are already done

    Returns:
        Tasks sorted by space priority
    """
    completed = set(completed_step_ids or [])
    ordered = order_spaces(spaces) or [Space(id=DEFAULT_SPACE, name="Main", priority=1)]
    tasks: list[Task] = []

    for phase in phases:
        if phase.is_standard:
            logger.debug(f"  Skipping standard phase {phase.id}")
            continue
        for operation in phase.operations:
            for step_index, step in enumerate(operation.steps):
                if step.id in completed:
                    logger.debug(f"  Skipping completed step {step.id}")
                    continue
                for space_index, space in enumerate(ordered):
                    task = _build_task(
                        phase,
                        operation,
                        step,
                        step_index,
                        ordered,
                        space_index,
                        completion_priority,
                    )
                    tasks.append(task)

    # Stable, so template order is kept within a priority
    tasks.sort(key=lambda task: task.metadata.space_priority if task.metadata else UNPRIORITIZED)
    logger.debug(f"Expanded workflow into {len(tasks)} tasks ({completion_priority.value})")
    return tasks


def _build_task(  # noqa: PLR0913 - one call per step/space pair
    phase: Phase,
    operation: Operation,
    step: WorkflowStep,
    step_index: int,
    spaces: list[Space],
    space_index: int,
    completion_priority: CompletionPriority,
) -> Task:
    space = spaces[space_index]
    space_priority = space.priority if space.priority is not None else space_index + 1

    scale = 1.0
    if step.scaling_unit and space.sizing.get(step.scaling_unit):
        scale = space.sizing[step.scaling_unit]

    estimate = _resolve_estimate(step)
    medium_hours = (estimate.medium or 0.0) * scale

    dependencies: list[str] = []
    if completion_priority == CompletionPriority.AGILE:
        if step_index > 0:
            dependencies.append(step_task_id(operation.id, step_index - 1, space.id))
    elif space_index > 0:
        dependencies.append(step_task_id(operation.id, step_index, spaces[space_index - 1].id))

    return Task(
        id=step_task_id(operation.id, step_index, space.id),
        title=f"{step.title} - {space.display_name}",
        estimate=estimate,
        scale_factor=scale,
        min_contiguous_hours=min(medium_hours, MAX_MIN_CONTIGUOUS_HOURS),
        dependencies=dependencies,
        tags=[
            f"space:{space.id}",
            f"priority:{space_priority}",
            f"phase:{phase.id}",
            f"workers:{step.workers_needed}",
        ],
        metadata=TaskMetadata(
            space_id=space.id,
            space_priority=space_priority,
            workers_needed=step.workers_needed,
        ),
    )
