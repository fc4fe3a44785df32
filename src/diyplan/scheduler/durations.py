"""Duration selection from three-point estimates."""

import math

from .config import PlanningMode, ScheduleTempo, SchedulingConfig
from .core import Task, ThreePointEstimate


def select_duration(
    estimate: ThreePointEstimate | None,
    tempo: ScheduleTempo,
    scale_factor: float = 1.0,
) -> float:
    """Pick hours from a three-point estimate according to tempo.

    fast_track takes the low estimate, steady the medium and extended the high.
    Missing values count as zero, so an empty estimate yields a zero-effort
    checkpoint.

    Args:
        estimate: Three-point estimate (may be None)
        tempo: Schedule tempo
        scale_factor: Size/quantity multiplier (e.g. square footage)

    Returns:
        Hours of work
    """
    if estimate is None:
        return 0.0

    if tempo == ScheduleTempo.FAST_TRACK:
        hours = estimate.low
    elif tempo == ScheduleTempo.EXTENDED:
        hours = estimate.high
    else:
        hours = estimate.medium

    return (hours or 0.0) * scale_factor


def round_to_granularity(hours: float, minutes: int) -> float:
    """Round hours up to a whole number of ``minutes``-long slots."""
    if hours <= 0 or minutes <= 0:
        return max(hours, 0.0)
    slots = math.ceil(round(hours * 60 / minutes, 6))
    return slots * minutes / 60


def resolve_task_hours(
    task: Task,
    tempo: ScheduleTempo,
    mode: PlanningMode,
    config: SchedulingConfig | None = None,
) -> float:
    """Resolve a task's person-hours for this run.

    Explicit ``estimated_hours`` wins over the three-point estimate. The planning
    mode then rounds the result up to its granularity.
    """
    config = config or SchedulingConfig()
    if task.estimated_hours is not None:
        hours = task.estimated_hours
    else:
        hours = select_duration(task.estimate, tempo, task.scale_factor)
    return round_to_granularity(hours, config.granularity_minutes.get(mode, 0))
