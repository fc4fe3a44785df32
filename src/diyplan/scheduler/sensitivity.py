"""What-if sensitivity analysis on top of the scheduling engine.

Decision sensitivity re-runs the engine with one planning decision changed at
a time (schedule tempo, daily working hours, risk contingency) and reports how
far the projected completion moves. Task sensitivity ranks tasks by how much
their own duration could vary.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from datetime import datetime, time, timedelta

from diyplan.logger import get_logger
from diyplan.resources import AvailabilityWindow, DailyWindow, Worker

from .availability import localize
from .config import RiskTolerance, ScheduleTempo, SchedulingConfig
from .core import SchedulingInputs, SchedulingResult, Task, elapsed
from .durations import resolve_task_hours
from .service import SchedulingEngine
from .validator import SchedulerInputValidator

logger = get_logger()

DAY = timedelta(days=1)
LAST_MINUTE = 23 * 60 + 59


@dataclass
class DecisionSensitivity:
    """Completion-date shift range for one planning decision."""

    parameter: str
    base_value: str
    low_impact_days: float
    high_impact_days: float
    # Variants that left more tasks unscheduled than the base run
    infeasible_variants: list[str] = field(default_factory=list[str])

    @property
    def impact_range(self) -> float:
        return self.high_impact_days - self.low_impact_days


@dataclass
class TaskSensitivity:
    """Duration uncertainty for one task."""

    task_id: str
    title: str
    min_hours: float
    max_hours: float
    confidence: float
    is_fixed: bool = False

    @property
    def impact_range(self) -> float:
        return self.max_hours - self.min_hours


def scale_daily_window(window: DailyWindow, factor: float) -> DailyWindow:
    """Stretch or shrink a daily window from its start, never past 23:59."""
    start = window.start.hour * 60 + window.start.minute
    length = window.end.hour * 60 + window.end.minute - start
    end = min(start + round(length * factor), LAST_MINUTE)
    return DailyWindow(start=window.start, end=time(end // 60, end % 60))


def scale_worker_hours(worker: Worker, factor: float) -> Worker:
    """Copy of ``worker`` with its working window and explicit windows scaled."""

    def scale(window: AvailabilityWindow) -> AvailabilityWindow:
        return AvailabilityWindow(
            start=window.start, end=window.start + (window.end - window.start) * factor
        )

    availability: list[AvailabilityWindow] | dict = worker.availability
    if isinstance(worker.availability, dict):
        availability = {
            day: [scale(window) for window in windows]
            for day, windows in worker.availability.items()
        }
    else:
        availability = [scale(window) for window in worker.availability]

    return worker.model_copy(
        update={
            "working_hours": scale_daily_window(worker.working_hours, factor),
            "availability": availability,
        }
    )


def scale_task(task: Task, multiplier: float) -> Task:
    """Copy of ``task`` with its effort multiplied."""
    hours = task.estimated_hours * multiplier if task.estimated_hours is not None else None
    return replace(task, estimated_hours=hours, scale_factor=task.scale_factor * multiplier)


class SensitivityEstimator:
    """Runs what-if variants of a scheduling request.

    Every variant is pinned to the same anchor and roster as the base request
    so that only the perturbed decision changes between runs. The base run
    carries the planner's own risk contingency; ``tasks`` keeps the unscaled
    tasks that risk variants are rebuilt from.
    """

    def __init__(
        self,
        inputs: SchedulingInputs,
        config: SchedulingConfig | None = None,
        engine: SchedulingEngine | None = None,
        *,
        risk_tolerance: RiskTolerance = RiskTolerance.MEDIUM,
        now: datetime | None = None,
    ):
        """Initialize the estimator.

        Args:
            inputs: Base scheduling request
            config: Scheduling configuration
            engine: Engine to run variants on (defaults to a new engine)
            risk_tolerance: The planner's current risk tolerance
            now: Anchor used when the request has no start_time
        """
        self.config = config or SchedulingConfig()
        self.engine = engine or SchedulingEngine(self.config)
        self.risk_tolerance = risk_tolerance

        validator = SchedulerInputValidator(self.config)
        tz = validator.parse_timezone(inputs.timezone)
        anchor = localize(inputs.start_time or now or datetime.now(tz), tz)
        workers = list(inputs.workers) or validator.default_roster(anchor)
        self.tasks = list(inputs.tasks)
        self.inputs = replace(
            inputs,
            start_time=anchor,
            workers=workers,
            tasks=self._with_risk(self.risk_multiplier(risk_tolerance)),
        )

    def risk_multiplier(self, level: RiskTolerance) -> float:
        return self.config.sensitivity.risk_multipliers.get(level, 1.0)

    def _with_risk(self, multiplier: float) -> list[Task]:
        return [scale_task(task, multiplier) for task in self.tasks]

    def run(self, inputs: SchedulingInputs | None = None) -> SchedulingResult:
        """Schedule the base request, or a variant of it."""
        return self.engine.compute_schedule(inputs or self.inputs)

    def decision_sensitivity(
        self, base_result: SchedulingResult | None = None
    ) -> list[DecisionSensitivity]:
        """Completion shifts for tempo, working hours and risk tolerance.

        Args:
            base_result: Result of the base request (computed when omitted)

        Returns:
            One entry per decision, largest impact range first
        """
        base = base_result or self.run()
        hours_per_day = sum(worker.working_hours.hours for worker in self.inputs.workers)

        tempo_variants = {
            tempo.value: replace(self.inputs, schedule_tempo=tempo)
            for tempo in (ScheduleTempo.FAST_TRACK, ScheduleTempo.EXTENDED)
        }
        hours_variants = {
            f"{factor:g}x": replace(
                self.inputs,
                workers=[scale_worker_hours(w, factor) for w in self.inputs.workers],
            )
            for factor in self.config.sensitivity.hours_factors
        }
        risk_variants = {
            level.value: replace(self.inputs, tasks=self._with_risk(multiplier))
            for level, multiplier in self.config.sensitivity.risk_multipliers.items()
        }

        base_tempo = self.inputs.schedule_tempo.value
        entries = [
            self._evaluate("schedule_tempo", base_tempo, base, tempo_variants),
            self._evaluate("daily_hours", f"{hours_per_day:g}h/day", base, hours_variants),
            self._evaluate("risk_tolerance", self.risk_tolerance.value, base, risk_variants),
        ]
        entries.sort(key=lambda entry: entry.impact_range, reverse=True)
        return entries

    def _evaluate(
        self,
        parameter: str,
        base_value: str,
        base: SchedulingResult,
        variants: dict[str, SchedulingInputs],
    ) -> DecisionSensitivity:
        shifts: list[float] = []
        infeasible: list[str] = []
        for label, variant in variants.items():
            result = self.run(variant)
            if len(result.unscheduled_tasks) > len(base.unscheduled_tasks):
                infeasible.append(label)
                logger.candidate(f"  {parameter}={label}: more tasks unscheduled than base")
                continue
            shift = self._shift_days(base, result)
            logger.candidate(f"  {parameter}={label}: {shift:+.1f} days")
            shifts.append(shift)

        return DecisionSensitivity(
            parameter=parameter,
            base_value=base_value,
            low_impact_days=min(shifts, default=0.0),
            high_impact_days=max(shifts, default=0.0),
            infeasible_variants=infeasible,
        )

    def _shift_days(self, base: SchedulingResult, variant: SchedulingResult) -> float:
        if base.target_completion_date is None or variant.target_completion_date is None:
            return 0.0
        return elapsed(base.target_completion_date, variant.target_completion_date) / DAY

    def is_fixed_duration(self, task: Task) -> bool:
        """True if the task title names a fixed wait such as curing or drying."""
        words = set(re.findall(r"[a-z]+", task.title.lower()))
        return any(keyword in words for keyword in self.config.sensitivity.fixed_duration_keywords)

    def task_sensitivity(self, tasks: list[Task] | None = None) -> list[TaskSensitivity]:
        """Rank tasks by duration uncertainty.

        The range comes from the three-point low/high when both are present, and
        from the configured factors around the resolved duration otherwise.
        Fixed waits have no range.

        Args:
            tasks: Tasks to rank (defaults to the request's tasks)

        Returns:
            The most uncertain tasks, largest range first
        """
        settings = self.config.sensitivity
        entries: list[TaskSensitivity] = []
        for task in tasks if tasks is not None else self.tasks:
            resolved = resolve_task_hours(
                task, self.inputs.schedule_tempo, self.inputs.mode, self.config
            )
            confidence = (
                task.confidence if task.confidence is not None else self.config.default_confidence
            )
            fixed = self.is_fixed_duration(task)
            estimate = task.estimate
            if fixed:
                low = high = resolved
            elif estimate is not None and estimate.low is not None and estimate.high is not None:
                low = estimate.low * task.scale_factor
                high = estimate.high * task.scale_factor
            else:
                low = resolved * settings.min_duration_factor
                high = resolved * settings.max_duration_factor

            entries.append(
                TaskSensitivity(
                    task_id=task.id,
                    title=task.title,
                    min_hours=low,
                    max_hours=high,
                    confidence=confidence,
                    is_fixed=fixed,
                )
            )

        entries.sort(key=lambda entry: entry.impact_range, reverse=True)
        return entries[: settings.top_tasks]
