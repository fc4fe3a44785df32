"""Plan file loading: YAML -> validated schemas -> scheduling request."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from .exceptions import ParseError
from .logger import get_logger
from .scheduler.config import RiskTolerance, SchedulingConfig, load_config
from .scheduler.core import SchedulingInputs, Task
from .schemas import PlanSchema
from .workflows import expand_workflow

logger = get_logger()


@dataclass
class Plan:
    """A loaded plan: the request plus the settings that travel with it."""

    path: Path
    inputs: SchedulingInputs
    config: SchedulingConfig
    risk_tolerance: RiskTolerance


def read_plan_data(path: Path | str) -> dict[str, Any]:
    """Read a plan file into a raw mapping."""
    path = Path(path)
    if not path.exists():
        raise ParseError(f"File not found: {path}")

    try:
        with path.open(encoding="utf-8") as f:
            data: Any = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ParseError(f"Failed to parse YAML: {e}") from e

    if not isinstance(data, dict):
        raise ParseError("YAML must contain a dictionary at the root level")
    return data  # type: ignore[return-value]


def parse_plan(data: dict[str, Any], path: Path | None = None) -> Plan:
    """Validate raw plan data and build the scheduling request.

    Explicit tasks come first, followed by any tasks expanded from the workflow
    section.

    Raises:
        ParseError: If the data does not match the plan schema
    """
    try:
        schema = PlanSchema.model_validate(data)
        config = SchedulingConfig.model_validate(schema.scheduler or {})
    except PydanticValidationError as e:
        raise ParseError(f"Invalid plan: {e}") from e

    project = schema.project
    tasks: list[Task] = [task.to_task() for task in schema.tasks]
    if schema.workflow is not None:
        tasks.extend(
            expand_workflow(
                schema.workflow.phases,
                schema.workflow.spaces,
                project.completion_priority,
                schema.workflow.completed_steps,
            )
        )
    logger.debug(f"Loaded {len(tasks)} tasks and {len(schema.workers)} workers")

    inputs = SchedulingInputs(
        target_completion_date=project.target_completion_date,
        drop_dead_date=project.drop_dead_date,
        tasks=tasks,
        workers=list(schema.workers),
        timezone=project.timezone,
        site_constraints=schema.site,
        blackout_dates=list(project.blackout_dates),
        schedule_tempo=project.schedule_tempo,
        prefer_helpers=project.prefer_helpers,
        mode=project.mode,
        completion_priority=project.completion_priority,
        start_time=project.start_time,
        horizon_end=project.horizon_end,
    )
    return Plan(
        path=path or Path("plan.yaml"),
        inputs=inputs,
        config=config,
        risk_tolerance=project.risk_tolerance,
    )


def load_plan(path: Path | str, config_path: Path | None = None) -> Plan:
    """Load a plan file.

    Args:
        path: Path to the plan YAML file
        config_path: Optional standalone scheduler config that replaces the plan's
            own ``scheduler`` section

    Returns:
        Plan with a ready-to-run SchedulingInputs

    Raises:
        ParseError: If the file is missing or invalid
    """
    path = Path(path)
    plan = parse_plan(read_plan_data(path), path)
    if config_path is not None:
        try:
            plan.config = load_config(config_path)
        except FileNotFoundError as e:
            raise ParseError(str(e)) from e
    return plan
