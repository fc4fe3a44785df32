"""Configuration classes for the scheduling engine."""

from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from diyplan.exceptions import ParseError


class ScheduleTempo(str, Enum):
    """Bias used to resolve a three-point estimate into one duration."""

    FAST_TRACK = "fast_track"  # Optimistic (low) estimate
    STEADY = "steady"  # Most likely (medium) estimate
    EXTENDED = "extended"  # Pessimistic (high) estimate


class PlanningMode(str, Enum):
    """Planning granularity. Changes duration rounding, never correctness."""

    QUICK = "quick"
    STANDARD = "standard"
    DETAILED = "detailed"


class CompletionPriority(str, Enum):
    """Dependency-construction policy across spaces."""

    AGILE = "agile"  # Single-piece flow: finish one space before the next
    WATERFALL = "waterfall"  # Batch flow: same step across all spaces first


class RiskTolerance(str, Enum):
    """How much contingency the planner wants on top of estimates."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def _default_granularity() -> dict[PlanningMode, int]:
    return {
        PlanningMode.QUICK: 60,
        PlanningMode.STANDARD: 30,
        PlanningMode.DETAILED: 15,
    }


def _default_risk_multipliers() -> dict[RiskTolerance, float]:
    return {
        RiskTolerance.LOW: 1.25,
        RiskTolerance.MEDIUM: 1.1,
        RiskTolerance.HIGH: 1.0,
    }


class SensitivityConfig(BaseModel):
    """Configuration for what-if sensitivity analysis."""

    # Multipliers applied to each worker's daily working window
    hours_factors: list[float] = Field(default_factory=lambda: [0.5, 0.75, 1.25, 1.5])
    risk_multipliers: dict[RiskTolerance, float] = Field(default_factory=_default_risk_multipliers)
    # Fallback range when a task carries no three-point estimate
    min_duration_factor: float = 0.7
    max_duration_factor: float = 1.5
    # Titles containing these words are fixed waits (curing, drying)
    fixed_duration_keywords: list[str] = Field(
        default_factory=lambda: ["cure", "curing", "dry", "drying", "set"]
    )
    top_tasks: int = 15


class SchedulingConfig(BaseModel):
    """Engine-wide knobs that are not part of a single request."""

    # Minutes each planning mode rounds durations up to
    granularity_minutes: dict[PlanningMode, int] = Field(default_factory=_default_granularity)
    # Days of availability generated for workers without explicit windows
    default_availability_days: int = 90
    # Days past the drop-dead date placement may still use; 0 stops at drop-dead
    horizon_overrun_days: int = 0
    # Schedules older than this are considered stale
    freshness_hours: float = 24.0
    # Confidence assumed for tasks that do not state one
    default_confidence: float = 0.7

    sensitivity: SensitivityConfig = SensitivityConfig()


def load_config(config_path: Path | str) -> SchedulingConfig:
    """Load a scheduling configuration from a YAML file.

    The file may either hold the settings at top level or under a ``scheduler`` key,
    so a plan file can double as its own config.

    Args:
        config_path: Path to the YAML file

    Returns:
        Validated SchedulingConfig

    Raises:
        FileNotFoundError: If the file does not exist
        ParseError: If the file is empty or invalid
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with config_path.open() as f:
        data: Any = yaml.safe_load(f)

    if not data:
        raise ParseError(f"Empty configuration file: {config_path}")
    if not isinstance(data, dict):
        raise ParseError(f"Invalid configuration format in {config_path}: expected a mapping")

    section = data.get("scheduler", data)
    try:
        return SchedulingConfig.model_validate(section)
    except ValueError as e:
        raise ParseError(f"Invalid scheduler configuration in {config_path}: {e}") from e
