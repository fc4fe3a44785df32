"""Scheduler package - calendar scheduling of DIY project tasks onto workers.

This package turns interdependent tasks, a worker roster and site calendar
constraints into a time-phased schedule:
- Duration selection from three-point estimates (schedule tempo, planning mode)
- Dependency graph with deterministic topological ordering and cycle detection
- Availability resolution into per-worker free intervals
- Greedy earliest-finish assignment with contiguous-block chunking
- Forward/backward pass slack and deadline checks

Main entry points:
- SchedulingEngine / compute_schedule: Compute a schedule from SchedulingInputs
- SensitivityEstimator: What-if analysis on top of the engine
- write_snapshot / read_snapshot: Persist a computed schedule

Configuration:
- SchedulingConfig: Engine-wide settings (granularity, horizon, sensitivity)
"""

# Assignment and availability
from .assigner import TaskAssigner, plan_chunks
from .availability import AvailabilityResolver, Interval, IntervalSet

# Configuration
from .config import (
    CompletionPriority,
    PlanningMode,
    RiskTolerance,
    ScheduleTempo,
    SchedulingConfig,
    SensitivityConfig,
    load_config,
)

# Core dataclasses
from .core import (
    DeadlineViolation,
    ScheduledTask,
    SchedulingInputs,
    SchedulingResult,
    Task,
    TaskMetadata,
    ThreePointEstimate,
    UnscheduledReason,
    UnscheduledTask,
    WorkAssignment,
)

# Durations
from .durations import resolve_task_hours, select_duration

# Dependency graph
from .graph import DependencyGraph

# Sensitivity analysis
from .sensitivity import DecisionSensitivity, SensitivityEstimator, TaskSensitivity

# Engine
from .service import SchedulingEngine, compute_schedule

# Slack
from .slack import SlackCalculator

# Snapshot files
from .snapshot import ScheduleSnapshot, is_stale, read_snapshot, write_snapshot

# Input validation
from .validator import SchedulerInputValidator

__all__ = [
    # Core dataclasses
    "Task",
    "TaskMetadata",
    "ThreePointEstimate",
    "SchedulingInputs",
    "ScheduledTask",
    "WorkAssignment",
    "UnscheduledTask",
    "UnscheduledReason",
    "DeadlineViolation",
    "SchedulingResult",
    # Configuration
    "SchedulingConfig",
    "SensitivityConfig",
    "ScheduleTempo",
    "PlanningMode",
    "CompletionPriority",
    "RiskTolerance",
    "load_config",
    # Components
    "select_duration",
    "resolve_task_hours",
    "DependencyGraph",
    "Interval",
    "IntervalSet",
    "AvailabilityResolver",
    "TaskAssigner",
    "plan_chunks",
    "SlackCalculator",
    "SchedulerInputValidator",
    # Engine
    "SchedulingEngine",
    "compute_schedule",
    # Sensitivity
    "SensitivityEstimator",
    "DecisionSensitivity",
    "TaskSensitivity",
    # Snapshots
    "ScheduleSnapshot",
    "write_snapshot",
    "read_snapshot",
    "is_stale",
]
