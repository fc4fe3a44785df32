"""diyplan - calendar-aware scheduling for DIY projects."""

from .exceptions import (
    CircularDependencyError,
    DeadlineOrderError,
    DiyPlanError,
    InvalidTimeWindowError,
    ParseError,
    ValidationError,
)
from .loader import Plan, load_plan
from .resources import (
    AvailabilityWindow,
    DailyWindow,
    SiteConstraints,
    SkillLevel,
    Worker,
    WorkerType,
)
from .scheduler import (
    SchedulingConfig,
    SchedulingEngine,
    SchedulingInputs,
    SchedulingResult,
    SensitivityEstimator,
    Task,
    ThreePointEstimate,
    compute_schedule,
)
from .workflows import expand_workflow

__version__ = "0.1.0"

__all__ = [
    "AvailabilityWindow",
    "CircularDependencyError",
    "DailyWindow",
    "DeadlineOrderError",
    "DiyPlanError",
    "InvalidTimeWindowError",
    "ParseError",
    "Plan",
    "SchedulingConfig",
    "SchedulingEngine",
    "SchedulingInputs",
    "SchedulingResult",
    "SensitivityEstimator",
    "SiteConstraints",
    "SkillLevel",
    "Task",
    "ThreePointEstimate",
    "ValidationError",
    "Worker",
    "WorkerType",
    "compute_schedule",
    "expand_workflow",
    "load_plan",
]
