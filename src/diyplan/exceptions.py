"""Custom exceptions for diyplan."""


class DiyPlanError(Exception):
    """Base exception for all diyplan errors."""

    pass


class ValidationError(DiyPlanError):
    """Raised when scheduling inputs fail validation."""

    pass


class CircularDependencyError(ValidationError):
    """Raised when a circular dependency is detected.

    Attributes:
        task_id: One task that sits on the cycle
        cycle: Task IDs forming the cycle, first element repeated at the end
    """

    def __init__(self, task_id: str, cycle: list[str] | None = None):
        self.task_id = task_id
        self.cycle = cycle or [task_id]
        path = " -> ".join(self.cycle)
        super().__init__(f"Circular dependency detected involving task '{task_id}': {path}")


class InvalidTimeWindowError(ValidationError):
    """Raised when a time window ends before it starts."""

    pass


class DeadlineOrderError(ValidationError):
    """Raised when the target completion date is later than the drop-dead date."""

    pass


class ParseError(DiyPlanError):
    """Raised when a plan or schedule file cannot be parsed."""

    pass
