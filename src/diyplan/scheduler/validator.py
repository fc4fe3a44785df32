"""Input validation and normalization for a scheduling request."""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from diyplan.exceptions import DeadlineOrderError, InvalidTimeWindowError, ValidationError
from diyplan.logger import get_logger
from diyplan.resources import (
    AvailabilityWindow,
    DailyWindow,
    Worker,
    create_default_worker,
    is_weekend,
)

from .availability import localize
from .config import SchedulingConfig
from .core import SchedulingInputs

logger = get_logger()


@dataclass
class NormalizedInputs:
    """Validated request values, all expressed in the request timezone."""

    tz: tzinfo
    anchor: datetime
    target_completion_date: datetime
    drop_dead_date: datetime
    horizon_end: datetime
    workers: list[Worker]


def as_datetime(value: date | datetime, tz: tzinfo) -> datetime:
    """Convert a date or datetime into an aware datetime in ``tz``.

    A bare date means the end of that day (the following midnight), which is how
    deadlines are usually meant.
    """
    if isinstance(value, datetime):
        return localize(value, tz)
    return datetime.combine(value + timedelta(days=1), time(0, 0), tzinfo=tz)


class SchedulerInputValidator:
    """Rejects malformed requests and fills in request-level defaults.

    Fatal problems raise a ValidationError subclass:
    - target completion after the drop-dead date
    - a time window that ends before it starts
    - duplicate task or worker IDs, negative hours, unknown timezone
    """

    def __init__(self, config: SchedulingConfig | None = None):
        self.config = config or SchedulingConfig()

    def parse_timezone(self, name: str) -> tzinfo:
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValidationError(f"Unknown timezone '{name}'") from e

    def check_daily_window(self, window: DailyWindow, owner: str) -> None:
        if window.end < window.start:
            raise InvalidTimeWindowError(
                f"{owner}: window {window.start:%H:%M}-{window.end:%H:%M} ends before it starts"
            )

    def check_availability_window(self, window: AvailabilityWindow, owner: str) -> None:
        if window.end < window.start:
            raise InvalidTimeWindowError(
                f"{owner}: availability {window.start.isoformat()} - {window.end.isoformat()} "
                f"ends before it starts"
            )

    def default_roster(self, anchor: datetime) -> list[Worker]:
        """Single owner available 09:00-17:00 on weekdays from the anchor."""
        worker = create_default_worker()
        availability: dict[date, list[AvailabilityWindow]] = {}
        for offset in range(self.config.default_availability_days):
            day = anchor.date() + timedelta(days=offset)
            if is_weekend(day):
                continue
            availability[day] = [
                AvailabilityWindow(
                    start=datetime.combine(day, worker.working_hours.start, tzinfo=anchor.tzinfo),
                    end=datetime.combine(day, worker.working_hours.end, tzinfo=anchor.tzinfo),
                )
            ]
        return [worker.model_copy(update={"availability": availability})]

    def validate(self, inputs: SchedulingInputs, now: datetime | None = None) -> NormalizedInputs:
        """Validate a request and normalize its dates.

        Args:
            inputs: The scheduling request
            now: Anchor used when the request has no start_time

        Returns:
            NormalizedInputs

        Raises:
            ValidationError: For any fatal input problem
        """
        tz = self.parse_timezone(inputs.timezone)
        anchor_source = inputs.start_time or now or datetime.now(tz)
        anchor = localize(anchor_source, tz)

        target = as_datetime(inputs.target_completion_date, tz)
        drop_dead = as_datetime(inputs.drop_dead_date, tz)
        if target > drop_dead:
            raise DeadlineOrderError(
                f"Target completion {target.isoformat()} is later than drop-dead date "
                f"{drop_dead.isoformat()}"
            )

        if inputs.horizon_end is not None:
            horizon_end = as_datetime(inputs.horizon_end, tz)
        else:
            horizon_end = max(drop_dead, anchor) + timedelta(days=self.config.horizon_overrun_days)
        if horizon_end < anchor:
            raise InvalidTimeWindowError(
                f"Planning horizon ends ({horizon_end.isoformat()}) before it starts "
                f"({anchor.isoformat()})"
            )

        self._check_tasks(inputs)
        self._check_site(inputs)

        workers = list(inputs.workers) or self.default_roster(anchor)
        seen: set[str] = set()
        for worker in workers:
            if worker.id in seen:
                raise ValidationError(f"Duplicate worker id '{worker.id}'")
            seen.add(worker.id)
            if worker.max_total_hours < 0:
                raise ValidationError(f"Worker '{worker.id}' has negative max_total_hours")
            self.check_daily_window(worker.working_hours, f"worker '{worker.id}'")
            for window in worker.explicit_windows() or []:
                self.check_availability_window(window, f"worker '{worker.id}'")

        if not inputs.workers:
            logger.debug("  No workers supplied, using default owner")

        return NormalizedInputs(
            tz=tz,
            anchor=anchor,
            target_completion_date=target,
            drop_dead_date=drop_dead,
            horizon_end=horizon_end,
            workers=workers,
        )

    def _check_tasks(self, inputs: SchedulingInputs) -> None:
        for task in inputs.tasks:
            if task.estimated_hours is not None and task.estimated_hours < 0:
                raise ValidationError(f"Task '{task.id}' has negative estimated_hours")
            if task.min_contiguous_hours < 0:
                raise ValidationError(f"Task '{task.id}' has negative min_contiguous_hours")
            if task.scale_factor < 0:
                raise ValidationError(f"Task '{task.id}' has negative scale_factor")

    def _check_site(self, inputs: SchedulingInputs) -> None:
        hours = inputs.site_constraints.allowed_work_hours
        self.check_daily_window(hours.weekdays, "site weekday hours")
        self.check_daily_window(hours.weekends, "site weekend hours")
