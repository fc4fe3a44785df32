"""Worker and site models for scheduling.

This module defines the resource side of a scheduling request:
- Workers with recurring availability filters and explicit availability windows
- Site-wide constraints (allowed work hours per day type, quiet hours)
- The default single-owner roster used when no workers are supplied
"""

from __future__ import annotations

from datetime import date, datetime, time
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator

DEFAULT_WORKER_ID = "1"
DEFAULT_WORKER_NAME = "You"
EVENING_START = time(17, 0)


def coerce_clock(value: Any) -> Any:
    """Turn YAML 1.1 sexagesimal integers back into clock times.

    An unquoted ``17:30`` in a YAML file loads as the integer 1050 (17 * 60 + 30).
    """
    if isinstance(value, int) and not isinstance(value, bool):
        hours, minutes = divmod(value, 60)
        return time(hours, minutes)
    return value


class WorkerType(str, Enum):
    """Role of a worker on the project."""

    OWNER = "owner"
    HELPER = "helper"


class SkillLevel(str, Enum):
    """Self-reported skill level. Informational only."""

    NOVICE = "novice"
    INTERMEDIATE = "intermediate"
    EXPERT = "expert"


class DailyWindow(BaseModel):
    """A recurring time-of-day window, e.g. 09:00-17:00."""

    start: time
    end: time

    @field_validator("start", "end", mode="before")
    @classmethod
    def parse_clock(cls, v: Any) -> Any:
        return coerce_clock(v)

    @property
    def hours(self) -> float:
        """Length of the window in hours."""
        start_minutes = self.start.hour * 60 + self.start.minute
        end_minutes = self.end.hour * 60 + self.end.minute
        return (end_minutes - start_minutes) / 60


class AvailabilityWindow(BaseModel):
    """A concrete window of time when a worker can be scheduled."""

    start: datetime
    end: datetime


def _default_working_hours() -> DailyWindow:
    return DailyWindow(start=time(9, 0), end=time(17, 0))


def _default_site_hours() -> DailyWindow:
    return DailyWindow(start=time(7, 0), end=time(21, 0))


class Worker(BaseModel):
    """A person who can be assigned to tasks."""

    id: str
    name: str = DEFAULT_WORKER_NAME
    type: WorkerType = WorkerType.OWNER
    skill_level: SkillLevel = SkillLevel.INTERMEDIATE
    max_total_hours: float = Field(default=40.0, ge=0)
    weekends_only: bool = False
    weekdays_after_five_pm: bool = False
    working_hours: DailyWindow = Field(default_factory=_default_working_hours)
    # Either a flat list of windows or a per-date map of windows
    availability: list[AvailabilityWindow] | dict[date, list[AvailabilityWindow]] = Field(
        default_factory=list[AvailabilityWindow]
    )

    @property
    def is_helper(self) -> bool:
        return self.type == WorkerType.HELPER

    def has_explicit_availability(self) -> bool:
        """True if the worker supplied any availability windows."""
        return bool(self.availability)

    def explicit_windows(self) -> list[AvailabilityWindow] | None:
        """Get every explicit availability window.

        Returns:
            None when the worker supplied no availability (no restriction). For a
            per-date map the windows of all listed days, so unlisted days end up
            unavailable.
        """
        if not self.availability:
            return None
        if isinstance(self.availability, dict):
            by_day = self.availability
            return [window for day in sorted(by_day) for window in by_day[day]]
        return list(self.availability)


class AllowedWorkHours(BaseModel):
    """Site-allowed work hours per day type."""

    weekdays: DailyWindow = Field(default_factory=_default_site_hours)
    weekends: DailyWindow = Field(default_factory=_default_site_hours)


class SiteConstraints(BaseModel):
    """Site-wide calendar constraints that apply to every worker."""

    allowed_work_hours: AllowedWorkHours = Field(default_factory=AllowedWorkHours)
    weekends_only: bool = False
    allow_night_work: bool = False
    noise_curfew: time = time(21, 0)
    quiet_hours_end: time = time(7, 0)

    @field_validator("noise_curfew", "quiet_hours_end", mode="before")
    @classmethod
    def parse_clock(cls, v: Any) -> Any:
        return coerce_clock(v)

    def hours_for(self, day: date) -> DailyWindow:
        """Get the allowed window for the day type of ``day``."""
        if is_weekend(day):
            return self.allowed_work_hours.weekends
        return self.allowed_work_hours.weekdays

    def quiet_windows(self) -> list[tuple[time, time | None]]:
        """Quiet hours as same-day (start, end) pairs; ``None`` end means midnight.

        A curfew that wraps past midnight (21:00 -> 07:00) becomes two pieces:
        the early-morning part and the late-evening part.
        """
        if self.allow_night_work or self.noise_curfew == self.quiet_hours_end:
            return []
        if self.noise_curfew < self.quiet_hours_end:
            return [(self.noise_curfew, self.quiet_hours_end)]
        pieces: list[tuple[time, time | None]] = []
        if self.quiet_hours_end > time(0, 0):
            pieces.append((time(0, 0), self.quiet_hours_end))
        pieces.append((self.noise_curfew, None))
        return pieces


def is_weekend(day: date) -> bool:
    """Saturday or Sunday."""
    return day.weekday() >= 5  # noqa: PLR2004 - Monday=0 ... Saturday=5


def create_default_worker(working_hours: DailyWindow | None = None) -> Worker:
    """Create the single default owner used when no roster is supplied."""
    return Worker(
        id=DEFAULT_WORKER_ID,
        name=DEFAULT_WORKER_NAME,
        type=WorkerType.OWNER,
        working_hours=working_hours or _default_working_hours(),
    )
