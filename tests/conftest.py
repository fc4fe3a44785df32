"""Pytest configuration and fixtures for diyplan tests."""

from __future__ import annotations

from collections.abc import Callable
from datetime import date, datetime, time
from typing import Any
from zoneinfo import ZoneInfo

import pytest

from diyplan.logger import reset_logger
from diyplan.resources import AvailabilityWindow, DailyWindow, Worker, WorkerType
from diyplan.scheduler.core import SchedulingInputs, Task, ThreePointEstimate

UTC = ZoneInfo("UTC")

# Monday; every scenario is anchored here unless it says otherwise
MONDAY = datetime(2025, 1, 6, 9, 0, tzinfo=UTC)


def at(day: int, hour: int, minute: int = 0) -> datetime:
    """UTC datetime on January ``day`` 2025."""
    return datetime(2025, 1, day, hour, minute, tzinfo=UTC)


def window(start: datetime, end: datetime) -> AvailabilityWindow:
    return AvailabilityWindow(start=start, end=end)


def make_worker(  # noqa: PLR0913 - mirrors the Worker fields tests care about
    worker_id: str,
    *,
    name: str | None = None,
    helper: bool = False,
    hours: tuple[int, int] = (9, 17),
    max_total_hours: float = 40.0,
    availability: list[AvailabilityWindow] | dict[date, list[AvailabilityWindow]] | None = None,
    **kwargs: Any,
) -> Worker:
    return Worker(
        id=worker_id,
        name=name or worker_id.title(),
        type=WorkerType.HELPER if helper else WorkerType.OWNER,
        working_hours=DailyWindow(start=time(hours[0]), end=time(hours[1])),
        max_total_hours=max_total_hours,
        availability=availability or [],
        **kwargs,
    )


def make_task(
    task_id: str,
    hours: float | None = None,
    *deps: str,
    estimate: tuple[float, float, float] | None = None,
    **kwargs: Any,
) -> Task:
    return Task(
        id=task_id,
        title=kwargs.pop("title", task_id.title()),
        estimated_hours=hours,
        estimate=ThreePointEstimate(*estimate) if estimate else None,
        dependencies=list(deps),
        **kwargs,
    )


@pytest.fixture
def make_inputs() -> Callable[..., SchedulingInputs]:
    """Factory for a request anchored on Monday 2025-01-06 09:00 UTC."""

    def _make(
        tasks: list[Task],
        workers: list[Worker] | None = None,
        **overrides: Any,
    ) -> SchedulingInputs:
        values: dict[str, Any] = {
            "target_completion_date": date(2025, 1, 31),
            "drop_dead_date": date(2025, 2, 14),
            "tasks": tasks,
            "workers": workers if workers is not None else [make_worker("alex")],
            "timezone": "UTC",
            "start_time": MONDAY,
        }
        values.update(overrides)
        return SchedulingInputs(**values)

    return _make


@pytest.fixture(autouse=True)
def quiet_logger():
    """Leave the diyplan logger at errors-only between tests."""
    yield
    reset_logger()
