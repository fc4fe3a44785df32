"""Schedule snapshot file.

A snapshot preserves a computed schedule (task dates, worker assignments and
project completion dates) together with the time it was generated, so later
commands such as ``agenda`` can reuse it until it goes stale.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, cast

import yaml

from diyplan.exceptions import ParseError

from .core import (
    ScheduledTask,
    SchedulingResult,
    UnscheduledReason,
    UnscheduledTask,
    WorkAssignment,
    elapsed,
)

SNAPSHOT_FILE_VERSION = 1


@dataclass
class TaskSnapshot:
    """Snapshot data for a single scheduled task."""

    start_time: datetime
    end_time: datetime
    workers: list[str]
    chunks: list[tuple[str, datetime, datetime]]  # [(worker_id, start, end), ...]
    deadline_violated: bool = False


@dataclass
class ScheduleSnapshot:
    """Schedule loaded from a snapshot file."""

    version: int
    generated_at: datetime
    target_completion_date: datetime | None
    latest_completion_date: datetime | None
    tasks: dict[str, TaskSnapshot]  # task_id -> snapshot
    unscheduled: dict[str, UnscheduledReason]

    def is_stale(self, now: datetime, freshness_hours: float = 24.0) -> bool:
        return is_stale(self.generated_at, now, freshness_hours)

    def to_result(self) -> SchedulingResult:
        """Rebuild a SchedulingResult with the persisted dates and chunks.

        Slack, critical tasks and warnings are not persisted and come back empty.
        """
        scheduled = [
            ScheduledTask(
                task_id=task_id,
                worker_ids=list(task.workers),
                start_time=task.start_time,
                end_time=task.end_time,
                hours=sum(
                    elapsed(start, end) / timedelta(hours=1) for _, start, end in task.chunks
                ),
                assignments=[WorkAssignment(w, start, end) for w, start, end in task.chunks],
                deadline_violated=task.deadline_violated,
            )
            for task_id, task in self.tasks.items()
        ]
        scheduled.sort(key=lambda placed: placed.start_time)
        return SchedulingResult(
            scheduled_tasks=scheduled,
            unscheduled_tasks=[
                UnscheduledTask(task_id, reason, "from snapshot")
                for task_id, reason in self.unscheduled.items()
            ],
            target_completion_date=self.target_completion_date,
            latest_completion_date=self.latest_completion_date,
        )


def is_stale(generated_at: datetime | None, now: datetime, freshness_hours: float = 24.0) -> bool:
    """True if a schedule generated at ``generated_at`` should be regenerated.

    A schedule that was never generated is stale.
    """
    if generated_at is None:
        return True
    return now - generated_at >= timedelta(hours=freshness_hours)


def write_snapshot(path: Path, result: SchedulingResult, generated_at: datetime) -> None:
    """Write a scheduling result to a snapshot file.

    Args:
        path: Path to write the snapshot file
        result: Scheduling result to persist
        generated_at: When the schedule was computed
    """
    tasks_data: dict[str, dict[str, Any]] = {}
    for task in result.scheduled_tasks:
        tasks_data[task.task_id] = {
            "start_time": task.start_time.isoformat(),
            "end_time": task.end_time.isoformat(),
            "workers": list(task.worker_ids),
            "chunks": [
                f"{chunk.worker_id}@{chunk.start.isoformat()}/{chunk.end.isoformat()}"
                for chunk in task.assignments
            ],
            "deadline_violated": task.deadline_violated,
        }

    output: dict[str, Any] = {
        "version": SNAPSHOT_FILE_VERSION,
        "generated_at": generated_at.isoformat(),
        "target_completion_date": _isoformat(result.target_completion_date),
        "latest_completion_date": _isoformat(result.latest_completion_date),
        "tasks": tasks_data,
        "unscheduled": {item.task_id: item.reason.value for item in result.unscheduled_tasks},
    }

    with path.open("w") as f:
        yaml.safe_dump(output, f, default_flow_style=False, sort_keys=False)


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_datetime(value: Any, where: str) -> datetime:
    # safe_load already turns unquoted timestamps into datetimes
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError as e:
        raise ParseError(f"Invalid timestamp in snapshot {where}: {value!r}") from e


def _parse_chunk(raw: Any, task_id: str) -> tuple[str, datetime, datetime]:
    text = str(raw)
    worker_id, sep, span = text.rpartition("@")
    start_text, slash, end_text = span.partition("/")
    if not sep or not slash:
        raise ParseError(f"Invalid chunk for '{task_id}': expected worker@start/end, got {text!r}")
    where = f"chunk for '{task_id}'"
    return worker_id, _parse_datetime(start_text, where), _parse_datetime(end_text, where)


def read_snapshot(path: Path) -> ScheduleSnapshot:  # noqa: PLR0912 - validation needs many branches
    """Load a snapshot file.

    Args:
        path: Path to the snapshot file

    Returns:
        ScheduleSnapshot

    Raises:
        ParseError: If the file format is invalid or its version is unsupported
    """
    with path.open() as f:
        raw_data: Any = yaml.safe_load(f)

    if not isinstance(raw_data, dict):
        raise ParseError(f"Invalid snapshot format: expected dict, got {type(raw_data)}")

    data = cast(dict[str, Any], raw_data)

    version = data.get("version")
    if version is None:
        raise ParseError("Snapshot missing 'version' field")
    if not isinstance(version, int):
        raise ParseError(f"Snapshot version must be int, got {type(version)}")
    if version != SNAPSHOT_FILE_VERSION:
        raise ParseError(
            f"Unsupported snapshot version {version}, expected {SNAPSHOT_FILE_VERSION}"
        )

    if "generated_at" not in data:
        raise ParseError("Snapshot missing 'generated_at' field")
    generated_at = _parse_datetime(data["generated_at"], "generated_at")

    target = data.get("target_completion_date")
    latest = data.get("latest_completion_date")

    raw_tasks = data.get("tasks") or {}
    if not isinstance(raw_tasks, dict):
        raise ParseError("Snapshot 'tasks' field must be a dict")

    tasks: dict[str, TaskSnapshot] = {}
    for task_id, task_data in cast(dict[str, Any], raw_tasks).items():
        if not isinstance(task_data, dict):
            raise ParseError(f"Snapshot data for '{task_id}' must be a dict")
        entry = cast(dict[str, Any], task_data)
        if not entry.get("start_time") or not entry.get("end_time"):
            raise ParseError(f"Snapshot for '{task_id}' missing start_time or end_time")

        tasks[str(task_id)] = TaskSnapshot(
            start_time=_parse_datetime(entry["start_time"], f"for '{task_id}'"),
            end_time=_parse_datetime(entry["end_time"], f"for '{task_id}'"),
            workers=[str(worker) for worker in entry.get("workers") or []],
            chunks=[_parse_chunk(chunk, str(task_id)) for chunk in entry.get("chunks") or []],
            deadline_violated=bool(entry.get("deadline_violated", False)),
        )

    raw_unscheduled = data.get("unscheduled") or {}
    if not isinstance(raw_unscheduled, dict):
        raise ParseError("Snapshot 'unscheduled' field must be a dict")

    unscheduled: dict[str, UnscheduledReason] = {}
    for task_id, reason in cast(dict[str, Any], raw_unscheduled).items():
        try:
            unscheduled[str(task_id)] = UnscheduledReason(reason)
        except ValueError as e:
            raise ParseError(f"Unknown unscheduled reason for '{task_id}': {reason!r}") from e

    return ScheduleSnapshot(
        version=version,
        generated_at=generated_at,
        target_completion_date=(
            _parse_datetime(target, "target_completion_date") if target else None
        ),
        latest_completion_date=(
            _parse_datetime(latest, "latest_completion_date") if latest else None
        ),
        tasks=tasks,
        unscheduled=unscheduled,
    )
