"""Plain-text and CSV renderings of scheduling results."""

from __future__ import annotations

import csv
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from pathlib import Path

from .resources import Worker
from .scheduler.core import ScheduledTask, SchedulingResult, Task, elapsed
from .scheduler.sensitivity import DecisionSensitivity, TaskSensitivity

RULE_WIDTH = 80
DAYS_PER_WEEK = 7
DAYS_SHOWN_AS_WEEKS = 30


def format_finish_date(finish: datetime | date | None, today: date) -> str:
    """Human phrasing of an estimated finish date relative to ``today``.

    Overdue, Today, Tomorrow, "In N days" within a week, "In N weeks" within a
    month, and the calendar date beyond that.
    """
    if finish is None:
        return "Not scheduled"
    finish_day = finish.date() if isinstance(finish, datetime) else finish
    days = (finish_day - today).days

    if days < 0:
        return "Overdue"
    if days == 0:
        return "Today"
    if days == 1:
        return "Tomorrow"
    if days < DAYS_PER_WEEK:
        return f"In {days} days"
    if days < DAYS_SHOWN_AS_WEEKS:
        weeks = days // DAYS_PER_WEEK
        return f"In {weeks} week{'s' if weeks > 1 else ''}"
    return f"{finish_day:%b} {finish_day.day}, {finish_day.year}"


def format_duration(delta: timedelta | None) -> str:
    """Signed compact duration such as ``+2d 3h`` or ``-45m``."""
    if delta is None:
        return "-"
    sign = "-" if delta < timedelta(0) else "+"
    minutes = int(abs(delta).total_seconds() // 60)
    days, minutes = divmod(minutes, 24 * 60)
    hours, minutes = divmod(minutes, 60)
    parts = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    if minutes or not parts:
        parts.append(f"{minutes}m")
    return sign + " ".join(parts)


def _when(moment: datetime | None) -> str:
    return f"{moment:%Y-%m-%d %H:%M}" if moment is not None else "-"


def format_schedule(
    result: SchedulingResult,
    tasks: list[Task] | None = None,
    today: date | None = None,
) -> str:
    """Render a schedule as a text report.

    Args:
        result: Scheduling result
        tasks: Tasks of the request, used for titles
        today: Reference day for the finish-date phrasing

    Returns:
        Multi-line report
    """
    titles = {task.id: task.title or task.id for task in tasks or []}
    critical = set(result.critical_task_ids)
    lines = ["Schedule Results", "=" * RULE_WIDTH, ""]

    header = f"{'Task':<32} {'Start':<16} {'End':<16} {'Workers':<10} {'Slack':>9}"
    lines.append(header)
    lines.append("-" * RULE_WIDTH)
    for placed in result.scheduled_tasks:
        flags = ""
        if placed.task_id in critical:
            flags += " *"
        if placed.deadline_violated:
            flags += " LATE"
        workers = ",".join(placed.worker_ids) or "-"
        lines.append(
            f"{placed.task_id[:32]:<32} {_when(placed.start_time):<16} "
            f"{_when(placed.end_time):<16} {workers[:10]:<10} "
            f"{format_duration(placed.slack):>9}{flags}"
        )
        title = titles.get(placed.task_id)
        if title and title != placed.task_id:
            lines.append(f"  {title}")

    if result.unscheduled_tasks:
        lines.extend(["", "Unscheduled:"])
        for item in result.unscheduled_tasks:
            lines.append(f"  {item.task_id} [{item.reason.value}] {item.detail}")

    if result.deadline_violations:
        lines.extend(["", "Deadline violations:"])
        for violation in result.deadline_violations:
            where = "drop-dead date" if violation.past_drop_dead else "latest completion"
            lines.append(
                f"  {violation.task_id}: finishes {_when(violation.finish)}, "
                f"{format_duration(violation.overrun)} past {where}"
            )

    lines.append("")
    lines.append(f"Projected completion: {_when(result.target_completion_date)}")
    if today is not None:
        phrase = format_finish_date(result.target_completion_date, today)
        lines[-1] += f" ({phrase})"
    lines.append(f"Latest completion:    {_when(result.latest_completion_date)}")
    if result.critical_task_ids:
        lines.append(f"Critical tasks (*):   {', '.join(result.critical_task_ids)}")
    return "\n".join(lines)


@dataclass
class AgendaItem:
    """One block of work on a worker's agenda."""

    task_id: str
    title: str
    start: datetime
    end: datetime

    @property
    def hours(self) -> float:
        return elapsed(self.start, self.end) / timedelta(hours=1)


def build_agendas(
    result: SchedulingResult,
    tasks: list[Task] | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> dict[str, list[AgendaItem]]:
    """Group assigned work chunks by worker, optionally within [start, end).

    Returns:
        Worker ID -> chronologically sorted agenda items
    """
    titles = {task.id: task.title or task.id for task in tasks or []}
    agendas: dict[str, list[AgendaItem]] = {}
    for placed in result.scheduled_tasks:
        for chunk in placed.assignments:
            if start is not None and chunk.end <= start:
                continue
            if end is not None and chunk.start >= end:
                continue
            item = AgendaItem(
                task_id=placed.task_id,
                title=titles.get(placed.task_id, placed.task_id),
                start=chunk.start,
                end=chunk.end,
            )
            agendas.setdefault(chunk.worker_id, []).append(item)

    for items in agendas.values():
        items.sort(key=lambda item: (item.start, item.task_id))
    return agendas


def format_agenda(worker: Worker, items: list[AgendaItem]) -> str:
    """Render one worker's agenda, grouped by day."""
    lines = [f"Agenda for {worker.name} ({worker.id})", "-" * RULE_WIDTH]
    if not items:
        lines.append("  Nothing scheduled")
        return "\n".join(lines)

    current_day: date | None = None
    for item in items:
        day = item.start.date()
        if day != current_day:
            lines.append(f"{day:%A %Y-%m-%d}")
            current_day = day
        lines.append(
            f"  {item.start:%H:%M}-{item.end:%H:%M}  {item.title} ({item.hours:.1f}h)"
        )
    total = sum(item.hours for item in items)
    lines.append(f"Total: {total:.1f}h")
    return "\n".join(lines)


def format_sensitivity(
    decisions: list[DecisionSensitivity], tasks: list[TaskSensitivity]
) -> str:
    """Render decision and task sensitivity tables."""
    lines = ["Decision Sensitivity", "=" * RULE_WIDTH]
    for entry in decisions:
        lines.append(
            f"{entry.parameter:<16} {entry.base_value:<14} "
            f"{entry.low_impact_days:+.1f} to {entry.high_impact_days:+.1f} days"
        )
        if entry.infeasible_variants:
            lines.append(f"  leaves tasks unscheduled: {', '.join(entry.infeasible_variants)}")

    lines.extend(["", "Task Sensitivity", "=" * RULE_WIDTH])
    for task in tasks:
        note = " (fixed)" if task.is_fixed else ""
        lines.append(
            f"{task.task_id[:32]:<32} {task.min_hours:6.1f}h - {task.max_hours:6.1f}h "
            f"confidence {task.confidence:.0%}{note}"
        )
    return "\n".join(lines)


def export_schedule_csv(result: SchedulingResult, output_path: Path) -> None:
    """Export scheduled tasks to CSV."""
    with output_path.open("w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(
            ["task_id", "workers", "start", "end", "hours", "target", "latest", "violated"]
        )
        for placed in result.scheduled_tasks:
            writer.writerow(_csv_row(placed))


def _csv_row(placed: ScheduledTask) -> list[str]:
    return [
        placed.task_id,
        " ".join(placed.worker_ids),
        placed.start_time.isoformat(),
        placed.end_time.isoformat(),
        f"{placed.hours:g}",
        placed.target_completion_date.isoformat() if placed.target_completion_date else "",
        placed.latest_completion_date.isoformat() if placed.latest_completion_date else "",
        "yes" if placed.deadline_violated else "no",
    ]
