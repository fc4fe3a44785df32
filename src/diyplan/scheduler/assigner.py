"""Task-to-worker assignment over resolved free intervals."""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from datetime import datetime, timedelta, tzinfo

from diyplan.logger import candidates_enabled, get_logger
from diyplan.resources import Worker

from .availability import HOUR, Interval, IntervalSet
from .core import (
    AssignmentResult,
    ScheduledTask,
    Task,
    UnscheduledReason,
    UnscheduledTask,
    WorkAssignment,
)
from .graph import DependencyGraph

logger = get_logger()

ZERO = timedelta(0)


@dataclass
class _Placement:
    """A feasible way to place one task, before it is committed."""

    workers: tuple[Worker, ...]
    chunks: list[Interval]  # Wall-clock chunks every worker in the group works

    @property
    def start(self) -> datetime:
        return self.chunks[0].start

    @property
    def finish(self) -> datetime:
        return self.chunks[-1].end


# Closed ranges of work time that earlier intervals can add up to
Sums = list[tuple[timedelta, timedelta]]


def _with_interval(sums: Sums, low: timedelta, high: timedelta, cap: timedelta) -> Sums:
    """Sums reachable when one more interval adds nothing or ``low``..``high``."""
    shifted = [(lo + low, min(hi + high, cap)) for lo, hi in sums if lo + low <= cap]
    merged: Sums = []
    for lo, hi in sorted([*sums, *shifted]):
        if merged and lo <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], hi))
        else:
            merged.append((lo, hi))
    return merged


def _largest_in(sums: Sums, low: timedelta, high: timedelta) -> timedelta | None:
    best: timedelta | None = None
    for lo, hi in sums:
        if lo <= high and hi >= low:
            best = min(hi, high)
    return best


def _split(
    free: list[Interval], reachable: list[Sums], amount: timedelta, floor: timedelta
) -> list[Interval]:
    """Chunks from ``free`` adding up to ``amount``, filling earlier intervals first."""
    chunks: list[Interval] = []
    for i in range(len(free) - 1, -1, -1):
        if amount <= ZERO:
            break
        before = reachable[i]
        if any(lo <= amount <= hi for lo, hi in before):
            continue
        duration = free[i].duration
        take = min(
            max(amount - hi, floor)
            for lo, hi in before
            if max(amount - hi, floor) <= min(amount - lo, duration)
        )
        chunks.append(Interval(free[i].start, free[i].start + take))
        amount -= take
    chunks.reverse()
    return chunks


def plan_chunks(
    free: list[Interval], needed: timedelta, min_chunk: timedelta
) -> list[Interval] | None:
    """Fit ``needed`` work time into ``free`` intervals so it finishes earliest.

    Every chunk is at least ``min(min_chunk, needed)`` long and starts at the
    beginning of its interval. Intervals are tried in order as the one holding
    the last chunk; the first that works gives the earliest finish, and the
    last chunk is kept as short as the earlier intervals allow.

    Args:
        free: Candidate intervals in chronological order
        needed: Work time to place
        min_chunk: Minimum contiguous block size

    Returns:
        Chunks covering ``needed``, or None if it cannot be covered
    """
    if needed <= ZERO:
        return []
    floor = min(min_chunk, needed)
    reachable: list[Sums] = [[(ZERO, ZERO)]]

    for k, interval in enumerate(free):
        sums = reachable[-1]
        if interval.duration < floor:
            reachable.append(sums)
            continue
        before = _largest_in(sums, max(needed - interval.duration, ZERO), needed - floor)
        if before is not None:
            last = Interval(interval.start, interval.start + (needed - before))
            return [*_split(free[:k], reachable, before, floor), last]
        reachable.append(_with_interval(sums, floor, interval.duration, needed))

    return None


class TaskAssigner:
    """Places tasks onto workers' free intervals in dependency order.

    The assigner owns a private copy of every worker's free time for the
    duration of one run. Each committed chunk is removed from the owning
    worker's set, so no worker is ever double-booked. Free time and the
    returned placements are in UTC.
    """

    def __init__(
        self,
        workers: list[Worker],
        free_time: dict[str, IntervalSet],
        *,
        horizon_start: datetime,
        prefer_helpers: bool = False,
        tz: tzinfo | None = None,
    ) -> None:
        """Initialize the assigner.

        Args:
            workers: Workers in roster order (used for deterministic tie-breaks)
            free_time: Resolved free intervals per worker ID
            horizon_start: Earliest time anything may start
            prefer_helpers: Prefer helper-type workers among equally early options
            tz: Zone used to show times in log lines and diagnostics
        """
        self.workers = workers
        self.free: dict[str, IntervalSet] = {
            worker.id: free_time.get(worker.id, IntervalSet()).copy() for worker in workers
        }
        self.assigned: dict[str, timedelta] = {worker.id: ZERO for worker in workers}
        self.horizon_start = horizon_start
        self.prefer_helpers = prefer_helpers
        self.tz = tz

    def _clock(self, moment: datetime) -> str:
        if self.tz is not None:
            moment = moment.astimezone(self.tz)
        return f"{moment:%Y-%m-%d %H:%M}"

    def assign(
        self,
        graph: DependencyGraph,
        tasks: dict[str, Task],
        hours: dict[str, float],
    ) -> AssignmentResult:
        """Assign every task in topological order.

        Args:
            graph: Validated dependency graph
            tasks: Tasks by ID
            hours: Resolved person-hours by task ID

        Returns:
            AssignmentResult with placed tasks and diagnostics for the rest
        """
        scheduled: dict[str, ScheduledTask] = {}
        unscheduled: list[UnscheduledTask] = []

        for task_id in graph.topological_order():
            task = tasks[task_id]
            logger.candidate(f"Considering task {task_id} ({hours[task_id]:.2f}h)")

            blocked = [dep for dep in graph.predecessors(task_id) if dep not in scheduled]
            if blocked:
                diagnostic = UnscheduledTask(
                    task_id,
                    UnscheduledReason.DEPENDENCY_UNMET_BEFORE_DEADLINE,
                    f"depends on unscheduled task(s): {', '.join(blocked)}",
                )
                logger.placement(f"  Cannot schedule {task_id}: {diagnostic.detail}")
                unscheduled.append(diagnostic)
                continue

            dep_ends = [scheduled[dep].end_time for dep in graph.predecessors(task_id)]
            ready = max([self.horizon_start, *dep_ends])

            if hours[task_id] <= 0:
                scheduled[task_id] = ScheduledTask(
                    task_id=task_id,
                    worker_ids=[],
                    start_time=ready,
                    end_time=ready,
                    hours=0.0,
                )
                logger.placement(f"  Scheduled milestone {task_id} at {self._clock(ready)}")
                continue

            result = self._place(task, hours[task_id], ready)
            if isinstance(result, UnscheduledTask):
                logger.placement(f"  Cannot schedule {task_id}: {result.detail}")
                unscheduled.append(result)
                continue

            scheduled[task_id] = self._commit(task, hours[task_id], result)

        return AssignmentResult(scheduled=scheduled, unscheduled=unscheduled)

    def _per_worker(self, task: Task, total_hours: float) -> timedelta:
        return timedelta(hours=total_hours / task.workers_needed)

    def _has_capacity(self, worker: Worker, needed: timedelta) -> bool:
        cap = timedelta(hours=worker.max_total_hours)
        return self.assigned[worker.id] + needed <= cap

    def _helper_rank(self, group: tuple[Worker, ...]) -> int:
        """Lower is better; counts helpers only when helpers are preferred."""
        if not self.prefer_helpers:
            return 0
        return -sum(1 for worker in group if worker.is_helper)

    def _best_placement(
        self,
        candidates: list[Worker],
        workers_needed: int,
        needed: timedelta,
        min_chunk: timedelta,
        ready: datetime,
    ) -> _Placement | None:
        """Evaluate every group of ``workers_needed`` candidates and keep the best.

        Groups are ranked by finish time, then helper preference, then start time,
        then roster order.
        """
        best: _Placement | None = None
        best_key: tuple[datetime, int, datetime, int] | None = None
        tracing = candidates_enabled()

        for order, group in enumerate(itertools.combinations(candidates, workers_needed)):
            common = self.free[group[0].id]
            for worker in group[1:]:
                common = common.intersect(self.free[worker.id])

            chunks = plan_chunks(common.starting_from(ready), needed, min_chunk)
            names = ", ".join(worker.id for worker in group)
            if chunks is None:
                if tracing:
                    logger.candidate(f"    [{names}]: no feasible window")
                continue

            placement = _Placement(workers=group, chunks=chunks)
            key = (placement.finish, self._helper_rank(group), placement.start, order)
            if tracing:
                logger.candidate(
                    f"    [{names}]: {self._clock(placement.start)} -> "
                    f"{self._clock(placement.finish)} in {len(chunks)} chunk(s)"
                )
            if best_key is None or key < best_key:
                best, best_key = placement, key

        return best

    def _place(
        self, task: Task, total_hours: float, ready: datetime
    ) -> _Placement | UnscheduledTask:
        """Find the best placement for a task or explain why there is none."""
        workers_needed = task.workers_needed
        needed = self._per_worker(task, total_hours)
        min_chunk = timedelta(hours=task.min_contiguous_hours)

        candidates = [worker for worker in self.workers if self._has_capacity(worker, needed)]
        if len(candidates) < workers_needed:
            return UnscheduledTask(
                task.id,
                UnscheduledReason.NO_CAPACITY,
                f"needs {workers_needed} worker(s) with {needed / HOUR:.2f}h of remaining "
                f"capacity, {len(candidates)} available",
            )

        placement = self._best_placement(candidates, workers_needed, needed, min_chunk, ready)
        if placement is not None:
            return placement

        if ready > self.horizon_start and self._best_placement(
            candidates, workers_needed, needed, min_chunk, self.horizon_start
        ):
            return UnscheduledTask(
                task.id,
                UnscheduledReason.DEPENDENCY_UNMET_BEFORE_DEADLINE,
                f"free time exists only before dependencies finish at {self._clock(ready)}",
            )

        return UnscheduledTask(
            task.id,
            UnscheduledReason.NO_WINDOW_BIG_ENOUGH,
            f"no shared free time for {workers_needed} worker(s) covering "
            f"{needed / HOUR:.2f}h in blocks of at least "
            f"{min(min_chunk, needed) / HOUR:.2f}h",
        )

    def _commit(self, task: Task, total_hours: float, placement: _Placement) -> ScheduledTask:
        """Consume the placement's chunks from every worker in its group."""
        assignments: list[WorkAssignment] = []
        for chunk in placement.chunks:
            for worker in placement.workers:
                self.free[worker.id].remove(chunk.start, chunk.end)
                self.assigned[worker.id] += chunk.duration
                assignments.append(WorkAssignment(worker.id, chunk.start, chunk.end))

        worker_ids = [worker.id for worker in placement.workers]
        logger.placement(
            f"  Scheduled task {task.id} on {', '.join(worker_ids)} "
            f"from {self._clock(placement.start)} to {self._clock(placement.finish)}"
        )
        return ScheduledTask(
            task_id=task.id,
            worker_ids=worker_ids,
            start_time=placement.start,
            end_time=placement.finish,
            hours=total_hours,
            assignments=assignments,
        )

    def assigned_hours(self) -> dict[str, float]:
        """Hours committed per worker so far."""
        return {worker_id: total / HOUR for worker_id, total in self.assigned.items()}
