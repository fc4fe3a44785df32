"""Dependency graph construction and deterministic topological ordering."""

from __future__ import annotations

import heapq
from collections.abc import Iterable

from diyplan.exceptions import CircularDependencyError, ValidationError
from diyplan.logger import get_logger

from .core import Task

logger = get_logger()


class DependencyGraph:
    """Directed acyclic graph of tasks built from declared predecessor lists.

    Edges are restricted to the task set: a dependency on an ID that is not
    being scheduled (e.g. an already completed step) is recorded in
    ``unknown_dependencies`` and otherwise ignored.
    """

    def __init__(self, task_ids: list[str], predecessors: dict[str, list[str]]):
        self.task_ids = task_ids
        self._index = {task_id: i for i, task_id in enumerate(task_ids)}
        self._predecessors = predecessors
        self._successors: dict[str, list[str]] = {task_id: [] for task_id in task_ids}
        for task_id in task_ids:
            for dep_id in predecessors[task_id]:
                self._successors[dep_id].append(task_id)
        self.unknown_dependencies: dict[str, list[str]] = {}
        self._order = self._compute_order()

    @classmethod
    def build(cls, tasks: Iterable[Task]) -> DependencyGraph:
        """Build and validate the graph.

        Args:
            tasks: Tasks in their original input order

        Returns:
            Validated graph

        Raises:
            ValidationError: If two tasks share an ID
            CircularDependencyError: If the dependencies contain a cycle
        """
        task_list = list(tasks)
        task_ids: list[str] = []
        seen: set[str] = set()
        for task in task_list:
            if task.id in seen:
                raise ValidationError(f"Duplicate task id '{task.id}'")
            seen.add(task.id)
            task_ids.append(task.id)

        predecessors: dict[str, list[str]] = {}
        unknown: dict[str, list[str]] = {}
        for task in task_list:
            deps: list[str] = []
            for dep_id in task.dependencies:
                if dep_id not in seen:
                    unknown.setdefault(task.id, []).append(dep_id)
                elif dep_id not in deps:
                    deps.append(dep_id)
            predecessors[task.id] = deps

        graph = cls(task_ids, predecessors)
        graph.unknown_dependencies = unknown
        for task_id, missing in unknown.items():
            logger.debug(f"  {task_id}: ignoring dependencies outside task set: {missing}")
        return graph

    def predecessors(self, task_id: str) -> list[str]:
        return list(self._predecessors[task_id])

    def successors(self, task_id: str) -> list[str]:
        return list(self._successors[task_id])

    def index_of(self, task_id: str) -> int:
        """Position of the task in the original input."""
        return self._index[task_id]

    def topological_order(self) -> list[str]:
        """Task IDs with every task after all of its predecessors."""
        return list(self._order)

    def reverse_topological_order(self) -> list[str]:
        return list(reversed(self._order))

    def _compute_order(self) -> list[str]:
        """Kahn's algorithm; ties among ready tasks go to the earliest input position."""
        in_degree = {task_id: len(self._predecessors[task_id]) for task_id in self.task_ids}
        ready = [self._index[task_id] for task_id, degree in in_degree.items() if degree == 0]
        heapq.heapify(ready)
        order: list[str] = []

        while ready:
            task_id = self.task_ids[heapq.heappop(ready)]
            order.append(task_id)
            for succ_id in self._successors[task_id]:
                in_degree[succ_id] -= 1
                if in_degree[succ_id] == 0:
                    heapq.heappush(ready, self._index[succ_id])

        if len(order) != len(self.task_ids):
            remaining = {task_id for task_id in self.task_ids if in_degree[task_id] > 0}
            cycle = self._find_cycle(remaining)
            raise CircularDependencyError(cycle[0], cycle)

        return order

    def _find_cycle(self, remaining: set[str]) -> list[str]:
        """Walk predecessor edges inside ``remaining`` until a task repeats.

        Every task left over by Kahn's algorithm has a predecessor that is also
        left over, so the walk always closes a cycle.
        """
        start = min(remaining, key=self._index.__getitem__)
        path: list[str] = []
        position: dict[str, int] = {}
        current = start
        while current not in position:
            position[current] = len(path)
            path.append(current)
            current = next(dep for dep in self._predecessors[current] if dep in remaining)
        cycle = path[position[current] :]
        # Present in dependency direction: each task is followed by one it unblocks
        cycle.reverse()
        return [*cycle, cycle[0]]
