"""Read-only queries over a task snapshot: edit guards and readiness checks."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Collection, Iterable, Optional

from .constants import DEFAULT_COMPLETED_STATUSES, DEFAULT_INITIAL_STATUS
from .graph import build_graph, detect_cycles, find_cycle
from .model import Task, status_value


@dataclass(frozen=True)
class CycleValidation:
    """Outcome of :func:`validate_no_cycles`.

    ``cycle_path`` holds every id implicated in a cycle (an unordered flag
    set despite the name); ``cycle`` is one ordered offending path.
    """

    valid: bool
    cycle_path: Optional[tuple[str, ...]] = None
    cycle: Optional[tuple[str, ...]] = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"valid": self.valid}
        if self.cycle_path is not None:
            data["cycle_path"] = list(self.cycle_path)
        if self.cycle is not None:
            data["cycle"] = list(self.cycle)
        return data


def validate_no_cycles(
    task_id: str,
    proposed_dependency_ids: Iterable[str],
    tasks: Iterable[Task],
) -> CycleValidation:
    """Check whether giving *task_id* the proposed dependencies keeps the graph acyclic.

    Works on a hypothetical copy of the snapshot; *tasks* is left untouched.
    The caller must persist against the same snapshot it validated.
    """
    proposed = list(proposed_dependency_ids)
    hypothetical = [t.with_dependencies(proposed) if t.id == task_id else t for t in tasks]
    graph = build_graph(hypothetical)
    cyclic = detect_cycles(graph)
    if not cyclic:
        return CycleValidation(valid=True)
    cycle = find_cycle(graph)
    return CycleValidation(
        valid=False,
        cycle_path=tuple(tid for tid in graph.task_ids if tid in cyclic),
        cycle=tuple(cycle) if cycle else None,
    )


def _completed_ids(tasks: Iterable[Task], completed_statuses: Collection[str]) -> set[str]:
    wanted = {status_value(s) for s in completed_statuses}
    return {t.id for t in tasks if status_value(t.status) in wanted}


def are_dependencies_satisfied(
    task_id: str,
    tasks: Iterable[Task],
    completed_statuses: Collection[str] = DEFAULT_COMPLETED_STATUSES,
) -> bool:
    """True if every dependency of *task_id* is a completed task in *tasks*.

    Returns False for an unknown *task_id*.
    """
    tasks = list(tasks)
    task = next((t for t in tasks if t.id == task_id), None)
    if task is None:
        return False
    completed = _completed_ids(tasks, completed_statuses)
    return all(dep_id in completed for dep_id in task.dependencies)


def get_executable_tasks(
    tasks: Iterable[Task],
    completed_statuses: Collection[str] = DEFAULT_COMPLETED_STATUSES,
    initial_status: str = DEFAULT_INITIAL_STATUS,
) -> list[Task]:
    """Return not-yet-started tasks whose dependencies are all completed."""
    tasks = list(tasks)
    completed = _completed_ids(tasks, completed_statuses)
    initial = status_value(initial_status)
    return [
        t
        for t in tasks
        if status_value(t.status) == initial and all(dep_id in completed for dep_id in t.dependencies)
    ]


def get_dependent_tasks(task_id: str, tasks: Iterable[Task]) -> list[Task]:
    """Tasks that directly depend on *task_id*."""
    return [t for t in tasks if task_id in t.dependencies]


def get_dependency_tasks(task_id: str, tasks: Iterable[Task]) -> list[Task]:
    """Tasks that *task_id* directly depends on (present in *tasks* only)."""
    tasks = list(tasks)
    task = next((t for t in tasks if t.id == task_id), None)
    if task is None:
        return []
    return [t for t in tasks if t.id in task.dependencies]
