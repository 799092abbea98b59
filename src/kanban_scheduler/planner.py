"""Batched execution planning with topological ordering.

Batches are computed with a layered variant of Kahn's algorithm: every task
in batch *N* only depends on tasks in batches ``1..N-1`` (or on ids outside
the snapshot), so the tasks of one batch may run in parallel.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from loguru import logger
from rich.console import Console
from rich.markup import escape

from .constants import DEFAULT_INITIAL_STATUS
from .graph import build_graph, detect_cycles
from .model import Task, status_value

_EXHAUSTED = object()


@dataclass(frozen=True)
class ExecutionPlan:
    """Execution plan with batches.

    When ``has_cycles`` is set no valid order exists: ``batches`` is empty
    and ``cyclic_tasks`` names the offending ids.  ``total_tasks`` counts
    distinct task ids, so a repeated id is counted once.
    """

    batches: tuple[tuple[str, ...], ...] = ()
    total_tasks: int = 0
    has_cycles: bool = False
    cyclic_tasks: tuple[str, ...] = field(default_factory=tuple)

    @property
    def max_parallelism(self) -> int:
        """Maximum tasks in any single batch."""
        return max((len(batch) for batch in self.batches), default=0)

    def batch_index(self, task_id: str) -> Optional[int]:
        for index, batch in enumerate(self.batches):
            if task_id in batch:
                return index
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "batches": [list(batch) for batch in self.batches],
            "total_tasks": self.total_tasks,
            "total_batches": len(self.batches),
            "max_parallelism": self.max_parallelism,
            "has_cycles": self.has_cycles,
            "cyclic_tasks": list(self.cyclic_tasks),
        }


def plan_execution(tasks: Iterable[Task]) -> ExecutionPlan:
    """Return batches of task ids that can run in parallel.

    Dependencies on ids outside *tasks* never hold a task back.
    """
    tasks = list(tasks)
    graph = build_graph(tasks)
    cyclic = detect_cycles(graph)
    if cyclic:
        ordered_cyclic = tuple(tid for tid in graph.task_ids if tid in cyclic)
        return ExecutionPlan(
            batches=(),
            total_tasks=len(graph.task_ids),
            has_cycles=True,
            cyclic_tasks=ordered_cyclic,
        )

    present = set(graph.task_ids)
    in_degree: dict[str, int] = {
        tid: sum(1 for dep in graph.dependencies_of(tid) if dep in present)
        for tid in graph.task_ids
    }

    batches: list[tuple[str, ...]] = []
    queue = [tid for tid in graph.task_ids if in_degree[tid] == 0]
    scheduled = 0

    while scheduled < len(in_degree):
        if not queue:
            # Unreachable once cycles are excluded.
            logger.warning(
                "Planner stalled with {} unscheduled task(s)", len(in_degree) - scheduled
            )
            break
        batches.append(tuple(queue))
        scheduled += len(queue)
        next_queue: list[str] = []
        for tid in queue:
            for dependent in graph.dependents_of(tid):
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    next_queue.append(dependent)
        queue = next_queue

    plan = ExecutionPlan(batches=tuple(batches), total_tasks=len(graph.task_ids))
    logger.debug(
        "Execution plan: {} batch(es), max parallelism {}", len(plan.batches), plan.max_parallelism
    )
    return plan


def plan_pending(tasks: Iterable[Task], initial_status: str = DEFAULT_INITIAL_STATUS) -> ExecutionPlan:
    """Plan only the tasks that have not started yet.

    Dependencies on tasks outside the pending set (already started or
    finished) are dangling from the planner's point of view.
    """
    initial = status_value(initial_status)
    return plan_execution(t for t in tasks if status_value(t.status) == initial)


def merge_order(tasks: Iterable[Task]) -> list[Task]:
    """Order *tasks* so every present dependency comes before its dependent.

    Depth-first, starting from each task in input order.  Unknown ids are
    skipped and a cycle does not loop forever: the first visit wins.
    """
    tasks = list(tasks)
    by_id = {t.id: t for t in tasks}
    ordered: list[Task] = []
    visited: set[str] = set()

    for task in tasks:
        if task.id in visited:
            continue
        visited.add(task.id)
        stack = [(task, iter(task.dependencies))]
        while stack:
            current, deps = stack[-1]
            dep_id = next(deps, _EXHAUSTED)
            if dep_id is _EXHAUSTED:
                stack.pop()
                ordered.append(current)
                continue
            dep = by_id.get(dep_id)
            if dep is None or dep_id in visited:
                continue
            visited.add(dep_id)
            stack.append((dep, iter(dep.dependencies)))

    return ordered


def render_plan(plan: ExecutionPlan, tasks: Iterable[Task], width: int = 100) -> str:
    """Render an execution plan as plain text.

    Args:
        plan: Plan returned by :func:`plan_execution`.
        tasks: The snapshot the plan was computed from (for titles).
        width: Console width.

    Returns:
        The rendered text.
    """
    console = Console(record=True, width=width)
    task_by_id = {t.id: t for t in tasks}

    console.print("\n[bold]Parallel Execution Plan[/bold]")
    console.print(f"Total tasks: {plan.total_tasks}")

    if plan.has_cycles:
        console.print("[bold red]Circular dependencies detected[/bold red]")
        for tid in plan.cyclic_tasks:
            task = task_by_id.get(tid)
            console.print(escape(f"  • {tid} {task.title if task else ''}".rstrip()))
        return console.export_text()

    console.print(f"Batches: {len(plan.batches)}")
    console.print(f"Max parallelism: {plan.max_parallelism}")
    console.print()

    for batch_idx, batch in enumerate(plan.batches, 1):
        console.print(f"[bold cyan]Batch {batch_idx}:[/bold cyan] ({len(batch)} task(s) in parallel)")
        for tid in batch:
            task = task_by_id.get(tid)
            deps = list(task.dependencies) if task else []
            title = task.title if task else ""
            if deps:
                console.print(f"  • {escape(tid)} [dim](depends on: {escape(', '.join(deps))})[/dim]")
            else:
                console.print(f"  • {escape(tid)}")
            if title:
                console.print(f"    {escape(title[:80])}")
        console.print()

    return console.export_text()
