"""Dependency & scheduling engine: one object over the pure graph functions.

The engine is stateless: every call rebuilds the graph from the snapshot it
is given, so there is no cached graph to go stale under concurrent writers.
Callers own the tasks and any persistence or dispatch.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

from loguru import logger

from .config import SchedulerConfig
from .graph import DependencyGraph, build_graph, detect_cycles, find_cycle
from .model import Task, coerce_tasks
from .planner import ExecutionPlan, merge_order, plan_execution, plan_pending
from .queries import (
    CycleValidation,
    are_dependencies_satisfied,
    get_dependency_tasks,
    get_dependent_tasks,
    get_executable_tasks,
    validate_no_cycles,
)
from .resolver import resolve_dependencies_by_title


class DependencyEngine:
    """Manage dependency checks and execution ordering for a task snapshot.

    Parameters
    ----------
    config:
        Status families used by readiness queries and pending-only planning.
        Defaults to the built-in Kanban lifecycle.
    """

    def __init__(self, config: Optional[SchedulerConfig] = None) -> None:
        self.config = config or SchedulerConfig()

    # ------------------------------------------------------------------
    # Graph
    # ------------------------------------------------------------------

    def build_graph(self, tasks: Iterable[Any]) -> DependencyGraph:
        return build_graph(coerce_tasks(tasks))

    def detect_cycles(self, tasks: Iterable[Any]) -> set[str]:
        """Ids of all tasks implicated in a dependency cycle."""
        return detect_cycles(self.build_graph(tasks))

    def find_cycle(self, tasks: Iterable[Any]) -> Optional[list[str]]:
        return find_cycle(self.build_graph(tasks))

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def get_execution_order(self, tasks: Iterable[Any]) -> ExecutionPlan:
        plan = plan_execution(coerce_tasks(tasks))
        if plan.has_cycles:
            logger.warning("No valid execution order; cyclic tasks: {}", list(plan.cyclic_tasks))
        return plan

    def get_execution_plan(self, tasks: Iterable[Any]) -> ExecutionPlan:
        """Plan only tasks still in the initial status."""
        plan = plan_pending(coerce_tasks(tasks), self.config.initial_status)
        if plan.has_cycles:
            logger.warning("No valid execution order; cyclic tasks: {}", list(plan.cyclic_tasks))
        return plan

    def merge_order(self, tasks: Iterable[Any]) -> list[Task]:
        return merge_order(coerce_tasks(tasks))

    # ------------------------------------------------------------------
    # Guards and readiness
    # ------------------------------------------------------------------

    def validate_no_cycles(
        self,
        task_id: str,
        proposed_dependency_ids: Iterable[str],
        tasks: Iterable[Any],
    ) -> CycleValidation:
        result = validate_no_cycles(task_id, proposed_dependency_ids, coerce_tasks(tasks))
        if not result.valid:
            logger.info("Rejected dependency edit for {}: cycle {}", task_id, result.cycle)
        return result

    def are_dependencies_satisfied(self, task_id: str, tasks: Iterable[Any]) -> bool:
        return are_dependencies_satisfied(task_id, coerce_tasks(tasks), self.config.completed_statuses)

    def get_executable_tasks(self, tasks: Iterable[Any]) -> list[Task]:
        return get_executable_tasks(
            coerce_tasks(tasks),
            self.config.completed_statuses,
            self.config.initial_status,
        )

    def get_dependent_tasks(self, task_id: str, tasks: Iterable[Any]) -> list[Task]:
        return get_dependent_tasks(task_id, coerce_tasks(tasks))

    def get_dependency_tasks(self, task_id: str, tasks: Iterable[Any]) -> list[Task]:
        return get_dependency_tasks(task_id, coerce_tasks(tasks))

    # ------------------------------------------------------------------
    # Reference resolution
    # ------------------------------------------------------------------

    def resolve_dependencies_by_title(
        self,
        declared: Iterable[Any],
        created: Iterable[Any],
    ) -> dict[str, list[str]]:
        return resolve_dependencies_by_title(declared, created)


default_engine = DependencyEngine()
