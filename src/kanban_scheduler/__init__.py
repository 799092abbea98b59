"""Provide the public `kanban_scheduler` package exports."""

from __future__ import annotations

from .config import SchedulerConfig, load_scheduler_config
from .dispatch import BatchDispatcher, DispatchEvent, TaskResult, generate_branch_name
from .engine import DependencyEngine, default_engine
from .graph import DependencyGraph, build_graph, detect_cycles, find_cycle
from .model import COMPLETED_STATUSES, CreatedTask, Task, TaskStatus, TitleDeclaration
from .planner import ExecutionPlan, merge_order, plan_execution, plan_pending
from .queries import (
    CycleValidation,
    are_dependencies_satisfied,
    get_dependency_tasks,
    get_dependent_tasks,
    get_executable_tasks,
    validate_no_cycles,
)
from .resolver import parse_task_declarations, resolve_dependencies_by_title

__all__ = [
    "BatchDispatcher",
    "COMPLETED_STATUSES",
    "CreatedTask",
    "CycleValidation",
    "DependencyEngine",
    "DependencyGraph",
    "DispatchEvent",
    "ExecutionPlan",
    "SchedulerConfig",
    "Task",
    "TaskResult",
    "TaskStatus",
    "TitleDeclaration",
    "are_dependencies_satisfied",
    "build_graph",
    "default_engine",
    "detect_cycles",
    "find_cycle",
    "generate_branch_name",
    "get_dependency_tasks",
    "get_dependent_tasks",
    "get_executable_tasks",
    "load_scheduler_config",
    "merge_order",
    "parse_task_declarations",
    "plan_execution",
    "plan_pending",
    "resolve_dependencies_by_title",
    "validate_no_cycles",
]
