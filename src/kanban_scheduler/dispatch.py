"""Batch-by-batch dispatch of an execution plan.

This module provides the caller side of the scheduling contract: tasks in
one batch run concurrently, and batch *N+1* starts only after every task of
batch *N* has finished.  What "running a task" means (triggering a build,
an agent, ...) is supplied by the caller as ``executor_fn``.
"""

from __future__ import annotations

import concurrent.futures
import re
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

from loguru import logger

from .config import SchedulerConfig
from .constants import (
    BRANCH_ID_CHARS,
    BRANCH_PREFIX,
    BRANCH_TITLE_CHARS,
    DEFAULT_INITIAL_STATUS,
    DEFAULT_MAX_PARALLEL,
)
from .logging_utils import summarize_event
from .model import Task
from .planner import ExecutionPlan, plan_pending

_NON_SLUG_RE = re.compile(r"[^a-z0-9]+")


def generate_branch_name(task: Task) -> str:
    """Feature branch name for a task: ``feature/task-<id8>-<title-slug>``."""
    short_id = task.id[:BRANCH_ID_CHARS]
    slug = _NON_SLUG_RE.sub("-", task.title.lower()).strip("-")[:BRANCH_TITLE_CHARS]
    return f"{BRANCH_PREFIX}{short_id}-{slug}"


@dataclass
class TaskResult:
    """Result of running one task."""

    task_id: str
    success: bool
    error: Optional[str] = None
    duration_seconds: float = 0.0


@dataclass
class DispatchEvent:
    """Progress notification emitted while dispatching."""

    type: str  # plan_ready, batch_start, task_start, task_complete, task_error, batch_complete, execution_complete, execution_error
    data: dict[str, Any] = field(default_factory=dict)


ExecutorFn = Callable[[Task, str], TaskResult]
EventCallback = Callable[[DispatchEvent], None]


class BatchDispatcher:
    """Run planned batches with a bounded thread pool."""

    def __init__(
        self,
        max_workers: int = DEFAULT_MAX_PARALLEL,
        *,
        initial_status: str = DEFAULT_INITIAL_STATUS,
        fail_fast: bool = True,
    ):
        """Initialize the dispatcher.

        Args:
            max_workers: Maximum number of concurrently running tasks.
            initial_status: Only tasks in this status are planned.
            fail_fast: Stop before the next batch when a batch had failures.
        """
        self.max_workers = max(1, int(max_workers))
        self.initial_status = initial_status
        self.fail_fast = fail_fast
        self._lock = threading.RLock()
        self._task_status: dict[str, str] = {}  # task_id -> status
        self._task_errors: dict[str, str] = {}  # task_id -> error

    @classmethod
    def from_config(cls, config: SchedulerConfig, *, fail_fast: bool = True) -> "BatchDispatcher":
        """Build a dispatcher from the loaded scheduler config."""
        return cls(config.max_parallel, initial_status=config.initial_status, fail_fast=fail_fast)

    def run(
        self,
        tasks: Iterable[Task],
        executor_fn: ExecutorFn,
        on_event: Optional[EventCallback] = None,
    ) -> list[TaskResult]:
        """Plan the pending tasks and run them batch by batch.

        Args:
            tasks: The full task snapshot.
            executor_fn: Runs one task; called as ``executor_fn(task, branch_name)``.
            on_event: Optional callback receiving :class:`DispatchEvent` objects.

        Returns:
            Results of every task that was started.  Empty when the plan has cycles.
        """
        tasks = list(tasks)
        plan = plan_pending(tasks, self.initial_status)
        emit = self._emitter(on_event)

        if plan.has_cycles:
            logger.error("Refusing to dispatch: circular dependencies among {}", list(plan.cyclic_tasks))
            emit("execution_error", error="Circular dependencies detected", cyclic_tasks=list(plan.cyclic_tasks))
            return []

        emit(
            "plan_ready",
            batches=[list(b) for b in plan.batches],
            total_tasks=plan.total_tasks,
            total_batches=len(plan.batches),
        )
        logger.info(
            "Dispatch plan: {} batches, max parallelism: {}", len(plan.batches), plan.max_parallelism
        )
        return self._run_plan(plan, {t.id: t for t in tasks}, executor_fn, emit)

    def _run_plan(
        self,
        plan: ExecutionPlan,
        task_by_id: dict[str, Task],
        executor_fn: ExecutorFn,
        emit: Callable[..., None],
    ) -> list[TaskResult]:
        results: list[TaskResult] = []
        total = len(plan.batches)

        for batch_idx, batch in enumerate(plan.batches, 1):
            logger.info("Executing batch {}/{} with {} task(s)", batch_idx, total, len(batch))
            emit("batch_start", batch_number=batch_idx, total_batches=total, task_ids=list(batch))

            batch_results = self._execute_batch(batch, task_by_id, executor_fn, emit)
            results.extend(batch_results)

            failures = [r for r in batch_results if not r.success]
            emit(
                "batch_complete",
                batch_number=batch_idx,
                total_batches=total,
                success=not failures,
                completed_tasks=[r.task_id for r in batch_results if r.success],
                failed_tasks=[{"task_id": r.task_id, "error": r.error} for r in failures],
            )
            if failures:
                logger.warning("Batch {} had {} failure(s)", batch_idx, len(failures))
                for failure in failures:
                    logger.warning("  - Task {} failed: {}", failure.task_id, failure.error)
                if self.fail_fast:
                    emit(
                        "execution_error",
                        error=f"{len(failures)} task(s) failed in batch {batch_idx}",
                        batch_number=batch_idx,
                    )
                    return results

        emit("execution_complete", total_batches=total, total_tasks=plan.total_tasks)
        return results

    def _execute_batch(
        self,
        batch: tuple[str, ...],
        task_by_id: dict[str, Task],
        executor_fn: ExecutorFn,
        emit: Callable[..., None],
    ) -> list[TaskResult]:
        """Execute a single batch and wait for all of it."""

        def execute_task_wrapper(task_id: str) -> TaskResult:
            task = task_by_id[task_id]
            branch_name = task.branch_name or generate_branch_name(task)
            with self._lock:
                self._task_status[task_id] = "running"
            emit("task_start", task_id=task_id, branch_name=branch_name)

            started = time.monotonic()
            try:
                result = executor_fn(task, branch_name)
            except Exception as e:
                logger.exception("Unexpected error executing task {}: {}", task_id, e)
                result = TaskResult(task_id=task_id, success=False, error=f"Unexpected error: {e}")
            if not result.duration_seconds:
                result.duration_seconds = time.monotonic() - started

            with self._lock:
                self._task_status[task_id] = "completed" if result.success else "failed"
                if not result.success:
                    self._task_errors[task_id] = result.error or "Unknown error"
            if result.success:
                emit("task_complete", task_id=task_id, duration_seconds=result.duration_seconds)
            else:
                emit("task_error", task_id=task_id, error=result.error)
            return result

        if len(batch) == 1:
            return [execute_task_wrapper(batch[0])]

        results: list[TaskResult] = []
        with concurrent.futures.ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {executor.submit(execute_task_wrapper, tid): tid for tid in batch}
            for future in concurrent.futures.as_completed(futures):
                results.append(future.result())
        return results

    def _emitter(self, on_event: Optional[EventCallback]) -> Callable[..., None]:
        def emit(event_type: str, **data: Any) -> None:
            event = DispatchEvent(type=event_type, data=data)
            logger.debug("Dispatch event: {}", summarize_event(event))
            if on_event is None:
                return
            with self._lock:
                try:
                    on_event(event)
                except Exception as e:
                    logger.exception("Event callback failed on {}: {}", event_type, e)

        return emit

    def get_status(self) -> dict[str, str]:
        """Current status of every started task."""
        with self._lock:
            return dict(self._task_status)

    def get_errors(self) -> dict[str, str]:
        with self._lock:
            return dict(self._task_errors)
