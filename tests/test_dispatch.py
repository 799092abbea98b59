"""Tests for batch-by-batch dispatch."""

from __future__ import annotations

import threading
import time

from kanban_scheduler.config import SchedulerConfig
from kanban_scheduler.dispatch import (
    BatchDispatcher,
    DispatchEvent,
    TaskResult,
    generate_branch_name,
)
from kanban_scheduler.model import Task, TaskStatus


def _diamond() -> list[Task]:
    return [
        Task(id="A", title="Create API"),
        Task(id="B", title="Build UI", dependencies=["A"]),
        Task(id="C", title="Write tests", dependencies=["A"]),
        Task(id="D", title="Release", dependencies=["B", "C"]),
    ]


class _Recorder:
    """Executor that records start/finish order."""

    def __init__(self, fail: set[str] | None = None, delay: float = 0.0) -> None:
        self.fail = fail or set()
        self.delay = delay
        self.lock = threading.Lock()
        self.started: list[str] = []
        self.finished: list[str] = []
        self.branches: dict[str, str] = {}

    def __call__(self, task: Task, branch_name: str) -> TaskResult:
        with self.lock:
            self.started.append(task.id)
            self.branches[task.id] = branch_name
        if self.delay:
            time.sleep(self.delay)
        with self.lock:
            self.finished.append(task.id)
        if task.id in self.fail:
            return TaskResult(task_id=task.id, success=False, error="tests failed")
        return TaskResult(task_id=task.id, success=True)


# ---------------------------------------------------------------------------
# generate_branch_name
# ---------------------------------------------------------------------------


class TestBranchName:
    def test_format(self) -> None:
        task = Task(id="task-1234abcd", title="Add Login Page!")
        assert generate_branch_name(task) == "feature/task-task-123-add-login-page"

    def test_title_truncated(self) -> None:
        task = Task(id="abc", title="x" * 50)
        assert generate_branch_name(task) == "feature/task-abc-" + "x" * 30


# ---------------------------------------------------------------------------
# BatchDispatcher
# ---------------------------------------------------------------------------


class TestBatchDispatcher:
    def test_batches_run_in_order(self) -> None:
        recorder = _Recorder(delay=0.01)
        results = BatchDispatcher(max_workers=4).run(_diamond(), recorder)

        assert sorted(r.task_id for r in results) == ["A", "B", "C", "D"]
        assert all(r.success for r in results)
        # A finishes before B/C start; both finish before D starts.
        assert recorder.started[0] == "A"
        assert recorder.finished.index("A") < recorder.started.index("B")
        assert recorder.finished.index("A") < recorder.started.index("C")
        assert recorder.started[-1] == "D"
        assert recorder.finished.index("B") < recorder.started.index("D")
        assert recorder.finished.index("C") < recorder.started.index("D")

    def test_event_sequence(self) -> None:
        events: list[DispatchEvent] = []
        BatchDispatcher(max_workers=2).run(_diamond(), _Recorder(), on_event=events.append)

        types = [e.type for e in events]
        assert types[0] == "plan_ready"
        assert types[-1] == "execution_complete"
        assert types.count("batch_start") == 3
        assert types.count("batch_complete") == 3
        assert types.count("task_start") == 4
        assert types.count("task_complete") == 4
        assert events[0].data["batches"] == [["A"], ["B", "C"], ["D"]]

    def test_branch_name_passed_to_executor(self) -> None:
        recorder = _Recorder()
        tasks = [Task(id="task-aaaa1111", title="First"), Task(id="B", title="Second", branch_name="custom/b")]
        BatchDispatcher().run(tasks, recorder)
        assert recorder.branches["task-aaaa1111"] == "feature/task-task-aaa-first"
        assert recorder.branches["B"] == "custom/b"

    def test_only_pending_tasks_run(self) -> None:
        recorder = _Recorder()
        tasks = _diamond()
        tasks[0] = Task(id="A", status=TaskStatus.DONE)
        BatchDispatcher().run(tasks, recorder)
        assert "A" not in recorder.started
        assert sorted(recorder.started) == ["B", "C", "D"]

    def test_cycle_runs_nothing(self) -> None:
        events: list[DispatchEvent] = []
        tasks = [Task(id="A", dependencies=["B"]), Task(id="B", dependencies=["A"])]
        recorder = _Recorder()
        results = BatchDispatcher().run(tasks, recorder, on_event=events.append)
        assert results == []
        assert recorder.started == []
        assert [e.type for e in events] == ["execution_error"]
        assert events[0].data["cyclic_tasks"] == ["A", "B"]

    def test_fail_fast_stops_before_next_batch(self) -> None:
        events: list[DispatchEvent] = []
        recorder = _Recorder(fail={"B"})
        dispatcher = BatchDispatcher()
        results = dispatcher.run(_diamond(), recorder, on_event=events.append)

        assert "D" not in recorder.started
        assert sorted(r.task_id for r in results) == ["A", "B", "C"]
        assert events[-1].type == "execution_error"
        assert dispatcher.get_errors() == {"B": "tests failed"}
        assert dispatcher.get_status()["B"] == "failed"
        assert dispatcher.get_status()["C"] == "completed"

    def test_continue_past_failures(self) -> None:
        events: list[DispatchEvent] = []
        recorder = _Recorder(fail={"B"})
        results = BatchDispatcher(fail_fast=False).run(_diamond(), recorder, on_event=events.append)
        assert sorted(r.task_id for r in results) == ["A", "B", "C", "D"]
        assert events[-1].type == "execution_complete"
        failed_batch = [e for e in events if e.type == "batch_complete" and not e.data["success"]]
        assert failed_batch[0].data["failed_tasks"] == [{"task_id": "B", "error": "tests failed"}]

    def test_executor_exception_becomes_failed_result(self) -> None:
        def explode(task: Task, branch_name: str) -> TaskResult:
            raise RuntimeError("boom")

        dispatcher = BatchDispatcher()
        results = dispatcher.run([Task(id="A")], explode)
        assert len(results) == 1
        assert not results[0].success
        assert "boom" in results[0].error
        assert results[0].duration_seconds >= 0
        assert dispatcher.get_status() == {"A": "failed"}

    def test_parallelism_bounded_by_max_workers(self) -> None:
        active = 0
        peak = 0
        lock = threading.Lock()

        def executor(task: Task, branch_name: str) -> TaskResult:
            nonlocal active, peak
            with lock:
                active += 1
                peak = max(peak, active)
            time.sleep(0.02)
            with lock:
                active -= 1
            return TaskResult(task_id=task.id, success=True)

        tasks = [Task(id=f"t{i}") for i in range(6)]
        BatchDispatcher(max_workers=2).run(tasks, executor)
        assert peak <= 2

    def test_from_config(self) -> None:
        dispatcher = BatchDispatcher.from_config(SchedulerConfig(initial_status="wip", max_parallel=3))
        assert dispatcher.max_workers == 3
        assert dispatcher.initial_status == "wip"
        assert dispatcher.fail_fast

    def test_failing_event_callback_does_not_break_dispatch(self) -> None:
        seen: list[str] = []

        def callback(event: DispatchEvent) -> None:
            seen.append(event.type)
            if event.type == "task_start":
                raise RuntimeError("listener broke")

        dispatcher = BatchDispatcher()
        results = dispatcher.run(_diamond(), _Recorder(), on_event=callback)

        assert sorted(r.task_id for r in results) == ["A", "B", "C", "D"]
        assert all(r.success for r in results)
        assert set(dispatcher.get_status().values()) == {"completed"}
        assert seen.count("task_complete") == 4
        assert seen[-1] == "execution_complete"
