"""Tests for the dependency edit guard and readiness queries."""

from __future__ import annotations

from kanban_scheduler.model import Task, TaskStatus
from kanban_scheduler.queries import (
    CycleValidation,
    are_dependencies_satisfied,
    get_dependency_tasks,
    get_dependent_tasks,
    get_executable_tasks,
    validate_no_cycles,
)


# ---------------------------------------------------------------------------
# validate_no_cycles
# ---------------------------------------------------------------------------


class TestValidateNoCycles:
    def test_rejects_back_edge(self) -> None:
        tasks = [Task(id="X"), Task(id="Y", dependencies=["X"])]
        result = validate_no_cycles("X", ["Y"], tasks)
        assert not result.valid
        assert set(result.cycle_path) == {"X", "Y"}
        assert result.cycle == ("X", "Y", "X")

    def test_rejects_transitive_back_edge(self) -> None:
        tasks = [Task(id="X"), Task(id="Z", dependencies=["X"]), Task(id="Y", dependencies=["Z"])]
        result = validate_no_cycles("X", ["Y"], tasks)
        assert result.valid is False
        assert {"X", "Y", "Z"} <= set(result.cycle_path)
        assert result.cycle == ("X", "Y", "Z", "X")

    def test_accepts_forward_edge(self) -> None:
        tasks = [Task(id="X"), Task(id="Y")]
        assert validate_no_cycles("Y", ["X"], tasks) == CycleValidation(valid=True)

    def test_snapshot_not_mutated(self) -> None:
        tasks = [Task(id="X"), Task(id="Y", dependencies=["X"])]
        validate_no_cycles("X", ["Y"], tasks)
        assert tasks[0].dependencies == []
        assert tasks[1].dependencies == ["X"]

    def test_self_dependency_rejected(self) -> None:
        result = validate_no_cycles("X", ["X"], [Task(id="X")])
        assert not result.valid
        assert result.cycle == ("X", "X")

    def test_replacing_dependencies_can_break_a_cycle(self) -> None:
        tasks = [Task(id="A", dependencies=["B"]), Task(id="B", dependencies=["A"])]
        assert validate_no_cycles("A", [], tasks).valid

    def test_dangling_proposed_ids_are_fine(self) -> None:
        assert validate_no_cycles("X", ["ghost"], [Task(id="X")]).valid

    def test_unknown_task_is_checked_against_snapshot_as_is(self) -> None:
        tasks = [Task(id="A", dependencies=["B"]), Task(id="B", dependencies=["A"])]
        assert not validate_no_cycles("Z", [], tasks).valid

    def test_to_dict(self) -> None:
        assert CycleValidation(valid=True).to_dict() == {"valid": True}
        data = CycleValidation(valid=False, cycle_path=("X", "Y"), cycle=("X", "Y", "X")).to_dict()
        assert data == {"valid": False, "cycle_path": ["X", "Y"], "cycle": ["X", "Y", "X"]}


# ---------------------------------------------------------------------------
# Readiness
# ---------------------------------------------------------------------------


class TestDependenciesSatisfied:
    def test_completed_family_counts(self) -> None:
        for status in (TaskStatus.DONE, TaskStatus.CODE_REVIEW, TaskStatus.DEPLOY):
            tasks = [Task(id="A", status=status), Task(id="B", dependencies=["A"])]
            assert are_dependencies_satisfied("B", tasks)

    def test_in_progress_dependency(self) -> None:
        tasks = [Task(id="A", status=TaskStatus.WIP), Task(id="B", dependencies=["A"])]
        assert not are_dependencies_satisfied("B", tasks)

    def test_no_dependencies(self) -> None:
        assert are_dependencies_satisfied("A", [Task(id="A")])

    def test_unknown_task(self) -> None:
        assert not are_dependencies_satisfied("nope", [Task(id="A")])

    def test_dangling_dependency_not_satisfied(self) -> None:
        assert not are_dependencies_satisfied("A", [Task(id="A", dependencies=["ghost"])])

    def test_custom_completed_statuses(self) -> None:
        tasks = [Task(id="A", status=TaskStatus.CODE_REVIEW), Task(id="B", dependencies=["A"])]
        assert not are_dependencies_satisfied("B", tasks, completed_statuses={"done"})
        assert are_dependencies_satisfied("B", tasks, completed_statuses={TaskStatus.CODE_REVIEW})


class TestExecutableTasks:
    def test_only_ready_todo_tasks(self) -> None:
        tasks = [
            Task(id="A", status=TaskStatus.DONE),
            Task(id="B", dependencies=["A"]),
            Task(id="C", dependencies=["B"]),
            Task(id="D", status=TaskStatus.WIP),
            Task(id="E"),
        ]
        assert [t.id for t in get_executable_tasks(tasks)] == ["B", "E"]

    def test_status_given_as_plain_string(self) -> None:
        tasks = [Task.from_dict({"id": "A", "status": "done"}), Task.from_dict({"id": "B", "dependencies": ["A"]})]
        assert [t.id for t in get_executable_tasks(tasks, completed_statuses=["done"], initial_status="todo")] == ["B"]


class TestNeighbours:
    def test_dependents_and_dependencies(self) -> None:
        tasks = [
            Task(id="A"),
            Task(id="B", dependencies=["A"]),
            Task(id="C", dependencies=["A", "B", "ghost"]),
        ]
        assert [t.id for t in get_dependent_tasks("A", tasks)] == ["B", "C"]
        assert [t.id for t in get_dependency_tasks("C", tasks)] == ["A", "B"]
        assert get_dependency_tasks("missing", tasks) == []
        assert get_dependent_tasks("C", tasks) == []
