"""Dependency graph construction and cycle detection.

A :class:`DependencyGraph` is a derived, read-only snapshot: it is rebuilt
from the caller's task list for every query and never patched in place.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, Mapping, Optional

from loguru import logger

from .model import Task

_EXHAUSTED = object()


@dataclass(frozen=True)
class DependencyGraph:
    """Adjacency view over one task snapshot.

    ``dependencies`` maps each task id to the ids it depends on (dangling
    ids included).  ``dependents`` is the reverse index restricted to ids
    present in the snapshot.
    """

    dependencies: Mapping[str, tuple[str, ...]]
    dependents: Mapping[str, tuple[str, ...]]
    roots: tuple[str, ...]
    task_ids: tuple[str, ...]

    def dependencies_of(self, task_id: str) -> tuple[str, ...]:
        return self.dependencies.get(task_id, ())

    def dependents_of(self, task_id: str) -> tuple[str, ...]:
        return self.dependents.get(task_id, ())

    def __contains__(self, task_id: object) -> bool:
        return task_id in self.dependencies


def build_graph(tasks: Iterable[Task]) -> DependencyGraph:
    """Build the dependency / dependents / roots view of *tasks*.

    Never fails.  Duplicate dependency ids on one task collapse to one edge;
    if the snapshot repeats a task id, the last declaration wins.
    """
    declared: dict[str, tuple[str, ...]] = {}
    for task in tasks:
        declared[task.id] = tuple(dict.fromkeys(task.dependencies))

    dependents: dict[str, list[str]] = {task_id: [] for task_id in declared}
    for task_id, deps in declared.items():
        for dep_id in deps:
            # Dangling ids get no reverse entry.
            if dep_id in dependents:
                dependents[dep_id].append(task_id)

    roots = tuple(task_id for task_id, deps in declared.items() if not deps)
    graph = DependencyGraph(
        dependencies=declared,
        dependents={task_id: tuple(ids) for task_id, ids in dependents.items()},
        roots=roots,
        task_ids=tuple(declared),
    )
    logger.debug("Built dependency graph: {} task(s), {} root(s)", len(graph.task_ids), len(roots))
    return graph


def _iter_back_edge_paths(graph: DependencyGraph) -> Iterator[list[str]]:
    """Yield the current DFS path slice for every back edge found.

    Each yielded list starts at the back edge's target and ends at its
    source, so it is exactly one cycle.  Every task id is used as a DFS root
    at most once; the traversal keeps an explicit stack instead of recursing.
    """
    visited: set[str] = set()
    for root in graph.task_ids:
        if root in visited:
            continue
        visited.add(root)
        path: list[str] = [root]
        on_path: dict[str, int] = {root: 0}
        pending = [iter(graph.dependencies_of(root))]

        while pending:
            dep_id = next(pending[-1], _EXHAUSTED)
            if dep_id is _EXHAUSTED:
                pending.pop()
                del on_path[path.pop()]
                continue
            if dep_id in on_path:
                yield path[on_path[dep_id]:]
                continue
            if dep_id in visited:
                continue
            visited.add(dep_id)
            on_path[dep_id] = len(path)
            path.append(dep_id)
            pending.append(iter(graph.dependencies_of(dep_id)))


def detect_cycles(graph: DependencyGraph) -> set[str]:
    """Return the ids of every task found on a dependency cycle.

    This is a flag set ("unsafe to schedule"), not an enumeration of
    distinct cycles.  Empty for an acyclic graph.
    """
    cyclic: set[str] = set()
    for cycle in _iter_back_edge_paths(graph):
        cyclic.update(cycle)
    if cyclic:
        logger.warning("Dependency cycle detected among tasks: {}", sorted(cyclic))
    return cyclic


def find_cycle(graph: DependencyGraph) -> Optional[list[str]]:
    """Return one ordered cycle path, e.g. ``["A", "B", "A"]``, or None.

    Edges point from a task to its dependency, so ``["A", "B", "A"]`` reads
    "A depends on B depends on A".
    """
    for cycle in _iter_back_edge_paths(graph):
        return cycle + [cycle[0]]
    return None
