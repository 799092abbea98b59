"""Task model consumed by the dependency & scheduling engine.

The engine never owns tasks: callers hand it a snapshot of :class:`Task`
objects (or plain dicts converted through :meth:`Task.from_dict`) and get
pure results back.  Nothing in here mutates a task in place.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any, Iterable, Mapping, Optional

from .constants import DEFAULT_COMPLETED_STATUSES


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class TaskStatus(str, Enum):
    """Kanban lifecycle status.  ``todo`` is the initial state."""

    TODO = "todo"
    WIP = "wip"
    DONE = "done"
    CODE_REVIEW = "code_review"
    DONE_UNIT_TEST = "done_unit_test"
    DONE_E2E_TESTING = "done_e2e_testing"
    DEPLOY = "deploy"

    @property
    def is_completed(self) -> bool:
        return self.value in DEFAULT_COMPLETED_STATUSES


COMPLETED_STATUSES = frozenset(TaskStatus(value) for value in DEFAULT_COMPLETED_STATUSES)


# ---------------------------------------------------------------------------
# Helper
# ---------------------------------------------------------------------------

def _generate_id() -> str:
    """Short human-friendly task ID: ``task-<8hex>``."""
    return f"task-{uuid.uuid4().hex[:8]}"


def status_value(status: Any) -> str:
    """Plain string form of a status given as :class:`TaskStatus` or str."""
    return str(getattr(status, "value", status))


def _coerce_status(raw: Any) -> TaskStatus:
    if isinstance(raw, TaskStatus):
        return raw
    try:
        return TaskStatus(str(raw))
    except ValueError:
        return TaskStatus.TODO


def _coerce_ids(raw: Any) -> list[str]:
    if isinstance(raw, str):
        return [raw]
    if not isinstance(raw, (list, tuple, set, frozenset)):
        return []
    return [str(item) for item in raw]


def _coerce_position(raw: Any) -> int:
    try:
        value = int(raw or 0)
    except (TypeError, ValueError):
        return 0
    return max(value, 0)


def _coerce_metadata(raw: Any) -> dict[str, Any]:
    return dict(raw) if isinstance(raw, Mapping) else {}


# ---------------------------------------------------------------------------
# Task dataclass
# ---------------------------------------------------------------------------

@dataclass
class Task:
    """A unit of work with declared dependency edges.

    ``dependencies`` lists the ids of tasks that must reach a completed
    status before this one may run.  Ids that are not part of a snapshot are
    kept as-is; the engine treats them leniently.
    """

    id: str = field(default_factory=_generate_id)
    title: str = ""
    description: str = ""
    status: TaskStatus = TaskStatus.TODO
    dependencies: list[str] = field(default_factory=list)
    position: int = 0
    branch_name: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @classmethod
    def validate_dict(cls, data: Any) -> list[str]:
        """Check a raw task dict before conversion.

        Returns a list of error strings (empty = valid).
        """
        errors: list[str] = []
        if not isinstance(data, dict):
            return ["Expected a dict"]
        task_id = data.get("id")
        if not isinstance(task_id, str) or not task_id:
            errors.append("'id' is required and must be a non-empty string")
        title = data.get("title")
        if title is not None and not isinstance(title, str):
            errors.append("'title' must be a string")
        status = data.get("status")
        if status is not None:
            valid_statuses = {e.value for e in TaskStatus}
            if status not in valid_statuses:
                errors.append(f"'status' must be one of {sorted(valid_statuses)}, got '{status}'")
        for key in ("dependencies", "dependsOn", "blocked_by"):
            val = data.get(key)
            if val is not None and not isinstance(val, list):
                errors.append(f"'{key}' must be an array")
        position = data.get("position")
        if position is not None and (not isinstance(position, int) or position < 0):
            errors.append("'position' must be a non-negative integer")
        return errors

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict for YAML/JSON output."""
        data: dict[str, Any] = {}
        for k, v in asdict(self).items():
            if isinstance(v, Enum):
                data[k] = v.value
            else:
                data[k] = v
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Task":
        """Deserialize from a plain dict, coercing the status gracefully.

        Upstream stores name the dependency list differently; ``dependsOn``
        and ``blocked_by`` are accepted when ``dependencies`` is absent.
        """
        d = dict(data)
        deps_raw = d.pop("dependencies", None)
        if deps_raw is None:
            deps_raw = d.pop("dependsOn", None)
        if deps_raw is None:
            deps_raw = d.pop("blocked_by", None)
        return cls(
            id=str(d.pop("id", None) or _generate_id()),
            title=str(d.pop("title", "") or ""),
            description=str(d.pop("description", "") or ""),
            status=_coerce_status(d.pop("status", None)),
            dependencies=_coerce_ids(deps_raw),
            position=_coerce_position(d.pop("position", 0)),
            branch_name=d.pop("branch_name", None) or d.pop("branchName", None),
            metadata=_coerce_metadata(d.pop("metadata", None)),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def is_completed(self) -> bool:
        return status_value(self.status) in DEFAULT_COMPLETED_STATUSES

    def with_dependencies(self, dependency_ids: Iterable[str]) -> "Task":
        """Return a copy whose dependency list is replaced by *dependency_ids*."""
        return replace(self, dependencies=list(dependency_ids))


def coerce_tasks(items: Iterable[Any]) -> list[Task]:
    """Accept a mix of :class:`Task` objects and raw dicts; anything else is skipped."""
    tasks: list[Task] = []
    for item in items:
        if isinstance(item, Task):
            tasks.append(item)
        elif isinstance(item, Mapping):
            tasks.append(Task.from_dict(item))
    return tasks


# ---------------------------------------------------------------------------
# Reference resolver value types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TitleDeclaration:
    """A task described by title, naming its dependencies by title too."""

    title: str
    dependency_titles: tuple[str, ...] = ()
    description: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TitleDeclaration":
        raw = data.get("dependency_titles")
        if raw is None:
            raw = data.get("dependencies")
        return cls(
            title=str(data.get("title", "") or ""),
            dependency_titles=tuple(str(t) for t in (raw or []) if isinstance(t, str)),
            description=str(data.get("description", "") or ""),
        )


@dataclass(frozen=True)
class CreatedTask:
    """A freshly persisted task: the stable id assigned to a title."""

    id: str
    title: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CreatedTask":
        return cls(id=str(data.get("id", "")), title=str(data.get("title", "") or ""))
