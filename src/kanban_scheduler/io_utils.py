from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from .model import Task


class SnapshotError(ValueError):
    """A task snapshot file is readable but structurally invalid."""

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message)
        self.errors = errors or []


def _load_data_with_error(
    path: Path,
    default: Any,
) -> tuple[Any, str | None]:
    """
    Load JSON/YAML and return (data, error_message).

    A missing file yields (default, None).  Parse and IO failures are
    reported instead of raised.
    """
    if not path.exists():
        return default, None
    try:
        with open(path, "r", encoding="utf-8") as handle:
            if path.suffix in {".yaml", ".yml"}:
                data = yaml.safe_load(handle)
            else:
                data = json.load(handle)
        if data is None:
            return default, None
        return data, None
    except OSError as exc:
        return default, f"{path.name}: {exc.__class__.__name__}: {exc}"
    except json.JSONDecodeError as exc:
        return default, f"{path.name}: JSONDecodeError: {exc}"
    except yaml.YAMLError as exc:
        return default, f"{path.name}: YAMLError: {exc}"


def _extract_items(data: Any, key: str) -> list[Any] | None:
    if isinstance(data, list):
        return data
    if isinstance(data, dict) and isinstance(data.get(key), list):
        return data[key]
    return None


def load_task_snapshot(path: Path, *, strict: bool = False) -> tuple[list[Task], str | None]:
    """Load a task snapshot from a JSON/YAML file.

    The file holds either a list of task objects or a mapping with a
    ``tasks`` list.

    Args:
        path: Snapshot file.
        strict: Raise :class:`SnapshotError` when an entry fails
            :meth:`Task.validate_dict` instead of reporting it.

    Returns:
        A tuple of ``(tasks, error_message)``.
    """
    if not path.exists():
        return [], f"{path.name}: file not found"
    data, err = _load_data_with_error(path, None)
    if err:
        return [], err
    items = _extract_items(data, "tasks")
    if items is None:
        return [], f"{path.name}: expected a list of tasks or a mapping with 'tasks'"

    errors: list[str] = []
    for index, item in enumerate(items):
        for problem in Task.validate_dict(item):
            errors.append(f"tasks[{index}]: {problem}")
    if errors:
        if strict:
            raise SnapshotError(f"{path.name}: invalid task snapshot", errors)
        return [], f"{path.name}: " + "; ".join(errors)
    return [Task.from_dict(item) for item in items], None


def load_items(path: Path, key: str) -> tuple[list[dict[str, Any]], str | None]:
    """Load a list of plain mappings from *path* (top-level list or ``key:`` list)."""
    if not path.exists():
        return [], f"{path.name}: file not found"
    data, err = _load_data_with_error(path, None)
    if err:
        return [], err
    items = _extract_items(data, key)
    if items is None:
        return [], f"{path.name}: expected a list or a mapping with '{key}'"
    return [item for item in items if isinstance(item, dict)], None
