"""Load optional scheduler configuration from `.kanban_scheduler/config.yaml`."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

from loguru import logger

from .constants import (
    CONFIG_FILE,
    DEFAULT_COMPLETED_STATUSES,
    DEFAULT_INITIAL_STATUS,
    DEFAULT_MAX_PARALLEL,
    MAX_PARALLEL_ENV_VAR,
    STATE_DIR_NAME,
)
from .io_utils import _load_data_with_error
from .model import TaskStatus

VALID_STATUSES = {s.value for s in TaskStatus}


@dataclass(frozen=True)
class SchedulerConfig:
    """Status families and dispatch limits used by the engine."""

    completed_statuses: frozenset[str] = field(default_factory=lambda: DEFAULT_COMPLETED_STATUSES)
    initial_status: str = DEFAULT_INITIAL_STATUS
    max_parallel: int = DEFAULT_MAX_PARALLEL


def load_config_file(project_dir: Path) -> tuple[dict[str, Any], str | None]:
    """Load the optional config file.

    Args:
        project_dir: Project root directory.

    Returns:
        A tuple of `(config, error_message)`. If the file is missing, returns `({}, None)`.
    """
    project_dir = project_dir.resolve()
    path = project_dir / STATE_DIR_NAME / CONFIG_FILE
    if not path.exists():
        return {}, None
    data, err = _load_data_with_error(path, {})
    if err:
        return {}, err
    if not isinstance(data, dict):
        return {}, f"{path.name}: expected object, got {type(data).__name__}"
    return data, None


def _get_nested(config: Mapping[str, Any], *keys: str) -> Any:
    cur: Any = config
    for key in keys:
        if not isinstance(cur, dict):
            return None
        cur = cur.get(key)
    return cur


def get_scheduling_config(config: Mapping[str, Any]) -> dict[str, Any]:
    """Extract the `scheduling` block, or an empty dict if not present."""
    raw = _get_nested(config, "scheduling")
    return raw if isinstance(raw, dict) else {}


def get_dispatch_config(config: Mapping[str, Any]) -> dict[str, Any]:
    """Extract the `dispatch` block, or an empty dict if not present."""
    raw = _get_nested(config, "dispatch")
    return raw if isinstance(raw, dict) else {}


def _parse_completed(raw: Any) -> frozenset[str]:
    if not isinstance(raw, list) or not raw:
        return DEFAULT_COMPLETED_STATUSES
    unknown = [s for s in raw if str(s) not in VALID_STATUSES]
    if unknown:
        logger.warning("Ignoring scheduling.completed_statuses with unknown statuses: {}", unknown)
        return DEFAULT_COMPLETED_STATUSES
    return frozenset(str(s) for s in raw)


def _parse_initial(raw: Any) -> str:
    if raw is None:
        return DEFAULT_INITIAL_STATUS
    if str(raw) not in VALID_STATUSES:
        logger.warning("Ignoring unknown scheduling.initial_status: {!r}", raw)
        return DEFAULT_INITIAL_STATUS
    return str(raw)


def _parse_max_parallel(raw: Any) -> Optional[int]:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return None
    return value if value > 0 else None


def build_scheduler_config(
    config: Mapping[str, Any],
    environ: Optional[Mapping[str, str]] = None,
) -> SchedulerConfig:
    """Turn a raw config mapping into a :class:`SchedulerConfig`.

    ``MAX_PARALLEL_TASKS`` in *environ* (default: ``os.environ``) overrides
    ``dispatch.max_parallel``.
    """
    env = os.environ if environ is None else environ
    scheduling = get_scheduling_config(config)
    dispatch = get_dispatch_config(config)

    max_parallel = _parse_max_parallel(env.get(MAX_PARALLEL_ENV_VAR))
    if max_parallel is None:
        max_parallel = _parse_max_parallel(dispatch.get("max_parallel")) or DEFAULT_MAX_PARALLEL

    return SchedulerConfig(
        completed_statuses=_parse_completed(scheduling.get("completed_statuses")),
        initial_status=_parse_initial(scheduling.get("initial_status")),
        max_parallel=max_parallel,
    )


def load_scheduler_config(project_dir: Path) -> tuple[SchedulerConfig, str | None]:
    """Load and parse the project config, falling back to defaults on error."""
    raw, err = load_config_file(project_dir)
    if err:
        return build_scheduler_config({}), err
    return build_scheduler_config(raw), None
