"""Map title-based dependency declarations onto stable task ids.

Upstream analysis (e.g. an LLM breaking a PRD into tasks) names sibling
tasks by title because it cannot know the ids they will be stored under.
Once the tasks exist, :func:`resolve_dependencies_by_title` turns those
titles into ids.  Resolution is lenient: an unknown title just means one
constraint fewer.
"""

from __future__ import annotations

import json
import re
from typing import Any, Iterable, Mapping, Union

from loguru import logger

from .model import CreatedTask, TitleDeclaration

DeclarationLike = Union[TitleDeclaration, Mapping[str, Any]]
CreatedLike = Union[CreatedTask, Mapping[str, Any]]

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.S | re.I)


def _as_declaration(item: DeclarationLike) -> TitleDeclaration:
    if isinstance(item, TitleDeclaration):
        return item
    return TitleDeclaration.from_dict(item)


def _as_created(item: CreatedLike) -> CreatedTask:
    if isinstance(item, CreatedTask):
        return item
    return CreatedTask.from_dict(item)


def resolve_dependencies_by_title(
    declared: Iterable[DeclarationLike],
    created: Iterable[CreatedLike],
) -> dict[str, list[str]]:
    """Resolve declared dependency titles to ids of *created* tasks.

    Args:
        declared: Tasks as described upstream, with dependency titles.
        created: The tasks as persisted, each with its assigned id.

    Returns:
        Mapping of task id to the resolved dependency ids.  A declaration
        whose own title (exact, case-sensitive) is not among *created* is
        skipped; dependency titles are matched case-insensitively and
        unmatched ones are dropped.  Cycles are not checked here.
    """
    created_list = [_as_created(c) for c in created]
    title_to_id = {c.title.lower(): c.id for c in created_list}

    result: dict[str, list[str]] = {}
    for decl in (_as_declaration(d) for d in declared):
        entry = next((c for c in created_list if c.title == decl.title), None)
        if entry is None:
            continue
        resolved: list[str] = []
        for dep_title in decl.dependency_titles:
            dep_id = title_to_id.get(dep_title.lower())
            if dep_id is None:
                logger.debug("Dropping unresolved dependency title {!r} of {!r}", dep_title, decl.title)
                continue
            resolved.append(dep_id)
        result[entry.id] = resolved
    return result


def parse_task_declarations(text: str) -> list[TitleDeclaration]:
    """Parse an analyzer reply holding a JSON array of task objects.

    Tolerates markdown fences and prose around the array.  Returns an empty
    list when nothing usable is found.
    """
    if not text:
        return []
    fenced = _FENCE_RE.search(text)
    candidate = fenced.group(1) if fenced else text
    start = candidate.find("[")
    end = candidate.rfind("]")
    if start == -1 or end <= start:
        return []
    try:
        data = json.loads(candidate[start:end + 1])
    except json.JSONDecodeError as exc:
        logger.warning("Could not parse task declarations: {}", exc)
        return []
    if not isinstance(data, list):
        return []
    return [
        TitleDeclaration.from_dict(item)
        for item in data
        if isinstance(item, dict) and isinstance(item.get("title"), str) and item["title"]
    ]
