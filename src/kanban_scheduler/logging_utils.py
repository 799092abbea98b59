"""Logging setup and compact summaries for plans and dispatch events."""

from __future__ import annotations

import json
import sys
from typing import Any

from loguru import logger


def configure_logging(level: str = "WARNING") -> None:
    """Configure loguru logger with the specified level."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{module}</cyan>:<cyan>{line}</cyan>\n"
            "{message}"
        ),
    )


def summarize_event(event: Any) -> dict[str, Any]:
    """Render a compact, JSON-friendly summary of a dispatch event.

    Long id lists are cut to a sample so a log line stays readable.
    """
    if event is None:
        return {"event": None}

    d: dict[str, Any] = {"event": getattr(event, "type", event.__class__.__name__)}
    data = dict(getattr(event, "data", {}) or {})

    for key in ("batch_number", "total_batches", "total_tasks", "task_id", "success"):
        if key in data:
            d[key] = data[key]

    for key in ("task_ids", "completed_tasks", "failed_tasks", "cyclic_tasks"):
        items = data.get(key)
        if isinstance(items, list):
            d[f"{key}_n"] = len(items)
            d[f"{key}_sample"] = items[:3]

    error = data.get("error")
    if error:
        text = str(error)
        d["error"] = (text[:240] + "…") if len(text) > 240 else text

    return d


def pretty(obj: Any, *, indent: int = 2) -> str:
    """Serialize an object as JSON for readable logs.

    Args:
        obj: Object to serialize.
        indent: Indentation level for JSON output.

    Returns:
        A JSON string when possible; otherwise `str(obj)`.
    """
    try:
        return json.dumps(obj, indent=indent, default=str)
    except (TypeError, ValueError):
        return str(obj)
