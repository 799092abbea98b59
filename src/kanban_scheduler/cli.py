from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from .config import load_scheduler_config
from .constants import EXIT_LOAD_ERROR, EXIT_OK, EXIT_REJECTED
from .engine import DependencyEngine
from .io_utils import load_items, load_task_snapshot
from .logging_utils import configure_logging, pretty
from .model import Task
from .planner import render_plan
from .resolver import parse_task_declarations

_TEXT_SUFFIXES = {".txt", ".md"}


def _resolve_project_dir(project_dir: Optional[str]) -> Path:
    return Path(project_dir).expanduser().resolve() if project_dir else Path.cwd().resolve()


def _engine(args: argparse.Namespace) -> DependencyEngine:
    config, err = load_scheduler_config(_resolve_project_dir(args.project_dir))
    if err:
        logger.warning("Ignoring unreadable config ({}); using defaults", err)
    return DependencyEngine(config)


def _load(path: str) -> tuple[list[Task], Optional[str]]:
    tasks, err = load_task_snapshot(Path(path).expanduser())
    if err:
        sys.stderr.write(err + '\n')
    return tasks, err


def _emit(payload: Any) -> None:
    sys.stdout.write(pretty(payload) + '\n')


def _plan(args: argparse.Namespace) -> int:
    tasks, err = _load(args.file)
    if err:
        return EXIT_LOAD_ERROR
    engine = _engine(args)
    plan = engine.get_execution_plan(tasks) if args.pending else engine.get_execution_order(tasks)
    if args.render:
        sys.stdout.write(render_plan(plan, tasks))
    else:
        _emit({'plan': plan.to_dict()})
    return EXIT_REJECTED if plan.has_cycles else EXIT_OK


def _cycles(args: argparse.Namespace) -> int:
    tasks, err = _load(args.file)
    if err:
        return EXIT_LOAD_ERROR
    engine = _engine(args)
    cyclic = engine.detect_cycles(tasks)
    order = [t.id for t in tasks if t.id in cyclic]
    _emit({'cyclic_tasks': order, 'cycle': engine.find_cycle(tasks)})
    return EXIT_REJECTED if cyclic else EXIT_OK


def _validate(args: argparse.Namespace) -> int:
    tasks, err = _load(args.file)
    if err:
        return EXIT_LOAD_ERROR
    result = _engine(args).validate_no_cycles(args.task_id, args.dependency_ids, tasks)
    _emit(result.to_dict())
    return EXIT_OK if result.valid else EXIT_REJECTED


def _ready(args: argparse.Namespace) -> int:
    tasks, err = _load(args.file)
    if err:
        return EXIT_LOAD_ERROR
    ready = _engine(args).get_executable_tasks(tasks)
    _emit({'tasks': [t.to_dict() for t in ready]})
    return EXIT_OK


def _merge_order(args: argparse.Namespace) -> int:
    tasks, err = _load(args.file)
    if err:
        return EXIT_LOAD_ERROR
    ordered = _engine(args).merge_order(tasks)
    _emit({'order': [t.id for t in ordered]})
    return EXIT_OK


def _resolve(args: argparse.Namespace) -> int:
    declared_path = Path(args.declared).expanduser()
    if declared_path.suffix in _TEXT_SUFFIXES:
        try:
            declared: list[Any] = list(parse_task_declarations(declared_path.read_text(encoding='utf-8')))
        except OSError as exc:
            sys.stderr.write(f"{declared_path.name}: {exc}\n")
            return EXIT_LOAD_ERROR
    else:
        declared, err = load_items(declared_path, 'tasks')
        if err:
            sys.stderr.write(err + '\n')
            return EXIT_LOAD_ERROR
    created, err = load_items(Path(args.created).expanduser(), 'tasks')
    if err:
        sys.stderr.write(err + '\n')
        return EXIT_LOAD_ERROR
    resolved = _engine(args).resolve_dependencies_by_title(declared, created)
    _emit({'dependencies': resolved})
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Kanban task dependency checks and execution planning')
    parser.add_argument('--project-dir', default=None, help='Project directory holding .kanban_scheduler/ (default: current working directory)')
    parser.add_argument('--log-level', default='WARNING', help='Log level for stderr output')
    subparsers = parser.add_subparsers(dest='command', required=True)

    plan = subparsers.add_parser('plan', help='Compute batched execution order')
    plan.add_argument('file', help='Task snapshot (JSON or YAML)')
    plan.add_argument('--pending', action='store_true', help='Only plan tasks in the initial status')
    plan.add_argument('--render', action='store_true', help='Print a text rendering instead of JSON')
    plan.set_defaults(func=_plan)

    cycles = subparsers.add_parser('cycles', help='List tasks on dependency cycles')
    cycles.add_argument('file')
    cycles.set_defaults(func=_cycles)

    validate = subparsers.add_parser('validate', help='Check a proposed dependency edit for cycles')
    validate.add_argument('file')
    validate.add_argument('task_id')
    validate.add_argument('dependency_ids', nargs='*')
    validate.set_defaults(func=_validate)

    ready = subparsers.add_parser('ready', help='List tasks that can start now')
    ready.add_argument('file')
    ready.set_defaults(func=_ready)

    merge = subparsers.add_parser('merge-order', help='Order tasks so dependencies come first')
    merge.add_argument('file')
    merge.set_defaults(func=_merge_order)

    resolve = subparsers.add_parser('resolve', help='Resolve title-based dependencies to ids')
    resolve.add_argument('declared', help='Declared tasks (JSON/YAML, or .txt/.md analyzer reply)')
    resolve.add_argument('created', help='Created tasks with ids (JSON or YAML)')
    resolve.set_defaults(func=_resolve)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    handler = getattr(args, 'func', None)
    if handler is None:
        parser.print_help()
        return 1
    return int(handler(args) or 0)


if __name__ == '__main__':
    raise SystemExit(main())
