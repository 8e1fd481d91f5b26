# src/quickplan/cli/commands.py

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from pathlib import Path
from typing import cast

from ..core.state import AppState
from ..tasks.errors import BudgetExceeded, QuickPlanError, ReorderFailed
from ..tasks.task_export import summary_line, write_csv
from ..tasks.task_models import BatchResult, Task

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by front ends (/help, /list, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(self, state: AppState, line: str, emit: CommandEmitter | None = None) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        Task errors become one-line replies; anything else propagates.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        try:
            if nparams >= 3:
                h3 = cast(CommandHandler3, handler)
                return h3(state, args, emit)
            h2 = cast(CommandHandler2, handler)
            return h2(state, args)
        except ReorderFailed as e:
            logger.warning("/%s: %s", name, e)
            return f"Error: {e}. Order may be partially updated; run /list to check."
        except QuickPlanError as e:
            logger.info("/%s rejected: %s", name, e)
            return f"Error: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _fields(args: list[str]) -> list[str]:
    """Split pipe-separated fields: 'a b | 4 | c' -> ['a b', '4', 'c']."""
    return [p.strip() for p in " ".join(args).split("|")]


def _field(parts: list[str], index: int) -> str | None:
    return parts[index] if index < len(parts) and parts[index] != "" else None


def _int_arg(raw: str, what: str = "id") -> int:
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"Invalid {what}: {raw!r}") from None


def _fmt_task(task: Task, indent: str = "") -> str:
    resource = f", {task.resource}" if task.resource else ""
    notes = f" - {task.notes}" if task.notes else ""
    return f"{indent}#{task.id} [{task.sort_order}] {task.title} ({task.hours:g}h{resource}){notes}"


def _fmt_batch(result: BatchResult) -> str:
    text = f"Order updated ({len(result.applied)} task(s))."
    if result.missing:
        text += f" Unknown id(s) ignored: {', '.join(str(i) for i in result.missing)}."
    return text


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_list(state: AppState, args: list[str]) -> str:
    nodes = state.service.list_tasks()
    if not nodes:
        return "No tasks."
    lines = [f"Tasks ({len(nodes)}):"]
    for node in nodes:
        lines.append(_fmt_task(node.task))
        for sub in node.subtasks:
            lines.append(_fmt_task(sub, indent="    └ "))
    return "\n".join(lines)


def cmd_add(state: AppState, args: list[str]) -> str:
    """/add <title> | <hours> | <resource> [| notes]"""
    parts = _fields(args)
    task_id = state.service.create_task(
        title=_field(parts, 0),
        hours=_field(parts, 1),
        resource=_field(parts, 2),
        notes=_field(parts, 3),
    )
    return f"Task created with id {task_id}."


def cmd_sub(state: AppState, args: list[str]) -> str:
    """/sub <parent_id> <title> | <hours> [| notes]"""
    if not args:
        return "Usage: /sub <parent_id> <title> | <hours> [| notes]"
    try:
        parent_id = _int_arg(args[0], "parent id")
    except ValueError as e:
        return str(e)
    parts = _fields(args[1:])
    try:
        task_id = state.service.create_subtask(
            parent_id,
            title=_field(parts, 0),
            hours=_field(parts, 1),
            notes=_field(parts, 2),
        )
    except BudgetExceeded as e:
        return f"Not enough hours on task {parent_id}: {e.available:g}h available of {e.check.parent_hours:g}h."
    return f"Subtask created with id {task_id}."


def cmd_edit(state: AppState, args: list[str]) -> str:
    """/edit <id> <title> | <hours> | <resource> [| notes]"""
    if not args:
        return "Usage: /edit <id> <title> | <hours> | <resource> [| notes]"
    try:
        task_id = _int_arg(args[0])
    except ValueError as e:
        return str(e)
    parts = _fields(args[1:])
    state.service.update_task(
        task_id,
        title=_field(parts, 0),
        hours=_field(parts, 1),
        resource=_field(parts, 2),
        notes=_field(parts, 3),
    )
    return f"Task {task_id} updated."


def cmd_del(state: AppState, args: list[str]) -> str:
    if len(args) != 1:
        return "Usage: /del <id>"
    try:
        task_id = _int_arg(args[0])
    except ValueError as e:
        return str(e)
    state.service.delete_task(task_id)
    return f"Task {task_id} deleted."


def cmd_clear(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args or args[0].lower() != "yes":
        return "This deletes every task. Confirm with: /clear yes"
    if emit:
        emit("Deleting all tasks...")
    count = state.service.delete_all_tasks()
    return f"{count} task(s) deleted."


def cmd_order(state: AppState, args: list[str]) -> str:
    """/order <id> <id> ... (full order of one sibling group)"""
    if not args:
        return "Usage: /order <id> <id> ..."
    result = asyncio.run(state.service.reorder_all(args))
    return _fmt_batch(result)


def cmd_move(state: AppState, args: list[str]) -> str:
    """/move <moved_id> <target_id>"""
    if len(args) != 2:
        return "Usage: /move <moved_id> <target_id>"
    result = asyncio.run(state.service.reorder_one(args[0], args[1]))
    return _fmt_batch(result)


def cmd_check(state: AppState, args: list[str]) -> str:
    if len(args) != 1:
        return "Usage: /check <parent_id>"
    try:
        parent_id = _int_arg(args[0], "parent id")
    except ValueError as e:
        return str(e)
    report = state.service.validate_subtask_sum(parent_id)
    verdict = "OK" if report.is_valid else "MISMATCH"
    return (
        f"Task {parent_id}: {verdict}\n"
        f"  Parent hours: {report.parent_hours:g}\n"
        f"  Subtask hours: {report.total_subtasks:g}\n"
        f"  Difference: {report.difference:g}"
    )


def cmd_stats(state: AppState, args: list[str]) -> str:
    stats = state.service.get_stats()
    total_hours = f"{stats.total_hours:g}" if stats.total_hours is not None else "-"
    avg_hours = f"{stats.avg_hours:.2f}" if stats.avg_hours is not None else "-"
    return (
        "Stats:\n"
        f"  Tasks: {stats.total_tasks}\n"
        f"  Total hours: {total_hours}\n"
        f"  Unique resources: {stats.unique_resources}\n"
        f"  Average hours: {avg_hours}"
    )


def cmd_export(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """/export [path]"""
    settings = state.settings
    if args:
        target = Path(" ".join(args)).expanduser()
    else:
        target = Path(settings.data_dir) / f"{settings.export_filename}.csv"
    report = state.service.export_report()
    if emit:
        emit(f"Exporting {report.total_tasks} task(s)...")
    path = write_csv(report, target)
    return f"Exported to {path} ({summary_line(report)})."


def cmd_health(state: AppState, args: list[str]) -> str:
    h = state.service.health()
    return (
        f"Status: {h['status']}\n"
        f"  Database: {h['database']}\n"
        f"  Uptime: {h['uptime_seconds']:.0f}s\n"
        f"  Version: {h['version']}"
    )


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("list", cmd_list, help_text="Show tasks with their subtasks.", aliases=["ls"])
registry.register("add", cmd_add, help_text="Add a task: /add <title> | <hours> | <resource> [| notes].")
registry.register("sub", cmd_sub, help_text="Add a subtask: /sub <parent_id> <title> | <hours> [| notes].")
registry.register("edit", cmd_edit, help_text="Replace a task: /edit <id> <title> | <hours> | <resource> [| notes].")
registry.register("del", cmd_del, help_text="Delete a task: /del <id>.", aliases=["rm"])
registry.register("clear", cmd_clear, help_text="Delete every task: /clear yes.")
registry.register("order", cmd_order, help_text="Set the full order of a group: /order <id> <id> ...")
registry.register("move", cmd_move, help_text="Move a task before another: /move <moved_id> <target_id>.")
registry.register("check", cmd_check, help_text="Compare subtask hours with the parent: /check <parent_id>.")
registry.register("stats", cmd_stats, help_text="Show task statistics.")
registry.register("export", cmd_export, help_text="Export tasks as CSV: /export [path].")
registry.register("health", cmd_health, help_text="Check the database connection.")
