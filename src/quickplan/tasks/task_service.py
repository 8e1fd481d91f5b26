# src/quickplan/tasks/task_service.py

from __future__ import annotations

"""
Task operations.

Mutation flow:
  validate -> store write (rank, and budget for subtasks, checked atomically) -> cache invalidation
Read flow:
  store scan -> hierarchy assembly

Every mutating operation invalidates the stats cache before it returns,
including reorders that failed part-way (their applied rows are committed).
"""

import logging
import math
import time
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any

from ..core.ports import TaskRepo
from .budget import BudgetValidator
from .errors import BudgetExceeded, NotFound, ParentNotFound, ReorderFailed, ValidationError
from .hierarchy import assemble_hierarchy, flatten_hierarchy
from .ordering import BatchWriter, coerce_ids, move_before, plan_full_order
from .stats_cache import StatsCache
from .task_export import build_export_report
from .task_models import BatchResult, BudgetCheck, ExportReport, SubtaskSumReport, Task, TaskNode, TaskStats

logger = logging.getLogger(__name__)

VERSION = "1.0.0"

EXAMPLE_TASKS = (
    ("Initial QuickPlan setup", 4, "Full system setup", "andyjara-dev"),
    ("User interface design", 8, "Responsive UI/UX", "María González"),
    ("Spreadsheet export", 6, "Main export feature", "Carlos López"),
)


def parse_hours(raw: Any) -> float:
    """Hours from user input: absent or unparseable -> 0; negative is rejected."""
    if raw is None or isinstance(raw, bool):
        return 0.0
    try:
        value = float(str(raw).strip().replace(",", ".")) if isinstance(raw, str) else float(raw)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(value):
        return 0.0
    if value < 0:
        raise ValidationError("Hours must not be negative")
    return value


def _required(value: Any, field: str) -> str:
    text = "" if value is None else str(value).strip()
    if not text:
        raise ValidationError(f"{field} is required")
    return text


def _optional(value: Any) -> str:
    return "" if value is None else str(value)


class TaskService:
    """Operation surface over a TaskRepo; one instance owns one stats cache."""

    def __init__(
        self,
        repo: TaskRepo,
        *,
        cache: StatsCache | None = None,
        export_title: str = "QuickPlan report",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._repo = repo
        self._cache = cache if cache is not None else StatsCache()
        self._budget = BudgetValidator(repo)
        self._batch = BatchWriter(repo)
        self._export_title = export_title
        self._clock = clock
        self._started_at = clock()

    @property
    def cache(self) -> StatsCache:
        return self._cache

    # ---- reads ----

    def list_tasks(self) -> list[TaskNode]:
        nodes = assemble_hierarchy(self._repo.scan(order_by="display"))
        logger.debug("Listed %d top-level task(s)", len(nodes))
        return nodes

    def list_rows(self) -> list[Task]:
        """Every stored row, flat (orphaned subtasks included)."""
        return self._repo.scan(order_by="id")

    def get_task(self, task_id: int) -> Task:
        task = self._repo.get(task_id)
        if task is None:
            raise NotFound(task_id)
        return task

    def get_stats(self) -> TaskStats:
        return self._cache.get(self._repo.aggregate_stats)

    def validate_new_subtask(self, parent_id: int, hours: Any) -> BudgetCheck:
        return self._budget.validate_new_subtask(int(parent_id), parse_hours(hours))

    def validate_subtask_sum(self, parent_id: int) -> SubtaskSumReport:
        return self._budget.check_subtask_sum(int(parent_id))

    def export_rows(self) -> list[Task]:
        return flatten_hierarchy(self.list_tasks())

    def export_report(self, title: str | None = None) -> ExportReport:
        return build_export_report(
            self.list_tasks(),
            title=title or self._export_title,
            generated_at=datetime.fromtimestamp(self._clock()),
        )

    def health(self) -> dict[str, Any]:
        db_ok = self._repo.ping()
        now = self._clock()
        return {
            "status": "OK" if db_ok else "ERROR",
            "database": "OK" if db_ok else "FAILED",
            "uptime_seconds": max(0.0, now - self._started_at),
            "version": VERSION,
            "timestamp": datetime.fromtimestamp(now).astimezone().isoformat(),
        }

    # ---- mutations ----

    def _invalidate(self) -> None:
        self._cache.invalidate()

    def create_task(self, *, title: Any, hours: Any = None, notes: Any = None, resource: Any = None) -> int:
        title_s = _required(title, "title")
        resource_s = _required(resource, "resource")
        hours_f = parse_hours(hours)

        task_id = self._repo.insert(
            title=title_s,
            hours=hours_f,
            notes=_optional(notes),
            resource=resource_s,
            parent_id=None,
        )
        self._invalidate()
        logger.info("Task created id=%s hours=%s resource=%s", task_id, hours_f, resource_s)
        return task_id

    def create_subtask(self, parent_id: int, *, title: Any, hours: Any = None, notes: Any = None) -> int:
        """Budget check and insert are one store call; concurrent creates cannot overshoot the parent."""
        title_s = _required(title, "title")
        hours_f = parse_hours(hours)

        check, task_id = self._repo.insert_subtask(
            parent_id=int(parent_id),
            title=title_s,
            hours=hours_f,
            notes=_optional(notes),
        )
        if check is None:
            raise ParentNotFound(int(parent_id))
        if task_id is None:
            logger.info(
                "Subtask budget rejected parent=%s requested=%s available=%s",
                check.parent_id,
                hours_f,
                check.available,
            )
            raise BudgetExceeded(check)

        self._invalidate()
        logger.info(
            "Subtask created id=%s parent=%s hours=%s available=%s",
            task_id,
            check.parent_id,
            hours_f,
            check.available - hours_f,
        )
        return task_id

    def update_task(
        self,
        task_id: int,
        *,
        title: Any,
        hours: Any = None,
        notes: Any = None,
        resource: Any = None,
    ) -> None:
        """Full replace of the editable fields; ranks and parent link are kept."""
        title_s = _required(title, "title")
        hours_f = parse_hours(hours)

        affected = self._repo.update(
            int(task_id),
            title=title_s,
            hours=hours_f,
            notes=_optional(notes),
            resource=_optional(resource),
        )
        if affected == 0:
            raise NotFound(int(task_id))
        self._invalidate()
        logger.info("Task updated id=%s", task_id)

    def delete_task(self, task_id: int) -> None:
        """Deletes one row. Subtasks of a deleted parent stay behind as orphans."""
        affected = self._repo.delete_one(int(task_id))
        if affected == 0:
            raise NotFound(int(task_id))
        self._invalidate()
        logger.info("Task deleted id=%s", task_id)

    def delete_all_tasks(self) -> int:
        affected = self._repo.delete_all()
        self._invalidate()
        logger.info("All tasks deleted count=%s", affected)
        return affected

    async def _apply_ranks(self, plan: list[tuple[int, int]]) -> BatchResult:
        try:
            result = await self._batch.apply(plan)
        finally:
            self._invalidate()
        if not result.ok:
            raise ReorderFailed(result)
        return result

    async def reorder_all(self, ordered_ids: Sequence[Any]) -> BatchResult:
        """rank = position for every listed id; unlisted ids keep their rank."""
        plan = plan_full_order(ordered_ids)
        result = await self._apply_ranks(plan)
        logger.info("Tasks reordered count=%s missing=%s", len(result.applied), result.missing)
        return result

    async def reorder_one(self, moved_id: Any, target_id: Any) -> BatchResult:
        """Move one top-level task immediately before another, then re-rank the group."""
        moved, target = coerce_ids([moved_id, target_id])
        current = [t.id for t in self._repo.scan(top_level_only=True, order_by="display")]
        new_order = move_before(current, moved, target)
        result = await self._apply_ranks(plan_full_order(new_order))
        logger.info("Task %s moved before %s", moved, target)
        return result

    def seed_examples(self) -> int:
        """Insert the example tasks when the store is empty. Returns rows inserted."""
        if self._repo.count_tasks() > 0:
            return 0
        for title, hours, notes, resource in EXAMPLE_TASKS:
            self.create_task(title=title, hours=hours, notes=notes, resource=resource)
        logger.info("Inserted %d example task(s)", len(EXAMPLE_TASKS))
        return len(EXAMPLE_TASKS)
