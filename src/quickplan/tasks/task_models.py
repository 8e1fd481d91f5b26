# src/quickplan/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(slots=True)
class Task:
    """
    One persisted row.

    parent_id=None marks a top-level task; anything else is a subtask.
    Nesting depth is exactly one level.
    """

    id: int
    title: str
    hours: float
    notes: str
    resource: str
    parent_id: int | None
    sort_order: int
    created_at: float
    updated_at: float

    @property
    def is_subtask(self) -> bool:
        return self.parent_id is not None


@dataclass(slots=True)
class TaskNode:
    """A top-level task with its subtasks in display order."""

    task: Task
    subtasks: list[Task] = field(default_factory=list)

    @property
    def id(self) -> int:
        return self.task.id


@dataclass(slots=True, frozen=True)
class TaskStats:
    total_tasks: int
    total_hours: float | None
    unique_resources: int
    avg_hours: float | None


@dataclass(slots=True, frozen=True)
class BudgetCheck:
    ok: bool
    parent_id: int
    parent_hours: float
    current_subtask_hours: float
    requested_hours: float

    @property
    def available(self) -> float:
        return self.parent_hours - self.current_subtask_hours


@dataclass(slots=True, frozen=True)
class SubtaskSumReport:
    parent_id: int
    parent_hours: float
    total_subtasks: float
    difference: float
    is_valid: bool


@dataclass(slots=True)
class BatchResult:
    """
    Outcome of a multi-row write.

    applied: rows the store confirmed
    missing: ids the store did not find (zero rows affected)
    failed:  ids whose write raised, with the error
    """

    applied: list[int] = field(default_factory=list)
    missing: list[int] = field(default_factory=list)
    failed: dict[int, BaseException] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


@dataclass(slots=True, frozen=True)
class ExportReport:
    title: str
    generated_at: datetime
    rows: list[Task]
    total_tasks: int
    total_hours: float
