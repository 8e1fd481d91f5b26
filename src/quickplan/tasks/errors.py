# src/quickplan/tasks/errors.py

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .task_models import BatchResult, BudgetCheck


class QuickPlanError(Exception):
    """Base class for every error the task core reports to its caller."""


class ValidationError(QuickPlanError):
    """A required field is missing or invalid. Nothing was written."""


class NotFound(QuickPlanError):
    def __init__(self, task_id: int, what: str = "Task") -> None:
        super().__init__(f"{what} {task_id} not found")
        self.task_id = task_id


class ParentNotFound(NotFound):
    def __init__(self, task_id: int) -> None:
        super().__init__(task_id, what="Parent task")


class BudgetExceeded(QuickPlanError):
    def __init__(self, check: BudgetCheck) -> None:
        super().__init__(
            f"Subtask hours ({check.requested_hours:g}) exceed the hours available "
            f"on parent {check.parent_id}: {check.available:g} of {check.parent_hours:g} left"
        )
        self.check = check

    @property
    def available(self) -> float:
        return self.check.available


class StoreError(QuickPlanError):
    """The underlying store failed (I/O error, lock timeout, ...)."""


class ReorderFailed(StoreError):
    """
    At least one row of a composite reorder failed.

    Rows listed in result.applied are committed and stay that way.
    """

    def __init__(self, result: BatchResult) -> None:
        failed = ", ".join(str(i) for i in sorted(result.failed))
        super().__init__(f"Reorder failed for task(s) {failed}; {len(result.applied)} row(s) already applied")
        self.result = result
