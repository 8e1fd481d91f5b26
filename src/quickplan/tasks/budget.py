# src/quickplan/tasks/budget.py

from __future__ import annotations

import logging

from ..core.ports import TaskRepo
from .errors import ParentNotFound
from .task_models import BudgetCheck, SubtaskSumReport, Task

logger = logging.getLogger(__name__)

# Equality tolerance for the informational subtask-sum check.
SUM_TOLERANCE_HOURS = 0.01


def within_budget(current_hours: float, requested_hours: float, parent_hours: float) -> bool:
    """Strict ceiling: the new total may equal the parent hours, never exceed them."""
    return not (current_hours + requested_hours > parent_hours)


class BudgetValidator:
    """
    Hour ceiling a parent task imposes on its subtasks.

    Enforced when a subtask is created (strict comparison, no tolerance).
    Later edits to the parent or its subtasks are not re-validated.
    """

    def __init__(self, repo: TaskRepo) -> None:
        self._repo = repo

    def _parent(self, parent_id: int) -> Task:
        parent = self._repo.get(parent_id)
        if parent is None or parent.parent_id is not None:
            raise ParentNotFound(parent_id)
        return parent

    def validate_new_subtask(self, parent_id: int, proposed_hours: float) -> BudgetCheck:
        parent = self._parent(parent_id)
        current = self._repo.sum_subtask_hours(parent.id)
        ok = within_budget(current, proposed_hours, parent.hours)
        check = BudgetCheck(
            ok=ok,
            parent_id=parent.id,
            parent_hours=parent.hours,
            current_subtask_hours=current,
            requested_hours=proposed_hours,
        )
        if not ok:
            logger.info(
                "Subtask budget rejected parent=%s requested=%s available=%s",
                parent.id,
                proposed_hours,
                check.available,
            )
        return check

    def check_subtask_sum(self, parent_id: int) -> SubtaskSumReport:
        """Does the subtask total match the parent's hours (within 0.01h)?"""
        parent = self._parent(parent_id)
        total = self._repo.sum_subtask_hours(parent.id)
        difference = parent.hours - total
        return SubtaskSumReport(
            parent_id=parent.id,
            parent_hours=parent.hours,
            total_subtasks=total,
            difference=difference,
            is_valid=abs(difference) < SUM_TOLERANCE_HOURS,
        )
