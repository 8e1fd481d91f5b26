# src/quickplan/tasks/ordering.py

from __future__ import annotations

"""
Sibling ordering.

Ranks (sort_order) are integers scoped to a sibling group: all top-level tasks
form one group, the subtasks of each parent form another. Ranks need not be
contiguous; they only have to sort the group the way the user arranged it.

Rank rewrites touch one row per write and are applied through BatchWriter,
which reports per-row outcomes instead of failing all-or-nothing.
"""

import asyncio
import logging
from collections.abc import Iterable, Sequence

from ..core.ports import TaskRepo
from .errors import NotFound, ValidationError
from .task_models import BatchResult

logger = logging.getLogger(__name__)

RankPlan = list[tuple[int, int]]


def coerce_ids(ids: Iterable[object]) -> list[int]:
    """Ids as ints. Integral floats and digit strings pass; 1.5, "1.5", True do not."""
    out: list[int] = []
    for raw in ids:
        if isinstance(raw, bool):
            raise ValidationError(f"Invalid task id: {raw!r}")
        if isinstance(raw, float) and not raw.is_integer():
            raise ValidationError(f"Invalid task id: {raw!r}")
        try:
            out.append(int(raw))  # type: ignore[call-overload]
        except (TypeError, ValueError, OverflowError):
            raise ValidationError(f"Invalid task id: {raw!r}") from None
    return out


def plan_full_order(ordered_ids: Sequence[object]) -> RankPlan:
    """
    Rank plan for an explicit full ordering: rank = position (0-based).

    Ids missing from the sequence are not part of the plan and keep their rank.
    """
    if isinstance(ordered_ids, (str, bytes)) or not isinstance(ordered_ids, Sequence):
        raise ValidationError("An array of task ids is required")
    ids = coerce_ids(ordered_ids)
    if len(set(ids)) != len(ids):
        raise ValidationError("Task ids must not repeat in an ordering")
    return [(task_id, index) for index, task_id in enumerate(ids)]


def move_before(current: Sequence[int], moved_id: int, target_id: int) -> list[int]:
    """
    Relocate moved_id so it sits immediately before target_id.

    The moved item is removed first; it is then inserted at the target's
    position in the shortened list. Moving an item onto itself is a no-op.
    """
    ids = list(current)
    if moved_id not in ids:
        raise NotFound(moved_id)
    if target_id not in ids:
        raise NotFound(target_id)
    if moved_id == target_id:
        return ids

    ids.remove(moved_id)
    ids.insert(ids.index(target_id), moved_id)
    return ids


class BatchWriter:
    """
    Applies a rank plan as independent single-row writes.

    All writes are started together and awaited together. A failed write does
    not stop or roll back the others; the BatchResult says which rows landed.
    """

    def __init__(self, repo: TaskRepo) -> None:
        self._repo = repo

    async def _write_one(self, task_id: int, rank: int) -> int:
        return await asyncio.to_thread(self._repo.set_sort_order, task_id, rank)

    async def apply(self, plan: RankPlan) -> BatchResult:
        result = BatchResult()
        if not plan:
            return result

        outcomes = await asyncio.gather(
            *(self._write_one(task_id, rank) for task_id, rank in plan),
            return_exceptions=True,
        )

        for (task_id, _rank), outcome in zip(plan, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                result.failed[task_id] = outcome
            elif outcome == 0:
                result.missing.append(task_id)
            else:
                result.applied.append(task_id)

        if result.failed:
            logger.warning(
                "Rank batch partially failed applied=%s missing=%s failed=%s",
                result.applied,
                result.missing,
                sorted(result.failed),
            )
        else:
            logger.debug("Rank batch applied=%s missing=%s", result.applied, result.missing)
        return result
