# src/quickplan/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The service depends on a Protocol instead of the concrete SQLite store.
This keeps storage swappable and makes failure paths easy to test.
"""

from typing import Protocol

from ..tasks.task_models import BudgetCheck, Task, TaskStats


class TaskRepo(Protocol):
    """
    Ordered, queryable task record store.

    Every write is atomic per call; there is no multi-row transaction.
    insert and insert_subtask compute the new row's rank in the same atomic
    step as the write, and insert_subtask also checks the parent's hour budget
    there. Other write methods return the number of affected rows.
    """

    def insert(
            self,
            *,
            title: str,
            hours: float,
            notes: str,
            resource: str,
            parent_id: int | None,
            sort_order: int | None = None,
    ) -> int: ...

    def insert_subtask(
            self,
            *,
            parent_id: int,
            title: str,
            hours: float,
            notes: str,
    ) -> tuple[BudgetCheck | None, int | None]: ...

    def update(self, task_id: int, *, title: str, hours: float, notes: str, resource: str) -> int: ...
    def set_sort_order(self, task_id: int, sort_order: int) -> int: ...
    def delete_one(self, task_id: int) -> int: ...
    def delete_all(self) -> int: ...

    def get(self, task_id: int) -> Task | None: ...

    def scan(
            self,
            *,
            parent_id: int | None = None,
            top_level_only: bool = False,
            order_by: str = "display",
    ) -> list[Task]: ...

    # Aggregates pushed down to the store.
    def sum_subtask_hours(self, parent_id: int) -> float: ...
    def aggregate_stats(self) -> TaskStats: ...
    def count_tasks(self) -> int: ...
    def ping(self) -> bool: ...
