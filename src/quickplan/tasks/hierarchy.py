# src/quickplan/tasks/hierarchy.py

from __future__ import annotations

from collections.abc import Iterable

from .task_models import Task, TaskNode


def assemble_hierarchy(rows: Iterable[Task]) -> list[TaskNode]:
    """
    Build the two-level tree from a flat scan.

    Pass 1 indexes every row by id; pass 2 links rows into place. Scan order is
    kept inside each group. Subtasks whose parent is absent are left out of the
    tree (they still exist as flat rows). Subtasks pointing at another subtask
    are left out too, since nesting is one level deep.
    """
    rows = list(rows)
    nodes: dict[int, TaskNode] = {row.id: TaskNode(task=row) for row in rows}

    roots: list[TaskNode] = []
    for row in rows:
        if row.parent_id is None:
            roots.append(nodes[row.id])
            continue
        parent = nodes.get(row.parent_id)
        if parent is not None and parent.task.parent_id is None:
            parent.subtasks.append(row)
    return roots


def flatten_hierarchy(nodes: Iterable[TaskNode]) -> list[Task]:
    """Each parent followed by its subtasks, in display order."""
    out: list[Task] = []
    for node in nodes:
        out.append(node.task)
        out.extend(node.subtasks)
    return out
