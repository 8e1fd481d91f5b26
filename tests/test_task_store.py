# tests/test_task_store.py

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from quickplan.tasks.errors import StoreError
from quickplan.tasks.task_store import TaskStore


def _add(store: TaskStore, title: str, *, parent_id=None, sort_order=0, hours=1.0, resource="r") -> int:
    return store.insert(
        title=title,
        hours=hours,
        notes="",
        resource=resource,
        parent_id=parent_id,
        sort_order=sort_order,
    )


def test_insert_get_update_delete(store: TaskStore) -> None:
    task_id = _add(store, "Design", hours=8, resource="Alice")
    assert task_id > 0

    task = store.get(task_id)
    assert task is not None
    assert task.title == "Design"
    assert task.hours == 8.0
    assert task.resource == "Alice"
    assert task.parent_id is None
    assert task.created_at == task.updated_at

    assert store.update(task_id, title="Design v2", hours=6, notes="n", resource="Bob") == 1
    updated = store.get(task_id)
    assert updated is not None
    assert (updated.title, updated.hours, updated.notes, updated.resource) == ("Design v2", 6.0, "n", "Bob")
    assert updated.created_at == task.created_at
    assert updated.updated_at >= task.updated_at

    assert store.update(999, title="x", hours=0, notes="", resource="") == 0
    assert store.delete_one(task_id) == 1
    assert store.delete_one(task_id) == 0
    assert store.get(task_id) is None


def test_set_sort_order_leaves_updated_at(store: TaskStore) -> None:
    task_id = _add(store, "A")
    before = store.get(task_id)
    assert store.set_sort_order(task_id, 7) == 1
    after = store.get(task_id)
    assert after is not None and before is not None
    assert after.sort_order == 7
    assert after.updated_at == before.updated_at
    assert store.set_sort_order(12345, 1) == 0


def test_scan_filters_and_display_order(store: TaskStore) -> None:
    a = _add(store, "A", sort_order=1)
    b = _add(store, "B", sort_order=0)
    a1 = _add(store, "A1", parent_id=a, sort_order=1)
    a0 = _add(store, "A0", parent_id=a, sort_order=0)

    assert [t.id for t in store.scan(top_level_only=True)] == [b, a]
    assert [t.id for t in store.scan(parent_id=a)] == [a0, a1]
    assert [t.id for t in store.scan(order_by="id")] == [a, b, a1, a0]
    assert len(store.scan()) == 4

    with pytest.raises(ValueError):
        store.scan(order_by="title; DROP TABLE tasks")


def test_equal_ranks_newest_first(store: TaskStore) -> None:
    first = _add(store, "first", sort_order=0)
    second = _add(store, "second", sort_order=0)
    assert [t.id for t in store.scan(top_level_only=True)] == [second, first]


def test_insert_without_rank_appends_to_its_group(store: TaskStore) -> None:
    p = _add(store, "P", sort_order=4)
    q = store.insert(title="Q", hours=1, notes="", resource="r", parent_id=None)
    s0 = store.insert(title="S0", hours=1, notes="", resource="", parent_id=p)
    s1 = store.insert(title="S1", hours=1, notes="", resource="", parent_id=p)

    ranks = {t.id: t.sort_order for t in store.scan(order_by="id")}
    assert ranks[q] == 5
    assert (ranks[s0], ranks[s1]) == (0, 1)


def test_insert_subtask_checks_budget_in_the_same_write(store: TaskStore) -> None:
    p = _add(store, "P", hours=3)

    check, first = store.insert_subtask(parent_id=p, title="S1", hours=2, notes="n")
    assert check is not None and check.ok
    assert check.current_subtask_hours == 0.0
    assert first is not None

    check, rejected = store.insert_subtask(parent_id=p, title="S2", hours=1.5, notes="")
    assert rejected is None
    assert check is not None and not check.ok
    assert check.available == 1.0

    check, second = store.insert_subtask(parent_id=p, title="S3", hours=1, notes="")
    assert second is not None and check is not None and check.ok

    subtasks = store.scan(parent_id=p)
    assert [t.id for t in subtasks] == [first, second]
    assert [t.sort_order for t in subtasks] == [0, 1]
    assert all(t.resource == "" for t in subtasks)
    assert store.sum_subtask_hours(p) == 3.0


def test_insert_subtask_needs_a_top_level_parent(store: TaskStore) -> None:
    p = _add(store, "P", hours=5)
    s = _add(store, "S", parent_id=p, hours=1)

    assert store.insert_subtask(parent_id=999, title="x", hours=0, notes="") == (None, None)
    assert store.insert_subtask(parent_id=s, title="x", hours=0, notes="") == (None, None)
    assert store.count_tasks() == 2


class _ConfigureFails(TaskStore):
    fail = False
    opened: list[sqlite3.Connection] = []

    def _configure_conn(self, conn: sqlite3.Connection) -> None:
        if self.fail:
            self.opened.append(conn)
            raise sqlite3.OperationalError("database is locked")
        super()._configure_conn(conn)


def test_connection_is_closed_when_configuration_fails(tmp_path: Path) -> None:
    store = _ConfigureFails(tmp_path / "cfg.sqlite3", busy_timeout=0.2)
    store.opened = []
    store.fail = True

    with pytest.raises(StoreError):
        store.count_tasks()

    assert len(store.opened) == 1
    with pytest.raises(sqlite3.ProgrammingError):
        store.opened[0].execute("SELECT 1")


def test_sum_subtask_hours(store: TaskStore) -> None:
    p = _add(store, "P", hours=10)
    assert store.sum_subtask_hours(p) == 0.0
    _add(store, "S1", parent_id=p, hours=2.5)
    _add(store, "S2", parent_id=p, hours=1.5)
    assert store.sum_subtask_hours(p) == pytest.approx(4.0)


def test_aggregate_stats(store: TaskStore) -> None:
    empty = store.aggregate_stats()
    assert empty.total_tasks == 0
    assert empty.total_hours is None
    assert empty.avg_hours is None

    p = _add(store, "P", hours=8, resource="Alice")
    _add(store, "S", parent_id=p, hours=4, resource="")
    _add(store, "Q", hours=3, resource="Alice")
    stats = store.aggregate_stats()
    assert stats.total_tasks == 3
    assert stats.total_hours == pytest.approx(15.0)
    assert stats.unique_resources == 2
    assert stats.avg_hours == pytest.approx(5.0)


def test_ids_are_never_reused(store: TaskStore) -> None:
    first = _add(store, "A")
    second = _add(store, "B")
    assert store.delete_all() == 2
    third = _add(store, "C")
    assert third > second > first


def test_store_reopens_existing_db(tmp_path: Path) -> None:
    db = tmp_path / "tasks.sqlite3"
    task_id = _add(TaskStore(db), "persisted")
    again = TaskStore(db)
    assert again.count_tasks() == 1
    assert again.get(task_id) is not None


def test_migration_adds_missing_columns(tmp_path: Path) -> None:
    db = tmp_path / "legacy.sqlite3"
    conn = sqlite3.connect(db)
    conn.execute(
        "CREATE TABLE tasks (id INTEGER PRIMARY KEY AUTOINCREMENT, title TEXT NOT NULL, "
        "hours REAL DEFAULT 0, created_at REAL NOT NULL, updated_at REAL NOT NULL)"
    )
    conn.execute("INSERT INTO tasks(title, hours, created_at, updated_at) VALUES ('old', 2, 1, 1)")
    conn.commit()
    conn.close()

    store = TaskStore(db)
    (task,) = store.scan()
    assert task.title == "old"
    assert task.parent_id is None
    assert task.sort_order == 0
    assert task.resource == ""


def test_lock_contention_surfaces_as_store_error(tmp_path: Path) -> None:
    db = tmp_path / "tasks.sqlite3"
    store = TaskStore(db, busy_timeout=0.05)

    blocker = sqlite3.connect(db, isolation_level=None)
    try:
        blocker.execute("BEGIN IMMEDIATE")
        with pytest.raises(StoreError):
            _add(store, "blocked")
    finally:
        blocker.execute("ROLLBACK")
        blocker.close()

    assert store.count_tasks() == 0


def test_ping(store: TaskStore) -> None:
    assert store.ping() is True
