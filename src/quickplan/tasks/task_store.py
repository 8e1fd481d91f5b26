# src/quickplan/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import time
from collections.abc import Iterator
from pathlib import Path

from .budget import within_budget
from .errors import StoreError
from .task_models import BudgetCheck, Task, TaskStats

logger = logging.getLogger(__name__)

# Rank for a new last sibling: max + 1 within the group, 0 for an empty group.
# Bound parameter: the new row's parent_id.
_NEXT_RANK_SQL = "(SELECT COALESCE(MAX(sort_order) + 1, 0) FROM tasks WHERE parent_id IS ?)"

# Top-level display order: rank ascending, newest first among equal ranks.
# Subtasks share the scan and keep their own ascending rank per parent.
_ORDER_BY = {
    "display": "sort_order ASC, created_at DESC, id DESC",
    "id": "id ASC",
}


class TaskStore:
    """
    SQLite task store.

    The schema is migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection
    - lock contention waits up to busy_timeout seconds, then fails with StoreError
    - inserts run under BEGIN IMMEDIATE, so rank and budget reads see no
      concurrent writer between the read and the write
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3", *, busy_timeout: float = 5.0) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._busy_timeout = float(busy_timeout)
        self._ensure_schema()
        logger.info("TaskStore ready db=%s total=%s", self._db_path, self.count_tasks())

    @property
    def db_path(self) -> Path:
        return self._db_path

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=self._busy_timeout)
        conn.row_factory = sqlite3.Row
        try:
            self._configure_conn(conn)
        except sqlite3.Error:
            conn.close()
            raise
        return conn

    def _configure_conn(self, conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        conn.execute(f"PRAGMA busy_timeout = {int(self._busy_timeout * 1000)}")

    @contextlib.contextmanager
    def _session(self, op: str) -> Iterator[sqlite3.Connection]:
        """Short-lived connection; any sqlite3 failure surfaces as StoreError."""
        try:
            conn = self._get_conn()
        except sqlite3.Error as exc:
            logger.warning("TaskStore %s: cannot open db=%s: %s", op, self._db_path, exc)
            raise StoreError(f"{op} failed: {exc}") from exc
        try:
            yield conn
        except sqlite3.Error as exc:
            logger.warning("TaskStore %s failed: %s", op, exc)
            raise StoreError(f"{op} failed: {exc}") from exc
        finally:
            conn.close()

    @contextlib.contextmanager
    def _write(self, op: str) -> Iterator[sqlite3.Connection]:
        """Session that takes the write lock up front (BEGIN IMMEDIATE) and commits on exit."""
        with self._session(op) as conn:
            conn.isolation_level = None
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except Exception:
                if conn.in_transaction:
                    conn.rollback()
                raise
            conn.execute("COMMIT")

    def _ensure_schema(self) -> None:
        with self._session("ensure_schema") as conn:
            cur = conn.cursor()

            # No foreign key on parent_id: deleting a parent leaves its subtasks in place.
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    title TEXT NOT NULL,
                    hours REAL NOT NULL DEFAULT 0,
                    notes TEXT NOT NULL DEFAULT '',
                    resource TEXT NOT NULL DEFAULT '',
                    parent_id INTEGER,
                    sort_order INTEGER NOT NULL DEFAULT 0,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )

            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            add_col("hours", "REAL NOT NULL DEFAULT 0")
            add_col("notes", "TEXT NOT NULL DEFAULT ''")
            add_col("resource", "TEXT NOT NULL DEFAULT ''")
            add_col("parent_id", "INTEGER")
            add_col("sort_order", "INTEGER NOT NULL DEFAULT 0")
            add_col("created_at", "REAL NOT NULL DEFAULT 0")
            add_col("updated_at", "REAL NOT NULL DEFAULT 0")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_parent ON tasks(parent_id, sort_order)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_order ON tasks(sort_order, created_at)")

            conn.commit()

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=int(row["id"]),
            title=str(row["title"] or ""),
            hours=float(row["hours"] or 0.0),
            notes=str(row["notes"] or ""),
            resource=str(row["resource"] or ""),
            parent_id=int(row["parent_id"]) if row["parent_id"] is not None else None,
            sort_order=int(row["sort_order"] or 0),
            created_at=float(row["created_at"] or 0.0),
            updated_at=float(row["updated_at"] or 0.0),
        )

    # ---- reads ----

    def count_tasks(self) -> int:
        with self._session("count_tasks") as conn:
            (n,) = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
            return int(n)

    def ping(self) -> bool:
        try:
            with self._session("ping") as conn:
                conn.execute("SELECT 1").fetchone()
            return True
        except StoreError:
            return False

    def get(self, task_id: int) -> Task | None:
        with self._session("get") as conn:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (int(task_id),)).fetchone()
            return self._row_to_task(row) if row else None

    def scan(
        self,
        *,
        parent_id: int | None = None,
        top_level_only: bool = False,
        order_by: str = "display",
    ) -> list[Task]:
        """
        Filtered scan.

        top_level_only=True    -> rows without a parent
        parent_id=<id>         -> subtasks of that parent
        neither                -> every row, parents and subtasks intermixed
        """
        try:
            order_sql = _ORDER_BY[order_by]
        except KeyError:
            raise ValueError(f"unknown order_by: {order_by!r}") from None

        sql = "SELECT * FROM tasks"
        params: tuple[int, ...] = ()
        if top_level_only:
            sql += " WHERE parent_id IS NULL"
        elif parent_id is not None:
            sql += " WHERE parent_id = ?"
            params = (int(parent_id),)
        sql += f" ORDER BY {order_sql}"

        with self._session("scan") as conn:
            return [self._row_to_task(r) for r in conn.execute(sql, params).fetchall()]

    def sum_subtask_hours(self, parent_id: int) -> float:
        with self._session("sum_subtask_hours") as conn:
            (total,) = conn.execute(
                "SELECT COALESCE(SUM(hours), 0) FROM tasks WHERE parent_id = ?",
                (int(parent_id),),
            ).fetchone()
            return float(total)

    def aggregate_stats(self) -> TaskStats:
        """Totals across every row; parents and subtasks are not distinguished."""
        with self._session("aggregate_stats") as conn:
            row = conn.execute(
                """
                SELECT
                    COUNT(*) AS total_tasks,
                    SUM(hours) AS total_hours,
                    COUNT(DISTINCT resource) AS unique_resources,
                    AVG(hours) AS avg_hours
                FROM tasks
                """
            ).fetchone()
            return TaskStats(
                total_tasks=int(row["total_tasks"]),
                total_hours=float(row["total_hours"]) if row["total_hours"] is not None else None,
                unique_resources=int(row["unique_resources"]),
                avg_hours=float(row["avg_hours"]) if row["avg_hours"] is not None else None,
            )

    # ---- writes ----

    def insert(
        self,
        *,
        title: str,
        hours: float,
        notes: str,
        resource: str,
        parent_id: int | None,
        sort_order: int | None = None,
    ) -> int:
        """
        Insert one row. With sort_order=None the row becomes the last of its
        sibling group; the rank is computed inside the insert so concurrent
        creates never share one.
        """
        with self._write("insert") as conn:
            return self._insert_row(
                conn,
                title=title,
                hours=hours,
                notes=notes,
                resource=resource,
                parent_id=parent_id,
                sort_order=sort_order,
            )

    def insert_subtask(
        self,
        *,
        parent_id: int,
        title: str,
        hours: float,
        notes: str,
    ) -> tuple[BudgetCheck | None, int | None]:
        """
        Budget check and subtask insert under one write lock.

        (None, None)      parent missing or itself a subtask
        (check, None)     hours do not fit; nothing written
        (check, task_id)  inserted as the parent's last subtask
        """
        with self._write("insert_subtask") as conn:
            parent = conn.execute(
                "SELECT id, hours FROM tasks WHERE id = ? AND parent_id IS NULL",
                (int(parent_id),),
            ).fetchone()
            if parent is None:
                return None, None

            (current,) = conn.execute(
                "SELECT COALESCE(SUM(hours), 0) FROM tasks WHERE parent_id = ?",
                (int(parent["id"]),),
            ).fetchone()
            parent_hours = float(parent["hours"] or 0.0)
            check = BudgetCheck(
                ok=within_budget(float(current), float(hours), parent_hours),
                parent_id=int(parent["id"]),
                parent_hours=parent_hours,
                current_subtask_hours=float(current),
                requested_hours=float(hours),
            )
            if not check.ok:
                return check, None

            task_id = self._insert_row(
                conn,
                title=title,
                hours=hours,
                notes=notes,
                resource="",
                parent_id=check.parent_id,
                sort_order=None,
            )
            return check, task_id

    @staticmethod
    def _insert_row(
        conn: sqlite3.Connection,
        *,
        title: str,
        hours: float,
        notes: str,
        resource: str,
        parent_id: int | None,
        sort_order: int | None,
    ) -> int:
        now = time.time()
        if sort_order is None:
            cur = conn.execute(
                f"""
                INSERT INTO tasks(title, hours, notes, resource, parent_id, sort_order, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, {_NEXT_RANK_SQL}, ?, ?)
                """,
                (title, float(hours), notes, resource, parent_id, parent_id, now, now),
            )
        else:
            cur = conn.execute(
                """
                INSERT INTO tasks(title, hours, notes, resource, parent_id, sort_order, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (title, float(hours), notes, resource, parent_id, int(sort_order), now, now),
            )
        rowid = cur.lastrowid
        if rowid is None:
            raise StoreError("SQLite did not return lastrowid for tasks insert")
        task_id = int(rowid)
        logger.debug("Task inserted id=%s parent_id=%s hours=%s", task_id, parent_id, hours)
        return task_id

    def update(self, task_id: int, *, title: str, hours: float, notes: str, resource: str) -> int:
        with self._session("update") as conn:
            cur = conn.execute(
                """
                UPDATE tasks
                SET title = ?, hours = ?, notes = ?, resource = ?, updated_at = ?
                WHERE id = ?
                """,
                (title, float(hours), notes, resource, time.time(), int(task_id)),
            )
            conn.commit()
            logger.debug("Task updated id=%s rows=%s", task_id, cur.rowcount)
            return cur.rowcount

    def set_sort_order(self, task_id: int, sort_order: int) -> int:
        # Rank-only write: updated_at is left as is.
        with self._session("set_sort_order") as conn:
            cur = conn.execute(
                "UPDATE tasks SET sort_order = ? WHERE id = ?",
                (int(sort_order), int(task_id)),
            )
            conn.commit()
            return cur.rowcount

    def delete_one(self, task_id: int) -> int:
        with self._session("delete_one") as conn:
            cur = conn.execute("DELETE FROM tasks WHERE id = ?", (int(task_id),))
            conn.commit()
            logger.debug("Task deleted id=%s rows=%s", task_id, cur.rowcount)
            return cur.rowcount

    def delete_all(self) -> int:
        with self._session("delete_all") as conn:
            cur = conn.execute("DELETE FROM tasks")
            conn.commit()
            logger.debug("All tasks deleted rows=%s", cur.rowcount)
            return cur.rowcount
