# src/quickplan/tasks/task_export.py

from __future__ import annotations

import csv
import logging
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

from .hierarchy import flatten_hierarchy
from .task_models import ExportReport, TaskNode

logger = logging.getLogger(__name__)

COLUMNS = ("ID", "Task", "Hours", "Notes", "Resource", "Created")


def build_export_report(nodes: Sequence[TaskNode], *, title: str, generated_at: datetime) -> ExportReport:
    """Rows in listing order plus the summary figures shown above them."""
    rows = flatten_hierarchy(nodes)
    return ExportReport(
        title=title,
        generated_at=generated_at,
        rows=rows,
        total_tasks=len(rows),
        total_hours=sum(r.hours for r in rows),
    )


def summary_line(report: ExportReport) -> str:
    return f"Total tasks: {report.total_tasks} | Total hours: {report.total_hours:g}"


def write_csv(report: ExportReport, path: str | Path) -> Path:
    """
    Render the report as CSV.

    Layout: title line, generated-at line, summary line, blank line,
    column header, then one line per task (subtask titles indented).
    """
    path = Path(path)
    if path.suffix.lower() != ".csv":
        path = path.with_suffix(".csv")
    path.parent.mkdir(parents=True, exist_ok=True)

    with path.open("w", newline="", encoding="utf-8") as fh:
        writer = csv.writer(fh)
        writer.writerow([report.title])
        writer.writerow([f"Generated: {report.generated_at.strftime('%Y-%m-%d %H:%M:%S')}"])
        writer.writerow([summary_line(report)])
        writer.writerow([])
        writer.writerow(COLUMNS)
        for task in report.rows:
            title = f"  - {task.title}" if task.is_subtask else task.title
            writer.writerow(
                [
                    task.id,
                    title,
                    f"{task.hours:g}",
                    task.notes,
                    task.resource,
                    datetime.fromtimestamp(task.created_at).strftime("%Y-%m-%d"),
                ]
            )

    logger.info("Export written rows=%s path=%s", report.total_tasks, path)
    return path
