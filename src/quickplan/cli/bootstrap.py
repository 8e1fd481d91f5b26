# src/quickplan/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the SQLite store, stats cache and service into AppState,
- seeds example tasks into an empty store (optional).
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.state import AppState
from ..tasks.stats_cache import StatsCache
from ..tasks.task_service import TaskService
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    store = TaskStore(settings.tasks_db_path, busy_timeout=settings.busy_timeout_seconds)
    service = TaskService(
        store,
        cache=StatsCache(settings.stats_ttl_seconds),
        export_title=settings.export_title,
    )

    if getattr(settings, "seed_examples", False):
        inserted = service.seed_examples()
        if inserted:
            logger.info("Seeded %d example task(s) into %s", inserted, store.db_path)

    return AppState(settings=settings, task_store=store, service=service)
