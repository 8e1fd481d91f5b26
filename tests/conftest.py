# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from fakes import FakeClock, FakeTaskRepo
from quickplan.core.state import AppState
from quickplan.tasks.stats_cache import StatsCache
from quickplan.tasks.task_service import TaskService
from quickplan.tasks.task_store import TaskStore


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the CLI commands.

    We use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="quickplan-test",
        log_level="DEBUG",
        data_dir=tmp_path,
        tasks_db_path=tmp_path / "tasks.sqlite3",
        busy_timeout_seconds=0.2,
        stats_ttl_seconds=30.0,
        seed_examples=False,
        export_title="Test report",
        export_filename="test-report",
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store(settings: SimpleNamespace) -> TaskStore:
    return TaskStore(settings.tasks_db_path, busy_timeout=settings.busy_timeout_seconds)


@pytest.fixture()
def service(store: TaskStore, clock: FakeClock, settings: SimpleNamespace) -> TaskService:
    """
    Service over a real SQLite store.

    The cache clock never advances on its own, so every cached read stays
    inside the freshness window unless a test moves the clock.
    """
    return TaskService(
        store,
        cache=StatsCache(settings.stats_ttl_seconds, clock=clock),
        export_title=settings.export_title,
        clock=clock,
    )


@pytest.fixture()
def fake_repo() -> FakeTaskRepo:
    return FakeTaskRepo()


@pytest.fixture()
def fake_service(fake_repo: FakeTaskRepo, clock: FakeClock) -> TaskService:
    return TaskService(fake_repo, cache=StatsCache(30.0, clock=clock), clock=clock)


@pytest.fixture()
def state(settings: SimpleNamespace, store: TaskStore, service: TaskService) -> AppState:
    return AppState(settings=settings, task_store=store, service=service)
