# src/quickplan/core/state.py

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

from ..tasks.task_service import TaskService
from ..tasks.task_store import TaskStore


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules.
    settings: Any

    task_store: TaskStore
    service: TaskService

    # Serializes command handling between front ends sharing this state.
    lock: threading.Lock = field(default_factory=threading.Lock)
