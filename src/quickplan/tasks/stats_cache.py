# src/quickplan/tasks/stats_cache.py

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

from .task_models import TaskStats

logger = logging.getLogger(__name__)


class StatsCache:
    """
    One memoized TaskStats snapshot with a freshness window.

    Thread-safety:
    - the slot (snapshot + timestamp) is only touched under the lock
    - computing happens outside the lock; a result computed before an
      invalidate() is dropped instead of being stored
    """

    def __init__(self, ttl_seconds: float = 30.0, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = float(ttl_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self._snapshot: TaskStats | None = None
        self._computed_at = 0.0
        self._generation = 0

    def get(self, compute: Callable[[], TaskStats]) -> TaskStats:
        with self._lock:
            if self._snapshot is not None and (self._clock() - self._computed_at) < self._ttl:
                logger.debug("Stats cache hit")
                return self._snapshot
            generation = self._generation

        stats = compute()

        with self._lock:
            if generation == self._generation:
                self._snapshot = stats
                self._computed_at = self._clock()
                logger.debug("Stats cache refreshed")
        return stats

    def invalidate(self) -> None:
        with self._lock:
            self._snapshot = None
            self._computed_at = 0.0
            self._generation += 1
        logger.debug("Stats cache invalidated")
