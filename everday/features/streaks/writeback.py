"""
everday/features/streaks/writeback.py

Best-effort persistence of raised best streaks.

Reads never wait on these writes. Each write is a Future the caller may
await or ignore; failures are logged from a done-callback.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Dict, Optional

from everday.core.config import settings


logger = logging.getLogger(__name__)

# persist(habit_id, best_streak) must only ever raise the stored value and
# returns whether it did.
PersistFn = Callable[[str, int], bool]


class BestStreakWriter:
    """
    Fire-and-forget writer for best streaks.

    A submit at or below a value already queued for the same habit is
    dropped. Entries are forgotten once their write finishes; the stored
    row is the ratchet from then on.
    """

    def __init__(self, persist: PersistFn, *, max_workers: Optional[int] = None):
        self._persist = persist
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or settings.BEST_STREAK_WRITER_WORKERS,
            thread_name_prefix="best-streak",
        )
        self._queued: Dict[str, int] = {}
        self._lock = threading.Lock()

    def submit(self, habit_id: str, best_streak: int) -> Future:
        with self._lock:
            if best_streak <= self._queued.get(habit_id, 0):
                skipped: Future = Future()
                skipped.set_result(False)
                return skipped
            self._queued[habit_id] = best_streak
        future = self._executor.submit(self._write, habit_id, best_streak)
        future.add_done_callback(lambda f: self._log_outcome(habit_id, best_streak, f))
        return future

    def queued(self, habit_id: str) -> int:
        """Highest value still waiting to be written for a habit, or 0."""
        with self._lock:
            return self._queued.get(habit_id, 0)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def _write(self, habit_id: str, best_streak: int) -> bool:
        try:
            return bool(self._persist(habit_id, best_streak))
        finally:
            with self._lock:
                if self._queued.get(habit_id) == best_streak:
                    del self._queued[habit_id]

    @staticmethod
    def _log_outcome(habit_id: str, best_streak: int, future: Future) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error(
                "[streaks] best streak update failed",
                extra={"habit_id": habit_id, "best_streak": best_streak, "error": str(exc)},
            )
        elif future.result():
            logger.info("[streaks] best streak raised", extra={"habit_id": habit_id, "best_streak": best_streak})
