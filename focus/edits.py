"""
Pending-Edit Tracker.

Records the task ids currently under an interactive edit (drag or resize).
While any id is pending, auto-refresh ticks are skipped so a refresh never
clobbers an in-flight local time change.
"""

import logging
import threading

logger = logging.getLogger(__name__)


class PendingEditTracker:
    def __init__(self):
        self._pending: set[str] = set()
        self._lock = threading.Lock()

    def begin_edit(self, task_id: str) -> None:
        with self._lock:
            self._pending.add(task_id)
        logger.debug(f"Edit started on {task_id}")

    def end_edit(self, task_id: str) -> None:
        """End an edit. Ending an edit that never began is a no-op."""
        with self._lock:
            self._pending.discard(task_id)
        logger.debug(f"Edit ended on {task_id}")

    def is_blocking(self) -> bool:
        with self._lock:
            return bool(self._pending)

    def pending(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._pending)

    def clear(self) -> None:
        with self._lock:
            self._pending.clear()
