"""
MemoryNotificationCenter - in-process pending reminder store.

Holds reminders keyed by identifier; adding an existing identifier replaces
it. Used by the CLI, the HTTP surface, and tests.
"""

import logging
import threading
from collections.abc import Iterable
from datetime import datetime

from ..engine import Reminder

logger = logging.getLogger(__name__)


class MemoryNotificationCenter:
    def __init__(self):
        self._pending: dict[str, Reminder] = {}
        self._lock = threading.Lock()

    def add(self, reminder: Reminder) -> None:
        with self._lock:
            self._pending[reminder.identifier] = reminder

    def cancel(self, identifiers: Iterable[str]) -> None:
        with self._lock:
            for identifier in identifiers:
                self._pending.pop(identifier, None)

    def cancel_prefix(self, prefix: str) -> int:
        with self._lock:
            doomed = [i for i in self._pending if i.startswith(prefix)]
            for identifier in doomed:
                del self._pending[identifier]
        return len(doomed)

    def pending_identifiers(self) -> list[str]:
        with self._lock:
            return sorted(self._pending)

    def pending(self) -> list[Reminder]:
        with self._lock:
            return sorted(self._pending.values(), key=lambda r: (r.trigger_at, r.identifier))

    def pop_due(self, now: datetime) -> list[Reminder]:
        """Remove and return reminders whose trigger is at or before now."""
        with self._lock:
            due = [r for r in self._pending.values() if r.trigger_at <= now]
            for reminder in due:
                del self._pending[reminder.identifier]
        if due:
            logger.info(f"{len(due)} reminders due")
        return sorted(due, key=lambda r: r.trigger_at)
