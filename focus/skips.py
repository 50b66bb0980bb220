"""
Skip Registry - per-user set of skipped task ids with optional reasons.

Skips and unskips update the in-memory overlay immediately and persist in the
background. A failed write is logged and never rolls the overlay back. Until a
local change has been persisted, hydrating from fetched skip records keeps
re-applying it so a refresh cannot undo it.
"""

import logging
import threading
from collections.abc import Iterable
from datetime import datetime

from focus.background_tasks import BackgroundWriter
from focus.integrations.gateway import SKIPS_TABLE, RemoteGateway
from focus.time_truth.models import SkipRecord, Task

logger = logging.getLogger(__name__)

SKIP = "skip"
UNSKIP = "unskip"


def clean_reason(reason: str | None) -> str | None:
    """Blank reasons are stored as no reason."""
    if reason is None:
        return None
    reason = reason.strip()
    return reason or None


class SkipRegistry:
    def __init__(self, user_id: int, gateway: RemoteGateway, writer: BackgroundWriter):
        self.user_id = user_id
        self.gateway = gateway
        self.writer = writer
        self._overlay: dict[str, str | None] = {}
        # task id -> (op, sequence, reason) for local changes not yet persisted
        self._unpersisted: dict[str, tuple[str, int, str | None]] = {}
        self._sequence = 0
        self._lock = threading.RLock()

    def _record_local(self, task_id: str, op: str, reason: str | None) -> int:
        with self._lock:
            self._sequence += 1
            self._unpersisted[task_id] = (op, self._sequence, reason)
            return self._sequence

    def _mark_persisted(self, task_id: str, sequence: int) -> None:
        with self._lock:
            current = self._unpersisted.get(task_id)
            # A newer local change for the same task is still in flight
            if current is not None and current[1] == sequence:
                del self._unpersisted[task_id]

    def skip(self, task: Task, reason: str | None = None, now: datetime | None = None) -> None:
        reason = clean_reason(reason)
        with self._lock:
            already_skipped = task.id in self._overlay
            self._overlay[task.id] = reason
            sequence = self._record_local(task.id, SKIP, reason)

        record = SkipRecord(
            user_id=self.user_id,
            task_id=task.id,
            task_type=task.original_type,
            task_title=task.title,
            task_date=task.date,
            skip_reason=reason,
            skipped_at=now or datetime.now(),
        )

        def persist():
            if already_skipped:
                self.gateway.delete_skip(self.user_id, task.id)
            self.gateway.create(SKIPS_TABLE, record.to_row())

        logger.info(f"Skipped {task.id}" + (f" ({reason})" if reason else ""))
        self.writer.submit(
            f"skip {task.id}",
            persist,
            key=f"skip:{task.id}",
            on_success=lambda: self._mark_persisted(task.id, sequence),
        )

    def unskip(self, task: Task) -> None:
        with self._lock:
            self._overlay.pop(task.id, None)
            sequence = self._record_local(task.id, UNSKIP, None)

        logger.info(f"Unskipped {task.id}")
        self.writer.submit(
            f"unskip {task.id}",
            self.gateway.delete_skip,
            self.user_id,
            task.id,
            key=f"skip:{task.id}",
            on_success=lambda: self._mark_persisted(task.id, sequence),
        )

    def is_skipped(self, task_id: str) -> bool:
        with self._lock:
            return task_id in self._overlay

    def reason(self, task_id: str) -> str | None:
        with self._lock:
            return self._overlay.get(task_id)

    def overlay(self) -> dict[str, str | None]:
        with self._lock:
            return dict(self._overlay)

    def unpersisted(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._unpersisted)

    def hydrate(self, records: Iterable[SkipRecord]) -> None:
        """Replace the overlay from fetched records, keeping unpersisted local changes."""
        fresh: dict[str, str | None] = {}
        for record in records:
            if record.user_id != self.user_id:
                continue
            fresh[record.task_id] = record.skip_reason

        with self._lock:
            for task_id, (op, _, reason) in self._unpersisted.items():
                if op == SKIP:
                    fresh[task_id] = reason
                else:
                    fresh.pop(task_id, None)
            self._overlay = fresh
        logger.debug(f"Skip overlay hydrated with {len(fresh)} entries")

    def clear(self) -> None:
        with self._lock:
            self._overlay.clear()
            self._unpersisted.clear()
