"""
Thread-safe background writer for remote mutations.

Features:
- BackgroundWriter: submit fire-and-forget writes and track their outcome
- WriteStatus: write state with lifecycle tracking
- Thread-safe execution using ThreadPoolExecutor
- Success/failure callbacks run on the worker thread
- Writes sharing a key run one at a time in submission order
- Write history cleanup after 1 hour

Writes are never retried and callers never wait on them; a failed write is
logged and the caller's optimistic local state is left untouched.
"""

import logging
import threading
import time
import uuid
from collections import deque
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_futures
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)


class WriteStatusEnum(StrEnum):
    """Write status values."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class WriteStatus:
    """Immutable write status snapshot."""

    id: str
    name: str
    status: WriteStatusEnum
    submitted_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error: str | None = None


class BackgroundWriter:
    """
    Thread-safe background writer.

    Submits writes to a thread pool, tracks status, and cleans up history.
    """

    def __init__(self, max_workers: int = 4):
        """
        Initialize BackgroundWriter.

        Args:
            max_workers: Maximum number of concurrent worker threads
        """
        self.max_workers = max_workers
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="focus-write")
        self._writes: dict[str, dict[str, Any]] = {}
        self._futures: dict[str, Future] = {}
        # key -> write ids; the head is running, the rest wait behind it
        self._queues: dict[str, deque[str]] = {}
        self._lock = threading.RLock()
        self._history_ttl = timedelta(hours=1)

    def submit(
        self,
        name: str,
        func: Callable,
        *args: Any,
        key: str | None = None,
        on_success: Callable[[], None] | None = None,
        on_failure: Callable[[Exception], None] | None = None,
        **kwargs: Any,
    ) -> str:
        """
        Submit a write for background execution.

        Args:
            name: Human-readable label used in logs
            func: Callable performing the remote write
            key: Record key; writes with the same key never overlap and land
                in the order they were submitted
            on_success: Called after func returns
            on_failure: Called with the exception func raised

        Returns:
            Write ID (UUID)
        """
        write_id = str(uuid.uuid4())

        with self._lock:
            self._writes[write_id] = {
                "id": write_id,
                "name": name,
                "status": WriteStatusEnum.PENDING,
                "submitted_at": datetime.now(),
                "started_at": None,
                "completed_at": None,
                "error": None,
                "func": func,
                "args": args,
                "kwargs": kwargs,
                "on_success": on_success,
                "on_failure": on_failure,
                "key": key,
            }
            if key is None:
                self._start(write_id)
            else:
                queue = self._queues.setdefault(key, deque())
                queue.append(write_id)
                if len(queue) == 1:
                    self._start(write_id)
                else:
                    logger.debug(f"Write {write_id} ({name}) queued behind {len(queue) - 1} for {key}")
            self._cleanup_old_writes()

        logger.debug(f"Write {write_id} ({name}) submitted")
        return write_id

    def _start(self, write_id: str) -> None:
        """Hand a write to the pool. Must be called with lock held."""
        self._futures[write_id] = self._executor.submit(self._run_write, write_id)

    def _advance(self, key: str) -> None:
        """Start the next queued write for key, if any."""
        with self._lock:
            queue = self._queues[key]
            queue.popleft()
            if queue:
                self._start(queue[0])
            else:
                del self._queues[key]

    def _run_write(self, write_id: str) -> None:
        """Execute a write and update its status."""
        with self._lock:
            write = self._writes.get(write_id)
            if write is None:
                return
            write["status"] = WriteStatusEnum.RUNNING
            write["started_at"] = datetime.now()

        try:
            self._execute(write)
        finally:
            if write["key"] is not None:
                self._advance(write["key"])

    def _execute(self, write: dict[str, Any]) -> None:
        try:
            write["func"](*write["args"], **write["kwargs"])
        except Exception as e:
            with self._lock:
                write["error"] = str(e)
                write["status"] = WriteStatusEnum.FAILED
                write["completed_at"] = datetime.now()
            logger.error(f"Write {write['name']} failed: {e}")
            if write["on_failure"] is not None:
                write["on_failure"](e)
            raise

        with self._lock:
            write["status"] = WriteStatusEnum.COMPLETED
            write["completed_at"] = datetime.now()
        logger.info(f"Write {write['name']} completed")
        if write["on_success"] is not None:
            write["on_success"]()

    def get_status(self, write_id: str) -> WriteStatus | None:
        """
        Get status of a write.

        Returns:
            WriteStatus snapshot, or None if the write is unknown or expired
        """
        with self._lock:
            write = self._writes.get(write_id)
            if write is None:
                return None
            return self._snapshot(write)

    def list_writes(self) -> list[WriteStatus]:
        with self._lock:
            return [self._snapshot(write) for write in self._writes.values()]

    @staticmethod
    def _snapshot(write: dict[str, Any]) -> WriteStatus:
        return WriteStatus(
            id=write["id"],
            name=write["name"],
            status=write["status"],
            submitted_at=write["submitted_at"],
            started_at=write["started_at"],
            completed_at=write["completed_at"],
            error=write["error"],
        )

    def flush(self, timeout: float | None = None) -> bool:
        """
        Block until every submitted write has finished.

        Queued writes are started by the write ahead of them before that
        write's future completes, so waiting until no future is pending also
        covers every queue.

        Returns:
            True if all writes finished within timeout
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            with self._lock:
                pending = [f for f in self._futures.values() if not f.done()]
            if not pending:
                return True
            remaining = None if deadline is None else deadline - time.monotonic()
            if remaining is not None and remaining <= 0:
                return False
            _, not_done = wait_futures(pending, timeout=remaining)
            if not_done:
                return False

    def _cleanup_old_writes(self) -> None:
        """Remove finished writes older than TTL. Must be called with lock held."""
        now = datetime.now()
        expired = [
            write_id
            for write_id, write in self._writes.items()
            if write["completed_at"] is not None and (now - write["completed_at"]) > self._history_ttl
        ]

        for write_id in expired:
            del self._writes[write_id]
            self._futures.pop(write_id, None)
            logger.debug(f"Cleaned up expired write {write_id}")

    def shutdown(self, wait: bool = True) -> None:
        """
        Shutdown the executor.

        Args:
            wait: If True, wait for all pending and queued writes to complete
        """
        if wait:
            self.flush()
        self._executor.shutdown(wait=wait)
        logger.info("BackgroundWriter executor shutdown")
