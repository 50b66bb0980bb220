"""
Focus Auto-Refresh Scheduler

Periodically triggers a full refresh so the snapshot tracks the remote store:
- Ticks every refresh interval (default 300 seconds)
- Skips a tick while paused or while an interactive edit is pending
- A failing refresh is logged and never stops the loop
- Runs on a daemon thread, or in the foreground with signal handling

Usage:
    scheduler = AutoRefreshScheduler(manager.refresh, manager.edits)
    scheduler.start()
    ...
    scheduler.stop()

Or via CLI:
    focus daemon
"""

import enum
import logging
import signal
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from focus.edits import PendingEditTracker

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 300
DEGRADED_AFTER_FAILURES = 3


class RefreshHealth(str, enum.Enum):
    """Health status of the refresh loop."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"


@dataclass
class RefreshState:
    """Runtime state for the refresh loop."""

    last_run: datetime | None = None
    last_success: datetime | None = None
    last_error: str | None = None
    consecutive_failures: int = 0
    total_runs: int = 0
    total_failures: int = 0
    total_skipped: int = 0

    @property
    def health(self) -> RefreshHealth:
        if self.consecutive_failures >= DEGRADED_AFTER_FAILURES:
            return RefreshHealth.DEGRADED
        return RefreshHealth.HEALTHY


class AutoRefreshScheduler:
    """
    Periodic refresh driver.

    The refresh callable replaces the snapshot atomically; this class only
    decides when to call it.
    """

    def __init__(
        self,
        refresh: Callable[[], Any],
        tracker: PendingEditTracker | None = None,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
    ):
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")
        self._refresh = refresh
        self._tracker = tracker or PendingEditTracker()
        self.interval_seconds = interval_seconds
        self.state = RefreshState()
        self._paused = threading.Event()
        self._shutdown_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()

    @property
    def paused(self) -> bool:
        return self._paused.is_set()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def pause(self) -> None:
        self._paused.set()
        logger.info("Auto-refresh paused")

    def resume(self) -> None:
        self._paused.clear()
        logger.info("Auto-refresh resumed")

    def tick(self) -> bool:
        """
        Run one scheduled refresh.

        Returns:
            True if the refresh ran to completion, False if skipped or failed
        """
        if self.paused:
            logger.debug("Tick skipped: auto-refresh paused")
            self.state.total_skipped += 1
            return False
        if self._tracker.is_blocking():
            logger.info(f"Tick skipped: edits pending on {sorted(self._tracker.pending())}")
            self.state.total_skipped += 1
            return False

        with self._lock:
            self.state.last_run = datetime.now()
            self.state.total_runs += 1
            try:
                self._refresh()
            except Exception as e:
                self.state.last_error = str(e)
                self.state.consecutive_failures += 1
                self.state.total_failures += 1
                logger.error(f"Scheduled refresh failed: {e}")
                if self.state.health is RefreshHealth.DEGRADED:
                    logger.warning(
                        f"Auto-refresh degraded: {self.state.consecutive_failures} "
                        "consecutive failures"
                    )
                return False

            self.state.last_success = datetime.now()
            self.state.last_error = None
            self.state.consecutive_failures = 0
        return True

    def _loop(self) -> None:
        # First tick fires after one full interval; callers refresh on startup.
        while not self._shutdown_event.wait(timeout=self.interval_seconds):
            self.tick()
        logger.info("Auto-refresh loop stopped")

    def start(self) -> None:
        """Start ticking on a background daemon thread. Idempotent."""
        if self.running:
            return
        self._shutdown_event.clear()
        self._thread = threading.Thread(target=self._loop, name="focus-refresh", daemon=True)
        self._thread.start()
        logger.info(f"Auto-refresh started (every {self.interval_seconds}s)")

    def stop(self, timeout: float | None = 5.0) -> None:
        self._shutdown_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def run_forever(self) -> None:
        """Foreground loop for the CLI; SIGINT/SIGTERM stop it cleanly."""
        signal.signal(signal.SIGTERM, self._handle_signal)
        signal.signal(signal.SIGINT, self._handle_signal)
        logger.info(f"Focus daemon running (refresh every {self.interval_seconds}s)")
        self._shutdown_event.clear()
        self._loop()

    def _handle_signal(self, signum, frame):
        sig_name = signal.Signals(signum).name
        logger.info(f"Received {sig_name}, shutting down...")
        self._shutdown_event.set()

    def status(self) -> dict:
        return {
            "running": self.running,
            "paused": self.paused,
            "interval_seconds": self.interval_seconds,
            "health": self.state.health.value,
            "last_run": self.state.last_run.isoformat() if self.state.last_run else None,
            "last_success": self.state.last_success.isoformat() if self.state.last_success else None,
            "last_error": self.state.last_error,
            "total_runs": self.state.total_runs,
            "total_failures": self.state.total_failures,
            "total_skipped": self.state.total_skipped,
        }
