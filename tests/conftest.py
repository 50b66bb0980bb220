"""
Test configuration - ensures repo root is in sys.path + shared fixtures.

This allows tests to import from top-level packages (focus, api, cli).
Remote I/O never happens: managers are built on FakeGateway, an in-memory
record store that applies writes so a later refresh sees them.
"""

import copy
import sys
import threading
import time
from datetime import date, datetime
from pathlib import Path

import pytest

# Add repo root to sys.path so tests can import focus.*, api.*, cli.*
REPO_ROOT = Path(__file__).parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from focus.background_tasks import BackgroundWriter  # noqa: E402
from focus.config import Settings  # noqa: E402
from focus.integrations.gateway import (  # noqa: E402
    MEETINGS_TABLE,
    SKIPS_TABLE,
    TIME_BLOCKS_TABLE,
    TODOS_TABLE,
    GatewayError,
)
from focus.task_manager import TaskManager  # noqa: E402

USER_ID = 42
# Wednesday
REFERENCE_DATE = date(2025, 6, 4)
NOW = datetime(2025, 6, 4, 8, 0)


def sample_rows() -> dict[str, list[dict]]:
    return {
        TIME_BLOCKS_TABLE: [
            {
                "id": "blk-1",
                "user_id": USER_ID,
                "date": "2025-06-04",
                "start_time": "10:00:00",
                "end_time": "11:30:00",
                "title": "Deep work",
                "type": "focus",
            },
            {
                "id": "standup",
                "user_id": USER_ID,
                "date": "2025-06-01",
                "start_time": "09:15",
                "end_time": "09:30",
                "title": "Standup",
                "type": "routine",
                "is_recurring": True,
                "recurring_days": [1, 2, 3, 4, 5],
                "recurring_end_date": "2025-06-10",
            },
        ],
        MEETINGS_TABLE: [
            {
                "id": 7,
                "title": "Design review",
                "date": "2025-06-04",
                "time": "14:30",
                "duration": 90,
                "user_id": 99,
                "attendee_ids": [USER_ID],
            },
            {
                "id": 8,
                "title": "Someone else's 1:1",
                "date": "2025-06-04",
                "time": "15:00",
                "user_id": 99,
                "attendee_ids": [100],
            },
        ],
        TODOS_TABLE: [
            {
                "id": "t1",
                "user_id": str(USER_ID),
                "task_name": "Send invoice",
                "start_date": "2025-06-04",
                "start_time": "16:00",
                "priority": "high",
            },
            {"id": "t2", "user_id": str(USER_ID), "task_name": "Buy milk"},
        ],
        SKIPS_TABLE: [],
    }


class FakeGateway:
    """
    In-memory stand-in for RemoteGateway.

    Meeting reads filter by date only, leaving the access check to the
    reconciler.
    """

    def __init__(self, tables: dict[str, list[dict]] | None = None):
        self.tables = copy.deepcopy(tables if tables is not None else sample_rows())
        for table in (TIME_BLOCKS_TABLE, MEETINGS_TABLE, TODOS_TABLE, SKIPS_TABLE):
            self.tables.setdefault(table, [])
        self.calls: list[tuple] = []
        self.failing_reads: set[str] = set()
        self.fail_writes = False
        self.closed = False

    def _read(self, table: str) -> list[dict]:
        if table in self.failing_reads:
            raise GatewayError(table, "GET", 503, "unavailable")
        return copy.deepcopy(self.tables[table])

    def _write(self, method: str, table: str, *args) -> None:
        self.calls.append((method, table, *args))
        if self.fail_writes:
            raise GatewayError(table, method, 500, "write failed")

    def fetch_blocks_in_range(self, user_id, start, end):
        return [
            r
            for r in self._read(TIME_BLOCKS_TABLE)
            if r["user_id"] == user_id and start.isoformat() <= r["date"] <= end.isoformat()
        ]

    def fetch_recurring_blocks(self, user_id):
        return [
            r
            for r in self._read(TIME_BLOCKS_TABLE)
            if r["user_id"] == user_id and r.get("is_recurring")
        ]

    def fetch_meetings(self, user_id, start, end):
        return [
            r
            for r in self._read(MEETINGS_TABLE)
            if start.isoformat() <= r["date"] <= end.isoformat()
        ]

    def fetch_todos(self, user_id):
        return [r for r in self._read(TODOS_TABLE) if str(r["user_id"]) == str(user_id)]

    def fetch_skips(self, user_id):
        return [r for r in self._read(SKIPS_TABLE) if r["user_id"] == user_id]

    def create(self, table, row):
        self._write("POST", table, row)
        self.tables[table].append(copy.deepcopy(row))

    def update(self, table, record_id, fields):
        self._write("PATCH", table, record_id, fields)
        for row in self.tables[table]:
            if str(row["id"]) == str(record_id):
                row.update(fields)

    def delete(self, table, record_id):
        self._write("DELETE", table, record_id)
        self.tables[table] = [r for r in self.tables[table] if str(r["id"]) != str(record_id)]

    def delete_skip(self, user_id, task_id):
        self._write("DELETE", SKIPS_TABLE, user_id, task_id)
        self.tables[SKIPS_TABLE] = [
            r
            for r in self.tables[SKIPS_TABLE]
            if not (r["user_id"] == user_id and r["task_id"] == task_id)
        ]

    def close(self):
        self.closed = True

    def writes(self, method: str | None = None) -> list[tuple]:
        return [c for c in self.calls if method is None or c[0] == method]


class SlowFirstWriteGateway(FakeGateway):
    """FakeGateway whose first write of one method stalls before it applies."""

    def __init__(self, method: str, delay: float = 0.3, tables=None):
        super().__init__(tables)
        self.slow_method = method
        self.delay = delay
        self._stalled = False
        self._stall_lock = threading.Lock()

    def _write(self, method, table, *args):
        with self._stall_lock:
            stall = method == self.slow_method and not self._stalled
            self._stalled = self._stalled or stall
        if stall:
            time.sleep(self.delay)
        super()._write(method, table, *args)


class BlockedWriter(BackgroundWriter):
    """BackgroundWriter that holds every write until release() is called."""

    def __init__(self):
        super().__init__(max_workers=1)
        self.gate = threading.Event()

    def submit(self, name, func, *args, **kwargs):
        def gated(*a, **kw):
            self.gate.wait(timeout=5)
            return func(*a, **kw)

        return super().submit(name, gated, *args, **kwargs)

    def release(self):
        self.gate.set()
        self.flush(timeout=5)


@pytest.fixture
def settings():
    return Settings(user_id=USER_ID, api_key="test-key")


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def manager(settings, fake_gateway):
    """TaskManager on FakeGateway with the clock pinned to NOW, already refreshed."""
    m = TaskManager(settings, gateway=fake_gateway, clock=lambda: NOW)
    m.refresh(reference_date=REFERENCE_DATE, now=NOW)
    yield m
    m.shutdown()


@pytest.fixture
def make_gateway():
    """Factory for FakeGateway with custom tables (None -> sample rows)."""
    return FakeGateway


@pytest.fixture
def make_slow_gateway():
    """Factory for SlowFirstWriteGateway(method, delay=0.3)."""
    return SlowFirstWriteGateway


@pytest.fixture
def blocked_writer():
    writer = BlockedWriter()
    yield writer
    writer.gate.set()
    writer.shutdown(wait=True)
