"""
Tests for the skip registry overlay and its persistence.
"""

from datetime import date

import pytest

from focus.background_tasks import BackgroundWriter
from focus.skips import SkipRegistry, clean_reason
from focus.time_truth.models import SkipRecord, Task, TaskKind

USER = 42
DAY = date(2025, 6, 4)


def make_task(task_id="todo-t1", kind=TaskKind.TODO, title="Send invoice") -> Task:
    return Task(
        id=task_id,
        title=title,
        date=DAY,
        start_hour=16,
        start_minute=0,
        end_hour=17,
        end_minute=0,
        kind=kind,
        original_id=task_id.split("-", 1)[-1],
    )


def skip_record(task_id, user_id=USER, reason=None) -> SkipRecord:
    return SkipRecord(
        user_id=user_id,
        task_id=task_id,
        task_type="todo",
        task_title="x",
        task_date=DAY,
        skip_reason=reason,
    )


@pytest.fixture
def registry(fake_gateway, blocked_writer):
    return SkipRegistry(USER, fake_gateway, blocked_writer)


class TestCleanReason:
    @pytest.mark.parametrize("raw", [None, "", "   ", "\n\t"])
    def test_blank_is_none(self, raw):
        assert clean_reason(raw) is None

    def test_trims(self):
        assert clean_reason("  tired ") == "tired"


class TestOverlay:
    def test_skip_is_immediate(self, registry):
        registry.skip(make_task(), "later")
        assert registry.is_skipped("todo-t1")
        assert registry.reason("todo-t1") == "later"
        assert registry.unpersisted() == {"todo-t1"}

    def test_unskip_is_immediate(self, registry):
        registry.skip(make_task())
        registry.unskip(make_task())
        assert not registry.is_skipped("todo-t1")
        assert registry.overlay() == {}

    def test_persisted_after_write(self, registry, blocked_writer, fake_gateway):
        registry.skip(make_task(), "later")
        blocked_writer.release()
        assert registry.unpersisted() == frozenset()
        (_, table, row), = fake_gateway.writes("POST")
        assert table == "focus_skipped_tasks"
        assert row["skip_reason"] == "later"
        assert row["user_id"] == USER

    def test_reskip_replaces_record(self, fake_gateway, blocked_writer):
        registry = SkipRegistry(USER, fake_gateway, blocked_writer)
        registry.skip(make_task(), "first")
        blocked_writer.release()
        registry.skip(make_task(), "second")
        blocked_writer.flush(timeout=5)
        rows = fake_gateway.tables["focus_skipped_tasks"]
        assert [r["skip_reason"] for r in rows] == ["second"]
        assert registry.reason("todo-t1") == "second"

    def test_unskip_lands_after_slow_skip(self, make_slow_gateway):
        gateway = make_slow_gateway("POST")
        writer = BackgroundWriter(max_workers=4)
        registry = SkipRegistry(USER, gateway, writer)
        try:
            registry.skip(make_task(), "later")
            registry.unskip(make_task())
            assert writer.flush(timeout=5)
        finally:
            writer.shutdown(wait=True)
        assert gateway.tables["focus_skipped_tasks"] == []
        assert [c[0] for c in gateway.calls] == ["POST", "DELETE"]
        assert registry.unpersisted() == frozenset()
        registry.hydrate([])
        assert not registry.is_skipped("todo-t1")


class TestHydrate:
    def test_replaces_overlay(self, registry):
        registry.hydrate([skip_record("todo-a", reason="busy"), skip_record("blk-b")])
        assert registry.overlay() == {"todo-a": "busy", "blk-b": None}

    def test_ignores_other_users(self, registry):
        registry.hydrate([skip_record("todo-a", user_id=7)])
        assert registry.overlay() == {}

    def test_keeps_unpersisted_skip(self, registry):
        registry.skip(make_task(), "later")
        registry.hydrate([])
        assert registry.reason("todo-t1") == "later"

    def test_keeps_unpersisted_unskip(self, registry):
        registry.hydrate([skip_record("todo-t1")])
        registry.unskip(make_task())
        registry.hydrate([skip_record("todo-t1")])
        assert not registry.is_skipped("todo-t1")

    def test_failed_write_never_rolls_back(self, fake_gateway, blocked_writer):
        fake_gateway.fail_writes = True
        registry = SkipRegistry(USER, fake_gateway, blocked_writer)
        registry.skip(make_task())
        blocked_writer.release()
        registry.hydrate([])
        assert registry.is_skipped("todo-t1")


class TestClear:
    def test_clear(self, registry):
        registry.skip(make_task())
        registry.clear()
        assert registry.overlay() == {}
        assert registry.unpersisted() == frozenset()
