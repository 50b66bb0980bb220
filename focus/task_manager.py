"""
TaskManager - the one object that owns the reconciled snapshot.

Reads: collect every source concurrently, reconcile, re-apply local
overrides, swap the snapshot, reschedule reminders.

Writes: patch the snapshot immediately, then hand the remote write to the
background writer. Nothing waits on a write; a failed write is logged and
local state stays as the user left it.

All snapshot and override state is guarded by a single RLock.
"""

import logging
import threading
import uuid
from collections.abc import Callable
from dataclasses import replace
from datetime import date, datetime
from functools import partial

from focus.background_tasks import BackgroundWriter
from focus.collectors.sources import SourceCollector
from focus.config import Settings
from focus.daemon import AutoRefreshScheduler
from focus.edits import PendingEditTracker
from focus.integrations.gateway import (
    TIME_BLOCKS_TABLE,
    RemoteGateway,
    table_for_kind,
)
from focus.notifier.channels.memory import MemoryNotificationCenter
from focus.notifier.engine import NotificationCenter, ReminderScheduler
from focus.observability.context import PassContext
from focus.skips import SkipRegistry, clean_reason
from focus.time_truth.models import BlockType, Task, TaskKind, TimeBlockRecord
from focus.time_truth.reconciler import ReconciledView, Reconciler, partition, sort_key
from focus.time_truth.timeparse import format_hhmm, parse_date, parse_time_components, to_minutes

logger = logging.getLogger(__name__)


class TaskManager:
    """
    Composition root for reconciliation, local edits, and reminders.

    Construct once and pass by reference. Unknown task ids raise KeyError.
    """

    def __init__(
        self,
        settings: Settings,
        gateway: RemoteGateway | None = None,
        center: NotificationCenter | None = None,
        writer: BackgroundWriter | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        if settings.user_id is None:
            raise ValueError("user_id is not configured (set FOCUS_USER_ID or user_id in focus.yaml)")

        self.settings = settings
        self.user_id = settings.user_id
        self.gateway = gateway or RemoteGateway(
            settings.gateway_url, settings.api_key, timeout=settings.request_timeout
        )
        self.writer = writer or BackgroundWriter(max_workers=settings.background_workers)
        self.center = center or MemoryNotificationCenter()
        self.clock = clock or datetime.now

        self.collector = SourceCollector(
            self.gateway,
            self.user_id,
            block_days_back=settings.block_window_days_back,
            block_days_forward=settings.block_window_days_forward,
            meeting_days_back=settings.meeting_window_days_back,
            meeting_days_forward=settings.meeting_window_days_forward,
        )
        self.reconciler = Reconciler(
            self.user_id,
            block_days_back=settings.block_window_days_back,
            block_days_forward=settings.block_window_days_forward,
            meeting_days_back=settings.meeting_window_days_back,
            meeting_days_forward=settings.meeting_window_days_forward,
        )
        self.skips = SkipRegistry(self.user_id, self.gateway, self.writer)
        self.edits = PendingEditTracker()
        self.reminders = ReminderScheduler(self.center, settings.notification_namespace)
        self.scheduler = AutoRefreshScheduler(
            self.refresh, self.edits, interval_seconds=settings.refresh_interval_seconds
        )

        self._lock = threading.RLock()
        self._view = ReconciledView()
        self._sequence = 0
        # task id -> (completed, sequence) until the write succeeds
        self._completion_overrides: dict[str, tuple[bool, int]] = {}
        # task id -> ((start h, m), (end h, m)) during and after a drag/resize
        self._time_overrides: dict[str, tuple[tuple[int, int], tuple[int, int]]] = {}
        # task id -> sequence for deletes not yet confirmed
        self._pending_deletes: dict[str, int] = {}
        # recurring definitions from the latest fetch, by id
        self._definitions: dict[str, TimeBlockRecord] = {}
        # recurring instance ids that now have their own specific-date block
        self._materialized: set[str] = set()

    # -------------------------------------------------------------------------
    # Read path
    # -------------------------------------------------------------------------

    def refresh(self, reference_date: date | None = None, now: datetime | None = None) -> ReconciledView:
        """
        Run one full reconciliation pass and swap in the result.

        Sources that fail to fetch contribute nothing this pass; the pass
        itself never fails because of them.
        """
        now = now or self.clock()
        reference_date = reference_date or now.date()

        with PassContext() as ctx:
            logger.info(f"Refresh {ctx.pass_id} for {reference_date}")
            snapshot = self.collector.collect_all(reference_date)

            if "skips" not in snapshot.failed_sources:
                self.skips.hydrate(snapshot.skips)

            with self._lock:
                if "recurring" not in snapshot.failed_sources:
                    self._definitions = {b.id: b for b in snapshot.blocks if b.is_recurring}
                view = self.reconciler.reconcile(
                    snapshot.blocks,
                    snapshot.meetings,
                    snapshot.todos,
                    self.skips.overlay(),
                    reference_date=reference_date,
                    now=now,
                )
                tasks = [self._link_series(task) for task in view.all]
                self._view = self._rebuild(tasks, reference_date, now)
                self._reschedule(now)
                return self._view

    def _link_series(self, task: Task) -> Task:
        """
        Re-attach a materialized recurring instance to its definition. Lock held.

        A completed instance is stored as a specific-date block keyed by the
        instance id, so it comes back from the store without a definition.
        """
        if task.kind is not TaskKind.TIMEBLOCK or task.definition_id is not None:
            return task
        definition_id = task.id.removesuffix(f"-{task.date.isoformat()}")
        if definition_id == task.id or definition_id not in self._definitions:
            return task
        self._materialized.add(task.id)
        return replace(task, definition_id=definition_id)

    def _apply_overrides(self, tasks: list[Task]) -> list[Task]:
        """Re-apply local state the remote store has not confirmed yet. Lock held."""
        result = []
        for task in tasks:
            if task.id in self._pending_deletes:
                continue
            if task.id in self._completion_overrides:
                completed, _ = self._completion_overrides[task.id]
                task = replace(task, completed=completed)
            if task.id in self._time_overrides:
                (sh, sm), (eh, em) = self._time_overrides[task.id]
                task = replace(task, start_hour=sh, start_minute=sm, end_hour=eh, end_minute=em)
            result.append(task)
        return result

    def _rebuild(self, tasks: list[Task], reference_date: date | None, now: datetime) -> ReconciledView:
        """Sorted, partitioned view over tasks with local overrides applied. Lock held."""
        tasks = sorted(self._apply_overrides(tasks), key=sort_key)
        upcoming, completed = partition(tasks, now)
        return ReconciledView(
            all=tasks,
            upcoming=upcoming,
            completed=completed,
            reference_date=reference_date,
            computed_at=now,
        )

    def _replace_task(self, updated: Task) -> None:
        """Swap one task in the snapshot and reschedule. Lock held."""
        now = self.clock()
        tasks = [updated if t.id == updated.id else t for t in self._view.all]
        self._view = self._rebuild(tasks, self._view.reference_date, now)
        self._reschedule(now)

    def _reschedule(self, now: datetime) -> None:
        self.reminders.schedule(self._view.all, self.settings.reminder_lead_minutes, now)

    @property
    def view(self) -> ReconciledView:
        with self._lock:
            return self._view

    @property
    def today_tasks(self) -> list[Task]:
        return self.view.today

    def get(self, task_id: str) -> Task:
        task = self.view.get(task_id)
        if task is None:
            raise KeyError(task_id)
        return task

    def skipped_tasks(self) -> list[Task]:
        return self.view.skipped

    def upcoming_tasks(self, now: datetime | None = None) -> list[Task]:
        upcoming, _ = partition(self.view.all, now or self.clock())
        return upcoming

    def current_task(self, now: datetime | None = None) -> Task | None:
        """The open task whose time span contains now."""
        now = now or self.clock()
        for task in self.view.all:
            if not task.completed and not task.skipped and task.is_now(now):
                return task
        return None

    def next_task(self, now: datetime | None = None) -> Task | None:
        now = now or self.clock()
        upcoming = self.upcoming_tasks(now)
        return upcoming[0] if upcoming else None

    def counts(self, now: datetime | None = None) -> dict[str, int]:
        tasks = self.view.all
        return {
            "total": len(tasks),
            "completed": sum(1 for t in tasks if t.completed),
            "upcoming": len(self.upcoming_tasks(now)),
            "meetings": sum(1 for t in tasks if t.kind is TaskKind.MEETING),
            "blocks": sum(1 for t in tasks if t.kind is TaskKind.TIMEBLOCK),
            "todos": sum(1 for t in tasks if t.kind is TaskKind.TODO),
            "skipped": sum(1 for t in tasks if t.skipped),
        }

    # -------------------------------------------------------------------------
    # Write path
    # -------------------------------------------------------------------------

    def _next_sequence(self) -> int:
        self._sequence += 1
        return self._sequence

    def _clear_completion_override(self, task_id: str, sequence: int) -> None:
        with self._lock:
            current = self._completion_overrides.get(task_id)
            if current is not None and current[1] == sequence:
                del self._completion_overrides[task_id]

    def _clear_pending_delete(self, task_id: str, sequence: int) -> None:
        with self._lock:
            if self._pending_deletes.get(task_id) == sequence:
                del self._pending_deletes[task_id]

    def _forget_materialized(self, task_id: str, error: Exception | None = None) -> None:
        with self._lock:
            self._materialized.discard(task_id)

    def _is_series_instance(self, task: Task) -> bool:
        return task.kind is TaskKind.TIMEBLOCK and task.definition_id is not None

    def _write_key(self, task: Task) -> str:
        """Ordering key for remote writes; a whole series shares one."""
        if self._is_series_instance(task):
            return f"series:{task.definition_id}"
        return f"task:{task.id}"

    def _override_block(self, task: Task, completed: bool) -> TimeBlockRecord | None:
        """One-off specific-date copy of a recurring instance, keyed by the instance id."""
        definition = self._definitions.get(task.definition_id)
        if definition is None:
            return None
        return replace(
            definition,
            id=task.id,
            date=task.date,
            completed=completed,
            is_recurring=False,
            recurring_days=None,
            excluded_dates=None,
            recurring_end_date=None,
            definition_id=None,
        )

    def toggle_complete(self, task_id: str) -> Task:
        """
        Flip completion locally and persist it in the background.

        Recurring instances are persisted as a specific-date override block
        so the rest of the series is untouched.
        """
        with self._lock:
            task = self.get(task_id)
            completed = not task.completed
            updated = replace(task, completed=completed)
            sequence = self._next_sequence()
            self._completion_overrides[task_id] = (completed, sequence)
            self._replace_task(updated)

            on_failure = None
            if self._is_series_instance(task) and task_id not in self._materialized:
                override = self._override_block(task, completed)
                if override is None:
                    logger.error(f"No recurring definition {task.definition_id} for {task_id}; kept local only")
                    return updated
                # later writes queue behind this POST and patch the row it creates
                self._materialized.add(task_id)
                on_failure = partial(self._forget_materialized, task_id)
                write = (self.gateway.create, TIME_BLOCKS_TABLE, override.to_row())
            elif self._is_series_instance(task):
                write = (self.gateway.update, TIME_BLOCKS_TABLE, task_id, {"completed": completed})
            else:
                table = table_for_kind(task.kind)
                write = (self.gateway.update, table, task.original_id, {"completed": completed})
            key = self._write_key(task)

        logger.info(f"{'Completed' if completed else 'Reopened'} {task_id}")
        self.writer.submit(
            f"complete {task_id}",
            *write,
            key=key,
            on_success=lambda: self._clear_completion_override(task_id, sequence),
            on_failure=on_failure,
        )
        return updated

    def skip(self, task_id: str, reason: str | None = None) -> Task:
        with self._lock:
            task = self.get(task_id)
            self.skips.skip(task, reason, now=self.clock())
            updated = replace(task, skipped=True, skip_reason=clean_reason(reason))
            self._replace_task(updated)
        return updated

    def unskip(self, task_id: str) -> Task:
        with self._lock:
            task = self.get(task_id)
            self.skips.unskip(task)
            updated = replace(task, skipped=False, skip_reason=None)
            self._replace_task(updated)
        return updated

    def delete(self, task_id: str) -> Task:
        """
        Remove a task locally and delete its backing record.

        A recurring instance excludes its date from the definition instead and
        drops the specific-date block its completion was saved as, if any.
        Meetings are removed from the snapshot only.
        """
        with self._lock:
            task = self.get(task_id)
            now = self.clock()
            self._completion_overrides.pop(task_id, None)
            self._time_overrides.pop(task_id, None)
            remaining = [t for t in self._view.all if t.id != task_id]
            self._view = self._rebuild(remaining, self._view.reference_date, now)
            self._reschedule(now)

            if task.kind is TaskKind.MEETING:
                logger.warning(f"Meeting {task_id} removed locally; meetings are not deletable here")
                return task

            writes = []
            if self._is_series_instance(task):
                definition = self._definitions.get(task.definition_id)
                if definition is None:
                    logger.error(f"No recurring definition {task.definition_id} for {task_id}; kept local only")
                    return task
                excluded = (definition.excluded_dates or frozenset()) | {task.date}
                self._definitions[definition.id] = replace(definition, excluded_dates=excluded)
                writes.append(
                    (
                        self.gateway.update,
                        TIME_BLOCKS_TABLE,
                        definition.id,
                        {"excluded_dates": sorted(d.isoformat() for d in excluded)},
                    )
                )
                if task_id in self._materialized:
                    writes.append((self.gateway.delete, TIME_BLOCKS_TABLE, task_id))
                    self._materialized.discard(task_id)
            else:
                writes.append((self.gateway.delete, table_for_kind(task.kind), task.original_id))

            sequence = self._next_sequence()
            self._pending_deletes[task_id] = sequence
            key = self._write_key(task)

        def persist():
            for func, *args in writes:
                func(*args)

        logger.info(f"Deleted {task_id}")
        self.writer.submit(
            f"delete {task_id}",
            persist,
            key=key,
            on_success=lambda: self._clear_pending_delete(task_id, sequence),
        )
        return task

    def create_block(
        self,
        title: str,
        day: date | str,
        start_time: str,
        end_time: str,
        block_type: BlockType | str = BlockType.FOCUS,
        description: str | None = None,
        recurring_days: set[int] | None = None,
        recurring_end_date: date | str | None = None,
    ) -> TimeBlockRecord:
        """
        Create a block record remotely. It appears after the next refresh.

        Raises:
            ValueError for unparseable dates/times or an end before the start
        """
        block_date = parse_date(day)
        start = parse_time_components(start_time)
        end = parse_time_components(end_time)
        if block_date is None:
            raise ValueError(f"Invalid date: {day!r}")
        if start is None or end is None:
            raise ValueError(f"Invalid time range: {start_time!r}-{end_time!r}")
        if to_minutes(*end) < to_minutes(*start):
            raise ValueError(f"Block ends before it starts: {start_time}-{end_time}")

        record = TimeBlockRecord(
            id=str(uuid.uuid4()),
            user_id=self.user_id,
            date=block_date,
            start_time=format_hhmm(*start),
            end_time=format_hhmm(*end),
            title=title,
            description=description,
            type=BlockType.parse(block_type),
            is_recurring=bool(recurring_days),
            recurring_days=frozenset(recurring_days) if recurring_days else None,
            recurring_end_date=parse_date(recurring_end_date),
        )
        self.writer.submit(f"create block {record.id}", self.gateway.create, TIME_BLOCKS_TABLE, record.to_row())
        logger.info(f"Creating block {record.id} ({title} on {block_date})")
        return record

    # -------------------------------------------------------------------------
    # Interactive edits
    # -------------------------------------------------------------------------

    def begin_edit(self, task_id: str) -> None:
        self.get(task_id)
        self.edits.begin_edit(task_id)

    def end_edit(self, task_id: str) -> None:
        """
        Finish an interactive edit.

        A moved specific-date block persists its new times; other kinds keep
        the local times until the next refresh.
        """
        self.edits.end_edit(task_id)
        with self._lock:
            times = self._time_overrides.get(task_id)
            task = self._view.get(task_id)
            if times is None or task is None:
                return
            if task.kind is not TaskKind.TIMEBLOCK or (
                self._is_series_instance(task) and task_id not in self._materialized
            ):
                del self._time_overrides[task_id]
                return
            (sh, sm), (eh, em) = times
            fields = {"start_time": format_hhmm(sh, sm), "end_time": format_hhmm(eh, em)}

        def clear_times():
            with self._lock:
                if self._time_overrides.get(task_id) == times:
                    del self._time_overrides[task_id]

        self.writer.submit(
            f"move {task_id}",
            self.gateway.update,
            TIME_BLOCKS_TABLE,
            task_id if self._is_series_instance(task) else task.original_id,
            fields,
            key=self._write_key(task),
            on_success=clear_times,
        )

    def update_times_locally(self, task_id: str, start: tuple[int, int], end: tuple[int, int]) -> Task:
        """Move or resize a task in the snapshot only."""
        (sh, sm), (eh, em) = start, end
        if not (0 <= sh <= 23 and 0 <= sm <= 59 and 0 <= eh <= 23 and 0 <= em <= 59):
            raise ValueError(f"Invalid times: {start} - {end}")
        with self._lock:
            task = self.get(task_id)
            if task.kind is TaskKind.TIMEBLOCK and to_minutes(eh, em) < to_minutes(sh, sm):
                raise ValueError(f"Block ends before it starts: {start} - {end}")
            self._time_overrides[task_id] = ((sh, sm), (eh, em))
            updated = replace(task, start_hour=sh, start_minute=sm, end_hour=eh, end_minute=em)
            self._replace_task(updated)
        return updated

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def clear(self) -> None:
        """Drop all user state (logout)."""
        self.scheduler.stop()
        with self._lock:
            self._view = ReconciledView()
            self._completion_overrides.clear()
            self._time_overrides.clear()
            self._pending_deletes.clear()
            self._definitions.clear()
            self._materialized.clear()
            self.skips.clear()
            self.edits.clear()
            cancelled = self.reminders.cancel_all()
        logger.info(f"Cleared local state ({cancelled} reminders cancelled)")

    def shutdown(self) -> None:
        self.scheduler.stop()
        self.writer.shutdown(wait=True)
        self.gateway.close()
