"""
Reconciler - merge blocks, meetings and todos into one sorted task list.

Pass:
1. Expand recurring definitions over the active window
2. Merge with specific-date blocks keyed on (date, title, start time);
   a specific-date block overwrites the recurring instance it shares a key with
3. Keep meetings inside the access window the user owns or attends
4. Normalize everything into Tasks, dropping malformed records
5. Apply the skip overlay
6. Sort by (date, start hour, start minute)
7. Partition into all / upcoming / completed

Reconciliation is a pure function of its inputs: the same records, overlay,
reference date and "now" always produce the same list with the same ids.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta

from .models import MeetingRecord, Task, TaskKind, TimeBlockRecord, TodoRecord
from .normalizer import normalize_block, normalize_meeting, normalize_todo
from .recurrence import DEFAULT_DAYS_BACK, DEFAULT_DAYS_FORWARD, active_window, expand_all
from .timeparse import parse_time_components

logger = logging.getLogger(__name__)

MEETING_DAYS_BACK = 30
MEETING_DAYS_FORWARD = 90

MergeKey = tuple[date, str, tuple[int, int] | str]


@dataclass(frozen=True)
class ReconciledView:
    """One reconciled snapshot. Replaced wholesale, never patched in place."""

    all: list[Task] = field(default_factory=list)
    upcoming: list[Task] = field(default_factory=list)
    completed: list[Task] = field(default_factory=list)
    reference_date: date | None = None
    computed_at: datetime | None = None

    @property
    def today(self) -> list[Task]:
        if self.reference_date is None:
            return []
        return [t for t in self.all if t.date == self.reference_date]

    @property
    def skipped(self) -> list[Task]:
        return [t for t in self.all if t.skipped]

    def get(self, task_id: str) -> Task | None:
        for task in self.all:
            if task.id == task_id:
                return task
        return None

    def __len__(self) -> int:
        return len(self.all)


def merge_key(block: TimeBlockRecord) -> MergeKey:
    """
    Dedup key for blocks.

    Two distinct blocks sharing date, title and start time collide; the one
    inserted last wins.
    """
    start = parse_time_components(block.start_time)
    return block.date, block.title, start if start is not None else block.start_time


def merge_blocks(
    instances: Iterable[TimeBlockRecord], specific: Iterable[TimeBlockRecord]
) -> list[TimeBlockRecord]:
    """Insert recurring instances first, then specific-date blocks over them."""
    merged: dict[MergeKey, TimeBlockRecord] = {}
    for block in instances:
        merged[merge_key(block)] = block
    overridden = 0
    for block in specific:
        key = merge_key(block)
        if key in merged and merged[key].is_instance:
            overridden += 1
        merged[key] = block
    if overridden:
        logger.debug(f"{overridden} recurring instances overridden by specific-date blocks")
    return list(merged.values())


def sort_key(task: Task) -> tuple:
    # Tasks always carry parsed times (malformed ones are dropped upstream),
    # so the trailing id only breaks ties deterministically.
    return task.date, task.start_hour, task.start_minute, task.id


def partition(tasks: list[Task], now: datetime) -> tuple[list[Task], list[Task]]:
    """Split sorted tasks into (upcoming, completed)."""
    completed = [t for t in tasks if t.completed]
    upcoming = [t for t in tasks if not t.completed and not t.skipped and t.is_upcoming(now)]
    return upcoming, completed


def apply_skip_overlay(tasks: list[Task], overlay: Mapping[str, str | None]) -> list[Task]:
    return [
        replace(t, skipped=True, skip_reason=overlay[t.id]) if t.id in overlay else t
        for t in tasks
    ]


class Reconciler:
    """
    Reconciles the three record sources for one user.

    Window sizes are injected so the composition root can take them from
    settings.
    """

    def __init__(
        self,
        user_id: int,
        block_days_back: int = DEFAULT_DAYS_BACK,
        block_days_forward: int = DEFAULT_DAYS_FORWARD,
        meeting_days_back: int = MEETING_DAYS_BACK,
        meeting_days_forward: int = MEETING_DAYS_FORWARD,
    ):
        self.user_id = user_id
        self.block_days_back = block_days_back
        self.block_days_forward = block_days_forward
        self.meeting_days_back = meeting_days_back
        self.meeting_days_forward = meeting_days_forward

    def block_window(self, reference_date: date) -> tuple[date, date]:
        return active_window(reference_date, self.block_days_back, self.block_days_forward)

    def meeting_window(self, reference_date: date) -> tuple[date, date]:
        return (
            reference_date - timedelta(days=self.meeting_days_back),
            reference_date + timedelta(days=self.meeting_days_forward),
        )

    def accessible_meetings(
        self, meetings: Iterable[MeetingRecord], reference_date: date
    ) -> list[MeetingRecord]:
        start, end = self.meeting_window(reference_date)
        return [m for m in meetings if start <= m.date <= end and m.can_access(self.user_id)]

    def reconcile(
        self,
        blocks: Iterable[TimeBlockRecord],
        meetings: Iterable[MeetingRecord],
        todos: Iterable[TodoRecord],
        skip_overlay: Mapping[str, str | None] | None = None,
        reference_date: date | None = None,
        now: datetime | None = None,
    ) -> ReconciledView:
        """
        Run one reconciliation pass.

        Args:
            blocks: Specific-date blocks and recurring definitions, mixed
            meetings: Meeting records (access is re-checked here)
            todos: Personal todo records
            skip_overlay: task id -> reason (None when no reason was given)
            reference_date: "Today"; defaults to now's date
            now: Moment used for the upcoming partition

        Returns:
            ReconciledView with all / upcoming / completed lists
        """
        now = now or datetime.now()
        reference_date = reference_date or now.date()
        skip_overlay = skip_overlay or {}

        window_start, window_end = self.block_window(reference_date)
        blocks = list(blocks)
        definitions = [b for b in blocks if b.is_recurring]
        specific = [
            b for b in blocks if not b.is_recurring and window_start <= b.date <= window_end
        ]
        instances = expand_all(definitions, window_start, window_end)
        merged_blocks = merge_blocks(instances, specific)

        meetings = list(meetings)
        visible_meetings = self.accessible_meetings(meetings, reference_date)

        tasks: list[Task] = []
        dropped = 0
        candidates = (
            [normalize_block(b) for b in merged_blocks]
            + [normalize_meeting(m) for m in visible_meetings]
            + [normalize_todo(t, reference_date) for t in todos]
        )
        for task in candidates:
            if task is None:
                dropped += 1
                continue
            tasks.append(task)

        tasks = apply_skip_overlay(tasks, skip_overlay)
        tasks.sort(key=sort_key)
        upcoming, completed = partition(tasks, now)

        meeting_count = sum(1 for t in tasks if t.kind is TaskKind.MEETING)
        logger.info(
            f"Reconciled {len(tasks)} tasks ({meeting_count} meetings, "
            f"{len(upcoming)} upcoming, {len(completed)} completed, {dropped} dropped, "
            f"{len(meetings) - len(visible_meetings)} meetings filtered)"
        )

        return ReconciledView(
            all=tasks,
            upcoming=upcoming,
            completed=completed,
            reference_date=reference_date,
            computed_at=now,
        )


def reconcile(
    blocks: Iterable[TimeBlockRecord],
    meetings: Iterable[MeetingRecord],
    todos: Iterable[TodoRecord],
    skip_overlay: Mapping[str, str | None] | None,
    reference_date: date,
    user_id: int,
    now: datetime | None = None,
) -> ReconciledView:
    """Single-call reconciliation with default windows."""
    return Reconciler(user_id).reconcile(
        blocks, meetings, todos, skip_overlay, reference_date=reference_date, now=now
    )
