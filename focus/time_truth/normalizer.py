"""
Task Normalizer - convert raw block, meeting and todo records into Tasks.

Defaults:
- Meeting without a time starts at 09:00; without a duration lasts 60 minutes
- Todo without a start date lands on the reference day; without a time, 09:00
- Todo end is start + 60 minutes, for display only

Malformed times drop the record (None) instead of defaulting it.
"""

import logging
from datetime import date

from .models import (
    MeetingRecord,
    Priority,
    Task,
    TaskKind,
    TimeBlockRecord,
    TodoRecord,
    parse_block_times,
)
from .timeparse import Resolved, add_minutes, parse_date, parse_time_components, to_minutes

logger = logging.getLogger(__name__)

DEFAULT_START = (9, 0)
DEFAULT_MEETING_DURATION = 60
TODO_DISPLAY_MINUTES = 60


def meeting_task_id(meeting_id: int) -> str:
    return f"meeting-{meeting_id}"


def todo_task_id(todo_id: str) -> str:
    return f"todo-{todo_id}"


def resolve_start(raw: str | None) -> Resolved[tuple[int, int]] | None:
    """
    Resolve an optional start time.

    Missing -> defaulted 09:00. Present but malformed -> None.
    """
    if raw is None:
        return Resolved.default(DEFAULT_START)
    parsed = parse_time_components(raw)
    if parsed is None:
        return None
    return Resolved(parsed)


def resolve_duration(raw: int | None) -> Resolved[int]:
    if raw is None or raw < 0:
        return Resolved.default(DEFAULT_MEETING_DURATION)
    return Resolved(raw)


def resolve_todo_date(raw: str | None, reference_date: date) -> Resolved[date] | None:
    if raw is None:
        return Resolved.default(reference_date)
    parsed = parse_date(raw)
    if parsed is None:
        return None
    return Resolved(parsed)


def normalize_block(record: TimeBlockRecord) -> Task | None:
    times = parse_block_times(record)
    if times is None:
        logger.warning(
            f"Dropping block {record.id}: unparseable times "
            f"{record.start_time!r}-{record.end_time!r}"
        )
        return None

    (start_hour, start_minute), (end_hour, end_minute) = times
    if to_minutes(end_hour, end_minute) < to_minutes(start_hour, start_minute):
        logger.warning(
            f"Dropping block {record.id}: ends before it starts "
            f"({record.start_time}-{record.end_time})"
        )
        return None

    return Task(
        id=record.id,
        title=record.title,
        description=record.description,
        date=record.date,
        start_hour=start_hour,
        start_minute=start_minute,
        end_hour=end_hour,
        end_minute=end_minute,
        kind=TaskKind.TIMEBLOCK,
        block_type=record.type,
        priority=Priority.NORMAL,
        completed=record.completed,
        meeting_link=record.meeting_link,
        # Mutations on an instance are routed to its definition
        original_id=record.definition_id or record.id,
        is_recurring=record.is_recurring,
        definition_id=record.definition_id,
    )


def normalize_meeting(record: MeetingRecord) -> Task | None:
    start = resolve_start(record.time)
    if start is None:
        logger.warning(f"Dropping meeting {record.id}: unparseable time {record.time!r}")
        return None

    duration = resolve_duration(record.duration)
    start_hour, start_minute = start.value
    # Wraps past midnight: 23:15 + 120 -> 01:15
    end_hour, end_minute = add_minutes(start_hour, start_minute, duration.value)

    return Task(
        id=meeting_task_id(record.id),
        title=record.title,
        description=record.description,
        date=record.date,
        start_hour=start_hour,
        start_minute=start_minute,
        end_hour=end_hour,
        end_minute=end_minute,
        kind=TaskKind.MEETING,
        priority=Priority.HIGH,
        completed=bool(record.completed),
        meeting_link=record.meeting_link,
        notes=record.notes,
        original_id=str(record.id),
        time_defaulted=start.defaulted,
    )


def normalize_todo(record: TodoRecord, reference_date: date) -> Task | None:
    day = resolve_todo_date(record.start_date, reference_date)
    if day is None:
        logger.warning(f"Dropping todo {record.id}: unparseable start date {record.start_date!r}")
        return None

    start = resolve_start(record.start_time)
    if start is None:
        logger.warning(f"Dropping todo {record.id}: unparseable start time {record.start_time!r}")
        return None

    start_hour, start_minute = start.value
    end_hour, end_minute = add_minutes(start_hour, start_minute, TODO_DISPLAY_MINUTES)

    return Task(
        id=todo_task_id(record.id),
        title=record.task_name,
        description=record.description,
        date=day.value,
        start_hour=start_hour,
        start_minute=start_minute,
        end_hour=end_hour,
        end_minute=end_minute,
        kind=TaskKind.TODO,
        priority=record.priority,
        completed=record.completed,
        original_id=record.id,
        time_defaulted=start.defaulted,
    )


def normalize(
    record: TimeBlockRecord | MeetingRecord | TodoRecord, reference_date: date
) -> Task | None:
    """
    Convert any supported record into a Task.

    Returns:
        Task, or None when the record's time fields fail to parse
    """
    if isinstance(record, TimeBlockRecord):
        return normalize_block(record)
    if isinstance(record, MeetingRecord):
        return normalize_meeting(record)
    if isinstance(record, TodoRecord):
        return normalize_todo(record, reference_date)
    raise TypeError(f"Unsupported record type: {type(record).__name__}")
