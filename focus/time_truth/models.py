"""
Time Truth data model.

Raw records mirror the remote tables one-to-one (time_blocks,
projects_meeting, personal_todos, focus_skipped_tasks). Task is the unified,
read-only projection every consumer reads.

Record decoding raises ValueError for rows missing required fields; the
collectors drop such rows one at a time.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from enum import StrEnum
from typing import Any

from .timeparse import format_12h, parse_date, parse_time_components


class BlockType(StrEnum):
    """Time block categories."""

    FOCUS = "focus"
    MEETING = "meeting"
    PERSONAL = "personal"
    GOAL = "goal"
    PROJECT = "project"
    ROUTINE = "routine"
    WORK = "work"
    SOCIAL = "social"
    TODO = "todo"

    @classmethod
    def parse(cls, value: Any) -> "BlockType":
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.PERSONAL


class Priority(StrEnum):
    """Task priority."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"

    @classmethod
    def parse(cls, value: Any) -> "Priority":
        if value is None:
            return cls.NORMAL
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.NORMAL


class TaskKind(StrEnum):
    """Backing record kind. Values double as the write-routing key."""

    TIMEBLOCK = "timeblock"
    MEETING = "meeting"
    TODO = "todo"


def _require(row: dict, key: str) -> Any:
    value = row.get(key)
    if value is None:
        raise ValueError(f"missing required field '{key}'")
    return value


def _require_date(row: dict, key: str) -> date:
    parsed = parse_date(_require(row, key))
    if parsed is None:
        raise ValueError(f"invalid date in '{key}': {row.get(key)!r}")
    return parsed


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text if text.strip() else None


def _int_set(values: Any) -> frozenset[int] | None:
    if values is None:
        return None
    result = set()
    for v in values:
        try:
            result.add(int(v))
        except (TypeError, ValueError):
            continue
    return frozenset(result)


def _date_set(values: Any) -> frozenset[date] | None:
    if values is None:
        return None
    parsed = (parse_date(v) for v in values)
    return frozenset(d for d in parsed if d is not None)


@dataclass(frozen=True)
class ChecklistItem:
    id: str
    text: str
    completed: bool = False

    @classmethod
    def from_row(cls, row: dict) -> "ChecklistItem":
        return cls(
            id=str(row.get("id", "")),
            text=str(row.get("text", "")),
            completed=bool(row.get("completed", False)),
        )

    def to_row(self) -> dict:
        return {"id": self.id, "text": self.text, "completed": self.completed}


@dataclass(frozen=True)
class TimeBlockRecord:
    id: str
    user_id: int
    date: date
    start_time: str
    end_time: str
    title: str
    description: str | None = None
    type: BlockType = BlockType.PERSONAL
    category: str | None = None
    completed: bool = False
    is_recurring: bool = False
    recurring_days: frozenset[int] | None = None
    excluded_dates: frozenset[date] | None = None
    recurring_end_date: date | None = None
    checklist: tuple[ChecklistItem, ...] | None = None
    meeting_link: str | None = None
    notification_time: int | None = None
    color: str | None = None
    # Set on expanded recurring instances; points back at the definition
    definition_id: str | None = None

    @property
    def is_instance(self) -> bool:
        return self.definition_id is not None

    @classmethod
    def from_row(cls, row: dict) -> "TimeBlockRecord":
        checklist = row.get("checklist")
        return cls(
            id=str(_require(row, "id")),
            user_id=int(_require(row, "user_id")),
            date=_require_date(row, "date"),
            start_time=str(_require(row, "start_time")),
            end_time=str(_require(row, "end_time")),
            title=str(_require(row, "title")),
            description=_optional_str(row.get("description")),
            type=BlockType.parse(row.get("type")),
            category=_optional_str(row.get("category")),
            completed=bool(row.get("completed") or False),
            is_recurring=bool(row.get("is_recurring") or False),
            recurring_days=_int_set(row.get("recurring_days")),
            excluded_dates=_date_set(row.get("excluded_dates")),
            recurring_end_date=parse_date(row.get("recurring_end_date")),
            checklist=(
                tuple(ChecklistItem.from_row(item) for item in checklist)
                if isinstance(checklist, list)
                else None
            ),
            meeting_link=_optional_str(row.get("meeting_link")),
            notification_time=row.get("notification_time"),
            color=_optional_str(row.get("color")),
        )

    def to_row(self) -> dict:
        """Full record for a create (POST) request."""
        row = {
            "id": self.id,
            "user_id": self.user_id,
            "date": self.date.isoformat(),
            "start_time": self.start_time,
            "end_time": self.end_time,
            "title": self.title,
            "type": self.type.value,
            "completed": self.completed,
            "is_recurring": self.is_recurring,
        }
        if self.description:
            row["description"] = self.description
        if self.category:
            row["category"] = self.category
        if self.meeting_link:
            row["meeting_link"] = self.meeting_link
        if self.notification_time:
            row["notification_time"] = self.notification_time
        if self.color:
            row["color"] = self.color
        if self.checklist:
            row["checklist"] = [item.to_row() for item in self.checklist]
        if self.is_recurring:
            row["recurring_days"] = sorted(self.recurring_days or ())
            if self.excluded_dates:
                row["excluded_dates"] = sorted(d.isoformat() for d in self.excluded_dates)
            if self.recurring_end_date:
                row["recurring_end_date"] = self.recurring_end_date.isoformat()
        return row


@dataclass(frozen=True)
class MeetingRecord:
    id: int
    title: str
    date: date
    time: str | None = None
    duration: int | None = None
    user_id: int | None = None
    attendee_ids: tuple[int, ...] = ()
    meeting_link: str | None = None
    description: str | None = None
    notes: str | None = None
    location: str | None = None
    completed: bool | None = None
    project_id: int | None = None

    def can_access(self, user_id: int) -> bool:
        """Owner or attendee."""
        return self.user_id == user_id or user_id in self.attendee_ids

    @classmethod
    def from_row(cls, row: dict) -> "MeetingRecord":
        duration = row.get("duration")
        return cls(
            id=int(_require(row, "id")),
            title=str(_require(row, "title")),
            date=_require_date(row, "date"),
            time=_optional_str(row.get("time")),
            duration=int(duration) if duration is not None else None,
            user_id=int(row["user_id"]) if row.get("user_id") is not None else None,
            attendee_ids=tuple(sorted(_int_set(row.get("attendee_ids")) or ())),
            meeting_link=_optional_str(row.get("meeting_link")),
            description=_optional_str(row.get("description")),
            notes=_optional_str(row.get("notes")),
            location=_optional_str(row.get("location")),
            completed=row.get("completed"),
            project_id=row.get("project_id"),
        )


@dataclass(frozen=True)
class TodoRecord:
    id: str
    user_id: str
    task_name: str
    description: str | None = None
    deadline: str | None = None
    priority: Priority = Priority.NORMAL
    completed: bool = False
    start_date: str | None = None
    start_time: str | None = None

    @classmethod
    def from_row(cls, row: dict) -> "TodoRecord":
        return cls(
            id=str(_require(row, "id")),
            # user_id is an int in some deployments, a string in others
            user_id=str(_require(row, "user_id")),
            task_name=str(_require(row, "task_name")),
            description=_optional_str(row.get("description")),
            deadline=_optional_str(row.get("deadline")),
            priority=Priority.parse(row.get("priority")),
            completed=bool(row.get("completed") or False),
            start_date=_optional_str(row.get("start_date")),
            start_time=_optional_str(row.get("start_time")),
        )


@dataclass(frozen=True)
class SkipRecord:
    user_id: int
    task_id: str
    task_type: str
    task_title: str
    task_date: date
    skip_reason: str | None = None
    skipped_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict) -> "SkipRecord":
        skipped_at = row.get("skipped_at")
        parsed_at = None
        if skipped_at:
            try:
                parsed_at = datetime.fromisoformat(str(skipped_at))
            except ValueError:
                parsed_at = None
        return cls(
            user_id=int(_require(row, "user_id")),
            task_id=str(_require(row, "task_id")),
            task_type=str(row.get("task_type") or ""),
            task_title=str(row.get("task_title") or ""),
            task_date=_require_date(row, "task_date"),
            skip_reason=_optional_str(row.get("skip_reason")),
            skipped_at=parsed_at,
        )

    def to_row(self) -> dict:
        return {
            "user_id": self.user_id,
            "task_id": self.task_id,
            "task_type": self.task_type,
            "task_title": self.task_title,
            "task_date": self.task_date.isoformat(),
            "skip_reason": self.skip_reason,
        }


@dataclass(frozen=True)
class Task:
    """
    Unified display-ready projection of a block, meeting, or todo.

    Hour/minute pairs are kept raw so positioning never depends on a timezone.
    Instances are immutable; optimistic edits swap in a dataclasses.replace()
    copy.
    """

    id: str
    title: str
    date: date
    start_hour: int
    start_minute: int
    end_hour: int
    end_minute: int
    kind: TaskKind
    original_id: str
    description: str | None = None
    block_type: BlockType | None = None
    priority: Priority = Priority.NORMAL
    completed: bool = False
    skipped: bool = False
    skip_reason: str | None = None
    meeting_link: str | None = None
    notes: str | None = None
    is_recurring: bool = False
    time_defaulted: bool = False
    # Recurring instances only: the definition they were expanded from
    definition_id: str | None = field(default=None, compare=False)

    @property
    def original_type(self) -> str:
        return self.kind.value

    @property
    def display_kind(self) -> str:
        if self.kind is TaskKind.TIMEBLOCK and self.block_type is not None:
            return self.block_type.value.capitalize()
        if self.kind is TaskKind.MEETING:
            return "Meeting"
        return "Task"

    @property
    def start_moment(self) -> datetime:
        return datetime.combine(self.date, time(self.start_hour, self.start_minute))

    @property
    def end_moment(self) -> datetime:
        """End as a datetime; an end before the start belongs to the next day."""
        end = datetime.combine(self.date, time(self.end_hour, self.end_minute))
        if end < self.start_moment:
            end += timedelta(days=1)
        return end

    @property
    def time_text(self) -> str:
        return (
            f"{format_12h(self.start_hour, self.start_minute)} - "
            f"{format_12h(self.end_hour, self.end_minute)}"
        )

    def is_upcoming(self, now: datetime) -> bool:
        return self.start_moment > now

    def is_now(self, now: datetime) -> bool:
        return self.start_moment <= now <= self.end_moment

    def is_past(self, now: datetime) -> bool:
        return self.end_moment < now

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "date": self.date.isoformat(),
            "start_hour": self.start_hour,
            "start_minute": self.start_minute,
            "end_hour": self.end_hour,
            "end_minute": self.end_minute,
            "time_text": self.time_text,
            "kind": self.kind.value,
            "block_type": self.block_type.value if self.block_type else None,
            "display_kind": self.display_kind,
            "priority": self.priority.value,
            "completed": self.completed,
            "skipped": self.skipped,
            "skip_reason": self.skip_reason,
            "meeting_link": self.meeting_link,
            "notes": self.notes,
            "original_id": self.original_id,
            "original_type": self.original_type,
            "is_recurring": self.is_recurring,
            "time_defaulted": self.time_defaulted,
        }


def parse_block_times(record: TimeBlockRecord) -> tuple[tuple[int, int], tuple[int, int]] | None:
    """Both block times as (hour, minute) pairs, or None if either is malformed."""
    start = parse_time_components(record.start_time)
    end = parse_time_components(record.end_time)
    if start is None or end is None:
        return None
    return start, end
