"""
ReminderScheduler - turn the reconciled task list into local reminders.

Every pass cancels all pending reminders under the namespace prefix, then
schedules at most one reminder per eligible task. Delivery belongs to the
NotificationCenter collaborator; this module only decides what is pending.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol

from focus.time_truth.models import Task, TaskKind
from focus.time_truth.timeparse import format_12h

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "focus-"
DEFAULT_LEAD_MINUTES = 5
SNOOZE_PREFIX = "snooze-"

CATEGORY_MEETING = "FOCUS_MEETING"
CATEGORY_TASK = "FOCUS_TASK"


@dataclass(frozen=True)
class Reminder:
    identifier: str
    task_id: str
    title: str
    trigger_at: datetime
    lead_minutes: int
    category: str
    body: str

    def to_dict(self) -> dict:
        return {
            "identifier": self.identifier,
            "task_id": self.task_id,
            "title": self.title,
            "trigger_at": self.trigger_at.isoformat(),
            "lead_minutes": self.lead_minutes,
            "category": self.category,
            "body": self.body,
        }


class NotificationCenter(Protocol):
    """Platform notification scheduler."""

    def add(self, reminder: Reminder) -> None: ...

    def cancel(self, identifiers: Iterable[str]) -> None: ...

    def cancel_prefix(self, prefix: str) -> int: ...

    def pending_identifiers(self) -> list[str]: ...


def category_for(task: Task) -> str:
    return CATEGORY_MEETING if task.kind is TaskKind.MEETING else CATEGORY_TASK


def reminder_body(task: Task, lead_minutes: int) -> str:
    return f"Starting in {lead_minutes} min • {format_12h(task.start_hour, task.start_minute)}"


class ReminderScheduler:
    """Schedules reminders for one user's tasks."""

    def __init__(self, center: NotificationCenter, namespace: str = DEFAULT_NAMESPACE):
        if not namespace:
            raise ValueError("namespace must be non-empty")
        self.center = center
        self.namespace = namespace
        self._scheduled: dict[str, Reminder] = {}

    def identifier_for(self, task_id: str) -> str:
        return f"{self.namespace}{task_id}"

    def schedule(
        self,
        tasks: Iterable[Task],
        lead_minutes: int = DEFAULT_LEAD_MINUTES,
        reference_moment: datetime | None = None,
    ) -> list[Reminder]:
        """
        Replace every namespaced reminder with a fresh set.

        A task gets a reminder when it is neither completed nor skipped and
        its trigger (start minus lead) is strictly after the reference moment.

        Returns:
            Reminders scheduled in this pass, in task order
        """
        if lead_minutes < 0:
            raise ValueError(f"lead_minutes must be >= 0, got {lead_minutes}")
        reference_moment = reference_moment or datetime.now()

        cancelled = self.center.cancel_prefix(self.namespace)
        self._scheduled.clear()

        scheduled: list[Reminder] = []
        seen: set[str] = set()
        for task in tasks:
            if task.completed or task.skipped or task.id in seen:
                continue
            start = task.start_moment
            if start <= reference_moment:
                continue
            trigger = start - timedelta(minutes=lead_minutes)
            if trigger <= reference_moment:
                continue

            reminder = Reminder(
                identifier=self.identifier_for(task.id),
                task_id=task.id,
                title=task.title,
                trigger_at=trigger,
                lead_minutes=lead_minutes,
                category=category_for(task),
                body=reminder_body(task, lead_minutes),
            )
            self.center.add(reminder)
            self._scheduled[reminder.identifier] = reminder
            seen.add(task.id)
            scheduled.append(reminder)

        logger.info(f"Scheduled {len(scheduled)} reminders (cancelled {cancelled})")
        return scheduled

    def cancel(self, task_id: str) -> None:
        """Remove one task's namespaced reminder, if any."""
        identifier = self.identifier_for(task_id)
        self.center.cancel([identifier])
        self._scheduled.pop(identifier, None)

    def cancel_all(self) -> int:
        self._scheduled.clear()
        return self.center.cancel_prefix(self.namespace)

    def snooze(self, task_id: str, title: str, minutes: int, now: datetime | None = None) -> Reminder:
        """
        Schedule a one-off reminder outside the namespace.

        Snoozes survive the next scheduling pass's namespace cancel.
        """
        if minutes <= 0:
            raise ValueError(f"minutes must be positive, got {minutes}")
        now = now or datetime.now()
        reminder = Reminder(
            identifier=f"{SNOOZE_PREFIX}{task_id}-{int(now.timestamp())}",
            task_id=task_id,
            title=title,
            trigger_at=now + timedelta(minutes=minutes),
            lead_minutes=0,
            category=CATEGORY_TASK,
            body=f"Snoozed for {minutes} min",
        )
        self.center.add(reminder)
        logger.info(f"Snoozed {task_id} for {minutes} min")
        return reminder

    def scheduled(self) -> list[Reminder]:
        """Reminders from the latest pass that are still pending."""
        pending = set(self.center.pending_identifiers())
        return sorted(
            (r for ident, r in self._scheduled.items() if ident in pending),
            key=lambda r: (r.trigger_at, r.identifier),
        )
