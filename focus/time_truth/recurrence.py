"""
Recurrence Expander - materialize recurring time blocks into per-day instances.

Weekday indices follow the record store convention: 0=Sunday .. 6=Saturday.

Invariants:
- One instance per matching day, never more
- Instance ids are "{definition_id}-{YYYY-MM-DD}" and stable across refreshes
- Excluded dates and days after the recurrence end never produce instances
"""

import logging
from collections.abc import Iterable
from dataclasses import replace
from datetime import date, timedelta

from .models import TimeBlockRecord

logger = logging.getLogger(__name__)

DEFAULT_DAYS_BACK = 7
DEFAULT_DAYS_FORWARD = 7


def store_weekday(day: date) -> int:
    """Weekday index with Sunday=0 (Python's date.weekday() has Monday=0)."""
    return (day.weekday() + 1) % 7


def instance_id(definition_id: str, day: date) -> str:
    return f"{definition_id}-{day.isoformat()}"


def active_window(
    today: date,
    days_back: int = DEFAULT_DAYS_BACK,
    days_forward: int = DEFAULT_DAYS_FORWARD,
) -> tuple[date, date]:
    """Expansion window around today, inclusive on both ends."""
    return today - timedelta(days=days_back), today + timedelta(days=days_forward)


def iter_days(start: date, end: date) -> Iterable[date]:
    """Every calendar day in [start, end], inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def occurs_on(definition: TimeBlockRecord, day: date) -> bool:
    """Whether a recurring definition produces an instance on day."""
    if not definition.is_recurring or not definition.recurring_days:
        return False
    if store_weekday(day) not in definition.recurring_days:
        return False
    if definition.excluded_dates and day in definition.excluded_dates:
        return False
    if definition.recurring_end_date is not None and day > definition.recurring_end_date:
        return False
    return True


def expand(
    definition: TimeBlockRecord, window_start: date, window_end: date
) -> list[TimeBlockRecord]:
    """
    Expand one recurring definition over [window_start, window_end].

    Each instance copies every field of the definition except date and id.
    Non-recurring records produce nothing.
    """
    if not definition.is_recurring:
        return []
    if window_end < window_start:
        return []

    return [
        replace(
            definition,
            id=instance_id(definition.id, day),
            date=day,
            definition_id=definition.id,
        )
        for day in iter_days(window_start, window_end)
        if occurs_on(definition, day)
    ]


def expand_all(
    definitions: Iterable[TimeBlockRecord], window_start: date, window_end: date
) -> list[TimeBlockRecord]:
    """Expand many definitions; instances come back in definition order."""
    instances: list[TimeBlockRecord] = []
    count = 0
    for definition in definitions:
        count += 1
        instances.extend(expand(definition, window_start, window_end))
    logger.debug(
        f"Expanded {count} recurring definitions into {len(instances)} instances "
        f"({window_start} to {window_end})"
    )
    return instances
