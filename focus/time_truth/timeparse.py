"""
Wall-clock and calendar parsing for Time Truth.

Times arrive from the record store as "HH:MM" or "HH:MM:SS" strings, sometimes
without a leading zero ("9:05"). Dates arrive as "YYYY-MM-DD". Everything here
returns None on failure instead of raising so callers can drop a single
malformed record without aborting a batch.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Generic, TypeVar

T = TypeVar("T")

MINUTES_PER_DAY = 24 * 60

_TIME_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})(?::(\d{2})(?:\.\d+)?)?\s*$")


@dataclass(frozen=True)
class Resolved(Generic[T]):
    """
    A value that was either read from the record or filled with a default.

    Lets callers tell "record specified 09:00" apart from
    "record omitted a time and got 09:00".
    """

    value: T
    defaulted: bool = False

    @classmethod
    def default(cls, value: T) -> "Resolved[T]":
        return cls(value=value, defaulted=True)


def parse_time_components(value: str | None) -> tuple[int, int] | None:
    """
    Parse a wall-clock string into (hour, minute).

    Accepts "HH:MM", "HH:MM:SS" and fractional seconds. Seconds are ignored.

    Returns:
        (hour, minute) or None if the value is empty or malformed
    """
    if value is None:
        return None
    match = _TIME_RE.match(str(value))
    if not match:
        return None

    hour = int(match.group(1))
    minute = int(match.group(2))
    second = int(match.group(3)) if match.group(3) else 0
    if hour > 23 or minute > 59 or second > 59:
        return None
    return hour, minute


def parse_date(value) -> date | None:
    """Parse a YYYY-MM-DD string (or pass through a date). None on failure."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        # Timestamps like "2026-06-02T10:00:00" still carry a usable day
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        return None


def to_minutes(hour: int, minute: int) -> int:
    return hour * 60 + minute


def add_minutes(hour: int, minute: int, delta: int) -> tuple[int, int]:
    """
    Add minutes to a wall-clock time, wrapping modulo 24 hours.

    23:15 + 120 -> (1, 15). The caller decides whether the result belongs
    to the next calendar day.
    """
    total = (to_minutes(hour, minute) + delta) % MINUTES_PER_DAY
    return total // 60, total % 60


def format_hhmm(hour: int, minute: int) -> str:
    return f"{hour:02d}:{minute:02d}"


def format_12h(hour: int, minute: int) -> str:
    """9:05 AM style display string."""
    period = "PM" if hour >= 12 else "AM"
    display = 12 if hour % 12 == 0 else hour % 12
    return f"{display}:{minute:02d} {period}"
