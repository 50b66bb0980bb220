"""
Time Truth Module

The foundation layer of Focus. Everything else reads its output.

Objects:
- TimeBlockRecord (fixed-date or recurring time slots)
- MeetingRecord (owner/attendee access)
- TodoRecord (personal to-dos)
- Task (unified, display-ready projection)

Invariants:
- Every Task id is unique within one reconciled snapshot
- Recurring instance ids are "{definition_id}-{YYYY-MM-DD}"
- A specific-date block overrides the recurring instance it collides with
- Blocks with unparseable times, or ending before they start, are dropped
"""

from .models import (
    BlockType,
    ChecklistItem,
    MeetingRecord,
    Priority,
    SkipRecord,
    Task,
    TaskKind,
    TimeBlockRecord,
    TodoRecord,
)
from .normalizer import normalize
from .reconciler import ReconciledView, Reconciler, reconcile
from .recurrence import active_window, expand, expand_all

__all__ = [
    "BlockType",
    "ChecklistItem",
    "MeetingRecord",
    "Priority",
    "SkipRecord",
    "Task",
    "TaskKind",
    "TimeBlockRecord",
    "TodoRecord",
    "normalize",
    "ReconciledView",
    "Reconciler",
    "reconcile",
    "active_window",
    "expand",
    "expand_all",
]
