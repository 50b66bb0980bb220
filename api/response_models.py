"""
Shared Pydantic response models for API endpoints.

These models give FastAPI the type information it needs to generate
accurate OpenAPI schemas instead of empty `schema: {}`.

Usage:
    from api.response_models import TaskListResponse

    @app.get("/tasks", response_model=TaskListResponse)
    def list_tasks(): ...
"""

from typing import Any

from pydantic import BaseModel, Field

from focus.notifier.engine import Reminder
from focus.time_truth.models import Task

# ==== Task ====


class TaskModel(BaseModel):
    """One reconciled task."""

    id: str
    title: str
    description: str | None = None
    date: str = Field(description="YYYY-MM-DD")
    start_hour: int
    start_minute: int
    end_hour: int
    end_minute: int
    time_text: str = Field(description="e.g. 9:00 AM - 10:00 AM")
    kind: str = Field(description="timeblock, meeting or todo")
    block_type: str | None = None
    display_kind: str
    priority: str
    completed: bool
    skipped: bool
    skip_reason: str | None = None
    meeting_link: str | None = None
    notes: str | None = None
    original_id: str = Field(description="Backing record id")
    original_type: str = Field(description="Backing record kind")
    is_recurring: bool
    time_defaulted: bool = Field(description="Start time was filled with the 09:00 default")

    @classmethod
    def from_task(cls, task: Task) -> "TaskModel":
        return cls(**task.to_dict())


# ==== List Envelope ====
# Shape: {items, total}


class TaskListResponse(BaseModel):
    """Standard task list response."""

    items: list[TaskModel] = Field(default_factory=list, description="Result items")
    total: int = Field(description="Total count")

    @classmethod
    def from_tasks(cls, tasks: list[Task]) -> "TaskListResponse":
        return cls(items=[TaskModel.from_task(t) for t in tasks], total=len(tasks))


class TaskSlotResponse(BaseModel):
    """Current or next task; task is null when there is none."""

    task: TaskModel | None = None


class CountsResponse(BaseModel):
    total: int
    completed: int
    upcoming: int
    meetings: int
    blocks: int
    todos: int
    skipped: int


# ==== Reminders ====


class ReminderModel(BaseModel):
    identifier: str
    task_id: str
    title: str
    trigger_at: str = Field(description="ISO timestamp")
    lead_minutes: int
    category: str = Field(description="FOCUS_MEETING or FOCUS_TASK")
    body: str

    @classmethod
    def from_reminder(cls, reminder: Reminder) -> "ReminderModel":
        return cls(**reminder.to_dict())


class ReminderListResponse(BaseModel):
    items: list[ReminderModel] = Field(default_factory=list)
    total: int


# ==== Mutation Result ====
# Used by POST/DELETE endpoints that return {success: bool, task}.


class MutationResponse(BaseModel):
    """Standard mutation result."""

    success: bool = Field(description="Whether the operation succeeded")
    task: TaskModel | None = None


class SkipRequest(BaseModel):
    reason: str | None = Field(default=None, description="Optional skip reason")


class RefreshResponse(BaseModel):
    success: bool
    total: int
    upcoming: int
    completed: int
    computed_at: str | None = None


# ==== Health Check ====


class HealthResponse(BaseModel):
    """Health check result."""

    status: str = Field(description="healthy or degraded")
    timestamp: str = Field(description="ISO timestamp")
    last_refresh: str | None = Field(default=None, description="ISO timestamp of the latest pass")
    auto_refresh: dict[str, Any] = Field(default_factory=dict)
