"""
Focus API Server - REST API over the reconciled task snapshot.
"""
# ruff: noqa: S104
# S104: Development server binding (guarded by __name__ check)

import logging
import os
from datetime import datetime

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from api.response_models import (
    CountsResponse,
    HealthResponse,
    MutationResponse,
    RefreshResponse,
    ReminderListResponse,
    ReminderModel,
    SkipRequest,
    TaskListResponse,
    TaskModel,
    TaskSlotResponse,
)
from focus.task_manager import TaskManager

logger = logging.getLogger(__name__)


def _not_found(task_id: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"Task not found: {task_id}")


def create_app(manager: TaskManager) -> FastAPI:
    """Build the API around one TaskManager."""
    app = FastAPI(
        title="Focus API",
        description="Reconciled time blocks, meetings and todos with reminders",
        version="0.1.0",
    )

    # CORS middleware - configurable via CORS_ORIGINS env var
    # Dev default: allow all origins; Production: set CORS_ORIGINS to comma-separated list
    cors_origins_env = os.getenv("CORS_ORIGINS", "*")
    cors_origins = (
        ["*"] if cors_origins_env == "*" else [o.strip() for o in cors_origins_env.split(",")]
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.manager = manager

    # ==== Health ====

    @app.get("/health", response_model=HealthResponse)
    def health():
        status = manager.scheduler.status()
        computed_at = manager.view.computed_at
        return HealthResponse(
            status="healthy" if status["health"] == "healthy" else "degraded",
            timestamp=datetime.now().isoformat(),
            last_refresh=computed_at.isoformat() if computed_at else None,
            auto_refresh=status,
        )

    @app.post("/refresh", response_model=RefreshResponse)
    def refresh():
        view = manager.refresh()
        return RefreshResponse(
            success=True,
            total=len(view.all),
            upcoming=len(view.upcoming),
            completed=len(view.completed),
            computed_at=view.computed_at.isoformat() if view.computed_at else None,
        )

    # ==== Task Lists ====

    @app.get("/tasks", response_model=TaskListResponse)
    def list_tasks():
        return TaskListResponse.from_tasks(manager.view.all)

    @app.get("/tasks/today", response_model=TaskListResponse)
    def list_today():
        return TaskListResponse.from_tasks(manager.today_tasks)

    @app.get("/tasks/upcoming", response_model=TaskListResponse)
    def list_upcoming(now: datetime | None = None):
        return TaskListResponse.from_tasks(manager.upcoming_tasks(now))

    @app.get("/tasks/completed", response_model=TaskListResponse)
    def list_completed():
        return TaskListResponse.from_tasks(manager.view.completed)

    @app.get("/tasks/skipped", response_model=TaskListResponse)
    def list_skipped():
        return TaskListResponse.from_tasks(manager.skipped_tasks())

    @app.get("/tasks/current", response_model=TaskSlotResponse)
    def current(now: datetime | None = None):
        task = manager.current_task(now)
        return TaskSlotResponse(task=TaskModel.from_task(task) if task else None)

    @app.get("/tasks/next", response_model=TaskSlotResponse)
    def next_up(now: datetime | None = None):
        task = manager.next_task(now)
        return TaskSlotResponse(task=TaskModel.from_task(task) if task else None)

    @app.get("/tasks/counts", response_model=CountsResponse)
    def counts(now: datetime | None = None):
        return CountsResponse(**manager.counts(now))

    @app.get("/tasks/{task_id}", response_model=TaskModel)
    def get_task(task_id: str):
        try:
            return TaskModel.from_task(manager.get(task_id))
        except KeyError:
            raise _not_found(task_id) from None

    # ==== Mutations ====

    @app.post("/tasks/{task_id}/complete", response_model=MutationResponse)
    def complete(task_id: str):
        try:
            task = manager.toggle_complete(task_id)
        except KeyError:
            raise _not_found(task_id) from None
        return MutationResponse(success=True, task=TaskModel.from_task(task))

    @app.post("/tasks/{task_id}/skip", response_model=MutationResponse)
    def skip(task_id: str, body: SkipRequest | None = None):
        try:
            task = manager.skip(task_id, body.reason if body else None)
        except KeyError:
            raise _not_found(task_id) from None
        return MutationResponse(success=True, task=TaskModel.from_task(task))

    @app.post("/tasks/{task_id}/unskip", response_model=MutationResponse)
    def unskip(task_id: str):
        try:
            task = manager.unskip(task_id)
        except KeyError:
            raise _not_found(task_id) from None
        return MutationResponse(success=True, task=TaskModel.from_task(task))

    @app.post("/tasks/{task_id}/edit/begin", response_model=MutationResponse)
    def begin_edit(task_id: str):
        try:
            manager.begin_edit(task_id)
        except KeyError:
            raise _not_found(task_id) from None
        return MutationResponse(success=True)

    @app.post("/tasks/{task_id}/edit/end", response_model=MutationResponse)
    def end_edit(task_id: str):
        manager.end_edit(task_id)
        return MutationResponse(success=True)

    @app.delete("/tasks/{task_id}", response_model=MutationResponse)
    def delete(task_id: str):
        try:
            task = manager.delete(task_id)
        except KeyError:
            raise _not_found(task_id) from None
        return MutationResponse(success=True, task=TaskModel.from_task(task))

    # ==== Reminders ====

    @app.get("/reminders", response_model=ReminderListResponse)
    def reminders():
        items = [ReminderModel.from_reminder(r) for r in manager.reminders.scheduled()]
        return ReminderListResponse(items=items, total=len(items))

    return app


def serve(manager: TaskManager, host: str = "127.0.0.1", port: int = 8420) -> None:
    """Run the API with uvicorn, auto-refreshing in the background."""
    import uvicorn

    manager.refresh()
    manager.scheduler.start()
    try:
        uvicorn.run(create_app(manager), host=host, port=port)
    finally:
        manager.shutdown()


if __name__ == "__main__":
    from focus.config import load_settings
    from focus.observability.logging import configure_logging

    settings = load_settings()
    configure_logging(settings.log_level)
    serve(TaskManager(settings), host=os.getenv("FOCUS_API_HOST", "0.0.0.0"))
