#!/usr/bin/env python3
"""Focus CLI."""

import argparse
import sys

from focus.config import load_settings
from focus.observability.logging import configure_log_file, configure_logging
from focus.task_manager import TaskManager
from focus.time_truth.models import Task


def _line(task: Task) -> str:
    marks = ""
    if task.completed:
        marks = " ✓"
    elif task.skipped:
        marks = f" (skipped: {task.skip_reason})" if task.skip_reason else " (skipped)"
    return f"• {task.date} {task.time_text}  [{task.display_kind}] {task.title}{marks}  ({task.id})"


def cmd_today(manager, args):
    """Show today's tasks."""
    tasks = manager.today_tasks
    if not tasks:
        print("Nothing scheduled today")
        return
    print(f"📅 {len(tasks)} tasks today:\n")
    for task in tasks[: args.limit]:
        print(_line(task))

    current = manager.current_task()
    if current:
        print(f"\nNow: {current.title}")


def cmd_upcoming(manager, args):
    """Show upcoming tasks."""
    tasks = manager.upcoming_tasks()
    if not tasks:
        print("Nothing upcoming 🎉")
        return
    print(f"⏭  {len(tasks)} upcoming:\n")
    for task in tasks[: args.limit]:
        print(_line(task))


def cmd_counts(manager, args):
    """Show task counts."""
    c = manager.counts()
    print(f"Tasks: {c['total']} total, {c['upcoming']} upcoming, {c['completed']} completed, {c['skipped']} skipped")
    print(f"Kinds: {c['blocks']} blocks, {c['meetings']} meetings, {c['todos']} todos")


def cmd_complete(manager, args):
    """Toggle completion on a task."""
    task = manager.toggle_complete(args.task_id)
    state = "completed" if task.completed else "reopened"
    print(f"✅ {task.title} {state}")


def cmd_skip(manager, args):
    """Skip a task."""
    task = manager.skip(args.task_id, args.reason)
    print(f"⏩ Skipped {task.title}")


def cmd_unskip(manager, args):
    """Unskip a task."""
    task = manager.unskip(args.task_id)
    print(f"↩️  Restored {task.title}")


def cmd_reminders(manager, args):
    """Show pending reminders."""
    reminders = manager.reminders.scheduled()
    if not reminders:
        print("No reminders pending")
        return
    print(f"🔔 {len(reminders)} reminders:\n")
    for reminder in reminders:
        print(f"• {reminder.trigger_at:%Y-%m-%d %H:%M}  {reminder.title}: {reminder.body}")


def cmd_daemon(manager, args):
    """Refresh on an interval in the foreground."""
    manager.scheduler.run_forever()


def cmd_serve(manager, args):
    """Serve the HTTP API."""
    from api.server import serve

    serve(manager, host=args.host, port=args.port)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="focus",
        description="Focus - reconciled time blocks, meetings and todos",
    )
    parser.add_argument("--config", "-c", help="Path to focus.yaml")
    parser.add_argument("--log-file", help="Also write JSON logs to this file")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    p = subparsers.add_parser("today", help="Show today's tasks")
    p.add_argument("--limit", "-l", type=int, default=50)

    p = subparsers.add_parser("upcoming", help="Show upcoming tasks")
    p.add_argument("--limit", "-l", type=int, default=20)

    subparsers.add_parser("counts", help="Show task counts")

    p = subparsers.add_parser("complete", help="Toggle completion on a task")
    p.add_argument("task_id", help="Task id (see 'focus today')")

    p = subparsers.add_parser("skip", help="Skip a task")
    p.add_argument("task_id", help="Task id")
    p.add_argument("--reason", "-r", help="Why it was skipped")

    p = subparsers.add_parser("unskip", help="Unskip a task")
    p.add_argument("task_id", help="Task id")

    subparsers.add_parser("reminders", help="Show pending reminders")
    subparsers.add_parser("daemon", help="Refresh in the foreground every interval")

    p = subparsers.add_parser("serve", help="Serve the HTTP API")
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=8420)

    return parser


# Dispatch
COMMANDS = {
    "today": cmd_today,
    "upcoming": cmd_upcoming,
    "counts": cmd_counts,
    "complete": cmd_complete,
    "skip": cmd_skip,
    "unskip": cmd_unskip,
    "reminders": cmd_reminders,
    "daemon": cmd_daemon,
}


def main(argv: list[str] | None = None, manager: TaskManager | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    if manager is None:
        try:
            settings = load_settings(args.config)
            manager = TaskManager(settings)
        except (FileNotFoundError, ValueError) as e:
            print(f"❌ {e}", file=sys.stderr)
            return 1
        configure_logging(settings.log_level)
        configure_log_file(args.log_file)

    if args.command == "serve":
        cmd_serve(manager, args)
        return 0

    try:
        manager.refresh()
        COMMANDS[args.command](manager, args)
    except KeyError as e:
        print(f"❌ Unknown task: {e.args[0]}", file=sys.stderr)
        return 1
    finally:
        # Waits for pending writes before exit
        manager.shutdown()
    return 0


if __name__ == "__main__":
    sys.exit(main())
