"""
Tests for the focus CLI, driven through main() with an injected manager.
"""

from cli.main import build_parser, main


class TestParser:
    def test_skip_reason(self):
        args = build_parser().parse_args(["skip", "blk-1", "--reason", "tired"])
        assert args.command == "skip"
        assert args.task_id == "blk-1"
        assert args.reason == "tired"

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "usage: focus" in capsys.readouterr().out


class TestCommands:
    def test_today(self, manager, capsys):
        assert main(["today"], manager=manager) == 0
        out = capsys.readouterr().out
        assert "📅 5 tasks today:" in out
        assert "[Focus] Deep work  (blk-1)" in out
        assert "[Meeting] Design review" in out

    def test_upcoming_limit(self, manager, capsys):
        assert main(["upcoming", "--limit", "2"], manager=manager) == 0
        out = capsys.readouterr().out
        assert "9 upcoming" in out
        assert out.count("• ") == 2

    def test_counts(self, manager, capsys):
        assert main(["counts"], manager=manager) == 0
        out = capsys.readouterr().out
        assert "Tasks: 14 total, 9 upcoming, 0 completed, 0 skipped" in out
        assert "Kinds: 11 blocks, 1 meetings, 2 todos" in out

    def test_complete_waits_for_write(self, manager, fake_gateway, capsys):
        assert main(["complete", "todo-t1"], manager=manager) == 0
        assert "✅ Send invoice completed" in capsys.readouterr().out
        assert fake_gateway.writes("PATCH") == [("PATCH", "personal_todos", "t1", {"completed": True})]

    def test_skip(self, manager, fake_gateway, capsys):
        assert main(["skip", "blk-1", "-r", "tired"], manager=manager) == 0
        assert "⏩ Skipped Deep work" in capsys.readouterr().out
        assert fake_gateway.tables["focus_skipped_tasks"][0]["skip_reason"] == "tired"

    def test_unknown_task(self, manager, capsys):
        assert main(["complete", "ghost"], manager=manager) == 1
        assert "Unknown task: ghost" in capsys.readouterr().err

    def test_reminders(self, manager, capsys):
        assert main(["reminders"], manager=manager) == 0
        out = capsys.readouterr().out
        assert "🔔 9 reminders:" in out
        assert "2025-06-04 08:55  Buy milk: Starting in 5 min • 9:00 AM" in out

    def test_daemon_runs_scheduler(self, manager, monkeypatch):
        ran = []
        monkeypatch.setattr(manager.scheduler, "run_forever", lambda: ran.append(True))
        assert main(["daemon"], manager=manager) == 0
        assert ran == [True]

    def test_missing_config(self, tmp_path, capsys):
        assert main(["--config", str(tmp_path / "nope.yaml"), "today"]) == 1
        assert "not found" in capsys.readouterr().err
