from datetime import datetime

from rutd.engine.model import Priority, Status, Task
from rutd.engine.render import (
    LIST_HEADERS,
    TerminalDisplay,
    format_duration,
    task_row,
    task_stats,
)


def _task(task_id: str, **kwargs) -> Task:
    kwargs.setdefault("description", "first line\nsecond line")
    kwargs.setdefault("created_at", datetime(2024, 6, 1, 12, 0).astimezone())
    return Task(id=task_id, **kwargs)


def test_format_duration():
    assert format_duration(None) == "-"
    assert format_duration(0) == "0h 0m 0s"
    assert format_duration(3723) == "1h 2m 3s"


def test_task_row():
    done = datetime(2024, 6, 2, 8, 30, 0).astimezone()
    task = _task(
        "0123456789",
        priority=Priority.HIGH,
        status=Status.DONE,
        completed_at=done,
        updated_at=done,
        time_spent=93,
        scope="work",
    )
    assert task_row(task) == (
        "01234567",
        "first line",
        "high",
        "done",
        "work",
        "-",
        "0h 1m 33s",
        "2024-06-02 08:30:00",
    )
    assert len(task_row(task)) == len(LIST_HEADERS)


def test_task_stats():
    done = datetime(2024, 6, 2).astimezone()
    tasks = [
        _task("a", time_spent=60),
        _task("b", status=Status.DONE, completed_at=done, updated_at=done, time_spent=30),
        _task("c", status=Status.ABORTED, completed_at=done, updated_at=done),
    ]
    assert task_stats(tasks) == [
        ("Total tasks", "3"),
        ("Pending", "1"),
        ("Finished", "1"),
        ("Cancelled", "1"),
        ("Total time spent", "0h 1m 30s"),
    ]


class TestTerminalDisplay:
    def test_messages(self, capsys):
        display = TerminalDisplay(color=False)
        display.show_success("Added task")
        display.show_failure("boom")
        captured = capsys.readouterr()
        assert captured.out == "Added task\n"
        assert captured.err == "Error: boom\n"

    def test_list_table(self, capsys):
        TerminalDisplay(color=False).show_tasks_list([_task("0123456789", scope="work")])
        lines = capsys.readouterr().out.splitlines()
        assert lines[0].split() == ["ID", "Description", "Priority", "Status", "Scope", "Type", "Time", "Spent", "Completed", "At"]
        assert lines[2].startswith("01234567  first line")
        assert "\x1b[" not in lines[2]

    def test_color_only_when_enabled(self, capsys):
        TerminalDisplay(color=True).show_success("ok")
        assert "\x1b[32m" in capsys.readouterr().out

    def test_detail_box(self, capsys):
        TerminalDisplay(color=False).show_task_detail(_task("0123456789", time_spent=5))
        out = capsys.readouterr().out
        assert "| id: 0123456789" in out
        assert "time spent: 0h 0m 5s" in out
        assert "|   second line" in out
        assert max(len(line) for line in out.splitlines()) <= 80

    def test_confirm(self, monkeypatch):
        monkeypatch.setattr("builtins.input", lambda prompt: "Y")
        assert TerminalDisplay(color=False).confirm("Delete?")

        def eof(prompt):
            raise EOFError

        monkeypatch.setattr("builtins.input", eof)
        assert not TerminalDisplay(color=False).confirm("Delete?")

    def test_edit_with_editor(self, tmp_path, monkeypatch):
        script = tmp_path / "editor.sh"
        script.write_text('#!/bin/sh\nprintf "changed\\n" > "$1"\n', encoding="utf-8")
        script.chmod(0o755)
        monkeypatch.setenv("VISUAL", str(script))
        assert TerminalDisplay(color=False).edit("original") == "changed\n"

    def test_edit_unchanged(self, monkeypatch):
        monkeypatch.setenv("VISUAL", "true")
        assert TerminalDisplay(color=False).edit("original") is None

    def test_edit_failing_editor(self, monkeypatch):
        monkeypatch.setenv("VISUAL", "false")
        assert TerminalDisplay(color=False).edit("original") is None
