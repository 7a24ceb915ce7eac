# src/rutd/engine/render.py

"""
Terminal display.

TerminalDisplay implements the display contract for an interactive
terminal:
- task tables (list) and a statistics summary (list --stats),
- a boxed task detail view (show),
- yes/no confirmation and description editing through $VISUAL/$EDITOR.

Colour is used only when stdout is a TTY.
"""

from __future__ import annotations

import os
import re
import shlex
import shutil
import subprocess
import sys
import tempfile
import textwrap
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence

from .errors import IOFailure
from .model import Priority, Status, Task


# ---------------------------------------------------------------------
# ANSI / terminal helpers
# ---------------------------------------------------------------------

_ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")

_RESET = "\033[0m"
_BOLD = "\033[1m"
_RED = "\033[31m"
_GREEN = "\033[32m"

_STATUS_COLOR = {
    Status.TODO: "\033[33m",     # yellow
    Status.DONE: "\033[32m",     # green
    Status.ABORTED: "\033[90m",  # grey
}

_PRIORITY_COLOR = {
    Priority.URGENT: "\033[31m",  # red
    Priority.HIGH: "\033[35m",    # magenta
    Priority.NORMAL: "",
    Priority.LOW: "\033[90m",     # grey
}

DEFAULT_EDITOR = "vi"


def _supports_color() -> bool:
    """Return True if stdout is a TTY."""
    return sys.stdout.isatty()


def _visible_len(s: str) -> int:
    """Return string length without ANSI colour escapes."""
    return len(_ANSI_RE.sub("", s))


def _paint(s: str, color: str, enabled: bool) -> str:
    if not enabled or not color:
        return s
    return f"{color}{s}{_RESET}"


def _ljust(s: str, width: int) -> str:
    return s + " " * max(0, width - _visible_len(s))


# ---------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------

def format_duration(seconds: Optional[int]) -> str:
    """
    `-` for no recorded time, otherwise `Hh Mm Ss`.
    """
    if seconds is None:
        return "-"
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours}h {minutes}m {secs}s"


def format_time(value: Optional[datetime]) -> str:
    if value is None:
        return "-"
    return value.astimezone().strftime("%Y-%m-%d %H:%M:%S")


LIST_HEADERS = (
    "ID",
    "Description",
    "Priority",
    "Status",
    "Scope",
    "Type",
    "Time Spent",
    "Completed At",
)


def task_row(task: Task) -> tuple[str, ...]:
    return (
        task.short_id,
        task.title,
        task.priority.value,
        task.status.value,
        task.scope or "-",
        task.task_type or "-",
        format_duration(task.time_spent),
        format_time(task.completed_at),
    )


def task_stats(tasks: Sequence[Task]) -> list[tuple[str, str]]:
    total_time = sum(t.time_spent or 0 for t in tasks)
    return [
        ("Total tasks", str(len(tasks))),
        ("Pending", str(sum(1 for t in tasks if t.status is Status.TODO))),
        ("Finished", str(sum(1 for t in tasks if t.status is Status.DONE))),
        ("Cancelled", str(sum(1 for t in tasks if t.status is Status.ABORTED))),
        ("Total time spent", format_duration(total_time)),
    ]


# ---------------------------------------------------------------------
# Display
# ---------------------------------------------------------------------

class TerminalDisplay:
    def __init__(self, color: Optional[bool] = None):
        self.color = _supports_color() if color is None else color

    # -----------------------------------------------------------------
    # Interaction
    # -----------------------------------------------------------------

    def confirm(self, message: str) -> bool:
        try:
            answer = input(f"{message} [y/N]: ").strip().lower()
        except EOFError:
            return False
        return answer in ("y", "yes")

    def edit(self, initial: str) -> Optional[str]:
        """
        Open the user's editor on a temporary file seeded with `initial`.

        Returns the new text, or None when the editor exits with an error or
        the text is unchanged.
        """
        editor = os.environ.get("VISUAL") or os.environ.get("EDITOR") or DEFAULT_EDITOR

        fd, tmp = tempfile.mkstemp(prefix="rutd-", suffix=".md")
        path = Path(tmp)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(initial)

            try:
                proc = subprocess.run([*shlex.split(editor), str(path)])
            except FileNotFoundError as e:
                raise IOFailure(f"Editor not found: {editor}") from e
            if proc.returncode != 0:
                return None

            text = path.read_text(encoding="utf-8")
        finally:
            path.unlink(missing_ok=True)

        if text.strip() == initial.strip():
            return None
        return text

    # -----------------------------------------------------------------
    # Messages
    # -----------------------------------------------------------------

    def show_success(self, message: str) -> None:
        print(_paint(message, _GREEN, self.color))

    def show_failure(self, message: str) -> None:
        print(_paint(f"Error: {message}", _RED, self.color), file=sys.stderr)

    # -----------------------------------------------------------------
    # Tables
    # -----------------------------------------------------------------

    def _cells(self, task: Task) -> list[str]:
        cells = list(task_row(task))
        cells[2] = _paint(cells[2], _PRIORITY_COLOR[task.priority], self.color)
        cells[3] = _paint(cells[3], _STATUS_COLOR[task.status], self.color)
        return cells

    def _table(self, headers: Sequence[str], rows: Sequence[Sequence[str]]) -> None:
        widths = [len(h) for h in headers]
        for row in rows:
            for i, cell in enumerate(row):
                widths[i] = max(widths[i], _visible_len(cell))

        head = "  ".join(_ljust(_paint(h, _BOLD, self.color), w) for h, w in zip(headers, widths))
        print(head.rstrip())
        print("  ".join("-" * w for w in widths))
        for row in rows:
            print("  ".join(_ljust(c, w) for c, w in zip(row, widths)).rstrip())

    def show_tasks_list(self, tasks: Sequence[Task]) -> None:
        if not tasks:
            print("No tasks found")
            return
        self._table(LIST_HEADERS, [self._cells(t) for t in tasks])

    def show_task_stats(self, tasks: Sequence[Task]) -> None:
        self._table(("Statistic", "Value"), task_stats(tasks))

    # -----------------------------------------------------------------
    # Detail view
    # -----------------------------------------------------------------

    def show_task_detail(self, task: Task) -> None:
        """
        Boxed detail view, capped at 80 columns.
        """
        width = min(80, shutil.get_terminal_size(fallback=(80, 24)).columns)
        inner_w = max(20, width - 4)  # borders + padding

        def box_rule(ch: str = "-") -> None:
            print(f"+{ch * (width - 2)}+")

        def box_line(content: str = "") -> None:
            print(f"| {_ljust(content, inner_w)} |")

        def wrap_lines(s: str, indent: str = "") -> list[str]:
            out: list[str] = []
            for ln in s.rstrip().splitlines() or [""]:
                if not ln.strip():
                    out.append("")
                    continue
                out.extend(
                    indent + x
                    for x in textwrap.wrap(
                        ln,
                        width=inner_w - len(indent),
                        break_long_words=True,
                        break_on_hyphens=False,
                    )
                )
            return out

        status = _paint(task.status.value, _STATUS_COLOR[task.status], self.color)
        priority = _paint(task.priority.value, _PRIORITY_COLOR[task.priority], self.color)

        print()
        box_rule("=")
        for ln in wrap_lines(task.title):
            box_line(ln)
        box_rule("=")

        box_line(f"id: {task.id}")
        box_line(f"status: {status}")
        box_line(f"priority: {priority}")
        box_line(f"scope: {task.scope or '-'}")
        box_line(f"type: {task.task_type or '-'}")
        box_line(f"created: {format_time(task.created_at)}")
        box_line(f"updated: {format_time(task.updated_at)}")
        box_line(f"completed: {format_time(task.completed_at)}")
        box_line(f"time spent: {format_duration(task.time_spent)}")

        box_rule()
        box_line("Description:")
        for ln in wrap_lines(task.description, indent="  "):
            box_line(ln)

        box_rule("=")
        print()
