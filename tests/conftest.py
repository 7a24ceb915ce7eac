"""
Shared fixtures: a throw-away state directory, a recording display and a
controllable clock for the task manager.
"""

import logging
import shutil
import subprocess
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

import pytest

from rutd.engine import manager as manager_module
from rutd.engine.config import GitConfig, PathConfig
from rutd.engine.manager import TaskManager

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git executable not found")


# ---------------------------------------------------------------------
# Display
# ---------------------------------------------------------------------

class FakeDisplay:
    """Records everything the engine and the CLI ask it to show."""

    def __init__(self, confirm: bool = True, edit_result: Optional[str] = None):
        self.confirm_answer = confirm
        self.edit_result = edit_result
        self.prompts: list[str] = []
        self.edited: list[str] = []
        self.successes: list[str] = []
        self.failures: list[str] = []
        self.listed: list[list] = []
        self.stats: list[list] = []
        self.details: list = []

    def confirm(self, message: str) -> bool:
        self.prompts.append(message)
        return self.confirm_answer

    def edit(self, initial: str) -> Optional[str]:
        self.edited.append(initial)
        return self.edit_result

    def show_success(self, message: str) -> None:
        self.successes.append(message)

    def show_failure(self, message: str) -> None:
        self.failures.append(message)

    def show_tasks_list(self, tasks) -> None:
        self.listed.append(list(tasks))

    def show_task_stats(self, tasks) -> None:
        self.stats.append(list(tasks))

    def show_task_detail(self, task) -> None:
        self.details.append(task)


@pytest.fixture
def display() -> FakeDisplay:
    return FakeDisplay()


# ---------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------

class Clock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


@pytest.fixture
def clock(monkeypatch) -> Clock:
    c = Clock(datetime(2024, 6, 15, 10, 0, 0).astimezone())
    monkeypatch.setattr(manager_module, "_now", c)
    return c


# ---------------------------------------------------------------------
# State directory
# ---------------------------------------------------------------------

@pytest.fixture
def path_config(tmp_path: Path) -> PathConfig:
    return PathConfig(root_dir=str(tmp_path / "rutd"))


@pytest.fixture
def manager(path_config: PathConfig) -> TaskManager:
    return TaskManager(path_config, GitConfig())


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    root = logging.getLogger()
    for h in list(root.handlers):
        if getattr(h, "_rutd_handler", False):
            root.removeHandler(h)
            h.close()


# ---------------------------------------------------------------------
# Git helpers
# ---------------------------------------------------------------------

def git(cwd: Path, *args: str) -> str:
    proc = subprocess.run(
        ["git", *args],
        cwd=str(cwd),
        capture_output=True,
        text=True,
        check=True,
    )
    return proc.stdout.strip()


def commit_messages(repo: Path) -> list[str]:
    """Full commit messages, newest first."""
    out = git(repo, "log", "--format=%B%x00")
    return [m.strip() for m in out.split("\0") if m.strip()]
