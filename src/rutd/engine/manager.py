# src/rutd/engine/manager.py

"""
Task manager.

User-level operations on top of the task store and the active-task slot.
This is where status transitions are enforced and where time spent on the
active task is accounted.

Status machine:
- only a todo task can be started, finished or aborted;
- done and aborted are terminal;
- stop keeps the task in todo and only accrues time.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Optional

from .active import ActiveSlot
from .config import GitConfig, PathConfig
from .display import Display
from .errors import (
    AlreadyAborted,
    AlreadyActive,
    AlreadyCompleted,
    CannotAbortCompleted,
    CannotStartAborted,
    CannotStartCompleted,
    NoActiveTask,
)
from .filter import Filter
from .git import GitRepo
from .model import ActiveTask, MergeStrategy, Priority, Status, Task
from .sort import SortOptions, sort_tasks
from .storage import TaskStore

log = logging.getLogger(__name__)


def _now() -> datetime:
    """Return the current local time (isolated for testability)."""
    return datetime.now().astimezone()


def _elapsed_seconds(started_at: datetime, now: datetime) -> int:
    return max(0, int((now - started_at).total_seconds()))


def _stamp(task: Task, now: datetime) -> datetime:
    # a clock stepping backwards must not put updates before creation
    return max(now, task.created_at)


class TaskManager:
    def __init__(self, path_config: PathConfig, git_config: Optional[GitConfig] = None):
        self.path_config = path_config
        self.git_config = git_config or GitConfig()
        self.store = TaskStore(path_config.task_dir_path)
        self.slot = ActiveSlot(path_config.active_task_file_path)

    # -----------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------

    def _accrue_if_active(self, task: Task, now: datetime) -> bool:
        """
        Add the running session to `task.time_spent` if `task` is the active one.
        """
        active = self.slot.load()
        if active is None or active.task_id != task.id:
            return False

        elapsed = _elapsed_seconds(active.started_at, now)
        task.time_spent = (task.time_spent or 0) + elapsed
        log.debug("Accrued %d seconds to task %s", elapsed, task.id)
        return True

    # -----------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------

    def list(self, task_filter: Optional[Filter] = None, sort: Optional[SortOptions] = None) -> list[Task]:
        tasks = self.store.load_all()
        if task_filter is not None:
            tasks = task_filter.apply(tasks)
        return sort_tasks(tasks, sort)

    def show(self, task_id: str) -> Task:
        return self.store.load(task_id)

    # -----------------------------------------------------------------
    # Mutations
    # -----------------------------------------------------------------

    def add(
        self,
        description: str,
        priority: Priority = Priority.NORMAL,
        scope: Optional[str] = None,
        task_type: Optional[str] = None,
    ) -> str:
        task = Task(
            id=str(uuid.uuid4()),
            description=description,
            priority=priority,
            scope=scope,
            task_type=task_type,
            status=Status.TODO,
            created_at=_now(),
        )
        self.store.save(task, "create", "Create task")
        log.debug("Created task %s", task.id)
        return task.id

    def mark_done(self, task_id: str) -> str:
        task = self.store.load(task_id)
        if task.status is Status.DONE:
            raise AlreadyCompleted("Task is already completed")
        if task.status is Status.ABORTED:
            raise AlreadyAborted("Task is already aborted")

        now = _now()
        was_active = self._accrue_if_active(task, now)

        task.status = Status.DONE
        task.updated_at = task.completed_at = _stamp(task, now)
        self.store.save(task, "finish", "Mark task as done")

        if was_active:
            self.slot.clear()
            log.debug("Completed active task: %s and cleared active task file", task.id)
        else:
            log.debug("Completed task: %s", task.id)
        return task.id

    def start(self, task_id: str) -> str:
        active = self.slot.load()
        if active is not None:
            current = self.store.load(active.task_id)
            raise AlreadyActive(
                f"There's already an active task: {current.id} - {current.title}. Stop it first."
            )

        task = self.store.load(task_id)
        if task.status is Status.DONE:
            raise CannotStartCompleted("Cannot start a completed task")
        if task.status is Status.ABORTED:
            raise CannotStartAborted("Cannot start an aborted task")

        self.slot.save(ActiveTask(task_id=task.id, started_at=_now()))
        log.debug("Started task: %s and saved to active task file", task.id)
        return task.id

    def stop(self) -> str:
        active = self.slot.load()
        if active is None:
            raise NoActiveTask("No active task found. Task might not be in progress.")

        task = self.store.load(active.task_id)
        now = _now()
        self._accrue_if_active(task, now)

        task.updated_at = _stamp(task, now)
        self.store.save(task, "update", "Update time spent on task")
        self.slot.clear()

        log.debug("Stopped task: %s and cleared active task file", task.id)
        return task.id

    def abort(self, task_id: Optional[str] = None) -> str:
        if task_id is None:
            active = self.slot.load()
            if active is None:
                raise NoActiveTask("No active task found")
            task_id = active.task_id

        task = self.store.load(task_id)
        if task.status is Status.DONE:
            raise CannotAbortCompleted("Cannot abort a completed task")
        if task.status is Status.ABORTED:
            raise AlreadyAborted("Task is already aborted")

        now = _now()
        was_active = self._accrue_if_active(task, now)

        task.status = Status.ABORTED
        task.updated_at = task.completed_at = _stamp(task, now)
        self.store.save(task, "cancel", "Cancel task")

        if was_active:
            self.slot.clear()
            log.debug("Aborted active task: %s and cleared active task file", task.id)
        else:
            log.debug("Aborted task: %s", task.id)
        return task.id

    def edit(self, task_id: str, display: Display) -> tuple[str, bool]:
        """
        Replace the description with the editor's result.

        An empty or unchanged result leaves the task untouched. Returns the
        full id and whether the description changed.
        """
        task = self.store.load(task_id)

        edited = display.edit(task.description)
        new_description = (edited or "").strip()
        if not new_description or new_description == task.description.strip():
            log.debug("No changes made to the description of task %s", task.id)
            return task.id, False

        task.description = new_description
        task.updated_at = _stamp(task, _now())
        self.store.save(task, "update", "Update task description")
        return task.id, True

    def clean(self, task_filter: Filter, force: bool, display: Display) -> int:
        """
        Delete every task matching `task_filter`, asking first unless `force`.
        """
        tasks = self.list(task_filter)
        count = len(tasks)
        if count == 0:
            return 0

        if not force and not display.confirm(f"Are you sure to delete {count} tasks?"):
            return 0

        removed = self.store.delete([t.id for t in tasks])

        active = self.slot.load()
        if active is not None and active.task_id in removed:
            self.slot.clear()
            log.debug("Deleted the active task %s and cleared active task file", active.task_id)
        return count

    # -----------------------------------------------------------------
    # Remote
    # -----------------------------------------------------------------

    def clone_repo(self, url: str) -> None:
        GitRepo.clone(self.path_config.task_dir_path, url, self.git_config)

    def sync(self, prefer: MergeStrategy = MergeStrategy.NONE) -> None:
        repo = GitRepo.open_or_init(self.path_config.task_dir_path)
        repo.sync(prefer, self.git_config)
