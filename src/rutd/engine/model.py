# src/rutd/engine/model.py

"""
Core domain models.

This module defines the in-memory representations of tasks and the
active-task record, together with the enumerations they use and the
alias tables the command line accepts for them.

No filesystem access should happen here.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


# ---------------------------------------------------------------------
# Alias helpers
# ---------------------------------------------------------------------

def _lookup(enum_cls, aliases: dict, raw: str):
    """
    Resolve `raw` against the canonical values and the alias table.

    Matching is case-insensitive. Raises ValueError on unknown input.
    """
    s = (raw or "").strip().lower()
    for member in enum_cls:
        if s == member.value or s in aliases[member][0]:
            return member
    allowed = ", ".join(m.value for m in enum_cls)
    raise ValueError(f"Invalid {enum_cls.__name__.lower()} '{raw}' (allowed: {allowed})")


# ---------------------------------------------------------------------
# Priority
# ---------------------------------------------------------------------

class Priority(str, Enum):
    """
    Task priority.

    Ordering: low < normal < high < urgent.
    """

    URGENT = "urgent"
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"

    @classmethod
    def parse(cls, raw: str) -> "Priority":
        return _lookup(cls, PRIORITY_ALIASES, raw)

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]

    @property
    def short(self) -> str:
        return PRIORITY_ALIASES[self][0][0]

    @property
    def help(self) -> str:
        return PRIORITY_ALIASES[self][1]


PRIORITY_ALIASES: dict[Priority, tuple[tuple[str, ...], str]] = {
    Priority.URGENT: (("u", "0"), "Most urgent"),
    Priority.HIGH: (("h", "1"), "High priority"),
    Priority.NORMAL: (("n", "2"), "Normal priority"),
    Priority.LOW: (("l", "3"), "Low priority"),
}

_PRIORITY_RANK = {
    Priority.LOW: 0,
    Priority.NORMAL: 1,
    Priority.HIGH: 2,
    Priority.URGENT: 3,
}


# ---------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------

class Status(str, Enum):
    """
    Task lifecycle status.

    Ordering: aborted < done < todo, so a descending sort puts
    what you can still act on first.
    """

    TODO = "todo"
    DONE = "done"
    ABORTED = "aborted"

    @classmethod
    def parse(cls, raw: str) -> "Status":
        return _lookup(cls, STATUS_ALIASES, raw)

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]

    @property
    def short(self) -> str:
        return STATUS_ALIASES[self][0][0]

    @property
    def help(self) -> str:
        return STATUS_ALIASES[self][1]


STATUS_ALIASES: dict[Status, tuple[tuple[str, ...], str]] = {
    Status.TODO: (("t", "p", "pending"), "Pending"),
    Status.DONE: (("d", "f", "finished"), "Finished"),
    Status.ABORTED: (("a", "x", "c", "cancelled"), "Cancelled"),
}

_STATUS_RANK = {
    Status.ABORTED: 0,
    Status.DONE: 1,
    Status.TODO: 2,
}


# ---------------------------------------------------------------------
# Merge strategy
# ---------------------------------------------------------------------

class MergeStrategy(str, Enum):
    """
    Conflict resolution preference used by sync.
    """

    NONE = "none"
    LOCAL = "local"
    REMOTE = "remote"

    @classmethod
    def parse(cls, raw: str) -> "MergeStrategy":
        return _lookup(cls, MERGE_ALIASES, raw)

    @property
    def short(self) -> str:
        return MERGE_ALIASES[self][0][0]

    @property
    def help(self) -> str:
        return MERGE_ALIASES[self][1]


MERGE_ALIASES: dict[MergeStrategy, tuple[tuple[str, ...], str]] = {
    MergeStrategy.NONE: (("n",), "Do not automatically merge"),
    MergeStrategy.LOCAL: (("l",), "Prefer local version"),
    MergeStrategy.REMOTE: (("r",), "Prefer remote version"),
}


# ---------------------------------------------------------------------
# Task
# ---------------------------------------------------------------------

@dataclass(slots=True)
class Task:
    """
    In-memory representation of a task record.

    Notes:
    - id is the file stem of the record inside the tasks directory.
    - all timestamps are timezone-aware, in the host's local offset.
    - time_spent is the accumulated number of seconds over past sessions.
    """

    # Identity / core metadata
    id: str
    description: str
    priority: Priority = Priority.NORMAL
    scope: Optional[str] = None
    task_type: Optional[str] = None
    status: Status = Status.TODO

    # Temporal fields
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    # Accounting
    time_spent: Optional[int] = None

    # -----------------------------------------------------------------
    # Validation
    # -----------------------------------------------------------------

    def validate(self) -> None:
        """
        Validate core invariants independent of filesystem context.
        """
        if not self.id or not self.id.strip():
            raise ValueError("id must be a non-empty string")

        if self.created_at is None:
            raise ValueError("created_at must be set")

        if self.updated_at is not None and self.updated_at < self.created_at:
            raise ValueError("updated_at must be >= created_at")

        if self.status is Status.TODO:
            if self.completed_at is not None:
                raise ValueError("completed_at must be empty while status is 'todo'")
        elif self.completed_at is None:
            raise ValueError(f"completed_at must be set when status is '{self.status.value}'")

        if self.time_spent is not None and self.time_spent < 0:
            raise ValueError("time_spent must be non-negative")

    # -----------------------------------------------------------------
    # Convenience properties
    # -----------------------------------------------------------------

    @property
    def short_id(self) -> str:
        return self.id[:8]

    @property
    def is_todo(self) -> bool:
        return self.status is Status.TODO

    @property
    def title(self) -> str:
        """First line of the description."""
        lines = self.description.strip().splitlines()
        return lines[0].strip() if lines else ""


# ---------------------------------------------------------------------
# Active task
# ---------------------------------------------------------------------

@dataclass(slots=True)
class ActiveTask:
    """
    The single task currently being timed.
    """

    task_id: str
    started_at: datetime
