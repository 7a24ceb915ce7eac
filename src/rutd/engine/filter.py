# src/rutd/engine/filter.py

"""
Task filtering.

A Filter is a conjunction of optional predicates; unset predicates match
everything, so an empty Filter keeps every task.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .model import Priority, Status, Task


# ---------------------------------------------------------------------
# Date ranges
# ---------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class DateRange:
    """
    Half-open interval [start, end). A missing bound is unbounded.
    """

    start: Optional[datetime] = None
    end: Optional[datetime] = None

    def contains(self, value: datetime) -> bool:
        if self.start is not None and value < self.start:
            return False
        if self.end is not None and value >= self.end:
            return False
        return True


# ---------------------------------------------------------------------
# Fuzzy matching
# ---------------------------------------------------------------------

_MATCH = 16
_CONSECUTIVE = 8
_WORD_START = 8
_GAP = 1


def fuzzy_score(query: str, text: str) -> Optional[int]:
    """
    Score `text` against `query` as a case-insensitive subsequence.

    Whitespace in the query is ignored. Returns None when some query
    character cannot be matched in order, otherwise a non-negative score
    that rewards consecutive runs and matches at word starts.
    """
    needle = "".join(query.lower().split())
    if not needle:
        return 0

    hay = text.lower()
    score = 0
    pos = 0
    prev = -2

    for ch in needle:
        idx = hay.find(ch, pos)
        if idx < 0:
            return None

        score += _MATCH
        if idx == prev + 1:
            score += _CONSECUTIVE
        elif prev >= 0:
            score -= _GAP * (idx - prev - 1)
        if idx == 0 or not hay[idx - 1].isalnum():
            score += _WORD_START

        prev = idx
        pos = idx + 1

    return max(score, 0)


# ---------------------------------------------------------------------
# Filter
# ---------------------------------------------------------------------

@dataclass(slots=True)
class Filter:
    priority: Optional[Priority] = None
    scope: Optional[str] = None
    task_type: Optional[str] = None
    status: Optional[Status] = None
    creation_time: Optional[DateRange] = None
    update_time: Optional[DateRange] = None
    completion_time: Optional[DateRange] = None
    fuzzy: Optional[str] = None

    def matches(self, task: Task) -> bool:
        if self.priority is not None and task.priority is not self.priority:
            return False

        # an unset scope or type on the task never matches a set filter
        if self.scope is not None and task.scope != self.scope:
            return False
        if self.task_type is not None and task.task_type != self.task_type:
            return False

        if self.status is not None and task.status is not self.status:
            return False

        if not _in_range(self.creation_time, task.created_at):
            return False
        if not _in_range(self.update_time, task.updated_at):
            return False
        if not _in_range(self.completion_time, task.completed_at):
            return False

        if self.fuzzy and fuzzy_score(self.fuzzy, task.description) is None:
            return False

        return True

    def apply(self, tasks: list[Task]) -> list[Task]:
        return [t for t in tasks if self.matches(t)]


def _in_range(rng: Optional[DateRange], value: Optional[datetime]) -> bool:
    if rng is None:
        return True
    if value is None:
        return False
    return rng.contains(value)
