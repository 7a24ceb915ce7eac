# src/rutd/engine/sort.py

"""
Task ordering.

A sort specification is an ordered list of (criterion, order) pairs
compared lexicographically. On the command line it is written as pairs of
an order sign and a criterion letter, e.g. `-S-p+s` for status descending,
then priority descending, then scope ascending.
"""

from dataclasses import dataclass, field
from enum import Enum
from functools import cmp_to_key
from typing import Any, Callable, Optional

from .errors import InvalidSortSpec
from .model import Task


class SortOrder(str, Enum):
    ASCENDING = "+"
    DESCENDING = "-"

    @property
    def help(self) -> str:
        return "Ascending" if self is SortOrder.ASCENDING else "Descending"


class SortCriteria(str, Enum):
    PRIORITY = "p"
    SCOPE = "s"
    TYPE = "t"
    STATUS = "S"
    CREATION_TIME = "c"
    UPDATE_TIME = "u"
    COMPLETION_TIME = "C"
    TIME_SPENT = "T"

    @property
    def help(self) -> str:
        return _CRITERIA_HELP[self]


_CRITERIA_HELP = {
    SortCriteria.PRIORITY: "Priority",
    SortCriteria.SCOPE: "Scope",
    SortCriteria.TYPE: "Type",
    SortCriteria.STATUS: "Status",
    SortCriteria.CREATION_TIME: "Creation time",
    SortCriteria.UPDATE_TIME: "Update time",
    SortCriteria.COMPLETION_TIME: "Completion time",
    SortCriteria.TIME_SPENT: "Time spent",
}


def _cmp(a: Any, b: Any) -> int:
    return (a > b) - (a < b)


def _cmp_optional(a: Optional[Any], b: Optional[Any]) -> int:
    # set values sort before unset ones
    if a is None and b is None:
        return 0
    if a is None:
        return 1
    if b is None:
        return -1
    return _cmp(a, b)


_COMPARATORS: dict[SortCriteria, Callable[[Task, Task], int]] = {
    SortCriteria.PRIORITY: lambda a, b: _cmp(a.priority.rank, b.priority.rank),
    SortCriteria.SCOPE: lambda a, b: _cmp_optional(a.scope, b.scope),
    SortCriteria.TYPE: lambda a, b: _cmp_optional(a.task_type, b.task_type),
    SortCriteria.STATUS: lambda a, b: _cmp(a.status.rank, b.status.rank),
    SortCriteria.CREATION_TIME: lambda a, b: _cmp_optional(a.created_at, b.created_at),
    SortCriteria.UPDATE_TIME: lambda a, b: _cmp_optional(a.updated_at, b.updated_at),
    SortCriteria.COMPLETION_TIME: lambda a, b: _cmp_optional(a.completed_at, b.completed_at),
    SortCriteria.TIME_SPENT: lambda a, b: _cmp_optional(a.time_spent, b.time_spent),
}


@dataclass(slots=True)
class SortOptions:
    criteria: list[tuple[SortCriteria, SortOrder]] = field(default_factory=list)

    @classmethod
    def default(cls) -> "SortOptions":
        return cls(
            [
                (SortCriteria.STATUS, SortOrder.DESCENDING),
                (SortCriteria.PRIORITY, SortOrder.DESCENDING),
                (SortCriteria.SCOPE, SortOrder.ASCENDING),
                (SortCriteria.CREATION_TIME, SortOrder.DESCENDING),
            ]
        )

    def add(self, criterion: SortCriteria, order: SortOrder) -> "SortOptions":
        self.criteria.append((criterion, order))
        return self

    def compare(self, a: Task, b: Task) -> int:
        for criterion, order in self.criteria:
            result = _COMPARATORS[criterion](a, b)
            if result:
                return -result if order is SortOrder.DESCENDING else result
        return 0


def sort_tasks(tasks: list[Task], options: Optional[SortOptions] = None) -> list[Task]:
    """
    Return `tasks` ordered by `options` (the default order when None).

    The sort is stable: tasks equal on every criterion keep their input order.
    """
    options = options if options is not None else SortOptions.default()
    return sorted(tasks, key=cmp_to_key(options.compare))


def parse_sort_options(text: str) -> SortOptions:
    """
    Parse pairs of `+|-` and a criterion letter, e.g. `+p-s`.
    """
    if not text:
        raise InvalidSortSpec("Empty sort options string")
    if len(text) % 2:
        raise InvalidSortSpec(f"Invalid sort options string: {text}")

    options = SortOptions()
    for i in range(0, len(text), 2):
        try:
            order = SortOrder(text[i])
            criterion = SortCriteria(text[i + 1])
        except ValueError as e:
            raise InvalidSortSpec(f"Invalid sort options: {text}") from e
        options.add(criterion, order)
    return options
