# src/rutd/engine/complete.py

"""
Shell completion candidates.

Each helper takes the word typed so far and returns (value, help) pairs.
Task-backed helpers read the store directly and treat a missing tasks
directory as empty.
"""

from typing import Callable, Iterable, Optional

from .config import Config, list_paths
from .model import (
    MERGE_ALIASES,
    PRIORITY_ALIASES,
    STATUS_ALIASES,
    MergeStrategy,
    Priority,
    Status,
)
from .sort import SortCriteria, SortOrder
from .storage import TaskStore

Candidate = tuple[str, Optional[str]]


def _enum_candidates(current: str, members: Iterable, aliases: dict) -> list[Candidate]:
    out: list[Candidate] = []
    for member in members:
        names, help_text = aliases[member]
        for name in (member.value, *names):
            if name.startswith(current):
                out.append((name, help_text))
    return out


def complete_id(config: Config, current: str) -> list[Candidate]:
    tasks = TaskStore(config.path.task_dir_path).load_all()
    return [(t.short_id, t.title) for t in tasks if t.id.startswith(current)]


def complete_scope(config: Config, current: str) -> list[Candidate]:
    tasks = TaskStore(config.path.task_dir_path).load_all()
    values = {t.scope for t in tasks if t.scope} | set(config.task.scopes)
    return [(v, None) for v in sorted(values) if v.startswith(current)]


def complete_type(config: Config, current: str) -> list[Candidate]:
    tasks = TaskStore(config.path.task_dir_path).load_all()
    values = {t.task_type for t in tasks if t.task_type} | set(config.task.types)
    return [(v, None) for v in sorted(values) if v.startswith(current)]


def complete_priority(config: Config, current: str) -> list[Candidate]:
    return _enum_candidates(current, Priority, PRIORITY_ALIASES)


def complete_status(config: Config, current: str) -> list[Candidate]:
    return _enum_candidates(current, Status, STATUS_ALIASES)


def complete_merge(config: Config, current: str) -> list[Candidate]:
    return _enum_candidates(current, MergeStrategy, MERGE_ALIASES)


def complete_sort(config: Config, current: str) -> list[Candidate]:
    """
    Offer the next character of a sort spec: an order sign on even
    positions, a criterion letter on odd ones.
    """
    if len(current) % 2 == 0:
        return [(current + o.value, o.help) for o in SortOrder]
    return [(current + c.value, c.help) for c in SortCriteria]


def complete_config_key(config: Config, current: str) -> list[Candidate]:
    return [(p, None) for p in list_paths() if p.startswith(current)]


COMPLETERS: dict[str, Callable[[Config, str], list[Candidate]]] = {
    "id": complete_id,
    "scope": complete_scope,
    "type": complete_type,
    "priority": complete_priority,
    "status": complete_status,
    "merge": complete_merge,
    "sort": complete_sort,
    "config-key": complete_config_key,
}


def format_candidate(candidate: Candidate) -> str:
    value, help_text = candidate
    return f"{value}\t{help_text}" if help_text else value
