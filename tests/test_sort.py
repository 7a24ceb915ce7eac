from datetime import datetime

import pytest

from rutd.engine.errors import InvalidSortSpec
from rutd.engine.model import Priority, Status, Task
from rutd.engine.sort import (
    SortCriteria,
    SortOptions,
    SortOrder,
    parse_sort_options,
    sort_tasks,
)


def _task(task_id: str, **kwargs) -> Task:
    kwargs.setdefault("description", task_id)
    kwargs.setdefault("created_at", datetime(2024, 6, 1, 12, 0).astimezone())
    return Task(id=task_id, **kwargs)


def _ids(tasks) -> list[str]:
    return [t.id for t in tasks]


class TestParse:
    def test_pairs(self):
        options = parse_sort_options("-S-p+s")
        assert options.criteria == [
            (SortCriteria.STATUS, SortOrder.DESCENDING),
            (SortCriteria.PRIORITY, SortOrder.DESCENDING),
            (SortCriteria.SCOPE, SortOrder.ASCENDING),
        ]

    def test_all_criteria(self):
        options = parse_sort_options("+p+s+t+S+c+u+C+T")
        assert [c for c, _ in options.criteria] == list(SortCriteria)

    @pytest.mark.parametrize("text", ["+", "+p-", "*p", "+x", "p+"])
    def test_invalid(self, text):
        with pytest.raises(InvalidSortSpec):
            parse_sort_options(text)

    def test_empty(self):
        with pytest.raises(InvalidSortSpec, match="Empty"):
            parse_sort_options("")


class TestSort:
    def test_default_order(self):
        done = datetime(2024, 6, 2).astimezone()
        tasks = [
            _task("done-high", priority=Priority.HIGH, status=Status.DONE, completed_at=done, updated_at=done),
            _task("todo-low", priority=Priority.LOW),
            _task("todo-urgent", priority=Priority.URGENT),
            _task("aborted", status=Status.ABORTED, completed_at=done, updated_at=done),
        ]
        assert _ids(sort_tasks(tasks)) == ["todo-urgent", "todo-low", "done-high", "aborted"]

    def test_default_scope_then_newest(self):
        older = datetime(2024, 6, 1).astimezone()
        newer = datetime(2024, 6, 5).astimezone()
        tasks = [
            _task("work-old", scope="work", created_at=older),
            _task("home", scope="home", created_at=older),
            _task("work-new", scope="work", created_at=newer),
        ]
        assert _ids(sort_tasks(tasks)) == ["home", "work-new", "work-old"]

    def test_unset_values_sort_last(self):
        tasks = [_task("none"), _task("b", scope="b"), _task("a", scope="a")]
        options = SortOptions([(SortCriteria.SCOPE, SortOrder.ASCENDING)])
        assert _ids(sort_tasks(tasks, options)) == ["a", "b", "none"]

    def test_time_spent_descending(self):
        tasks = [_task("short", time_spent=5), _task("long", time_spent=500), _task("none")]
        options = parse_sort_options("-T")
        assert _ids(sort_tasks(tasks, options)) == ["none", "long", "short"]

    def test_stable_on_ties(self):
        tasks = [_task(str(i)) for i in range(5)]
        options = parse_sort_options("+p")
        assert _ids(sort_tasks(tasks, options)) == ["0", "1", "2", "3", "4"]

    def test_empty_options_keep_input_order(self):
        tasks = [_task("b"), _task("a")]
        assert _ids(sort_tasks(tasks, SortOptions())) == ["b", "a"]

    def test_add_chains(self):
        options = SortOptions().add(SortCriteria.PRIORITY, SortOrder.ASCENDING)
        assert options.criteria == [(SortCriteria.PRIORITY, SortOrder.ASCENDING)]
