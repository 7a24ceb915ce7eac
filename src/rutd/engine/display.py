# src/rutd/engine/display.py

"""
Display contract.

The engine never talks to the terminal itself; prompts, editing and all
user-facing output go through an object with this shape.
"""

from typing import Optional, Protocol, Sequence

from .model import Task


class Display(Protocol):
    def confirm(self, message: str) -> bool:
        """Ask a yes/no question."""
        ...

    def edit(self, initial: str) -> Optional[str]:
        """Open an editor seeded with `initial`; None means no change."""
        ...

    def show_success(self, message: str) -> None: ...

    def show_failure(self, message: str) -> None: ...

    def show_tasks_list(self, tasks: Sequence[Task]) -> None: ...

    def show_task_stats(self, tasks: Sequence[Task]) -> None: ...

    def show_task_detail(self, task: Task) -> None: ...
