# src/rutd/engine/active.py

"""
Active-task slot.

A single optional record naming the task being timed. It lives next to,
not inside, the tasks repository, so writing it never creates a commit.
"""

import logging
from pathlib import Path
from typing import Optional

from .codec import decode_active, encode_active
from .errors import IOFailure
from .model import ActiveTask
from .storage import read_text, write_atomic

log = logging.getLogger(__name__)


class ActiveSlot:
    def __init__(self, path: str | Path):
        self.path = Path(path)

    def save(self, active: ActiveTask) -> None:
        try:
            write_atomic(self.path, encode_active(active))
        except OSError as e:
            raise IOFailure(f"Failed to write active task file {self.path}: {e}") from e
        log.debug("Active task set to %s", active.task_id)

    def load(self) -> Optional[ActiveTask]:
        """Return the active task, or None when the slot file is missing."""
        if not self.path.is_file():
            return None
        return decode_active(read_text(self.path), str(self.path))

    def clear(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            raise IOFailure(f"Failed to remove active task file {self.path}: {e}") from e
        log.debug("Active task cleared")
