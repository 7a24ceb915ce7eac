# src/rutd/engine/storage.py

"""
Task store.

Every task is one record file `<task_dir>/<id>.yml`. The directory is also
the root of a git repository and each mutation is committed right after the
files are written.

Identifiers are addressed by prefix: a lookup succeeds only when exactly
one record stem starts with the given text.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Iterable

from .codec import RECORD_SUFFIX, decode_task, encode_task
from .errors import AmbiguousPrefix, IOFailure, ParseError, TaskNotFound
from .git import GitRepo, generate_commit_message
from .model import Task

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------
# File helpers
# ---------------------------------------------------------------------

def write_atomic(path: Path, text: str) -> None:
    """
    Create or replace `path` with `text` so readers never see a partial file.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


def read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        raise IOFailure(f"Failed to read {path}: {e}") from e


# ---------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------

class TaskStore:
    """
    Directory-scoped CRUD over task records.
    """

    def __init__(self, task_dir: str | Path):
        self.task_dir = Path(task_dir)

    def path_for(self, task_id: str) -> Path:
        return self.task_dir / f"{task_id}{RECORD_SUFFIX}"

    def repo(self) -> GitRepo:
        return GitRepo.open_or_init(self.task_dir)

    # -----------------------------------------------------------------
    # Writes
    # -----------------------------------------------------------------

    def save(self, task: Task, action: str, description: str) -> None:
        """
        Write the record and commit it as `<action>(<scope>|<type>): <description>`.
        """
        repo = self.repo()
        path = self.path_for(task.id)
        try:
            write_atomic(path, encode_task(task))
        except OSError as e:
            raise IOFailure(f"Failed to write task file {path}: {e}") from e
        log.debug("Saved task %s to %s", task.id, path)

        repo.commit_all(
            generate_commit_message(action, task.scope, task.task_type, description, task.id)
        )

    def delete(self, ids: Iterable[str]) -> list[str]:
        """
        Remove the records for `ids` and commit once. Returns the full ids removed.
        """
        ids = list(ids)
        if not ids:
            return []

        repo = self.repo()
        removed: list[str] = []
        for task_id in ids:
            task = self.load(task_id)
            path = self.path_for(task.id)
            try:
                path.unlink()
            except OSError as e:
                raise IOFailure(f"Failed to delete task file {path}: {e}") from e
            log.debug("Deleted task file %s", path)
            removed.append(task.id)

        repo.commit_all(
            generate_commit_message("delete", None, None, "Delete tasks", "\n".join(removed))
        )
        return removed

    # -----------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------

    def locate_all(self, prefix: str) -> list[Path]:
        """
        Every record file whose stem starts with `prefix`.
        """
        if not self.task_dir.is_dir():
            return []

        return sorted(
            p
            for p in self.task_dir.iterdir()
            if p.is_file() and p.suffix == RECORD_SUFFIX and p.stem.startswith(prefix)
        )

    def load(self, id_or_prefix: str) -> Task:
        """
        Load the single task whose id starts with `id_or_prefix`.

        Raises TaskNotFound, AmbiguousPrefix or ParseError.
        """
        prefix = (id_or_prefix or "").strip()
        matches = self.locate_all(prefix) if prefix else []

        if not matches:
            raise TaskNotFound(f"Task not found: {id_or_prefix}")
        if len(matches) > 1:
            ids = ", ".join(p.stem for p in matches)
            raise AmbiguousPrefix(f"Multiple tasks found with prefix '{prefix}': {ids}")

        path = matches[0]
        return decode_task(read_text(path), str(path))

    def load_all(self) -> list[Task]:
        """
        Load every decodable record. Files that fail to decode are skipped.
        """
        tasks: list[Task] = []
        for path in self.locate_all(""):
            try:
                tasks.append(decode_task(read_text(path), str(path)))
            except (ParseError, IOFailure) as e:
                log.debug("Skipping unreadable task file: %s", e)
        return tasks
