# src/rutd/engine/codec.py

"""
Record codec.

Tasks and the active-task record are stored as small YAML mappings whose
keys are exactly the model field names. Unset optional fields are left
out of the document; timestamps are RFC-3339 strings with the local
offset, so the files stay easy to read and to edit by hand.

Decoding is strict: unknown keys, missing required keys and values of
the wrong type raise ParseError. Callers decide whether that is fatal.
"""

from datetime import date, datetime
from typing import Any, Final, Optional

import yaml

from .errors import ParseError
from .model import ActiveTask, Priority, Status, Task


# ---------------------------------------------------------------------
# Layout constants
# ---------------------------------------------------------------------

RECORD_SUFFIX: Final[str] = ".yml"

TASK_FIELDS: Final[tuple[str, ...]] = (
    "id",
    "description",
    "priority",
    "scope",
    "task_type",
    "status",
    "created_at",
    "updated_at",
    "completed_at",
    "time_spent",
)
TASK_REQUIRED: Final[frozenset[str]] = frozenset(
    {"id", "description", "priority", "status", "created_at"}
)

ACTIVE_FIELDS: Final[tuple[str, ...]] = ("task_id", "started_at")


# ---------------------------------------------------------------------
# Timestamps
# ---------------------------------------------------------------------

def format_timestamp(value: datetime) -> str:
    """Render an aware datetime as RFC-3339 with its offset."""
    return value.isoformat()


def parse_timestamp(raw: str) -> datetime:
    """
    Parse an RFC-3339 timestamp.

    Naive values are interpreted as local wall-clock time.
    """
    s = raw.strip()
    if s.endswith(("Z", "z")):
        s = s[:-1] + "+00:00"
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        dt = dt.astimezone()
    return dt.astimezone()


# ---------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------

def encode_task(task: Task) -> str:
    data: dict[str, Any] = {
        "id": task.id,
        "description": task.description,
        "priority": task.priority.value,
        "scope": task.scope,
        "task_type": task.task_type,
        "status": task.status.value,
        "created_at": _ts_or_none(task.created_at),
        "updated_at": _ts_or_none(task.updated_at),
        "completed_at": _ts_or_none(task.completed_at),
        "time_spent": task.time_spent,
    }
    return _dump({k: v for k, v in data.items() if v is not None})


def encode_active(active: ActiveTask) -> str:
    return _dump(
        {
            "task_id": active.task_id,
            "started_at": format_timestamp(active.started_at),
        }
    )


def _ts_or_none(value: Optional[datetime]) -> Optional[str]:
    return format_timestamp(value) if value is not None else None


def _dump(data: dict[str, Any]) -> str:
    return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)


# ---------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------

def decode_task(text: str, path: str = "<task>") -> Task:
    """
    Parse a task document into a Task model.

    Model-level invariants are enforced via Task.validate().
    """
    data = _load_mapping(text, path)
    _check_keys(path, data, TASK_FIELDS, TASK_REQUIRED)

    task = Task(
        id=_require_str(path, data, "id"),
        description=_require_str(path, data, "description", allow_empty=True),
        priority=_parse_enum(path, data, "priority", Priority),
        scope=_optional_str(path, data, "scope"),
        task_type=_optional_str(path, data, "task_type"),
        status=_parse_enum(path, data, "status", Status),
        created_at=_parse_time(path, data, "created_at"),
        updated_at=_optional_time(path, data, "updated_at"),
        completed_at=_optional_time(path, data, "completed_at"),
        time_spent=_optional_int(path, data, "time_spent"),
    )

    try:
        task.validate()
    except ValueError as e:
        raise ParseError(path, str(e)) from e

    return task


def decode_active(text: str, path: str = "<active task>") -> ActiveTask:
    data = _load_mapping(text, path)
    _check_keys(path, data, ACTIVE_FIELDS, frozenset(ACTIVE_FIELDS))
    return ActiveTask(
        task_id=_require_str(path, data, "task_id"),
        started_at=_parse_time(path, data, "started_at"),
    )


def _load_mapping(text: str, path: str) -> dict[str, Any]:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ParseError(path, f"Invalid YAML: {e}") from e

    if not isinstance(data, dict):
        raise ParseError(path, "YAML root must be a mapping/dictionary")

    return data


def _check_keys(
    path: str,
    data: dict[str, Any],
    known: tuple[str, ...],
    required: frozenset[str],
) -> None:
    unknown = sorted(str(k) for k in data if k not in known)
    if unknown:
        raise ParseError(path, f"Unknown key(s): {', '.join(unknown)}")

    missing = [k for k in known if k in required and k not in data]
    if missing:
        raise ParseError(path, f"Missing required key(s): {', '.join(missing)}")


def _require_str(
    path: str,
    data: dict[str, Any],
    key: str,
    *,
    allow_empty: bool = False,
) -> str:
    value = data[key]
    if not isinstance(value, str):
        raise ParseError(path, f"YAML key '{key}' must be a string")

    if not allow_empty and not value.strip():
        raise ParseError(path, f"YAML key '{key}' must be a non-empty string")

    return value


def _optional_str(path: str, data: dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ParseError(path, f"YAML key '{key}' must be a string")
    return value


def _optional_int(path: str, data: dict[str, Any], key: str) -> Optional[int]:
    value = data.get(key)
    if value is None:
        return None
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        raise ParseError(path, f"YAML key '{key}' must be an integer")
    if value < 0:
        raise ParseError(path, f"YAML key '{key}' must be non-negative")
    return value


def _parse_enum(path: str, data: dict[str, Any], key: str, enum_cls):
    raw = _require_str(path, data, key)
    try:
        return enum_cls.parse(raw)
    except ValueError as e:
        raise ParseError(path, str(e)) from e


def _parse_time(path: str, data: dict[str, Any], key: str) -> datetime:
    value = data[key]

    if isinstance(value, datetime):
        return value.astimezone()

    if isinstance(value, date):
        raise ParseError(path, f"YAML key '{key}' must include a time of day")

    if isinstance(value, str):
        try:
            return parse_timestamp(value)
        except ValueError as e:
            raise ParseError(path, f"Invalid RFC-3339 timestamp for '{key}': '{value}'") from e

    raise ParseError(path, f"YAML key '{key}' must be an RFC-3339 timestamp string")


def _optional_time(path: str, data: dict[str, Any], key: str) -> Optional[datetime]:
    if data.get(key) is None:
        return None
    return _parse_time(path, data, key)
