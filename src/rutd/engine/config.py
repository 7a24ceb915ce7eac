# src/rutd/engine/config.py

"""
Configuration.

Configuration is a small tree of sections (path, git, log, task) whose
leaves are booleans, integers, floats, strings or string lists. Values are
merged in this order, later layers winning:

1. built-in defaults,
2. the YAML configuration file (~/.rutd/config.yml),
3. environment variables: RUTD_<SECTION>__<FIELD>, e.g. RUTD_LOG__HISTORY.

The default tree doubles as the schema: walking it yields every valid
dotted key together with its type, which drives `config get/set/unset/show`
and shell completion.

`config set` and `config unset` edit the file in round-trip mode, so
comments and the layout of untouched entries survive.
"""

import dataclasses
import io
import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Final, Mapping, Optional

import yaml
from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap
from ruamel.yaml.error import YAMLError as RoundTripError

from .errors import InvalidConfigKey, InvalidConfigValue, IOFailure


# ---------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------

APP_NAME: Final[str] = "rutd"
ENV_PREFIX: Final[str] = "RUTD_"
ENV_SEPARATOR: Final[str] = "__"

DEFAULT_ROOT_DIR: Final[str] = "~/.rutd"
DEFAULT_TASKS_DIR: Final[str] = "tasks"
DEFAULT_ACTIVE_FILE: Final[str] = "active_task.yml"
DEFAULT_LOG_FILE: Final[str] = "rutd.log"
DEFAULT_CONFIG_FILE: Final[str] = "~/.rutd/config.yml"

DEFAULT_LOG_HISTORY: Final[int] = 100
DEFAULT_SCOPES: Final[tuple[str, ...]] = ("other",)
DEFAULT_TYPES: Final[tuple[str, ...]] = (
    "build",
    "chore",
    "ci",
    "docs",
    "style",
    "refactor",
    "perf",
    "test",
)


# ---------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------

@dataclass(slots=True)
class PathConfig:
    """
    Filesystem layout. Every sub-path is relative to root_dir.
    """

    root_dir: str = DEFAULT_ROOT_DIR
    tasks_dir: str = DEFAULT_TASKS_DIR
    active_task_file: str = DEFAULT_ACTIVE_FILE
    log_file: str = DEFAULT_LOG_FILE

    @property
    def root_path(self) -> Path:
        return Path(os.path.expanduser(self.root_dir))

    @property
    def task_dir_path(self) -> Path:
        return self.root_path / self.tasks_dir

    @property
    def active_task_file_path(self) -> Path:
        return self.root_path / self.active_task_file

    @property
    def log_file_path(self) -> Path:
        return self.root_path / self.log_file


@dataclass(slots=True)
class GitConfig:
    """Credentials for HTTPS remotes."""

    username: str = ""
    password: str = ""


@dataclass(slots=True)
class LogConfig:
    # 0 disables trimming
    history: int = DEFAULT_LOG_HISTORY
    console: bool = False


@dataclass(slots=True)
class TaskConfig:
    """Pinned suggestions for completion."""

    scopes: list[str] = field(default_factory=lambda: list(DEFAULT_SCOPES))
    types: list[str] = field(default_factory=lambda: list(DEFAULT_TYPES))


@dataclass(slots=True)
class Config:
    path: PathConfig = field(default_factory=PathConfig)
    git: GitConfig = field(default_factory=GitConfig)
    log: LogConfig = field(default_factory=LogConfig)
    task: TaskConfig = field(default_factory=TaskConfig)

    @classmethod
    def load(
        cls,
        config_file: Optional[str | Path] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "Config":
        """
        Merge defaults, the configuration file (if it exists) and the environment.
        """
        path = _config_path(config_file)
        env = os.environ if environ is None else environ

        tree = default_tree()
        if path.is_file():
            _merge_file(tree, read_config_file(path), path)
        _merge_env(tree, env)

        return from_tree(tree)


SECTIONS: Final[dict[str, type]] = {
    "path": PathConfig,
    "git": GitConfig,
    "log": LogConfig,
    "task": TaskConfig,
}


def from_tree(tree: Mapping[str, Mapping[str, Any]]) -> Config:
    return Config(**{name: cls(**dict(tree[name])) for name, cls in SECTIONS.items()})


def default_tree() -> dict[str, dict[str, Any]]:
    return to_tree(Config())


def to_tree(config: Config) -> dict[str, dict[str, Any]]:
    return {name: dataclasses.asdict(getattr(config, name)) for name in SECTIONS}


def _config_path(config_file: Optional[str | Path]) -> Path:
    return Path(os.path.expanduser(str(config_file or DEFAULT_CONFIG_FILE)))


# ---------------------------------------------------------------------
# Reflection
# ---------------------------------------------------------------------

def _value_type(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "float"
    if isinstance(value, list):
        return "array"
    return "string"


def field_types() -> dict[str, str]:
    """
    Map every dotted leaf path of the default tree to its value type.
    """
    out: dict[str, str] = {}

    def walk(prefix: str, node: Mapping[str, Any]) -> None:
        for key, value in node.items():
            path = f"{prefix}.{key}" if prefix else key
            if isinstance(value, Mapping):
                walk(path, value)
            else:
                out[path] = _value_type(value)

    walk("", default_tree())
    return out


def list_paths() -> list[str]:
    return list(field_types())


def is_valid_path(path: str) -> bool:
    return path in field_types()


def _require_path(path: str) -> tuple[str, str]:
    if not is_valid_path(path):
        raise InvalidConfigKey(f"Invalid configuration key: {path}")
    section, name = path.split(".", 1)
    return section, name


def get_field_value(config: Config, path: str) -> str:
    section, name = _require_path(path)
    return format_value(to_tree(config)[section][name])


def format_value(value: Any) -> str:
    """
    Render a leaf for display: arrays as `[a, b]`, booleans as true/false.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, list):
        return "[" + ", ".join(str(v) for v in value) + "]"
    if value is None:
        return ""
    return str(value)


def parse_field_value(path: str, raw: str) -> Any:
    """
    Parse `raw` according to the type of the leaf at `path`.
    """
    _require_path(path)
    value_type = field_types()[path]
    s = raw.strip()

    if value_type == "boolean":
        lowered = s.lower()
        if lowered not in ("true", "false"):
            raise InvalidConfigValue(f"Invalid boolean value for {path}: {raw}")
        return lowered == "true"

    if value_type == "integer":
        try:
            return int(s)
        except ValueError as e:
            raise InvalidConfigValue(f"Invalid integer value for {path}: {raw}") from e

    if value_type == "float":
        try:
            return float(s)
        except ValueError as e:
            raise InvalidConfigValue(f"Invalid float value for {path}: {raw}") from e

    if value_type == "array":
        if s.startswith("[") and s.endswith("]"):
            try:
                parsed = json.loads(s)
            except json.JSONDecodeError as e:
                raise InvalidConfigValue(f"Invalid array value for {path}: {raw}") from e
            if not isinstance(parsed, list) or not all(isinstance(x, str) for x in parsed):
                raise InvalidConfigValue(f"Invalid array value for {path}: {raw}")
            return parsed
        return [raw]

    return raw


def _check_file_value(path: str, value: Any, source: Path) -> Any:
    """
    Check a value read from the YAML file against the schema type.
    """
    value_type = field_types()[path]
    ok = {
        "boolean": isinstance(value, bool),
        "integer": isinstance(value, int) and not isinstance(value, bool),
        "float": isinstance(value, (int, float)) and not isinstance(value, bool),
        "array": isinstance(value, list) and all(isinstance(x, str) for x in value),
        "string": isinstance(value, str),
    }[value_type]
    if not ok:
        raise InvalidConfigValue(f"{source}: '{path}' must be of type {value_type}")
    return float(value) if value_type == "float" else value


# ---------------------------------------------------------------------
# Layers
# ---------------------------------------------------------------------

def read_config_file(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise IOFailure(f"Failed to read config file {path}: {e}") from e

    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise InvalidConfigValue(f"Failed to parse config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise InvalidConfigValue(f"{path}: YAML root must be a mapping/dictionary")

    return data


def _round_trip() -> YAML:
    rt = YAML(typ="rt")
    rt.preserve_quotes = True
    return rt


def load_config_document(path: Path) -> CommentedMap:
    """
    Load the configuration file for editing, keeping its comments and layout.
    """
    if not path.is_file():
        return CommentedMap()

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise IOFailure(f"Failed to read config file {path}: {e}") from e

    try:
        doc = _round_trip().load(text)
    except RoundTripError as e:
        raise InvalidConfigValue(f"Failed to parse config file {path}: {e}") from e

    if doc is None:
        return CommentedMap()
    if not isinstance(doc, CommentedMap):
        raise InvalidConfigValue(f"{path}: YAML root must be a mapping/dictionary")
    return doc


def write_config_file(path: Path, doc: CommentedMap) -> None:
    stream = io.StringIO()
    if doc:
        _round_trip().dump(doc, stream)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(stream.getvalue(), encoding="utf-8")
    except OSError as e:
        raise IOFailure(f"Failed to write config file {path}: {e}") from e


def _merge_file(tree: dict[str, dict[str, Any]], data: Mapping[str, Any], source: Path) -> None:
    for section, values in data.items():
        if section not in tree:
            raise InvalidConfigKey(f"{source}: unknown configuration section '{section}'")
        if values is None:
            continue
        if not isinstance(values, Mapping):
            raise InvalidConfigValue(f"{source}: section '{section}' must be a mapping")
        for name, value in values.items():
            path = f"{section}.{name}"
            _require_path(path)
            tree[section][name] = _check_file_value(path, value, source)


def env_var_name(path: str) -> str:
    return ENV_PREFIX + path.replace(".", ENV_SEPARATOR).upper()


def env_lookup(environ: Mapping[str, str], path: str) -> Optional[str]:
    """
    Find the override for `path`, matching the variable name case-insensitively.
    """
    wanted = env_var_name(path)
    if wanted in environ:
        return environ[wanted]
    for key, value in environ.items():
        if key.upper() == wanted:
            return value
    return None


def _merge_env(tree: dict[str, dict[str, Any]], environ: Mapping[str, str]) -> None:
    for path in list_paths():
        raw = env_lookup(environ, path)
        if raw is None:
            continue
        section, name = path.split(".", 1)
        tree[section][name] = parse_field_value(path, raw)


# ---------------------------------------------------------------------
# Manager (config subcommands)
# ---------------------------------------------------------------------

class ConfigManager:
    """
    Read and rewrite the configuration file on behalf of `config` commands.
    """

    def __init__(
        self,
        config_path: Optional[str | Path] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.config_path = _config_path(config_path)
        self.environ = os.environ if environ is None else environ

    def _read(self) -> dict[str, Any]:
        if not self.config_path.is_file():
            return {}
        return read_config_file(self.config_path)

    def _file_value(self, doc: Mapping[str, Any], path: str) -> Optional[str]:
        section, name = path.split(".", 1)
        values = doc.get(section)
        if not isinstance(values, Mapping) or name not in values:
            return None
        return format_value(values[name])

    def effective_config(self) -> Config:
        return Config.load(self.config_path, self.environ)

    def get(self, path: str) -> str:
        """
        Value from the configuration file if set there, else the effective value.
        """
        _require_path(path)
        value = self._file_value(self._read(), path)
        if value is not None:
            return value
        return get_field_value(self.effective_config(), path)

    def set(self, path: str, raw: str) -> None:
        section, name = _require_path(path)
        value = parse_field_value(path, raw)

        doc = load_config_document(self.config_path)
        values = doc.get(section)
        if not isinstance(values, CommentedMap):
            values = CommentedMap()
            doc[section] = values
        values[name] = value

        write_config_file(self.config_path, doc)

    def unset(self, path: str) -> None:
        """
        Remove a key from the file; drop its section when it becomes empty.
        """
        section, name = _require_path(path)
        if not self.config_path.is_file():
            return

        doc = load_config_document(self.config_path)
        values = doc.get(section)
        if isinstance(values, CommentedMap):
            values.pop(name, None)
            if not values:
                doc.pop(section)

        write_config_file(self.config_path, doc)

    def list_values(self) -> dict[str, str]:
        """
        Every known key with the user-configured value or `<default> (default)`.
        """
        defaults = Config()
        doc = self._read()

        out: dict[str, str] = {}
        for path in list_paths():
            value = self._file_value(doc, path)
            if value is None:
                value = env_lookup(self.environ, path)
            if value is None:
                value = f"{get_field_value(defaults, path)} (default)"
            out[path] = value
        return out
