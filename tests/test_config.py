from pathlib import Path

import pytest

from rutd.engine.config import (
    Config,
    ConfigManager,
    env_var_name,
    field_types,
    format_value,
    is_valid_path,
    list_paths,
    parse_field_value,
)
from rutd.engine.errors import InvalidConfigKey, InvalidConfigValue


@pytest.fixture
def config_file(tmp_path) -> Path:
    return tmp_path / "config.yml"


class TestDefaults:
    def test_missing_file(self, config_file):
        config = Config.load(config_file, environ={})
        assert config.path.root_dir == "~/.rutd"
        assert config.path.tasks_dir == "tasks"
        assert config.log.history == 100
        assert config.log.console is False
        assert config.task.scopes == ["other"]
        assert "refactor" in config.task.types
        assert config.git.username == ""

    def test_paths_are_relative_to_root(self, tmp_path):
        config = Config.load(tmp_path / "absent.yml", environ={"RUTD_PATH__ROOT_DIR": str(tmp_path)})
        assert config.path.task_dir_path == tmp_path / "tasks"
        assert config.path.active_task_file_path == tmp_path / "active_task.yml"
        assert config.path.log_file_path == tmp_path / "rutd.log"


class TestLayers:
    def test_file_overrides_defaults(self, config_file):
        config_file.write_text("log:\n  history: 5\ntask:\n  scopes: [work, home]\n", encoding="utf-8")
        config = Config.load(config_file, environ={})
        assert config.log.history == 5
        assert config.task.scopes == ["work", "home"]
        assert config.log.console is False

    def test_env_overrides_file(self, config_file):
        config_file.write_text("log:\n  history: 5\n", encoding="utf-8")
        env = {"RUTD_LOG__HISTORY": "7", "RUTD_LOG__CONSOLE": "true", "RUTD_GIT__USERNAME": "alice"}
        config = Config.load(config_file, environ=env)
        assert config.log.history == 7
        assert config.log.console is True
        assert config.git.username == "alice"

    def test_env_name_is_case_insensitive(self, config_file):
        config = Config.load(config_file, environ={"rutd_log__history": "9"})
        assert config.log.history == 9

    def test_env_array(self, config_file):
        config = Config.load(config_file, environ={"RUTD_TASK__TYPES": '["feat", "fix"]'})
        assert config.task.types == ["feat", "fix"]

    def test_unknown_section(self, config_file):
        config_file.write_text("colors:\n  enabled: true\n", encoding="utf-8")
        with pytest.raises(InvalidConfigKey):
            Config.load(config_file, environ={})

    def test_unknown_key(self, config_file):
        config_file.write_text("log:\n  verbosity: 3\n", encoding="utf-8")
        with pytest.raises(InvalidConfigKey):
            Config.load(config_file, environ={})

    def test_wrong_type_in_file(self, config_file):
        config_file.write_text("log:\n  history: many\n", encoding="utf-8")
        with pytest.raises(InvalidConfigValue, match="integer"):
            Config.load(config_file, environ={})

    def test_bad_env_value(self, config_file):
        with pytest.raises(InvalidConfigValue):
            Config.load(config_file, environ={"RUTD_LOG__HISTORY": "lots"})

    def test_invalid_yaml(self, config_file):
        config_file.write_text("log: [unterminated\n", encoding="utf-8")
        with pytest.raises(InvalidConfigValue):
            Config.load(config_file, environ={})


class TestReflection:
    def test_paths(self):
        paths = list_paths()
        assert "path.root_dir" in paths
        assert "git.password" in paths
        assert "log.history" in paths
        assert "task.types" in paths

    def test_types(self):
        types = field_types()
        assert types["log.history"] == "integer"
        assert types["log.console"] == "boolean"
        assert types["task.scopes"] == "array"
        assert types["git.username"] == "string"

    def test_validity(self):
        assert is_valid_path("log.console")
        assert not is_valid_path("log")
        assert not is_valid_path("log.nope")

    def test_env_var_name(self):
        assert env_var_name("path.root_dir") == "RUTD_PATH__ROOT_DIR"

    def test_format_value(self):
        assert format_value(["a", "b"]) == "[a, b]"
        assert format_value(True) == "true"
        assert format_value(3) == "3"


class TestParseValue:
    @pytest.mark.parametrize(
        "path, raw, expected",
        [
            ("log.console", "TRUE", True),
            ("log.console", "false", False),
            ("log.history", " 42 ", 42),
            ("task.scopes", '["a", "b"]', ["a", "b"]),
            ("task.scopes", "solo", ["solo"]),
            ("task.scopes", "[unclosed", ["[unclosed"]),
            ("git.username", "bob", "bob"),
        ],
    )
    def test_valid(self, path, raw, expected):
        assert parse_field_value(path, raw) == expected

    @pytest.mark.parametrize(
        "path, raw",
        [
            ("log.console", "yes"),
            ("log.history", "1.5"),
            ("task.scopes", "[1, 2]"),
            ("task.scopes", "[broken]"),
        ],
    )
    def test_invalid(self, path, raw):
        with pytest.raises(InvalidConfigValue):
            parse_field_value(path, raw)

    def test_unknown_key(self):
        with pytest.raises(InvalidConfigKey):
            parse_field_value("log.verbosity", "1")


class TestConfigManager:
    def test_set_get_unset(self, config_file):
        cm = ConfigManager(config_file, environ={})

        cm.set("log.history", "20")
        assert cm.get("log.history") == "20"
        assert Config.load(config_file, environ={}).log.history == 20

        cm.unset("log.history")
        assert cm.get("log.history") == "100"
        assert "log" not in config_file.read_text(encoding="utf-8")

    def test_set_array(self, config_file):
        cm = ConfigManager(config_file, environ={})
        cm.set("task.scopes", '["work", "home"]')
        assert cm.get("task.scopes") == "[work, home]"

    def test_comments_survive_set_and_unset(self, config_file):
        config_file.write_text(
            "# personal settings\n"
            "log:\n"
            "  history: 5\n"
            "  console: false  # keep stdout clean\n"
            "task:\n"
            "  scopes: [work, home]  # pinned\n",
            encoding="utf-8",
        )
        cm = ConfigManager(config_file, environ={})

        cm.set("log.history", "20")
        text = config_file.read_text(encoding="utf-8")
        assert text.startswith("# personal settings\n")
        assert "console: false  # keep stdout clean" in text
        assert "scopes: [work, home]  # pinned" in text
        assert Config.load(config_file, environ={}).log.history == 20

        cm.unset("log.history")
        text = config_file.read_text(encoding="utf-8")
        assert text.startswith("# personal settings\n")
        assert "history" not in text
        assert "console: false  # keep stdout clean" in text
        assert "scopes: [work, home]  # pinned" in text

    def test_set_adds_section_to_commented_file(self, config_file):
        config_file.write_text("# rutd\nlog:\n  console: true\n", encoding="utf-8")
        ConfigManager(config_file, environ={}).set("git.username", "erin")

        text = config_file.read_text(encoding="utf-8")
        assert text.startswith("# rutd\n")
        config = Config.load(config_file, environ={})
        assert config.git.username == "erin"
        assert config.log.console is True

    def test_unset_keeps_other_keys(self, config_file):
        cm = ConfigManager(config_file, environ={})
        cm.set("log.history", "20")
        cm.set("log.console", "true")
        cm.unset("log.history")
        config = Config.load(config_file, environ={})
        assert config.log.console is True
        assert config.log.history == 100

    def test_unset_without_file(self, config_file):
        ConfigManager(config_file, environ={}).unset("log.history")
        assert not config_file.exists()

    def test_get_falls_back_to_environment(self, config_file):
        cm = ConfigManager(config_file, environ={"RUTD_GIT__USERNAME": "carol"})
        assert cm.get("git.username") == "carol"

    def test_invalid_key(self, config_file):
        cm = ConfigManager(config_file, environ={})
        with pytest.raises(InvalidConfigKey):
            cm.get("nope.nothing")
        with pytest.raises(InvalidConfigKey):
            cm.set("nope.nothing", "1")

    def test_invalid_value_does_not_write(self, config_file):
        cm = ConfigManager(config_file, environ={})
        with pytest.raises(InvalidConfigValue):
            cm.set("log.history", "abc")
        assert not config_file.exists()

    def test_list_values(self, config_file):
        cm = ConfigManager(config_file, environ={"RUTD_GIT__USERNAME": "dave"})
        cm.set("log.history", "3")

        values = cm.list_values()
        assert values["log.history"] == "3"
        assert values["git.username"] == "dave"
        assert values["log.console"] == "false (default)"
        assert values["task.scopes"] == "[other] (default)"
        assert list(values) == list_paths()
