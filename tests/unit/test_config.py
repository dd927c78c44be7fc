"""
Unit tests for configuration loading.
"""

from pathlib import Path

import pytest

from phprepl.config import (
    CONFIG_FILENAME,
    ReplConfig,
    apply_environment,
    config_from_mapping,
    find_config_file,
    load_config,
    read_config_file,
)
from phprepl.utils.errors import ConfigError


class TestReplConfig:
    """Defaults and validation."""

    def test_defaults(self) -> None:
        config = ReplConfig()
        assert config.prompt == ">>> "
        assert config.window_size == 10
        assert config.php_binary == "php"
        assert config.matchers == ()

    def test_history_path_expands_user(self) -> None:
        assert "~" not in str(ReplConfig().history_path)

    @pytest.mark.parametrize(
        "overrides, message",
        [
            ({"history_length": -1}, "history_length"),
            ({"window_size": 0}, "window_size"),
            ({"timeout": 0}, "timeout"),
            ({"log_level": "LOUD"}, "log_level"),
            ({"matchers": ("drupal",)}, "Unknown matchers"),
        ],
    )
    def test_invalid_values(self, overrides, message) -> None:
        with pytest.raises(ConfigError, match=message):
            ReplConfig(**overrides)

    def test_with_overrides_ignores_none(self) -> None:
        config = ReplConfig().with_overrides(php_binary=None, timeout=2.5)
        assert config.php_binary == "php"
        assert config.timeout == 2.5


class TestMapping:
    """The `[repl]` table."""

    def test_values_are_coerced(self) -> None:
        config = config_from_mapping(
            {
                "timeout": 3,
                "history_file": "~/.my_history",
                "matchers": ["symfony"],
                "symfony_services": ["router"],
            }
        )
        assert config.timeout == 3.0
        assert config.history_file == Path("~/.my_history")
        assert config.matchers == ("symfony",)
        assert config.symfony_services == ("router",)

    def test_unknown_key(self) -> None:
        with pytest.raises(ConfigError, match="Unknown configuration key 'colour'"):
            config_from_mapping({"colour": False})

    @pytest.mark.parametrize(
        "data",
        [
            {"color": "yes"},
            {"history_length": True},
            {"history_length": 1.5},
            {"timeout": "fast"},
            {"matchers": "symfony"},
            {"prompt": 3},
        ],
    )
    def test_wrong_types(self, data) -> None:
        with pytest.raises(ConfigError):
            config_from_mapping(data)

    def test_base_is_kept(self) -> None:
        base = ReplConfig(prompt="php> ")
        assert config_from_mapping({"timeout": 1}, base).prompt == "php> "


class TestFiles:
    """Reading TOML files."""

    def test_read_file(self, tmp_path) -> None:
        path = tmp_path / CONFIG_FILENAME
        path.write_text('[repl]\nprompt = "php> "\ntimeout = 5\n', encoding="utf-8")
        config = read_config_file(path)
        assert config.prompt == "php> "
        assert config.timeout == 5.0

    def test_file_without_repl_table(self, tmp_path) -> None:
        path = tmp_path / CONFIG_FILENAME
        path.write_text("[other]\nx = 1\n", encoding="utf-8")
        assert read_config_file(path) == ReplConfig()

    def test_invalid_toml(self, tmp_path) -> None:
        path = tmp_path / CONFIG_FILENAME
        path.write_text("[repl\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid TOML"):
            read_config_file(path)

    def test_repl_must_be_table(self, tmp_path) -> None:
        path = tmp_path / CONFIG_FILENAME
        path.write_text('repl = "x"\n', encoding="utf-8")
        with pytest.raises(ConfigError, match="must be a table"):
            read_config_file(path)

    def test_find_project_file(self, tmp_path) -> None:
        path = tmp_path / CONFIG_FILENAME
        path.write_text("", encoding="utf-8")
        assert find_config_file(tmp_path) == path

    def test_explicit_missing_file(self, tmp_path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "missing.toml", environ={})


class TestEnvironment:
    """Environment overrides."""

    def test_environment_overrides(self) -> None:
        config = apply_environment(
            ReplConfig(),
            {"PHPREPL_PHP": "/opt/php", "PHPREPL_TIMEOUT": "2", "NO_COLOR": "1"},
        )
        assert config.php_binary == "/opt/php"
        assert config.timeout == 2.0
        assert not config.color

    def test_empty_values_are_ignored(self) -> None:
        config = ReplConfig()
        assert apply_environment(config, {"PHPREPL_PHP": "", "NO_COLOR": ""}) is config

    def test_invalid_timeout(self) -> None:
        with pytest.raises(ConfigError, match="PHPREPL_TIMEOUT"):
            apply_environment(ReplConfig(), {"PHPREPL_TIMEOUT": "soon"})

    def test_layering(self, tmp_path) -> None:
        """File values apply first, then the environment."""
        path = tmp_path / CONFIG_FILENAME
        path.write_text('[repl]\nphp_binary = "php8.2"\ntimeout = 5\n', encoding="utf-8")
        config = load_config(path, environ={"PHPREPL_PHP": "php8.3"})
        assert config.php_binary == "php8.3"
        assert config.timeout == 5.0

    def test_discovery_from_cwd(self, tmp_path) -> None:
        (tmp_path / CONFIG_FILENAME).write_text('[repl]\nprompt = "$ "\n', encoding="utf-8")
        assert load_config(environ={}, cwd=tmp_path).prompt == "$ "
