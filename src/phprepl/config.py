"""
Session configuration.

Values are layered, later sources winning:

    1. defaults
    2. `phprepl.toml` in the working directory, or
       `~/.config/phprepl/config.toml` (the `[repl]` table)
    3. environment: PHPREPL_PHP, PHPREPL_TIMEOUT, NO_COLOR
    4. command line flags

Example file:
    [repl]
    prompt = "php> "
    php_binary = "/usr/bin/php8.3"
    timeout = 5
    matchers = ["symfony", "laravel"]
    symfony_services = ["router", "logger", "doctrine"]
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping, Optional

from phprepl.utils.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "phprepl.toml"
USER_CONFIG_PATH = Path("~/.config/phprepl/config.toml")

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Registry matchers that can be switched on
KNOWN_MATCHERS = ("symfony", "laravel")


@dataclass(frozen=True)
class ReplConfig:
    """
    Settings for an interactive session.

    Attributes:
        prompt: Primary prompt
        continuation_prompt: Prompt while a statement is incomplete
        history_file: Readline history location
        history_length: Entries kept in the history file
        window_size: Tokens before the cursor that matchers see
        php_binary: PHP CLI used to run code
        timeout: Seconds before a run is killed
        color: Colored output
        log_level: Logging level name
        matchers: Registry matchers to enable ("symfony", "laravel")
        symfony_services: Service ids offered by the Symfony matcher
        symfony_parameters: Parameter names offered by the Symfony matcher
    """

    prompt: str = ">>> "
    continuation_prompt: str = "... "
    history_file: Path = Path("~/.phprepl_history")
    history_length: int = 1000
    window_size: int = 10
    php_binary: str = "php"
    timeout: float = 10.0
    color: bool = True
    log_level: str = "WARNING"
    matchers: tuple[str, ...] = ()
    symfony_services: tuple[str, ...] = ()
    symfony_parameters: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.history_length < 0:
            raise ConfigError("history_length must not be negative")
        if self.window_size < 1:
            raise ConfigError("window_size must be at least 1")
        if self.timeout <= 0:
            raise ConfigError("timeout must be positive")
        if self.log_level.upper() not in LOG_LEVELS:
            raise ConfigError(
                f"log_level must be one of {', '.join(LOG_LEVELS)}, got '{self.log_level}'"
            )
        unknown = [name for name in self.matchers if name not in KNOWN_MATCHERS]
        if unknown:
            raise ConfigError(f"Unknown matchers: {', '.join(unknown)}")

    @property
    def history_path(self) -> Path:
        return self.history_file.expanduser()

    def with_overrides(self, **overrides: Any) -> "ReplConfig":
        """Copy with the given values; None values are ignored."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


# =============================================================================
# Loading
# =============================================================================


def _coerce(name: str, value: Any, default: Any) -> Any:
    """Convert a TOML value to the type of the field's default."""
    if isinstance(default, bool):
        if not isinstance(value, bool):
            raise ConfigError(f"{name} must be true or false")
        return value
    if isinstance(default, int):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigError(f"{name} must be an integer")
        return value
    if isinstance(default, float):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigError(f"{name} must be a number")
        return float(value)
    if isinstance(default, Path):
        if not isinstance(value, str):
            raise ConfigError(f"{name} must be a path string")
        return Path(value)
    if isinstance(default, tuple):
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ConfigError(f"{name} must be a list of strings")
        return tuple(value)
    if not isinstance(value, str):
        raise ConfigError(f"{name} must be a string")
    return value


def config_from_mapping(data: Mapping[str, Any], base: Optional[ReplConfig] = None) -> ReplConfig:
    """Apply a `[repl]` table to `base` (defaults when omitted)."""
    base = base or ReplConfig()
    known = {f.name: getattr(base, f.name) for f in fields(ReplConfig)}
    values: dict[str, Any] = {}
    for key, value in data.items():
        if key not in known:
            raise ConfigError(f"Unknown configuration key '{key}'")
        values[key] = _coerce(key, value, known[key])
    return replace(base, **values)


def find_config_file(cwd: Optional[Path] = None) -> Optional[Path]:
    """The project file if present, else the user file if present."""
    candidates = [(cwd or Path.cwd()) / CONFIG_FILENAME, USER_CONFIG_PATH.expanduser()]
    for path in candidates:
        if path.is_file():
            return path
    return None


def read_config_file(path: Path, base: Optional[ReplConfig] = None) -> ReplConfig:
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except OSError as error:
        raise ConfigError(f"Cannot read {path}: {error}") from error
    except tomllib.TOMLDecodeError as error:
        raise ConfigError(f"Invalid TOML in {path}: {error}") from error

    table = data.get("repl", {})
    if not isinstance(table, dict):
        raise ConfigError(f"{path}: [repl] must be a table")
    logger.debug("Loaded configuration from %s", path)
    return config_from_mapping(table, base)


def apply_environment(config: ReplConfig, environ: Optional[Mapping[str, str]] = None) -> ReplConfig:
    environ = os.environ if environ is None else environ
    overrides: dict[str, Any] = {}

    if environ.get("PHPREPL_PHP"):
        overrides["php_binary"] = environ["PHPREPL_PHP"]
    if environ.get("PHPREPL_TIMEOUT"):
        try:
            overrides["timeout"] = float(environ["PHPREPL_TIMEOUT"])
        except ValueError:
            raise ConfigError(
                f"PHPREPL_TIMEOUT must be a number, got '{environ['PHPREPL_TIMEOUT']}'"
            ) from None
    # Any non-empty value disables color (https://no-color.org)
    if environ.get("NO_COLOR"):
        overrides["color"] = False

    return replace(config, **overrides) if overrides else config


def load_config(
    path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
    cwd: Optional[Path] = None,
) -> ReplConfig:
    """
    Load configuration from file and environment.

    Args:
        path: Explicit config file; it must exist
        environ: Environment mapping (defaults to os.environ)
        cwd: Directory searched for `phprepl.toml`

    Raises:
        ConfigError: If the file is unreadable or holds invalid values
    """
    config = ReplConfig()
    if path is not None:
        if not path.is_file():
            raise ConfigError(f"Configuration file not found: {path}")
        config = read_config_file(path, config)
    else:
        found = find_config_file(cwd)
        if found is not None:
            config = read_config_file(found, config)
    return apply_environment(config, environ)
