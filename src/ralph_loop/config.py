"""Configuration loading for Ralph.

Precedence (highest to lowest): env vars > JSON config file > defaults.
Empty env vars are treated as unset.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from ralph_loop.constants import (
    CLAUDE_STREAM_ARGS,
    CONFIG_FILE,
    DEFAULT_CLAUDE_PATH,
    DEFAULT_ITERATIONS,
    DEFAULT_PROMPT_PATH,
    DEFAULT_SPECS_DIR,
    ENV_CLAUDE_PATH,
    ENV_ITERATIONS,
    ENV_LOG_LEVEL,
    ENV_PROMPT_PATH,
    ENV_SPECS_DIR,
    MAX_ITERATIONS,
    MIN_ITERATIONS,
    SPEC_POLL_INTERVAL,
)

logger = logging.getLogger(__name__)

VALID_LOG_LEVELS = {"trace", "debug", "info", "warn", "warning", "error"}


class ConfigError(Exception):
    """Exception raised for an unreadable or invalid config file."""

    pass


class ClaudeConfig(BaseModel):
    path: str = DEFAULT_CLAUDE_PATH
    args: List[str] = Field(default_factory=lambda: list(CLAUDE_STREAM_ARGS))


class PathsConfig(BaseModel):
    prompt: str = DEFAULT_PROMPT_PATH
    specs: str = DEFAULT_SPECS_DIR


class LoggingConfig(BaseModel):
    level: str = "info"

    @field_validator("level")
    @classmethod
    def _check_level(cls, value: str) -> str:
        if value.lower() not in VALID_LOG_LEVELS:
            raise ValueError(
                f"Invalid log level '{value}'. Valid: {', '.join(sorted(VALID_LOG_LEVELS))}"
            )
        return value.lower()


class BehaviorConfig(BaseModel):
    iterations: int = Field(default=DEFAULT_ITERATIONS, ge=MIN_ITERATIONS, le=MAX_ITERATIONS)
    spec_poll_seconds: float = Field(default=SPEC_POLL_INTERVAL, gt=0)


class RalphConfig(BaseModel):
    """Main application configuration."""

    claude: ClaudeConfig = Field(default_factory=ClaudeConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    behavior: BehaviorConfig = Field(default_factory=BehaviorConfig)

    def claude_path(self) -> Path:
        return Path(self.claude.path).expanduser()

    def prompt_path(self) -> Path:
        return Path(self.paths.prompt).expanduser()

    def specs_path(self) -> Path:
        return Path(self.paths.specs).expanduser()

    def claude_command(self) -> List[str]:
        """Argv used to spawn the Claude CLI."""
        return [str(self.claude_path()), *self.claude.args]


def _get_env(name: str) -> Optional[str]:
    """Read env var; return None if unset or empty string (treated as unset)."""
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return None
    return raw


def _apply_env_overrides(data: dict) -> dict:
    overrides = [
        (ENV_CLAUDE_PATH, ("claude", "path")),
        (ENV_PROMPT_PATH, ("paths", "prompt")),
        (ENV_SPECS_DIR, ("paths", "specs")),
        (ENV_LOG_LEVEL, ("logging", "level")),
        (ENV_ITERATIONS, ("behavior", "iterations")),
    ]
    for env_var, (section, key) in overrides:
        value = _get_env(env_var)
        if value is None:
            continue
        logger.debug(f"Overriding {section}.{key} from {env_var}")
        data.setdefault(section, {})[key] = value
    return data


def load_config(config_path: Optional[Path] = None) -> RalphConfig:
    """Load config from optional JSON file + env vars + defaults.

    A missing file means defaults. Raises ConfigError if the file cannot be
    read or parsed, or if any value fails validation.
    """
    path = Path(config_path) if config_path is not None else CONFIG_FILE
    data: dict = {}

    if path.is_file():
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in config file {path}: {e}")
        except OSError as e:
            raise ConfigError(f"Failed to read config file {path}: {e}")
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a JSON object")
        logger.info(f"Loaded config from {path}")
    else:
        logger.debug(f"No config file at {path}, using defaults")

    data = _apply_env_overrides(data)

    try:
        return RalphConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config: {e}")


def apply_overrides(config: RalphConfig, overrides: Dict[str, Dict[str, Any]]) -> RalphConfig:
    """Return a copy of ``config`` with command-line values applied.

    ``overrides`` maps section -> {key: value}; None values are skipped.
    """
    data = config.model_dump()
    for section, values in overrides.items():
        for key, value in values.items():
            if value is not None:
                data[section][key] = value

    try:
        return RalphConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid option: {e}")
