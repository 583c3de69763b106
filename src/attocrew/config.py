"""Configuration loading and management."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from attocrew.errors import ConfigurationError


# Load .env files
load_dotenv()

DEFAULT_API_URL = "https://api.openai.com/v1/responses"
DEFAULT_MODEL = "gpt-4o"
DEFAULT_MAX_ITERATIONS = 10
DEFAULT_LOCK_TTL = 300.0  # 5 minutes
DEFAULT_WAIT_TIMEOUT = 60.0

# Config directory names
PROJECT_DIR = ".attocrew"
USER_DIR_NAME = ".attocrew"


@dataclass(slots=True)
class CrewConfig:
    """Merged configuration from all sources.

    Priority: overrides > env vars > project config > user config > defaults
    """
    # Reasoning service
    api_key: str | None = None
    api_url: str = DEFAULT_API_URL
    model: str = DEFAULT_MODEL
    temperature: float = 0.7
    request_timeout: float = 120.0

    # Reasoning loop
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    tool_timeout: float = 120.0

    # Locks (seconds)
    lock_ttl: float = DEFAULT_LOCK_TTL
    lock_sweep_interval: float = 60.0
    stale_lock_age: float = 600.0

    # Coordinator waits (seconds)
    wait_poll_interval: float = 1.0
    wait_timeout: float = DEFAULT_WAIT_TIMEOUT

    # Paths
    working_directory: str = ""
    db_path: str = ""
    event_log_path: str | None = None

    # Logging
    debug: bool = False
    json_logs: bool = False
    configure_logging: bool = True


def find_project_root(start: Path | None = None) -> Path | None:
    """Find the project root by looking for .attocrew/ or .git/."""
    current = start or Path.cwd()
    for parent in [current, *current.parents]:
        if (parent / PROJECT_DIR).exists():
            return parent
        if (parent / ".git").exists():
            return parent
    return None


def get_user_config_dir() -> Path:
    """Get the user-level config directory (~/.attocrew/)."""
    return Path.home() / USER_DIR_NAME


def load_json_config(path: Path) -> dict[str, Any]:
    """Load a JSON config file, returning empty dict if not found."""
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return data if isinstance(data, dict) else {}
    except (json.JSONDecodeError, OSError):
        return {}


def load_yaml_config(path: Path) -> dict[str, Any]:
    """Load a YAML config file, returning empty dict if not found."""
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
        return data if isinstance(data, dict) else {}
    except (yaml.YAMLError, OSError):
        return {}


def load_config(
    *,
    overrides: dict[str, Any] | None = None,
    working_dir: str | None = None,
) -> CrewConfig:
    """Load configuration from all sources with proper priority.

    Priority: overrides > env vars > project config > user config > defaults
    """
    config = CrewConfig()
    config.working_directory = working_dir or os.getcwd()

    # 1. User-level config (~/.attocrew/config.json)
    _apply_dict(config, load_json_config(get_user_config_dir() / "config.json"))

    # 2. Project-level config (.attocrew/config.yaml, then config.json)
    project_root = find_project_root(Path(config.working_directory))
    if project_root:
        _apply_dict(config, load_yaml_config(project_root / PROJECT_DIR / "config.yaml"))
        _apply_dict(config, load_json_config(project_root / PROJECT_DIR / "config.json"))

    # 3. Environment variables
    if api_key := os.environ.get("LLM_PROVIDER_KEY"):
        config.api_key = api_key
    if api_url := os.environ.get("LLM_API_URL"):
        config.api_url = api_url
    if model := os.environ.get("LLM_MODEL"):
        config.model = model
    if db_path := os.environ.get("ATTOCREW_DB_PATH"):
        config.db_path = db_path
    if max_iterations := os.environ.get("ATTOCREW_MAX_ITERATIONS"):
        try:
            config.max_iterations = int(max_iterations)
        except ValueError:
            raise ConfigurationError(
                f"ATTOCREW_MAX_ITERATIONS must be an integer, got {max_iterations!r}"
            )
    if debug := os.environ.get("ATTOCREW_DEBUG"):
        config.debug = debug.lower() in ("1", "true", "yes")

    # 4. Explicit overrides (highest priority)
    _apply_dict(config, overrides or {})

    if not config.db_path:
        config.db_path = str(Path(config.working_directory) / PROJECT_DIR / "crew.db")

    validate_config(config)
    return config


def validate_config(config: CrewConfig) -> None:
    """Reject values the runtime cannot work with."""
    if config.max_iterations < 1:
        raise ConfigurationError("max_iterations must be at least 1")
    if config.lock_ttl < 0:
        raise ConfigurationError("lock_ttl must not be negative")
    if config.lock_sweep_interval <= 0:
        raise ConfigurationError("lock_sweep_interval must be positive")
    if config.wait_poll_interval <= 0:
        raise ConfigurationError("wait_poll_interval must be positive")


def _apply_dict(config: CrewConfig, data: dict[str, Any]) -> None:
    """Apply dictionary values to config, only for known fields."""
    field_map = {
        "api_key": "api_key",
        "api_url": "api_url",
        "model": "model",
        "temperature": "temperature",
        "request_timeout": "request_timeout",
        "max_iterations": "max_iterations",
        "tool_timeout": "tool_timeout",
        "lock_ttl": "lock_ttl",
        "lock_sweep_interval": "lock_sweep_interval",
        "stale_lock_age": "stale_lock_age",
        "wait_poll_interval": "wait_poll_interval",
        "wait_timeout": "wait_timeout",
        "working_directory": "working_directory",
        "db_path": "db_path",
        "event_log_path": "event_log_path",
        "debug": "debug",
        "json_logs": "json_logs",
        "configure_logging": "configure_logging",
        # Aliases from JSON config
        "apiKey": "api_key",
        "apiUrl": "api_url",
        "maxIterations": "max_iterations",
        "toolTimeout": "tool_timeout",
        "lockTtl": "lock_ttl",
        "lockSweepInterval": "lock_sweep_interval",
        "waitTimeout": "wait_timeout",
        "dbPath": "db_path",
        "eventLogPath": "event_log_path",
    }
    for key, attr in field_map.items():
        if key in data and data[key] is not None:
            setattr(config, attr, data[key])
