"""Harness configuration management.

Handles persistent configuration stored in ~/.wats/config.yaml.
Supports environment variable overrides and command-line precedence.
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError

# Default values
DEFAULT_ATC_URL = "http://localhost:8080"
DEFAULT_FLY_BINARY = "fly"
DEFAULT_TIMEOUT_MS = 30000
DEFAULT_ARTIFACTS_DIR = "wats-artifacts"

CONFIG_PATH_ENV = "WATS_CONFIG"

# Environment variable mappings
ENV_VARS = {
    "atc_url": "ATC_URL",
    "fly_binary": "FLY_PATH",
    "admin_username": "ATC_ADMIN_USERNAME",
    "admin_password": "ATC_ADMIN_PASSWORD",
    "guest_username": "ATC_GUEST_USERNAME",
    "guest_password": "ATC_GUEST_PASSWORD",
    "team_name": "WATS_TEAM_NAME",
    "headless": "WATS_HEADLESS",
    "timeout_ms": "WATS_TIMEOUT_MS",
    "artifacts_dir": "WATS_ARTIFACTS_DIR",
    "log_level": "WATS_LOG_LEVEL",
}

SECRET_KEYS = {"admin_password", "guest_password"}


@dataclass
class HarnessConfig:
    """Harness configuration."""

    atc_url: str = DEFAULT_ATC_URL
    fly_binary: str = DEFAULT_FLY_BINARY
    admin_username: str = "test"
    admin_password: str = "test"
    guest_username: str = "guest"
    guest_password: str = "guest"
    # Empty means a fresh team per test
    team_name: str = ""
    headless: bool = True
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    artifacts_dir: str = DEFAULT_ARTIFACTS_DIR
    log_level: str = "warning"

    # Track where each value came from
    _sources: dict[str, str] = field(default_factory=dict, repr=False)

    def get_source(self, key: str) -> str:
        """Get the source of a config value."""
        return self._sources.get(key, "default")

    @property
    def is_explicit_target(self) -> bool:
        """Whether the target URL was configured rather than defaulted."""
        return self.get_source("atc_url") != "default"

    def values(self, reveal_secrets: bool = False) -> dict[str, Any]:
        """Config values as a plain dict, secrets masked unless asked."""
        result = {}
        for key in config_keys():
            value = getattr(self, key)
            if key in SECRET_KEYS and not reveal_secrets:
                value = "****"
            result[key] = value
        return result


def config_keys() -> list[str]:
    """Names of all user-settable config values."""
    return [f.name for f in fields(HarnessConfig) if not f.name.startswith("_")]


def get_config_path() -> Path:
    """Get the config file path.

    Returns:
        $WATS_CONFIG if set, else ~/.wats/config.yaml
    """
    if os.environ.get(CONFIG_PATH_ENV):
        return Path(os.environ[CONFIG_PATH_ENV])
    return Path.home() / ".wats" / "config.yaml"


def _coerce(key: str, value: Any) -> Any:
    """Convert a raw value to the type of the named field."""
    default = getattr(HarnessConfig, key)
    try:
        if isinstance(default, bool):
            if isinstance(value, bool):
                return value
            text = str(value).strip().lower()
            if text in ("1", "true", "yes", "on"):
                return True
            if text in ("0", "false", "no", "off"):
                return False
            raise ValueError(f"not a boolean: {value!r}")
        if isinstance(default, int):
            return int(value)
        return str(value)
    except ValueError as e:
        raise ConfigError(message=f"Invalid value for {key}: {e}") from e


def load_config(
    config_path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> HarnessConfig:
    """Load harness configuration.

    Precedence (highest to lowest):
    1. Overrides (pytest command-line options)
    2. Environment variables
    3. Config file (~/.wats/config.yaml)
    4. Defaults

    Args:
        config_path: Explicit config file, replaces the default lookup
        overrides: Values that win over every other source; None values are ignored

    Returns:
        HarnessConfig with values and sources
    """
    config = HarnessConfig()
    sources: dict[str, str] = {key: "default" for key in config_keys()}

    # Load from config file
    path = Path(config_path) if config_path else get_config_path()
    if path.exists():
        try:
            with open(path) as f:
                file_config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(message=f"Cannot read config file {path}: {e}") from e
        if not isinstance(file_config, dict):
            raise ConfigError(message=f"Config file {path} must contain a mapping")

        for key, value in file_config.items():
            if key not in sources:
                raise ConfigError(message=f"Unknown config key in {path}: {key}")
            setattr(config, key, _coerce(key, value))
            sources[key] = "config file"
    elif config_path:
        raise ConfigError(message=f"Config file not found: {path}")

    # Override with environment variables
    for key, env_var in ENV_VARS.items():
        if os.environ.get(env_var):
            setattr(config, key, _coerce(key, os.environ[env_var]))
            sources[key] = "environment"

    for key, value in (overrides or {}).items():
        if value is None:
            continue
        if key not in sources:
            raise ConfigError(message=f"Unknown config key: {key}")
        setattr(config, key, _coerce(key, value))
        sources[key] = "command line"

    config._sources = sources
    return config
