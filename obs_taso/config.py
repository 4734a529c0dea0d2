"""Configuration loading.

Settings come from a YAML file with ``OBS_TASO_*`` environment variable
overrides. Priority (highest to lowest):
1. Environment variables
2. Config file values
3. Defaults
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, get_args, get_type_hints

import yaml

from .errors import ConfigError
from .protocol import DEFAULT_EVENT_SUBSCRIPTIONS
from .torneopal import DEFAULT_BASE_URL, DEFAULT_CATEGORY_ID, DEFAULT_COMPETITION_ID

DEFAULT_CONFIG_FILE = "obs_taso.yaml"

_TRUE_VALUES = ("true", "1", "yes", "on")
_SECTIONS = ("obs", "server", "torneopal", "cache")


@dataclass
class ObsConfig:
    url: str = "ws://localhost:4455"
    password: str | None = None
    reconnect: bool = True
    reconnect_interval: float = 5.0
    identify_timeout: float | None = 10.0
    request_timeout: float | None = None
    event_subscriptions: int = DEFAULT_EVENT_SUBSCRIPTIONS


@dataclass
class MockServerConfig:
    host: str = "localhost"
    port: int = 4455
    password: str | None = None
    authentication: bool = True


@dataclass
class TorneopalConfig:
    base_url: str = DEFAULT_BASE_URL
    api_key: str = ""
    competition_id: str = DEFAULT_COMPETITION_ID
    category_id: int = DEFAULT_CATEGORY_ID


@dataclass
class CacheConfig:
    path: str = ".obs_taso_cache.json"


@dataclass
class Config:
    obs: ObsConfig = field(default_factory=ObsConfig)
    server: MockServerConfig = field(default_factory=MockServerConfig)
    torneopal: TorneopalConfig = field(default_factory=TorneopalConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    debug: bool = False


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML mapping, returning {} for an empty file."""
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping")
    return data


def _check_value(name: str, value: Any, expected: Any) -> Any:
    """Return ``value`` if YAML produced a type the setting accepts.

    Integers are accepted for float settings. Booleans only fit bool settings.
    """
    allowed = get_args(expected) or (expected,)
    if value is None:
        if type(None) in allowed:
            return None
    elif isinstance(value, bool):
        if bool in allowed:
            return value
    elif isinstance(value, (int, float)) and float in allowed:
        return float(value)
    elif isinstance(value, int) and int in allowed:
        return value
    elif isinstance(value, str) and str in allowed:
        return value
    raise ConfigError(f"Setting '{name}' has an invalid value: {value!r}")


def _apply_section(target: Any, values: Any, section: str) -> None:
    if not isinstance(values, dict):
        raise ConfigError(f"Section '{section}' must be a mapping")
    known = {f.name for f in fields(target)}
    hints = get_type_hints(type(target))
    for key, value in values.items():
        if key not in known:
            raise ConfigError(f"Unknown setting '{section}.{key}'")
        setattr(target, key, _check_value(f"{section}.{key}", value, hints[key]))


def _env_bool(value: str) -> bool:
    return value.strip().lower() in _TRUE_VALUES


def _env_float(name: str, value: str) -> float:
    try:
        return float(value)
    except ValueError as err:
        raise ConfigError(f"{name} must be a number, got {value!r}") from err


def _env_int(name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError as err:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from err


def _apply_env(config: Config, env: dict[str, str]) -> None:
    if env.get("OBS_TASO_URL"):
        config.obs.url = env["OBS_TASO_URL"]
    if "OBS_TASO_PASSWORD" in env:
        config.obs.password = env["OBS_TASO_PASSWORD"]
    if env.get("OBS_TASO_RECONNECT"):
        config.obs.reconnect = _env_bool(env["OBS_TASO_RECONNECT"])
    if env.get("OBS_TASO_RECONNECT_INTERVAL"):
        config.obs.reconnect_interval = _env_float(
            "OBS_TASO_RECONNECT_INTERVAL", env["OBS_TASO_RECONNECT_INTERVAL"]
        )
    if env.get("OBS_TASO_SERVER_HOST"):
        config.server.host = env["OBS_TASO_SERVER_HOST"]
    if env.get("OBS_TASO_SERVER_PORT"):
        config.server.port = _env_int("OBS_TASO_SERVER_PORT", env["OBS_TASO_SERVER_PORT"])
    if "OBS_TASO_SERVER_PASSWORD" in env:
        config.server.password = env["OBS_TASO_SERVER_PASSWORD"]
    if env.get("OBS_TASO_API_KEY"):
        config.torneopal.api_key = env["OBS_TASO_API_KEY"]
    if env.get("OBS_TASO_CACHE_PATH"):
        config.cache.path = env["OBS_TASO_CACHE_PATH"]
    if env.get("OBS_TASO_DEBUG"):
        config.debug = _env_bool(env["OBS_TASO_DEBUG"])


def load_config(
    config_path: str | Path | None = None,
    *,
    env: dict[str, str] | None = None,
) -> Config:
    """Load configuration from YAML with environment variable overrides.

    Args:
        config_path: YAML file; defaults to obs_taso.yaml in the working
            directory. A missing file leaves the defaults in place.
        env: Environment mapping, os.environ when omitted

    Raises:
        ConfigError: The file is not a mapping of known sections and settings,
            a value has the wrong type, or an environment value cannot be
            converted.
    """
    config = Config()
    path = Path(config_path) if config_path is not None else Path(DEFAULT_CONFIG_FILE)

    if path.exists():
        data = _load_yaml(path)
        for key in data:
            if key not in _SECTIONS and key != "debug":
                raise ConfigError(f"Unknown section '{key}'")
        for section in _SECTIONS:
            if section in data:
                _apply_section(getattr(config, section), data[section], section)
        if "debug" in data:
            config.debug = _check_value("debug", data["debug"], bool)

    _apply_env(config, dict(os.environ) if env is None else env)
    return config
