"""
Configuration loading with multi-layer merging.

Implements the configuration precedence chain:
    defaults < user config < project config < env vars
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

from .models import VibeChannelConfig

logger = logging.getLogger(__name__)

PROJECT_CONFIG_NAME = ".vibechannel.json"

_config_cache: VibeChannelConfig | None = None


def get_xdg_config_home() -> Path:
    """Get XDG config home directory (defaults to ~/.config)."""
    if xdg_home := os.environ.get("XDG_CONFIG_HOME"):
        return Path(xdg_home)
    return Path.home() / ".config"


def get_user_config_path() -> Path:
    """Path to ~/.config/vibechannel/config.json (or XDG equivalent)."""
    return get_xdg_config_home() / "vibechannel" / "config.json"


def get_project_config_path(project_dir: Path | None = None) -> Path:
    """Path to .vibechannel.json in the repository root."""
    if project_dir is None:
        project_dir = Path.cwd()
    return project_dir / PROJECT_CONFIG_NAME


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Values in `override` take precedence over values in `base`; nested
    dicts are merged, not replaced.

    Example:
        >>> deep_merge({"a": 1, "b": {"x": 10}}, {"b": {"y": 2}})
        {'a': 1, 'b': {'x': 10, 'y': 2}}
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def load_json_file(path: Path) -> dict[str, Any] | None:
    """
    Load a JSON file, returning None if it doesn't exist or is invalid.
    """
    if not path.exists():
        return None

    try:
        with path.open() as f:
            data = json.load(f)
            if isinstance(data, dict):
                return data
            return None
    except (json.JSONDecodeError, OSError) as e:
        # A broken config file should not stop the engine
        logger.warning("Failed to parse config at %s: %s", path, e)
        return None


def _parse_bool(value: str) -> bool:
    return value.strip().lower() not in ("false", "0", "no", "off", "")


def _set(result: dict[str, Any], section: str, key: str, value: Any) -> None:
    result.setdefault(section, {})
    result[section][key] = value


def apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Supported env vars:
        VIBECHANNEL_SYNC_INTERVAL - overrides sync.interval_seconds
        VIBECHANNEL_AUTO_PUSH - overrides sync.auto_push
        VIBECHANNEL_REMOTE - overrides git.remote_name
        VIBECHANNEL_GIT_TIMEOUT - overrides git.command_timeout
        VIBECHANNEL_NETWORK_TIMEOUT - overrides git.network_timeout
        VIBECHANNEL_SENDER - overrides identity.sender
    """
    result = {k: (v.copy() if isinstance(v, dict) else v) for k, v in config_dict.items()}

    float_overrides = {
        "VIBECHANNEL_SYNC_INTERVAL": ("sync", "interval_seconds"),
        "VIBECHANNEL_GIT_TIMEOUT": ("git", "command_timeout"),
        "VIBECHANNEL_NETWORK_TIMEOUT": ("git", "network_timeout"),
    }
    for env_name, (section, key) in float_overrides.items():
        if raw := os.environ.get(env_name):
            try:
                value = float(raw)
            except ValueError:
                logger.warning("Invalid %s value %r, ignoring", env_name, raw)
                continue
            if value <= 0:
                logger.warning("%s must be > 0, got %s, ignoring", env_name, value)
                continue
            _set(result, section, key, value)

    if auto_push := os.environ.get("VIBECHANNEL_AUTO_PUSH"):
        _set(result, "sync", "auto_push", _parse_bool(auto_push))

    if remote := os.environ.get("VIBECHANNEL_REMOTE"):
        _set(result, "git", "remote_name", remote)

    if sender := os.environ.get("VIBECHANNEL_SENDER"):
        _set(result, "identity", "sender", sender)

    return result


def get_default_config() -> dict[str, Any]:
    """Hardcoded default configuration."""
    return {
        "sync": {"interval_seconds": 10.0, "auto_push": True},
        "git": {"remote_name": "origin", "command_timeout": 60.0, "network_timeout": 120.0},
    }


def load_config(project_dir: Path | None = None, use_cache: bool = True) -> VibeChannelConfig:
    """
    Load configuration with multi-layer merging.

    Configuration precedence (highest to lowest):
        1. Environment variables (VIBECHANNEL_*)
        2. Project config (.vibechannel.json)
        3. User config (~/.config/vibechannel/config.json)
        4. Hardcoded defaults

    Raises:
        ValidationError: If the merged config fails Pydantic validation
    """
    global _config_cache

    if use_cache and _config_cache is not None:
        return _config_cache

    merged = get_default_config()

    if user_config := load_json_file(get_user_config_path()):
        merged = deep_merge(merged, user_config)

    if project_config := load_json_file(get_project_config_path(project_dir)):
        merged = deep_merge(merged, project_config)

    merged = apply_env_overrides(merged)

    config = VibeChannelConfig(**merged)
    _config_cache = config
    return config


def clear_cache() -> None:
    """Clear the cached configuration."""
    global _config_cache
    _config_cache = None
