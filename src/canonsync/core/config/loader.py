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

from .models import CanonsyncConfig

logger = logging.getLogger(__name__)

# Global cache to avoid reloading config multiple times per session
_config_cache: CanonsyncConfig | None = None

PROJECT_CONFIG_NAME = ".canonsync.json"


def get_xdg_config_home() -> Path:
    """
    Get XDG config home directory.

    Returns:
        Path to config directory (defaults to ~/.config)
    """
    if xdg_home := os.environ.get("XDG_CONFIG_HOME"):
        return Path(xdg_home)
    return Path.home() / ".config"


def get_user_config_path() -> Path:
    """
    Get path to user configuration file.

    Returns:
        Path to ~/.config/canonsync/config.json (or XDG equivalent)
    """
    return get_xdg_config_home() / "canonsync" / "config.json"


def get_project_config_path(cwd: Path | None = None) -> Path:
    """
    Get path to project configuration file.

    Args:
        cwd: Working directory to search from (defaults to current directory)

    Returns:
        Path to .canonsync.json in the project root
    """
    if cwd is None:
        cwd = Path.cwd()
    return cwd / PROJECT_CONFIG_NAME


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Values in `override` take precedence over values in `base`.
    Nested dicts are merged, not replaced.

    Example:
        >>> base = {"a": 1, "b": {"x": 10, "y": 20}}
        >>> override = {"b": {"y": 30, "z": 40}, "c": 3}
        >>> deep_merge(base, override)
        {'a': 1, 'b': {'x': 10, 'y': 30, 'z': 40}, 'c': 3}
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

    Args:
        path: Path to JSON file

    Returns:
        Parsed JSON as dict, or None if file doesn't exist or can't be parsed
    """
    if not path.exists():
        return None

    try:
        with path.open(encoding="utf-8") as f:
            data = json.load(f)
            if isinstance(data, dict):
                return data
            return None
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Failed to parse config at %s: %s", path, e)
        return None


def _set_nested(config: dict[str, Any], section: str, key: str, value: Any) -> None:
    config.setdefault(section, {})
    config[section][key] = value


def apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Env vars have the highest precedence and override all config files.

    Supported env vars:
        CANONSYNC_CONTENT_DIR - overrides sync.content_dir
        CANONSYNC_METADATA_PATH - overrides sync.metadata_path
        CANONSYNC_BATCH_POLICY - overrides sync.batch_policy
        CANONSYNC_MAX_WORKERS - overrides sync.max_workers
        CANONSYNC_DIGEST - overrides sync.digest
        CANONSYNC_ASSETS_DIR - overrides assets.root

    Args:
        config_dict: Configuration dictionary to override

    Returns:
        Configuration dictionary with env var overrides applied
    """
    result = deep_merge({}, config_dict)

    if content_dir := os.environ.get("CANONSYNC_CONTENT_DIR"):
        _set_nested(result, "sync", "content_dir", content_dir)

    if metadata_path := os.environ.get("CANONSYNC_METADATA_PATH"):
        _set_nested(result, "sync", "metadata_path", metadata_path)

    if policy := os.environ.get("CANONSYNC_BATCH_POLICY"):
        _set_nested(result, "sync", "batch_policy", policy.strip().lower().replace("-", "_"))

    if workers_str := os.environ.get("CANONSYNC_MAX_WORKERS"):
        try:
            workers = int(workers_str)
            if workers < 1:
                logger.warning("CANONSYNC_MAX_WORKERS must be >= 1, got %s, ignoring", workers)
            else:
                _set_nested(result, "sync", "max_workers", workers)
        except ValueError:
            logger.warning("Invalid CANONSYNC_MAX_WORKERS value '%s', ignoring", workers_str)

    if digest := os.environ.get("CANONSYNC_DIGEST"):
        _set_nested(result, "sync", "digest", digest.strip().lower())

    if assets_dir := os.environ.get("CANONSYNC_ASSETS_DIR"):
        _set_nested(result, "assets", "root", assets_dir)

    return result


def get_default_config() -> dict[str, Any]:
    """
    Get hardcoded default configuration.

    Returns:
        Dictionary with default configuration values
    """
    return {
        "formatting": {"units_to_separate": ["%"], "capitalize_options": True},
        "assets": {"bundles_dir": "bundles", "icons_dir": "icons"},
        "sync": {
            "content_dir": "content",
            "metadata_path": ".canonsync/metadata.json",
            "batch_policy": "all_or_nothing",
            "max_workers": 4,
            "digest": "sha256",
        },
    }


def load_config(project_dir: Path | None = None, use_cache: bool = True) -> CanonsyncConfig:
    """
    Load configuration with multi-layer merging.

    Configuration precedence (highest to lowest):
        1. Environment variables (CANONSYNC_*)
        2. Project config (.canonsync.json)
        3. User config (~/.config/canonsync/config.json)
        4. Hardcoded defaults

    Args:
        project_dir: Project directory to load .canonsync.json from (defaults to cwd)
        use_cache: If True, return cached config from previous load

    Returns:
        Validated CanonsyncConfig instance

    Raises:
        pydantic.ValidationError: If the merged config fails validation
    """
    global _config_cache

    if use_cache and _config_cache is not None:
        return _config_cache

    merged = get_default_config()

    user_config_path = get_user_config_path()
    if user_config := load_json_file(user_config_path):
        merged = deep_merge(merged, user_config)

    project_config_path = get_project_config_path(project_dir)
    if project_config := load_json_file(project_config_path):
        merged = deep_merge(merged, project_config)

    merged = apply_env_overrides(merged)

    config = CanonsyncConfig(**merged)
    logger.debug("Loaded config: %s", config.model_dump(mode="json"))

    _config_cache = config

    return config


def clear_cache() -> None:
    """
    Clear the cached configuration.

    Useful for testing or when config files change during execution.
    """
    global _config_cache
    _config_cache = None
