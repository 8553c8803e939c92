"""Configuration management for gitpilot.

Settings are layered: packaged ``defaults.yaml``, then the user file
(``~/.gitpilot/config.yaml``, or the path in ``GITPILOT_CONFIG``), then
``GITPILOT_<SECTION>__<KEY>`` environment variables.
"""

import os
import re
from pathlib import Path
from typing import Any, Optional

import yaml

from gitpilot.errors import InvalidConfigError
from .settings import ExecutorConfig, IdentityConfig, LoggingConfig, Settings, WorkflowsConfig

# Singleton instance
_settings: Optional[Settings] = None

CONFIG_DIR = Path.home() / ".gitpilot"
CONFIG_FILE = CONFIG_DIR / "config.yaml"
CONFIG_ENV_VAR = "GITPILOT_CONFIG"
DEFAULTS_FILE = Path(__file__).parent / "defaults.yaml"

SECTIONS = ("executor", "workflows", "identity", "logging")

_ENV_REFERENCE = re.compile(r"\$\{([^}]+)\}")


def _expand_env_vars(value: Any) -> Any:
    """Replace ``${NAME}`` in every string of a YAML tree; unset names become ''."""
    if isinstance(value, str):
        return _ENV_REFERENCE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {key: _expand_env_vars(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_expand_env_vars(item) for item in value]
    return value


def _deep_merge(base: dict, override: dict) -> dict:
    """Merge ``override`` into a copy of ``base``; nested sections merge key by key."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        merged[key] = _deep_merge(current, value) if isinstance(current, dict) and isinstance(value, dict) else value
    return merged


def _load_yaml_file(path: Path) -> dict:
    """Read a config file; a missing or empty file is an empty mapping.

    Raises:
        InvalidConfigError: If the file is not valid YAML or not a mapping.
    """
    if not path.exists():
        return {}
    try:
        content = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise InvalidConfigError(str(path), "<file>", f"invalid YAML: {e}")
    if content is None:
        return {}
    if not isinstance(content, dict):
        raise InvalidConfigError(str(path), type(content).__name__, "top level must be a mapping")
    return content


def user_config_path() -> Path:
    """The user config file: ``$GITPILOT_CONFIG`` when set, else ``~/.gitpilot/config.yaml``."""
    override = os.environ.get(CONFIG_ENV_VAR)
    return Path(override).expanduser() if override else CONFIG_FILE


def create_default_config() -> Path:
    """Write the packaged defaults to the user config file unless it exists.

    Returns:
        Path to the user config file.
    """
    path = user_config_path()
    if not path.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(DEFAULTS_FILE.read_text(encoding="utf-8"), encoding="utf-8")
    return path


def load_settings(config_path: Optional[Path] = None, force_reload: bool = False) -> Settings:
    """
    Load settings with priority: env vars > user config > defaults.

    Args:
        config_path: Config file to use instead of the user config file
        force_reload: Force reload even if settings are cached

    Returns:
        Settings instance

    Raises:
        InvalidConfigError: If a file is unreadable or a value is out of range.
    """
    global _settings

    if _settings is not None and not force_reload:
        return _settings

    user_config = _load_yaml_file(Path(config_path) if config_path else user_config_path())
    merged = _expand_env_vars(_deep_merge(_load_yaml_file(DEFAULTS_FILE), user_config))
    sections = {key: value for key, value in merged.items() if key in SECTIONS}

    try:
        _settings = Settings(**sections)
    except ValueError as e:
        raise InvalidConfigError("settings", sections, str(e))

    return _settings


def get_settings() -> Settings:
    """Get the current settings instance, loading if necessary."""
    return _settings if _settings is not None else load_settings()


def reset_settings() -> None:
    """Forget the cached settings (tests and ``--config`` reloads)."""
    global _settings
    _settings = None


__all__ = [
    "Settings",
    "ExecutorConfig",
    "WorkflowsConfig",
    "IdentityConfig",
    "LoggingConfig",
    "get_settings",
    "load_settings",
    "reset_settings",
    "user_config_path",
    "create_default_config",
    "CONFIG_DIR",
    "CONFIG_FILE",
    "CONFIG_ENV_VAR",
    "DEFAULTS_FILE",
]
