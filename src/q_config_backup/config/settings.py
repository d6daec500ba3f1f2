"""
Configuration settings management for q-config-backup.

Settings are resolved once per invocation from four layers, later layers
winning:

1. Built-in defaults
2. Environment variables (``QCB_BACKUP_DIR``, ``QCB_MAX_BACKUPS``,
   ``QCB_SOURCE_PATH``, ``QCB_LOG_FILE``)
3. The YAML configuration file (``~/.config/q-config-backup.yaml``, or the
   path in ``QCB_CONFIG``)
4. Command-line flags

The resolved Settings value is passed explicitly to every component.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

DEFAULT_BACKUP_DIR = Path.home() / ".config-backups"
DEFAULT_CONFIG_FILE = Path.home() / ".config" / "q-config-backup.yaml"
DEFAULT_SOURCE_PATH = "/etc"
DEFAULT_MAX_BACKUPS = 5
DEFAULT_LOG_FILE = DEFAULT_BACKUP_DIR / "q-config-backup.log"

CONFIG_ENV_VAR = "QCB_CONFIG"

SETTING_KEYS = ("backup_dir", "max_backups", "source_path", "log_file")


@dataclass
class Settings:
    """
    Resolved q-config-backup settings.

    Attributes:
        backup_dir: Directory holding archives and their checksum files.
        max_backups: Number of archives kept after each backup.
        source_path: Directory that gets backed up.
        log_file: File that receives the append-only operation log.
    """

    backup_dir: str = str(DEFAULT_BACKUP_DIR)
    max_backups: int = DEFAULT_MAX_BACKUPS
    source_path: str = DEFAULT_SOURCE_PATH
    log_file: str = str(DEFAULT_LOG_FILE)


class ConfigurationError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""

    label = "Configuration error"


def get_config_path() -> Path:
    """
    Get the configuration file path.

    Returns the path from the QCB_CONFIG environment variable if set,
    otherwise the default path (~/.config/q-config-backup.yaml).
    """
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_CONFIG_FILE


def parse_max_backups(value: Any) -> int | None:
    """Return ``value`` as a positive int, or None if it is not one."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, str) and value.strip().isdigit():
        number = int(value.strip())
        return number if number > 0 else None
    return None


def load_config(config_path: Path | None = None) -> Settings:
    """
    Load settings from defaults, the environment and the YAML config file.

    A missing config file is not an error. An invalid ``max_backups`` value is
    logged as a warning and the previous value is kept.

    Args:
        config_path: Optional path to the configuration file. If not provided,
            uses the QCB_CONFIG environment variable or the default path.

    Returns:
        Resolved Settings instance (before command-line overrides).

    Raises:
        ConfigurationError: If the config file cannot be read or is not a
            YAML mapping.
    """
    if config_path is None:
        config_path = get_config_path()
    config_path = Path(config_path)

    settings = Settings()
    settings = _apply_environment_overrides(settings)

    if config_path.exists():
        try:
            with open(config_path) as f:
                config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Cannot read config file: {e}") from e

        if not isinstance(config_data, dict):
            raise ConfigurationError(
                f"Config file must contain a mapping of settings: {config_path}"
            )

        settings = _apply_config_data(settings, config_data, source=str(config_path))
        logger.info("Configuration loaded from: %s", config_path)

    return settings


def apply_overrides(
    settings: Settings,
    backup_dir: str | None = None,
    max_backups: int | None = None,
    source_path: str | None = None,
    log_file: str | None = None,
) -> Settings:
    """Apply command-line values on top of loaded settings."""
    if backup_dir is not None:
        settings.backup_dir = str(Path(backup_dir).expanduser())
    if max_backups is not None:
        if parse_max_backups(max_backups) is None:
            raise ConfigurationError(
                f"max_backups must be a positive integer, got {max_backups!r}"
            )
        settings.max_backups = int(max_backups)
    if source_path is not None:
        settings.source_path = str(Path(source_path).expanduser())
    if log_file is not None:
        settings.log_file = str(Path(log_file).expanduser())
    return settings


def save_config(settings: Settings, config_path: Path | None = None) -> Path:
    """
    Save settings to a YAML file.

    Returns:
        The path written.

    Raises:
        ConfigurationError: If the configuration cannot be written.
    """
    if config_path is None:
        config_path = get_config_path()
    config_path = Path(config_path)

    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w") as f:
            yaml.safe_dump(
                _settings_to_dict(settings),
                f,
                default_flow_style=False,
                sort_keys=False,
            )
    except OSError as e:
        raise ConfigurationError(f"Cannot write config file: {e}") from e

    return config_path


def _apply_config_data(settings: Settings, data: dict[str, Any], source: str) -> Settings:
    """Apply values from a parsed config mapping to settings."""
    if "backup_dir" in data and data["backup_dir"]:
        settings.backup_dir = str(Path(str(data["backup_dir"])).expanduser())
    if "max_backups" in data:
        _set_max_backups(settings, data["max_backups"], source)
    if "source_path" in data and data["source_path"]:
        settings.source_path = str(Path(str(data["source_path"])).expanduser())
    if "log_file" in data and data["log_file"]:
        settings.log_file = str(Path(str(data["log_file"])).expanduser())
    return settings


def _apply_environment_overrides(settings: Settings) -> Settings:
    """Apply QCB_* environment variables to settings."""
    env_data = {}
    for key in SETTING_KEYS:
        value = os.environ.get(f"QCB_{key.upper()}")
        if value is not None:
            env_data[key] = value
    return _apply_config_data(settings, env_data, source="environment")


def _set_max_backups(settings: Settings, value: Any, source: str) -> None:
    """Set max_backups, keeping the previous value if ``value`` is invalid."""
    parsed = parse_max_backups(value)
    if parsed is None:
        logger.warning(
            "Invalid value for max_backups in %s: %r (keeping %d)",
            source,
            value,
            settings.max_backups,
        )
        return
    settings.max_backups = parsed


def _settings_to_dict(settings: Settings) -> dict[str, Any]:
    """Convert Settings to a dictionary for YAML serialization."""
    return {
        "backup_dir": settings.backup_dir,
        "max_backups": settings.max_backups,
        "source_path": settings.source_path,
        "log_file": settings.log_file,
    }
