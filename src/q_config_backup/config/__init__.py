"""
Configuration management for q-config-backup.

This module resolves settings from defaults, environment variables, a YAML
configuration file and command-line flags.
"""

from q_config_backup.config.settings import (
    ConfigurationError,
    Settings,
    apply_overrides,
    get_config_path,
    load_config,
    save_config,
)

__all__ = [
    "Settings",
    "load_config",
    "save_config",
    "apply_overrides",
    "get_config_path",
    "ConfigurationError",
]
