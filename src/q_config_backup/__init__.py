"""
q-config-backup - Versioned backups of configuration directories

Creates timestamped tar.gz archives of a configuration directory, stores a
SHA-256 checksum next to each one, keeps only the most recent archives and
restores from them after verifying the checksum.
"""

__version__ = "2.0.0"

from q_config_backup.config.settings import Settings, load_config

__all__ = [
    "__version__",
    "Settings",
    "load_config",
]
