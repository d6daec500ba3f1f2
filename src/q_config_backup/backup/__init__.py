"""
Backup lifecycle for q-config-backup.

Creates timestamped tar.gz archives of a configuration directory, records a
SHA-256 checksum file next to each archive, keeps a bounded number of
archives and restores from them after verifying the checksum.

Usage:
    from q_config_backup.backup import BackupManager
    from q_config_backup.config import load_config

    manager = BackupManager(load_config())

    # Create a backup (and rotate old ones)
    result = manager.create_backup()

    # Verify and restore
    manager.restore_backup(result.path)
"""

from q_config_backup.backup.errors import (
    BackupError,
    DigestComputeError,
    DigestMismatchError,
    EmptyArchiveError,
    InsufficientSpaceError,
    IntegrityError,
    InvalidArgumentError,
    PackagingFailedError,
    PrerequisiteMissingError,
    RestoreUnpackError,
    RotationFailedError,
    SidecarInvalidError,
    SidecarMissingError,
    SidecarWriteError,
    SourceNotFoundError,
)
from q_config_backup.backup.manager import (
    BackupManager,
    BackupResult,
    RestoreResult,
)
from q_config_backup.backup.rotation import BackupArchive

__all__ = [
    "BackupManager",
    "BackupResult",
    "RestoreResult",
    "BackupArchive",
    "BackupError",
    "PrerequisiteMissingError",
    "SourceNotFoundError",
    "InsufficientSpaceError",
    "PackagingFailedError",
    "EmptyArchiveError",
    "IntegrityError",
    "DigestComputeError",
    "SidecarWriteError",
    "SidecarMissingError",
    "SidecarInvalidError",
    "DigestMismatchError",
    "RestoreUnpackError",
    "RotationFailedError",
    "InvalidArgumentError",
]
