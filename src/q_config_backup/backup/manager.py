"""
Backup and restore manager for q-config-backup.

Orchestrates the backup lifecycle:

- create: build the archive in a scratch directory, write its SHA-256
  sidecar, move both into the backup directory, then rotate old backups.
- restore: check the archive against its sidecar, then extract it.
- list: report archives in the backup directory, newest first.

Every failure raises a BackupError subclass. A failed create never leaves
an archive without its sidecar in the backup directory, and a failed
verification never reaches the extraction step.
"""

from __future__ import annotations

import logging
import os
import tarfile
import tempfile
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from q_config_backup.backup.archive import build_archive
from q_config_backup.backup.errors import (
    DigestMismatchError,
    InvalidArgumentError,
    PackagingFailedError,
    RestoreUnpackError,
    SidecarWriteError,
    SourceNotFoundError,
)
from q_config_backup.backup.integrity import (
    VerificationResult,
    check_digest,
    compute_digest,
    sidecar_path_for,
    write_sidecar,
)
from q_config_backup.backup.rotation import (
    BackupArchive,
    archive_name,
    list_archives,
    rotate,
)
from q_config_backup.config.settings import Settings
from q_config_backup.logs import SUCCESS

logger = logging.getLogger(__name__)

DEFAULT_RESTORE_TARGET = Path("/")


@dataclass
class BackupResult:
    """Result of a backup operation."""

    path: Path
    sidecar_path: Path
    size_bytes: int
    entry_count: int
    digest: str
    rotated: list[Path] = field(default_factory=list)


@dataclass
class RestoreResult:
    """Result of a restore operation."""

    archive: Path
    target_dir: Path
    digest: str
    files_restored: int = 0
    extracted: bool = False


def format_size(size_bytes: int) -> str:
    """Format a byte count for log and console messages."""
    return f"{size_bytes:,} bytes ({size_bytes / 1024 / 1024:.2f} MB)"


class BackupManager:
    """
    Runs create, list, verify and restore against one backup directory.

    The manager assumes it is the only process working on the backup
    directory; concurrent invocations are not supported.
    """

    def __init__(
        self,
        settings: Settings,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        """
        Initialize backup manager.

        Args:
            settings: Resolved settings (backup directory, source, retention).
            clock: Returns the time used to name new archives.
        """
        self.settings = settings
        self.backup_dir = Path(settings.backup_dir)
        self.source_path = Path(settings.source_path)
        self._clock = clock

    def create_backup(self) -> BackupResult:
        """
        Create a new backup archive and rotate old ones.

        Returns:
            BackupResult describing the published archive.

        Raises:
            BackupError: If any step fails. Nothing is published in that case
                and no rotation happens.
        """
        logger.info("Starting backup of %s", self.source_path)

        if not self.source_path.is_dir():
            raise SourceNotFoundError(f"Source directory does not exist: {self.source_path}")

        try:
            self.backup_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PackagingFailedError(
                f"Cannot create backup directory {self.backup_dir}: {e}"
            ) from e

        archive_path = self.backup_dir / archive_name(self._clock())
        sidecar_path = sidecar_path_for(archive_path)
        if archive_path.exists() or sidecar_path.exists():
            raise PackagingFailedError(f"Backup already exists: {archive_path}")

        with tempfile.TemporaryDirectory(prefix=".q-config-backup-", dir=self.backup_dir) as temp_dir:
            staged_archive = Path(temp_dir) / archive_path.name
            info = build_archive(
                self.source_path,
                staged_archive,
                exclude=[self.backup_dir],
            )

            logger.info("Generating checksum...")
            digest = compute_digest(staged_archive)
            staged_sidecar = write_sidecar(staged_archive, digest)

            self._publish(staged_archive, staged_sidecar, archive_path, sidecar_path)

        logger.log(
            SUCCESS,
            "Backup created successfully: %s (Size: %s, Files: %d)",
            archive_path,
            format_size(info.size_bytes),
            info.entry_count,
        )
        logger.info("Checksum SHA256: %s", digest)

        rotated = rotate(self.backup_dir, self.settings.max_backups)

        return BackupResult(
            path=archive_path,
            sidecar_path=sidecar_path,
            size_bytes=info.size_bytes,
            entry_count=info.entry_count,
            digest=digest,
            rotated=rotated,
        )

    def list_backups(self) -> list[BackupArchive]:
        """Return backup archives, newest first."""
        return list(reversed(list_archives(self.backup_dir)))

    def verify_backup(self, backup_path: Path) -> VerificationResult:
        """
        Check a backup archive against its checksum file.

        Raises:
            InvalidArgumentError: If the archive does not exist.
            SidecarMissingError: If the checksum file does not exist.
            DigestMismatchError: If the archive does not match.
        """
        backup_path = self._validate_archive_path(backup_path)

        logger.info("Verifying checksum of %s", backup_path)
        result = check_digest(backup_path)
        if not result.valid:
            logger.error("Checksum verification failed for %s: %s", backup_path, result.reason)
            raise DigestMismatchError(
                f"Checksum verification failed for {backup_path}: {result.reason}"
            )

        logger.info("Checksum verified: %s", result.actual)
        return result

    def restore_backup(
        self,
        backup_path: Path,
        target_dir: Path = DEFAULT_RESTORE_TARGET,
        verify_only: bool = False,
    ) -> RestoreResult:
        """
        Restore from a backup archive.

        Extraction overwrites existing files at the same paths under
        ``target_dir``. It only runs after the checksum check passes.

        Args:
            backup_path: Path to the backup archive.
            target_dir: Directory to extract into (default: filesystem root).
            verify_only: Only verify integrity, don't extract.

        Returns:
            RestoreResult with the number of restored entries.

        Raises:
            BackupError: If validation, verification or extraction fails.
        """
        target_dir = Path(target_dir)
        verification = self.verify_backup(backup_path)
        backup_path = verification.archive

        if verify_only:
            return RestoreResult(
                archive=backup_path,
                target_dir=target_dir,
                digest=verification.actual,
            )

        if not target_dir.is_dir():
            raise InvalidArgumentError(f"Restore target is not a directory: {target_dir}")

        logger.info("Restoring %s into %s", backup_path, target_dir)
        try:
            with tarfile.open(backup_path, "r:gz") as tar:
                members = tar.getmembers()
                # Keeps absolute symlinks and ownership; members outside target_dir are refused
                tar.extractall(target_dir, filter="tar")
        except (tarfile.TarError, OSError) as e:
            logger.error("Restore failed: %s", e)
            raise RestoreUnpackError(f"Cannot extract {backup_path}: {e}") from e

        files_restored = sum(1 for member in members if member.isfile())
        logger.log(SUCCESS, "Backup restored: %s (%d files)", backup_path, files_restored)

        return RestoreResult(
            archive=backup_path,
            target_dir=target_dir,
            digest=verification.actual,
            files_restored=files_restored,
            extracted=True,
        )

    def _validate_archive_path(self, backup_path: Path | str | None) -> Path:
        """Check that a restore/verify argument names an existing file."""
        if backup_path is None or not str(backup_path).strip():
            raise InvalidArgumentError("A backup file is required")

        backup_path = Path(backup_path).expanduser()
        if not backup_path.exists() and not backup_path.is_absolute():
            candidate = self.backup_dir / backup_path
            if candidate.exists():
                backup_path = candidate

        if not backup_path.is_file():
            raise InvalidArgumentError(f"Backup file not found: {backup_path}")
        return backup_path

    def _publish(
        self,
        staged_archive: Path,
        staged_sidecar: Path,
        archive_path: Path,
        sidecar_path: Path,
    ) -> None:
        """Move a verified archive and its sidecar into the backup directory."""
        try:
            os.replace(staged_archive, archive_path)
        except OSError as e:
            raise PackagingFailedError(f"Cannot move archive into place: {e}") from e

        try:
            os.replace(staged_sidecar, sidecar_path)
        except OSError as e:
            archive_path.unlink(missing_ok=True)
            raise SidecarWriteError(f"Cannot move checksum file into place: {e}") from e
