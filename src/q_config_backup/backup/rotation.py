"""
Archive discovery and retention for the backup directory.

Archive names embed a zero-padded ``YYYYMMDDHHMMSS`` timestamp, so sorting
names lexically sorts archives by creation time. No file metadata is read to
decide which archive is oldest.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from q_config_backup.backup.archive import ARCHIVE_SUFFIX
from q_config_backup.backup.errors import RotationFailedError
from q_config_backup.backup.integrity import SIDECAR_SUFFIX, sidecar_path_for

logger = logging.getLogger(__name__)

ARCHIVE_PREFIX = "backup_"
TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"

_ARCHIVE_NAME = re.compile(
    rf"^{ARCHIVE_PREFIX}(?P<timestamp>\d{{14}}){re.escape(ARCHIVE_SUFFIX)}$"
)


@dataclass
class BackupArchive:
    """A backup archive found in the backup directory."""

    path: Path
    created_at: datetime | None
    size_bytes: int
    has_sidecar: bool

    @property
    def name(self) -> str:
        return self.path.name


def archive_name(timestamp: datetime) -> str:
    """Return the archive file name for a creation time."""
    return f"{ARCHIVE_PREFIX}{timestamp.strftime(TIMESTAMP_FORMAT)}{ARCHIVE_SUFFIX}"


def parse_archive_timestamp(name: str) -> datetime | None:
    """Extract the creation time from an archive name, or None if it is not one."""
    match = _ARCHIVE_NAME.match(name)
    if match is None:
        return None
    try:
        return datetime.strptime(match.group("timestamp"), TIMESTAMP_FORMAT)
    except ValueError:
        return None


def list_archives(backup_dir: Path) -> list[BackupArchive]:
    """
    List backup archives, oldest first.

    Args:
        backup_dir: Directory holding archives and sidecars.

    Returns:
        Archives sorted by file name. Empty if the directory does not exist.
    """
    backup_dir = Path(backup_dir)
    if not backup_dir.is_dir():
        return []

    archives = []
    for path in sorted(backup_dir.iterdir(), key=lambda p: p.name):
        if not path.is_file() or not _ARCHIVE_NAME.match(path.name):
            continue
        archives.append(
            BackupArchive(
                path=path,
                created_at=parse_archive_timestamp(path.name),
                size_bytes=path.stat().st_size,
                has_sidecar=sidecar_path_for(path).is_file(),
            )
        )
    return archives


def find_orphan_sidecars(backup_dir: Path) -> list[Path]:
    """Return sidecars in ``backup_dir`` whose archive is missing."""
    backup_dir = Path(backup_dir)
    if not backup_dir.is_dir():
        return []

    orphans = []
    for path in sorted(backup_dir.glob(f"{ARCHIVE_PREFIX}*{ARCHIVE_SUFFIX}{SIDECAR_SUFFIX}")):
        archive = path.with_name(path.name[: -len(SIDECAR_SUFFIX)])
        if not archive.exists():
            orphans.append(path)
    return orphans


def delete_pair(archive_path: Path) -> None:
    """Delete an archive together with its sidecar."""
    archive_path = Path(archive_path)
    archive_path.unlink(missing_ok=True)
    sidecar_path_for(archive_path).unlink(missing_ok=True)


def rotate(backup_dir: Path, max_backups: int) -> list[Path]:
    """
    Delete the oldest archive/sidecar pairs until at most ``max_backups`` remain.

    Args:
        backup_dir: Directory holding archives and sidecars.
        max_backups: Number of archives to keep. Must be at least 1.

    Returns:
        Paths of the deleted archives, oldest first.

    Raises:
        RotationFailedError: If an archive or sidecar cannot be deleted.
    """
    if max_backups < 1:
        raise ValueError("max_backups must be at least 1")

    archives = list_archives(backup_dir)
    excess = len(archives) - max_backups
    if excess <= 0:
        logger.debug("Rotation not needed: %d of %d", len(archives), max_backups)
        return []

    removed = []
    for archive in archives[:excess]:
        try:
            delete_pair(archive.path)
        except OSError as e:
            raise RotationFailedError(f"Cannot remove old backup {archive.path}: {e}") from e
        removed.append(archive.path)
        logger.info("Oldest backup removed: %s", archive.path)
    return removed
